"""
TinyQR Reader — read back symbols produced by the TinyQR encoder
=================================================================

Recovers the message from a finished module matrix (or a rendered image
of one) by retracing the encoder's steps:

  Stage A (Structural): symbol size → version, format bits → mask.
  Stage B (Codewords):  rebuild the skeleton, walk the placement path,
                        unmask, de-interleave, verify each block's EC.
  Stage C (Message):    parse the byte-mode segment.

This is a verification tool, not a general QR decoder: no error
correction, no finder detection, no perspective correction. Images must
be axis aligned at a known scale and border.
"""

import logging
from pathlib import Path
from typing import List, Tuple, Union

from PIL import Image

from tinyqr_types import (
    MODE_BYTE, FORMAT_INFO_Q,
    DEFAULT_SCALE, DEFAULT_BORDER,
    ModuleMatrix, VersionParameters,
    TinyQRFormatError, version_parameters, version_for_size, mask_predicate,
)
from tinyqr_matrix import build_matrix, placement_path
from tinyqr_encoder import reed_solomon

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# DE-INTERLEAVER
# ═══════════════════════════════════════════════════════════════

def deinterleave(stream: bytes, params: VersionParameters) -> Tuple[List[bytes], List[bytes]]:
    """
    Inverse of the encoder's interleave(): split a transmission-order
    stream back into (data_blocks, ec_blocks), group 1 first.
    """
    if len(stream) != params.total_codewords:
        raise TinyQRFormatError(
            f"Version {params.number} carries {params.total_codewords} codewords, "
            f"got {len(stream)}"
        )

    lengths = params.block_lengths
    data_blocks = [bytearray() for _ in lengths]
    pos = 0
    for i in range(max(lengths)):
        for block, length in zip(data_blocks, lengths):
            if i < length:
                block.append(stream[pos])
                pos += 1

    ec_blocks = [bytearray() for _ in lengths]
    for _ in range(params.ec_codewords):
        for block in ec_blocks:
            block.append(stream[pos])
            pos += 1

    return [bytes(b) for b in data_blocks], [bytes(b) for b in ec_blocks]


def parse_message(message: bytes, params: VersionParameters) -> bytes:
    """Extract the payload of a byte-mode segment from the data codewords."""
    if not message or message[0] >> 4 != MODE_BYTE:
        raise TinyQRFormatError(
            f"Not a byte mode segment (mode indicator {message[0] >> 4 if message else None})"
        )

    # drop the mode nibble: every codeword is realigned to the count/payload bits
    shifted = bytes(((a & 0x0F) << 4) | (b >> 4) for a, b in zip(message, message[1:]))

    count_bytes = params.count_bits // 8
    length = int.from_bytes(shifted[:count_bytes], 'big')
    if length > params.capacity:
        raise TinyQRFormatError(
            f"Character count {length} exceeds version {params.number}-Q "
            f"capacity {params.capacity}"
        )
    return shifted[count_bytes:count_bytes + length]


# ═══════════════════════════════════════════════════════════════
# READER
# ═══════════════════════════════════════════════════════════════

class TinyQRReader:
    """
    TinyQR Reader.

    Usage:
        reader = TinyQRReader()
        result = reader.read(matrix)
        text = result['data']            # payload bytes
        ok = result['valid']             # every EC block matched
    """

    def __init__(self, verify_integrity: bool = True,
                 scale: int = DEFAULT_SCALE, border: int = DEFAULT_BORDER):
        self.verify_integrity = verify_integrity
        self.scale = scale
        self.border = border

    # ─── Main Entry Points ────────────────────────────────────

    def read(self, matrix: ModuleMatrix) -> dict:
        """
        Read a module matrix.

        Returns:
            dict with 'version', 'mask', 'data', 'codewords', 'blocks',
            'validation_errors' and 'valid'.
        """
        # ══ STAGE A: version + mask ══
        params = version_parameters(version_for_size(matrix.size))
        mask = self._read_mask(matrix)
        predicate = mask_predicate(mask)

        # ══ STAGE B: codewords ══
        skeleton = build_matrix(params, mask)
        bits = bytearray()
        for row, column in placement_path(skeleton):
            dark = matrix.is_dark(row, column)
            if predicate(row, column):
                dark = not dark
            bits.append(dark)

        expected = params.data_bits + params.remainder_bits
        if len(bits) != expected:
            raise TinyQRFormatError(
                f"Placement path visited {len(bits)} modules, expected {expected}"
            )

        codewords = bytearray()
        for i in range(0, params.data_bits, 8):
            value = 0
            for bit in bits[i:i + 8]:
                value = (value << 1) | bit
            codewords.append(value)
        codewords = bytes(codewords)

        data_blocks, ec_blocks = deinterleave(codewords, params)

        validation_errors = []
        if self.verify_integrity:
            for n, (data, ec) in enumerate(zip(data_blocks, ec_blocks)):
                computed = reed_solomon(data, params.ec_codewords)
                if computed != ec:
                    validation_errors.append(
                        f"Block {n}: EC mismatch "
                        f"(expected {computed.hex()[:16]}..., got {ec.hex()[:16]}...)"
                    )

        # ══ STAGE C: message ══
        message = b''.join(data_blocks)
        payload = parse_message(message, params)

        logger.debug("read version %d-Q mask %d: %d bytes, %d errors",
                     params.number, mask, len(payload), len(validation_errors))

        return {
            'version': params.number,
            'mask': mask,
            'data': payload,
            'codewords': codewords,
            'blocks': [{
                'data_codewords': len(data),
                'ec_codewords': len(ec),
            } for data, ec in zip(data_blocks, ec_blocks)],
            'validation_errors': validation_errors,
            'valid': len(validation_errors) == 0,
        }

    def read_image(self, filepath: Union[str, Path]) -> dict:
        """Read a rendered image by sampling the centre of every module."""
        try:
            with Image.open(filepath) as img:
                gray = img.convert('L')
        except OSError as e:
            # UnidentifiedImageError is an OSError too
            raise TinyQRFormatError(f"Cannot read image {filepath}: {e}") from e

        width, height = gray.size
        if width != height or width % self.scale:
            raise TinyQRFormatError(
                f"{width}x{height} image is not a square symbol at scale {self.scale}"
            )
        size = width // self.scale - 2 * self.border
        version_for_size(size)

        offset = self.border * self.scale + self.scale // 2
        rows = [
            [gray.getpixel((offset + c * self.scale, offset + r * self.scale)) < 128
             for c in range(size)]
            for r in range(size)
        ]
        return self.read(ModuleMatrix.from_rows(rows))

    # ─── Format Information ───────────────────────────────────

    def _read_mask(self, matrix: ModuleMatrix) -> int:
        """Mask pattern from the format string beside the top-left finder."""
        bits = 0
        positions = [(r, 8) for r in (0, 1, 2, 3, 4, 5, 7, 8)]
        positions += [(8, c) for c in (7, 5, 4, 3, 2, 1, 0)]
        for i, (row, column) in enumerate(positions):
            if matrix.is_dark(row, column):
                bits |= 1 << i

        for mask, format_bits in FORMAT_INFO_Q.items():
            if format_bits == bits:
                return mask
        raise TinyQRFormatError(f"Unknown format information {bits:015b}")


# ═══════════════════════════════════════════════════════════════
# CONVENIENCE FUNCTIONS
# ═══════════════════════════════════════════════════════════════

def read_matrix(matrix: ModuleMatrix, verify: bool = True) -> dict:
    """Convenience: read a module matrix in one call."""
    return TinyQRReader(verify_integrity=verify).read(matrix)

def read_file(filepath: Union[str, Path], scale: int = DEFAULT_SCALE,
              border: int = DEFAULT_BORDER, verify: bool = True) -> dict:
    """Convenience: read a rendered image in one call."""
    return TinyQRReader(verify_integrity=verify, scale=scale, border=border).read_image(filepath)
