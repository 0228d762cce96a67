"""
TinyQR Encoder — text to QR symbol, level Q, byte mode, mask 1
===============================================================

Encodes a short message into a QR Code module matrix and, optionally,
an image file:

  text → message codewords → Reed-Solomon blocks → interleaved stream
       → structural skeleton + data placement → ModuleMatrix → PNG/BMP

Scope:
  - Versions 1-40, chosen by the caller (no automatic fitting)
  - Error correction level Q only
  - 8-bit byte mode only
  - Mask pattern 1 (even rows inverted), no penalty scoring
"""

import io
import logging
from itertools import cycle, islice
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from PIL import Image, ImageDraw

from tinyqr_types import (
    MODE_BYTE, PAD_CODEWORDS,
    DEFAULT_VERSION, DEFAULT_MASK, DEFAULT_SCALE, DEFAULT_BORDER,
    ModuleMatrix, VersionParameters,
    CapacityExceeded, RenderFailure,
    EXP, LOG, generator_polynomial, version_parameters, mask_predicate,
)
from tinyqr_matrix import build_matrix, place_data

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# MESSAGE FORMATTER
# ═══════════════════════════════════════════════════════════════

def format_message(text: bytes, params: VersionParameters) -> bytearray:
    """
    Build the data codewords for one byte-mode segment.

    The mode indicator and character count take 12 (or 20) bits, so the
    payload starts half way through a codeword: each payload codeword is
    the low nibble of one byte followed by the high nibble of the next.
    A zero byte stands in after the last character, which makes the final
    low nibble come out followed by the 4-bit terminator.
    """
    length = len(text)
    if length > params.capacity:
        raise CapacityExceeded(
            f"{length} bytes do not fit version {params.number}-Q "
            f"(capacity {params.capacity} bytes)"
        )

    header = (MODE_BYTE << params.count_bits) | length
    message = bytearray((header >> 4).to_bytes(params.count_bits // 8, 'big'))

    first = text[0] if text else 0
    message.append(((header & 0x0F) << 4) | (first >> 4))

    for current, following in zip(text, text[1:] + b'\x00'):
        message.append(((current & 0x0F) << 4) | (following >> 4))

    needed_pad_bytes = params.data_codewords - len(message)
    logger.debug("message length=%d, pad bytes=%d", length, needed_pad_bytes)
    message.extend(islice(cycle(PAD_CODEWORDS), needed_pad_bytes))

    assert len(message) == params.data_codewords
    return message


# ═══════════════════════════════════════════════════════════════
# REED-SOLOMON
# ═══════════════════════════════════════════════════════════════

def reed_solomon(data: Sequence[int], ec_count: int) -> bytes:
    """
    Error correction codewords of one block.

    Polynomial long division of the data by the generator, worked on a
    remainder buffer that starts as the data itself. A zero lead term
    reduces the step to a plain shift.
    """
    generator = generator_polynomial(ec_count)
    remainder = bytearray(data).ljust(ec_count, b'\x00')

    for _ in range(len(data)):
        lead = remainder.pop(0)
        remainder.append(0)
        if lead != 0:
            lead_term = LOG[lead]
            for i in range(ec_count):
                remainder[i] ^= EXP[(generator[i] + lead_term) % 255]

    return bytes(remainder[:ec_count])


# ═══════════════════════════════════════════════════════════════
# INTERLEAVER
# ═══════════════════════════════════════════════════════════════

def split_blocks(message: Sequence[int], params: VersionParameters) -> List[bytes]:
    """Cut the data codewords into blocks, group 1 first."""
    blocks = []
    offset = 0
    for length in params.block_lengths:
        blocks.append(bytes(message[offset:offset + length]))
        offset += length
    return blocks


def interleave(data_blocks: List[bytes], ec_blocks: List[bytes]) -> bytes:
    """
    Transmission order: codeword i of every data block in turn, skipping
    blocks that have run out, then codeword i of every EC block in turn.
    """
    output = bytearray()
    for blocks in (data_blocks, ec_blocks):
        longest = max((len(block) for block in blocks), default=0)
        for i in range(longest):
            for block in blocks:
                if i < len(block):
                    output.append(block[i])
    return bytes(output)


def build_codewords(message: Sequence[int], params: VersionParameters) -> bytes:
    """Error-code every block of the message and interleave the result."""
    data_blocks = split_blocks(message, params)
    ec_blocks = [reed_solomon(block, params.ec_codewords) for block in data_blocks]
    stream = interleave(data_blocks, ec_blocks)
    assert len(stream) == params.total_codewords
    return stream


# ═══════════════════════════════════════════════════════════════
# RENDERER
# ═══════════════════════════════════════════════════════════════

def _draw(matrix: ModuleMatrix, scale: int, border: int) -> Image.Image:
    if scale < 1:
        raise ValueError(f"Scale must be at least 1 pixel per module, got {scale}")
    if border < 0:
        raise ValueError(f"Border must not be negative, got {border}")

    side = (matrix.size + 2 * border) * scale
    img = Image.new('1', (side, side), 1)
    draw = ImageDraw.Draw(img)
    for r, row in enumerate(matrix.to_rows()):
        for c, dark in enumerate(row):
            if dark:
                x = (c + border) * scale
                y = (r + border) * scale
                draw.rectangle([x, y, x + scale - 1, y + scale - 1], fill=0)
    return img


def render_image(matrix: ModuleMatrix, destination: Union[str, Path],
                 scale: int = DEFAULT_SCALE, border: int = DEFAULT_BORDER,
                 image_format: Optional[str] = None) -> str:
    """
    Write the matrix as an image: dark modules black, light ones white,
    scale x scale pixels per module, border light modules on every side.

    The format follows the destination's extension (.png, .bmp, ...) unless
    image_format is given. Returns the destination path.
    """
    img = _draw(matrix, scale, border)
    try:
        img.save(destination, format=image_format)
    except (OSError, ValueError) as e:
        raise RenderFailure(f"Cannot write {destination}: {e}") from e
    logger.info("Saved %dx%d symbol to %s", matrix.size, matrix.size, destination)
    return str(destination)


def render_png_bytes(matrix: ModuleMatrix, scale: int = DEFAULT_SCALE,
                     border: int = DEFAULT_BORDER) -> bytes:
    """PNG image of the matrix, in memory."""
    buf = io.BytesIO()
    try:
        _draw(matrix, scale, border).save(buf, format='PNG')
    except (OSError, ValueError) as e:
        raise RenderFailure(f"Cannot render PNG: {e}") from e
    return buf.getvalue()


# ═══════════════════════════════════════════════════════════════
# ENCODER
# ═══════════════════════════════════════════════════════════════

class TinyQREncoder:
    """
    TinyQR Encoder.

    Turns text into a finished module matrix for one fixed version.

    Usage:
        encoder = TinyQREncoder(version=6)
        matrix = encoder.encode("HELLO WORLD", output_path="hello.png")
    """

    def __init__(self,
                 version: int = DEFAULT_VERSION,
                 mask: int = DEFAULT_MASK,
                 scale: int = DEFAULT_SCALE,
                 border: int = DEFAULT_BORDER):
        self.params = version_parameters(version)
        mask_predicate(mask)
        self.version = version
        self.mask = mask
        self.scale = scale
        self.border = border

    def encode(self, text: Union[str, bytes],
               output_path: Optional[Union[str, Path]] = None) -> ModuleMatrix:
        """
        Encode text into a module matrix.

        Args:
            text: Message. str is encoded as UTF-8.
            output_path: Also render the matrix to this image file.

        Returns:
            The finished ModuleMatrix.

        Raises:
            CapacityExceeded: text too long for the version.
            AllocationFailure: the matrix could not be allocated.
            RenderFailure: the image could not be written.
        """
        # ── 1. Serialize input ──
        data = self._serialize(text)

        # ── 2. Data codewords ──
        message = format_message(data, self.params)

        # ── 3. Error correction + interleaving ──
        codewords = build_codewords(message, self.params)
        logger.debug("total output size=%d bytes", len(codewords))

        # ── 4. Structural skeleton ──
        matrix = build_matrix(self.params, self.mask)
        logger.debug("symbol size=%d x %d, using mask %d",
                     matrix.size, matrix.size, self.mask)

        # ── 5. Data placement ──
        place_data(matrix, codewords, self.params, self.mask)
        assert matrix.is_complete(), "Unset modules left after data placement"

        # ── 6. Render ──
        if output_path is not None:
            render_image(matrix, output_path, self.scale, self.border)

        return matrix

    def codewords(self, text: Union[str, bytes]) -> bytes:
        """Interleaved codeword stream for text, without building a matrix."""
        message = format_message(self._serialize(text), self.params)
        return build_codewords(message, self.params)

    def _serialize(self, text: Union[str, bytes]) -> bytes:
        if isinstance(text, str):
            return text.encode('utf-8')
        return bytes(text)


# ═══════════════════════════════════════════════════════════════
# CONVENIENCE FUNCTIONS
# ═══════════════════════════════════════════════════════════════

def encode(text: Union[str, bytes], version: int = DEFAULT_VERSION,
           destination: Optional[Union[str, Path]] = None,
           scale: int = DEFAULT_SCALE, border: int = DEFAULT_BORDER) -> ModuleMatrix:
    """Convenience: encode text (and optionally render it) in one call."""
    return TinyQREncoder(version=version, scale=scale, border=border).encode(
        text, output_path=destination)
