"""
TinyQR Types & Constants — QR Code Model 2, level Q, byte mode
===============================================================

Foundational tables, data structures and error classes for the TinyQR
encoder. This module has ZERO external dependencies beyond the Python
standard library.

Table Authority:
  - GF(256) with primitive polynomial x^8 + x^4 + x^3 + x^2 + 1 (0x11D)
  - Error correction block table, level Q (versions 1-40)
  - Alignment pattern centre coordinates (versions 2-40)
  - Format information strings, level Q (masks 0-7)
  - Version information strings (versions 7-40)

Everything in here is built once at import and never mutated afterwards.
"""

from enum import IntEnum
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Dict, List, Optional, Tuple

# ═══════════════════════════════════════════════════════════════
# ENCODING CONSTANTS
# ═══════════════════════════════════════════════════════════════

# Mode indicator for 8-bit byte data ("0100")
MODE_BYTE = 0b0100

# Pad codewords appended after the terminator, alternating
PAD_CODEWORDS = (0xEC, 0x11)

# Version range of QR Code Model 2
MIN_VERSION = 1
MAX_VERSION = 40

# Defaults used by the encoder, reader and CLI
DEFAULT_VERSION = 6
DEFAULT_MASK = 1
DEFAULT_SCALE = 4
DEFAULT_BORDER = 2


class ECLevel(IntEnum):
    """Error correction levels, valued by their 2-bit format indicator."""
    L = 0b01
    M = 0b00
    Q = 0b11
    H = 0b10


# The only level this engine produces
EC_LEVEL = ECLevel.Q


class Module(IntEnum):
    """State of one cell of the module matrix."""
    LIGHT = 0
    DARK  = 1
    UNSET = 2


# ═══════════════════════════════════════════════════════════════
# GALOIS FIELD GF(256)
# ═══════════════════════════════════════════════════════════════

PRIMITIVE_POLYNOMIAL = 0x11D


def _build_field_tables() -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
    """Powers of alpha (=2) and their discrete logarithms."""
    exp = [0] * 256
    log = [0] * 256
    value = 1
    for power in range(255):
        exp[power] = value
        log[value] = power
        value <<= 1
        if value & 0x100:
            value ^= PRIMITIVE_POLYNOMIAL
    exp[255] = exp[0]
    return tuple(exp), tuple(log)


# EXP: log -> value, LOG: value -> log. LOG[0] is meaningless.
EXP, LOG = _build_field_tables()


def antilog(exponent: int) -> int:
    """alpha ** exponent, exponent taken modulo 255."""
    return EXP[exponent % 255]


def log(value: int) -> int:
    """Discrete logarithm of a non-zero field element."""
    if value == 0:
        raise ValueError("log(0) is undefined in GF(256)")
    return LOG[value]


def gf_multiply(a: int, b: int) -> int:
    if a == 0 or b == 0:
        return 0
    return EXP[(LOG[a] + LOG[b]) % 255]


@lru_cache(maxsize=None)
def generator_polynomial(degree: int) -> Tuple[int, ...]:
    """
    Reed-Solomon generator polynomial (x - a^0)(x - a^1)...(x - a^(degree-1)).

    Returned as the exponents of its coefficients, highest power first,
    with the leading coefficient (always a^0) left out. So degree 7 gives
    (87, 229, 146, 149, 238, 102, 21).
    """
    if degree < 1:
        raise ValueError(f"Generator degree must be positive, got {degree}")
    coefficients = [1]
    for i in range(degree):
        factor = EXP[i]
        product = coefficients + [0]
        for j, coefficient in enumerate(coefficients):
            product[j + 1] ^= gf_multiply(coefficient, factor)
        coefficients = product
    return tuple(LOG[c] for c in coefficients[1:])


# ═══════════════════════════════════════════════════════════════
# VERSION PARAMETERS (level Q)
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class VersionParameters:
    """
    Per-version constants for error correction level Q.

    groups holds one or two (block_count, data_codewords) pairs in the
    order the blocks appear in the message. Every block carries
    ec_codewords error correction codewords.
    """
    number: int
    ec_codewords: int
    groups: Tuple[Tuple[int, int], ...]
    alignment_centers: Tuple[int, ...]
    remainder_bits: int

    @property
    def size(self) -> int:
        """Side length of the symbol in modules."""
        return 4 * self.number + 17

    @property
    def block_count(self) -> int:
        return sum(count for count, _ in self.groups)

    @property
    def block_lengths(self) -> List[int]:
        """Data codeword count of every block, in block order."""
        return [length for count, length in self.groups for _ in range(count)]

    @property
    def data_codewords(self) -> int:
        return sum(count * length for count, length in self.groups)

    @property
    def total_codewords(self) -> int:
        return self.data_codewords + self.block_count * self.ec_codewords

    @property
    def count_bits(self) -> int:
        """Width of the byte-mode character count indicator."""
        return 8 if self.number < 10 else 16

    @property
    def capacity(self) -> int:
        """Longest text, in bytes, that fits this version."""
        # mode (4) + count + terminator (4) fill whole codewords around the payload
        return self.data_codewords - (4 + self.count_bits + 4) // 8

    @property
    def data_bits(self) -> int:
        return self.total_codewords * 8


_ALIGNMENT_CENTERS = {
    1: (),
    2: (6, 18), 3: (6, 22), 4: (6, 26), 5: (6, 30), 6: (6, 34),
    7: (6, 22, 38), 8: (6, 24, 42), 9: (6, 26, 46), 10: (6, 28, 50),
    11: (6, 30, 54), 12: (6, 32, 58), 13: (6, 34, 62),
    14: (6, 26, 46, 66), 15: (6, 26, 48, 70), 16: (6, 26, 50, 74),
    17: (6, 30, 54, 78), 18: (6, 30, 56, 82), 19: (6, 30, 58, 86),
    20: (6, 34, 62, 90),
    21: (6, 28, 50, 72, 94), 22: (6, 26, 50, 74, 98),
    23: (6, 30, 54, 78, 102), 24: (6, 28, 54, 80, 106),
    25: (6, 32, 58, 84, 110), 26: (6, 30, 58, 86, 114),
    27: (6, 34, 62, 90, 118),
    28: (6, 26, 50, 74, 98, 122), 29: (6, 30, 54, 78, 102, 126),
    30: (6, 26, 52, 78, 104, 130), 31: (6, 30, 56, 82, 108, 134),
    32: (6, 34, 60, 86, 112, 138), 33: (6, 30, 58, 86, 114, 142),
    34: (6, 34, 62, 90, 118, 146),
    35: (6, 30, 54, 78, 102, 126, 150), 36: (6, 24, 50, 76, 102, 128, 154),
    37: (6, 28, 54, 80, 106, 132, 158), 38: (6, 32, 58, 84, 110, 136, 162),
    39: (6, 26, 54, 82, 110, 138, 166), 40: (6, 30, 58, 86, 114, 142, 170),
}

# version: (ec codewords per block, group 1 blocks, group 1 data codewords,
#           group 2 blocks, group 2 data codewords)
_EC_BLOCKS_Q = {
    1: (13, 1, 13, 0, 0),    2: (22, 1, 22, 0, 0),
    3: (18, 2, 17, 0, 0),    4: (26, 2, 24, 0, 0),
    5: (18, 2, 15, 2, 16),   6: (24, 4, 19, 0, 0),
    7: (18, 2, 14, 4, 15),   8: (22, 4, 18, 2, 19),
    9: (20, 4, 16, 4, 17),   10: (24, 6, 19, 2, 20),
    11: (28, 4, 22, 4, 23),  12: (26, 4, 20, 6, 21),
    13: (24, 8, 20, 4, 21),  14: (20, 11, 16, 5, 17),
    15: (30, 5, 24, 7, 25),  16: (24, 15, 19, 2, 20),
    17: (28, 1, 22, 15, 23), 18: (28, 17, 22, 1, 23),
    19: (26, 17, 21, 4, 22), 20: (30, 15, 24, 5, 25),
    21: (28, 17, 22, 6, 23), 22: (30, 7, 24, 16, 25),
    23: (30, 11, 24, 14, 25), 24: (30, 11, 24, 16, 25),
    25: (30, 7, 24, 22, 25), 26: (28, 28, 22, 6, 23),
    27: (30, 8, 23, 26, 24), 28: (30, 4, 24, 31, 25),
    29: (30, 1, 23, 37, 24), 30: (30, 15, 24, 25, 25),
    31: (30, 42, 24, 1, 25), 32: (30, 10, 24, 35, 25),
    33: (30, 29, 24, 19, 25), 34: (30, 44, 24, 7, 25),
    35: (30, 39, 24, 14, 25), 36: (30, 46, 24, 10, 25),
    37: (30, 49, 24, 10, 25), 38: (30, 48, 24, 14, 25),
    39: (30, 43, 24, 22, 25), 40: (30, 34, 24, 34, 25),
}


def _remainder_bits(version: int) -> int:
    if version == 1:
        return 0
    if version <= 6:
        return 7
    if version <= 13:
        return 0
    if version <= 20:
        return 3
    if version <= 27:
        return 4
    if version <= 34:
        return 3
    return 0


def _build_version_table() -> Dict[int, VersionParameters]:
    table = {}
    for number, (ec, g1_blocks, g1_data, g2_blocks, g2_data) in _EC_BLOCKS_Q.items():
        groups = ((g1_blocks, g1_data),)
        if g2_blocks:
            groups += ((g2_blocks, g2_data),)
        table[number] = VersionParameters(
            number=number,
            ec_codewords=ec,
            groups=groups,
            alignment_centers=_ALIGNMENT_CENTERS[number],
            remainder_bits=_remainder_bits(number),
        )
    return table


VERSION_TABLE = _build_version_table()


# ═══════════════════════════════════════════════════════════════
# FORMAT & VERSION INFORMATION
# ═══════════════════════════════════════════════════════════════

# 15-bit format strings for level Q, keyed by mask pattern (BCH(15,5), XOR 0x5412)
FORMAT_INFO_Q = {
    0: 0b011010101011111,
    1: 0b011000001101000,
    2: 0b011111100110001,
    3: 0b011101000000110,
    4: 0b010010010110100,
    5: 0b010000110000011,
    6: 0b010111011011010,
    7: 0b010101111101101,
}

# 18-bit version strings (BCH(18,6)), versions 7 and up
VERSION_INFO = {
    7: 0x07C94,  8: 0x085BC,  9: 0x09A99,  10: 0x0A4D3, 11: 0x0BBF6,
    12: 0x0C762, 13: 0x0D847, 14: 0x0E60D, 15: 0x0F928, 16: 0x10B78,
    17: 0x1145D, 18: 0x12A17, 19: 0x13532, 20: 0x149A6, 21: 0x15683,
    22: 0x168C9, 23: 0x177EC, 24: 0x18EC4, 25: 0x191E1, 26: 0x1AFAB,
    27: 0x1B08E, 28: 0x1CC1A, 29: 0x1D33F, 30: 0x1ED75, 31: 0x1F250,
    32: 0x209D5, 33: 0x216F0, 34: 0x228BA, 35: 0x2379F, 36: 0x24B0B,
    37: 0x2542E, 38: 0x26A64, 39: 0x27541, 40: 0x28C69,
}


# ═══════════════════════════════════════════════════════════════
# MASK PATTERNS
# ═══════════════════════════════════════════════════════════════

MaskPredicate = Callable[[int, int], bool]

# (row, column) -> invert this module? Only pattern 1 is implemented;
# FORMAT_INFO_Q already covers all eight.
MASK_PATTERNS: Dict[int, MaskPredicate] = {
    1: lambda row, column: row % 2 == 0,
}


# ═══════════════════════════════════════════════════════════════
# MODULE MATRIX
# ═══════════════════════════════════════════════════════════════

class ModuleMatrix:
    """
    Square grid of modules held in one row-major buffer.

    Every cell starts UNSET. The matrix builder and the data placement
    engine turn each cell LIGHT or DARK exactly once; a cell that has been
    touched counts as reserved for the rest of the placement walk.
    """

    def __init__(self, size: int):
        if size < 1:
            raise ValueError(f"Matrix size must be positive, got {size}")
        self.size = size
        try:
            self._cells = bytearray([Module.UNSET]) * (size * size)
        except MemoryError as e:
            raise AllocationFailure(
                f"Cannot allocate a {size}x{size} module matrix"
            ) from e

    def _index(self, row: int, column: int) -> int:
        if not (0 <= row < self.size and 0 <= column < self.size):
            raise IndexError(f"Module ({row}, {column}) outside {self.size}x{self.size} matrix")
        return row * self.size + column

    def get(self, row: int, column: int) -> Module:
        return Module(self._cells[self._index(row, column)])

    def set(self, row: int, column: int, dark: bool) -> None:
        self._cells[self._index(row, column)] = Module.DARK if dark else Module.LIGHT

    def is_dark(self, row: int, column: int) -> bool:
        return self._cells[self._index(row, column)] == Module.DARK

    def is_reserved(self, row: int, column: int) -> bool:
        """True once the module has been given a value."""
        return self._cells[self._index(row, column)] != Module.UNSET

    def is_complete(self) -> bool:
        return Module.UNSET not in self._cells

    def dark_count(self, top: int = 0, left: int = 0, height: Optional[int] = None,
                   width: Optional[int] = None) -> int:
        """Count dark modules, optionally inside a rectangle."""
        height = self.size - top if height is None else height
        width = self.size - left if width is None else width
        count = 0
        for row in range(top, top + height):
            start = self._index(row, left)
            count += self._cells[start:start + width].count(Module.DARK)
        return count

    def copy(self) -> 'ModuleMatrix':
        clone = ModuleMatrix.__new__(ModuleMatrix)
        clone.size = self.size
        clone._cells = bytearray(self._cells)
        return clone

    def to_rows(self) -> List[List[bool]]:
        """Boolean rows (True = dark), the renderer's input format."""
        return [
            [cell == Module.DARK for cell in self._cells[r * self.size:(r + 1) * self.size]]
            for r in range(self.size)
        ]

    @classmethod
    def from_rows(cls, rows: List[List[bool]]) -> 'ModuleMatrix':
        matrix = cls(len(rows))
        for r, row in enumerate(rows):
            if len(row) != matrix.size:
                raise ValueError(f"Row {r} has {len(row)} modules, expected {matrix.size}")
            for c, dark in enumerate(row):
                matrix.set(r, c, bool(dark))
        return matrix

    def __eq__(self, other):
        if not isinstance(other, ModuleMatrix):
            return NotImplemented
        return self.size == other.size and self._cells == other._cells

    def __repr__(self):
        return f"ModuleMatrix(size={self.size}, dark={self.dark_count()})"


# ═══════════════════════════════════════════════════════════════
# ERROR CLASSES
# ═══════════════════════════════════════════════════════════════

class TinyQRError(Exception):
    """Base error for all TinyQR operations."""
    pass

class CapacityExceeded(TinyQRError):
    """Formatted message does not fit the chosen version."""
    pass

class UnsupportedVersion(TinyQRError):
    """Version number not present in the version table."""
    pass

class UnsupportedMask(TinyQRError):
    """Mask pattern index with no predicate."""
    pass

class AllocationFailure(TinyQRError):
    """Matrix or buffer could not be allocated."""
    pass

class RenderFailure(TinyQRError):
    """The image writer could not persist the symbol."""
    pass

class TinyQRFormatError(TinyQRError):
    """Matrix or image is not a symbol this engine produces."""
    pass


# ═══════════════════════════════════════════════════════════════
# UTILITY FUNCTIONS
# ═══════════════════════════════════════════════════════════════

def _is_index(value) -> bool:
    # bool is an int subclass, and 6.0 hashes like 6
    return isinstance(value, int) and not isinstance(value, bool)


def version_parameters(version: int) -> VersionParameters:
    """Look up the level Q parameters of a version."""
    if not _is_index(version) or version not in VERSION_TABLE:
        raise UnsupportedVersion(
            f"Version {version!r} not supported (expected {MIN_VERSION}-{MAX_VERSION})"
        )
    return VERSION_TABLE[version]


def mask_predicate(mask: int) -> MaskPredicate:
    if not _is_index(mask) or mask not in MASK_PATTERNS:
        raise UnsupportedMask(
            f"Mask pattern {mask!r} not supported (available: {sorted(MASK_PATTERNS)})"
        )
    return MASK_PATTERNS[mask]


def version_for_size(size: int) -> int:
    """Inverse of VersionParameters.size."""
    if size < 21 or (size - 17) % 4:
        raise TinyQRFormatError(f"{size} modules is not a QR symbol size")
    return (size - 17) // 4
