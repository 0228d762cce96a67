"""
TinyQR Matrix — structural patterns and data placement
=======================================================

Builds the module matrix of a symbol:
  - Finder patterns with separators (three corners)
  - Alignment patterns (versions 2+)
  - Timing patterns (row 6, column 6)
  - Format information (both copies) and the dark module
  - Version information (versions 7+)
  - Data placement along the two-column zigzag, with masking

Structural modules are written first. Every module they touch is reserved,
so the placement walk only ever lands on data modules.
"""

import logging
from typing import Iterator, Tuple

from tinyqr_types import (
    FORMAT_INFO_Q, VERSION_INFO,
    ModuleMatrix, VersionParameters,
    UnsupportedMask, mask_predicate,
)

logger = logging.getLogger(__name__)

# Rows of the 7x7 finder pattern and the 5x5 alignment pattern
FINDER_PATTERN = (
    "1111111",
    "1000001",
    "1011101",
    "1011101",
    "1011101",
    "1000001",
    "1111111",
)

ALIGNMENT_PATTERN = (
    "11111",
    "10001",
    "10101",
    "10001",
    "11111",
)


# ═══════════════════════════════════════════════════════════════
# MATRIX BUILDER
# ═══════════════════════════════════════════════════════════════

def build_matrix(params: VersionParameters, mask: int) -> ModuleMatrix:
    """
    Allocate a matrix for the version and stamp every structural pattern.

    Order matters: alignment patterns are only placed where their centre is
    still unset, which is what keeps them off the finder patterns.
    """
    if mask not in FORMAT_INFO_Q:
        raise UnsupportedMask(f"No format information for mask pattern {mask!r}")

    matrix = ModuleMatrix(params.size)
    size = params.size

    # ── 1. Finder patterns + separators ──
    for top, left in ((0, 0), (0, size - 7), (size - 7, 0)):
        place_finder_pattern(matrix, top, left)

    # ── 2. Alignment patterns ──
    place_alignment_patterns(matrix, params.alignment_centers)

    # ── 3. Timing patterns ──
    place_timing_patterns(matrix)

    # ── 4. Format information + dark module ──
    place_format_information(matrix, FORMAT_INFO_Q[mask])
    matrix.set(size - 8, 8, True)

    # ── 5. Version information ──
    if params.number >= 7:
        place_version_information(matrix, VERSION_INFO[params.number])

    return matrix


def place_finder_pattern(matrix: ModuleMatrix, top: int, left: int) -> None:
    """7x7 finder pattern at (top, left) with its one-module light border."""
    for r in range(-1, 8):
        for c in range(-1, 8):
            row, column = top + r, left + c
            if not (0 <= row < matrix.size and 0 <= column < matrix.size):
                continue
            dark = 0 <= r < 7 and 0 <= c < 7 and FINDER_PATTERN[r][c] == "1"
            matrix.set(row, column, dark)


def place_alignment_patterns(matrix: ModuleMatrix, centers: Tuple[int, ...]) -> None:
    """5x5 alignment pattern at every pair of centre coordinates."""
    for row in centers:
        for column in centers:
            # overlaps a finder pattern
            if matrix.is_reserved(row, column):
                continue
            for r in range(5):
                for c in range(5):
                    matrix.set(row - 2 + r, column - 2 + c, ALIGNMENT_PATTERN[r][c] == "1")


def place_timing_patterns(matrix: ModuleMatrix) -> None:
    """Alternating modules on row 6 and column 6, between the separators."""
    for i in range(8, matrix.size - 8):
        if not matrix.is_reserved(6, i):
            matrix.set(6, i, i % 2 == 0)
        if not matrix.is_reserved(i, 6):
            matrix.set(i, 6, i % 2 == 0)


def place_format_information(matrix: ModuleMatrix, format_bits: int) -> None:
    """
    Write the 15-bit format string twice, least significant bit first.

    Bits 0-7 run right to left along row 8 under the top-right finder and
    down column 8 beside the top-left finder (jumping the timing row).
    Bits 8-14 run down column 8 beside the bottom-left finder and right to
    left along row 8 beside the top-left finder (jumping the timing column).
    """
    size = matrix.size
    bits = format_bits

    skip = 0
    for i in range(8):
        if i == 6:
            skip = 1
        dark = bool(bits & 1)
        matrix.set(8, size - i - 1, dark)
        matrix.set(i + skip, 8, dark)
        bits >>= 1

    skip = 0
    for i in range(7):
        if i == 1:
            skip = -1
        dark = bool(bits & 1)
        matrix.set(size - 7 + i, 8, dark)
        matrix.set(8, 7 - i + skip, dark)
        bits >>= 1


def place_version_information(matrix: ModuleMatrix, version_bits: int) -> None:
    """18-bit version string in the two 6x3 blocks beside the finders."""
    size = matrix.size
    for i in range(18):
        dark = bool((version_bits >> i) & 1)
        a, b = size - 11 + i % 3, i // 3
        matrix.set(b, a, dark)   # above the bottom-left corner of the top-right finder
        matrix.set(a, b, dark)   # beside the top-right corner of the bottom-left finder


# ═══════════════════════════════════════════════════════════════
# DATA PLACEMENT
# ═══════════════════════════════════════════════════════════════

def placement_path(matrix: ModuleMatrix) -> Iterator[Tuple[int, int]]:
    """
    Yield (row, column) of every data module, in placement order.

    The walk starts in the bottom-right corner and runs up and down in
    two-column strips, right column first on each row. Column 6 (vertical
    timing) is never part of a strip and row 6 (horizontal timing) is
    stepped over. The strip turns at fixed boundaries: row 8 under the
    top-left and top-right finders, the top and bottom edges, the bottom
    row beside the dark module and the bottom-left finder zone.

    Reserved modules inside a strip (alignment patterns, version
    information) are passed over a row at a time. When both columns of a
    row are reserved the walk jumps the block; when only the right one is,
    it side-steps down the free left column until it clears the block.

    The walk reads the matrix lazily, so modules written by the caller
    between steps count as reserved from then on.
    """
    size = matrix.size
    row = column = size - 1
    step = -1

    while column > 0:
        if not matrix.is_reserved(row, column):
            yield row, column
        if not matrix.is_reserved(row, column - 1):
            yield row, column - 1

        row += step

        if (column < 9 and row == 8) or (column > size - 8 and row == 8) or row < 0:
            # top-left or top-right finder, or the top edge
            step = 1
            row += 1
            column -= 2
        elif column == 10 and row == size:
            # bottom edge beside the dark module
            step = -1
            row = size - 9
            column -= 2
        elif row == size:
            # bottom edge
            step = -1
            row = size - 1
            column -= 2
        elif column < 10 and row > size - 9:
            # bottom-left finder
            step = -1
            row = size - 9
            column -= 2

        if row == 6:
            row += step
        elif column == 6:
            column -= 1


def place_data(matrix: ModuleMatrix, codewords: bytes,
               params: VersionParameters, mask: int) -> int:
    """
    Thread the codeword stream through the matrix and apply the mask.

    Bits are taken most significant first. Once the stream is exhausted the
    remaining modules are remainder bits and start light. Every visited
    module is passed through the mask predicate exactly once.

    Returns the number of modules placed.
    """
    assert len(codewords) == params.total_codewords, \
        f"Version {params.number} carries {params.total_codewords} codewords, got {len(codewords)}"

    predicate = mask_predicate(mask)
    data_bits = len(codewords) * 8
    budget = data_bits + params.remainder_bits

    logger.debug("primary bits=%d remainder bits=%d", data_bits, params.remainder_bits)

    placed = 0
    for row, column in placement_path(matrix):
        assert placed < budget, \
            f"Placement path runs past the {budget} modules of version {params.number}"
        dark = False
        if placed < data_bits:
            dark = bool((codewords[placed >> 3] >> (7 - (placed & 7))) & 1)
        if predicate(row, column):
            dark = not dark
        matrix.set(row, column, dark)
        placed += 1

    assert placed == budget, \
        f"Placement path ended after {placed} modules, version {params.number} needs {budget}"
    return placed
