"""
LineTable
=========

The 76 winning lines of the 4x4x4 cube, each a 64-bit mask with four bits set.

The catalog is generated once from coordinate geometry when the module is
imported: every start cell is combined with every step vector in
{-1, 0, 1}^3 (zero vector excluded, and a vector and its reverse counted once),
and the four cells reached with 0..3 steps are kept when all of them lie in the
cube. The result is a tuple, so it is shared read-only by every game and thread.

Breakdown: 48 axis lines, 24 face diagonals, 4 space diagonals.
"""

from itertools import product
from typing import List, Tuple

from qubic.core.board import CELLS, SIZE, index_of

Vector = Tuple[int, int, int]


def _canonical_directions() -> List[Vector]:
    """Step vectors whose first non-zero component is positive (13 of them)."""
    dirs = []
    for v in product((-1, 0, 1), repeat=3):
        nonzero = [c for c in v if c != 0]
        if nonzero and nonzero[0] > 0:
            dirs.append(v)
    return dirs


DIRECTIONS: Tuple[Vector, ...] = tuple(_canonical_directions())


def _generate_lines() -> Tuple[int, ...]:
    masks: List[int] = []
    seen = set()
    for dx, dy, dz in DIRECTIONS:
        for z, y, x in product(range(SIZE), repeat=3):
            cells = [(x + dx * k, y + dy * k, z + dz * k) for k in range(SIZE)]
            if not all(0 <= c < SIZE for cell in cells for c in cell):
                continue
            m = 0
            for cell in cells:
                m |= 1 << index_of(*cell)
            if m not in seen:
                seen.add(m)
                masks.append(m)
    return tuple(masks)


WIN_LINES: Tuple[int, ...] = _generate_lines()

# LINES_THROUGH[i] lists the masks of every line containing cell i (4 or 7 lines).
LINES_THROUGH: Tuple[Tuple[int, ...], ...] = tuple(
    tuple(m for m in WIN_LINES if m >> i & 1) for i in range(CELLS)
)


def all_lines() -> Tuple[int, ...]:
    """The fixed, ordered catalog of all winning line masks."""
    return WIN_LINES


def lines_through(index: int) -> Tuple[int, ...]:
    return LINES_THROUGH[index]
