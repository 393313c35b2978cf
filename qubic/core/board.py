"""Bitboard state for the 4x4x4 cube: cell addressing and an immutable pair of masks."""

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Iterator, List, Optional, Tuple

from qubic.errors import ContractViolation

SIZE = 4
CELLS = SIZE ** 3
FULL_MASK = (1 << CELLS) - 1


class Side(IntEnum):
    A = 1
    B = 2

    @property
    def opponent(self) -> "Side":
        return Side.B if self is Side.A else Side.A

    @property
    def symbol(self) -> str:
        return "X" if self is Side.A else "O"

    @classmethod
    def parse(cls, value) -> "Side":
        """Accept a Side, its int value (1/2) or its name ("A"/"B")."""
        if isinstance(value, cls):
            return value
        try:
            if isinstance(value, str):
                return cls[value.upper()]
            return cls(value)
        except (KeyError, ValueError) as e:
            raise ContractViolation(f"Unknown side: {value!r}") from e


def index_of(x: int, y: int, z: int) -> int:
    """Cell index for coordinates, index = x + 4y + 16z."""
    for c in (x, y, z):
        if not 0 <= c < SIZE:
            raise ContractViolation(f"Coordinate out of range: {(x, y, z)}")
    return x + SIZE * y + SIZE * SIZE * z


def coords_of(index: int) -> Tuple[int, int, int]:
    """Inverse of index_of: returns (x, y, z)."""
    _check_index(index)
    return index % SIZE, (index % (SIZE * SIZE)) // SIZE, index // (SIZE * SIZE)


def bit(index: int) -> int:
    _check_index(index)
    return 1 << index


def cells_of(mask: int) -> List[int]:
    """Indices of the set bits in mask, ascending."""
    out = []
    while mask:
        low = mask & -mask
        out.append(low.bit_length() - 1)
        mask ^= low
    return out


def _check_index(index: int) -> None:
    if not isinstance(index, int) or not 0 <= index < CELLS:
        raise ContractViolation(f"Cell index out of range: {index!r}")


@dataclass(frozen=True)
class Board:
    """Two disjoint occupancy masks, one per side.

    Boards are never mutated in place; place() returns a new Board.
    """

    marks_a: int = 0
    marks_b: int = 0

    def __post_init__(self):
        for name in ("marks_a", "marks_b"):
            mask = getattr(self, name)
            if not isinstance(mask, int) or mask < 0 or mask > FULL_MASK:
                raise ContractViolation(f"{name} is not a 64-bit mask: {mask!r}")
        if self.marks_a & self.marks_b:
            raise ContractViolation(
                f"Masks overlap on cells {cells_of(self.marks_a & self.marks_b)}"
            )

    @classmethod
    def from_cells(cls, a: Iterable[int] = (), b: Iterable[int] = ()) -> "Board":
        """Build a board from lists of cell indices for each side."""
        ma = 0
        for i in a:
            ma |= bit(i)
        mb = 0
        for i in b:
            mb |= bit(i)
        return cls(ma, mb)

    @property
    def occupied(self) -> int:
        return self.marks_a | self.marks_b

    @property
    def empty_mask(self) -> int:
        return FULL_MASK & ~self.occupied

    @property
    def move_count(self) -> int:
        return self.occupied.bit_count()

    def is_full(self) -> bool:
        return self.occupied == FULL_MASK

    def is_empty(self, index: int) -> bool:
        return not self.occupied & bit(index)

    def marks(self, side: Side) -> int:
        """Mask of the cells held by side."""
        return self.marks_a if Side.parse(side) is Side.A else self.marks_b

    def owner(self, index: int) -> Optional[Side]:
        b = bit(index)
        if self.marks_a & b:
            return Side.A
        if self.marks_b & b:
            return Side.B
        return None

    def empty_cells(self) -> Iterator[int]:
        """Empty cell indices in ascending order."""
        return iter(cells_of(self.empty_mask))

    def place(self, index: int, side: Side) -> "Board":
        """Return a new board with side's mark on index."""
        b = bit(index)
        if self.occupied & b:
            raise ContractViolation(f"Cell {index} is already occupied")
        if Side.parse(side) is Side.A:
            return Board(self.marks_a | b, self.marks_b)
        return Board(self.marks_a, self.marks_b | b)

    def __str__(self) -> str:
        layers = []
        for z in range(SIZE):
            rows = [f"z={z}"]
            for y in range(SIZE):
                row = []
                for x in range(SIZE):
                    owner = self.owner(index_of(x, y, z))
                    row.append(owner.symbol if owner else ".")
                rows.append(" ".join(row))
            layers.append("\n".join(rows))
        return "\n\n".join(layers)
