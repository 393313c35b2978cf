"""Wire models for the move-request channel.

Serialised with ``model_dump(by_alias=True)`` the shapes are:

    request  = {"id", "marksA", "marksB", "sideToMove", "difficulty"[, "seed"]}
    response = {"id", "move"} or {"id", "error"}
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from qubic.core.board import FULL_MASK, Board, Side
from qubic.core.search import Difficulty


class MoveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int = Field(ge=0)
    marks_a: int = Field(alias="marksA", ge=0, le=FULL_MASK)
    marks_b: int = Field(alias="marksB", ge=0, le=FULL_MASK)
    side_to_move: Side = Field(alias="sideToMove")
    difficulty: Difficulty
    seed: Optional[int] = None  # only used by Easy's random fallback

    @field_validator("side_to_move", mode="before")
    @classmethod
    def _parse_side(cls, v):
        return Side.parse(v)

    @field_validator("difficulty", mode="before")
    @classmethod
    def _parse_difficulty(cls, v):
        return Difficulty.parse(v)

    @model_validator(mode="after")
    def _disjoint(self):
        if self.marks_a & self.marks_b:
            raise ValueError("marksA and marksB overlap")
        return self

    @classmethod
    def for_board(cls, id: int, board: Board, side, difficulty, seed: Optional[int] = None) -> "MoveRequest":
        return cls(
            id=id,
            marks_a=board.marks_a,
            marks_b=board.marks_b,
            side_to_move=side,
            difficulty=difficulty,
            seed=seed,
        )

    def board(self) -> Board:
        return Board(self.marks_a, self.marks_b)


class MoveResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    move: Optional[int] = None  # None with no error means the board was full
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_wire(self) -> dict:
        """{"id", "move"} on success, {"id", "error"} on failure."""
        if self.error is not None:
            return {"id": self.id, "error": self.error}
        return {"id": self.id, "move": self.move}
