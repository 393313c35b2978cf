"""
Evaluator Module
================

Two jobs, both pure functions of a Board:

    - evaluate(): the referee. Ongoing / Draw / Win, plus the winning line mask.
    - HeuristicEvaluator: line-occupancy scoring used by the Medium tier and by
      the Hard tier's leaf evaluation and move ordering.

Every test is a mask operation against the precomputed line catalog.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from qubic.config import CONFIG, EvalConfig
from qubic.core.board import Board, Side, cells_of
from qubic.core.lines import WIN_LINES, lines_through


class Status(Enum):
    ONGOING = "ongoing"
    DRAW = "draw"
    WIN = "win"


@dataclass(frozen=True)
class GameOutcome:
    status: Status
    winner: Optional[Side] = None
    line: int = 0  # winning line mask, 0 unless status is WIN

    @property
    def is_over(self) -> bool:
        return self.status is not Status.ONGOING

    @property
    def line_cells(self) -> List[int]:
        return cells_of(self.line)


ONGOING = GameOutcome(Status.ONGOING)
DRAW = GameOutcome(Status.DRAW)


def evaluate(board: Board) -> GameOutcome:
    """
    Referee a position.

    Lines are tested in catalog order, so when several lines are complete the
    one with the lowest catalog index is reported.

    Args:
        board (Board): Any position with disjoint masks.

    Returns:
        GameOutcome: WIN carries the side and the line mask; DRAW only when
                     the board is full with no complete line.
    """
    a, b = board.marks_a, board.marks_b
    for m in WIN_LINES:
        if a & m == m:
            return GameOutcome(Status.WIN, Side.A, m)
        if b & m == m:
            return GameOutcome(Status.WIN, Side.B, m)
    if board.is_full():
        return DRAW
    return ONGOING


def completion_cells(mine: int, theirs: int) -> int:
    """Mask of empty cells that would complete a line for the holder of `mine`."""
    out = 0
    for m in WIN_LINES:
        if theirs & m:
            continue
        rest = m & ~mine
        if rest and not rest & (rest - 1):
            out |= rest
    return out


def winning_cells(board: Board, side: Side) -> int:
    """Empty cells where side would complete a line with its next mark."""
    side = Side.parse(side)
    return completion_cells(board.marks(side), board.marks(side.opponent))


class HeuristicEvaluator:
    """
    Static line-occupancy scoring.

    A line holding marks of both sides is dead and scores nothing. An open line
    is worth more the more of its cells one side already holds; the weight
    tables come from EvalConfig and are indexed by that count.
    """

    def __init__(self, cfg: Optional[EvalConfig] = None) -> None:
        self.cfg = cfg or CONFIG.eval
        self.line_weights = list(self.cfg.line_weights)
        self.attack_weights = list(self.cfg.attack_weights)
        self.block_weights = list(self.cfg.block_weights)

    def score(self, mine: int, theirs: int) -> int:
        """
        Positional score of a whole board for the holder of `mine`.

        Returns:
            int: Sum of line_weights over lines open for `mine`, minus the same
                 over lines open for `theirs`. Symmetric: score(a, b) == -score(b, a).
        """
        w = self.line_weights
        total = 0
        # a finished line (4 marks) is weighted like 3; the referee handles wins
        for m in WIN_LINES:
            own = mine & m
            opp = theirs & m
            if own and not opp:
                total += w[min(own.bit_count(), 3)]
            elif opp and not own:
                total -= w[min(opp.bit_count(), 3)]
        return total

    def score_board(self, board: Board, side: Side) -> int:
        side = Side.parse(side)
        return self.score(board.marks(side), board.marks(side.opponent))

    def cell_score(self, mine: int, theirs: int, index: int) -> int:
        """
        Value of placing a mark on an empty cell.

        Each line through the cell adds attack_weights[own count] when the
        opponent is absent from it (building toward a win) or
        block_weights[opponent count] when we are absent (denying theirs).
        With the default weights a completing move always outranks a
        blocking move, which always outranks anything else.
        """
        attack, block = self.attack_weights, self.block_weights
        total = 0
        for m in lines_through(index):
            own = mine & m
            opp = theirs & m
            if not opp:
                total += attack[own.bit_count()]
            elif not own:
                total += block[opp.bit_count()]
        return total
