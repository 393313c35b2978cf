import logging
import random
import time
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Union

from qubic.config import CONFIG, Config
from qubic.core.board import FULL_MASK, Board, Side, cells_of
from qubic.core.evaluator import HeuristicEvaluator, completion_cells
from qubic.core.transposition import TT_ALPHA, TT_BETA, TT_EXACT, TranspositionTable
from qubic.core.utils import log_search_info
from qubic.errors import ContractViolation

logger = logging.getLogger(__name__)

INF = 10_000_000
# Dominates any heuristic score (76 lines * 100 at most).
WIN_SCORE = 1_000_000

NO_MOVE = None

Rng = Union[random.Random, int, None]


class Difficulty(Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @classmethod
    def parse(cls, value) -> "Difficulty":
        """Accept a Difficulty or its name/value ("hard", "HARD"); anything else fails."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            for d in cls:
                if d.value == key:
                    return d
        raise ContractViolation(f"Unknown difficulty: {value!r}")


def _lowest(mask: int) -> int:
    return (mask & -mask).bit_length() - 1


def _make_rng(rng: Rng) -> random.Random:
    if isinstance(rng, random.Random):
        return rng
    return random.Random(rng)


class SearchEngine:
    """
    Negamax with alpha-beta pruning for the Hard tier.

    At every node the side to move first takes an immediate win if one exists,
    is forced onto the single blocking cell when the opponent threatens one
    line, and is scored as lost when the opponent threatens two or more.
    Remaining candidates are ordered by HeuristicEvaluator.cell_score and cut to
    `hard_width` below the root. Win/loss scores are WIN_SCORE minus the ply at
    which the game ends, so quick wins and slow losses are preferred.
    """

    def __init__(self, evaluator: Optional[HeuristicEvaluator] = None, config: Optional[Config] = None):
        cfg = config or CONFIG
        self.evaluator = evaluator or HeuristicEvaluator(cfg.eval)
        self.max_depth = cfg.search.hard_depth
        self.width = cfg.search.hard_width
        self.root_width = cfg.search.root_width
        self.use_tt = cfg.search.use_transposition
        self.tt: Optional[TranspositionTable] = None
        self.nodes = 0

    def search_best_move(self, board: Board, side: Side) -> Tuple[Optional[int], int]:
        """Returns (move, score) for side; move is None on a full board."""
        side = Side.parse(side)
        mine, theirs = board.marks(side), board.marks(side.opponent)
        self.nodes = 0
        self.tt = TranspositionTable() if self.use_tt else None
        start = time.perf_counter()

        empty = FULL_MASK & ~(mine | theirs)
        if not empty:
            return NO_MOVE, 0

        wins = completion_cells(mine, theirs)
        if wins:
            move, score = _lowest(wins), WIN_SCORE - 1
            log_search_info(logger, 0, score, 1, time.perf_counter() - start, move, WIN_SCORE)
            return move, score

        # Exactly one opponent threat leaves a single safe cell.
        threats = completion_cells(theirs, mine)
        if threats and not threats & (threats - 1):
            move = _lowest(threats)
            score = self.evaluator.score(mine | (1 << move), theirs)
            log_search_info(logger, 0, score, 1, time.perf_counter() - start, move, WIN_SCORE)
            return move, score

        best_move, best_score = None, -INF
        # Iterative deepening; each pass seeds the next one's ordering through the TT.
        for d in range(1, self.max_depth + 1):
            best_move, best_score = self._search_root(mine, theirs, empty, d, best_move)
            log_search_info(logger, d, best_score, self.nodes, time.perf_counter() - start, best_move, WIN_SCORE)
            if best_score >= WIN_SCORE - self.max_depth - 2:
                break
        return best_move, best_score

    def _search_root(self, mine: int, theirs: int, empty: int, depth: int, pv_move: Optional[int]) -> Tuple[int, int]:
        alpha, beta = -INF, INF
        best_move, best_score = None, -INF
        for move in self._order_moves(mine, theirs, empty, pv_move, self.root_width):
            score = -self._negamax(theirs, mine | (1 << move), depth - 1, -beta, -alpha, 1)
            if score > best_score:
                best_score, best_move = score, move
            if score > alpha:
                alpha = score
        return best_move, best_score

    def _negamax(self, mine: int, theirs: int, depth: int, alpha: int, beta: int, ply: int) -> int:
        self.nodes += 1

        if completion_cells(mine, theirs):
            return WIN_SCORE - (ply + 1)
        empty = FULL_MASK & ~(mine | theirs)
        if not empty:
            return 0
        threats = completion_cells(theirs, mine)
        if threats & (threats - 1):
            # we can block only one of them
            return -(WIN_SCORE - (ply + 2))

        if depth <= 0:
            return self.evaluator.score(mine, theirs)

        alpha_orig = alpha
        tt_move = None
        if self.tt is not None:
            entry = self.tt.get(mine, theirs)
            if entry is not None:
                if entry.depth >= depth:
                    if entry.flag == TT_EXACT:
                        return entry.value
                    elif entry.flag == TT_ALPHA:
                        beta = min(beta, entry.value)
                    elif entry.flag == TT_BETA:
                        alpha = max(alpha, entry.value)
                    if alpha >= beta:
                        return entry.value
                tt_move = entry.best_move

        if threats:
            moves = [_lowest(threats)]
        else:
            moves = self._order_moves(mine, theirs, empty, tt_move, self.width)

        best_score = -INF
        best_move = None
        for move in moves:
            score = -self._negamax(theirs, mine | (1 << move), depth - 1, -beta, -alpha, ply + 1)
            if score > best_score:
                best_score = score
                best_move = move
            if score > alpha:
                alpha = score
                if alpha >= beta:
                    if self.tt is not None:
                        self.tt.store(mine, theirs, depth, beta, TT_BETA, move)
                    return beta

        if self.tt is not None:
            if best_score <= alpha_orig:
                flag = TT_ALPHA
            elif best_score >= beta:
                flag = TT_BETA
            else:
                flag = TT_EXACT
            self.tt.store(mine, theirs, depth, best_score, flag, best_move)
        return best_score

    def _order_moves(self, mine: int, theirs: int, empty: int, tt_move: Optional[int], limit: Optional[int]) -> List[int]:
        """Empty cells by descending cell_score (ties: lowest index), tt_move first."""
        scored = [(-self.evaluator.cell_score(mine, theirs, i), i) for i in cells_of(empty)]
        scored.sort()
        moves = [i for _, i in scored]
        if tt_move is not None and empty >> tt_move & 1:
            moves.remove(tt_move)
            moves.insert(0, tt_move)
        if limit is not None:
            moves = moves[:limit]
        return moves


# ---- tier strategies ---------------------------------------------------------

def easy_move(board: Board, side: Side, rng: Rng = None, config: Optional[Config] = None) -> int:
    """Win if possible, else block, else a uniformly random empty cell."""
    mine, theirs = board.marks(side), board.marks(side.opponent)
    wins = completion_cells(mine, theirs)
    if wins:
        return _lowest(wins)
    blocks = completion_cells(theirs, mine)
    if blocks:
        return _lowest(blocks)
    return _make_rng(rng).choice(cells_of(board.empty_mask))


def medium_move(board: Board, side: Side, rng: Rng = None, config: Optional[Config] = None) -> int:
    """Highest cell_score, ties broken by lowest index. No lookahead."""
    ev = HeuristicEvaluator((config or CONFIG).eval)
    mine, theirs = board.marks(side), board.marks(side.opponent)
    best, best_score = None, None
    for i in cells_of(board.empty_mask):
        s = ev.cell_score(mine, theirs, i)
        if best_score is None or s > best_score:
            best, best_score = i, s
    return best


def hard_move(board: Board, side: Side, rng: Rng = None, config: Optional[Config] = None) -> int:
    move, _ = SearchEngine(config=config).search_best_move(board, side)
    return move


STRATEGIES: Dict[Difficulty, Callable[..., int]] = {
    Difficulty.EASY: easy_move,
    Difficulty.MEDIUM: medium_move,
    Difficulty.HARD: hard_move,
}


def choose_move(board: Board, side, difficulty, rng: Rng = None, config: Optional[Config] = None) -> Optional[int]:
    """
    Pick the next move for `side`.

    Args:
        board: Position to move from; never modified.
        side: Side to move (Side, 1/2, or "A"/"B").
        difficulty: Difficulty or its name.
        rng: random.Random or int seed for Easy's random fallback.
        config: Overrides the global CONFIG.

    Returns:
        An empty cell index, or NO_MOVE (None) when the board is full.

    Raises:
        ContractViolation: unknown difficulty or side.
    """
    difficulty = Difficulty.parse(difficulty)
    side = Side.parse(side)
    if board.is_full():
        return NO_MOVE
    return STRATEGIES[difficulty](board, side, rng=rng, config=config)
