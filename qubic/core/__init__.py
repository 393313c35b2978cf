"""Core game logic: board, line table, evaluator, search, and transposition table."""

from .board import Board, Side, index_of, coords_of, cells_of
from .lines import all_lines, lines_through
from .evaluator import GameOutcome, Status, HeuristicEvaluator, evaluate, winning_cells
from .search import Difficulty, SearchEngine, choose_move, NO_MOVE
from .transposition import TranspositionTable
