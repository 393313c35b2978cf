"""Game session: a board, whose turn it is, and an automated opponent behind a channel."""

import logging
import threading
from concurrent.futures import Future
from typing import Callable, List, Optional, Tuple

from qubic.config import CONFIG, Config
from qubic.core.board import Board, Side, coords_of, index_of
from qubic.core.evaluator import GameOutcome, evaluate
from qubic.core.search import Difficulty
from qubic.errors import ContractViolation
from qubic.interface.channel import MoveChannel, open_channel
from qubic.interface.messages import MoveResponse

logger = logging.getLogger(__name__)


class Engine:
    def __init__(
        self,
        difficulty=Difficulty.MEDIUM,
        ai_side=Side.B,
        channel: Optional[MoveChannel] = None,
        config: Optional[Config] = None,
    ):
        self.config = (config or CONFIG).validate()
        logging.getLogger("qubic").setLevel(self.config.log_level.upper())
        self.difficulty = Difficulty.parse(difficulty)
        self.ai_side = Side.parse(ai_side)
        self.channel = channel or open_channel(self.config)
        # guards board/current/_awaiting; responses arrive on the worker thread
        self._lock = threading.Lock()
        self._awaiting: Optional[object] = None
        self.board = Board()
        self.current = Side.A

    def reset(self):
        """Empty board, A to move. A response still in flight is discarded."""
        with self._lock:
            self.board = Board()
            self.current = Side.A
            self._awaiting = None

    def outcome(self) -> GameOutcome:
        return evaluate(self.board)

    @property
    def awaiting_ai(self) -> bool:
        """True between request_ai_move() and the arrival of its response."""
        return self._awaiting is not None

    def is_ai_turn(self) -> bool:
        return self.current is self.ai_side and not self.outcome().is_over

    def make_move(self, index: int) -> bool:
        """
        Place the current side's mark.

        Returns False if the move is not playable: occupied or out-of-range
        cell, finished game, or an automated move still pending.
        """
        with self._lock:
            if self._awaiting is not None:
                return False
            return self._apply(index)

    def _apply(self, index: int) -> bool:
        if self.outcome().is_over:
            return False
        try:
            self.board = self.board.place(index, self.current)
        except ContractViolation:
            return False
        self.current = self.current.opponent
        return True

    def make_move_xyz(self, x: int, y: int, z: int) -> bool:
        try:
            index = index_of(x, y, z)
        except ContractViolation:
            return False
        return self.make_move(index)

    def request_ai_move(self, callback: Optional[Callable[[Optional[int]], None]] = None) -> "Future[MoveResponse]":
        """
        Ask the channel for the automated side's move without blocking.

        Until the response arrives make_move() refuses input. The move is
        applied when it arrives unless reset() ran in the meantime; callback
        then receives the index (or None if nothing was applied).
        """
        token = object()
        with self._lock:
            if self._awaiting is not None:
                raise ContractViolation("An automated move is already pending")
            if not self.is_ai_turn():
                raise ContractViolation("Not the automated side's turn")
            self._awaiting = token
            board = self.board

        def on_response(response: MoveResponse):
            applied = None
            with self._lock:
                if self._awaiting is not token:
                    logger.debug("Discarding move %s for a stale position", response.move)
                else:
                    self._awaiting = None
                    if not response.ok:
                        logger.error("Move request %d failed: %s", response.id, response.error)
                    elif response.move is not None and self._apply(response.move):
                        applied = response.move
            if callback is not None:
                callback(applied)

        try:
            return self.channel.request_move(board, self.ai_side, self.difficulty, callback=on_response)
        except Exception:
            with self._lock:
                if self._awaiting is token:
                    self._awaiting = None
            raise

    def play_ai_move(self, timeout: Optional[float] = None) -> Optional[int]:
        """Blocking convenience: request, wait, apply. Returns the cell played."""
        played: List[Optional[int]] = []
        applied = threading.Event()

        def on_applied(move: Optional[int]):
            played.append(move)
            applied.set()

        # result() can return before done-callbacks have run on the worker thread
        self.request_ai_move(on_applied).result(timeout=timeout)
        applied.wait(timeout)
        return played[0] if played else None

    def winning_cells(self) -> List[Tuple[int, int, int]]:
        """(x, y, z) of the completed line, empty while the game is not won."""
        return [coords_of(i) for i in self.outcome().line_cells]

    def print_board(self):
        print(self.board)

    def close(self):
        self.channel.close()
