"""Move-request channel: ask for a move without blocking the caller.

Two implementations share one interface (``MoveChannel.request_move``):

- WorkerChannel: a daemon thread consumes requests from a queue and runs the
  searcher there.
- DirectChannel: runs the searcher synchronously on the caller's thread.

open_channel() picks one once, falling back to DirectChannel when a worker
thread cannot be started. Both produce exactly one MoveResponse per request,
correlated by id through an explicit table of pending futures. close() cancels
whatever is still pending and empties that table; a response computed after
close() is dropped.

Usage (example):

    with open_channel() as channel:
        future = channel.request_move(board, Side.B, Difficulty.HARD)
        response = future.result(timeout=5)
        if response.ok:
            board = board.place(response.move, Side.B)
"""

import logging
import queue
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, InvalidStateError
from typing import Callable, Dict, Optional

from qubic.config import CONFIG, Config
from qubic.core.board import Board, Side
from qubic.core.search import Difficulty, choose_move
from qubic.interface.messages import MoveRequest, MoveResponse

logger = logging.getLogger(__name__)


def handle_request(request: MoveRequest, config: Optional[Config] = None) -> MoveResponse:
    """Run the searcher for one request; failures become the error payload."""
    try:
        move = choose_move(
            request.board(),
            request.side_to_move,
            request.difficulty,
            rng=request.seed,
            config=config,
        )
    except Exception as e:
        logger.exception("Move request %d failed", request.id)
        return MoveResponse(id=request.id, error=f"{type(e).__name__}: {e}")
    return MoveResponse(id=request.id, move=move)


class MoveChannel(ABC):
    """Request/response bridge to the searcher, correlated by request id."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or CONFIG
        self._lock = threading.Lock()
        self._next_id = 0
        self._pending: Dict[int, Future] = {}
        self._closed = False

    def request_move(
        self,
        board: Board,
        side,
        difficulty,
        seed: Optional[int] = None,
        callback: Optional[Callable[[MoveResponse], None]] = None,
    ) -> "Future[MoveResponse]":
        """
        Submit a move request and return a future for its MoveResponse.

        `callback`, if given, runs with the response on whichever thread
        resolves the future; it is not called when the request is cancelled.
        Malformed input raises pydantic.ValidationError here, before anything
        is queued.
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("Channel is closed")
            self._next_id += 1
            request = MoveRequest.for_board(self._next_id, board, side, difficulty, seed)
            future: "Future[MoveResponse]" = Future()
            self._pending[request.id] = future
        if callback is not None:
            future.add_done_callback(lambda f: None if f.cancelled() else callback(f.result()))
        self._submit(request)
        return future

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def _deliver(self, response: MoveResponse) -> None:
        with self._lock:
            future = self._pending.pop(response.id, None)
        if future is None:
            logger.debug("Dropping response %d: no pending request", response.id)
            return
        try:
            future.set_result(response)
        except InvalidStateError:
            logger.debug("Dropping response %d: request was cancelled", response.id)

    @abstractmethod
    def _submit(self, request: MoveRequest) -> None:
        ...

    def close(self) -> None:
        with self._lock:
            self._closed = True
            pending = list(self._pending.values())
            self._pending.clear()
        for future in pending:
            future.cancel()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class DirectChannel(MoveChannel):
    """Synchronous fallback: the future is already resolved when request_move returns."""

    def _submit(self, request: MoveRequest) -> None:
        self._deliver(handle_request(request, self.config))


class WorkerChannel(MoveChannel):
    """Runs requests on a dedicated daemon thread, one at a time in arrival order."""

    def __init__(self, config: Optional[Config] = None):
        super().__init__(config)
        cfg = self.config.offload
        self._join_timeout = cfg.join_timeout_s
        self._queue: "queue.Queue[Optional[MoveRequest]]" = queue.Queue()
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._run, name=cfg.thread_name, daemon=True)
        self._thread.start()
        logger.debug("Started search worker %s", self._thread.name)

    @property
    def alive(self) -> bool:
        return self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop_event.is_set():
            request = self._queue.get()
            if request is None or self._stop_event.is_set():
                break
            response = handle_request(request, self.config)
            if self._stop_event.is_set():
                logger.debug("Worker torn down during request %d", request.id)
                break
            self._deliver(response)
        logger.debug("Search worker %s stopped", self._thread.name)

    def _submit(self, request: MoveRequest) -> None:
        self._queue.put(request)

    def close(self) -> None:
        self._stop_event.set()
        self._queue.put(None)
        super().close()
        self._thread.join(timeout=self._join_timeout)


def open_channel(config: Optional[Config] = None) -> MoveChannel:
    """Worker-backed channel when possible, synchronous channel otherwise."""
    cfg = config or CONFIG
    if not cfg.offload.use_worker:
        return DirectChannel(cfg)
    try:
        return WorkerChannel(cfg)
    except RuntimeError as e:
        logger.warning("Search worker unavailable, running moves synchronously: %s", e)
        return DirectChannel(cfg)
