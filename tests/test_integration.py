"""
Integration test suite for the qubic engine.

Tests components working together end-to-end:
- Full game simulations (tier vs tier) refereed by the evaluator
- Move-request channel (worker and direct): correlation, errors, teardown, fallback
- Wire message shapes
- Engine session facade
"""

import random
import threading
from concurrent.futures import CancelledError
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from qubic.config import Config, OffloadConfig, SearchConfig
from qubic.core.board import Board, Side
from qubic.core.evaluator import Status, evaluate
from qubic.core.search import Difficulty, choose_move
from qubic.errors import ContractViolation
from qubic.interface.channel import DirectChannel, WorkerChannel, handle_request, open_channel
from qubic.interface.messages import MoveRequest, MoveResponse
from qubic.main import Engine

FAST = Config(search=SearchConfig(hard_depth=2, hard_width=6))


def play_game(tier_a, tier_b, seed=0, config=FAST, max_moves=64):
    """Plays until the evaluator ends the game; returns (board, outcome, moves)."""
    rng = random.Random(seed)
    board = Board()
    side = Side.A
    tiers = {Side.A: tier_a, Side.B: tier_b}
    moves = []
    outcome = evaluate(board)
    while not outcome.is_over and len(moves) < max_moves:
        move = choose_move(board, side, tiers[side], rng=rng, config=config)
        assert move is not None
        assert board.is_empty(move), f"occupied cell {move} at ply {len(moves)}"
        board = board.place(move, side)
        moves.append(move)
        outcome = evaluate(board)
        side = side.opponent
    return board, outcome, moves


# ════════════════════════════════════════════════════════════════════════════
#  FULL GAME SIMULATIONS
# ════════════════════════════════════════════════════════════════════════════


class TestFullGame:
    """Complete games between tiers terminate with a consistent outcome."""

    def test_easy_vs_easy_outcome_matches_board(self):
        for seed in range(3):
            board, outcome, moves = play_game(Difficulty.EASY, Difficulty.EASY, seed=seed)
            assert outcome.is_over
            if outcome.status is Status.WIN:
                assert board.marks(outcome.winner) & outcome.line == outcome.line
                # the game ended on the winner's own move
                last = moves[-1]
                assert outcome.line >> last & 1
                assert board.owner(last) is outcome.winner
            else:
                assert board.is_full()

    def test_win_is_reported_on_the_completing_move(self):
        board, outcome, moves = play_game(Difficulty.MEDIUM, Difficulty.EASY, seed=4)
        # replay: every earlier position was still ongoing
        replay = Board()
        side = Side.A
        for m in moves[:-1]:
            replay = replay.place(m, side)
            assert evaluate(replay).status is Status.ONGOING
            side = side.opponent
        assert outcome.is_over

    def test_hard_vs_medium_plays_legal_moves(self):
        board, outcome, moves = play_game(Difficulty.HARD, Difficulty.MEDIUM, max_moves=16)
        assert len(moves) == len(set(moves))
        assert board.move_count == len(moves)

    def test_same_seed_same_game(self):
        g1 = play_game(Difficulty.EASY, Difficulty.MEDIUM, seed=9)[2]
        g2 = play_game(Difficulty.EASY, Difficulty.MEDIUM, seed=9)[2]
        assert g1 == g2


# ════════════════════════════════════════════════════════════════════════════
#  WIRE MESSAGES
# ════════════════════════════════════════════════════════════════════════════


class TestMessages:
    def test_request_wire_shape(self):
        board = Board.from_cells(a=[0], b=[63])
        req = MoveRequest.for_board(7, board, Side.B, "hard")
        wire = req.model_dump(by_alias=True)
        assert wire["id"] == 7
        assert wire["marksA"] == 1
        assert wire["marksB"] == 1 << 63
        assert wire["sideToMove"] is Side.B
        assert wire["difficulty"] is Difficulty.HARD
        assert req.board() == board

    def test_request_accepts_aliases(self):
        req = MoveRequest(id=1, marksA=3, marksB=4, sideToMove="A", difficulty="easy")
        assert req.marks_a == 3
        assert req.side_to_move is Side.A

    def test_overlapping_masks_rejected(self):
        with pytest.raises(ValidationError):
            MoveRequest(id=1, marks_a=3, marks_b=2, side_to_move=Side.A, difficulty="easy")

    def test_unknown_difficulty_rejected(self):
        with pytest.raises(ValidationError):
            MoveRequest(id=1, marks_a=0, marks_b=0, side_to_move=Side.A, difficulty="expert")

    def test_mask_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            MoveRequest(id=1, marks_a=1 << 64, marks_b=0, side_to_move=Side.A, difficulty="easy")

    def test_response_wire_shape(self):
        assert MoveResponse(id=3, move=12).to_wire() == {"id": 3, "move": 12}
        err = MoveResponse(id=4, error="boom")
        assert not err.ok
        assert err.to_wire() == {"id": 4, "error": "boom"}


# ════════════════════════════════════════════════════════════════════════════
#  MOVE-REQUEST CHANNEL
# ════════════════════════════════════════════════════════════════════════════


class TestChannel:
    def setup_method(self):
        self.board = Board.from_cells(a=[0, 21, 5], b=[63, 42])

    def test_handle_request_matches_direct_call(self):
        for tier in (Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD):
            req = MoveRequest.for_board(1, self.board, Side.B, tier, seed=5)
            resp = handle_request(req, FAST)
            assert resp.id == 1
            assert resp.move == choose_move(self.board, Side.B, tier, rng=5, config=FAST)

    def test_direct_channel_resolves_immediately(self):
        with DirectChannel(FAST) as channel:
            future = channel.request_move(self.board, Side.B, Difficulty.MEDIUM)
            assert future.done()
            resp = future.result()
            assert resp.id == 1
            assert resp.move == choose_move(self.board, Side.B, Difficulty.MEDIUM)
            assert channel.pending_count() == 0

    def test_worker_channel_correlates_ids(self):
        with WorkerChannel(FAST) as channel:
            futures = [
                channel.request_move(self.board, Side.B, tier, seed=3)
                for tier in (Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD)
            ]
            responses = [f.result(timeout=30) for f in futures]
        assert [r.id for r in responses] == [1, 2, 3]
        for resp, tier in zip(responses, (Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD)):
            assert resp.ok
            assert resp.move == choose_move(self.board, Side.B, tier, rng=3, config=FAST)

    def test_worker_and_direct_agree(self):
        with WorkerChannel(FAST) as worker, DirectChannel(FAST) as direct:
            for tier in (Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD):
                a = worker.request_move(self.board, Side.B, tier, seed=8).result(timeout=30)
                b = direct.request_move(self.board, Side.B, tier, seed=8).result()
                assert a.id == b.id
                assert a.move == b.move

    def test_ids_increase_monotonically(self):
        with DirectChannel(FAST) as channel:
            ids = [channel.request_move(Board(), Side.A, "easy", seed=i).result().id for i in range(5)]
        assert ids == [1, 2, 3, 4, 5]

    def test_callback_receives_response(self):
        got = []
        done = threading.Event()

        def cb(resp):
            got.append(resp)
            done.set()

        with WorkerChannel(FAST) as channel:
            channel.request_move(self.board, Side.B, Difficulty.MEDIUM, callback=cb)
            assert done.wait(timeout=30)
        assert got[0].id == 1
        assert got[0].move is not None

    def test_full_board_gives_no_move(self):
        full = Board(0xFFFFFFFF, 0xFFFFFFFF << 32)
        with DirectChannel(FAST) as channel:
            resp = channel.request_move(full, Side.A, Difficulty.HARD).result()
        assert resp.ok
        assert resp.move is None

    def test_search_failure_becomes_error_payload(self):
        with patch("qubic.interface.channel.choose_move", side_effect=RuntimeError("boom")):
            with WorkerChannel(FAST) as channel:
                resp = channel.request_move(self.board, Side.B, Difficulty.HARD).result(timeout=30)
        assert resp.id == 1
        assert not resp.ok
        assert "boom" in resp.error
        assert resp.move is None

    def test_malformed_request_fails_before_queueing(self):
        with DirectChannel(FAST) as channel:
            with pytest.raises(ValidationError):
                channel.request_move(self.board, Side.B, "impossible")
            assert channel.pending_count() == 0

    def test_close_cancels_outstanding_request(self):
        started = threading.Event()
        release = threading.Event()

        def slow_search(*args, **kwargs):
            started.set()
            release.wait(timeout=30)
            return 0

        with patch("qubic.interface.channel.choose_move", side_effect=slow_search):
            channel = WorkerChannel(FAST)
            future = channel.request_move(self.board, Side.B, Difficulty.HARD)
            assert started.wait(timeout=30)
            assert channel.pending_count() == 1
            channel.close()
            assert channel.pending_count() == 0
            assert future.cancelled()
            with pytest.raises(CancelledError):
                future.result(timeout=1)
            release.set()
            channel._thread.join(timeout=5)
        assert not channel.alive

    def test_request_after_close_rejected(self):
        channel = DirectChannel(FAST)
        channel.close()
        with pytest.raises(RuntimeError):
            channel.request_move(self.board, Side.B, Difficulty.EASY)

    def test_open_channel_prefers_worker(self):
        channel = open_channel(FAST)
        try:
            assert isinstance(channel, WorkerChannel)
            assert channel.alive
        finally:
            channel.close()

    def test_open_channel_respects_config(self):
        cfg = Config(offload=OffloadConfig(use_worker=False))
        channel = open_channel(cfg)
        assert isinstance(channel, DirectChannel)
        channel.close()

    def test_fallback_when_worker_cannot_start(self):
        with patch.object(threading.Thread, "start", side_effect=RuntimeError("can't start new thread")):
            channel = open_channel(FAST)
        assert isinstance(channel, DirectChannel)
        resp = channel.request_move(self.board, Side.B, Difficulty.MEDIUM).result()
        assert resp.move == choose_move(self.board, Side.B, Difficulty.MEDIUM, config=FAST)
        channel.close()


# ════════════════════════════════════════════════════════════════════════════
#  ENGINE SESSION
# ════════════════════════════════════════════════════════════════════════════


class TestEngine:
    def setup_method(self):
        self.engine = Engine(Difficulty.EASY, ai_side=Side.B, channel=DirectChannel(FAST), config=FAST)

    def teardown_method(self):
        self.engine.close()

    def test_initial_state(self):
        assert self.engine.current is Side.A
        assert self.engine.outcome().status is Status.ONGOING
        assert not self.engine.is_ai_turn()

    def test_make_move_alternates(self):
        assert self.engine.make_move(0)
        assert self.engine.current is Side.B
        assert self.engine.board.owner(0) is Side.A
        assert self.engine.is_ai_turn()

    def test_occupied_and_out_of_range_rejected(self):
        self.engine.make_move(0)
        assert not self.engine.make_move(0)
        assert not self.engine.make_move(64)
        assert not self.engine.make_move_xyz(4, 0, 0)
        assert self.engine.current is Side.B

    def test_make_move_xyz(self):
        assert self.engine.make_move_xyz(1, 2, 3)
        assert self.engine.board.owner(57) is Side.A

    def test_concrete_scenario(self):
        for a_move, b_move in ((0, 16), (1, 17)):
            self.engine.make_move(a_move)
            self.engine.make_move(b_move)
        self.engine.make_move(2)
        # automated B must now block at 3
        assert self.engine.play_ai_move() == 3
        assert self.engine.board.owner(3) is Side.B

    def test_engine_wins_when_possible(self):
        for a_move, b_move in ((0, 16), (1, 17), (5, 18)):
            self.engine.make_move(a_move)
            self.engine.make_move(b_move)
        self.engine.make_move(40)
        assert self.engine.play_ai_move() == 19
        out = self.engine.outcome()
        assert out.winner is Side.B
        assert self.engine.winning_cells() == [(0, 0, 1), (1, 0, 1), (2, 0, 1), (3, 0, 1)]
        assert not self.engine.make_move(30)

    def test_request_ai_move_out_of_turn(self):
        with pytest.raises(ContractViolation):
            self.engine.request_ai_move()

    def test_request_ai_move_through_worker(self):
        engine = Engine(Difficulty.HARD, ai_side=Side.B, channel=WorkerChannel(FAST), config=FAST)
        try:
            engine.make_move(21)
            applied = []
            done = threading.Event()

            def cb(move):
                applied.append(move)
                done.set()

            engine.request_ai_move(cb)
            assert done.wait(timeout=30)
            assert applied[0] is not None
            assert engine.board.owner(applied[0]) is Side.B
            assert engine.current is Side.A
        finally:
            engine.close()

    def test_stale_response_is_discarded(self):
        self.engine.make_move(0)
        board = self.engine.board
        # position changes under the request before it is answered
        with patch.object(self.engine.channel, "_submit") as submit:
            self.engine.request_ai_move()
            request = submit.call_args[0][0]
        self.engine.reset()
        self.engine.channel._deliver(handle_request(request, FAST))
        assert self.engine.board == Board()
        assert board != self.engine.board

    def test_input_refused_while_ai_move_pending(self):
        started = threading.Event()
        release = threading.Event()

        def slow_search(*args, **kwargs):
            started.set()
            release.wait(timeout=30)
            return 40

        engine = Engine(Difficulty.EASY, ai_side=Side.B, channel=WorkerChannel(FAST), config=FAST)
        applied = []
        done = threading.Event()

        def cb(move):
            applied.append(move)
            done.set()

        try:
            with patch("qubic.interface.channel.choose_move", side_effect=slow_search):
                engine.make_move(0)
                engine.request_ai_move(cb)
                assert started.wait(timeout=30)
                assert engine.awaiting_ai
                # the caller cannot play for the automated side
                assert not engine.make_move(10)
                assert engine.board.owner(10) is None
                assert engine.current is Side.B
                with pytest.raises(ContractViolation):
                    engine.request_ai_move()
                release.set()
                assert done.wait(timeout=30)
            assert applied == [40]
            assert engine.board.owner(40) is Side.B
            assert engine.current is Side.A
            assert not engine.awaiting_ai
            assert engine.make_move(10)
        finally:
            release.set()
            engine.close()

    def test_response_after_reset_is_discarded_on_identical_board(self):
        engine = Engine(Difficulty.MEDIUM, ai_side=Side.A, channel=DirectChannel(FAST), config=FAST)
        try:
            with patch.object(engine.channel, "_submit") as submit:
                engine.request_ai_move()
                request = submit.call_args[0][0]
            engine.reset()
            # same empty board as when the request was made
            engine.channel._deliver(handle_request(request, FAST))
            assert engine.board == Board()
            assert not engine.awaiting_ai
            assert engine.play_ai_move() == 0
        finally:
            engine.close()

    def test_failed_request_does_not_block_input(self):
        self.engine.make_move(0)
        self.engine.channel.close()
        with pytest.raises(RuntimeError):
            self.engine.request_ai_move()
        assert not self.engine.awaiting_ai
        assert self.engine.make_move(5)

    def test_bad_log_level_rejected(self):
        channel = DirectChannel(FAST)
        try:
            with pytest.raises(ContractViolation):
                Engine(channel=channel, config=Config(log_level="LOUD"))
        finally:
            channel.close()

    def test_reset(self):
        self.engine.make_move(0)
        self.engine.reset()
        assert self.engine.board == Board()
        assert self.engine.current is Side.A

    def test_full_game_against_engine(self):
        rng = random.Random(2)
        while not self.engine.outcome().is_over:
            if self.engine.is_ai_turn():
                assert self.engine.play_ai_move() is not None
            else:
                empties = list(self.engine.board.empty_cells())
                assert self.engine.make_move(rng.choice(empties))
        assert self.engine.outcome().is_over

    def test_print_board(self, capsys):
        self.engine.make_move(0)
        self.engine.print_board()
        out = capsys.readouterr().out
        assert out.startswith("z=0\nX . . .")
