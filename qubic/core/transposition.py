"""Transposition table for the Hard-tier search.

Positions are keyed by the exact pair of masks (side to move first), so there
are no hash collisions to guard against. Because every ply adds exactly one
mark, a position is always reached at the same ply, which keeps ply-adjusted
win/loss scores valid when they are read back.

A table belongs to a single search: choose_move() builds a fresh one per call,
so no state carries over between moves.

Usage (example):

    tt = TranspositionTable()
    tt.store(mine, theirs, depth=3, value=12, flag=TT_EXACT, best_move=21)
    entry = tt.get(mine, theirs)
    if entry is not None:
        print(entry.depth, entry.value, entry.flag, entry.best_move)
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

TT_EXACT = 0
TT_ALPHA = 1  # upper bound
TT_BETA = 2  # lower bound


@dataclass
class TTEntry:
    depth: int
    value: int
    flag: int
    best_move: Optional[int]

    def __iter__(self):
        return iter((self.depth, self.value, self.flag, self.best_move))


class TranspositionTable:
    """Dict keyed by (mine, theirs) with depth-preferred replacement.

    Methods:
      - get(mine, theirs) -> Optional[TTEntry]
      - store(mine, theirs, depth, value, flag, best_move)
      - clear()
    """

    def __init__(self, max_entries: int = 1_000_000):
        self.max_entries = max_entries
        self._table: Dict[Tuple[int, int], TTEntry] = {}

    def __len__(self) -> int:
        return len(self._table)

    def get(self, mine: int, theirs: int) -> Optional[TTEntry]:
        return self._table.get((mine, theirs))

    def store(self, mine: int, theirs: int, depth: int, value: int, flag: int, best_move: Optional[int]):
        key = (mine, theirs)
        old = self._table.get(key)
        # keep deeper results
        if old is not None and old.depth > depth:
            return
        if old is None and len(self._table) >= self.max_entries:
            return
        self._table[key] = TTEntry(depth, value, flag, best_move)

    def clear(self):
        self._table.clear()
