# qubic/config.py
from dataclasses import dataclass, field
from typing import List, Optional
import logging
import os
import tomllib

from qubic.errors import ContractViolation

logger = logging.getLogger(__name__)

# A cell lies on at most this many winning lines (corners and the inner 2x2x2).
MAX_LINES_PER_CELL = 7

# Defaults, indexed by how many of a line's cells one side already holds.
LINE_WEIGHTS = [0, 1, 10, 100]
ATTACK_WEIGHTS = [1, 8, 64, 1_000_000]
BLOCK_WEIGHTS = [0, 4, 48, 50_000]


@dataclass
class SearchConfig:
    hard_depth: int = 4
    hard_width: int = 10  # candidates tried at inner nodes
    root_width: Optional[int] = None  # None means every empty cell at the root
    use_transposition: bool = True


@dataclass
class EvalConfig:
    # positional score of an open line (leaf evaluation for Hard)
    line_weights: List[int] = field(default_factory=lambda: LINE_WEIGHTS.copy())
    # per-cell score for extending own lines / blocking the opponent (Medium, move ordering)
    attack_weights: List[int] = field(default_factory=lambda: ATTACK_WEIGHTS.copy())
    block_weights: List[int] = field(default_factory=lambda: BLOCK_WEIGHTS.copy())


@dataclass
class OffloadConfig:
    use_worker: bool = True  # False forces the synchronous channel
    thread_name: str = "qubic-search"
    join_timeout_s: float = 0.5


@dataclass
class Config:
    search: SearchConfig = field(default_factory=SearchConfig)
    eval: EvalConfig = field(default_factory=EvalConfig)
    offload: OffloadConfig = field(default_factory=OffloadConfig)
    log_level: str = "INFO"

    def validate(self) -> "Config":
        """Reject weight tables that would break win-first / block-second move choice."""
        for name in ("line_weights", "attack_weights", "block_weights"):
            w = getattr(self.eval, name)
            if len(w) != 4:
                raise ContractViolation(f"eval.{name} needs 4 entries, got {len(w)}")
            if any(x < 0 for x in w):
                raise ContractViolation(f"eval.{name} must not be negative: {w}")
            if any(a > b for a, b in zip(w, w[1:])):
                raise ContractViolation(f"eval.{name} must be non-decreasing: {w}")
        attack, block = self.eval.attack_weights, self.eval.block_weights
        if attack[3] <= MAX_LINES_PER_CELL * (block[3] + attack[2]):
            raise ContractViolation("eval.attack_weights[3] must dominate every block")
        if block[3] <= MAX_LINES_PER_CELL * (attack[2] + block[2]):
            raise ContractViolation("eval.block_weights[3] must dominate every build-up")
        if self.search.hard_depth < 1:
            raise ContractViolation("search.hard_depth must be at least 1")
        if self.search.hard_width < 1:
            raise ContractViolation("search.hard_width must be at least 1")
        if not isinstance(logging.getLevelName(str(self.log_level).upper()), int):
            raise ContractViolation(f"Unknown log_level: {self.log_level!r}")
        return self

    @staticmethod
    def load_from_toml(path: str = "qubic.toml") -> "Config":
        cfg = Config()
        if not os.path.exists(path):
            return cfg
        with open(path, "rb") as f:
            raw = tomllib.load(f)
        # unknown keys are ignored
        for section in ("search", "eval", "offload"):
            target = getattr(cfg, section)
            for k, v in raw.get(section, {}).items():
                if hasattr(target, k):
                    setattr(target, k, v)
        if "log_level" in raw:
            cfg.log_level = str(raw["log_level"])
        return cfg.validate()


# single globally importable config instance
CONFIG = Config.load_from_toml(os.environ.get("QUBIC_CONFIG_TOML", "qubic.toml"))
# allow env override of the Hard depth for quick debugging
override_depth = os.environ.get("QUBIC_HARD_DEPTH")
if override_depth:
    try:
        CONFIG.search.hard_depth = max(1, int(override_depth))
    except ValueError:
        logger.warning("Ignoring malformed QUBIC_HARD_DEPTH=%r", override_depth)
