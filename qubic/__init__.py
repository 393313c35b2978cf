"""4x4x4 tic-tac-toe engine: bitboard core, tiered move search, and an offload channel."""

__version__ = "0.1.0"
