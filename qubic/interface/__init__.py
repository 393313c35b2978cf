"""Boundary to the presentation layer: wire messages and the move-request channel."""

from .messages import MoveRequest, MoveResponse
from .channel import MoveChannel, WorkerChannel, DirectChannel, open_channel
