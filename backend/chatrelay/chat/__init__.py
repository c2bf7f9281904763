"""Real-time chat relay: rooms, history replay and broadcast fan-out."""

from .history import HistoryBuffer
from .manager import ChatRelay, RelayState
from .registry import ConnectionRegistry
from .room import Connection, Room
from .sanitizer import sanitize_message
from .schemas import ChatMessage, ConnectionIdentity

__all__ = [
    "ChatMessage",
    "ChatRelay",
    "Connection",
    "ConnectionIdentity",
    "ConnectionRegistry",
    "HistoryBuffer",
    "RelayState",
    "Room",
    "sanitize_message",
]
