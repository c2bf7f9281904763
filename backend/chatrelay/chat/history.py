"""Bounded in-memory message history.

Each room keeps the most recent messages so that newly connected clients can
be brought up to date. Nothing is persisted; history is lost on restart.
"""
from collections import deque
from typing import Deque, List

from .schemas import ChatMessage

DEFAULT_HISTORY_CAPACITY = 200


class HistoryBuffer:
    """Ordered, capacity-trimmed sequence of recent messages (oldest first).

    Attributes:
        capacity: Maximum number of messages retained.
    """

    def __init__(self, capacity: int = DEFAULT_HISTORY_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"History capacity must be positive, got {capacity}")
        self._messages: Deque[ChatMessage] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._messages.maxlen

    def append(self, message: ChatMessage) -> ChatMessage:
        """Append a message, dropping the oldest ones beyond capacity.

        Returns:
            The same message (for chaining).
        """
        self._messages.append(message)
        return message

    def snapshot(self) -> List[ChatMessage]:
        """Return a copy of the retained messages in insertion order."""
        return list(self._messages)

    def clear(self) -> None:
        self._messages.clear()

    def __len__(self) -> int:
        return len(self._messages)
