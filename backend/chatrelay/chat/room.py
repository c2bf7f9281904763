"""Rooms and the per-connection outbound channel.

Every live WebSocket is wrapped in a :class:`Connection` that owns a bounded
FIFO queue. The dispatcher only ever enqueues (never awaits), and a writer
task per connection drains the queue into the socket. A slow or dead client
therefore fills only its own queue and never delays delivery to others.
"""
import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from .history import DEFAULT_HISTORY_CAPACITY, HistoryBuffer

logger = logging.getLogger(__name__)

DEFAULT_ROOM = "general"
DEFAULT_OUTBOUND_QUEUE_SIZE = 256

# "connected" + "history" are queued before the writer starts
GREETING_FRAMES = 2


class Connection:
    """One live client session.

    Attributes:
        connection_id: Backend-generated unique ID.
        websocket: Underlying transport (anything with ``send_json``).
        room_id: Room this connection belongs to.
        registered: Whether the client has registered a display name.
        outbox: Pending outbound events, drained by :meth:`pump`.
        on_failure: Called once with this connection when a socket write fails.
    """

    def __init__(
        self,
        connection_id: str,
        websocket: Any,
        room_id: str = DEFAULT_ROOM,
        queue_size: int = DEFAULT_OUTBOUND_QUEUE_SIZE,
    ) -> None:
        self.connection_id = connection_id
        self.websocket = websocket
        self.room_id = room_id
        self.registered = False
        self.outbox: asyncio.Queue = asyncio.Queue(maxsize=max(queue_size, GREETING_FRAMES))
        self.closed = False
        self.on_failure: Optional[Callable[["Connection"], None]] = None

    def send(self, event: dict) -> bool:
        """Queue an event for delivery without blocking.

        Returns:
            True if queued, False if the connection is closed or backed up.
        """
        if self.closed:
            return False
        try:
            self.outbox.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(
                f"[Relay] Outbound queue full for {self.connection_id}, "
                f"dropping {event.get('type', '?')} event"
            )
            return False
        return True

    async def pump(self) -> None:
        """Write queued events to the socket until it fails or is cancelled."""
        while True:
            event = await self.outbox.get()
            try:
                await self.websocket.send_json(event)
            except Exception as e:
                logger.debug(f"Failed to send to connection {self.connection_id}: {e}")
                self.closed = True
                if self.on_failure is not None:
                    self.on_failure(self)
                return

    def close(self) -> None:
        self.closed = True


class Room:
    """A named broadcast scope with its own message history.

    Membership is a lookup relation only: the dispatcher adds and removes
    connections, and removing a connection never touches its socket.
    """

    def __init__(self, room_id: str, history_capacity: int = DEFAULT_HISTORY_CAPACITY) -> None:
        self.room_id = room_id
        self.history = HistoryBuffer(history_capacity)
        # connection_id -> Connection
        self.members: Dict[str, Connection] = {}

    def add(self, connection: Connection) -> None:
        self.members[connection.connection_id] = connection

    def remove(self, connection_id: str) -> Optional[Connection]:
        return self.members.pop(connection_id, None)

    def broadcast(self, event: dict, exclude: Optional[str] = None) -> int:
        """Queue an event for every member, optionally skipping one.

        Iterates a snapshot of the membership taken at call time. A member
        that cannot accept the event is skipped; the rest still receive it.

        Args:
            event: JSON-serializable event.
            exclude: Connection ID to leave out (e.g. the sender of a typing
                indicator).

        Returns:
            Number of members the event was queued for.
        """
        recipients: List[Connection] = [
            conn for conn_id, conn in list(self.members.items())
            if conn_id != exclude
        ]
        delivered = 0
        for conn in recipients:
            if conn.send(event):
                delivered += 1
        return delivered

    @property
    def online_count(self) -> int:
        return len(self.members)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self.members
