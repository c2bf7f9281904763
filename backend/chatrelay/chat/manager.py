"""Broadcast dispatcher for real-time chat rooms.

This module owns all shared relay state (the connection registry and the
rooms with their message histories) and implements the event handling for a
connection's lifecycle: connect, register, message, typing, disconnect.

Key features:
    - History replay to each new connection before it joins live broadcast
    - Optional display-name registration with join/leave notices
    - Defensive normalization of every client payload
    - Typing indicators forwarded to everyone but the typist
    - Multiple rooms with isolated history and membership

Thread Safety:
    Every public method is synchronous and never awaits, so on a single
    asyncio event loop each event is applied atomically. It is NOT safe to
    call these methods from other threads.

Ordering:
    Events are queued on each recipient's FIFO outbox in the order the
    dispatcher handles them, so all members of a room observe the same total
    order of messages and system notices.
"""
import logging
import uuid
from typing import Any, Dict, List, Optional

from ..config import ChatConfig
from .registry import ConnectionRegistry
from .room import Connection, Room
from .sanitizer import is_blank, sanitize_message
from .schemas import ChatMessage

logger = logging.getLogger(__name__)


# =============================================================================
# Shared State
# =============================================================================


class RelayState:
    """All mutable relay state, created once per process.

    Only :class:`ChatRelay` mutates it. Nothing here is persisted; a restart
    starts from an empty state.

    Attributes:
        config: Chat limits and defaults.
        registry: Display names of live connections.
        rooms: room_id -> Room.
        connections: connection_id -> Connection, for every live connection.
    """

    def __init__(self, config: Optional[ChatConfig] = None) -> None:
        self.config = config or ChatConfig()
        self.registry = ConnectionRegistry(self.config.max_name_length)
        self.rooms: Dict[str, Room] = {}
        self.connections: Dict[str, Connection] = {}

    def get_or_create_room(self, room_id: str) -> Room:
        room = self.rooms.get(room_id)
        if room is None:
            room = Room(room_id, self.config.history_capacity)
            self.rooms[room_id] = room
            logger.info(f"[Relay] Created room {room_id}")
        return room


# =============================================================================
# Dispatcher
# =============================================================================


class ChatRelay:
    """Handles connection events and fans results out to room members.

    Registration is optional. Every connection receives live broadcasts from
    the moment it connects; registering only binds the name used for its
    messages (overriding any inline ``user`` field) and announces it.
    """

    def __init__(self, state: RelayState) -> None:
        self.state = state

    @property
    def config(self) -> ChatConfig:
        return self.state.config

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def is_room_full(self, room_id: Optional[str] = None) -> bool:
        """Check whether a room has reached ``max_connections_per_room``."""
        limit = self.config.max_connections_per_room
        if limit <= 0:
            return False
        room = self.state.rooms.get(room_id or self.config.default_room)
        return room is not None and room.online_count >= limit

    def can_join(self, room_id: Optional[str] = None) -> bool:
        """Decide whether a new connection may enter a room.

        Refuses room IDs longer than ``max_room_id_length``, new rooms once
        ``max_rooms`` exist, and rooms at ``max_connections_per_room``.
        """
        room_id = room_id or self.config.default_room
        if len(room_id) > self.config.max_room_id_length:
            return False
        if room_id not in self.state.rooms and len(self.state.rooms) >= self.config.max_rooms:
            return False
        return not self.is_room_full(room_id)

    def connect(self, websocket: Any, room_id: Optional[str] = None) -> Connection:
        """Create a connection, replay history to it, and add it to the room.

        The ``connected`` and ``history`` events are queued for the new
        connection only, before it becomes a room member, so the replayed
        messages are never delivered to it a second time as live events.

        Args:
            websocket: The accepted transport.
            room_id: Room to join (defaults to the configured default room).

        Returns:
            The new Connection. Its writer task must be started by the caller.
        """
        room = self.state.get_or_create_room(room_id or self.config.default_room)
        connection = Connection(
            connection_id=str(uuid.uuid4()),
            websocket=websocket,
            room_id=room.room_id,
            queue_size=self.config.outbound_queue_size,
        )

        history = room.history.snapshot()
        connection.send({
            "type": "connected",
            "connectionId": connection.connection_id,
            "room": room.room_id,
        })
        connection.send({
            "type": "history",
            "room": room.room_id,
            "messages": [msg.model_dump() for msg in history],
        })

        connection.on_failure = self.disconnect
        room.add(connection)
        self.state.connections[connection.connection_id] = connection
        logger.info(
            f"[Relay] {connection.connection_id} connected to {room.room_id} "
            f"(replayed {len(history)} messages, {room.online_count} online)"
        )
        return connection

    def register(self, connection: Connection, display_name: Any = None) -> str:
        """Bind a display name to a connection.

        The first registration is announced as ``"{name} joined"`` to every
        other member of the room. Registering again just renames.

        Args:
            connection: The registering connection.
            display_name: Requested name (untrusted).

        Returns:
            The resolved name actually stored.
        """
        first_time = not connection.registered
        name = self.state.registry.register(connection.connection_id, display_name)
        connection.registered = True

        if first_time and self.config.announce_presence:
            room = self.state.rooms.get(connection.room_id)
            if room is not None:
                room.broadcast(
                    {"type": "system", "text": f"{name} joined"},
                    exclude=connection.connection_id,
                )
        logger.info(f"[Relay] {connection.connection_id} registered as {name!r}")
        return name

    def disconnect(self, connection: Connection) -> None:
        """Remove a connection from its room and the registry.

        Safe to call more than once, and also invoked when the connection's
        writer fails. A registered connection is announced as
        ``"{name} left"`` to the remaining members. A room left with neither
        members nor history is discarded.
        """
        connection.close()
        if self.state.connections.pop(connection.connection_id, None) is None:
            return

        identity = self.state.registry.lookup(connection.connection_id)
        self.state.registry.remove(connection.connection_id)

        room = self.state.rooms.get(connection.room_id)
        if room is None:
            return
        room.remove(connection.connection_id)

        if connection.registered and self.config.announce_presence:
            room.broadcast({"type": "system", "text": f"{identity.displayName} left"})
        logger.info(
            f"[Relay] {connection.connection_id} left {room.room_id} "
            f"({room.online_count} online)"
        )

        if room.online_count == 0 and len(room.history) == 0:
            del self.state.rooms[room.room_id]
            logger.info(f"[Relay] Discarded empty room {room.room_id}")

    # =========================================================================
    # Events
    # =========================================================================

    def submit_message(self, connection: Connection, payload: Any) -> Optional[ChatMessage]:
        """Normalize a client message, store it, and broadcast it to the room.

        The sender receives its own message too, so every client renders the
        same finalized record. Messages with blank text are dropped silently.

        Args:
            connection: The sending connection.
            payload: Raw client payload of any shape.

        Returns:
            The stored ChatMessage, or None if it was dropped.
        """
        room = self.state.rooms.get(connection.room_id)
        if room is None or connection.connection_id not in room:
            logger.debug(f"[Relay] Message from detached connection {connection.connection_id} ignored")
            return None

        cfg = self.config
        message = sanitize_message(
            payload,
            max_name_length=cfg.max_name_length,
            max_text_length=cfg.max_text_length,
            max_id_length=cfg.max_id_length,
        )
        if is_blank(message):
            logger.debug(f"[Relay] Blank message from {connection.connection_id} dropped")
            return None

        if connection.registered:
            name = self.state.registry.lookup(connection.connection_id).displayName
            message = message.model_copy(update={"user": name})

        room.history.append(message)
        delivered = room.broadcast({"type": "message", **message.model_dump()})
        logger.debug(
            f"[Relay] Message {message.id} from {message.user!r} queued for "
            f"{delivered}/{room.online_count} connections in {room.room_id}"
        )
        return message

    def set_typing(self, connection: Connection, is_typing: Any = True) -> int:
        """Forward a typing indicator to everyone else in the room.

        Typing events are never stored or replayed.

        Returns:
            Number of members the indicator was queued for.
        """
        room = self.state.rooms.get(connection.room_id)
        if room is None:
            return 0
        name = self.state.registry.lookup(connection.connection_id).displayName
        return room.broadcast(
            {"type": "typing", "user": name, "isTyping": bool(is_typing)},
            exclude=connection.connection_id,
        )

    # =========================================================================
    # Inspection
    # =========================================================================

    def get_room(self, room_id: str) -> Optional[Room]:
        return self.state.rooms.get(room_id)

    def room_history(self, room_id: str) -> List[ChatMessage]:
        """Get the retained history for a room (empty if the room is unknown)."""
        room = self.state.rooms.get(room_id)
        return room.history.snapshot() if room else []

    def room_info(self, room_id: str) -> dict:
        """Return a summary of a room's occupancy and history."""
        room = self.state.rooms.get(room_id)
        return {
            "room": room_id,
            "onlineCount": room.online_count if room else 0,
            "messageCount": len(room.history) if room else 0,
            "capacity": self.config.history_capacity,
        }
