"""WebSocket endpoints for the chat relay.

This module provides:
    - WebSocket /ws/chat: Real-time chat in the default room
    - WebSocket /ws/chat/{room_id}: Real-time chat in a named room

The WebSocket protocol supports:
    - Message history delivery on connect
    - Optional display-name registration with an acknowledgement
    - Real-time message broadcasting (sender included)
    - Join/leave notices
    - Typing indicators

Protocol Message Types (client → server):
    - register / join: Display-name registration
    - message: Chat message (the default when ``type`` is omitted)
    - typing: Typing indicator (start/stop)
"""
import asyncio
import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from .manager import ChatRelay
from .room import Connection

logger = logging.getLogger(__name__)

router = APIRouter()

# Policy Violation close code, used when a connection is refused
ROOM_FULL_CLOSE_CODE = 1008

_NOT_JSON = object()


def get_relay(websocket: WebSocket) -> ChatRelay:
    """Return the dispatcher attached to the application."""
    return websocket.app.state.relay


async def _receive_event(websocket: WebSocket) -> Any:
    """Receive one frame and decode it as JSON.

    Returns:
        The decoded value, or ``_NOT_JSON`` for frames that are not valid
        JSON text.

    Raises:
        WebSocketDisconnect: When the client has gone away.
    """
    frame = await websocket.receive()
    if frame["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(frame.get("code", 1000))

    raw = frame.get("text")
    if raw is None and frame.get("bytes") is not None:
        raw = frame["bytes"].decode("utf-8", errors="replace")
    if raw is None:
        return _NOT_JSON
    try:
        return json.loads(raw)
    except ValueError:
        return _NOT_JSON


def _handle_event(relay: ChatRelay, connection: Connection, data: Any) -> None:
    """Apply one decoded client event to the relay."""
    message_type = data.get("type", "message") if isinstance(data, dict) else "message"

    # --- Handle REGISTER message (display-name binding) ---
    if message_type in ("register", "join"):
        requested = data.get("name") or data.get("displayName")
        name = relay.register(connection, requested)
        connection.send({
            "type": "ack",
            "event": "register",
            "ok": True,
            "name": name,
            "requestId": data.get("requestId"),
        })
        return

    # --- Handle TYPING indicator message ---
    if message_type == "typing":
        relay.set_typing(connection, data.get("isTyping", True))
        return

    # --- Handle regular CHAT message ---
    if message_type == "message":
        relay.submit_message(connection, data)
        return

    logger.debug(f"[WS] Ignoring unknown event type {message_type!r} from {connection.connection_id}")


async def _serve(websocket: WebSocket, room_id: Optional[str]) -> None:
    relay = get_relay(websocket)

    # Rejected before accept, so the handshake itself fails with 1008
    if not relay.can_join(room_id):
        logger.warning(
            f"[WS] Room {room_id or relay.config.default_room!r} is full or over a limit. "
            f"Rejecting new connection."
        )
        await websocket.close(code=ROOM_FULL_CLOSE_CODE)
        return

    await websocket.accept()

    connection = relay.connect(websocket, room_id)
    writer = asyncio.create_task(connection.pump())

    try:
        # Main message loop
        while True:
            data = await _receive_event(websocket)
            if data is _NOT_JSON:
                logger.debug(f"[WS] Dropping non-JSON frame from {connection.connection_id}")
                continue
            _handle_event(relay, connection, data)

    except WebSocketDisconnect:
        logger.info(f"[WS] Client {connection.connection_id} disconnected")
    except Exception as e:
        logger.error(f"[WS] Error on connection {connection.connection_id}: {e}", exc_info=True)
    finally:
        relay.disconnect(connection)
        writer.cancel()


@router.websocket("/ws/chat")
async def websocket_default_room(websocket: WebSocket) -> None:
    """WebSocket endpoint for the default room.

    Protocol Flow:
        1. Client connects
           → Server sends: {type: "connected", connectionId, room}
           → Server sends: {type: "history", room, messages: [...]}
        2. Client sends (optional): {type: "register", name, requestId?}
           → Server sends: {type: "ack", event: "register", ok, name, requestId}
           → Others receive: {type: "system", text: "<name> joined"}
        3. Client sends: {type: "message", text, user?, id?, ts?, uid?}
           → Everyone (sender included) receives: {type: "message", ...message}
        4. Client sends: {type: "typing", isTyping}
           → Others receive: {type: "typing", user, isTyping}
        5. On disconnect of a registered client
           → Others receive: {type: "system", text: "<name> left"}
    """
    await _serve(websocket, None)


@router.websocket("/ws/chat/{room_id}")
async def websocket_room(websocket: WebSocket, room_id: str) -> None:
    """WebSocket endpoint for a named room (same protocol as ``/ws/chat``)."""
    await _serve(websocket, room_id)
