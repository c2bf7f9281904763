"""Room inspection REST API router.

Endpoints:
    GET /rooms/{room_id}          - Room occupancy and history size
    GET /rooms/{room_id}/history  - Retained message history
"""
import logging
from typing import List

from fastapi import APIRouter, Request
from pydantic import BaseModel

from .manager import ChatRelay
from .schemas import ChatMessage

logger = logging.getLogger(__name__)

router = APIRouter(tags=["rooms"])


class RoomInfoResponse(BaseModel):
    """Response model for room info."""
    room: str
    onlineCount: int = 0
    messageCount: int = 0
    capacity: int = 0


class RoomHistoryResponse(BaseModel):
    """Response model for room history."""
    room: str
    messages: List[ChatMessage] = []


def _relay(request: Request) -> ChatRelay:
    return request.app.state.relay


@router.get("/rooms/{room_id}", response_model=RoomInfoResponse)
async def get_room_info(room_id: str, request: Request) -> RoomInfoResponse:
    """Get occupancy and history size for a room.

    Unknown rooms report zero connections and an empty history.
    """
    return RoomInfoResponse(**_relay(request).room_info(room_id))


@router.get("/rooms/{room_id}/history", response_model=RoomHistoryResponse)
async def get_room_history(room_id: str, request: Request) -> RoomHistoryResponse:
    """Get the retained messages for a room, oldest first.

    Args:
        room_id: The room ID.

    Returns:
        RoomHistoryResponse with a snapshot of the room's history.
    """
    messages = _relay(request).room_history(room_id)
    logger.debug(f"History requested for room {room_id}: {len(messages)} messages")
    return RoomHistoryResponse(room=room_id, messages=messages)
