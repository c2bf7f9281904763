"""Normalization of untrusted client payloads.

Clients may send anything: missing fields, ``null`` values, numbers where
strings are expected, or huge strings. Every field degrades to a safe default
instead of raising, so a bad payload can never break the room for others.
"""
import time
import uuid
from collections.abc import Mapping
from typing import Any, Optional

from .schemas import DEFAULT_DISPLAY_NAME, ChatMessage

# Field limits
MAX_NAME_LENGTH = 30
MAX_TEXT_LENGTH = 4000
MAX_ID_LENGTH = 64


def now_ms() -> int:
    """Current time in milliseconds since epoch."""
    return int(time.time() * 1000)


def generate_message_id(ts: Optional[int] = None) -> str:
    """Build a practically unique ID of the form ``{epoch-ms}-{random}``."""
    if ts is None:
        ts = now_ms()
    return f"{ts}-{uuid.uuid4().hex[:6]}"


def to_text(value: Any) -> str:
    """Coerce a value to a string that can always be encoded as UTF-8.

    JSON allows escapes such as ``"\\ud800"`` that decode to lone surrogates;
    those are replaced so the string can be written back to any socket.
    """
    return str(value).encode("utf-8", "replace").decode("utf-8")


def clean_display_name(value: Any, max_length: int = MAX_NAME_LENGTH) -> str:
    """Coerce a client-supplied name to a bounded, non-empty string."""
    if not value:
        return DEFAULT_DISPLAY_NAME
    name = to_text(value).strip()[:max_length].strip()
    return name or DEFAULT_DISPLAY_NAME


def _clean_id(value: Any, max_length: int) -> Optional[str]:
    # bool is an int subclass; True is not a usable ID
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        return None
    text = to_text(value)
    if not text or len(text) > max_length:
        return None
    return text


def _clean_ts(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if value != value or value <= 0:  # NaN or non-positive
        return None
    try:
        return int(value)
    except OverflowError:
        return None


def sanitize_message(
    raw: Any,
    *,
    max_name_length: int = MAX_NAME_LENGTH,
    max_text_length: int = MAX_TEXT_LENGTH,
    max_id_length: int = MAX_ID_LENGTH,
    now: Optional[int] = None,
) -> ChatMessage:
    """Turn an arbitrary client payload into a well-formed :class:`ChatMessage`.

    Args:
        raw: Decoded client payload. Non-mapping values are treated as empty.
        max_name_length: Bound for the ``user`` field.
        max_text_length: Bound for the ``text`` field.
        max_id_length: Bound for client-supplied ``id`` and ``uid`` values.
        now: Timestamp override in epoch-ms (defaults to the current time).

    Returns:
        A frozen ChatMessage. This function never raises for bad input.
    """
    data = raw if isinstance(raw, Mapping) else {}
    if now is None:
        now = now_ms()

    ts = _clean_ts(data.get("ts"))
    if ts is None:
        ts = now

    message_id = _clean_id(data.get("id"), max_id_length)
    if message_id is None:
        message_id = generate_message_id(now)

    text = data.get("text")
    uid = data.get("uid")

    return ChatMessage(
        id=message_id,
        user=clean_display_name(data.get("user"), max_name_length),
        text=to_text(text)[:max_text_length] if text else "",
        ts=ts,
        uid=to_text(uid)[:max_id_length] if uid else "",
    )


def is_blank(message: ChatMessage) -> bool:
    """True when the message has no text besides whitespace."""
    return not message.text.strip()
