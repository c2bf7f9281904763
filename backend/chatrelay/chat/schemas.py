"""Data models shared by the chat relay components."""
from pydantic import BaseModel, ConfigDict, Field

# Display name used for anyone who never registered or sent a blank name
DEFAULT_DISPLAY_NAME = "Anonymous"


class ChatMessage(BaseModel):
    """A finalized chat message, as stored in history and broadcast to clients.

    Instances are frozen: once the sanitizer produces one it is never changed.

    Attributes:
        id: Unique message identifier (client-supplied or generated).
        user: Sender display name.
        text: Message text.
        ts: Timestamp in milliseconds since epoch.
        uid: Opaque originator key clients use to recognise their own messages.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique message ID")
    user: str = Field(default=DEFAULT_DISPLAY_NAME, description="Sender display name")
    text: str = Field(default="", description="Message text")
    ts: int = Field(..., description="Timestamp in milliseconds since epoch")
    uid: str = Field(default="", description="Originator key (optional)")


class ConnectionIdentity(BaseModel):
    """Identity bound to one live connection.

    Attributes:
        connectionId: Backend-generated connection ID.
        displayName: Name shown next to this connection's messages.
    """
    connectionId: str = Field(default="", description="Connection ID")
    displayName: str = Field(default=DEFAULT_DISPLAY_NAME, description="Display name")
