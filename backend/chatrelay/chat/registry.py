"""Registry of display names for live connections."""
import logging
from typing import Any, Dict

from .sanitizer import MAX_NAME_LENGTH, clean_display_name
from .schemas import ConnectionIdentity

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Maps connection IDs to the identity each connection registered.

    Lookups never fail: an unknown connection resolves to the default
    ``Anonymous`` identity.
    """

    def __init__(self, max_name_length: int = MAX_NAME_LENGTH) -> None:
        self.max_name_length = max_name_length
        # connection_id -> ConnectionIdentity
        self._identities: Dict[str, ConnectionIdentity] = {}

    def register(self, connection_id: str, display_name: Any = None) -> str:
        """Bind a display name to a connection, replacing any earlier one.

        Args:
            connection_id: The connection to register.
            display_name: Requested name; truncated, or replaced by
                ``Anonymous`` when empty or missing.

        Returns:
            The name actually stored.
        """
        name = clean_display_name(display_name, self.max_name_length)
        self._identities[connection_id] = ConnectionIdentity(
            connectionId=connection_id,
            displayName=name,
        )
        logger.debug(f"[Registry] {connection_id} registered as {name!r}")
        return name

    def lookup(self, connection_id: str) -> ConnectionIdentity:
        """Return the identity for a connection, or the default identity."""
        identity = self._identities.get(connection_id)
        if identity is None:
            return ConnectionIdentity(connectionId=connection_id)
        return identity

    def is_registered(self, connection_id: str) -> bool:
        return connection_id in self._identities

    def remove(self, connection_id: str) -> None:
        """Forget a connection. Removing an unknown ID is a no-op."""
        self._identities.pop(connection_id, None)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._identities

    def __len__(self) -> int:
        return len(self._identities)
