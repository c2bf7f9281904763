"""Chat relay: a minimal realtime broadcast chat server."""

__version__ = "0.1.0"
