"""Chat relay configuration.

Loads settings from a single YAML file:
  * chatrelay.settings.yaml: server and chat limits (no secrets)

The file location can be overridden with the ``CHATRELAY_SETTINGS``
environment variable. A missing file is not an error; every field has a
default so the relay runs out of the box.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("chatrelay.settings.yaml")
SETTINGS_ENV_VAR = "CHATRELAY_SETTINGS"


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerConfig(BaseModel):
    host:            str       = "0.0.0.0"
    port:            int       = 3000
    reload:          bool      = False
    log_level:       str       = "info"
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])


class ChatConfig(BaseModel):
    """Limits and defaults for rooms, history and message fields."""
    default_room:             str  = "general"
    history_capacity:         int  = Field(default=200, ge=1)
    max_name_length:          int  = Field(default=30, ge=1)
    max_text_length:          int  = Field(default=4000, ge=1)
    max_id_length:            int  = Field(default=64, ge=1)
    outbound_queue_size:      int  = Field(default=256, ge=2)  # greeting needs 2 slots
    max_connections_per_room: int  = Field(default=0, ge=0)  # 0 = no limit
    max_room_id_length:       int  = Field(default=64, ge=1)
    max_rooms:                int  = Field(default=1000, ge=1)
    announce_presence:        bool = True


class RelayConfig(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    chat:   ChatConfig   = Field(default_factory=ChatConfig)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(settings_path: Optional[Union[str, Path]] = None) -> RelayConfig:
    """Load *chatrelay.settings.yaml* into a validated :class:`RelayConfig`.

    Args:
        settings_path: Explicit file to read. Falls back to the
            ``CHATRELAY_SETTINGS`` env var, then to ``./chatrelay.settings.yaml``.

    Raises:
        pydantic.ValidationError: If the file contains invalid values.
    """
    if settings_path is None:
        settings_path = Path(os.environ.get(SETTINGS_ENV_VAR, SETTINGS_FILE))

    config = RelayConfig(**_load_yaml(Path(settings_path)))
    logger.info(
        "Settings loaded (server=%s:%s, room=%s, history_capacity=%d)",
        config.server.host,
        config.server.port,
        config.chat.default_room,
        config.chat.history_capacity,
    )
    return config


_config: Optional[RelayConfig] = None


def get_config() -> RelayConfig:
    """Return the process-wide config, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Optional[RelayConfig]) -> None:
    """Replace the process-wide config (``None`` forces a reload on next use)."""
    global _config
    _config = config
