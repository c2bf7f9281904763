"""Chat Relay Application.

This is the main entry point for the chat relay service. Clients connect over
WebSocket, submit short text messages, and receive every message sent by any
client in the same room, plus a replay of recent history when they join.

Modules:
    - chat: Rooms, history, registry, sanitizer and broadcast dispatcher
    - config: YAML-backed settings
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse

from chatrelay import __version__
from chatrelay.chat.manager import ChatRelay, RelayState
from chatrelay.chat.rooms_router import router as rooms_router
from chatrelay.chat.router import router as chat_router
from chatrelay.config import RelayConfig, get_config

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Silence verbose third-party loggers.
# uvicorn.access logs every health check; httpx/httpcore log every request
# made by the test client.
for _noisy in (
    "uvicorn.access",
    "httpx",
    "httpcore",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    config: RelayConfig = app.state.config

    # Apply configured log level to root logger so that
    # `server.log_level: "debug"` in chatrelay.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, config.server.log_level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.server.log_level.upper())

    logger.info(
        f"Chat relay ready: default room={config.chat.default_room!r}, "
        f"history capacity={config.chat.history_capacity}"
    )

    yield  # Application runs here

    # Shutdown
    state: RelayState = app.state.relay.state
    logger.info(
        f"Application shutdown complete ({len(state.connections)} connections open, "
        f"{len(state.rooms)} rooms discarded)"
    )


def create_app(config: Optional[RelayConfig] = None) -> FastAPI:
    """Build the FastAPI application around a fresh relay state.

    Args:
        config: Settings to use; loaded from chatrelay.settings.yaml if omitted.

    Returns:
        The configured FastAPI app. ``app.state.relay`` holds the dispatcher.
    """
    config = config or get_config()

    app = FastAPI(
        title="Chat Relay",
        description="Minimal realtime broadcast relay with history replay",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.relay = ChatRelay(RelayState(config.chat))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.allowed_origins,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    # Register all routers
    app.include_router(chat_router)
    app.include_router(rooms_router)

    @app.get("/", response_class=HTMLResponse)
    async def index() -> HTMLResponse:
        """Plain status page."""
        return HTMLResponse("<h1>Chat server is running</h1>")

    @app.get("/health")
    async def health() -> dict:
        """Health check endpoint.

        Returns:
            dict: Status object indicating the server is running.
        """
        return {"status": "ok"}

    return app


app = create_app()


def run() -> None:
    """Run the relay under uvicorn with the configured host and port."""
    config = get_config()
    uvicorn.run(
        "chatrelay.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=config.server.reload,
        log_level=config.server.log_level.lower(),
    )
