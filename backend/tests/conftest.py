"""Shared test fixtures and configuration for backend tests."""
import pytest
from fastapi.testclient import TestClient

from chatrelay.config import ChatConfig, RelayConfig
from chatrelay.main import create_app


@pytest.fixture
def relay_config():
    """Default settings, independent of any chatrelay.settings.yaml on disk."""
    return RelayConfig()


@pytest.fixture
def app(relay_config):
    """A fresh app (and therefore a fresh relay state) per test."""
    return create_app(relay_config)


@pytest.fixture
def client(app):
    """Provide a TestClient for the app.

    Used as a context manager so that every WebSocket opened by a test is
    served on the same event loop, as it would be under uvicorn.
    """
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def small_history_app():
    """App whose rooms only keep the three most recent messages."""
    return create_app(RelayConfig(chat=ChatConfig(history_capacity=3)))
