import pytest
from fastapi.testclient import TestClient

from webmount.core.config import Env
from webmount.webserver import WebServer


@pytest.fixture
def settings():
    """Settings without a session store so tests never reach for redis."""
    return Env(SESSION_ENABLED=False, PORT=0, HOST="127.0.0.1")


@pytest.fixture
def webserver(settings):
    return WebServer(settings)


@pytest.fixture
def mounted_client():
    """Runs one mount cycle on a WebServer and returns a TestClient for it."""

    def _client(server: WebServer) -> TestClient:
        server.mount()
        return TestClient(server.app)

    return _client
