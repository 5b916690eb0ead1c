import pytest
from fastapi.testclient import TestClient

from webmount.core.config import Env
from webmount.webserver import WebServer
from tests.mocks import MockSessionStore


@pytest.fixture
def session_store():
    return MockSessionStore()


@pytest.fixture
def session_server(session_store):
    """A WebServer with sessions enabled, backed by an in-memory store."""
    settings = Env(PORT=0, SESSION_SECRET="test-session-secret")
    return WebServer(settings, session_store=session_store)


@pytest.fixture
def session_client(session_server):
    def _client() -> TestClient:
        session_server.mount()
        return TestClient(session_server.app)

    return _client
