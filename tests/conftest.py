"""Shared pytest fixtures for warelay tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from warelay.api.factory import create_app  # noqa: E402
from warelay.session.gate import SessionGate  # noqa: E402

from .helpers import CLIENT_INFO, FakeMessagingClient, make_settings  # noqa: E402


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def fake_client():
    return FakeMessagingClient()


@pytest.fixture
def gate():
    """Fresh gate in NOT_READY state."""
    return SessionGate()


@pytest.fixture
def ready_gate():
    g = SessionGate()
    g.on_ready(CLIENT_INFO)
    return g


@pytest.fixture
def app(settings, fake_client, ready_gate):
    """App with a ready session. Lifespan hooks do not run (no context manager)."""
    return create_app(settings, fake_client, gate=ready_gate, watch_session_state=False)


@pytest.fixture
def client(app):
    return TestClient(app)
