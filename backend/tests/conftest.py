"""Shared test fixtures and configuration for backend tests."""
import itertools

import pytest
from fastapi.testclient import TestClient

from piper.chat.state import ChatState
from piper.config import AppConfig, ChatSettings, PreviewSettings, Secrets, UploadSettings, WebhookSecrets
from piper.main import create_app

WEBHOOK_SECRET = "test-webhook-secret"


class FakeSocket:
    """Stands in for a WebSocket; records every frame sent to it."""

    def __init__(self):
        self.sent = []
        self.closed_with = None

    async def send_json(self, message):
        if self.closed_with is not None:
            raise RuntimeError("socket is closed")
        self.sent.append(message)

    async def close(self, code=1000):
        self.closed_with = code

    def events(self, event=None):
        """Payloads of received frames, optionally filtered by event name."""
        return [m["data"] for m in self.sent if event is None or m["type"] == event]

    def types(self):
        return [m["type"] for m in self.sent]

    def clear(self):
        self.sent.clear()


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def state(tmp_path, clock):
    """A fresh ChatState persisting into a temporary data directory."""
    return ChatState(ChatSettings(data_dir=str(tmp_path / "data")), clock=clock)


@pytest.fixture
def connect(state):
    """Register a fake connection and return ``(conn_id, socket)``."""
    counter = itertools.count(1)

    def _connect():
        conn_id = f"conn-{next(counter)}"
        socket = FakeSocket()
        state.connections.register(conn_id, socket)
        return conn_id, socket

    return _connect


@pytest.fixture
def join(state, connect):
    """Connect and join under ``username``; returns ``(session, socket)``."""

    async def _join(username):
        conn_id, socket = connect()
        await state.dispatcher.dispatch(conn_id, {"type": "join", "data": username})
        return state.sessions.get(conn_id), socket

    return _join


@pytest.fixture
def app_config(tmp_path):
    return AppConfig(
        chat=ChatSettings(data_dir=str(tmp_path / "data")),
        uploads=UploadSettings(
            upload_dir=str(tmp_path / "uploads"),
            db_path=str(tmp_path / "uploads.duckdb"),
            max_file_size_mb=1,
        ),
        preview=PreviewSettings(enabled=True),
        secrets=Secrets(webhook=WebhookSecrets(secret=WEBHOOK_SECRET)),
    )


@pytest.fixture
def api_client(app_config):
    """Provide a TestClient for a freshly built app with temporary storage."""
    app = create_app(app_config)
    with TestClient(app) as client:
        yield client
