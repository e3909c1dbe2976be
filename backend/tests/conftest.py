"""Pytest configuration and fixtures for backend tests."""
import os
from typing import AsyncGenerator, Generator, Optional

import pytest
import pytest_asyncio
from fastapi import FastAPI
from fastapi.testclient import TestClient

# Set test environment before importing app
os.environ["DEBUG"] = "true"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["PERSISTENCE_BACKEND"] = "memory"
os.environ["HEARTBEAT_INTERVAL_SECONDS"] = "3600"

from livecode.core.config import Settings
from livecode.core.exceptions import PersistenceError
from livecode.main import create_app
from livecode.services.document_store import DocumentStore
from livecode.services.sync_server import SyncServer
from livecode.storage.memory import InMemoryGamePersistence


# ============================================================================
# Fakes
# ============================================================================

class FakeTransport:
    """Records frames sent by the sync server."""

    def __init__(self, fail_sends: bool = False):
        self.sent: list[dict] = []
        self.closed_with: Optional[int] = None
        self.fail_sends = fail_sends

    async def send_json(self, data: dict) -> None:
        if self.fail_sends:
            raise ConnectionError("transport is gone")
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code

    @property
    def closed(self) -> bool:
        return self.closed_with is not None

    def of_type(self, kind: str) -> list[dict]:
        return [frame for frame in self.sent if frame.get("type") == kind]


class FlakyPersistence(InMemoryGamePersistence):
    """In-memory persistence with switchable failures."""

    def __init__(self):
        super().__init__()
        self.fail_stream_inserts_from: Optional[int] = None
        self.fail_updates = False
        self.fail_fetch = False
        self.deleted_games: list[int] = []
        self.updates: list[tuple[int, int, str]] = []

    async def fetch_games_with_streams(self):
        if self.fail_fetch:
            raise PersistenceError("fetch_games_with_streams", "database unavailable")
        return await super().fetch_games_with_streams()

    async def insert_stream(self, game_id, stream_id, language, active, value):
        if self.fail_stream_inserts_from is not None and stream_id >= self.fail_stream_inserts_from:
            raise PersistenceError("insert_stream", "disk full")
        return await super().insert_stream(game_id, stream_id, language, active, value)

    async def update_stream_value(self, game_id, stream_id, value):
        if self.fail_updates:
            raise PersistenceError("update_stream_value", "database locked")
        self.updates.append((game_id, stream_id, value))
        await super().update_stream_value(game_id, stream_id, value)

    async def delete_game(self, game_id):
        self.deleted_games.append(game_id)
        await super().delete_game(game_id)


# ============================================================================
# Store / Server Fixtures
# ============================================================================

@pytest.fixture
def persistence() -> FlakyPersistence:
    return FlakyPersistence()


@pytest_asyncio.fixture
async def store(persistence) -> AsyncGenerator[DocumentStore, None]:
    document_store = DocumentStore(persistence, guid_length=12)
    await document_store.init()
    yield document_store
    await document_store.shutdown()


@pytest.fixture
def server(store) -> SyncServer:
    return SyncServer(store, heartbeat_interval=3600, max_connections=10)


# ============================================================================
# Application Fixtures
# ============================================================================

@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        DEBUG=True,
        JWT_SECRET_KEY="test-secret-key-for-testing-only",
        PERSISTENCE_BACKEND="memory",
        HEARTBEAT_INTERVAL_SECONDS=3600,
        CORS_ORIGINS="*",
    )


@pytest.fixture
def test_app(test_settings) -> FastAPI:
    """Create a test FastAPI application backed by in-memory persistence."""
    return create_app(test_settings, InMemoryGamePersistence())


@pytest.fixture
def client(test_app) -> Generator[TestClient, None, None]:
    """Create a test client; entering it runs the lifespan."""
    with TestClient(test_app) as c:
        yield c


@pytest.fixture
def make_transport():
    """Factory for fake transports."""
    return FakeTransport


@pytest.fixture
def signup(client):
    """Sign an account up and return the response body."""
    def _signup(username: str = "alice", password: str = "secret-password") -> dict:
        response = client.post("/api/auth/signup", json={"username": username, "password": password})
        assert response.status_code == 200, response.text
        return response.json()
    return _signup
