"""
Pytest configuration and fixtures for the comments service.
"""
import itertools
import os
from typing import Generator

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("MUSINGS_STORE_BACKEND", "memory")
os.environ.setdefault("MUSINGS_JWT_SECRET", "test-signing-key-not-for-production")
os.environ.setdefault("MUSINGS_ALLOWED_HOSTS", '["testserver"]')

import AuthAndUser as auth
from config import get_settings
from services.comment_service import CommentReader, CommentWriter
from services.comment_store import InMemoryCommentStore, InMemoryCommentTable

get_settings.cache_clear()

from main import app


class SteppingClock:
    """Deterministic clock: each call is one microsecond after the last."""

    def __init__(self, repeat: int = 1):
        self._ticks = itertools.count()
        self._repeat = repeat

    def __call__(self) -> str:
        tick = next(self._ticks) // self._repeat
        seconds, micros = divmod(tick, 1_000_000)
        return f"2026-01-01T00:00:{seconds:02d}.{micros:06d}Z"


@pytest.fixture
def clock_factory():
    return SteppingClock


@pytest.fixture
def table() -> InMemoryCommentTable:
    return InMemoryCommentTable()


@pytest.fixture
def store(table: InMemoryCommentTable) -> InMemoryCommentStore:
    return InMemoryCommentStore(table)


@pytest.fixture
def writer(store: InMemoryCommentStore) -> CommentWriter:
    return CommentWriter(store, clock=SteppingClock())


@pytest.fixture
def reader(store: InMemoryCommentStore) -> CommentReader:
    return CommentReader(store)


@pytest.fixture
def alice() -> auth.User:
    return auth.User(id="user-alice", username="alice", display_name="Alice")


@pytest.fixture
def bob() -> auth.User:
    return auth.User(id="user-bob", username="bob", display_name="Bob")


@pytest.fixture
def client(table: InMemoryCommentTable, alice: auth.User) -> Generator[TestClient, None, None]:
    """
    Test client backed by a fresh in-memory table, authenticated as alice.
    """
    app.dependency_overrides[auth.get_current_active_user] = lambda: alice
    with TestClient(app) as test_client:
        app.state.comment_store_factory = lambda: InMemoryCommentStore(table)
        app.state.comment_clock = SteppingClock()
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client(table: InMemoryCommentTable) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        app.state.comment_store_factory = lambda: InMemoryCommentStore(table)
        yield test_client
