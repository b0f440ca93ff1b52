"""
Pytest configuration and shared fixtures for tag enrichment tests.
"""

import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("TWITCH_CLIENT_ID", "test_client_id")
os.environ.setdefault("TWITCH_CLIENT_SECRET", "test_client_secret")
os.environ.setdefault("SENTRY_DSN", "")
os.environ.setdefault("MIN_REQUEST_DELAY_MS", "0")

import pytest
from typing import Any, Callable, Generator, List, Optional
from uuid import UUID
from unittest.mock import Mock, patch
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
import requests

from tag_enrichment.database import Base, init_db
from tag_enrichment.models.schemas import StreamerRecord
from tag_enrichment.models.streamer import Streamer
from tag_enrichment.services.logging_service import EnrichmentMetrics
from tag_enrichment.services.rate_limiter import RequestPacer, RetryPolicy
from tag_enrichment.services.streamer_store import StreamerStore


# Database setup
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def test_engine() -> Generator[Engine, None, None]:
    """
    Create a fresh in-memory SQLite database for each test.
    """
    engine = create_engine(
        SQLALCHEMY_TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)

    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(test_engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def store(session_factory: sessionmaker) -> StreamerStore:
    return StreamerStore(session_factory)


@pytest.fixture
def make_raw_streamer(session_factory: sessionmaker) -> Callable[..., UUID]:
    """
    Insert a streamer row as-is, without validating it, and return its ID.

    Usage:
        record_id = make_raw_streamer("legacy", platform="twitch")
    """
    def _make(username: str, platform: str = "TWITCH", **columns: Any) -> UUID:
        db = session_factory()
        try:
            values = {"display_name": username.title(), "top_games": [], "tags": []}
            values.update(columns)
            row = Streamer(platform=platform, username=username, **values)
            db.add(row)
            db.commit()
            return row.id
        finally:
            db.close()

    return _make


@pytest.fixture
def make_streamer(session_factory: sessionmaker, make_raw_streamer) -> Callable[..., StreamerRecord]:
    """
    Insert a streamer row and return its snapshot.

    Usage:
        record = make_streamer("slotsking", platform="KICK", current_game="Slots")
    """
    def _make(
        username: str,
        platform: str = "TWITCH",
        current_game: Optional[str] = None,
        top_games: Optional[List[str]] = None,
        tags: Optional[List[str]] = None,
        inferred_category: Optional[str] = None
    ) -> StreamerRecord:
        record_id = make_raw_streamer(
            username,
            platform=platform,
            current_game=current_game,
            top_games=top_games or [],
            tags=tags or [],
            inferred_category=inferred_category
        )
        db = session_factory()
        try:
            return StreamerRecord.model_validate(db.get(Streamer, record_id))
        finally:
            db.close()

    return _make


@pytest.fixture
def metrics() -> EnrichmentMetrics:
    return EnrichmentMetrics()


# HTTP fixtures
@pytest.fixture(autouse=True)
def no_sleep() -> Generator[Mock, None, None]:
    """Never actually sleep in tests; the mock records requested delays."""
    with patch("tag_enrichment.services.rate_limiter.time.sleep") as mock_sleep:
        yield mock_sleep


def mock_response(status_code: int = 200, payload: Any = None, url: str = "https://api.test") -> Mock:
    """Mock requests.Response with a JSON body."""
    response = Mock(spec=requests.Response)
    response.status_code = status_code
    response.url = url
    if isinstance(payload, Exception):
        response.json.side_effect = payload
    else:
        response.json.return_value = payload if payload is not None else {}
    return response


@pytest.fixture
def http_session() -> Mock:
    """Stand-in for requests.Session; set request/post side effects per test."""
    session = Mock(spec=requests.Session)
    session.post.return_value = mock_response(200, {"access_token": "test_token", "expires_in": 3600})
    return session


@pytest.fixture
def client_kwargs(http_session: Mock) -> dict:
    """PlatformClient arguments with no pacing delay and a 2s backoff."""
    return {
        "session": http_session,
        "pacer": RequestPacer(0),
        "retry_policy": RetryPolicy(max_attempts=3, backoff_seconds=2.0),
        "timeout": 5
    }
