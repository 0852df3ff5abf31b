"""Shared test fixtures for the content change monitoring engine."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import pytest

from src.core.errors import ExtractionFailure
from src.domains.monitoring.repositories.content_change_repository import (
    ContentChangeRepository,
)
from src.domains.monitoring.repositories.content_monitor_repository import (
    ContentMonitorRepository,
)
from src.models.content_monitor import ContentType, build_guid
from src.services.database import Database

if TYPE_CHECKING:
    from pathlib import Path


class FakeClock:
    """Clock whose time only moves when a test advances it."""

    def __init__(self, now: datetime | None = None) -> None:
        self.current = now or datetime(2024, 6, 1, 12, 0, tzinfo=UTC)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


class StubFetcher:
    """Content fetcher serving canned pages; exceptions are raised when served."""

    def __init__(self, pages: dict[str, str | Exception] | None = None) -> None:
        self.pages: dict[str, str | Exception] = dict(pages or {})
        self.calls: list[str] = []

    def fetch(self, source_ref: str) -> str:
        self.calls.append(source_ref)
        page = self.pages.get(source_ref)
        if page is None:
            msg = f"no page for {source_ref}"
            raise ExtractionFailure(msg, source=source_ref)
        if isinstance(page, Exception):
            raise page
        return page


@pytest.fixture
def tmp_db_path(tmp_path: Path) -> str:
    """Provide a temporary database file path."""
    return str(tmp_path / "test.db")


@pytest.fixture
def db(tmp_db_path: str) -> Database:
    """Provide an initialized temporary database."""
    database = Database(db_path=tmp_db_path)
    database.init_db()
    return database


@pytest.fixture
def monitor_repo(db: Database) -> ContentMonitorRepository:
    return ContentMonitorRepository(db)


@pytest.fixture
def change_repo(db: Database) -> ContentChangeRepository:
    return ContentChangeRepository(db)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fetcher() -> StubFetcher:
    return StubFetcher()


@pytest.fixture
def sample_monitor_data() -> dict[str, Any]:
    """Sample monitor data for a roundup page."""
    return {
        "guid": build_guid(ContentType.ROUNDUP, "acme", "blog"),
        "code": "acme",
        "name": "blog",
        "content_type": ContentType.ROUNDUP,
        "url": "https://acme.example/blog",
        "interval": 60,
        "min_difference": 5,
        "sites": ["main"],
    }


@pytest.fixture
def sample_document() -> dict[str, Any]:
    """An organisation template document with a provider and two channels."""
    return {
        "providers": [
            {
                "youtube": {
                    "url": "https://video.example/channel/%s",
                    "items": {"expr": "<entry>(.*?)</entry>", "format": "$1"},
                    "fields": {
                        "title": "<title>(.*?)</title>",
                        "summary": {
                            "expr": "<summary>(.*?)</summary>",
                            "filters": [{"collapse": True}],
                        },
                    },
                },
            },
        ],
        "channels": [
            {
                "acme-videos": {
                    "provider": "youtube",
                    "channel-id": "UC123",
                    "fields": {
                        "title": {
                            "expr": "<title>(.*?)</title>",
                            "filters": [{"case": "upper"}],
                        },
                    },
                },
            },
            {
                "blog": {
                    "type": "roundup",
                    "url": "https://acme.example/blog",
                    "fields": {
                        "headline": "<h1>(.*?)</h1>",
                        "body": {
                            "expr": "<p>(.*?)</p>",
                            "match": "all",
                            "filters": ["Advertisement"],
                        },
                    },
                },
            },
        ],
        "monitor": {
            "interval": 30,
            "difference": 5,
            "video": {"max-results": 3, "sort": "-title"},
        },
    }
