"""Content monitor model for recurring checks of one content source."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator

DEFAULT_INTERVAL = 60


def _utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


class ContentType(StrEnum):
    """Closed set of content types a monitor can watch."""

    VIDEO = "VIDEO"
    EVENT = "EVENT"
    ROUNDUP = "ROUNDUP"
    WHITE_PAPER = "WHITE_PAPER"
    EBOOK = "EBOOK"
    PODCAST = "PODCAST"

    @property
    def code(self) -> str:
        return _CONTENT_TYPE_CODES[self]

    @property
    def tag(self) -> str:
        return self.value.lower().replace("_", "-")

    @classmethod
    def from_code(cls, value: str) -> ContentType:
        """Look up a content type by name, short code or tag."""
        normalized = value.strip().upper().replace("-", "_")
        for member in cls:
            if normalized in (member.value, member.code):
                return member
        msg = f"unknown content type {value!r}"
        raise ValueError(msg)


_CONTENT_TYPE_CODES = {
    ContentType.VIDEO: "VID",
    ContentType.EVENT: "EVT",
    ContentType.ROUNDUP: "RUP",
    ContentType.WHITE_PAPER: "WPR",
    ContentType.EBOOK: "EBK",
    ContentType.PODCAST: "POD",
}


def build_guid(content_type: ContentType, code: str, name: str) -> str:
    """Logical identity of a monitored source, unique per content type."""
    return f"{content_type.code}-{code}-{name}"


class ContentMonitor(BaseModel):
    """A configured, recurring check of one content source for changes."""

    id: int | None = None
    guid: str = ""
    code: str
    name: str
    content_type: ContentType
    channel_id: str | None = None
    url: str | None = None
    active: bool = True
    interval: int = DEFAULT_INTERVAL
    min_difference: int = 0
    sort: str = ""
    max_results: int = 0
    snapshot: str | None = None
    last_checked_at: datetime | None = None
    executed_at: datetime | None = None
    execution_time: int = 0
    checking: bool = False
    error_message: str | None = None
    retry: int = 0
    change_id: int | None = None
    sites: list[str] = []
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime | None = None

    @field_validator("code", "name")
    @classmethod
    def validate_identity(cls, value: str) -> str:
        """Code and name must be non-empty."""
        if not value.strip():
            msg = "code and name must not be empty"
            raise ValueError(msg)
        return value.strip()

    @field_validator("interval")
    @classmethod
    def validate_interval(cls, value: int) -> int:
        """Interval is a positive number of minutes."""
        if value < 1:
            msg = "interval must be at least 1 minute"
            raise ValueError(msg)
        return value

    @field_validator("min_difference")
    @classmethod
    def validate_min_difference(cls, value: int) -> int:
        """Minimum difference is a percentage."""
        if value < 0 or value > 100:
            msg = "min_difference must be between 0 and 100"
            raise ValueError(msg)
        return value

    @field_validator("max_results", "retry", "execution_time")
    @classmethod
    def validate_non_negative(cls, value: int) -> int:
        if value < 0:
            msg = "value must not be negative"
            raise ValueError(msg)
        return value

    @field_validator("sites", mode="before")
    @classmethod
    def parse_sites(cls, value: object) -> object:
        """Accept sites stored as a JSON array or a comma-separated string."""
        if value is None:
            return []
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith("["):
                return json.loads(stripped)
            return [site.strip() for site in stripped.split(",") if site.strip()]
        return value

    def model_post_init(self, __context: object) -> None:
        if not self.guid:
            self.guid = build_guid(self.content_type, self.code, self.name)
