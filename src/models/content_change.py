"""Content change model for detected differences between snapshots."""

from __future__ import annotations

import json
import re
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator


def _utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


class ChangeStatus(StrEnum):
    """Review status of a detected content change."""

    NEW = "NEW"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    @property
    def is_terminal(self) -> bool:
        return self in (ChangeStatus.APPROVED, ChangeStatus.REJECTED)


class ContentChange(BaseModel):
    """A detected difference between two snapshots of one monitor."""

    id: int | None = None
    code: str
    monitor_id: int
    snapshot_before: str | None = None
    snapshot_after: str
    snapshot_diff: str = "[]"
    snapshot_key: str
    execution_time: int = 0
    difference: int
    status: ChangeStatus = ChangeStatus.NEW
    sites: list[str] = []
    created_by: str = "system"
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime | None = None

    @field_validator("difference")
    @classmethod
    def validate_difference(cls, value: int) -> int:
        """Difference must be a percentage between 0 and 100."""
        if value < 0 or value > 100:
            msg = "difference must be between 0 and 100"
            raise ValueError(msg)
        return value

    @field_validator("snapshot_key")
    @classmethod
    def validate_snapshot_key(cls, value: str) -> str:
        """Snapshot keys must be valid 32-character lowercase hex MD5 strings."""
        lowered = value.lower()
        if not re.fullmatch(r"[0-9a-f]{32}", lowered):
            msg = "snapshot_key must be a valid 32-character hex MD5 string"
            raise ValueError(msg)
        return lowered

    @field_validator("sites", mode="before")
    @classmethod
    def parse_sites(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, str):
            return json.loads(value) if value.strip().startswith("[") else [value]
        return value
