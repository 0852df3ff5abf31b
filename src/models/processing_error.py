"""Processing error model for tracking operation failures."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, field_validator


class ProcessingError(BaseModel):
    """Tracks a failed check or template load for operators."""

    entity_type: Literal["monitor", "template", "change"]
    entity_id: int | None = None
    entity_ref: str | None = None
    error_type: str
    error_message: str
    retry_count: int = 0
    occurred_at: datetime

    @field_validator("error_type")
    @classmethod
    def validate_error_type(cls, value: str) -> str:
        """Error type must be PascalCase and between 1-100 characters."""
        if not value or len(value) > 100:
            msg = "error_type must be between 1 and 100 characters"
            raise ValueError(msg)
        if not re.fullmatch(r"[A-Z][a-zA-Z0-9]*", value):
            msg = "error_type must be in PascalCase format"
            raise ValueError(msg)
        return value

    @field_validator("error_message")
    @classmethod
    def validate_error_message(cls, value: str) -> str:
        """Error message must be between 1 and 5000 characters."""
        if not value:
            msg = "error_message must not be empty"
            raise ValueError(msg)
        return value[:5000]

    @field_validator("retry_count")
    @classmethod
    def validate_retry_count(cls, value: int) -> int:
        if value < 0:
            msg = "retry_count must not be negative"
            raise ValueError(msg)
        return value
