"""Service protocols defining interfaces for dependency injection."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from datetime import datetime


class ContentFetcherProtocol(Protocol):
    """Protocol for raw content sources.

    Implementations raise ExtractionFailure when the content cannot be fetched.
    """

    def fetch(self, source_ref: str) -> str: ...


class ClockProtocol(Protocol):
    """Protocol for the time source used by scheduling and listing windows."""

    def now(self) -> datetime: ...
