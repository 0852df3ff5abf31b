"""Error taxonomy shared by the extraction and monitoring domains."""

from __future__ import annotations


class ConfigurationError(Exception):
    """Raised when a template document cannot be loaded.

    Covers malformed regular expressions, unknown filter kinds, invalid match
    modes and provider cycles. Always raised at load time, never while
    extracting.
    """

    def __init__(self, message: str, template: str | None = None) -> None:
        self.template = template
        if template:
            message = f"{template}: {message}"
        super().__init__(message)


class ExtractionFailure(Exception):
    """Raised when fetching or extracting content during a check fails."""

    def __init__(self, message: str, source: str | None = None) -> None:
        self.source = source
        super().__init__(message)


class ConflictOnWriteError(Exception):
    """Raised when an insert collides with an existing natural key."""

    def __init__(self, table: str, key: str) -> None:
        self.table = table
        self.key = key
        super().__init__(f"{table} already contains {key}")


class InvalidTransitionError(ValueError):
    """Raised for a content change status transition the workflow forbids."""
