"""Progress tracking for monitor check runs and template syncs."""

from __future__ import annotations

import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from src.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ProgressTracker:
    """Counts the outcome of each item in a batch.

    Besides the success/failure/skip totals, ``outcomes`` tallies labels such
    as ``created`` and ``updated`` so callers can report what each success did.
    """

    total: int
    operation: str = "batch"
    processed: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    outcomes: Counter[str] = field(default_factory=Counter)
    start_time: float = field(default_factory=time.monotonic)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_success(self, outcome: str | None = None) -> None:
        with self._lock:
            self.processed += 1
            self.successful += 1
            if outcome:
                self.outcomes[outcome] += 1

    def record_failure(self, error: str) -> None:
        with self._lock:
            self.processed += 1
            self.failed += 1
            self.errors.append(error)

    def record_skip(self) -> None:
        with self._lock:
            self.processed += 1
            self.skipped += 1

    @property
    def remaining(self) -> int:
        return max(self.total - self.processed, 0)

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self.start_time

    @property
    def progress_percentage(self) -> float:
        """Percentage of items processed; an empty batch is complete."""
        if self.total == 0:
            return 100.0
        return (self.processed / self.total) * 100.0

    def log_progress(self, every_n: int = 10) -> None:
        """Log every ``every_n`` items and once the batch is finished."""
        if self.processed % every_n == 0 or self.remaining == 0:
            logger.info(
                "batch_progress",
                operation=self.operation,
                processed=self.processed,
                total=self.total,
                failed=self.failed,
                skipped=self.skipped,
                percentage=f"{self.progress_percentage:.1f}%",
                elapsed=f"{self.elapsed_seconds:.1f}s",
            )

    def summary(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "successful": self.successful,
            "failed": self.failed,
            "skipped": self.skipped,
            "duration_seconds": round(self.elapsed_seconds, 2),
            "errors": list(self.errors),
            "outcomes": dict(self.outcomes),
        }
