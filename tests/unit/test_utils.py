"""Unit tests for utility modules and the batch processor.

Tests pure functions and simple data classes -- no network I/O required.
"""

from __future__ import annotations

import threading

import pytest
import requests

from src.services.batch_processor import process_batch
from src.utils.progress import ProgressTracker
from src.utils.retry import RetryableHTTPError, retry_with_logging

# ──────────────────────────────────────────────────────────────────────
# Module 1: utils/progress.py
# ──────────────────────────────────────────────────────────────────────


class TestProgressTracker:
    """Tests for ProgressTracker."""

    def test_initial_state(self) -> None:
        tracker = ProgressTracker(total=10)
        assert tracker.total == 10
        assert tracker.processed == 0
        assert tracker.successful == 0
        assert tracker.failed == 0
        assert tracker.skipped == 0
        assert tracker.errors == []

    def test_record_failure(self) -> None:
        tracker = ProgressTracker(total=5)
        tracker.record_failure("something broke")
        assert tracker.processed == 1
        assert tracker.failed == 1
        assert tracker.errors == ["something broke"]

    def test_record_skip(self) -> None:
        tracker = ProgressTracker(total=5)
        tracker.record_skip()
        assert tracker.processed == 1
        assert tracker.skipped == 1

    def test_progress_percentage_zero_total(self) -> None:
        assert ProgressTracker(total=0).progress_percentage == 100.0

    def test_progress_percentage_half(self) -> None:
        tracker = ProgressTracker(total=10)
        for _ in range(5):
            tracker.record_success()
        assert tracker.progress_percentage == pytest.approx(50.0)

    def test_summary(self) -> None:
        tracker = ProgressTracker(total=3)
        tracker.record_success()
        tracker.record_failure("err1")
        tracker.record_skip()
        summary = tracker.summary()
        assert summary["processed"] == 3
        assert summary["successful"] == 1
        assert summary["failed"] == 1
        assert summary["skipped"] == 1
        assert summary["errors"] == ["err1"]
        assert isinstance(summary["duration_seconds"], float)

    def test_outcomes_are_tallied(self) -> None:
        tracker = ProgressTracker(total=3, operation="monitor_sync")
        tracker.record_success("created")
        tracker.record_success("updated")
        tracker.record_success("created")
        assert tracker.remaining == 0
        assert tracker.summary()["outcomes"] == {"created": 2, "updated": 1}

    def test_remaining_never_negative(self) -> None:
        tracker = ProgressTracker(total=1)
        tracker.record_skip()
        tracker.record_skip()
        assert tracker.remaining == 0


# ──────────────────────────────────────────────────────────────────────
# Module 2: utils/retry.py
# ──────────────────────────────────────────────────────────────────────


class TestRetryWithLogging:
    """Tests for retry_with_logging with zero backoff."""

    def _flaky(self, failures: list[BaseException]):
        calls = {"count": 0}

        @retry_with_logging(max_attempts=3, min_wait=0, max_wait=0)
        def operation() -> str:
            calls["count"] += 1
            if failures:
                raise failures.pop(0)
            return "ok"

        return operation, calls

    def test_retries_transient_errors_until_success(self) -> None:
        operation, calls = self._flaky(
            [requests.ConnectionError("reset"), RetryableHTTPError(503, "https://a.example")]
        )
        assert operation() == "ok"
        assert calls["count"] == 3

    def test_gives_up_after_max_attempts(self) -> None:
        operation, calls = self._flaky([TimeoutError("slow")] * 5)
        with pytest.raises(TimeoutError):
            operation()
        assert calls["count"] == 3

    def test_non_retryable_errors_raise_immediately(self) -> None:
        operation, calls = self._flaky([ValueError("bad")])
        with pytest.raises(ValueError, match="bad"):
            operation()
        assert calls["count"] == 1

    def test_preserves_function_name(self) -> None:
        operation, _ = self._flaky([])
        assert operation.__name__ == "operation"

    def test_retryable_http_error_message(self) -> None:
        error = RetryableHTTPError(429, "https://a.example/feed")
        assert error.status_code == 429
        assert str(error) == "HTTP 429 for https://a.example/feed"


# ──────────────────────────────────────────────────────────────────────
# Module 3: services/batch_processor.py
# ──────────────────────────────────────────────────────────────────────


class TestProcessBatch:
    """Tests for process_batch."""

    def test_collects_results_and_failures(self) -> None:
        def work(item: int) -> int:
            if item == 3:
                msg = "three is unlucky"
                raise RuntimeError(msg)
            return item * 10

        summary = process_batch([1, 2, 3, 4], work, max_workers=2)
        assert summary["successful"] == 3
        assert summary["failed"] == 1
        assert sorted(summary["results"]) == [10, 20, 40]
        assert summary["errors"] == ["three is unlucky"]

    def test_outcome_labels(self) -> None:
        summary = process_batch(
            [1, 2, 3], lambda item: item, outcome=lambda n: "odd" if n % 2 else "even"
        )
        assert summary["outcomes"] == {"odd": 2, "even": 1}

    def test_empty_batch(self) -> None:
        summary = process_batch([], lambda item: item)
        assert summary["processed"] == 0
        assert summary["results"] == []

    def test_cancelled_items_are_skipped(self) -> None:
        cancel = threading.Event()
        cancel.set()
        calls: list[int] = []
        summary = process_batch([1, 2, 3], calls.append, cancel_event=cancel)
        assert calls == []
        assert summary["skipped"] == 3
        assert summary["results"] == []
