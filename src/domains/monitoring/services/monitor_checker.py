"""Single-monitor check: fetch, extract, compare and record."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import structlog

from src.core.errors import ConfigurationError, ExtractionFailure
from src.domains.extraction.core.snapshot_capture import ContentSnapshot, capture
from src.domains.monitoring.core.change_detection import compare_snapshots
from src.domains.monitoring.core.checksum import compute_snapshot_key
from src.domains.monitoring.core.scheduling import (
    complete_failure,
    complete_success,
    is_due,
    should_record_change,
)
from src.models.content_change import ChangeStatus
from src.models.content_monitor import ContentMonitor
from src.services.clock import SystemClock

if TYPE_CHECKING:
    from src.domains.extraction.services.template_registry import TemplateRegistry
    from src.domains.monitoring.repositories.content_change_repository import (
        ContentChangeRepository,
    )
    from src.domains.monitoring.repositories.content_monitor_repository import (
        ContentMonitorRepository,
    )
    from src.services.protocols import ClockProtocol, ContentFetcherProtocol

logger = structlog.get_logger(__name__)


class CheckStatus(StrEnum):
    BASELINE = "baseline"
    UNCHANGED = "unchanged"
    BELOW_THRESHOLD = "below_threshold"
    CHANGE_CREATED = "change_created"
    CHANGE_UPDATED = "change_updated"
    PENDING_REVIEW = "pending_review"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"
    FAILED = "failed"
    WRITE_FAILED = "write_failed"


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one monitor check."""

    monitor_id: int
    status: CheckStatus
    difference: int = 0
    change_id: int | None = None
    execution_time: int = 0
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.status in (CheckStatus.FAILED, CheckStatus.WRITE_FAILED)


class MonitorLocks:
    """In-process exclusive locks keyed by monitor id."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[int, threading.Lock] = {}

    def acquire(self, monitor_id: int) -> bool:
        """Try to take the monitor's lock without waiting."""
        with self._guard:
            lock = self._locks.setdefault(monitor_id, threading.Lock())
        return lock.acquire(blocking=False)

    def release(self, monitor_id: int) -> None:
        with self._guard:
            lock = self._locks.get(monitor_id)
        if lock is not None and lock.locked():
            lock.release()


class MonitorChecker:
    """Runs checks for individual monitors.

    A check only runs for the caller that wins both the in-process lock and
    the database in-flight flag, so one monitor never has two checks at once.
    """

    def __init__(
        self,
        monitor_repo: ContentMonitorRepository,
        change_repo: ContentChangeRepository,
        templates: TemplateRegistry,
        fetcher: ContentFetcherProtocol,
        clock: ClockProtocol | None = None,
        locks: MonitorLocks | None = None,
    ) -> None:
        self.monitor_repo = monitor_repo
        self.change_repo = change_repo
        self.templates = templates
        self.fetcher = fetcher
        self.clock = clock or SystemClock()
        self.locks = locks or MonitorLocks()

    def check(
        self,
        monitor_id: int,
        force: bool = False,
        cancel_event: threading.Event | None = None,
    ) -> CheckResult:
        """Check one monitor if it is due (or ``force`` is set)."""
        monitor = self._load(monitor_id)
        if monitor is None:
            msg = f"content monitor {monitor_id} not found"
            raise KeyError(msg)

        if not force and not is_due(monitor, self.clock.now()):
            return CheckResult(monitor_id=monitor_id, status=CheckStatus.SKIPPED)

        if not self.locks.acquire(monitor_id):
            logger.info("monitor_check_in_progress", monitor_id=monitor_id)
            return CheckResult(monitor_id=monitor_id, status=CheckStatus.SKIPPED)
        try:
            if not self.monitor_repo.try_begin_check(monitor_id):
                logger.info("monitor_check_in_progress", monitor_id=monitor_id)
                return CheckResult(monitor_id=monitor_id, status=CheckStatus.SKIPPED)
            try:
                return self._begin(monitor_id, force, cancel_event)
            except Exception:
                self.monitor_repo.release_check(monitor_id)
                raise
        finally:
            self.locks.release(monitor_id)

    def _load(self, monitor_id: int) -> ContentMonitor | None:
        row = self.monitor_repo.get_monitor(monitor_id)
        return ContentMonitor.model_validate(row) if row is not None else None

    def _begin(
        self, monitor_id: int, force: bool, cancel_event: threading.Event | None
    ) -> CheckResult:
        # Re-read once the flag is ours; another process may have completed a
        # check since the first read.
        monitor = self._load(monitor_id)
        if monitor is None:
            msg = f"content monitor {monitor_id} not found"
            raise KeyError(msg)
        idle = monitor.model_copy(update={"checking": False})
        if not force and not is_due(idle, self.clock.now()):
            self.monitor_repo.release_check(monitor_id)
            logger.info("monitor_no_longer_due", monitor_id=monitor_id)
            return CheckResult(monitor_id=monitor_id, status=CheckStatus.SKIPPED)
        return self._run(monitor_id, idle, cancel_event)

    def _run(
        self,
        monitor_id: int,
        monitor: ContentMonitor,
        cancel_event: threading.Event | None,
    ) -> CheckResult:
        started = time.monotonic()
        log = logger.bind(monitor_id=monitor_id, code=monitor.code, name=monitor.name)

        try:
            template = self.templates.resolve(monitor.code, monitor.name)
            source = monitor.url or template.source_url(monitor.channel_id)
            raw = self.fetcher.fetch(source)
            if cancel_event is not None and cancel_event.is_set():
                self.monitor_repo.release_check(monitor_id)
                log.info("monitor_check_cancelled")
                return CheckResult(monitor_id=monitor_id, status=CheckStatus.CANCELLED)
            snapshot = capture(template, raw, sort=monitor.sort, max_results=monitor.max_results)
        except (ConfigurationError, ExtractionFailure) as exc:
            return self._fail(monitor_id, monitor, exc, started)
        except Exception as exc:
            log.exception("monitor_check_crashed")
            return self._fail(monitor_id, monitor, exc, started)

        try:
            return self._record(monitor_id, monitor, snapshot, started)
        except Exception as exc:
            log.exception("monitor_check_crashed")
            return self._fail(monitor_id, monitor, exc, started)

    def _record(
        self,
        monitor_id: int,
        monitor: ContentMonitor,
        snapshot: ContentSnapshot,
        started: float,
    ) -> CheckResult:
        """Compare a fresh snapshot with the baseline and store the outcome."""
        log = logger.bind(monitor_id=monitor_id, code=monitor.code, name=monitor.name)
        after = snapshot.to_json()
        now = self.clock.now()
        elapsed = self._elapsed_ms(started)

        if monitor.snapshot is None:
            self.monitor_repo.finish_check(
                monitor_id, complete_success(monitor, now, elapsed), snapshot=after
            )
            log.info("monitor_baseline_captured", fields=len(snapshot))
            return CheckResult(
                monitor_id=monitor_id, status=CheckStatus.BASELINE, execution_time=elapsed
            )

        diff, difference = compare_snapshots(ContentSnapshot.from_json(monitor.snapshot), snapshot)

        if not should_record_change(difference, monitor.min_difference):
            self.monitor_repo.finish_check(monitor_id, complete_success(monitor, now, elapsed))
            status = CheckStatus.UNCHANGED if difference == 0 else CheckStatus.BELOW_THRESHOLD
            log.info("monitor_checked", difference=difference, status=str(status))
            return CheckResult(
                monitor_id=monitor_id,
                status=status,
                difference=difference,
                execution_time=elapsed,
            )

        open_change = self._open_change(monitor)
        if open_change is not None and open_change["status"] != ChangeStatus.NEW:
            # Changes under review are not re-evaluated; the difference is
            # detected again once the review completes.
            self.monitor_repo.finish_check(monitor_id, complete_success(monitor, now, elapsed))
            log.info("content_change_under_review", change_id=open_change["id"])
            return CheckResult(
                monitor_id=monitor_id,
                status=CheckStatus.PENDING_REVIEW,
                difference=difference,
                change_id=open_change["id"],
                execution_time=elapsed,
            )

        record: dict[str, Any] = {
            "code": monitor.code,
            "monitor_id": monitor_id,
            "snapshot_before": monitor.snapshot,
            "snapshot_after": after,
            "snapshot_diff": diff.to_json(),
            "snapshot_key": compute_snapshot_key(monitor.snapshot, after),
            "execution_time": elapsed,
            "difference": difference,
            "status": ChangeStatus.NEW,
            "sites": monitor.sites,
            "created_at": now,
        }
        try:
            if open_change is not None:
                change_id = open_change["id"]
                self.change_repo.update_change(
                    change_id,
                    {
                        key: record[key]
                        for key in (
                            "snapshot_after",
                            "snapshot_diff",
                            "snapshot_key",
                            "execution_time",
                            "difference",
                        )
                    },
                )
                created = False
            else:
                change_id, created = self.change_repo.upsert_change(record)
        except Exception as exc:
            log.error("change_write_failed", difference=difference, error=str(exc))
            return self._fail(monitor_id, monitor, exc, started, status=CheckStatus.WRITE_FAILED)

        self.monitor_repo.finish_check(
            monitor_id, complete_success(monitor, now, elapsed), change_id=change_id
        )
        status = CheckStatus.CHANGE_CREATED if created else CheckStatus.CHANGE_UPDATED
        log.info("monitor_change_detected", change_id=change_id, difference=difference)
        return CheckResult(
            monitor_id=monitor_id,
            status=status,
            difference=difference,
            change_id=change_id,
            execution_time=elapsed,
        )

    def _open_change(self, monitor: ContentMonitor) -> dict[str, Any] | None:
        if monitor.change_id is None:
            return None
        change = self.change_repo.get_change(monitor.change_id)
        if change is None or ChangeStatus(change["status"]).is_terminal:
            return None
        return change

    def _fail(
        self,
        monitor_id: int,
        monitor: ContentMonitor,
        exc: Exception,
        started: float,
        status: CheckStatus = CheckStatus.FAILED,
    ) -> CheckResult:
        elapsed = self._elapsed_ms(started)
        outcome = complete_failure(monitor, self.clock.now(), elapsed, str(exc))
        self.monitor_repo.finish_check(monitor_id, outcome)
        self.monitor_repo.store_processing_error(
            entity_type="monitor",
            entity_id=monitor_id,
            error_type=type(exc).__name__,
            error_message=str(exc) or type(exc).__name__,
            retry_count=outcome.retry,
            entity_ref=monitor.guid,
        )
        logger.warning(
            "monitor_check_failed",
            monitor_id=monitor_id,
            error=str(exc),
            retry=outcome.retry,
        )
        return CheckResult(
            monitor_id=monitor_id,
            status=status,
            execution_time=elapsed,
            error=str(exc),
        )

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
