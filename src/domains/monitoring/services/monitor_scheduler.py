"""Runs due monitor checks in parallel."""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING, Any

import structlog

from src.domains.monitoring.core.scheduling import is_due
from src.models.content_monitor import ContentMonitor
from src.services.batch_processor import process_batch

if TYPE_CHECKING:
    import threading

    from src.domains.monitoring.repositories.content_monitor_repository import (
        ContentMonitorRepository,
    )
    from src.domains.monitoring.services.monitor_checker import MonitorChecker

logger = structlog.get_logger(__name__)


class MonitorScheduler:
    """Selects due monitors and checks them concurrently."""

    def __init__(self, monitor_repo: ContentMonitorRepository, checker: MonitorChecker) -> None:
        self.monitor_repo = monitor_repo
        self.checker = checker

    def due_monitors(self) -> list[ContentMonitor]:
        now = self.checker.clock.now()
        monitors = [
            ContentMonitor.model_validate(row)
            for row in self.monitor_repo.get_all_monitors(active_only=True)
        ]
        return [monitor for monitor in monitors if is_due(monitor, now)]

    def run_checks(
        self,
        monitor_ids: list[int] | None = None,
        force: bool = False,
        max_workers: int = 5,
        cancel_event: threading.Event | None = None,
    ) -> dict[str, Any]:
        """Check the given monitors, or every due monitor.

        Returns summary stats with a count per check status.
        """
        if monitor_ids is None:
            ids = [monitor.id for monitor in self.due_monitors() if monitor.id is not None]
        else:
            ids = list(monitor_ids)

        logger.info("monitor_checks_starting", monitors=len(ids), force=force)

        summary = process_batch(
            ids,
            lambda monitor_id: self.checker.check(
                monitor_id, force=force, cancel_event=cancel_event
            ),
            max_workers=max_workers,
            cancel_event=cancel_event,
            describe=lambda monitor_id: f"monitor {monitor_id}",
            operation="monitor_checks",
            outcome=lambda result: str(result.status),
        )

        statuses = Counter(summary.pop("outcomes"))
        summary["statuses"] = dict(statuses)
        summary["changes_recorded"] = statuses["change_created"] + statuses["change_updated"]
        summary["check_failures"] = statuses["failed"] + statuses["write_failed"]

        logger.info(
            "monitor_checks_completed",
            checked=summary["successful"],
            changes=summary["changes_recorded"],
            failures=summary["check_failures"],
        )
        return summary
