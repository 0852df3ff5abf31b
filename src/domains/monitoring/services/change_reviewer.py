"""Review workflow service for content changes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from src.core.errors import InvalidTransitionError
from src.domains.monitoring.core.change_detection import SnapshotDiff, render_diff
from src.domains.monitoring.core.change_workflow import releases_baseline, validate_transition
from src.domains.monitoring.core.scheduling import DEFAULT_CHANGE_WINDOW_DAYS
from src.services.clock import SystemClock

if TYPE_CHECKING:
    from src.domains.monitoring.repositories.content_change_repository import (
        ContentChangeRepository,
    )
    from src.domains.monitoring.repositories.content_monitor_repository import (
        ContentMonitorRepository,
    )
    from src.models.content_change import ChangeStatus
    from src.services.protocols import ClockProtocol

logger = structlog.get_logger(__name__)


class ChangeReviewer:
    """Moves content changes through review and lists them for operators."""

    def __init__(
        self,
        change_repo: ContentChangeRepository,
        monitor_repo: ContentMonitorRepository,
        clock: ClockProtocol | None = None,
        window_days: int = DEFAULT_CHANGE_WINDOW_DAYS,
    ) -> None:
        self.change_repo = change_repo
        self.monitor_repo = monitor_repo
        self.clock = clock or SystemClock()
        self.window_days = window_days

    def review(self, change_id: int, status: ChangeStatus | str, user: str) -> dict[str, Any]:
        """Apply a review decision to a change.

        A terminal decision makes the change's after-snapshot the monitor's
        new baseline and closes the monitor's open change.
        """
        change = self.change_repo.get_change(change_id)
        if change is None:
            msg = f"content change {change_id} not found"
            raise KeyError(msg)

        target = validate_transition(change["status"], status)
        if not self.change_repo.update_status(change_id, target, expected=change["status"]):
            msg = f"content change {change_id} was reviewed concurrently"
            raise InvalidTransitionError(msg)

        if releases_baseline(target):
            monitor = self.monitor_repo.get_monitor(change["monitor_id"])
            if monitor is not None and monitor.get("change_id") in (change_id, None):
                self.monitor_repo.update_baseline(change["monitor_id"], change["snapshot_after"])

        logger.info(
            "content_change_reviewed",
            change_id=change_id,
            status=str(target),
            previous=change["status"],
            user=user,
        )
        updated = self.change_repo.get_change(change_id)
        if updated is None:
            msg = f"content change {change_id} was deleted during review"
            raise KeyError(msg)
        return updated

    def list_changes(
        self,
        status: ChangeStatus | str | None = None,
        days: int | None = None,
    ) -> list[dict[str, Any]]:
        """List NEW changes plus any created within the recency window."""
        return self.change_repo.list_changes(
            status=str(status) if status else None,
            now=self.clock.now(),
            window_days=days or self.window_days,
        )

    def show_change(self, change_id: int) -> dict[str, Any]:
        """Return a change with an operator-facing rendering of its diff."""
        change = self.change_repo.get_change(change_id)
        if change is None:
            msg = f"content change {change_id} not found"
            raise KeyError(msg)
        change["rendered_diff"] = render_diff(SnapshotDiff.from_json(change["snapshot_diff"]))
        return change
