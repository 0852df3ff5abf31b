"""Monitor scheduling policy: due checks, threshold gating and listing windows."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from src.domains.extraction.core.snapshot_capture import sort_and_cap
from src.models.content_change import ChangeStatus

if TYPE_CHECKING:
    from src.models.content_change import ContentChange
    from src.models.content_monitor import ContentMonitor, ContentType

DEFAULT_CHANGE_WINDOW_DAYS = 7

# Keys of the per-content-type "monitor:" defaults section
MONITOR_DEFAULT_KEYS = {
    "active": "active",
    "interval": "interval",
    "difference": "min_difference",
    "sort": "sort",
    "max-results": "max_results",
}


class MonitorState(StrEnum):
    INACTIVE = "INACTIVE"
    ACTIVE = "ACTIVE"
    DUE = "DUE"
    CHECKING = "CHECKING"


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def is_due(monitor: ContentMonitor, now: datetime) -> bool:
    """True when an active, idle monitor's interval has elapsed since its last success."""
    if not monitor.active or monitor.checking:
        return False
    if monitor.last_checked_at is None:
        return True
    elapsed = _aware(now) - _aware(monitor.last_checked_at)
    return elapsed >= timedelta(minutes=monitor.interval)


def monitor_state(monitor: ContentMonitor, now: datetime) -> MonitorState:
    if not monitor.active:
        return MonitorState.INACTIVE
    if monitor.checking:
        return MonitorState.CHECKING
    if is_due(monitor, now):
        return MonitorState.DUE
    return MonitorState.ACTIVE


def next_check_at(monitor: ContentMonitor) -> datetime | None:
    """When the monitor next becomes due, or None if it is due already."""
    if monitor.last_checked_at is None:
        return None
    return _aware(monitor.last_checked_at) + timedelta(minutes=monitor.interval)


def should_record_change(difference: int, min_difference: int) -> bool:
    """A change is recorded for any difference at or above the monitor's threshold.

    A difference of 0 never produces a change, whatever the threshold.
    """
    return difference > 0 and difference >= min_difference


def apply_sort_and_cap(
    items: list[dict[str, Any]],
    sort: str = "",
    max_results: int = 0,
) -> list[dict[str, Any]]:
    """Order candidate list results by the monitor's sort, then cap them."""
    return sort_and_cap(items, sort, max_results)


def is_listed(
    change: ContentChange,
    now: datetime,
    window_days: int = DEFAULT_CHANGE_WINDOW_DAYS,
) -> bool:
    """NEW changes are always listed; others only within the recency window."""
    if change.status == ChangeStatus.NEW:
        return True
    return _aware(change.created_at) >= _aware(now) - timedelta(days=window_days)


def listing_cutoff(now: datetime, window_days: int = DEFAULT_CHANGE_WINDOW_DAYS) -> datetime:
    return _aware(now) - timedelta(days=window_days)


@dataclass(frozen=True)
class CheckOutcome:
    """Monitor fields to persist when a check completes."""

    last_checked_at: datetime | None
    executed_at: datetime
    execution_time: int
    error_message: str | None
    retry: int


def complete_success(monitor: ContentMonitor, now: datetime, execution_time: int) -> CheckOutcome:
    """Success advances the last-checked time, clears the error and resets retry."""
    return CheckOutcome(
        last_checked_at=now,
        executed_at=now,
        execution_time=execution_time,
        error_message=None,
        retry=0,
    )


def complete_failure(
    monitor: ContentMonitor,
    now: datetime,
    execution_time: int,
    error: str,
) -> CheckOutcome:
    """Failure keeps the last-checked time so the monitor stays due."""
    return CheckOutcome(
        last_checked_at=monitor.last_checked_at,
        executed_at=now,
        execution_time=execution_time,
        error_message=error,
        retry=monitor.retry + 1,
    )


def monitor_defaults(
    section: dict[str, Any] | None,
    content_type: ContentType | None = None,
) -> dict[str, Any]:
    """Map a ``monitor:`` YAML section onto ContentMonitor field names.

    Top-level keys apply to every content type; a nested mapping keyed by a
    content type's tag (``video``, ``white-paper``...) overrides them for that
    type. Unknown keys are ignored.
    """
    if not section:
        return {}
    merged = {key: value for key, value in section.items() if not isinstance(value, dict)}
    if content_type is not None:
        nested = section.get(content_type.tag) or section.get(content_type.value)
        if isinstance(nested, dict):
            merged.update(nested)
    return {
        MONITOR_DEFAULT_KEYS[key]: value
        for key, value in merged.items()
        if key in MONITOR_DEFAULT_KEYS and value is not None
    }
