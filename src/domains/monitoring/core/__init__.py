"""Monitoring domain core -- pure functions for snapshot comparison, scheduling and review."""

from __future__ import annotations

from src.domains.monitoring.core.change_detection import (
    ChangeKind,
    FieldDelta,
    SnapshotDiff,
    calculate_similarity,
    compare_snapshots,
    difference_percent,
    render_diff,
)
from src.domains.monitoring.core.change_workflow import (
    can_transition,
    is_open,
    releases_baseline,
    validate_transition,
)
from src.domains.monitoring.core.checksum import compute_content_checksum, compute_snapshot_key
from src.domains.monitoring.core.content_types import (
    MONITOR_CONSTRUCTORS,
    build_monitor,
    infer_content_type,
)
from src.domains.monitoring.core.scheduling import (
    MonitorState,
    apply_sort_and_cap,
    complete_failure,
    complete_success,
    is_due,
    is_listed,
    monitor_defaults,
    monitor_state,
    should_record_change,
)

__all__ = [
    # change_detection
    "ChangeKind",
    "FieldDelta",
    "SnapshotDiff",
    "calculate_similarity",
    "compare_snapshots",
    "difference_percent",
    "render_diff",
    # change_workflow
    "can_transition",
    "is_open",
    "releases_baseline",
    "validate_transition",
    # checksum
    "compute_content_checksum",
    "compute_snapshot_key",
    # content_types
    "MONITOR_CONSTRUCTORS",
    "build_monitor",
    "infer_content_type",
    # scheduling
    "MonitorState",
    "apply_sort_and_cap",
    "complete_failure",
    "complete_success",
    "is_due",
    "is_listed",
    "monitor_defaults",
    "monitor_state",
    "should_record_change",
]
