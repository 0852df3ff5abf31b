"""Review workflow for detected content changes."""

from __future__ import annotations

from src.core.errors import InvalidTransitionError
from src.models.content_change import ChangeStatus

ALLOWED_TRANSITIONS: dict[ChangeStatus, frozenset[ChangeStatus]] = {
    ChangeStatus.NEW: frozenset(
        {ChangeStatus.UNDER_REVIEW, ChangeStatus.APPROVED, ChangeStatus.REJECTED}
    ),
    ChangeStatus.UNDER_REVIEW: frozenset({ChangeStatus.APPROVED, ChangeStatus.REJECTED}),
    ChangeStatus.APPROVED: frozenset(),
    ChangeStatus.REJECTED: frozenset(),
}


def can_transition(current: ChangeStatus, target: ChangeStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def validate_transition(current: ChangeStatus | str, target: ChangeStatus | str) -> ChangeStatus:
    """Check a status transition, returning the target status.

    Raises InvalidTransitionError for unknown statuses, transitions out of a
    terminal state and any transition the workflow does not allow.
    """
    try:
        current_status = ChangeStatus(current)
        target_status = ChangeStatus(target)
    except ValueError as exc:
        raise InvalidTransitionError(str(exc)) from exc

    if not can_transition(current_status, target_status):
        msg = f"cannot move content change from {current_status} to {target_status}"
        raise InvalidTransitionError(msg)
    return target_status


def is_open(status: ChangeStatus | str) -> bool:
    """An open change still awaits a review decision."""
    return not ChangeStatus(status).is_terminal


def releases_baseline(status: ChangeStatus | str) -> bool:
    """True when reaching this status makes the change's after-snapshot the new baseline."""
    return ChangeStatus(status).is_terminal
