"""Generic batch processor for parallel operations."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING, Any

import structlog

from src.utils.progress import ProgressTracker

if TYPE_CHECKING:
    import threading
    from collections.abc import Callable

logger = structlog.get_logger(__name__)


def process_batch(
    items: list[Any],
    process_fn: Callable[[Any], Any],
    max_workers: int = 5,
    cancel_event: threading.Event | None = None,
    describe: Callable[[Any], str] = str,
    operation: str = "batch",
    outcome: Callable[[Any], str] | None = None,
) -> dict[str, Any]:
    """Process items in parallel using ThreadPoolExecutor.

    Items are independent units of work with no ordering guarantee. Once
    ``cancel_event`` is set, items that have not started are skipped.

    ``outcome`` labels each successful result; the labels are tallied in
    the summary's 'outcomes'. Returns summary stats dict with an additional
    'results' key containing the list of successful return values.
    """
    tracker = ProgressTracker(total=len(items), operation=operation)
    results: list[Any] = []

    def _run(item: Any) -> tuple[bool, Any]:
        if cancel_event is not None and cancel_event.is_set():
            return False, None
        return True, process_fn(item)

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {executor.submit(_run, item): item for item in items}

        for future in as_completed(futures):
            item = futures[future]
            try:
                started, result = future.result()
            except Exception as exc:
                logger.error(
                    "batch_item_failed",
                    item=describe(item)[:100],
                    error=str(exc),
                )
                tracker.record_failure(str(exc))
            else:
                if started:
                    results.append(result)
                    tracker.record_success(outcome(result) if outcome else None)
                else:
                    tracker.record_skip()

            tracker.log_progress(every_n=10)

    summary = tracker.summary()
    summary["results"] = results
    return summary
