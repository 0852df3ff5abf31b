"""In-memory registry of content monitors, synced from templates and the database."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any

import structlog

from src.core.errors import ConfigurationError
from src.domains.monitoring.core.content_types import build_monitor, infer_content_type
from src.domains.monitoring.core.scheduling import monitor_defaults
from src.models.content_monitor import ContentMonitor
from src.utils.progress import ProgressTracker

if TYPE_CHECKING:
    from src.domains.extraction.services.template_registry import TemplateRegistry
    from src.domains.monitoring.repositories.content_monitor_repository import (
        ContentMonitorRepository,
    )

logger = structlog.get_logger(__name__)


class MonitorRegistry:
    """Holds the known monitors keyed by id.

    Built once at startup and passed to consumers; ``load`` and ``reload``
    refresh it from the repository.
    """

    def __init__(self, monitor_repo: ContentMonitorRepository) -> None:
        self.monitor_repo = monitor_repo
        self._lock = threading.RLock()
        self._monitors: dict[int, ContentMonitor] = {}

    def load(self) -> int:
        """Load every monitor from the repository, replacing the current entries."""
        monitors = {}
        for row in self.monitor_repo.get_all_monitors():
            monitor = ContentMonitor.model_validate(row)
            if monitor.id is not None:
                monitors[monitor.id] = monitor
        with self._lock:
            self._monitors = monitors
        logger.info("monitors_loaded", count=len(monitors))
        return len(monitors)

    reload = load

    def add(self, monitor: ContentMonitor) -> None:
        if monitor.id is None:
            msg = "cannot register a monitor without an id"
            raise ValueError(msg)
        with self._lock:
            self._monitors[monitor.id] = monitor

    def set(self, monitor: ContentMonitor) -> None:
        """Replace an existing entry by id."""
        if monitor.id is None:
            msg = "cannot register a monitor without an id"
            raise ValueError(msg)
        with self._lock:
            if monitor.id not in self._monitors:
                msg = f"content monitor {monitor.id} is not registered"
                raise KeyError(msg)
            self._monitors[monitor.id] = monitor

    def get(self, monitor_id: int) -> ContentMonitor | None:
        with self._lock:
            return self._monitors.get(monitor_id)

    def get_by_guid(self, guid: str) -> ContentMonitor | None:
        with self._lock:
            return next((m for m in self._monitors.values() if m.guid == guid), None)

    def list_monitors(self) -> list[ContentMonitor]:
        with self._lock:
            return sorted(self._monitors.values(), key=lambda m: (m.code, m.name))

    def list_by_channel_id(self, channel_id: str) -> list[ContentMonitor]:
        """Monitors watching the given video channel."""
        return [monitor for monitor in self.list_monitors() if monitor.channel_id == channel_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._monitors)

    def sync_from_templates(
        self,
        templates: TemplateRegistry,
        default_interval: int = 60,
    ) -> dict[str, Any]:
        """Create or update one monitor per channel template.

        Monitor settings come from the document's ``monitor:`` section; the
        check state of existing monitors is left untouched.
        """
        entries = [
            (code, channel)
            for code in templates.codes()
            for channel in templates.channel_names(code)
        ]
        tracker = ProgressTracker(total=len(entries), operation="monitor_sync")

        for code, channel in entries:
            try:
                template = templates.resolve(code, channel)
                content_type = infer_content_type(template)
                defaults = {
                    "interval": default_interval,
                    **monitor_defaults(templates.monitor_defaults(code), content_type),
                }
                monitor = build_monitor(content_type, code, template, defaults)
                _, was_created = self.monitor_repo.upsert_monitor(monitor.model_dump())
                tracker.record_success("created" if was_created else "updated")
            except (ConfigurationError, ValueError) as exc:
                logger.error("monitor_sync_failed", code=code, channel=channel, error=str(exc))
                self.monitor_repo.store_processing_error(
                    entity_type="template",
                    entity_id=None,
                    error_type=type(exc).__name__,
                    error_message=str(exc),
                    entity_ref=f"{code}/{channel}",
                )
                tracker.record_failure(f"{code}/{channel}: {exc}")

            tracker.log_progress(every_n=10)

        self.load()
        summary = tracker.summary()
        summary["created"] = tracker.outcomes["created"]
        summary["updated"] = tracker.outcomes["updated"]
        return summary
