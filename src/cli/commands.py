"""CLI command implementations for the content change monitoring engine."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import click

from src.models.config import Config
from src.services.database import Database
from src.utils.logger import configure_logging

if TYPE_CHECKING:
    from src.domains.extraction.services.template_registry import TemplateRegistry

STATUS_CHOICES = ["NEW", "UNDER_REVIEW", "APPROVED", "REJECTED"]


def _get_config() -> Config:
    """Load configuration from .env file."""
    return Config()


def _get_db(config: Config) -> Database:
    """Initialize database with schema."""
    db = Database(db_path=config.database_path)
    db.init_db()
    return db


def _get_templates(config: Config) -> TemplateRegistry:
    """Load every template document from the configured directory."""
    from src.domains.extraction.services.template_registry import TemplateRegistry

    registry = TemplateRegistry()
    registry.load_directory(config.templates_dir, providers_file=config.providers_file)
    return registry


def _print_summary(title: str, stats: dict[str, Any]) -> None:
    """Print a formatted summary of batch operation results."""
    click.echo(f"\n[SUCCESS] {title}")
    for key, value in stats.items():
        if key == "errors" and isinstance(value, list):
            if value:
                click.echo(f"  Errors ({len(value)}):")
                for error in value[:10]:
                    click.echo(f"    - {error}")
                if len(value) > 10:
                    click.echo(f"    ... and {len(value) - 10} more")
        elif key != "results":
            click.echo(f"  {key}: {value}")


# --- Templates ---


@click.command()
def validate_templates() -> None:
    """Load and resolve every template, reporting configuration errors."""
    config = _get_config()
    configure_logging(config.log_level)

    registry = _get_templates(config)
    errors = registry.validate_all()
    channels = sum(len(registry.channel_names(code)) for code in registry.codes())

    click.echo(f"\n[INFO] {len(registry.codes())} documents, {channels} channels")
    if errors:
        click.echo(f"[ERROR] {len(errors)} templates failed to load:")
        for name, exc in sorted(errors.items()):
            click.echo(f"  - {name}: {exc}")
        raise SystemExit(1)
    click.echo("[SUCCESS] All templates resolved.")


@click.command()
def sync_monitors() -> None:
    """Create or update one monitor per channel template."""
    config = _get_config()
    configure_logging(config.log_level)
    db = _get_db(config)

    from src.domains.monitoring.repositories.content_monitor_repository import (
        ContentMonitorRepository,
    )
    from src.domains.monitoring.services.monitor_registry import MonitorRegistry

    registry = MonitorRegistry(ContentMonitorRepository(db))
    templates = _get_templates(config)

    click.echo("[INFO] Syncing monitors from templates...")
    result = registry.sync_from_templates(templates, default_interval=config.default_interval)
    _print_summary("Monitor sync complete", result)
    db.close()


# --- Monitors ---


@click.command()
@click.option("--code", default=None, type=str, help="Only monitors of this organisation")
def list_monitors(code: str | None) -> None:
    """List monitors with their schedule and state."""
    config = _get_config()
    configure_logging(config.log_level)
    db = _get_db(config)

    from src.domains.monitoring.core.scheduling import monitor_state
    from src.domains.monitoring.repositories.content_monitor_repository import (
        ContentMonitorRepository,
    )
    from src.models.content_monitor import ContentMonitor
    from src.services.clock import SystemClock

    monitor_repo = ContentMonitorRepository(db)
    rows = monitor_repo.get_monitors_by_code(code) if code else monitor_repo.get_all_monitors()
    now = SystemClock().now()

    if not rows:
        click.echo("[INFO] No monitors found.")
    for row in rows:
        monitor = ContentMonitor.model_validate(row)
        last = row.get("last_checked_at") or "never"
        line = (
            f"  {monitor.id:>4} | {monitor.guid} | {monitor.content_type} | "
            f"{monitor_state(monitor, now)} | every {monitor.interval}m | "
            f"min {monitor.min_difference}% | last {last[:19]}"
        )
        if monitor.error_message:
            line += f" | retry {monitor.retry}: {monitor.error_message[:60]}"
        click.echo(line)
    db.close()


def _set_active(monitor_id: int, active: bool) -> None:
    config = _get_config()
    configure_logging(config.log_level)
    db = _get_db(config)

    from src.domains.monitoring.repositories.content_monitor_repository import (
        ContentMonitorRepository,
    )

    if ContentMonitorRepository(db).set_active(monitor_id, active):
        click.echo(f"[SUCCESS] Monitor {monitor_id} {'enabled' if active else 'disabled'}.")
    else:
        click.echo(f"[ERROR] Monitor {monitor_id} not found.")
    db.close()


@click.command()
@click.argument("monitor_id", type=int)
def enable_monitor(monitor_id: int) -> None:
    """Enable a monitor so it is checked when due."""
    _set_active(monitor_id, True)


@click.command()
@click.argument("monitor_id", type=int)
def disable_monitor(monitor_id: int) -> None:
    """Disable a monitor."""
    _set_active(monitor_id, False)


@click.command()
@click.argument("monitor_id", type=int)
def restart_monitor(monitor_id: int) -> None:
    """Clear a monitor's error, retry count and in-flight flag."""
    config = _get_config()
    configure_logging(config.log_level)
    db = _get_db(config)

    from src.domains.monitoring.repositories.content_monitor_repository import (
        ContentMonitorRepository,
    )

    monitor_repo = ContentMonitorRepository(db)
    if monitor_repo.get_monitor(monitor_id) is None:
        click.echo(f"[ERROR] Monitor {monitor_id} not found.")
    else:
        monitor_repo.restart_monitor(monitor_id)
        click.echo(f"[SUCCESS] Monitor {monitor_id} restarted.")
    db.close()


@click.command()
@click.option("--monitor-id", "monitor_ids", multiple=True, type=int, help="Check only these")
@click.option("--force", is_flag=True, help="Check even if not due")
@click.option("--max-workers", default=None, type=int, help="Parallel workers")
@click.option(
    "--output-format",
    default="summary",
    type=click.Choice(["summary", "json"]),
    help="Output format",
)
def run_checks(
    monitor_ids: tuple[int, ...],
    force: bool,
    max_workers: int | None,
    output_format: str,
) -> None:
    """Check due monitors (or the given ones) for content changes."""
    config = _get_config()
    configure_logging(config.log_level)
    db = _get_db(config)

    from src.domains.monitoring.repositories.content_change_repository import (
        ContentChangeRepository,
    )
    from src.domains.monitoring.repositories.content_monitor_repository import (
        ContentMonitorRepository,
    )
    from src.domains.monitoring.services.monitor_checker import MonitorChecker
    from src.domains.monitoring.services.monitor_scheduler import MonitorScheduler
    from src.services.content_fetcher import HttpContentFetcher

    monitor_repo = ContentMonitorRepository(db)
    fetcher = HttpContentFetcher(
        timeout=config.fetch_timeout,
        max_attempts=config.max_retry_attempts + 1,
        user_agent=config.user_agent,
    )
    checker = MonitorChecker(
        monitor_repo, ContentChangeRepository(db), _get_templates(config), fetcher
    )
    scheduler = MonitorScheduler(monitor_repo, checker)

    click.echo("[INFO] Running monitor checks...")
    result = scheduler.run_checks(
        monitor_ids=list(monitor_ids) or None,
        force=force,
        max_workers=max_workers or config.max_workers,
    )

    if output_format == "json":
        result["results"] = [
            {"monitor_id": r.monitor_id, "status": str(r.status), "difference": r.difference}
            for r in result["results"]
        ]
        click.echo(json.dumps(result, indent=2))
    else:
        _print_summary("Monitor checks complete", result)
    db.close()


# --- Changes ---


def _get_reviewer(db: Database, config: Config) -> Any:
    from src.domains.monitoring.repositories.content_change_repository import (
        ContentChangeRepository,
    )
    from src.domains.monitoring.repositories.content_monitor_repository import (
        ContentMonitorRepository,
    )
    from src.domains.monitoring.services.change_reviewer import ChangeReviewer

    return ChangeReviewer(
        ContentChangeRepository(db),
        ContentMonitorRepository(db),
        window_days=config.change_window_days,
    )


@click.command()
@click.option("--status", default=None, type=click.Choice(STATUS_CHOICES), help="Filter by status")
@click.option("--days", default=None, type=int, help="Recency window for reviewed changes")
def list_changes(status: str | None, days: int | None) -> None:
    """List NEW changes and changes created within the recency window."""
    config = _get_config()
    configure_logging(config.log_level)
    db = _get_db(config)

    changes = _get_reviewer(db, config).list_changes(status=status, days=days)
    if not changes:
        click.echo("[INFO] No changes to review.")
    for change in changes:
        click.echo(
            f"  {change['id']:>5} | {change['created_at'][:10]} | {change['status']:<12} | "
            f"{change['difference']:>3}% | {change['code']}/{change['monitor_name']}"
        )
    db.close()


@click.command()
@click.argument("change_id", type=int)
def show_change(change_id: int) -> None:
    """Display one change with its field-level diff."""
    config = _get_config()
    configure_logging(config.log_level)
    db = _get_db(config)

    try:
        change = _get_reviewer(db, config).show_change(change_id)
    except KeyError:
        click.echo(f"[ERROR] Change {change_id} not found.")
        db.close()
        return

    click.echo(f"\n[INFO] Change {change['id']} for monitor {change['monitor_id']}")
    click.echo(f"  Status: {change['status']}")
    click.echo(f"  Difference: {change['difference']}%")
    click.echo(f"  Created: {change['created_at']} by {change['created_by']}")
    if change["sites"]:
        click.echo(f"  Sites: {', '.join(change['sites'])}")
    click.echo("")
    click.echo(change["rendered_diff"] or "  (no field differences)")
    db.close()


@click.command()
@click.argument("change_id", type=int)
@click.option("--status", required=True, type=click.Choice(STATUS_CHOICES), help="New status")
@click.option("--user", required=True, type=str, help="Reviewer name")
def review_change(change_id: int, status: str, user: str) -> None:
    """Move a change through the review workflow."""
    config = _get_config()
    configure_logging(config.log_level)
    db = _get_db(config)

    from src.core.errors import InvalidTransitionError

    try:
        change = _get_reviewer(db, config).review(change_id, status, user)
    except KeyError:
        click.echo(f"[ERROR] Change {change_id} not found.")
    except InvalidTransitionError as exc:
        click.echo(f"[ERROR] {exc}")
    else:
        click.echo(f"[SUCCESS] Change {change_id} is now {change['status']}.")
    db.close()
