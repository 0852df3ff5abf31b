"""CLI entry point for the content change monitoring engine."""

from __future__ import annotations

import click

from src.cli.commands import (
    disable_monitor,
    enable_monitor,
    list_changes,
    list_monitors,
    restart_monitor,
    review_change,
    run_checks,
    show_change,
    sync_monitors,
    validate_templates,
)


@click.group()
def cli() -> None:
    """Content Change Monitoring & Field-Extraction Engine."""


cli.add_command(validate_templates)
cli.add_command(sync_monitors)
cli.add_command(list_monitors)
cli.add_command(enable_monitor)
cli.add_command(disable_monitor)
cli.add_command(restart_monitor)
cli.add_command(run_checks)
cli.add_command(list_changes)
cli.add_command(show_change)
cli.add_command(review_change)
