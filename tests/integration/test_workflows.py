"""Integration tests for end-to-end workflows.

Exercise complete workflows across multiple components: template documents on
disk, monitor sync, scheduled checks, change review and the CLI. Real Database
with tmp_path; only the content source is stubbed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest
import yaml
from click.testing import CliRunner

from src.cli import cli
from src.domains.extraction.services.template_registry import TemplateRegistry
from src.domains.monitoring.services.change_reviewer import ChangeReviewer
from src.domains.monitoring.services.monitor_checker import CheckStatus, MonitorChecker
from src.domains.monitoring.services.monitor_registry import MonitorRegistry
from src.domains.monitoring.services.monitor_scheduler import MonitorScheduler
from src.services.content_fetcher import HttpContentFetcher

if TYPE_CHECKING:
    from pathlib import Path

    from src.domains.monitoring.repositories.content_change_repository import (
        ContentChangeRepository,
    )
    from src.domains.monitoring.repositories.content_monitor_repository import (
        ContentMonitorRepository,
    )
    from tests.conftest import FakeClock, StubFetcher

BLOG_URL = "https://acme.example/blog"
VIDEO_URL = "https://video.example/channel/UC123"

FEED = "<entry><title>intro</title><summary>hello</summary></entry>"
PAGE_V1 = "<h1>Launch</h1><p>First post</p>"
PAGE_V2 = "<h1>Launch</h1><p>First post</p><p>Second post</p>"


@pytest.fixture
def templates_dir(tmp_path: Path, sample_document: dict[str, Any]) -> Path:
    directory = tmp_path / "templates"
    directory.mkdir()
    (directory / "acme.yml").write_text(yaml.safe_dump(sample_document), encoding="utf-8")
    return directory


class TestMonitoringWorkflow:
    """Templates on disk through to a reviewed change."""

    def test_full_cycle(
        self,
        templates_dir: Path,
        monitor_repo: ContentMonitorRepository,
        change_repo: ContentChangeRepository,
        fetcher: StubFetcher,
        clock: FakeClock,
    ) -> None:
        templates = TemplateRegistry()
        loaded = templates.load_directory(templates_dir)
        assert loaded == {"documents": 1, "changed": 1, "removed": 0, "errors": 0}

        registry = MonitorRegistry(monitor_repo)
        assert registry.sync_from_templates(templates)["created"] == 2

        fetcher.pages.update({BLOG_URL: PAGE_V1, VIDEO_URL: FEED})
        checker = MonitorChecker(monitor_repo, change_repo, templates, fetcher, clock=clock)
        scheduler = MonitorScheduler(monitor_repo, checker)

        # First pass captures baselines only
        assert scheduler.run_checks()["statuses"] == {"baseline": 2}

        clock.advance(minutes=30)
        fetcher.pages[BLOG_URL] = PAGE_V2
        result = scheduler.run_checks()
        assert result["changes_recorded"] == 1

        reviewer = ChangeReviewer(change_repo, monitor_repo, clock=clock)
        [change] = reviewer.list_changes(status="NEW")
        assert change["monitor_name"] == "blog"
        assert change["content_type"] == "ROUNDUP"

        reviewer.review(change["id"], "UNDER_REVIEW", "alice")
        reviewer.review(change["id"], "APPROVED", "alice")

        blog = registry.get_by_guid("RUP-acme-blog")
        assert blog is not None and blog.id is not None
        clock.advance(minutes=30)
        assert checker.check(blog.id).status == CheckStatus.UNCHANGED

    def test_template_edit_is_picked_up_on_reload(
        self,
        templates_dir: Path,
        sample_document: dict[str, Any],
        monitor_repo: ContentMonitorRepository,
        change_repo: ContentChangeRepository,
        fetcher: StubFetcher,
        clock: FakeClock,
    ) -> None:
        templates = TemplateRegistry()
        templates.load_directory(templates_dir)
        MonitorRegistry(monitor_repo).sync_from_templates(templates)
        blog = monitor_repo.get_monitor_by_guid("ROUNDUP", "RUP-acme-blog")
        assert blog is not None

        fetcher.pages[BLOG_URL] = "<h1>Launch</h1><h2>Subtitle</h2><p>First post</p>"
        checker = MonitorChecker(monitor_repo, change_repo, templates, fetcher, clock=clock)
        checker.check(blog["id"])

        sample_document["channels"][1]["blog"]["fields"]["headline"] = "<h2>(.*?)</h2>"
        (templates_dir / "acme.yml").write_text(
            yaml.safe_dump(sample_document), encoding="utf-8"
        )
        assert templates.load_directory(templates_dir)["changed"] == 1

        clock.advance(minutes=30)
        result = checker.check(blog["id"])
        assert result.status == CheckStatus.CHANGE_CREATED
        change = change_repo.get_change(result.change_id)
        assert change is not None
        assert '"headline":"Subtitle"' in change["snapshot_after"]

    def test_broken_template_does_not_block_others(
        self,
        templates_dir: Path,
        monitor_repo: ContentMonitorRepository,
    ) -> None:
        (templates_dir / "globex.yml").write_text(
            "channels:\n  news:\n    url: https://globex.example\n    fields:\n"
            "      title: '(unclosed'\n",
            encoding="utf-8",
        )
        templates = TemplateRegistry()
        templates.load_directory(templates_dir)
        assert set(templates.validate_all()) == {"globex/news"}

        result = MonitorRegistry(monitor_repo).sync_from_templates(templates)
        assert result["created"] == 2
        assert result["failed"] == 1


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


@pytest.fixture
def pages() -> dict[str, str]:
    return {BLOG_URL: PAGE_V1, VIDEO_URL: FEED}


@pytest.fixture
def runner(
    tmp_path: Path,
    templates_dir: Path,
    pages: dict[str, str],
    monkeypatch: pytest.MonkeyPatch,
) -> CliRunner:
    """CLI runner against a temporary database, templates and stubbed fetches."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "data" / "monitors.db"))
    monkeypatch.setenv("TEMPLATES_DIR", str(templates_dir))
    monkeypatch.setattr("src.cli.commands.configure_logging", lambda log_level: None)
    monkeypatch.setattr(HttpContentFetcher, "fetch", lambda self, source_ref: pages[source_ref])
    return CliRunner()


class TestCli:
    """Commands run in sequence against one database."""

    def test_validate_templates(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["validate-templates"])
        assert result.exit_code == 0
        assert "1 documents, 2 channels" in result.output
        assert "[SUCCESS]" in result.output

    def test_validate_templates_reports_errors(
        self, runner: CliRunner, templates_dir: Path
    ) -> None:
        (templates_dir / "broken.yml").write_text("channels: [unclosed", encoding="utf-8")
        result = runner.invoke(cli, ["validate-templates"])
        assert result.exit_code == 1
        assert "broken" in result.output

    def test_sync_and_list_monitors(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["sync-monitors"])
        assert result.exit_code == 0
        assert "created: 2" in result.output

        result = runner.invoke(cli, ["list-monitors", "--code", "acme"])
        assert "VID-acme-acme-videos" in result.output
        assert "RUP-acme-blog" in result.output

    def test_check_review_cycle(self, runner: CliRunner, pages: dict[str, str]) -> None:
        runner.invoke(cli, ["sync-monitors"])

        result = runner.invoke(cli, ["run-checks"])
        assert result.exit_code == 0
        assert "statuses: {'baseline': 2}" in result.output

        pages[BLOG_URL] = PAGE_V2
        result = runner.invoke(cli, ["run-checks", "--force"])
        assert "changes_recorded: 1" in result.output

        result = runner.invoke(cli, ["list-changes", "--status", "NEW"])
        assert "acme/blog" in result.output

        result = runner.invoke(cli, ["show-change", "1"])
        assert "+Second post" in result.output

        result = runner.invoke(cli, ["review-change", "1", "--status", "APPROVED", "--user", "al"])
        assert "[SUCCESS] Change 1 is now APPROVED." in result.output

        result = runner.invoke(cli, ["review-change", "1", "--status", "NEW", "--user", "al"])
        assert "[ERROR]" in result.output

    def test_missing_entities(self, runner: CliRunner) -> None:
        assert "[ERROR]" in runner.invoke(cli, ["show-change", "9"]).output
        assert "[ERROR]" in runner.invoke(cli, ["restart-monitor", "9"]).output
        assert "[ERROR]" in runner.invoke(cli, ["disable-monitor", "9"]).output

    def test_disable_and_restart(self, runner: CliRunner) -> None:
        runner.invoke(cli, ["sync-monitors"])
        assert "disabled" in runner.invoke(cli, ["disable-monitor", "1"]).output

        result = runner.invoke(cli, ["run-checks"])
        assert "statuses: {'baseline': 1}" in result.output
        assert "restarted" in runner.invoke(cli, ["restart-monitor", "1"]).output
