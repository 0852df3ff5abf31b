"""Unit tests for all Pydantic models.

Tests validation logic, boundary conditions and edge cases for every model in
src/models/. These tests call actual Pydantic constructors with no mocking.
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from src.models.config import Config
from src.models.content_change import ChangeStatus, ContentChange
from src.models.content_monitor import ContentMonitor, ContentType, build_guid
from src.models.processing_error import ProcessingError

VALID_KEY = "a" * 32
PAST_DATETIME = datetime(2024, 1, 15, 12, 0, 0, tzinfo=UTC)


def _valid_monitor_kwargs() -> dict:
    return {
        "code": "acme",
        "name": "blog",
        "content_type": ContentType.ROUNDUP,
        "url": "https://acme.example/blog",
    }


def _valid_change_kwargs() -> dict:
    return {
        "code": "acme",
        "monitor_id": 1,
        "snapshot_after": '{"title":"Hi"}',
        "snapshot_key": VALID_KEY,
        "difference": 10,
    }


def _valid_processing_error_kwargs() -> dict:
    return {
        "entity_type": "monitor",
        "entity_id": 1,
        "error_type": "ExtractionFailure",
        "error_message": "Connection refused",
        "occurred_at": PAST_DATETIME,
    }


# ---------------------------------------------------------------------------
# ContentType
# ---------------------------------------------------------------------------


class TestContentType:
    """Tests for ContentType codes and lookups."""

    @pytest.mark.parametrize(
        ("content_type", "code", "tag"),
        [
            (ContentType.VIDEO, "VID", "video"),
            (ContentType.EVENT, "EVT", "event"),
            (ContentType.ROUNDUP, "RUP", "roundup"),
            (ContentType.WHITE_PAPER, "WPR", "white-paper"),
            (ContentType.EBOOK, "EBK", "ebook"),
            (ContentType.PODCAST, "POD", "podcast"),
        ],
    )
    def test_code_and_tag(self, content_type: ContentType, code: str, tag: str) -> None:
        assert content_type.code == code
        assert content_type.tag == tag

    @pytest.mark.parametrize("value", ["WHITE_PAPER", "white-paper", "WPR", " wpr "])
    def test_from_code(self, value: str) -> None:
        assert ContentType.from_code(value) == ContentType.WHITE_PAPER

    def test_from_unknown_code(self) -> None:
        with pytest.raises(ValueError, match="unknown content type"):
            ContentType.from_code("hologram")

    def test_build_guid(self) -> None:
        assert build_guid(ContentType.PODCAST, "acme", "weekly") == "POD-acme-weekly"


# ---------------------------------------------------------------------------
# ContentMonitor
# ---------------------------------------------------------------------------


class TestContentMonitor:
    """Tests for the ContentMonitor model."""

    def test_valid_minimal(self) -> None:
        monitor = ContentMonitor(**_valid_monitor_kwargs())
        assert monitor.guid == "RUP-acme-blog"
        assert monitor.active is True
        assert monitor.interval == 60
        assert monitor.min_difference == 0
        assert monitor.retry == 0
        assert monitor.checking is False
        assert monitor.sites == []
        assert monitor.created_at.tzinfo is not None

    def test_explicit_guid_is_kept(self) -> None:
        monitor = ContentMonitor(**_valid_monitor_kwargs(), guid="custom")
        assert monitor.guid == "custom"

    def test_code_and_name_are_stripped(self) -> None:
        kwargs = {**_valid_monitor_kwargs(), "code": " acme ", "name": " blog "}
        monitor = ContentMonitor(**kwargs)
        assert monitor.code == "acme"
        assert monitor.name == "blog"

    @pytest.mark.parametrize("field_name", ["code", "name"])
    def test_blank_identity_rejected(self, field_name: str) -> None:
        with pytest.raises(ValidationError, match="must not be empty"):
            ContentMonitor(**{**_valid_monitor_kwargs(), field_name: "  "})

    def test_interval_must_be_positive(self) -> None:
        with pytest.raises(ValidationError, match="interval must be at least 1"):
            ContentMonitor(**_valid_monitor_kwargs(), interval=0)

    @pytest.mark.parametrize("value", [-1, 101])
    def test_min_difference_out_of_range(self, value: int) -> None:
        with pytest.raises(ValidationError, match="min_difference"):
            ContentMonitor(**_valid_monitor_kwargs(), min_difference=value)

    @pytest.mark.parametrize("value", [0, 100])
    def test_min_difference_boundaries(self, value: int) -> None:
        monitor = ContentMonitor(**_valid_monitor_kwargs(), min_difference=value)
        assert monitor.min_difference == value

    def test_negative_retry_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ContentMonitor(**_valid_monitor_kwargs(), retry=-1)

    def test_sites_from_json(self) -> None:
        monitor = ContentMonitor(**_valid_monitor_kwargs(), sites='["main", "docs"]')
        assert monitor.sites == ["main", "docs"]

    def test_sites_from_comma_separated(self) -> None:
        monitor = ContentMonitor(**_valid_monitor_kwargs(), sites="main, docs")
        assert monitor.sites == ["main", "docs"]

    def test_sites_none_is_empty(self) -> None:
        assert ContentMonitor(**_valid_monitor_kwargs(), sites=None).sites == []

    def test_content_type_from_string(self) -> None:
        kwargs = {**_valid_monitor_kwargs(), "content_type": "VIDEO"}
        assert ContentMonitor(**kwargs).content_type == ContentType.VIDEO

    def test_unknown_content_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ContentMonitor(**{**_valid_monitor_kwargs(), "content_type": "HOLOGRAM"})

    def test_database_row_coerces(self) -> None:
        """Rows come back with integer booleans and ISO timestamps."""
        row = {
            **_valid_monitor_kwargs(),
            "id": 3,
            "active": 0,
            "checking": 1,
            "last_checked_at": "2024-01-15T12:00:00+00:00",
        }
        monitor = ContentMonitor.model_validate(row)
        assert monitor.active is False
        assert monitor.checking is True
        assert monitor.last_checked_at == PAST_DATETIME


# ---------------------------------------------------------------------------
# ContentChange
# ---------------------------------------------------------------------------


class TestContentChange:
    """Tests for the ContentChange model."""

    def test_valid_minimal(self) -> None:
        change = ContentChange(**_valid_change_kwargs())
        assert change.status == ChangeStatus.NEW
        assert change.snapshot_before is None
        assert change.snapshot_diff == "[]"
        assert change.created_by == "system"

    def test_snapshot_key_lowercased(self) -> None:
        change = ContentChange(**{**_valid_change_kwargs(), "snapshot_key": "A" * 32})
        assert change.snapshot_key == "a" * 32

    @pytest.mark.parametrize("key", ["", "a" * 31, "g" * 32, "a" * 33])
    def test_invalid_snapshot_key(self, key: str) -> None:
        with pytest.raises(ValidationError, match="snapshot_key"):
            ContentChange(**{**_valid_change_kwargs(), "snapshot_key": key})

    @pytest.mark.parametrize("value", [-1, 101])
    def test_difference_out_of_range(self, value: int) -> None:
        with pytest.raises(ValidationError, match="difference must be between 0 and 100"):
            ContentChange(**{**_valid_change_kwargs(), "difference": value})

    def test_status_from_string(self) -> None:
        change = ContentChange(**_valid_change_kwargs(), status="UNDER_REVIEW")
        assert change.status == ChangeStatus.UNDER_REVIEW

    def test_unknown_status_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ContentChange(**_valid_change_kwargs(), status="PUBLISHED")

    def test_sites_from_json(self) -> None:
        change = ContentChange(**_valid_change_kwargs(), sites='["main"]')
        assert change.sites == ["main"]

    def test_terminal_statuses(self) -> None:
        assert ChangeStatus.APPROVED.is_terminal
        assert ChangeStatus.REJECTED.is_terminal
        assert not ChangeStatus.NEW.is_terminal
        assert not ChangeStatus.UNDER_REVIEW.is_terminal


# ---------------------------------------------------------------------------
# ProcessingError
# ---------------------------------------------------------------------------


class TestProcessingError:
    """Tests for the ProcessingError model."""

    def test_valid(self) -> None:
        error = ProcessingError(**_valid_processing_error_kwargs())
        assert error.retry_count == 0
        assert error.entity_ref is None

    @pytest.mark.parametrize("entity_type", ["monitor", "template", "change"])
    def test_entity_types(self, entity_type: str) -> None:
        kwargs = {**_valid_processing_error_kwargs(), "entity_type": entity_type}
        assert ProcessingError(**kwargs).entity_type == entity_type

    def test_unknown_entity_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ProcessingError(**{**_valid_processing_error_kwargs(), "entity_type": "widget"})

    @pytest.mark.parametrize("error_type", ["extraction_failure", "1Error", ""])
    def test_error_type_must_be_pascal_case(self, error_type: str) -> None:
        with pytest.raises(ValidationError):
            ProcessingError(**{**_valid_processing_error_kwargs(), "error_type": error_type})

    def test_long_message_truncated(self) -> None:
        kwargs = {**_valid_processing_error_kwargs(), "error_message": "x" * 6000}
        assert len(ProcessingError(**kwargs).error_message) == 5000

    def test_empty_message_rejected(self) -> None:
        with pytest.raises(ValidationError, match="error_message must not be empty"):
            ProcessingError(**{**_valid_processing_error_kwargs(), "error_message": ""})

    def test_negative_retry_count_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ProcessingError(**_valid_processing_error_kwargs(), retry_count=-1)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


class TestConfigValidators:
    """Tests for Config field validators called directly.

    We do NOT instantiate Config because it reads from .env.
    Instead we call the classmethod validators directly.
    """

    def test_log_level_lowercase_accepted_and_uppercased(self) -> None:
        assert Config.validate_log_level("debug") == "DEBUG"

    def test_log_level_invalid_rejected(self) -> None:
        with pytest.raises(ValueError, match="log_level must be one of"):
            Config.validate_log_level("TRACE")

    def test_database_path_parent_created(self, tmp_path) -> None:
        path = tmp_path / "nested" / "dir" / "monitors.db"
        assert Config.validate_database_path(str(path)) == str(path)
        assert path.parent.is_dir()

    def test_blank_providers_file_is_none(self) -> None:
        assert Config.validate_providers_file("  ") is None
        assert Config.validate_providers_file("providers.yml") == "providers.yml"

    @pytest.mark.parametrize("value", [0, 33])
    def test_max_workers_out_of_range(self, value: int) -> None:
        with pytest.raises(ValueError, match="max_workers must be between 1 and 32"):
            Config.validate_max_workers(value)

    def test_max_workers_boundaries(self) -> None:
        assert Config.validate_max_workers(1) == 1
        assert Config.validate_max_workers(32) == 32

    def test_window_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            Config.validate_positive(0)

    def test_fetch_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match="fetch_timeout must be greater than 0"):
            Config.validate_fetch_timeout(0)

    @pytest.mark.parametrize("value", [-1, 6])
    def test_max_retry_attempts_out_of_range(self, value: int) -> None:
        with pytest.raises(ValueError):
            Config.validate_max_retry_attempts(value)

    def test_config_from_environment(self, monkeypatch, tmp_path) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "db" / "x.db"))
        monkeypatch.setenv("MAX_WORKERS", "8")
        monkeypatch.setenv("LOG_LEVEL", "warning")
        config = Config()
        assert config.max_workers == 8
        assert config.log_level == "WARNING"
        assert config.templates_dir == "templates"
