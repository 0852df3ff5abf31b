"""Content monitor repository for database CRUD operations."""

from __future__ import annotations

import json
import sqlite3
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

from src.core.errors import ConflictOnWriteError

if TYPE_CHECKING:
    from src.domains.monitoring.core.scheduling import CheckOutcome
    from src.services.database import Database

logger = structlog.get_logger(__name__)

# Columns refreshed from configuration on upsert; active is left to operators
CONFIG_COLUMNS = (
    "code",
    "name",
    "channel_id",
    "url",
    "interval",
    "min_difference",
    "sort",
    "max_results",
    "sites",
)


def to_db_time(value: datetime | str | None) -> str | None:
    """Store timestamps as ISO-8601 UTC strings so they compare lexically."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


def _db_value(column: str, value: Any) -> Any:
    if column == "sites":
        return json.dumps(list(value or []))
    if column in ("active", "checking"):
        return 1 if value else 0
    if column == "content_type":
        return str(value)
    return value


class ContentMonitorRepository:
    """Repository for content monitor data access."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def create_monitor(self, data: dict[str, Any]) -> int:
        """Insert a new monitor. Returns monitor ID.

        Raises ConflictOnWriteError if (content_type, guid) already exists.
        """
        now = to_db_time(datetime.now(UTC))
        try:
            with self.db.transaction() as cursor:
                cursor.execute(
                    """INSERT INTO content_monitors
                       (guid, code, name, content_type, channel_id, url, active, interval,
                        min_difference, sort, max_results, snapshot, sites,
                        created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        data["guid"],
                        data["code"],
                        data["name"],
                        str(data["content_type"]),
                        data.get("channel_id"),
                        data.get("url"),
                        1 if data.get("active", True) else 0,
                        data.get("interval", 60),
                        data.get("min_difference", 0),
                        data.get("sort") or "",
                        data.get("max_results", 0),
                        data.get("snapshot"),
                        json.dumps(list(data.get("sites") or [])),
                        now,
                        now,
                    ),
                )
                monitor_id = cursor.lastrowid or 0
        except sqlite3.IntegrityError as exc:
            key = f"{data['content_type']}/{data['guid']}"
            raise ConflictOnWriteError("content_monitors", key) from exc
        logger.info("content_monitor_created", monitor_id=monitor_id, guid=data["guid"])
        return monitor_id

    def upsert_monitor(self, data: dict[str, Any]) -> tuple[int, bool]:
        """Insert a monitor, or update its configuration if it already exists.

        Returns (monitor_id, created). Check state is never touched on update.
        """
        try:
            return self.create_monitor(data), True
        except ConflictOnWriteError:
            existing = self.get_monitor_by_guid(str(data["content_type"]), data["guid"])
            if existing is None:
                raise
            self.update_monitor(
                existing["id"],
                {column: data[column] for column in CONFIG_COLUMNS if column in data},
            )
            return existing["id"], False

    def update_monitor(self, monitor_id: int, fields: dict[str, Any]) -> None:
        """Replace the given columns of an existing monitor."""
        if not fields:
            return
        columns = sorted(fields)
        assignments = ", ".join(f"{column} = ?" for column in columns)
        params = [_db_value(column, fields[column]) for column in columns]
        params.extend([to_db_time(datetime.now(UTC)), monitor_id])
        self.db.execute(
            f"UPDATE content_monitors SET {assignments}, updated_at = ? WHERE id = ?",  # noqa: S608
            tuple(params),
        )
        self.db.commit()

    def get_monitor(self, monitor_id: int) -> dict[str, Any] | None:
        row = self.db.fetchone("SELECT * FROM content_monitors WHERE id = ?", (monitor_id,))
        return self._deserialize_row(row) if row else None

    def get_monitor_by_guid(self, content_type: str, guid: str) -> dict[str, Any] | None:
        """Get a monitor by its natural key."""
        row = self.db.fetchone(
            "SELECT * FROM content_monitors WHERE content_type = ? AND guid = ?",
            (content_type, guid),
        )
        return self._deserialize_row(row) if row else None

    def get_all_monitors(self, active_only: bool = False) -> list[dict[str, Any]]:
        sql = "SELECT * FROM content_monitors"
        if active_only:
            sql += " WHERE active = 1"
        sql += " ORDER BY code, name"
        return [self._deserialize_row(row) for row in self.db.fetchall(sql)]

    def get_monitors_by_code(self, code: str) -> list[dict[str, Any]]:
        rows = self.db.fetchall(
            "SELECT * FROM content_monitors WHERE code = ? ORDER BY name", (code,)
        )
        return [self._deserialize_row(row) for row in rows]

    def get_monitors_by_channel_id(self, channel_id: str) -> list[dict[str, Any]]:
        """Get the monitors watching a video channel."""
        rows = self.db.fetchall(
            "SELECT * FROM content_monitors WHERE channel_id = ? ORDER BY code, name",
            (channel_id,),
        )
        return [self._deserialize_row(row) for row in rows]

    def set_active(self, monitor_id: int, active: bool) -> bool:
        cursor = self.db.execute(
            "UPDATE content_monitors SET active = ?, updated_at = ? WHERE id = ?",
            (1 if active else 0, to_db_time(datetime.now(UTC)), monitor_id),
        )
        self.db.commit()
        return cursor.rowcount == 1

    def try_begin_check(self, monitor_id: int) -> bool:
        """Atomically mark a monitor as checking.

        Returns True only for the caller that flipped the flag; a monitor
        already being checked is left alone.
        """
        with self.db.transaction() as cursor:
            cursor.execute(
                "UPDATE content_monitors SET checking = 1 WHERE id = ? AND checking = 0",
                (monitor_id,),
            )
            return cursor.rowcount == 1

    def release_check(self, monitor_id: int) -> None:
        """Clear the in-flight flag without touching any other state."""
        self.db.execute("UPDATE content_monitors SET checking = 0 WHERE id = ?", (monitor_id,))
        self.db.commit()

    def finish_check(
        self,
        monitor_id: int,
        outcome: CheckOutcome,
        snapshot: str | None = None,
        change_id: int | None = None,
    ) -> None:
        """Persist a completed check and clear the in-flight flag in one write.

        ``snapshot`` replaces the baseline and ``change_id`` the open change
        only when given.
        """
        assignments = [
            "checking = 0",
            "last_checked_at = ?",
            "executed_at = ?",
            "execution_time = ?",
            "error_message = ?",
            "retry = ?",
            "updated_at = ?",
        ]
        params: list[Any] = [
            to_db_time(outcome.last_checked_at),
            to_db_time(outcome.executed_at),
            outcome.execution_time,
            outcome.error_message,
            outcome.retry,
            to_db_time(datetime.now(UTC)),
        ]
        if snapshot is not None:
            assignments.append("snapshot = ?")
            params.append(snapshot)
        if change_id is not None:
            assignments.append("change_id = ?")
            params.append(change_id)
        params.append(monitor_id)

        with self.db.transaction() as cursor:
            cursor.execute(
                f"UPDATE content_monitors SET {', '.join(assignments)} WHERE id = ?",  # noqa: S608
                tuple(params),
            )

    def update_baseline(self, monitor_id: int, snapshot: str | None) -> None:
        """Make a snapshot the monitor's baseline and close its open change."""
        self.db.execute(
            """UPDATE content_monitors
               SET snapshot = ?, change_id = NULL, updated_at = ?
               WHERE id = ?""",
            (snapshot, to_db_time(datetime.now(UTC)), monitor_id),
        )
        self.db.commit()

    def restart_monitor(self, monitor_id: int) -> None:
        """Clear a stuck or failing monitor's error and in-flight state."""
        self.db.execute(
            """UPDATE content_monitors
               SET checking = 0, error_message = NULL, retry = 0, updated_at = ?
               WHERE id = ?""",
            (to_db_time(datetime.now(UTC)), monitor_id),
        )
        self.db.commit()

    def delete_monitor(self, monitor_id: int) -> None:
        self.db.execute("DELETE FROM content_monitors WHERE id = ?", (monitor_id,))
        self.db.commit()

    def store_processing_error(
        self,
        entity_type: str,
        entity_id: int | None,
        error_type: str,
        error_message: str,
        retry_count: int = 0,
        entity_ref: str | None = None,
    ) -> None:
        """Store a processing error for debugging."""
        now = to_db_time(datetime.now(UTC))
        self.db.execute(
            """INSERT INTO processing_errors
               (entity_type, entity_id, entity_ref, error_type, error_message,
                retry_count, occurred_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (entity_type, entity_id, entity_ref, error_type, error_message, retry_count, now),
        )
        self.db.commit()

    def get_processing_errors(self, entity_type: str | None = None) -> list[dict[str, Any]]:
        sql = "SELECT * FROM processing_errors"
        params: tuple[Any, ...] = ()
        if entity_type:
            sql += " WHERE entity_type = ?"
            params = (entity_type,)
        sql += " ORDER BY id"
        return [dict(row) for row in self.db.fetchall(sql, params)]

    def _deserialize_row(self, row: Any) -> dict[str, Any]:
        """Deserialize JSON and boolean columns from a database row."""
        data = dict(row)
        try:
            data["sites"] = json.loads(data["sites"]) if data.get("sites") else []
        except (json.JSONDecodeError, TypeError):
            data["sites"] = []
        data["active"] = bool(data["active"])
        data["checking"] = bool(data["checking"])
        return data
