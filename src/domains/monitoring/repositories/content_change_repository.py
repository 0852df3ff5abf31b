"""Content change repository for database CRUD operations."""

from __future__ import annotations

import json
import sqlite3
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import structlog

from src.core.errors import ConflictOnWriteError
from src.domains.monitoring.core.scheduling import DEFAULT_CHANGE_WINDOW_DAYS
from src.domains.monitoring.repositories.content_monitor_repository import to_db_time

if TYPE_CHECKING:
    from src.services.database import Database

logger = structlog.get_logger(__name__)

# Columns that may change when a monitor is re-run before review
REEVALUATED_COLUMNS = ("snapshot_after", "snapshot_diff", "difference", "execution_time")


class ContentChangeRepository:
    """Repository for content change data access."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def create_change(self, data: dict[str, Any]) -> int:
        """Store a new content change. Returns change ID.

        Raises ConflictOnWriteError if the monitor already has an unreviewed
        change for the same snapshot pair.
        """
        created_at = to_db_time(data.get("created_at") or datetime.now(UTC))
        try:
            with self.db.transaction() as cursor:
                cursor.execute(
                    """INSERT INTO content_changes
                       (code, monitor_id, snapshot_before, snapshot_after, snapshot_diff,
                        snapshot_key, execution_time, difference, status, sites,
                        created_by, created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        data["code"],
                        data["monitor_id"],
                        data.get("snapshot_before"),
                        data["snapshot_after"],
                        data.get("snapshot_diff") or "[]",
                        data["snapshot_key"],
                        data.get("execution_time", 0),
                        data["difference"],
                        str(data.get("status") or "NEW"),
                        json.dumps(list(data.get("sites") or [])),
                        data.get("created_by") or "system",
                        created_at,
                        created_at,
                    ),
                )
                change_id = cursor.lastrowid or 0
        except sqlite3.IntegrityError as exc:
            key = f"{data['monitor_id']}/{data['snapshot_key']}"
            raise ConflictOnWriteError("content_changes", key) from exc
        logger.info(
            "content_change_created",
            change_id=change_id,
            monitor_id=data["monitor_id"],
            difference=data["difference"],
        )
        return change_id

    def upsert_change(self, data: dict[str, Any]) -> tuple[int, bool]:
        """Store a change, updating the unreviewed row for the same snapshot pair.

        Returns (change_id, created). Repeating a write is harmless. Reviewed
        changes never match, so a pair that recurs after review gets a new row.
        """
        try:
            return self.create_change(data), True
        except ConflictOnWriteError:
            existing = self.get_change_by_key(
                data["monitor_id"], data["snapshot_key"], status="NEW"
            )
            if existing is None:
                # Reviewed between the insert and the lookup
                return self.create_change(data), True
            self.update_change(
                existing["id"],
                {column: data[column] for column in REEVALUATED_COLUMNS if column in data},
            )
            return existing["id"], False

    def update_change(self, change_id: int, fields: dict[str, Any]) -> None:
        """Re-evaluate an unreviewed change with a newer after-snapshot."""
        if not fields:
            return
        columns = sorted(fields)
        assignments = ", ".join(f"{column} = ?" for column in columns)
        params = [fields[column] for column in columns]
        params.extend([to_db_time(datetime.now(UTC)), change_id])
        self.db.execute(
            f"UPDATE content_changes SET {assignments}, updated_at = ? WHERE id = ?",  # noqa: S608
            tuple(params),
        )
        self.db.commit()

    def update_status(self, change_id: int, status: str, expected: str | None = None) -> bool:
        """Set a change's status.

        With ``expected``, the update only applies while the stored status
        still equals it, so two concurrent reviews cannot both win.
        """
        sql = "UPDATE content_changes SET status = ?, updated_at = ? WHERE id = ?"
        params: list[Any] = [str(status), to_db_time(datetime.now(UTC)), change_id]
        if expected is not None:
            sql += " AND status = ?"
            params.append(str(expected))
        with self.db.transaction() as cursor:
            cursor.execute(sql, tuple(params))
            return cursor.rowcount == 1

    def get_change(self, change_id: int) -> dict[str, Any] | None:
        row = self.db.fetchone("SELECT * FROM content_changes WHERE id = ?", (change_id,))
        return self._deserialize_row(row) if row else None

    def get_change_by_key(
        self, monitor_id: int, snapshot_key: str, status: str | None = None
    ) -> dict[str, Any] | None:
        """Latest change for a snapshot pair, optionally only in ``status``."""
        sql = "SELECT * FROM content_changes WHERE monitor_id = ? AND snapshot_key = ?"
        params: list[Any] = [monitor_id, snapshot_key]
        if status is not None:
            sql += " AND status = ?"
            params.append(str(status))
        row = self.db.fetchone(sql + " ORDER BY id DESC LIMIT 1", tuple(params))
        return self._deserialize_row(row) if row else None

    def get_changes_for_monitor(self, monitor_id: int) -> list[dict[str, Any]]:
        rows = self.db.fetchall(
            "SELECT * FROM content_changes WHERE monitor_id = ? ORDER BY created_at DESC, id DESC",
            (monitor_id,),
        )
        return [self._deserialize_row(row) for row in rows]

    def list_changes(
        self,
        status: str | None = None,
        now: datetime | None = None,
        window_days: int = DEFAULT_CHANGE_WINDOW_DAYS,
    ) -> list[dict[str, Any]]:
        """List changes that are still NEW or were created within the window.

        NEW changes stay listed whatever their age; reviewed ones drop out
        once they are older than ``window_days``.
        """
        cutoff = to_db_time((now or datetime.now(UTC)) - timedelta(days=window_days))
        sql = """SELECT cc.*, cm.name AS monitor_name, cm.content_type AS content_type
                 FROM content_changes cc
                 JOIN content_monitors cm ON cc.monitor_id = cm.id
                 WHERE (cc.status = 'NEW' OR cc.created_at >= ?)"""
        params: list[Any] = [cutoff]

        if status:
            sql += " AND cc.status = ?"
            params.append(str(status))

        sql += " ORDER BY cc.created_at DESC, cc.id DESC"
        rows = self.db.fetchall(sql, tuple(params))
        return [self._deserialize_row(row) for row in rows]

    def _deserialize_row(self, row: Any) -> dict[str, Any]:
        """Deserialize JSON fields from a database row."""
        data = dict(row)
        if data.get("sites"):
            try:
                data["sites"] = json.loads(data["sites"])
            except (json.JSONDecodeError, TypeError):
                data["sites"] = []
        else:
            data["sites"] = []
        return data
