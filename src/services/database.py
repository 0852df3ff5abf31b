"""SQLite database service."""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import Generator

logger = structlog.get_logger(__name__)


class Database:
    """SQLite database service with schema management.

    One connection is shared by the worker threads of a batch; statements on
    it are serialized by a re-entrant lock.
    """

    def __init__(self, db_path: str = "data/monitors.db") -> None:
        self.db_path = db_path
        self._ensure_directory()
        self._connection: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    def _ensure_directory(self) -> None:
        """Ensure the parent directory of the database file exists."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    @property
    def connection(self) -> sqlite3.Connection:
        """Get or create database connection."""
        with self._lock:
            if self._connection is None:
                self._connection = sqlite3.connect(self.db_path, check_same_thread=False)
                self._connection.row_factory = sqlite3.Row
                self._connection.execute("PRAGMA journal_mode=WAL")
                self._connection.execute("PRAGMA foreign_keys=ON")
            return self._connection

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Cursor, None, None]:
        """Context manager for database transactions."""
        with self._lock:
            conn = self.connection
            cursor = conn.cursor()
            try:
                yield cursor
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def execute(self, sql: str, params: tuple[Any, ...] | dict[str, Any] = ()) -> sqlite3.Cursor:
        """Execute a single SQL statement."""
        with self._lock:
            return self.connection.execute(sql, params)

    def commit(self) -> None:
        with self._lock:
            self.connection.commit()

    def fetchone(
        self, sql: str, params: tuple[Any, ...] | dict[str, Any] = ()
    ) -> sqlite3.Row | None:
        """Execute and fetch one row."""
        with self._lock:
            cursor = self.execute(sql, params)
            return cursor.fetchone()

    def fetchall(
        self, sql: str, params: tuple[Any, ...] | dict[str, Any] = ()
    ) -> list[sqlite3.Row]:
        """Execute and fetch all rows."""
        with self._lock:
            cursor = self.execute(sql, params)
            return cursor.fetchall()

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    def init_db(self) -> None:
        """Initialize database schema. Creates all tables and indexes."""
        logger.info("initializing_database", path=self.db_path)

        with self.transaction() as cursor:
            # content_monitors table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS content_monitors (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    guid TEXT NOT NULL,
                    code TEXT NOT NULL,
                    name TEXT NOT NULL,
                    content_type TEXT NOT NULL,
                    channel_id TEXT,
                    url TEXT,
                    active INTEGER NOT NULL DEFAULT 1,
                    interval INTEGER NOT NULL DEFAULT 60,
                    min_difference INTEGER NOT NULL DEFAULT 0,
                    sort TEXT NOT NULL DEFAULT '',
                    max_results INTEGER NOT NULL DEFAULT 0,
                    snapshot TEXT,
                    last_checked_at TEXT,
                    executed_at TEXT,
                    execution_time INTEGER NOT NULL DEFAULT 0,
                    checking INTEGER NOT NULL DEFAULT 0,
                    error_message TEXT,
                    retry INTEGER NOT NULL DEFAULT 0,
                    change_id INTEGER,
                    sites TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT,
                    UNIQUE(content_type, guid)
                )
            """)
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_content_monitors_code ON content_monitors(code)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_content_monitors_channel_id"
                " ON content_monitors(channel_id)"
            )

            # content_changes table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS content_changes (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    code TEXT NOT NULL,
                    monitor_id INTEGER NOT NULL,
                    snapshot_before TEXT,
                    snapshot_after TEXT NOT NULL,
                    snapshot_diff TEXT NOT NULL,
                    snapshot_key TEXT NOT NULL,
                    execution_time INTEGER NOT NULL DEFAULT 0,
                    difference INTEGER NOT NULL,
                    status TEXT NOT NULL,
                    sites TEXT,
                    created_by TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT,
                    FOREIGN KEY (monitor_id)
                        REFERENCES content_monitors(id) ON DELETE CASCADE
                )
            """)
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_content_changes_monitor_id"
                " ON content_changes(monitor_id)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_content_changes_status_created"
                " ON content_changes(status, created_at)"
            )
            # A snapshot pair is unique among unreviewed changes only; a pair seen
            # again after review is a new change
            cursor.execute(
                "CREATE UNIQUE INDEX IF NOT EXISTS idx_content_changes_open_key"
                " ON content_changes(monitor_id, snapshot_key) WHERE status = 'NEW'"
            )

            # processing_errors table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS processing_errors (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    entity_type TEXT NOT NULL,
                    entity_id INTEGER,
                    entity_ref TEXT,
                    error_type TEXT NOT NULL,
                    error_message TEXT NOT NULL,
                    retry_count INTEGER DEFAULT 0,
                    occurred_at TEXT NOT NULL
                )
            """)

        logger.info("database_initialized", path=self.db_path)
