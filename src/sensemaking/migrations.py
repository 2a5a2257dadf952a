from __future__ import annotations

import logging
import sqlite3
from typing import Callable

from .utils import utc_now_iso

Migration = Callable[[sqlite3.Connection], None]


def apply_migrations(conn: sqlite3.Connection) -> None:
    logger = logging.getLogger("sensemaking.migrations")
    conn.execute("BEGIN IMMEDIATE")
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version TEXT PRIMARY KEY,
            applied_at TEXT NOT NULL
        )
        """
    )
    applied = {
        row[0]
        for row in conn.execute("SELECT version FROM schema_migrations").fetchall()
    }
    try:
        for version, migration in _get_migrations():
            if version in applied:
                logger.debug("migration_skipped version=%s", version)
                continue
            migration(conn)
            conn.execute(
                "INSERT OR IGNORE INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                (version, utc_now_iso()),
            )
            logger.info("migration_applied version=%s", version)
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def _migration_jobs_table(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS sensemaking_jobs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            analysable_type TEXT NOT NULL,
            analysable_id INTEGER NULL,
            script TEXT NOT NULL,
            user_id INTEGER NULL,
            started_at TEXT NULL,
            finished_at TEXT NULL,
            error TEXT NULL,
            published INTEGER NOT NULL DEFAULT 0,
            persisted_output TEXT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_sensemaking_jobs_analysable
        ON sensemaking_jobs(analysable_type, analysable_id)
        """
    )


def _migration_jobs_context_and_parent(conn: sqlite3.Connection) -> None:
    columns = _table_columns(conn, "sensemaking_jobs")
    to_add = {
        "additional_context": "TEXT NULL",
        "parent_job_id": "INTEGER NULL REFERENCES sensemaking_jobs(id)",
    }
    for column, ddl in to_add.items():
        if column not in columns:
            conn.execute(f"ALTER TABLE sensemaking_jobs ADD COLUMN {column} {ddl}")
    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_sensemaking_jobs_parent
        ON sensemaking_jobs(parent_job_id)
        """
    )


def _table_columns(conn: sqlite3.Connection, table: str) -> set[str]:
    return {row[1] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()}


def _get_migrations() -> list[tuple[str, Migration]]:
    return [
        ("001_jobs_table", _migration_jobs_table),
        ("002_jobs_context_and_parent", _migration_jobs_context_and_parent),
    ]
