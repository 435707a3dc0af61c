"""
SQLite database setup and connection management.

One database file holds reports, per-report partial results, the task queue
and AI configuration snapshots. WAL mode lets several worker processes read
while one writes; every write statement below is atomic on its own.
"""

import sqlite3
import os
import logging
from contextlib import contextmanager

from analysis.errors import StoreError

logger = logging.getLogger(__name__)

DB_PATH = os.getenv("DB_PATH", "analysis.db")


def get_connection() -> sqlite3.Connection:
    conn = sqlite3.connect(DB_PATH, timeout=30)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


@contextmanager
def db_conn():
    try:
        conn = get_connection()
    except sqlite3.Error as exc:
        raise StoreError(f"Cannot open database {DB_PATH}: {exc}") from exc
    try:
        yield conn
        conn.commit()
    except sqlite3.Error as exc:
        conn.rollback()
        raise StoreError(str(exc)) from exc
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db() -> None:
    """Create all tables if they don't exist."""
    with db_conn() as conn:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS reports (
                id               TEXT    PRIMARY KEY,
                website_url      TEXT    NOT NULL,
                email            TEXT,
                industry         TEXT,
                location         TEXT,
                company_name     TEXT,
                enabled_services TEXT    NOT NULL,   -- JSON array of AI provider ids
                expected         TEXT    NOT NULL,   -- JSON array of sub-analysis ids
                ai_config        TEXT    NOT NULL,   -- JSON snapshot resolved at dispatch
                status           TEXT    NOT NULL DEFAULT 'processing'
                                 CHECK(status IN ('processing', 'completed', 'failed')),
                result           TEXT,               -- JSON final report
                error            TEXT,
                submitted_at     TEXT    NOT NULL,
                completed_at     TEXT
            );

            CREATE TABLE IF NOT EXISTS partial_results (
                report_id     TEXT NOT NULL REFERENCES reports(id),
                analysis_type TEXT NOT NULL,
                task_id       TEXT NOT NULL,
                status        TEXT NOT NULL CHECK(status IN ('completed', 'error', 'skipped')),
                body          TEXT NOT NULL,         -- JSON SubResult
                written_at    TEXT NOT NULL,
                PRIMARY KEY (report_id, analysis_type)
            );

            CREATE TABLE IF NOT EXISTS tasks (
                id          TEXT    PRIMARY KEY,
                topic       TEXT    NOT NULL,
                payload     TEXT    NOT NULL,        -- JSON message body
                status      TEXT    NOT NULL DEFAULT 'pending'
                            CHECK(status IN ('pending', 'running', 'done', 'failed')),
                attempts    INTEGER NOT NULL DEFAULT 0,
                last_error  TEXT,
                created_at  TEXT    NOT NULL DEFAULT (datetime('now')),
                updated_at  TEXT    NOT NULL DEFAULT (datetime('now'))
            );

            CREATE TABLE IF NOT EXISTS ai_config (
                id          INTEGER PRIMARY KEY AUTOINCREMENT,
                config      TEXT    NOT NULL,        -- JSON AIConfig snapshot
                created_at  TEXT    NOT NULL DEFAULT (datetime('now'))
            );

            CREATE INDEX IF NOT EXISTS idx_tasks_pending ON tasks(status, created_at);
            CREATE INDEX IF NOT EXISTS idx_reports_status ON reports(status);
        """)
    logger.info("Database initialised at %s", DB_PATH)
