"""
Durable task queue on top of the tasks table.

Publishers insert pending rows; workers claim one row at a time with a single
UPDATE ... RETURNING so two workers can never claim the same task. A failed
task goes back to pending until it has used up its attempts.
"""

import json
import logging
import sqlite3
import uuid
from typing import Optional

from storage.db import db_conn

logger = logging.getLogger(__name__)


def _insert(conn: sqlite3.Connection, topic: str, payload: dict) -> str:
    task_id = uuid.uuid4().hex
    conn.execute(
        "INSERT INTO tasks (id, topic, payload) VALUES (?, ?, ?)",
        (task_id, topic, json.dumps(payload)),
    )
    logger.debug("Published task %s on topic '%s'", task_id, topic)
    return task_id


def publish_task(topic: str, payload: dict, conn: Optional[sqlite3.Connection] = None) -> str:
    """
    Enqueue one message. Pass `conn` to publish inside a caller's transaction.
    Returns the task id.
    """
    if conn is not None:
        return _insert(conn, topic, payload)
    with db_conn() as own:
        return _insert(own, topic, payload)


def claim_next_task(lease_seconds: int = 900) -> Optional[dict]:
    """
    Atomically move the oldest claimable task to running and return it.

    A task left running for longer than `lease_seconds` belongs to a worker
    that died mid-task and is claimable again.
    """
    stale = f"-{int(lease_seconds)} seconds"
    with db_conn() as conn:
        rows = conn.execute(
            """
            UPDATE tasks
               SET status     = 'running',
                   attempts   = attempts + 1,
                   updated_at = datetime('now')
             WHERE id = (
                   SELECT id FROM tasks
                    WHERE status = 'pending'
                       OR (status = 'running' AND updated_at < datetime('now', ?))
                    ORDER BY created_at, rowid
                    LIMIT 1
             )
               AND (status = 'pending'
                    OR (status = 'running' AND updated_at < datetime('now', ?)))
            RETURNING id, topic, payload, attempts
            """,
            (stale, stale),
        ).fetchall()
        if not rows:
            return None
        task = dict(rows[0])
    task["payload"] = json.loads(task["payload"])
    return task


def complete_task(task_id: str) -> None:
    with db_conn() as conn:
        conn.execute(
            "UPDATE tasks SET status = 'done', updated_at = datetime('now') WHERE id = ?",
            (task_id,),
        )


def fail_task(task_id: str, error: str, max_attempts: int) -> bool:
    """
    Record a failed invocation. Returns True when the task was re-queued,
    False when it has exhausted `max_attempts` and is now failed for good.
    """
    with db_conn() as conn:
        row = conn.execute("SELECT attempts FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if not row:
            return False
        requeue = row["attempts"] < max_attempts
        conn.execute(
            """
            UPDATE tasks
               SET status = ?, last_error = ?, updated_at = datetime('now')
             WHERE id = ?
            """,
            ("pending" if requeue else "failed", error, task_id),
        )
    if requeue:
        logger.warning("Task %s failed (%s), re-queued", task_id, error)
    else:
        logger.error("Task %s failed permanently after %d attempts: %s", task_id, max_attempts, error)
    return requeue


def _where(topic: Optional[str], status: Optional[str]) -> tuple[str, list]:
    clause, params = " WHERE 1 = 1", []
    if topic:
        clause += " AND topic = ?"
        params.append(topic)
    if status:
        clause += " AND status = ?"
        params.append(status)
    return clause, params


def list_tasks(topic: Optional[str] = None, status: Optional[str] = None) -> list[dict]:
    clause, params = _where(topic, status)
    with db_conn() as conn:
        rows = conn.execute(
            f"SELECT * FROM tasks{clause} ORDER BY created_at, rowid", params
        ).fetchall()
    results = []
    for r in rows:
        d = dict(r)
        d["payload"] = json.loads(d["payload"])
        results.append(d)
    return results


def count_tasks(topic: Optional[str] = None, status: Optional[str] = None) -> int:
    clause, params = _where(topic, status)
    with db_conn() as conn:
        return conn.execute(f"SELECT COUNT(*) FROM tasks{clause}", params).fetchone()[0]
