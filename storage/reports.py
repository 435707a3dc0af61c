"""
CRUD helpers for reports and their partial results.

Partial results are keyed by (report_id, analysis_type). The owning task may
rewrite its own key (a retry of the same task); a write from any other task
to an occupied key is ignored. Status transitions are conditional on the
current status so that concurrent finalizers converge on one outcome.
"""

import json
import logging
import sqlite3
from typing import Optional

from analysis.models import (
    Report, SubResult, STATUS_COMPLETED, STATUS_FAILED, STATUS_PROCESSING, utc_now,
)
from storage.db import db_conn

logger = logging.getLogger(__name__)


def _row_to_report(row: sqlite3.Row) -> Report:
    return Report(
        id=row["id"],
        website_url=row["website_url"],
        email=row["email"],
        industry=row["industry"],
        location=row["location"],
        company_name=row["company_name"],
        enabled_services=tuple(json.loads(row["enabled_services"])),
        expected=tuple(json.loads(row["expected"])),
        ai_config=json.loads(row["ai_config"]),
        status=row["status"],
        result=json.loads(row["result"]) if row["result"] else None,
        error=row["error"],
        submitted_at=row["submitted_at"],
        completed_at=row["completed_at"],
    )


# ── Reports ───────────────────────────────────────────────────────────────────

def create_report(conn: sqlite3.Connection, report: Report) -> None:
    """Insert a new report row. Runs inside the caller's transaction."""
    conn.execute(
        """
        INSERT INTO reports
            (id, website_url, email, industry, location, company_name,
             enabled_services, expected, ai_config, status, submitted_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            report.id,
            report.website_url,
            report.email,
            report.industry,
            report.location,
            report.company_name,
            json.dumps(list(report.enabled_services)),
            json.dumps(list(report.expected)),
            json.dumps(report.ai_config),
            report.status,
            report.submitted_at,
        ),
    )


def get_report(report_id: str) -> Optional[Report]:
    with db_conn() as conn:
        row = conn.execute("SELECT * FROM reports WHERE id = ?", (report_id,)).fetchone()
        return _row_to_report(row) if row else None


def count_reports() -> int:
    with db_conn() as conn:
        return conn.execute("SELECT COUNT(*) FROM reports").fetchone()[0]


def finalize_report(conn: sqlite3.Connection, report_id: str, result: dict) -> bool:
    """
    processing -> completed, storing the merged result.
    Returns True only for the caller whose update took effect.
    """
    cur = conn.execute(
        """
        UPDATE reports
           SET status = ?, result = ?, completed_at = ?
         WHERE id = ? AND status = ?
        """,
        (STATUS_COMPLETED, json.dumps(result), utc_now(), report_id, STATUS_PROCESSING),
    )
    return cur.rowcount == 1


def mark_report_failed(report_id: str, error: str) -> bool:
    """processing -> failed. A report that already finished is left alone."""
    with db_conn() as conn:
        cur = conn.execute(
            "UPDATE reports SET status = ?, error = ? WHERE id = ? AND status = ?",
            (STATUS_FAILED, error, report_id, STATUS_PROCESSING),
        )
        changed = cur.rowcount == 1
    if changed:
        logger.error("Report %s marked failed: %s", report_id, error)
    return changed


# ── Partial results ───────────────────────────────────────────────────────────

def _same_content(stored: dict, incoming: dict) -> bool:
    """Equal apart from the write timestamp."""
    return (
        {k: v for k, v in stored.items() if k != "timestamp"}
        == {k: v for k, v in incoming.items() if k != "timestamp"}
    )


def upsert_sub_result(report_id: str, analysis_type: str, sub_result: SubResult, task_id: str) -> bool:
    """
    Write one SubResult at `analysis_type`. Returns True if the stored row now
    holds this task's result, False if another task already owns the key.

    A retry of the owning task with the same content leaves the row as it
    was, original timestamp included.
    """
    body = sub_result.to_dict()
    with db_conn() as conn:
        row = conn.execute(
            "SELECT task_id, body FROM partial_results WHERE report_id = ? AND analysis_type = ?",
            (report_id, analysis_type),
        ).fetchone()
        if row and row["task_id"] == task_id and _same_content(json.loads(row["body"]), body):
            logger.info(
                "Report %s: '%s' result from task %s unchanged on retry",
                report_id, analysis_type, task_id,
            )
            return True

        cur = conn.execute(
            """
            INSERT INTO partial_results
                (report_id, analysis_type, task_id, status, body, written_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(report_id, analysis_type) DO UPDATE SET
                status     = excluded.status,
                body       = excluded.body,
                written_at = excluded.written_at
            WHERE partial_results.task_id = excluded.task_id
            """,
            (
                report_id,
                analysis_type,
                task_id,
                sub_result.status,
                json.dumps(body),
                utc_now(),
            ),
        )
        written = cur.rowcount == 1
    if written:
        logger.info("Report %s: merged '%s' result (%s)", report_id, analysis_type, sub_result.status)
    else:
        logger.warning(
            "Report %s: ignored duplicate '%s' result from task %s",
            report_id, analysis_type, task_id,
        )
    return written


def get_partial_results(report_id: str) -> dict[str, SubResult]:
    with db_conn() as conn:
        rows = conn.execute(
            "SELECT analysis_type, body FROM partial_results WHERE report_id = ?",
            (report_id,),
        ).fetchall()
    return {r["analysis_type"]: SubResult.from_dict(json.loads(r["body"])) for r in rows}
