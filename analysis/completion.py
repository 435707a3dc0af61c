"""
Completion detector.

Runs after every write to a report's partial results. It finalizes the report
once every expected sub-analysis is done (completed, error or skipped), and
does so at most once: the status change is a conditional update from
'processing', and the PDF/email task is published in the same transaction
only by the caller whose update took effect.
"""

import logging

from analysis.models import (
    PAGESPEED, STATUS_PROCESSING, STRUCTURE, TOPIC_GENERATE_PDF, SubResult,
)
from storage import reports as report_store
from storage import tasks as task_queue
from storage.db import db_conn

logger = logging.getLogger(__name__)


def done_keys(partials: dict[str, SubResult]) -> set[str]:
    return {k for k, v in partials.items() if v.is_done}


def build_final_result(enabled_services, partials: dict[str, SubResult]) -> dict:
    """Group sub-results by kind: AI providers together, the rest standalone."""
    missing = {"status": "error", "error": "Data not found"}
    return {
        "aiAnalysis": {
            service: partials[service].to_dict()
            for service in enabled_services
            if service in partials
        },
        "pageSpeed": partials[PAGESPEED].to_dict() if PAGESPEED in partials else missing,
        "websiteStructure": partials[STRUCTURE].to_dict() if STRUCTURE in partials else missing,
    }


def check_completion(report_id: str) -> bool:
    """
    Finalize `report_id` if all expected sub-analyses are done.
    Returns True only for the call that performed the transition.
    """
    report = report_store.get_report(report_id)
    if report is None:
        logger.error("Completion check: report %s not found", report_id)
        return False
    if report.status != STATUS_PROCESSING:
        logger.debug("Completion check: report %s already %s", report_id, report.status)
        return False

    partials = report_store.get_partial_results(report_id)
    done = done_keys(partials)
    if not done.issuperset(report.expected):
        logger.info(
            "Report %s not complete yet: %d/%d done (waiting on %s)",
            report_id, len(done & set(report.expected)), len(report.expected),
            ", ".join(sorted(set(report.expected) - done)),
        )
        return False

    try:
        final = build_final_result(report.enabled_services, partials)
    except Exception as exc:
        logger.exception("Could not assemble report %s", report_id)
        report_store.mark_report_failed(report_id, str(exc))
        return False

    with db_conn() as conn:
        won = report_store.finalize_report(conn, report_id, final)
        if won and report.email:
            task_queue.publish_task(
                TOPIC_GENERATE_PDF,
                {"documentId": report_id, "recipientEmail": report.email},
                conn=conn,
            )

    if won:
        logger.info("Report %s completed (%d sub-analyses)", report_id, len(report.expected))
    else:
        logger.info("Report %s was finalized by another worker", report_id)
    return won
