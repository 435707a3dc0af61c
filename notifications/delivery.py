"""
Report delivery for the generate-pdf-report topic.

PDF rendering and email sending are not implemented: the finished report is
exported as JSON to reports/<reportId>.json, which is the artifact a renderer
would consume, and the email step is only logged.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from analysis.models import STATUS_COMPLETED
from settings import Settings
from storage import reports as report_store

logger = logging.getLogger(__name__)


def write_report_export(report, reports_dir: Path) -> Path:
    """Write the report document to reports_dir/<id>.json. Returns the path."""
    reports_dir.mkdir(parents=True, exist_ok=True)
    filepath = reports_dir / f"{report.id}.json"

    payload = {
        "exported_at": datetime.now(timezone.utc).isoformat(),
        **report.to_dict(),
        "partialResults": {
            key: result.to_dict()
            for key, result in report_store.get_partial_results(report.id).items()
        },
    }

    with open(filepath, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False, default=str)

    logger.info("Report export written to %s", filepath)
    return filepath


def handle_pdf_task(payload: dict, settings: Settings) -> Optional[Path]:
    """Consume {documentId, recipientEmail}. Returns the export path, or None."""
    report_id = payload.get("documentId")
    recipient = payload.get("recipientEmail")

    report = report_store.get_report(report_id) if report_id else None
    if report is None:
        logger.error("PDF task for unknown report %s, skipping", report_id)
        return None
    if report.status != STATUS_COMPLETED:
        logger.warning("PDF task for report %s in status '%s'", report_id, report.status)

    path = write_report_export(report, settings.reports_dir)
    logger.info(
        "PDF rendering and email delivery are not implemented; report %s for %s left at %s",
        report_id, recipient, path,
    )
    return path
