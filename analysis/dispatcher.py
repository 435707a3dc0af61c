"""
Task dispatcher: validates a report request, creates the report and
publishes one task per expected sub-analysis.

The report row and all of its tasks are written in a single transaction, so
a store failure leaves neither behind.
"""

import logging
import uuid
from typing import Optional
from urllib.parse import urlparse

from analysis.errors import InvalidRequest
from analysis.models import (
    PAGESPEED, STATUS_PROCESSING, STRUCTURE,
    TOPIC_AI_ANALYSIS, TOPIC_PAGESPEED, TOPIC_STRUCTURE,
    Report, ReportRequest, utc_now,
)
from settings import AI_PROVIDERS, AIConfig, Settings
from storage import ai_config as ai_config_store
from storage import reports as report_store
from storage import tasks as task_queue
from storage.db import db_conn

logger = logging.getLogger(__name__)


def normalize_url(raw: str) -> str:
    if raw is not None and not isinstance(raw, str):
        raise InvalidRequest("Website URL must be a string.")
    url = (raw or "").strip()
    if not url:
        raise InvalidRequest("Website URL is required.")
    if "://" not in url:
        url = f"https://{url}"
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidRequest(f"Invalid website URL: {raw!r}")
    return url.rstrip("/") if parsed.path in ("", "/") else url


def resolve_services(requested: Optional[list]) -> list[str]:
    """Enabled AI providers, in request order, without duplicates."""
    if requested is None:
        return list(AI_PROVIDERS)
    if not isinstance(requested, (list, tuple)):
        raise InvalidRequest("enabledServices must be a list")
    services = []
    for raw in requested:
        service = str(raw).strip().lower()
        if service not in AI_PROVIDERS:
            raise InvalidRequest(f"Unknown AI service: {raw!r}")
        if service not in services:
            services.append(service)
    return services


def _task_for(analysis_type: str, report: Report) -> tuple[str, dict]:
    if analysis_type == PAGESPEED:
        return TOPIC_PAGESPEED, {"websiteUrl": report.website_url, "reportId": report.id}
    if analysis_type == STRUCTURE:
        return TOPIC_STRUCTURE, {"websiteUrl": report.website_url, "reportId": report.id}
    return TOPIC_AI_ANALYSIS, {
        "websiteUrl":   report.website_url,
        "industry":     report.industry,
        "companyName":  report.company_name,
        "location":     report.location,
        "reportId":     report.id,
        "analysisType": analysis_type,
    }


def dispatch(request: ReportRequest, settings: Settings, ai_config: Optional[AIConfig] = None) -> str:
    """
    Create one report and publish |expected| tasks. Returns the report id.

    Raises InvalidRequest before anything is written; StoreError if the
    transaction fails.
    """
    website_url = normalize_url(request.website_url)
    services = resolve_services(request.enabled_services)

    if ai_config is None:
        ai_config = ai_config_store.get_current_ai_config(default=settings.ai)

    report = Report(
        id=uuid.uuid4().hex,
        website_url=website_url,
        email=request.email,
        industry=request.industry,
        location=request.location,
        company_name=request.company_name,
        enabled_services=tuple(services),
        expected=tuple(services) + (PAGESPEED, STRUCTURE),
        ai_config=ai_config.to_dict(),
        status=STATUS_PROCESSING,
        submitted_at=utc_now(),
    )

    with db_conn() as conn:
        report_store.create_report(conn, report)
        for analysis_type in report.expected:
            topic, payload = _task_for(analysis_type, report)
            task_queue.publish_task(topic, payload, conn=conn)

    logger.info(
        "Dispatched report %s for %s with %d sub-analyses: %s",
        report.id, website_url, len(report.expected), ", ".join(report.expected),
    )
    return report.id
