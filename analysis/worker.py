"""
Sub-analysis workers and the queue runner.

Each handler decodes one task, calls a provider or the structure prober and
merges exactly one SubResult at its own key, then runs the completion
detector. Provider and probe failures are recorded as results, never raised,
so the key is always filled. Only store failures escape a handler; the queue
then re-delivers the same task (same task id) up to task_max_attempts.
"""

import logging
from typing import Optional

from analysis.completion import check_completion
from analysis.errors import FetchError, NotConfigured, ProviderError, StoreError
from analysis.models import (
    PAGESPEED, STRUCTURE,
    TOPIC_AI_ANALYSIS, TOPIC_GENERATE_PDF, TOPIC_PAGESPEED, TOPIC_STRUCTURE,
    SubResult,
)
from analysis.sections import parse_sections
from notifications.delivery import handle_pdf_task
from providers.prompts import format_prompt
from providers.registry import invoke
from scraper.prober import probe
from settings import AIConfig, Settings
from storage import reports as report_store
from storage import tasks as task_queue

logger = logging.getLogger(__name__)

DISABLED_REASON = "Service is disabled or not configured"


def merge_result(report_id: str, analysis_type: str, result: SubResult, task_id: str) -> bool:
    """
    Upsert this task's result, then trigger the completion detector.
    The detector runs even when the write was ignored as a duplicate.
    """
    written = report_store.upsert_sub_result(report_id, analysis_type, result, task_id)
    check_completion(report_id)
    return written


def _load_report(report_id: Optional[str], analysis_type: str):
    if not report_id:
        logger.error("Dropping %s task without reportId", analysis_type)
        return None
    report = report_store.get_report(report_id)
    if report is None:
        logger.error("Dropping %s task for unknown report %s", analysis_type, report_id)
        return None
    if analysis_type not in report.expected:
        logger.error("Report %s does not expect a '%s' result, dropping task", report_id, analysis_type)
        return None
    return report


# ── AI providers ──────────────────────────────────────────────────────────────

def run_ai_analysis(analysis_type: str, payload: dict, provider_settings, timeout: float) -> SubResult:
    """Run the provider's prompt templates (SEO and company) against it."""
    website_url = payload["websiteUrl"]
    results = {}
    try:
        for name, template in provider_settings.prompts.items():
            prompt = format_prompt(
                template,
                website_url,
                industry=payload.get("industry"),
                location=payload.get("location"),
                company=payload.get("companyName"),
            )
            out = invoke(analysis_type, prompt, provider_settings, timeout=timeout)
            out["sections"] = parse_sections(out.get("text", ""))
            results[name] = out
    except NotConfigured as exc:
        logger.info("Skipping %s for %s: %s", analysis_type, website_url, exc)
        return SubResult.skipped(str(exc))
    except ProviderError as exc:
        logger.warning("%s analysis failed for %s (%s): %s", analysis_type, website_url, exc.kind, exc)
        return SubResult.failed(str(exc))
    except Exception as exc:
        logger.exception("Unexpected %s failure for %s", analysis_type, website_url)
        return SubResult.failed(f"Unexpected error: {exc}")

    return SubResult.completed(analysis_type, results, model=provider_settings.model)


def handle_ai_task(task_id: str, payload: dict, settings: Settings) -> None:
    analysis_type = payload.get("analysisType") or ""
    report = _load_report(payload.get("reportId"), analysis_type)
    if report is None:
        return

    provider_settings = AIConfig.from_dict(report.ai_config).get(analysis_type)
    if provider_settings is None or not provider_settings.enabled:
        logger.info("Service %s is disabled for report %s", analysis_type, report.id)
        result = SubResult.skipped(DISABLED_REASON)
    else:
        result = run_ai_analysis(
            analysis_type,
            {**payload, "websiteUrl": payload.get("websiteUrl") or report.website_url},
            provider_settings,
            settings.http_timeout_seconds,
        )
    merge_result(report.id, analysis_type, result, task_id)


# ── PageSpeed ─────────────────────────────────────────────────────────────────

def handle_pagespeed_task(task_id: str, payload: dict, settings: Settings) -> None:
    report = _load_report(payload.get("reportId"), PAGESPEED)
    if report is None:
        return
    url = payload.get("websiteUrl") or report.website_url

    try:
        # Lighthouse runs take far longer than a page fetch
        metrics = invoke(PAGESPEED, url, settings.pagespeed, timeout=max(settings.http_timeout_seconds, 120))
        result = SubResult.completed(PAGESPEED, metrics)
    except NotConfigured as exc:
        logger.info("Skipping PageSpeed for %s: %s", url, exc)
        result = SubResult.skipped(str(exc))
    except ProviderError as exc:
        logger.warning("PageSpeed failed for %s (%s): %s", url, exc.kind, exc)
        result = SubResult.failed(str(exc))
    except Exception as exc:
        logger.exception("Unexpected PageSpeed failure for %s", url)
        result = SubResult.failed(f"Unexpected error: {exc}")

    merge_result(report.id, PAGESPEED, result, task_id)


# ── Website structure ─────────────────────────────────────────────────────────

def handle_structure_task(task_id: str, payload: dict, settings: Settings) -> None:
    report = _load_report(payload.get("reportId"), STRUCTURE)
    if report is None:
        return
    url = payload.get("websiteUrl") or report.website_url

    try:
        structure = probe(url, timeout=settings.http_timeout_seconds)
        result = SubResult.completed(STRUCTURE, structure.to_dict())
    except FetchError as exc:
        logger.warning("Structure probe failed for %s: %s", url, exc)
        result = SubResult.failed(str(exc))
    except Exception as exc:
        logger.exception("Unexpected structure probe failure for %s", url)
        result = SubResult.failed(f"Unexpected error: {exc}")

    merge_result(report.id, STRUCTURE, result, task_id)


# ── Queue runner ──────────────────────────────────────────────────────────────

def _handle_pdf(task_id: str, payload: dict, settings: Settings) -> None:
    handle_pdf_task(payload, settings)


HANDLERS = {
    TOPIC_AI_ANALYSIS:  handle_ai_task,
    TOPIC_PAGESPEED:    handle_pagespeed_task,
    TOPIC_STRUCTURE:    handle_structure_task,
    TOPIC_GENERATE_PDF: _handle_pdf,
}


def run_task(task: dict, settings: Settings) -> bool:
    """
    Execute one claimed task. Returns True if it was acknowledged, False if
    it failed on a store error and went back to the queue (or failed for good).
    """
    handler = HANDLERS.get(task["topic"])
    if handler is None:
        logger.error("No handler for topic '%s' (task %s)", task["topic"], task["id"])
        task_queue.fail_task(task["id"], f"Unknown topic {task['topic']}", max_attempts=0)
        return False

    try:
        handler(task["id"], task["payload"], settings)
    except StoreError as exc:
        logger.error("Store error while running task %s: %s", task["id"], exc)
        task_queue.fail_task(task["id"], str(exc), settings.task_max_attempts)
        return False
    except Exception as exc:
        logger.exception("Task %s [%s] crashed", task["id"], task["topic"])
        task_queue.fail_task(task["id"], f"Unexpected error: {exc}", settings.task_max_attempts)
        return False

    task_queue.complete_task(task["id"])
    return True


def drain_queue(settings: Settings, limit: Optional[int] = None) -> int:
    """Run pending tasks until the queue is empty (or `limit` tasks ran)."""
    processed = 0
    while limit is None or processed < limit:
        task = task_queue.claim_next_task(lease_seconds=settings.task_lease_seconds)
        if task is None:
            break
        logger.info("Running task %s [%s] (attempt %d)", task["id"], task["topic"], task["attempts"])
        run_task(task, settings)
        processed += 1
    if processed:
        logger.info("Queue drained: %d task(s) processed", processed)
    return processed
