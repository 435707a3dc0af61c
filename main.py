"""
main.py: CLI entry point for the website analysis service.

Usage:
  python main.py --serve                 Start the HTTP API
  python main.py --worker                Poll the task queue and run sub-analyses (blocks)
  python main.py --drain                 Run every pending task once, then exit
  python main.py --analyze URL           Dispatch a report, run it to completion, print it
  python main.py --init-db               Initialise the database only
"""

import argparse
import json
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

# ── Logging setup ─────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler("analysis.log", encoding="utf-8"),
    ],
)
logger = logging.getLogger("main")


# ── Commands ──────────────────────────────────────────────────────────────────

def run_drain(settings) -> int:
    from analysis.worker import drain_queue
    return drain_queue(settings)


def run_analyze(settings, url: str, services=None, email=None, industry=None,
                location=None, company=None) -> dict:
    """Dispatch one report and process its tasks in this process."""
    from analysis.dispatcher import dispatch
    from analysis.models import ReportRequest
    from storage.reports import get_report

    request = ReportRequest(
        website_url=url,
        email=email,
        industry=industry,
        location=location,
        company_name=company,
        enabled_services=services,
    )
    report_id = dispatch(request, settings)
    logger.info("=== Running sub-analyses for report %s ===", report_id)
    run_drain(settings)
    return get_report(report_id).to_dict()


def print_summary(doc: dict) -> None:
    print(f"\n{'='*60}")
    print(f"  Report:   {doc['reportId']}")
    print(f"  URL:      {doc['websiteUrl']}")
    print(f"  Status:   {doc['status']}")
    for provider, result in (doc.get("aiAnalysis") or {}).items():
        print(f"  {provider:<9} {result.get('status')}")
    for key in ("pageSpeed", "websiteStructure"):
        result = doc.get(key) or {}
        print(f"  {key:<17} {result.get('status', 'processing')}")
    structure = (doc.get("websiteStructure") or {}).get("payload") or {}
    for reco in structure.get("recommendations", []):
        print(f"    - {reco}")
    print()


# ── CLI ───────────────────────────────────────────────────────────────────────

def main():
    parser = argparse.ArgumentParser(
        description="Website AI-visibility report: fan out to AI providers, PageSpeed and a structure probe"
    )
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--serve", action="store_true", help="Start the HTTP API")
    group.add_argument(
        "--worker",
        action="store_true",
        help="Poll the task queue and run sub-analyses (blocks until interrupted)",
    )
    group.add_argument("--drain", action="store_true", help="Run all pending tasks once and exit")
    group.add_argument("--analyze", metavar="URL", help="Analyze URL end to end in this process")
    group.add_argument("--init-db", action="store_true", help="Initialise the database only")

    parser.add_argument("--config", default="config.yaml", help="Path to config.yaml")
    parser.add_argument("--services", nargs="*", help="AI providers for --analyze (default: all)")
    parser.add_argument("--email", help="Recipient email for --analyze")
    parser.add_argument("--industry")
    parser.add_argument("--location")
    parser.add_argument("--company")
    parser.add_argument("--json", action="store_true", help="Print the full report JSON for --analyze")

    args = parser.parse_args()

    from settings import load_config
    from storage.db import init_db

    settings = load_config(args.config)
    init_db()

    if args.serve:
        from web.app import create_app
        app = create_app(settings)
        app.run(host=app.config["HOST"], port=app.config["PORT"], debug=app.config["DEBUG"])

    elif args.worker:
        from scheduler import start_worker_scheduler
        start_worker_scheduler(lambda: run_drain(settings), poll_seconds=settings.worker_poll_seconds)

    elif args.drain:
        from storage.tasks import list_tasks
        processed = run_drain(settings)
        logger.info("Processed %d task(s)", processed)
        for task in list_tasks(status="failed"):
            logger.warning(
                "Failed task %s [%s] after %d attempt(s): %s",
                task["id"], task["topic"], task["attempts"], task["last_error"],
            )

    elif args.analyze:
        doc = run_analyze(
            settings,
            args.analyze,
            services=args.services,
            email=args.email,
            industry=args.industry,
            location=args.location,
            company=args.company,
        )
        if args.json:
            print(json.dumps(doc, indent=2, default=str))
        else:
            print_summary(doc)

    elif args.init_db:
        logger.info("Database initialised.")


if __name__ == "__main__":
    main()
