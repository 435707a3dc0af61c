"""
APScheduler wrapper: polls the task queue on a fixed interval.

Run several worker processes to process sub-analyses in parallel; each one
claims tasks atomically from the shared database.
"""

import logging
import sys

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)


def start_worker_scheduler(drain_fn, poll_seconds: int = 5) -> None:
    """
    Start a blocking scheduler that calls `drain_fn` every `poll_seconds`.
    Only one drain runs at a time per process.
    """
    scheduler = BlockingScheduler(timezone="UTC")

    scheduler.add_job(
        drain_fn,
        trigger=IntervalTrigger(seconds=poll_seconds),
        id="drain_task_queue",
        name="Drain analysis task queue",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )

    logger.info("Worker started, polling the task queue every %ds", poll_seconds)

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Worker stopped")
        scheduler.shutdown(wait=False)
        sys.exit(0)
