"""APScheduler-based interval scheduling for full re-index passes."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from apscheduler.events import EVENT_JOB_ERROR
from apscheduler.schedulers.blocking import BlockingScheduler

from keyindex.config import KeyIndexConfig

logger = logging.getLogger("keyindex.scheduler")

JOB_ID = "keyindex"


def _run_pass(config: KeyIndexConfig) -> None:
    """Run a single pass. Failures propagate to the scheduler's error listener."""
    from keyindex.cli import run_once

    results = run_once(config)
    logger.info("Scheduled run complete: %s", results)


def _on_job_error(event) -> None:
    """Log a failed pass; the next interval still fires."""
    logger.error(
        "Scheduled run %s failed: %s",
        event.job_id,
        event.exception,
        exc_info=event.exception,
    )


def build_scheduler(config: KeyIndexConfig) -> BlockingScheduler:
    """Create the scheduler with one interval job, first run immediately."""
    scheduler = BlockingScheduler(timezone=timezone.utc)
    scheduler.add_listener(_on_job_error, EVENT_JOB_ERROR)
    sched = config.scheduler
    scheduler.add_job(
        _run_pass,
        "interval",
        hours=sched.interval_hours,
        args=[config],
        id=JOB_ID,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=sched.misfire_grace_time,
        next_run_time=datetime.now(timezone.utc),
    )
    return scheduler


def start_scheduler(config: KeyIndexConfig) -> None:
    """Start the blocking scheduler."""
    scheduler = build_scheduler(config)
    logger.info(
        "Starting scheduler, re-indexing every %d hours",
        config.scheduler.interval_hours,
    )
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Scheduler stopped")
