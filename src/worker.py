"""Scheduled-work poller for the waitlist engine.

Runs offer expiries and deferred or retried notification dispatches as
they fall due. Jobs are durable ``ScheduledJob`` records, so stopping and
restarting the worker never loses work; anything that came due while it
was down runs on the first poll.

Usage:
    python src/worker.py
    WAITLIST_POLL_INTERVAL_SECONDS=10 python src/worker.py
"""

import structlog
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger
from waitlist.domain import waitlist
from waitlist.gateway import run_due_jobs
from waitlist.settings import get_settings

logger = structlog.get_logger(__name__)


def poll_due_jobs():
    with waitlist.domain_context():
        run_due_jobs()


def _on_job_error(event):
    logger.error("Scheduled poll failed", job_id=event.job_id, error=str(event.exception))


def _on_job_missed(event):
    logger.warning("Scheduled poll missed", job_id=event.job_id, scheduled_run_time=str(event.scheduled_run_time))


def build_scheduler(interval_seconds=None) -> BlockingScheduler:
    interval_seconds = interval_seconds or get_settings().poll_interval_seconds
    scheduler = BlockingScheduler(
        timezone="UTC",
        job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": interval_seconds},
    )
    scheduler.add_job(
        func=poll_due_jobs,
        trigger=IntervalTrigger(seconds=interval_seconds),
        id="run_due_jobs",
        name="Run due waitlist jobs",
        replace_existing=True,
    )
    scheduler.add_listener(_on_job_error, EVENT_JOB_ERROR)
    scheduler.add_listener(_on_job_missed, EVENT_JOB_MISSED)
    return scheduler


def main():
    waitlist.init()
    scheduler = build_scheduler()
    logger.info("Waitlist worker started", interval_seconds=get_settings().poll_interval_seconds)
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Waitlist worker stopped")


if __name__ == "__main__":
    main()
