"""Runs due scheduled jobs.

Each kind maps to a callable taking ``(payload, as_of)``. A job whose
callable raises is pushed back by the configured retry interval, and marked
Failed once it has used up its attempts. A failing job never holds up the
jobs due after it.
"""

from datetime import timedelta

import structlog
from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from waitlist.audit.record import AuditLog
from waitlist.clock import as_utc, utc_now
from waitlist.errors import WaitlistError
from waitlist.scheduling.job import ScheduledJob
from waitlist.scheduling.scheduler import Scheduler
from waitlist.settings import get_settings

logger = structlog.get_logger(__name__)

RETRYABLE_ERRORS = (WaitlistError, ValidationError, InvalidOperationError, ObjectNotFoundError)


class ScheduledJobRunner:
    def __init__(self, handlers: dict, scheduler=None, settings=None):
        self.handlers = handlers
        self.scheduler = scheduler or Scheduler()
        self.settings = settings or get_settings()

    def run_due(self, as_of=None) -> dict:
        """Execute every job due at ``as_of``. Returns counts per outcome."""
        as_of = as_utc(as_of) or utc_now()
        summary = {"completed": 0, "rescheduled": 0, "failed": 0, "skipped": 0}

        for due in self.scheduler.due(as_of):
            handler = self.handlers.get(due.kind)
            if handler is None:
                logger.warning("No handler for scheduled job kind", job_id=str(due.id), kind=due.kind)
                summary["skipped"] += 1
                continue

            try:
                handler(due.data, as_of)
            except RETRYABLE_ERRORS as exc:
                summary[self._record_failure(due.id, exc, as_of)] += 1
                continue
            except Exception as exc:
                logger.exception(
                    "Scheduled job crashed",
                    job_id=str(due.id),
                    kind=due.kind,
                    error=f"{type(exc).__name__}: {exc}",
                )
                summary[self._record_failure(due.id, exc, as_of)] += 1
                continue

            repo = current_domain.repository_for(ScheduledJob)
            job = repo.get(due.id)
            # The handler may have cancelled this very job
            if job.is_scheduled:
                job.complete()
                repo.add(job)
            summary["completed"] += 1

        if any(summary.values()):
            logger.info("Scheduled jobs processed", as_of=as_of.isoformat(), **summary)
        return summary

    def _record_failure(self, job_id, exc, as_of) -> str:
        repo = current_domain.repository_for(ScheduledJob)
        job = repo.get(job_id)
        retry_at = as_of + timedelta(seconds=self.settings.scheduled_job_retry_seconds)
        job.record_failure(exc, retry_at=retry_at, max_attempts=self.settings.scheduled_job_max_attempts)
        repo.add(job)

        outcome = "rescheduled" if job.is_scheduled else "failed"
        AuditLog().append(
            f"scheduled_job_{outcome}",
            "ScheduledJob",
            job.id,
            job_kind=job.kind,
            attempts=job.attempts,
            error=job.last_error,
        )
        log = logger.warning if job.is_scheduled else logger.error
        log(
            "Scheduled job failed",
            job_id=str(job.id),
            kind=job.kind,
            attempts=job.attempts,
            error=job.last_error,
            outcome=outcome,
        )
        return outcome
