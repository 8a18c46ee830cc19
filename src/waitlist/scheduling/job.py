"""ScheduledJob aggregate — durable time-driven work.

Offer hold expiry, quiet-hours resumption and notification retries are
stored as scheduled jobs rather than in-process timers, so a restart
never loses them. A runner picks up due jobs (see ``runner.py``).
"""

import json
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Integer, String, Text

from waitlist.clock import utc_now
from waitlist.domain import waitlist
from waitlist.scheduling.events import (
    JobScheduled,
    ScheduledJobCancelled,
    ScheduledJobCompleted,
    ScheduledJobFailed,
    ScheduledJobRescheduled,
)


class JobKind(Enum):
    OFFER_EXPIRY = "offer.expire"
    NOTIFICATION_DISPATCH = "notification.dispatch"


class ScheduledJobStatus(Enum):
    SCHEDULED = "Scheduled"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    FAILED = "Failed"


@waitlist.aggregate
class ScheduledJob:
    kind: String(choices=JobKind, required=True)
    run_at: DateTime(required=True)
    payload: Text()  # JSON
    dedupe_key: String(max_length=255)
    status: String(choices=ScheduledJobStatus, default=ScheduledJobStatus.SCHEDULED.value)
    attempts: Integer(default=0)
    last_error: String(max_length=500)
    created_at: DateTime()
    finished_at: DateTime()

    @classmethod
    def create(cls, kind, run_at, payload=None, dedupe_key=None):
        job = cls(
            kind=kind,
            run_at=run_at,
            payload=json.dumps(payload or {}, default=str),
            dedupe_key=dedupe_key,
            status=ScheduledJobStatus.SCHEDULED.value,
            attempts=0,
            created_at=utc_now(),
        )
        job.raise_(JobScheduled(job_id=str(job.id), kind=kind, run_at=run_at, dedupe_key=dedupe_key))
        return job

    @property
    def data(self) -> dict:
        return json.loads(self.payload) if self.payload else {}

    @property
    def is_scheduled(self) -> bool:
        return self.status == ScheduledJobStatus.SCHEDULED.value

    def _assert_scheduled(self):
        if not self.is_scheduled:
            raise ValidationError({"status": [f"Job is already {self.status}"]})

    def complete(self):
        self._assert_scheduled()
        now = utc_now()
        self.status = ScheduledJobStatus.COMPLETED.value
        self.attempts = (self.attempts or 0) + 1
        self.finished_at = now
        self.raise_(
            ScheduledJobCompleted(job_id=str(self.id), kind=self.kind, attempts=self.attempts, completed_at=now)
        )

    def cancel(self, reason=None):
        self._assert_scheduled()
        now = utc_now()
        self.status = ScheduledJobStatus.CANCELLED.value
        self.finished_at = now
        self.raise_(ScheduledJobCancelled(job_id=str(self.id), kind=self.kind, reason=reason, cancelled_at=now))

    def record_failure(self, error, retry_at, max_attempts):
        """Push the job back to ``retry_at``, or fail it once attempts run out."""
        self._assert_scheduled()
        now = utc_now()
        self.attempts = (self.attempts or 0) + 1
        self.last_error = str(error)[:500]

        if self.attempts >= max_attempts:
            self.status = ScheduledJobStatus.FAILED.value
            self.finished_at = now
            self.raise_(
                ScheduledJobFailed(
                    job_id=str(self.id),
                    kind=self.kind,
                    attempts=self.attempts,
                    error=self.last_error,
                    failed_at=now,
                )
            )
            return

        self.run_at = retry_at
        self.raise_(
            ScheduledJobRescheduled(
                job_id=str(self.id),
                kind=self.kind,
                attempts=self.attempts,
                error=self.last_error,
                run_at=retry_at,
            )
        )
