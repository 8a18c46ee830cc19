"""Domain events for the ScheduledJob aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from waitlist.domain import waitlist


@waitlist.event(part_of="ScheduledJob")
class JobScheduled:
    __version__ = 1

    job_id: Identifier(required=True)
    kind: String(required=True)
    run_at: DateTime(required=True)
    dedupe_key: String()


@waitlist.event(part_of="ScheduledJob")
class ScheduledJobCompleted:
    __version__ = 1

    job_id: Identifier(required=True)
    kind: String(required=True)
    attempts: Integer(required=True)
    completed_at: DateTime(required=True)


@waitlist.event(part_of="ScheduledJob")
class ScheduledJobCancelled:
    __version__ = 1

    job_id: Identifier(required=True)
    kind: String(required=True)
    reason: String()
    cancelled_at: DateTime(required=True)


@waitlist.event(part_of="ScheduledJob")
class ScheduledJobRescheduled:
    """A run failed and the job will be tried again."""

    __version__ = 1

    job_id: Identifier(required=True)
    kind: String(required=True)
    attempts: Integer(required=True)
    error: String()
    run_at: DateTime(required=True)


@waitlist.event(part_of="ScheduledJob")
class ScheduledJobFailed:
    """A job ran out of attempts."""

    __version__ = 1

    job_id: Identifier(required=True)
    kind: String(required=True)
    attempts: Integer(required=True)
    error: String()
    failed_at: DateTime(required=True)
