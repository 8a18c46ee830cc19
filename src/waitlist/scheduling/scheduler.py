"""Scheduler — ``schedule_at`` / ``cancel`` / ``due`` over ScheduledJob."""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from waitlist.clock import as_utc, utc_now
from waitlist.scheduling.job import ScheduledJob, ScheduledJobStatus

logger = structlog.get_logger(__name__)


class Scheduler:
    def schedule_at(self, run_at, kind, payload=None, dedupe_key=None) -> str:
        """Persist a job to run at ``run_at``. Returns the job id.

        A live job with the same ``dedupe_key`` is reused instead of
        scheduling a second one.
        """
        repo = current_domain.repository_for(ScheduledJob)
        if dedupe_key:
            existing = [
                j
                for j in repo._dao.query.filter(dedupe_key=dedupe_key).all().items
                if j.status == ScheduledJobStatus.SCHEDULED.value
            ]
            if existing:
                return str(existing[0].id)

        job = ScheduledJob.create(kind=kind, run_at=as_utc(run_at), payload=payload, dedupe_key=dedupe_key)
        repo.add(job)
        logger.info("Job scheduled", job_id=str(job.id), kind=kind, run_at=str(job.run_at))
        return str(job.id)

    def cancel(self, job_id, reason=None) -> bool:
        if not job_id:
            return False
        repo = current_domain.repository_for(ScheduledJob)
        try:
            job = repo.get(job_id)
        except ObjectNotFoundError:
            return False
        if not job.is_scheduled:
            return False
        job.cancel(reason)
        repo.add(job)
        logger.info("Job cancelled", job_id=str(job_id), kind=job.kind, reason=reason)
        return True

    def due(self, as_of=None) -> list:
        as_of = as_utc(as_of) or utc_now()
        jobs = (
            current_domain.repository_for(ScheduledJob)
            ._dao.query.filter(status=ScheduledJobStatus.SCHEDULED.value)
            .all()
            .items
        )
        ready = [j for j in jobs if as_utc(j.run_at) <= as_of]
        return sorted(ready, key=lambda j: as_utc(j.run_at))

    def pending(self, kind=None) -> list:
        jobs = (
            current_domain.repository_for(ScheduledJob)
            ._dao.query.filter(status=ScheduledJobStatus.SCHEDULED.value)
            .all()
            .items
        )
        return [j for j in jobs if kind is None or j.kind == kind]
