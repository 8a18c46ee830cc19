"""Application tests for durable scheduled work and the runner."""

from datetime import timedelta

from protean.utils.globals import current_domain
from waitlist import gateway
from waitlist.audit.record import AuditLog
from waitlist.clock import as_utc
from waitlist.scheduling.job import JobKind, ScheduledJob, ScheduledJobStatus
from waitlist.scheduling.runner import ScheduledJobRunner
from waitlist.scheduling.scheduler import Scheduler

DISPATCH = JobKind.NOTIFICATION_DISPATCH.value
EXPIRY = JobKind.OFFER_EXPIRY.value


def _job(job_id):
    return current_domain.repository_for(ScheduledJob).get(job_id)


class TestScheduler:
    def test_schedule_and_list(self, now):
        job_id = Scheduler().schedule_at(now + timedelta(minutes=5), EXPIRY, payload={"offer_id": "o-1"})

        [job] = Scheduler().pending(EXPIRY)
        assert str(job.id) == job_id
        assert job.data == {"offer_id": "o-1"}

    def test_dedupe_key_reuses_live_job(self, now):
        scheduler = Scheduler()
        first = scheduler.schedule_at(now, EXPIRY, dedupe_key="expire:o-1")
        second = scheduler.schedule_at(now + timedelta(minutes=1), EXPIRY, dedupe_key="expire:o-1")

        assert first == second
        assert len(scheduler.pending()) == 1

    def test_dedupe_key_after_cancel_schedules_again(self, now):
        scheduler = Scheduler()
        first = scheduler.schedule_at(now, EXPIRY, dedupe_key="expire:o-1")
        scheduler.cancel(first)

        assert scheduler.schedule_at(now, EXPIRY, dedupe_key="expire:o-1") != first

    def test_cancel(self, now):
        scheduler = Scheduler()
        job_id = scheduler.schedule_at(now, EXPIRY)

        assert scheduler.cancel(job_id, reason="offer_accepted") is True
        assert scheduler.cancel(job_id) is False
        assert scheduler.cancel("missing") is False
        assert scheduler.cancel(None) is False
        assert _job(job_id).status == ScheduledJobStatus.CANCELLED.value

    def test_due_in_run_order(self, now):
        scheduler = Scheduler()
        later = scheduler.schedule_at(now + timedelta(minutes=2), EXPIRY)
        sooner = scheduler.schedule_at(now + timedelta(minutes=1), EXPIRY)
        scheduler.schedule_at(now + timedelta(minutes=10), EXPIRY)

        due = scheduler.due(now + timedelta(minutes=5))
        assert [str(j.id) for j in due] == [sooner, later]


class TestRunner:
    def test_runs_handlers_and_completes_jobs(self, now):
        calls = []
        job_id = Scheduler().schedule_at(now, EXPIRY, payload={"offer_id": "o-1"})
        runner = ScheduledJobRunner(handlers={EXPIRY: lambda payload, at: calls.append((payload, at))})

        summary = runner.run_due()

        assert summary == {"completed": 1, "rescheduled": 0, "failed": 0, "skipped": 0}
        assert calls == [({"offer_id": "o-1"}, now)]
        assert _job(job_id).status == ScheduledJobStatus.COMPLETED.value

    def test_unknown_kind_is_skipped(self, now):
        job_id = Scheduler().schedule_at(now, EXPIRY)

        summary = ScheduledJobRunner(handlers={}).run_due()

        assert summary["skipped"] == 1
        assert _job(job_id).is_scheduled

    def test_crashing_job_does_not_hold_up_later_ones(self, now):
        calls = []
        crashing = Scheduler().schedule_at(now - timedelta(minutes=1), DISPATCH, payload={"idempotency_key": "k-1"})
        later = Scheduler().schedule_at(now, EXPIRY, payload={"offer_id": "o-1"})

        def crash(payload, at):
            raise RuntimeError("template blew up")

        runner = ScheduledJobRunner(handlers={DISPATCH: crash, EXPIRY: lambda payload, at: calls.append(payload)})
        summary = runner.run_due()

        assert summary == {"completed": 1, "rescheduled": 1, "failed": 0, "skipped": 0}
        assert calls == [{"offer_id": "o-1"}]
        assert _job(later).status == ScheduledJobStatus.COMPLETED.value
        job = _job(crashing)
        assert job.is_scheduled
        assert job.attempts == 1
        assert job.last_error == "template blew up"

    def test_failed_job_is_rescheduled(self, now):
        job_id = Scheduler().schedule_at(now, DISPATCH, payload={"idempotency_key": "missing"})

        summary = gateway.run_due_jobs()

        job = _job(job_id)
        assert summary["rescheduled"] == 1
        assert job.attempts == 1
        assert job.is_scheduled
        assert as_utc(job.run_at) == now + timedelta(seconds=60)
        assert AuditLog().kinds(job_id) == ["scheduled_job_rescheduled"]

    def test_job_fails_after_its_attempts(self, now, frozen_clock):
        job_id = Scheduler().schedule_at(now, DISPATCH, payload={"idempotency_key": "missing"})

        for _ in range(5):
            gateway.run_due_jobs()
            frozen_clock.advance(timedelta(seconds=60))

        job = _job(job_id)
        assert job.status == ScheduledJobStatus.FAILED.value
        assert job.attempts == 5
        assert AuditLog().kinds(job_id)[-1] == "scheduled_job_failed"

    def test_nothing_due(self):
        assert gateway.run_due_jobs() == {"completed": 0, "rescheduled": 0, "failed": 0, "skipped": 0}
