"""NotificationDispatcher — submit notification jobs and deliver them.

``submit`` turns a triggering event into a job keyed by its idempotency
key; resubmitting the same event returns the existing job.

``dispatch`` runs one delivery pass over a job:

    (a) deduplicate — a job already Sent is reported as delivered, never resent
    (b) eligibility — ineligible channels are skipped for good, not retried
    (c) quiet hours — non-urgent jobs inside the recipient's quiet hours are
        deferred to the end of the window through a durable scheduled job
    (d) delivery — each remaining channel is sent and classified:
        Sent, HardFail (bounce handling → suppression, no retry) or
        SoftFail (retry with backoff up to the attempt ceiling)

A failure here never propagates into the offer transition that triggered
the job: the job ends Failed, which the audit projector records, and the
failure is logged.
"""

from dataclasses import dataclass, field
from datetime import datetime

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from waitlist.channel import HARD_FAIL, SENT, SOFT_FAIL, get_channel
from waitlist.clock import utc_now
from waitlist.contact.contact import CustomerContact
from waitlist.dispatch.eligibility import EligibilityGate
from waitlist.dispatch.job import (
    NO_ELIGIBLE_CHANNEL,
    Channel,
    ChannelOutcome,
    JobStatus,
    NotificationJob,
)
from waitlist.dispatch.quiet_hours import QuietWindow
from waitlist.keys import idempotency_key, mask_address
from waitlist.scheduling.job import JobKind
from waitlist.scheduling.scheduler import Scheduler
from waitlist.settings import get_settings
from waitlist.suppression.registry import BouncePolicy
from waitlist.suppression.suppression import BounceSeverity
from waitlist.templates import get_template

logger = structlog.get_logger(__name__)

_OUTCOMES = {
    SENT: ChannelOutcome.SENT.value,
    HARD_FAIL: ChannelOutcome.HARD_FAILED.value,
    SOFT_FAIL: ChannelOutcome.SOFT_FAILED.value,
}


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of one dispatch pass."""

    status: str
    duplicate: bool = False
    resume_at: datetime | None = None
    sent: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def delivered(self) -> bool:
        return self.status == JobStatus.SENT.value


class NotificationDispatcher:
    def __init__(
        self,
        gate: EligibilityGate | None = None,
        scheduler: Scheduler | None = None,
        bounce_policy: BouncePolicy | None = None,
        settings=None,
        channel_lookup=get_channel,
    ):
        self.gate = gate or EligibilityGate()
        self.scheduler = scheduler or Scheduler()
        self.bounce_policy = bounce_policy or BouncePolicy(registry=self.gate.registry)
        self.settings = settings or get_settings()
        self.channel_lookup = channel_lookup

    # -------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------
    def submit(
        self,
        event_type,
        business_id,
        customer_id,
        reference_id=None,
        data=None,
        channels=None,
        subscription=None,
        service_id=None,
    ) -> NotificationJob:
        """Queue a notification for a triggering event, at most once per event."""
        key = idempotency_key(event_type, business_id, customer_id, reference_id)
        repo = current_domain.repository_for(NotificationJob)
        try:
            existing = repo.get(key)
        except ObjectNotFoundError:
            existing = None
        if existing is not None:
            logger.info(
                "Duplicate notification submission ignored",
                idempotency_key=key,
                event_type=event_type,
                status=existing.status,
            )
            return existing

        try:
            template = get_template(event_type)
        except ValueError:
            raise ValidationError({"event_type": [f"No template registered for {event_type}"]}) from None
        if channels is None:
            channels = template.default_channels

        job = NotificationJob.create(
            idempotency_key=key,
            event_type=event_type,
            business_id=business_id,
            service_id=service_id,
            customer_id=customer_id,
            reference_id=str(reference_id) if reference_id is not None else None,
            payload=data,
            channels=channels,
            subscription=subscription,
        )
        repo.add(job)
        logger.info(
            "Notification queued",
            idempotency_key=key,
            event_type=event_type,
            customer_id=str(customer_id),
            channels=list(channels),
        )
        return job

    # -------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------
    def dispatch(self, job: NotificationJob, now=None) -> DispatchResult:
        now = now or utc_now()
        status = JobStatus(job.status)

        if status == JobStatus.SENT:
            logger.info("Notification already sent, not resending", idempotency_key=job.idempotency_key)
            return DispatchResult(status=status.value, duplicate=True, sent=job.sent_channels())
        if status == JobStatus.FAILED:
            return DispatchResult(status=status.value, error=job.last_error)

        repo = current_domain.repository_for(NotificationJob)
        contact = self._contact(job.customer_id)

        skipped = self._apply_eligibility(job, contact)
        if not job.open_channels():
            result = self._finish(job, skipped)
            repo.add(job)
            return result

        if not job.urgent:
            window = QuietWindow.for_contact(contact, self.settings)
            if window.contains(now):
                resume_at = window.next_end(now)
                job.defer(resume_at)
                self._schedule_resume(job, resume_at)
                repo.add(job)
                logger.info(
                    "Notification deferred for quiet hours",
                    idempotency_key=job.idempotency_key,
                    customer_id=str(job.customer_id),
                    resume_at=resume_at.isoformat(),
                )
                return DispatchResult(status=JobStatus.DEFERRED.value, resume_at=resume_at, skipped=skipped)

        job.start_round()
        message = self._render(job)
        for channel in job.open_channels():
            self._deliver(job, contact, channel, message)

        if job.open_channels() and (job.attempts or 0) < self.settings.max_attempts:
            next_at = now + self.settings.retry_delay(job.attempts)
            job.schedule_retry(next_at)
            self._schedule_resume(job, next_at)
            repo.add(job)
            logger.warning(
                "Notification delivery will be retried",
                idempotency_key=job.idempotency_key,
                attempt=job.attempts,
                next_attempt_at=next_at.isoformat(),
                error=job.last_error,
            )
            return DispatchResult(
                status=JobStatus.QUEUED.value,
                resume_at=next_at,
                sent=job.sent_channels(),
                skipped=skipped,
                error=job.last_error,
            )

        result = self._finish(job, skipped)
        repo.add(job)
        return result

    def abandon(self, job: NotificationJob, exc: Exception) -> DispatchResult:
        """Fail a job whose delivery pass crashed, so it is surfaced rather than left open."""
        if job.is_finished:
            return DispatchResult(status=job.status, error=job.last_error)
        reason = f"Dispatch crashed: {type(exc).__name__}: {exc}"
        job.mark_failed(reason)
        current_domain.repository_for(NotificationJob).add(job)
        logger.error(
            "Notification failed",
            idempotency_key=job.idempotency_key,
            event_type=job.event_type,
            customer_id=str(job.customer_id),
            reason=reason,
        )
        return DispatchResult(status=JobStatus.FAILED.value, error=reason)

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _contact(self, customer_id):
        try:
            return current_domain.repository_for(CustomerContact).get(customer_id)
        except ObjectNotFoundError:
            return None

    def _apply_eligibility(self, job, contact) -> list[str]:
        skipped = []
        for channel in job.open_channels():
            verdict = self.gate.evaluate(contact, channel, job.subscription)
            if verdict.allowed:
                continue
            job.skip_channel(channel, verdict.reason)
            skipped.append(channel)
            logger.info(
                "Channel skipped, recipient not eligible",
                idempotency_key=job.idempotency_key,
                customer_id=str(job.customer_id),
                channel=channel,
                reason=verdict.reason,
            )
        return skipped

    def _render(self, job) -> dict:
        return get_template(job.event_type).render(job.data)

    def _deliver(self, job, contact, channel, message):
        address = contact.address_for(channel)
        try:
            adapter = self.channel_lookup(channel)
            if channel == Channel.EMAIL.value:
                response = adapter.send(
                    to=address,
                    subject=message.get("subject", ""),
                    body=message.get("body", ""),
                    idempotency_key=job.idempotency_key,
                )
            else:
                response = adapter.send(
                    to=address,
                    body=message.get("sms") or message.get("body", ""),
                    idempotency_key=job.idempotency_key,
                )
        except Exception as exc:
            # Transport errors (timeouts, provider 5xx) are transient
            response = {"status": SOFT_FAIL, "error": f"{type(exc).__name__}: {exc}"}

        outcome = _OUTCOMES.get(response.get("status"), ChannelOutcome.SOFT_FAILED.value)
        error = response.get("error") if outcome != ChannelOutcome.SENT.value else None
        job.record_delivery(channel, outcome, error=error, message_id=response.get("message_id"))

        log = logger.info if outcome == ChannelOutcome.SENT.value else logger.warning
        log(
            "Delivery attempted",
            idempotency_key=job.idempotency_key,
            channel=channel,
            address=mask_address(address),
            outcome=outcome,
            attempt=job.attempts,
            error=error,
        )

        if outcome == ChannelOutcome.HARD_FAILED.value:
            self.bounce_policy.handle(
                channel=channel,
                address=address,
                severity=BounceSeverity.HARD.value,
                reason=error,
                contacts=[contact],
            )

    def _schedule_resume(self, job, run_at):
        self.scheduler.schedule_at(
            run_at,
            JobKind.NOTIFICATION_DISPATCH.value,
            payload={"idempotency_key": job.idempotency_key},
            dedupe_key=f"dispatch:{job.idempotency_key}:{run_at.isoformat()}",
        )

    def _finish(self, job, skipped) -> DispatchResult:
        sent = job.sent_channels()
        if sent:
            job.mark_sent()
            logger.info(
                "Notification sent",
                idempotency_key=job.idempotency_key,
                event_type=job.event_type,
                channels=sent,
            )
            return DispatchResult(status=JobStatus.SENT.value, sent=sent, skipped=skipped)

        outcomes = {job.outcome_for(c) for c in job.target_channels}
        if outcomes == {ChannelOutcome.SKIPPED.value}:
            reason = NO_ELIGIBLE_CHANNEL
        elif ChannelOutcome.SOFT_FAILED.value in outcomes:
            reason = f"Retries exhausted after {job.attempts} attempts: {job.last_error}"
        else:
            reason = f"Permanent delivery failure: {job.last_error}"

        job.mark_failed(reason)
        logger.error(
            "Notification failed",
            idempotency_key=job.idempotency_key,
            event_type=job.event_type,
            customer_id=str(job.customer_id),
            reason=reason,
        )
        return DispatchResult(status=JobStatus.FAILED.value, skipped=skipped, error=reason)
