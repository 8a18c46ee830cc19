"""Notification commands + handlers, and the auto-dispatch event handler.

Jobs are dispatched as soon as they are queued. Deferred and retried jobs
come back through ``DispatchNotification``, issued by the scheduled-work
runner when their resume time arrives. A delivery pass that crashes fails
its job instead of leaving it open.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from waitlist.directory import get_directory
from waitlist.dispatch.dispatcher import NotificationDispatcher
from waitlist.dispatch.events import NotificationJobQueued
from waitlist.dispatch.job import JobStatus, NotificationJob
from waitlist.domain import waitlist

logger = structlog.get_logger(__name__)


@waitlist.command(part_of="NotificationJob")
class SendNotification:
    """Notify a customer about an event raised outside the waitlist (bookings, payments)."""

    event_type: String(required=True, max_length=100)
    business_id: Identifier(required=True)
    customer_id: Identifier(required=True)
    reference_id: String(max_length=255)
    data: Text()  # JSON
    channels: Text()  # JSON list, defaults to the template's channels


@waitlist.command(part_of="NotificationJob")
class DispatchNotification:
    idempotency_key: Identifier(required=True)
    as_of: DateTime()


def _dispatch_or_fail(job, now=None):
    dispatcher = NotificationDispatcher()
    try:
        return dispatcher.dispatch(job, now=now)
    except Exception as exc:
        logger.exception(
            "Notification dispatch crashed",
            idempotency_key=job.idempotency_key,
            error=f"{type(exc).__name__}: {exc}",
        )
        return dispatcher.abandon(job, exc)


@waitlist.command_handler(part_of=NotificationJob)
class NotificationCommandHandler:
    @handle(SendNotification)
    def send_notification(self, command: SendNotification):
        data = json.loads(command.data) if command.data else {}
        data.setdefault("business_name", get_directory().business_name(str(command.business_id)))
        job = NotificationDispatcher().submit(
            event_type=command.event_type,
            business_id=command.business_id,
            customer_id=command.customer_id,
            reference_id=command.reference_id,
            data=data,
            channels=json.loads(command.channels) if command.channels else None,
        )
        return job.idempotency_key

    @handle(DispatchNotification)
    def dispatch_notification(self, command: DispatchNotification):
        job = current_domain.repository_for(NotificationJob).get(command.idempotency_key)
        return _dispatch_or_fail(job, now=command.as_of)


@waitlist.event_handler(part_of=NotificationJob)
class AutoDispatchHandler:
    """Delivers newly queued jobs right away."""

    @handle(NotificationJobQueued)
    def on_job_queued(self, event: NotificationJobQueued) -> None:
        repo = current_domain.repository_for(NotificationJob)
        try:
            job = repo.get(event.idempotency_key)
        except ObjectNotFoundError:
            logger.error("Queued notification job not found", idempotency_key=event.idempotency_key)
            return

        if JobStatus(job.status) != JobStatus.QUEUED or job.next_attempt_at is not None:
            return

        _dispatch_or_fail(job)
