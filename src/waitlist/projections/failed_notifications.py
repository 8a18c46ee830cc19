"""Failed notifications — jobs that ended without reaching any channel.

Operators review this list; nothing here is retried automatically.
"""

from protean.core.projector import on
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from waitlist.clock import as_utc
from waitlist.dispatch.events import NotificationJobFailed
from waitlist.dispatch.job import NotificationJob
from waitlist.domain import waitlist


@waitlist.projection
class FailedNotification:
    idempotency_key = Identifier(identifier=True, required=True)
    event_type = String(required=True, max_length=100)
    business_id = String(max_length=255)
    customer_id = String(max_length=255)
    reason = String(max_length=500)
    attempts = Integer(default=0)
    failed_at = DateTime(required=True)


@waitlist.projector(projector_for=FailedNotification, aggregates=[NotificationJob])
class FailedNotificationProjector:
    @on(NotificationJobFailed)
    def on_job_failed(self, event):
        current_domain.repository_for(FailedNotification).add(
            FailedNotification(
                idempotency_key=event.idempotency_key,
                event_type=event.event_type,
                business_id=event.business_id,
                customer_id=event.customer_id,
                reason=(event.reason or "")[:500],
                attempts=event.attempts,
                failed_at=event.failed_at,
            )
        )


def failed_notifications(business_id=None) -> list:
    query = current_domain.repository_for(FailedNotification)._dao.query
    records = query.filter(business_id=str(business_id)).all().items if business_id else query.all().items
    return sorted(records, key=lambda r: as_utc(r.failed_at))
