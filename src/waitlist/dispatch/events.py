"""Domain events for the NotificationJob aggregate."""

from protean.fields import Boolean, DateTime, Identifier, Integer, String

from waitlist.domain import waitlist


@waitlist.event(part_of="NotificationJob")
class NotificationJobQueued:
    """A notification job was accepted for delivery."""

    __version__ = 1

    idempotency_key: Identifier(required=True)
    event_type: String(required=True)
    business_id: Identifier(required=True)
    customer_id: Identifier(required=True)
    reference_id: String()
    channels: String(required=True)  # JSON list
    urgent: Boolean(default=False)
    queued_at: DateTime(required=True)


@waitlist.event(part_of="NotificationJob")
class ChannelSkipped:
    """A target channel was dropped because the recipient is not eligible on it."""

    __version__ = 1

    idempotency_key: Identifier(required=True)
    customer_id: Identifier(required=True)
    channel: String(required=True)
    reason: String(required=True)
    skipped_at: DateTime(required=True)


@waitlist.event(part_of="NotificationJob")
class NotificationJobDeferred:
    """The job fell inside the recipient's quiet hours and will resume later."""

    __version__ = 1

    idempotency_key: Identifier(required=True)
    customer_id: Identifier(required=True)
    resume_at: DateTime(required=True)
    deferred_at: DateTime(required=True)


@waitlist.event(part_of="NotificationJob")
class DeliveryRoundStarted:
    """A delivery round began across the job's remaining channels."""

    __version__ = 1

    idempotency_key: Identifier(required=True)
    event_type: String(required=True)
    reference_id: String()
    attempt: Integer(required=True)
    started_at: DateTime(required=True)


@waitlist.event(part_of="NotificationJob")
class DeliveryAttempted:
    """One channel send completed with a classified outcome."""

    __version__ = 1

    idempotency_key: Identifier(required=True)
    customer_id: Identifier(required=True)
    channel: String(required=True)
    outcome: String(required=True)
    attempt: Integer(required=True)
    message_id: String()
    error: String()
    attempted_at: DateTime(required=True)


@waitlist.event(part_of="NotificationJob")
class NotificationJobRetryScheduled:
    """A transient failure left channels to retry after a backoff."""

    __version__ = 1

    idempotency_key: Identifier(required=True)
    customer_id: Identifier(required=True)
    attempt: Integer(required=True)
    next_attempt_at: DateTime(required=True)
    error: String()


@waitlist.event(part_of="NotificationJob")
class NotificationJobSent:
    """At least one channel delivered the notification."""

    __version__ = 1

    idempotency_key: Identifier(required=True)
    event_type: String(required=True)
    customer_id: Identifier(required=True)
    channels_sent: String(required=True)  # JSON list
    attempts: Integer(required=True)
    sent_at: DateTime(required=True)


@waitlist.event(part_of="NotificationJob")
class NotificationJobFailed:
    """The job ended without any channel delivering it."""

    __version__ = 1

    idempotency_key: Identifier(required=True)
    event_type: String(required=True)
    business_id: Identifier(required=True)
    customer_id: Identifier(required=True)
    reason: String(required=True)
    attempts: Integer(required=True)
    failed_at: DateTime(required=True)
