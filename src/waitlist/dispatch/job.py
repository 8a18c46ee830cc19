"""NotificationJob aggregate — one logical notification, delivered at most once.

A job is identified by its idempotency key, so re-submitting the same
logical event finds the existing job instead of creating a second send.
Per-channel progress is kept alongside the job so that a retry only
touches channels that have not reached a final outcome.

State Machine:
    QUEUED → SENDING → SENT
    QUEUED → SENDING → QUEUED (retry scheduled)
    QUEUED → DEFERRED → SENDING
    QUEUED / DEFERRED / SENDING → FAILED
"""

import json
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, Integer, String, Text

from waitlist.clock import utc_now
from waitlist.dispatch.events import (
    ChannelSkipped,
    DeliveryAttempted,
    DeliveryRoundStarted,
    NotificationJobDeferred,
    NotificationJobFailed,
    NotificationJobQueued,
    NotificationJobRetryScheduled,
    NotificationJobSent,
)
from waitlist.domain import waitlist


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class Channel(Enum):
    EMAIL = "email"
    SMS = "sms"


class JobStatus(Enum):
    QUEUED = "Queued"
    SENDING = "Sending"
    SENT = "Sent"
    DEFERRED = "Deferred"
    FAILED = "Failed"


class ChannelOutcome(Enum):
    PENDING = "pending"
    SENT = "sent"
    SKIPPED = "skipped"
    SOFT_FAILED = "soft_failed"
    HARD_FAILED = "hard_failed"


class EventType(Enum):
    WAITLIST_JOINED = "waitlist.joined"
    SLOT_OPENED = "waitlist.slot.opened"
    BOOKING_CREATE = "booking.create"
    BOOKING_CANCEL = "booking.cancel"
    PAYMENT_FAILED = "payment.failed"


URGENT_EVENT_TYPES = frozenset(
    {
        EventType.BOOKING_CREATE.value,
        EventType.BOOKING_CANCEL.value,
        EventType.PAYMENT_FAILED.value,
    }
)

NO_ELIGIBLE_CHANNEL = "NoEligibleChannel"

# Channel states that still need a send
_OPEN_OUTCOMES = {ChannelOutcome.PENDING.value, ChannelOutcome.SOFT_FAILED.value}


# ---------------------------------------------------------------------------
# State Machine
# ---------------------------------------------------------------------------
_VALID_TRANSITIONS = {
    JobStatus.QUEUED: {JobStatus.SENDING, JobStatus.DEFERRED, JobStatus.SENT, JobStatus.FAILED},
    JobStatus.DEFERRED: {JobStatus.SENDING, JobStatus.DEFERRED, JobStatus.SENT, JobStatus.FAILED},
    JobStatus.SENDING: {JobStatus.SENT, JobStatus.QUEUED, JobStatus.FAILED},
    JobStatus.SENT: set(),  # Terminal
    JobStatus.FAILED: set(),  # Terminal
}


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@waitlist.aggregate
class NotificationJob:
    """A notification for one customer about one event, across its target channels."""

    idempotency_key: Identifier(identifier=True)

    # What happened, and to whom
    event_type: String(max_length=100, required=True)
    business_id: Identifier(required=True)
    service_id: Identifier()
    customer_id: Identifier(required=True)
    reference_id: String(max_length=255)
    payload: Text()  # JSON template data
    subscription: String(max_length=255)  # waiting-list subscription consent, if required
    urgent: Boolean(default=False)

    # Delivery targets and progress
    channels: Text(required=True)  # JSON list of Channel values
    channel_states: Text()  # JSON map channel -> {"outcome", "error", "message_id"}

    status: String(choices=JobStatus, default=JobStatus.QUEUED.value)
    attempts: Integer(default=0)
    last_error: String(max_length=500)
    next_attempt_at: DateTime()

    created_at: DateTime()
    updated_at: DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        idempotency_key,
        event_type,
        business_id,
        customer_id,
        channels,
        reference_id=None,
        payload=None,
        service_id=None,
        subscription=None,
    ):
        """Create a job in QUEUED status."""
        if not channels:
            raise ValidationError({"channels": ["At least one channel is required"]})
        now = utc_now()
        channel_list = [Channel(c).value for c in channels]

        job = cls(
            idempotency_key=idempotency_key,
            event_type=event_type,
            business_id=business_id,
            service_id=service_id,
            customer_id=customer_id,
            reference_id=reference_id,
            payload=json.dumps(payload or {}, default=str),
            subscription=subscription,
            urgent=event_type in URGENT_EVENT_TYPES,
            channels=json.dumps(channel_list),
            channel_states=json.dumps({c: {"outcome": ChannelOutcome.PENDING.value} for c in channel_list}),
            status=JobStatus.QUEUED.value,
            attempts=0,
            created_at=now,
            updated_at=now,
        )

        job.raise_(
            NotificationJobQueued(
                idempotency_key=idempotency_key,
                event_type=event_type,
                business_id=str(business_id),
                customer_id=str(customer_id),
                reference_id=reference_id,
                channels=job.channels,
                urgent=job.urgent,
                queued_at=now,
            )
        )
        return job

    # -------------------------------------------------------------------
    # Read helpers
    # -------------------------------------------------------------------
    @property
    def data(self) -> dict:
        return json.loads(self.payload) if self.payload else {}

    @property
    def target_channels(self) -> list[str]:
        return json.loads(self.channels)

    @property
    def states(self) -> dict:
        return json.loads(self.channel_states) if self.channel_states else {}

    def outcome_for(self, channel: str) -> str:
        return self.states.get(channel, {}).get("outcome", ChannelOutcome.PENDING.value)

    def open_channels(self) -> list[str]:
        """Channels without a final outcome, in target order."""
        return [c for c in self.target_channels if self.outcome_for(c) in _OPEN_OUTCOMES]

    def sent_channels(self) -> list[str]:
        return [c for c in self.target_channels if self.outcome_for(c) == ChannelOutcome.SENT.value]

    @property
    def is_finished(self) -> bool:
        return JobStatus(self.status) in (JobStatus.SENT, JobStatus.FAILED)

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        current = JobStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def _set_channel_state(self, channel, outcome, error=None, message_id=None):
        states = self.states
        states[channel] = {"outcome": outcome, "error": error, "message_id": message_id}
        self.channel_states = json.dumps(states)

    def skip_channel(self, channel, reason):
        """Drop a channel the recipient is not eligible on. Never retried."""
        now = utc_now()
        self._set_channel_state(channel, ChannelOutcome.SKIPPED.value, error=reason)
        self.updated_at = now

        self.raise_(
            ChannelSkipped(
                idempotency_key=self.idempotency_key,
                customer_id=str(self.customer_id),
                channel=channel,
                reason=reason,
                skipped_at=now,
            )
        )

    def defer(self, resume_at):
        """Park the job until the recipient's quiet hours end."""
        self._assert_can_transition(JobStatus.DEFERRED)

        now = utc_now()
        self.status = JobStatus.DEFERRED.value
        self.next_attempt_at = resume_at
        self.updated_at = now

        self.raise_(
            NotificationJobDeferred(
                idempotency_key=self.idempotency_key,
                customer_id=str(self.customer_id),
                resume_at=resume_at,
                deferred_at=now,
            )
        )

    def start_round(self):
        """Begin a delivery round."""
        self._assert_can_transition(JobStatus.SENDING)

        now = utc_now()
        self.status = JobStatus.SENDING.value
        self.attempts = (self.attempts or 0) + 1
        self.next_attempt_at = None
        self.updated_at = now

        self.raise_(
            DeliveryRoundStarted(
                idempotency_key=self.idempotency_key,
                event_type=self.event_type,
                reference_id=self.reference_id,
                attempt=self.attempts,
                started_at=now,
            )
        )

    def record_delivery(self, channel, outcome, error=None, message_id=None):
        """Record the classified result of one channel send."""
        if JobStatus(self.status) != JobStatus.SENDING:
            raise ValidationError({"status": ["Deliveries can only be recorded while sending"]})

        now = utc_now()
        self._set_channel_state(channel, outcome, error=error, message_id=message_id)
        if error:
            self.last_error = error[:500]
        self.updated_at = now

        self.raise_(
            DeliveryAttempted(
                idempotency_key=self.idempotency_key,
                customer_id=str(self.customer_id),
                channel=channel,
                outcome=outcome,
                attempt=self.attempts,
                message_id=message_id,
                error=error,
                attempted_at=now,
            )
        )

    def schedule_retry(self, next_attempt_at):
        """Return to QUEUED until the backoff elapses."""
        self._assert_can_transition(JobStatus.QUEUED)

        self.status = JobStatus.QUEUED.value
        self.next_attempt_at = next_attempt_at
        self.updated_at = utc_now()

        self.raise_(
            NotificationJobRetryScheduled(
                idempotency_key=self.idempotency_key,
                customer_id=str(self.customer_id),
                attempt=self.attempts,
                next_attempt_at=next_attempt_at,
                error=self.last_error,
            )
        )

    def mark_sent(self):
        self._assert_can_transition(JobStatus.SENT)

        now = utc_now()
        self.status = JobStatus.SENT.value
        self.next_attempt_at = None
        self.updated_at = now

        self.raise_(
            NotificationJobSent(
                idempotency_key=self.idempotency_key,
                event_type=self.event_type,
                customer_id=str(self.customer_id),
                channels_sent=json.dumps(self.sent_channels()),
                attempts=self.attempts or 0,
                sent_at=now,
            )
        )

    def mark_failed(self, reason):
        self._assert_can_transition(JobStatus.FAILED)

        now = utc_now()
        self.status = JobStatus.FAILED.value
        self.last_error = reason[:500]
        self.next_attempt_at = None
        self.updated_at = now

        self.raise_(
            NotificationJobFailed(
                idempotency_key=self.idempotency_key,
                event_type=self.event_type,
                business_id=str(self.business_id),
                customer_id=str(self.customer_id),
                reason=reason,
                attempts=self.attempts or 0,
                failed_at=now,
            )
        )
