"""Offer aggregate — a time-boxed, exclusive proposal of a slot to one entry.

The token is the only customer-facing handle: 256 random bits, URL-safe,
with no structure that could be guessed or enumerated.

State Machine:
    PENDING → ACCEPTED
    PENDING → DECLINED
    PENDING → EXPIRED
    PENDING → CANCELLED
"""

import json
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String, Text

from waitlist.clock import as_utc, utc_now
from waitlist.domain import waitlist
from waitlist.offer.events import (
    OfferAccepted,
    OfferCancelled,
    OfferCreated,
    OfferDeclined,
    OfferExpired,
)


class OfferStatus(Enum):
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    DECLINED = "Declined"
    EXPIRED = "Expired"
    CANCELLED = "Cancelled"


class Decision(Enum):
    ACCEPT = "Accept"
    DECLINE = "Decline"


# Pending or accepted offers commit their slot
COMMITTING_STATUSES = (OfferStatus.PENDING.value, OfferStatus.ACCEPTED.value)

_VALID_TRANSITIONS = {
    OfferStatus.PENDING: {
        OfferStatus.ACCEPTED,
        OfferStatus.DECLINED,
        OfferStatus.EXPIRED,
        OfferStatus.CANCELLED,
    },
    OfferStatus.ACCEPTED: set(),  # Terminal
    OfferStatus.DECLINED: set(),  # Terminal
    OfferStatus.EXPIRED: set(),  # Terminal
    OfferStatus.CANCELLED: set(),  # Terminal
}


@dataclass(frozen=True)
class Slot:
    """A bookable time range for a business/service."""

    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start is None or self.end is None:
            raise ValidationError({"slot": ["Slot start and end are required"]})
        object.__setattr__(self, "start", as_utc(self.start))
        object.__setattr__(self, "end", as_utc(self.end))
        if self.end <= self.start:
            raise ValidationError({"slot": ["Slot must end after it starts"]})

    def key(self, business_id, service_id) -> str:
        return f"{business_id}|{service_id}|{self.start.isoformat()}|{self.end.isoformat()}"

    def overlaps(self, other: "Slot") -> bool:
        return self.start < other.end and other.start < self.end


@dataclass(frozen=True)
class BookingDraft:
    """What the booking subsystem needs to persist an accepted offer."""

    offer_id: str
    entry_id: str
    business_id: str
    service_id: str
    customer_id: str
    slot_start: datetime
    slot_end: datetime
    accepted_at: datetime

    def to_dict(self) -> dict:
        return asdict(self)


@waitlist.aggregate
class Offer:
    token: String(max_length=64, required=True, unique=True)

    entry_id: Identifier(required=True)
    customer_id: Identifier(required=True)
    business_id: Identifier(required=True)
    service_id: Identifier(required=True)

    slot_start: DateTime(required=True)
    slot_end: DateTime(required=True)
    slot_key: String(max_length=255, required=True)

    created_at: DateTime(required=True)
    hold_expires_at: DateTime(required=True)
    status: String(choices=OfferStatus, default=OfferStatus.PENDING.value)

    notification_attempts: Integer(default=0)
    expiry_job_id: Identifier()
    resolved_at: DateTime()
    resolution_reason: String(max_length=255)
    passed_over: Text()  # JSON list of entry ids offered this slot earlier in the round

    @classmethod
    def create(cls, entry, slot: Slot, token, hold, passed_over=()):
        now = utc_now()
        offer = cls(
            token=token,
            entry_id=str(entry.id),
            customer_id=str(entry.customer_id),
            business_id=str(entry.business_id),
            service_id=str(entry.service_id),
            slot_start=slot.start,
            slot_end=slot.end,
            slot_key=slot.key(entry.business_id, entry.service_id),
            created_at=now,
            hold_expires_at=now + hold,
            status=OfferStatus.PENDING.value,
            notification_attempts=0,
            passed_over=json.dumps([str(entry_id) for entry_id in passed_over]),
        )
        offer.raise_(
            OfferCreated(
                **offer._identity(),
                slot_start=offer.slot_start,
                slot_end=offer.slot_end,
                hold_expires_at=offer.hold_expires_at,
                created_at=now,
            )
        )
        return offer

    @property
    def slot(self) -> Slot:
        return Slot(self.slot_start, self.slot_end)

    @property
    def passed_over_ids(self) -> list[str]:
        return json.loads(self.passed_over) if self.passed_over else []

    @property
    def is_pending(self) -> bool:
        return self.status == OfferStatus.PENDING.value

    def hold_elapsed(self, now=None) -> bool:
        return (as_utc(now) or utc_now()) >= as_utc(self.hold_expires_at)

    def _identity(self):
        return {
            "offer_id": str(self.id),
            "entry_id": str(self.entry_id),
            "business_id": str(self.business_id),
            "service_id": str(self.service_id),
            "customer_id": str(self.customer_id),
            "slot_key": self.slot_key,
        }

    def _assert_can_transition(self, target_status):
        current = OfferStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def _resolve(self, target_status, reason=None):
        self._assert_can_transition(target_status)
        now = utc_now()
        self.status = target_status.value
        self.resolved_at = now
        self.resolution_reason = reason
        return now

    def accept(self) -> BookingDraft:
        now = self._resolve(OfferStatus.ACCEPTED)
        self.raise_(
            OfferAccepted(
                **self._identity(),
                slot_start=self.slot_start,
                slot_end=self.slot_end,
                accepted_at=now,
            )
        )
        return BookingDraft(
            offer_id=str(self.id),
            entry_id=str(self.entry_id),
            business_id=str(self.business_id),
            service_id=str(self.service_id),
            customer_id=str(self.customer_id),
            slot_start=as_utc(self.slot_start),
            slot_end=as_utc(self.slot_end),
            accepted_at=now,
        )

    def decline(self, reason=None):
        now = self._resolve(OfferStatus.DECLINED, reason)
        self.raise_(OfferDeclined(**self._identity(), reason=reason, declined_at=now))

    def expire(self):
        now = self._resolve(OfferStatus.EXPIRED, "hold_expired")
        self.raise_(OfferExpired(**self._identity(), expired_at=now))

    def cancel(self, reason=None):
        now = self._resolve(OfferStatus.CANCELLED, reason)
        self.raise_(OfferCancelled(**self._identity(), reason=reason, cancelled_at=now))

    def record_notification_attempt(self):
        self.notification_attempts = (self.notification_attempts or 0) + 1
