"""WaitingListEntry aggregate — one customer waiting for one (business, service).

Priority is computed when the customer joins and never recomputed, so
the order of a queue cannot shift underneath an offer decision.

State Machine:
    ACTIVE → NOTIFIED → BOOKED
    ACTIVE → NOTIFIED → ACTIVE (offer declined, expired or cancelled)
    ACTIVE / NOTIFIED → REMOVED
"""

from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, String

from waitlist.clock import utc_now
from waitlist.domain import waitlist
from waitlist.entry.events import (
    CustomerJoinedWaitingList,
    EntryBooked,
    EntryNotified,
    EntryReactivated,
    EntryRemoved,
)


class EntryStatus(Enum):
    ACTIVE = "Active"
    NOTIFIED = "Notified"
    BOOKED = "Booked"
    REMOVED = "Removed"


LIVE_STATUSES = (EntryStatus.ACTIVE.value, EntryStatus.NOTIFIED.value)

_VALID_TRANSITIONS = {
    EntryStatus.ACTIVE: {EntryStatus.NOTIFIED, EntryStatus.REMOVED},
    EntryStatus.NOTIFIED: {EntryStatus.ACTIVE, EntryStatus.BOOKED, EntryStatus.REMOVED},
    EntryStatus.BOOKED: set(),  # Terminal
    EntryStatus.REMOVED: set(),  # Terminal
}


@waitlist.aggregate
class WaitingListEntry:
    business_id: Identifier(required=True)
    service_id: Identifier(required=True)
    customer_id: Identifier(required=True)

    joined_at: DateTime(required=True)
    priority: Float(default=0.0)
    status: String(choices=EntryStatus, default=EntryStatus.ACTIVE.value)

    current_offer_id: Identifier()
    removed_reason: String(max_length=255)
    updated_at: DateTime()

    @classmethod
    def create(cls, business_id, service_id, customer_id, priority, joined_at=None):
        joined_at = joined_at or utc_now()
        entry = cls(
            business_id=business_id,
            service_id=service_id,
            customer_id=customer_id,
            joined_at=joined_at,
            priority=float(priority),
            status=EntryStatus.ACTIVE.value,
            updated_at=joined_at,
        )
        entry.raise_(
            CustomerJoinedWaitingList(
                entry_id=str(entry.id),
                business_id=str(business_id),
                service_id=str(service_id),
                customer_id=str(customer_id),
                priority=entry.priority,
                joined_at=joined_at,
            )
        )
        return entry

    @property
    def is_live(self) -> bool:
        return self.status in LIVE_STATUSES

    def _assert_can_transition(self, target_status):
        current = EntryStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def _identity(self):
        return {
            "entry_id": str(self.id),
            "business_id": str(self.business_id),
            "service_id": str(self.service_id),
            "customer_id": str(self.customer_id),
        }

    def mark_notified(self, offer_id):
        self._assert_can_transition(EntryStatus.NOTIFIED)

        now = utc_now()
        self.status = EntryStatus.NOTIFIED.value
        self.current_offer_id = offer_id
        self.updated_at = now

        self.raise_(EntryNotified(**self._identity(), offer_id=str(offer_id), notified_at=now))

    def reactivate(self, reason=None):
        self._assert_can_transition(EntryStatus.ACTIVE)

        now = utc_now()
        self.status = EntryStatus.ACTIVE.value
        self.current_offer_id = None
        self.updated_at = now

        self.raise_(EntryReactivated(**self._identity(), reason=reason, reactivated_at=now))

    def mark_booked(self, offer_id):
        self._assert_can_transition(EntryStatus.BOOKED)

        now = utc_now()
        self.status = EntryStatus.BOOKED.value
        self.updated_at = now

        self.raise_(EntryBooked(**self._identity(), offer_id=str(offer_id), booked_at=now))

    def remove(self, reason=None):
        self._assert_can_transition(EntryStatus.REMOVED)

        now = utc_now()
        previous = self.status
        self.status = EntryStatus.REMOVED.value
        self.removed_reason = reason
        self.current_offer_id = None
        self.updated_at = now

        self.raise_(EntryRemoved(**self._identity(), previous_status=previous, reason=reason, removed_at=now))
