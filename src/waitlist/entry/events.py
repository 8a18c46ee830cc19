"""Domain events for the WaitingListEntry and WaitlistSettings aggregates."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from waitlist.domain import waitlist


@waitlist.event(part_of="WaitingListEntry")
class CustomerJoinedWaitingList:
    __version__ = 1

    entry_id: Identifier(required=True)
    business_id: Identifier(required=True)
    service_id: Identifier(required=True)
    customer_id: Identifier(required=True)
    priority: Float(required=True)
    joined_at: DateTime(required=True)


@waitlist.event(part_of="WaitingListEntry")
class EntryNotified:
    """The entry is holding an offer."""

    __version__ = 1

    entry_id: Identifier(required=True)
    business_id: Identifier(required=True)
    service_id: Identifier(required=True)
    customer_id: Identifier(required=True)
    offer_id: Identifier(required=True)
    notified_at: DateTime(required=True)


@waitlist.event(part_of="WaitingListEntry")
class EntryReactivated:
    """The entry's offer ended without a booking; it waits again."""

    __version__ = 1

    entry_id: Identifier(required=True)
    business_id: Identifier(required=True)
    service_id: Identifier(required=True)
    customer_id: Identifier(required=True)
    reason: String()
    reactivated_at: DateTime(required=True)


@waitlist.event(part_of="WaitingListEntry")
class EntryBooked:
    __version__ = 1

    entry_id: Identifier(required=True)
    business_id: Identifier(required=True)
    service_id: Identifier(required=True)
    customer_id: Identifier(required=True)
    offer_id: Identifier(required=True)
    booked_at: DateTime(required=True)


@waitlist.event(part_of="WaitingListEntry")
class EntryRemoved:
    __version__ = 1

    entry_id: Identifier(required=True)
    business_id: Identifier(required=True)
    service_id: Identifier(required=True)
    customer_id: Identifier(required=True)
    previous_status: String(required=True)
    reason: String()
    removed_at: DateTime(required=True)


@waitlist.event(part_of="WaitlistSettings")
class WaitlistConfigured:
    __version__ = 1

    business_id: Identifier(required=True)
    service_id: Identifier(required=True)
    enabled: Boolean(required=True)
    hold_minutes: Integer()
    configured_at: DateTime(required=True)
