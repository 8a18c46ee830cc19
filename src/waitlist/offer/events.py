"""Domain events for the Offer aggregate."""

from protean.fields import DateTime, Identifier, String

from waitlist.domain import waitlist


@waitlist.event(part_of="Offer")
class OfferCreated:
    """A slot was offered exclusively to one waiting-list entry."""

    __version__ = 1

    offer_id: Identifier(required=True)
    entry_id: Identifier(required=True)
    business_id: Identifier(required=True)
    service_id: Identifier(required=True)
    customer_id: Identifier(required=True)
    slot_key: String(required=True)
    slot_start: DateTime(required=True)
    slot_end: DateTime(required=True)
    hold_expires_at: DateTime(required=True)
    created_at: DateTime(required=True)


@waitlist.event(part_of="Offer")
class OfferAccepted:
    """The customer took the slot. Carries the booking draft."""

    __version__ = 1

    offer_id: Identifier(required=True)
    entry_id: Identifier(required=True)
    business_id: Identifier(required=True)
    service_id: Identifier(required=True)
    customer_id: Identifier(required=True)
    slot_key: String(required=True)
    slot_start: DateTime(required=True)
    slot_end: DateTime(required=True)
    accepted_at: DateTime(required=True)


@waitlist.event(part_of="Offer")
class OfferDeclined:
    __version__ = 1

    offer_id: Identifier(required=True)
    entry_id: Identifier(required=True)
    business_id: Identifier(required=True)
    service_id: Identifier(required=True)
    customer_id: Identifier(required=True)
    slot_key: String(required=True)
    reason: String()
    declined_at: DateTime(required=True)


@waitlist.event(part_of="Offer")
class OfferExpired:
    """The hold window ran out without a response."""

    __version__ = 1

    offer_id: Identifier(required=True)
    entry_id: Identifier(required=True)
    business_id: Identifier(required=True)
    service_id: Identifier(required=True)
    customer_id: Identifier(required=True)
    slot_key: String(required=True)
    expired_at: DateTime(required=True)


@waitlist.event(part_of="Offer")
class OfferCancelled:
    """Another offer for an overlapping slot was accepted first."""

    __version__ = 1

    offer_id: Identifier(required=True)
    entry_id: Identifier(required=True)
    business_id: Identifier(required=True)
    service_id: Identifier(required=True)
    customer_id: Identifier(required=True)
    slot_key: String(required=True)
    reason: String()
    cancelled_at: DateTime(required=True)
