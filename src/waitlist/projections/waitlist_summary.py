"""Waitlist summary — per (business, service) counts for operator dashboards.

Keyed by ``<business_id>:<service_id>``. Tracks how many entries are
waiting, holding an offer, booked or removed, plus offer throughput.
"""

from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Integer, String
from protean.utils.globals import current_domain

from waitlist.domain import waitlist
from waitlist.entry.entry import EntryStatus, WaitingListEntry
from waitlist.entry.events import (
    CustomerJoinedWaitingList,
    EntryBooked,
    EntryNotified,
    EntryReactivated,
    EntryRemoved,
)
from waitlist.offer.events import (
    OfferAccepted,
    OfferCancelled,
    OfferCreated,
    OfferDeclined,
    OfferExpired,
)
from waitlist.offer.offer import Offer


@waitlist.projection
class WaitlistSummary:
    summary_key = String(identifier=True, required=True, max_length=255)
    business_id = String(required=True, max_length=255)
    service_id = String(required=True, max_length=255)
    waiting = Integer(default=0)
    notified = Integer(default=0)
    booked = Integer(default=0)
    removed = Integer(default=0)
    open_offers = Integer(default=0)
    offers_made = Integer(default=0)
    offers_accepted = Integer(default=0)
    offers_expired = Integer(default=0)
    updated_at = DateTime()


def summary_key(business_id, service_id) -> str:
    return f"{business_id}:{service_id}"


def _get_or_create(business_id, service_id):
    key = summary_key(business_id, service_id)
    repo = current_domain.repository_for(WaitlistSummary)
    try:
        return repo.get(key)
    except ObjectNotFoundError:
        return WaitlistSummary(
            summary_key=key,
            business_id=str(business_id),
            service_id=str(service_id),
            waiting=0,
            notified=0,
            booked=0,
            removed=0,
            open_offers=0,
            offers_made=0,
            offers_accepted=0,
            offers_expired=0,
        )


def _update(event, occurred_at, **deltas):
    record = _get_or_create(event.business_id, event.service_id)
    for name, delta in deltas.items():
        setattr(record, name, max((getattr(record, name) or 0) + delta, 0))
    record.updated_at = occurred_at
    current_domain.repository_for(WaitlistSummary).add(record)


@waitlist.projector(projector_for=WaitlistSummary, aggregates=[WaitingListEntry, Offer])
class WaitlistSummaryProjector:
    @on(CustomerJoinedWaitingList)
    def on_joined(self, event):
        _update(event, event.joined_at, waiting=1)

    @on(EntryNotified)
    def on_entry_notified(self, event):
        _update(event, event.notified_at, waiting=-1, notified=1)

    @on(EntryReactivated)
    def on_entry_reactivated(self, event):
        _update(event, event.reactivated_at, notified=-1, waiting=1)

    @on(EntryBooked)
    def on_entry_booked(self, event):
        _update(event, event.booked_at, notified=-1, booked=1)

    @on(EntryRemoved)
    def on_entry_removed(self, event):
        if event.previous_status == EntryStatus.NOTIFIED.value:
            _update(event, event.removed_at, notified=-1, removed=1)
        else:
            _update(event, event.removed_at, waiting=-1, removed=1)

    @on(OfferCreated)
    def on_offer_created(self, event):
        _update(event, event.created_at, open_offers=1, offers_made=1)

    @on(OfferAccepted)
    def on_offer_accepted(self, event):
        _update(event, event.accepted_at, open_offers=-1, offers_accepted=1)

    @on(OfferDeclined)
    def on_offer_declined(self, event):
        _update(event, event.declined_at, open_offers=-1)

    @on(OfferExpired)
    def on_offer_expired(self, event):
        _update(event, event.expired_at, open_offers=-1, offers_expired=1)

    @on(OfferCancelled)
    def on_offer_cancelled(self, event):
        _update(event, event.cancelled_at, open_offers=-1)
