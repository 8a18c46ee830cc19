"""WaitingListQueue — ordered waiting customers per (business, service).

Ordering: highest priority first; equal priorities are served first come,
first served (earliest ``joined_at``), with the entry id as a final
deterministic tie-break. Only Active entries are eligible for offers.

Priority = visit_count × visit_weight + total_spend × spend_weight, taken
from the directory once, at join time.
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from waitlist.clock import as_utc
from waitlist.contact.contact import CustomerContact, subscription_key
from waitlist.directory import get_directory
from waitlist.dispatch.dispatcher import NotificationDispatcher
from waitlist.dispatch.job import EventType
from waitlist.entry.configuration import is_enabled
from waitlist.entry.entry import LIVE_STATUSES, EntryStatus, WaitingListEntry
from waitlist.errors import DuplicateEntry, EntryNotFound, WaitingListUnavailable
from waitlist.settings import get_settings

logger = structlog.get_logger(__name__)


def _queue_order(entry):
    return (-(entry.priority or 0.0), as_utc(entry.joined_at), str(entry.id))


class WaitingListQueue:
    def __init__(self, directory=None, dispatcher=None, settings=None):
        self.directory = directory or get_directory()
        self.settings = settings or get_settings()
        self.dispatcher = dispatcher or NotificationDispatcher()

    @property
    def repo(self):
        return current_domain.repository_for(WaitingListEntry)

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def get(self, entry_id) -> WaitingListEntry:
        try:
            return self.repo.get(entry_id)
        except ObjectNotFoundError:
            raise EntryNotFound(entry_id=str(entry_id)) from None

    def entries(self, business_id, service_id, statuses=None, exclude=()) -> list:
        # Narrowed in the query: a reload replaces the copy tracked by the
        # unit of work, and with it any events that copy has raised
        query = self.repo._dao.query.filter(business_id=str(business_id), service_id=str(service_id))
        if statuses is not None:
            query = query.filter(status__in=list(statuses))
        if exclude:
            query = query.exclude(id__in=[str(entry_id) for entry_id in exclude])
        return sorted(query.all().items, key=_queue_order)

    def entries_for_customer(self, customer_id) -> list:
        items = self.repo._dao.query.filter(customer_id=str(customer_id)).all().items
        return sorted(items, key=lambda e: as_utc(e.joined_at))

    def live_entry_for(self, customer_id, business_id, service_id):
        for entry in self.entries(business_id, service_id, statuses=LIVE_STATUSES):
            if str(entry.customer_id) == str(customer_id):
                return entry
        return None

    def next_eligible(self, business_id, service_id, exclude=()):
        """Highest-priority Active entry, FIFO among equal priorities, skipping ``exclude``."""
        candidates = self.entries(business_id, service_id, statuses=(EntryStatus.ACTIVE.value,), exclude=exclude)
        return candidates[0] if candidates else None

    def position(self, entry) -> int | None:
        """1-based place among waiting (Active or Notified) entries."""
        live = self.entries(entry.business_id, entry.service_id, statuses=LIVE_STATUSES)
        for index, candidate in enumerate(live, start=1):
            if str(candidate.id) == str(entry.id):
                return index
        return None

    def priority_for(self, customer_id, business_id) -> float:
        history = self.directory.customer_history(str(customer_id), str(business_id))
        visits = history.get("visit_count", 0) or 0
        spend = history.get("total_spend", 0.0) or 0.0
        return round(visits * self.settings.visit_weight + spend * self.settings.spend_weight, 4)

    # -------------------------------------------------------------------
    # Membership
    # -------------------------------------------------------------------
    def join(self, customer_id, business_id, service_id, joined_at=None) -> WaitingListEntry:
        if not is_enabled(business_id, service_id):
            raise WaitingListUnavailable(business_id=str(business_id), service_id=str(service_id))

        existing = self.live_entry_for(customer_id, business_id, service_id)
        if existing is not None:
            raise DuplicateEntry(entry_id=str(existing.id))

        entry = WaitingListEntry.create(
            business_id=business_id,
            service_id=service_id,
            customer_id=customer_id,
            priority=self.priority_for(customer_id, business_id),
            joined_at=as_utc(joined_at),
        )
        self.repo.add(entry)

        key = subscription_key(business_id, service_id)
        self._record_subscription(customer_id, key)
        self.dispatcher.submit(
            event_type=EventType.WAITLIST_JOINED.value,
            business_id=business_id,
            service_id=service_id,
            customer_id=customer_id,
            reference_id=str(entry.id),
            data={
                "business_name": self.directory.business_name(str(business_id)),
                "service_name": self.directory.service_name(str(service_id)),
            },
            subscription=key,
        )

        logger.info(
            "Customer joined waiting list",
            entry_id=str(entry.id),
            business_id=str(business_id),
            service_id=str(service_id),
            customer_id=str(customer_id),
            priority=entry.priority,
        )
        return entry

    def _record_subscription(self, customer_id, key):
        repo = current_domain.repository_for(CustomerContact)
        try:
            contact = repo.get(customer_id)
        except ObjectNotFoundError:
            contact = CustomerContact.register(customer_id=customer_id)
        contact.subscribe(key)
        repo.add(contact)

    def leave(self, entry, reason=None):
        """Remove an entry. Already-finished entries are left untouched."""
        if not entry.is_live:
            logger.info("Entry already finished, nothing to remove", entry_id=str(entry.id), status=entry.status)
            return entry
        entry.remove(reason)
        self.repo.add(entry)
        logger.info("Entry removed from waiting list", entry_id=str(entry.id), reason=reason)
        return entry

    # -------------------------------------------------------------------
    # Offer-driven transitions
    # -------------------------------------------------------------------
    def mark_notified(self, entry, offer_id):
        entry.mark_notified(offer_id)
        self.repo.add(entry)

    def reactivate(self, entry, reason=None):
        entry.reactivate(reason)
        self.repo.add(entry)

    def mark_booked(self, entry, offer_id):
        entry.mark_booked(offer_id)
        self.repo.add(entry)
