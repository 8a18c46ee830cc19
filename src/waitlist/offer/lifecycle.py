"""OfferLifecycleManager — creates offers and carries them to a resolution.

| Transition          | Effect                                                         |
|---------------------|----------------------------------------------------------------|
| — → Pending         | entry Notified, hold expiry scheduled, offer notification sent |
| Pending → Accepted  | entry Booked, overlapping Pending offers Cancelled, expiry     |
|                     | job cancelled, booking draft emitted, no re-offer              |
| Pending → Declined  | entry Active again, expiry job cancelled, next candidate       |
| Pending → Expired   | entry Active again, next candidate                             |
| Pending → Cancelled | entry Active again, no re-offer (the slot is taken)            |

A slot walks down the queue in rounds. An announcement starts a round;
each offer carries the entries passed over earlier in its round, so a
decline or expiry reaches a new customer until the queue runs out. A later
announcement of the same slot starts a fresh round.

Callers hold the (business, service) lock for the whole unit of work.
Aggregates changed earlier in the unit of work are never queried again:
reads are narrowed to the rows still needed.
"""

import structlog
from protean.utils.globals import current_domain

from waitlist.audit.record import AuditLog
from waitlist.contact.contact import subscription_key
from waitlist.dispatch.dispatcher import NotificationDispatcher
from waitlist.dispatch.job import EventType
from waitlist.dispatch.quiet_hours import resolve_timezone
from waitlist.entry.configuration import settings_for
from waitlist.entry.queue import WaitingListQueue
from waitlist.errors import SlotAlreadyCommitted
from waitlist.keys import offer_token
from waitlist.offer.offer import COMMITTING_STATUSES, Offer, OfferStatus, Slot
from waitlist.scheduling.job import JobKind
from waitlist.scheduling.scheduler import Scheduler
from waitlist.settings import get_settings

logger = structlog.get_logger(__name__)


class OfferLifecycleManager:
    def __init__(self, queue=None, dispatcher=None, scheduler=None, audit=None, settings=None):
        self.settings = settings or get_settings()
        self.dispatcher = dispatcher or NotificationDispatcher(settings=self.settings)
        self.queue = queue or WaitingListQueue(dispatcher=self.dispatcher, settings=self.settings)
        self.scheduler = scheduler or Scheduler()
        self.audit = audit or AuditLog()

    @property
    def repo(self):
        return current_domain.repository_for(Offer)

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def offers_for_slot(self, slot_key) -> list:
        return self.repo._dao.query.filter(slot_key=slot_key).all().items

    def committed_offers(self, slot_key) -> list:
        """Pending or Accepted offers holding the slot."""
        return self.repo._dao.query.filter(slot_key=slot_key, status__in=list(COMMITTING_STATUSES)).all().items

    def pending_offers(self, business_id, service_id) -> list:
        return (
            self.repo._dao.query.filter(
                business_id=str(business_id),
                service_id=str(service_id),
                status=OfferStatus.PENDING.value,
            )
            .all()
            .items
        )

    def find_by_token(self, token):
        matches = self.repo._dao.query.filter(token=token).all().items
        return matches[0] if len(matches) == 1 else None

    # -------------------------------------------------------------------
    # Offer creation
    # -------------------------------------------------------------------
    def offer_slot(self, business_id, service_id, slot: Slot, passed_over=()):
        """Offer ``slot`` to the next eligible entry. Returns the offer, or None if nobody is left.

        ``passed_over`` holds the entries already offered the slot in this
        round; a fresh announcement passes none.
        """
        key = slot.key(business_id, service_id)
        committed = self.committed_offers(key)
        if committed:
            raise SlotAlreadyCommitted(slot_key=key, offer_id=str(committed[0].id), status=committed[0].status)

        passed_over = [str(entry_id) for entry_id in passed_over]
        entry = self.queue.next_eligible(business_id, service_id, exclude=passed_over)
        if entry is None:
            self.audit.append(
                "slot_unfilled",
                "Slot",
                key,
                business_id=business_id,
                service_id=str(service_id),
                offered=len(passed_over),
            )
            logger.info(
                "No eligible waiting-list entry for slot",
                business_id=str(business_id),
                service_id=str(service_id),
                slot_key=key,
            )
            return None

        config = settings_for(business_id, service_id)
        hold = self.settings.bounded_hold(config.hold_minutes if config is not None else None)
        offer = Offer.create(entry, slot, token=offer_token(), hold=hold, passed_over=passed_over)
        offer.expiry_job_id = self.scheduler.schedule_at(
            offer.hold_expires_at,
            JobKind.OFFER_EXPIRY.value,
            payload={"offer_id": str(offer.id)},
            dedupe_key=f"expire:{offer.id}",
        )
        self.queue.mark_notified(entry, offer.id)
        self.repo.add(offer)

        self._notify_offer(offer, hold)
        logger.info(
            "Offer created",
            offer_id=str(offer.id),
            entry_id=str(entry.id),
            customer_id=str(entry.customer_id),
            slot_key=key,
            hold_expires_at=offer.hold_expires_at.isoformat(),
        )
        return offer

    def _notify_offer(self, offer, hold):
        directory = self.queue.directory
        self.dispatcher.submit(
            event_type=EventType.SLOT_OPENED.value,
            business_id=offer.business_id,
            service_id=offer.service_id,
            customer_id=offer.customer_id,
            reference_id=str(offer.id),
            data={
                "business_name": directory.business_name(str(offer.business_id)),
                "service_name": directory.service_name(str(offer.service_id)),
                "slot_display": _slot_display(offer, self.settings),
                "hold_hours": round(hold.total_seconds() / 3600, 1),
                "offer_link": f"{self.settings.offer_link_base.rstrip('/')}/{offer.token}",
            },
            subscription=subscription_key(offer.business_id, offer.service_id),
        )

    # -------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------
    def accept(self, offer):
        """Pending → Accepted. Returns the booking draft."""
        entry = self.queue.get(offer.entry_id)
        draft = offer.accept()
        self.scheduler.cancel(offer.expiry_job_id, reason="offer_accepted")
        self.queue.mark_booked(entry, offer.id)
        self.repo.add(offer)

        self.cancel_siblings(offer)
        self.dispatcher.submit(
            event_type=EventType.BOOKING_CREATE.value,
            business_id=offer.business_id,
            service_id=offer.service_id,
            customer_id=offer.customer_id,
            reference_id=str(offer.id),
            data={
                "business_name": self.queue.directory.business_name(str(offer.business_id)),
                "slot_display": _slot_display(offer, self.settings),
            },
        )
        logger.info("Offer accepted", offer_id=str(offer.id), customer_id=str(offer.customer_id))
        return draft

    def cancel_siblings(self, accepted):
        """Cancel other Pending offers whose slot overlaps the accepted one."""
        cancelled = []
        for sibling in self.pending_offers(accepted.business_id, accepted.service_id):
            if str(sibling.id) == str(accepted.id) or not sibling.slot.overlaps(accepted.slot):
                continue
            sibling.cancel(reason=f"slot_taken:{accepted.id}")
            self.scheduler.cancel(sibling.expiry_job_id, reason="offer_cancelled")
            self.repo.add(sibling)
            entry = self.queue.get(sibling.entry_id)
            if entry.is_live:
                self.queue.reactivate(entry, reason="offer_cancelled")
            cancelled.append(sibling)
            logger.info("Sibling offer cancelled", offer_id=str(sibling.id), accepted_offer_id=str(accepted.id))
        return cancelled

    def decline(self, offer, reason="customer_declined", entry=None):
        """Pending → Declined, then offer the slot to the next candidate.

        ``entry`` is passed when the caller has already moved it (e.g. the
        customer left the list), in which case it is not re-queued.
        """
        offer.decline(reason)
        self.scheduler.cancel(offer.expiry_job_id, reason="offer_declined")
        self.repo.add(offer)
        if entry is None:
            entry = self.queue.get(offer.entry_id)
            if entry.is_live:
                self.queue.reactivate(entry, reason="offer_declined")
        logger.info("Offer declined", offer_id=str(offer.id), reason=reason)
        return self._cascade(offer)

    def expire(self, offer):
        """Pending → Expired, then offer the slot to the next candidate."""
        offer.expire()
        self.repo.add(offer)
        entry = self.queue.get(offer.entry_id)
        if entry.is_live:
            self.queue.reactivate(entry, reason="offer_expired")
        logger.info("Offer expired", offer_id=str(offer.id), customer_id=str(offer.customer_id))
        return self._cascade(offer)

    def _cascade(self, resolved):
        try:
            return self.offer_slot(
                resolved.business_id,
                resolved.service_id,
                resolved.slot,
                passed_over=[*resolved.passed_over_ids, str(resolved.entry_id)],
            )
        except SlotAlreadyCommitted as exc:
            # The slot went elsewhere; the resolution itself still stands
            logger.warning("Slot already committed, no re-offer", offer_id=str(resolved.id), **exc.context)
            return None


def _slot_display(offer, settings) -> str:
    tz = resolve_timezone(None, settings.default_timezone)
    return offer.slot.start.astimezone(tz).strftime("%a %d %b %H:%M")
