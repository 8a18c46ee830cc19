"""Offer side effects that run after commit.

- Accepted offers hand their booking draft to the booking subsystem.
- Each delivery round of an offer's notification bumps the offer's
  notification attempt counter.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from waitlist.booking import get_booking_sink
from waitlist.clock import as_utc
from waitlist.dispatch.events import DeliveryRoundStarted
from waitlist.dispatch.job import EventType, NotificationJob
from waitlist.domain import waitlist
from waitlist.offer.events import OfferAccepted
from waitlist.offer.offer import BookingDraft, Offer

logger = structlog.get_logger(__name__)


@waitlist.event_handler(part_of=Offer)
class BookingHandoff:
    @handle(OfferAccepted)
    def on_offer_accepted(self, event: OfferAccepted) -> None:
        draft = BookingDraft(
            offer_id=str(event.offer_id),
            entry_id=str(event.entry_id),
            business_id=str(event.business_id),
            service_id=str(event.service_id),
            customer_id=str(event.customer_id),
            slot_start=as_utc(event.slot_start),
            slot_end=as_utc(event.slot_end),
            accepted_at=as_utc(event.accepted_at),
        )
        get_booking_sink().receive(draft.to_dict())
        logger.info("Booking draft handed off", offer_id=draft.offer_id, customer_id=draft.customer_id)


@waitlist.event_handler(part_of=NotificationJob)
class OfferNotificationTracker:
    @handle(DeliveryRoundStarted)
    def on_delivery_round_started(self, event: DeliveryRoundStarted) -> None:
        if event.event_type != EventType.SLOT_OPENED.value or not event.reference_id:
            return

        repo = current_domain.repository_for(Offer)
        try:
            offer = repo.get(event.reference_id)
        except ObjectNotFoundError:
            logger.warning("Offer for notification not found", offer_id=event.reference_id)
            return

        offer.record_notification_attempt()
        repo.add(offer)
