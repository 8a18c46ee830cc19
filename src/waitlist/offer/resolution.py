"""Offer commands + handlers — slot availability, customer responses, hold expiry.

Handlers run inside the (business, service) lock taken by the gateway,
and re-read the offer before deciding: a second accept for the same offer
sees a terminal status and loses.
"""

from dataclasses import dataclass

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Identifier, String

from waitlist.clock import as_utc, utc_now
from waitlist.domain import waitlist
from waitlist.entry.configuration import is_enabled
from waitlist.errors import OfferNoLongerAvailable, OfferNotFound, WaitingListUnavailable
from waitlist.offer.lifecycle import OfferLifecycleManager
from waitlist.offer.offer import BookingDraft, Decision, Offer, OfferStatus, Slot

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class OfferResolution:
    offer_id: str
    status: str
    draft: BookingDraft | None = None
    next_offer_id: str | None = None

    @property
    def expired(self) -> bool:
        return self.status == OfferStatus.EXPIRED.value


@waitlist.command(part_of="Offer")
class NotifySlotAvailable:
    business_id: Identifier(required=True)
    service_id: Identifier(required=True)
    slot_start: DateTime(required=True)
    slot_end: DateTime(required=True)


@waitlist.command(part_of="Offer")
class ResolveOffer:
    token: String(required=True, max_length=64)
    decision: String(required=True, choices=Decision)


@waitlist.command(part_of="Offer")
class ExpireOffer:
    offer_id: Identifier(required=True)
    as_of: DateTime()


@waitlist.command_handler(part_of=Offer)
class OfferCommandHandler:
    @handle(NotifySlotAvailable)
    def notify_slot_available(self, command: NotifySlotAvailable):
        if not is_enabled(command.business_id, command.service_id):
            raise WaitingListUnavailable(business_id=str(command.business_id), service_id=str(command.service_id))

        slot = Slot(command.slot_start, command.slot_end)
        offer = OfferLifecycleManager().offer_slot(command.business_id, command.service_id, slot)
        return str(offer.id) if offer is not None else None

    @handle(ResolveOffer)
    def resolve_offer(self, command: ResolveOffer):
        manager = OfferLifecycleManager()
        offer = manager.find_by_token(command.token)
        if offer is None:
            raise OfferNotFound()
        if not offer.is_pending:
            raise OfferNoLongerAvailable(offer_id=str(offer.id), status=offer.status)

        if offer.hold_elapsed(utc_now()):
            next_offer = manager.expire(offer)
            return OfferResolution(
                offer_id=str(offer.id),
                status=offer.status,
                next_offer_id=str(next_offer.id) if next_offer is not None else None,
            )

        if command.decision == Decision.ACCEPT.value:
            draft = manager.accept(offer)
            return OfferResolution(offer_id=str(offer.id), status=offer.status, draft=draft)

        next_offer = manager.decline(offer)
        return OfferResolution(
            offer_id=str(offer.id),
            status=offer.status,
            next_offer_id=str(next_offer.id) if next_offer is not None else None,
        )

    @handle(ExpireOffer)
    def expire_offer(self, command: ExpireOffer):
        manager = OfferLifecycleManager()
        try:
            offer = manager.repo.get(command.offer_id)
        except ObjectNotFoundError:
            logger.warning("Offer to expire not found", offer_id=str(command.offer_id))
            return None

        if not offer.is_pending:
            logger.info("Offer already resolved, expiry skipped", offer_id=str(offer.id), status=offer.status)
            return None

        as_of = as_utc(command.as_of) or utc_now()
        if not offer.hold_elapsed(as_of):
            raise ValidationError({"hold_expires_at": ["Hold window has not elapsed yet"]})

        next_offer = manager.expire(offer)
        return OfferResolution(
            offer_id=str(offer.id),
            status=offer.status,
            next_offer_id=str(next_offer.id) if next_offer is not None else None,
        )
