"""JoinWaitingList and LeaveWaitingList commands + handlers."""

import structlog
from protean import handle
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from waitlist.domain import waitlist
from waitlist.entry.entry import EntryStatus, WaitingListEntry
from waitlist.entry.queue import WaitingListQueue
from waitlist.offer.lifecycle import OfferLifecycleManager
from waitlist.offer.offer import Offer

logger = structlog.get_logger(__name__)


@waitlist.command(part_of="WaitingListEntry")
class JoinWaitingList:
    customer_id: Identifier(required=True)
    business_id: Identifier(required=True)
    service_id: Identifier(required=True)
    joined_at: DateTime()


@waitlist.command(part_of="WaitingListEntry")
class LeaveWaitingList:
    entry_id: Identifier(required=True)
    reason: String(max_length=255, default="customer_left")


@waitlist.command_handler(part_of=WaitingListEntry)
class MembershipHandler:
    @handle(JoinWaitingList)
    def join(self, command: JoinWaitingList):
        entry = WaitingListQueue().join(
            customer_id=command.customer_id,
            business_id=command.business_id,
            service_id=command.service_id,
            joined_at=command.joined_at,
        )
        return str(entry.id)

    @handle(LeaveWaitingList)
    def leave(self, command: LeaveWaitingList):
        manager = OfferLifecycleManager()
        entry = manager.queue.get(command.entry_id)
        was_notified = entry.status == EntryStatus.NOTIFIED.value
        offer_id = entry.current_offer_id

        manager.queue.leave(entry, reason=command.reason)

        # A customer who leaves while holding an offer gives the slot back
        if was_notified and offer_id:
            offer = current_domain.repository_for(Offer).get(offer_id)
            if offer.is_pending:
                manager.decline(offer, reason="customer_left", entry=entry)
