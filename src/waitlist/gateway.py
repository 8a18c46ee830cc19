"""Public operations of the waitlist engine.

Every operation that touches a (business, service) pair runs its whole
command, unit-of-work commit included, inside that pair's lock, so offer
creation, acceptance and re-queueing for one slot never interleave.
Notification dispatch is additionally serialized per idempotency key.

Callers must be inside the waitlist domain context
(``with waitlist.domain_context(): ...``).
"""

import json

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from waitlist.audit.record import AuditLog
from waitlist.contact.management import (
    ClearContactQuietHours,
    RegisterContact,
    SetContactQuietHours,
    UpdateConsent,
)
from waitlist.dispatch.job import NotificationJob
from waitlist.dispatch.submission import DispatchNotification, SendNotification
from waitlist.entry.configuration import ConfigureWaitlist
from waitlist.entry.entry import WaitingListEntry
from waitlist.entry.membership import JoinWaitingList, LeaveWaitingList
from waitlist.errors import EntryNotFound, NoEligibleCustomers, OfferExpired, OfferNotFound
from waitlist.keys import address_hash, idempotency_key
from waitlist.locks import address_key, get_locks, job_key, queue_key
from waitlist.offer.lifecycle import OfferLifecycleManager
from waitlist.offer.resolution import ExpireOffer, NotifySlotAvailable, ResolveOffer
from waitlist.projections.waitlist_summary import WaitlistSummary, summary_key
from waitlist.scheduling.job import JobKind
from waitlist.scheduling.runner import ScheduledJobRunner
from waitlist.suppression.bounce import OptOut, RecordBounce

logger = structlog.get_logger(__name__)


def _process(command):
    return current_domain.process(command, asynchronous=False)


# ---------------------------------------------------------------------------
# Waiting list
# ---------------------------------------------------------------------------
def join_waiting_list(customer_id, business_id, service_id, joined_at=None) -> str:
    """Add a customer to a service's waiting list. Returns the entry id."""
    with get_locks().hold(queue_key(business_id, service_id)):
        return _process(
            JoinWaitingList(
                customer_id=customer_id,
                business_id=business_id,
                service_id=service_id,
                joined_at=joined_at,
            )
        )


def leave_waiting_list(entry_id, reason="customer_left") -> None:
    try:
        entry = current_domain.repository_for(WaitingListEntry).get(entry_id)
    except ObjectNotFoundError:
        raise EntryNotFound(entry_id=str(entry_id)) from None

    with get_locks().hold(queue_key(entry.business_id, entry.service_id)):
        _process(LeaveWaitingList(entry_id=entry_id, reason=reason))


def configure_waitlist(business_id, service_id, enabled=None, hold_minutes=None) -> str:
    with get_locks().hold(queue_key(business_id, service_id)):
        return _process(
            ConfigureWaitlist(
                business_id=business_id,
                service_id=service_id,
                enabled=enabled,
                hold_minutes=hold_minutes,
            )
        )


# ---------------------------------------------------------------------------
# Offers
# ---------------------------------------------------------------------------
def notify_slot_available(business_id, service_id, slot_start, slot_end) -> str:
    """Offer a freed slot to the best waiting customer. Returns the offer id."""
    with get_locks().hold(queue_key(business_id, service_id)):
        offer_id = _process(
            NotifySlotAvailable(
                business_id=business_id,
                service_id=service_id,
                slot_start=slot_start,
                slot_end=slot_end,
            )
        )
    if offer_id is None:
        raise NoEligibleCustomers(business_id=str(business_id), service_id=str(service_id))
    return offer_id


def resolve_offer(token, decision):
    """Accept or decline an offer by its token.

    Returns the booking draft when accepted, ``None`` when declined. A
    response after the hold window expires the offer, hands the slot to
    the next candidate, and then raises ``OfferExpired``.
    """
    offer = OfferLifecycleManager().find_by_token(token)
    if offer is None:
        raise OfferNotFound()

    with get_locks().hold(queue_key(offer.business_id, offer.service_id)):
        resolution = _process(ResolveOffer(token=token, decision=decision))

    if resolution.expired:
        raise OfferExpired(offer_id=resolution.offer_id, next_offer_id=resolution.next_offer_id)
    return resolution.draft


def expire_offer(offer_id, as_of=None):
    manager = OfferLifecycleManager()
    try:
        offer = manager.repo.get(offer_id)
    except ObjectNotFoundError:
        logger.warning("Offer to expire not found", offer_id=str(offer_id))
        return None

    with get_locks().hold(queue_key(offer.business_id, offer.service_id)):
        return _process(ExpireOffer(offer_id=offer_id, as_of=as_of))


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
def send_notification(event_type, business_id, customer_id, reference_id=None, data=None, channels=None) -> str:
    """Queue (and dispatch) a notification for an external event. Returns the idempotency key."""
    key = idempotency_key(event_type, business_id, customer_id, reference_id)
    with get_locks().hold(job_key(key)):
        return _process(
            SendNotification(
                event_type=event_type,
                business_id=business_id,
                customer_id=customer_id,
                reference_id=str(reference_id) if reference_id is not None else None,
                data=json.dumps(data or {}, default=str),
                channels=json.dumps(list(channels)) if channels else None,
            )
        )


def dispatch_notification(key, as_of=None):
    job = current_domain.repository_for(NotificationJob).get(key)
    locks = get_locks()
    if job.service_id:
        # Offer notifications update the offer's attempt counter
        with locks.hold(queue_key(job.business_id, job.service_id)), locks.hold(job_key(key)):
            return _process(DispatchNotification(idempotency_key=key, as_of=as_of))
    with locks.hold(job_key(key)):
        return _process(DispatchNotification(idempotency_key=key, as_of=as_of))


# ---------------------------------------------------------------------------
# Suppression and contacts
# ---------------------------------------------------------------------------
def record_bounce(channel, address, severity, reason=None):
    """Apply a transport bounce signal. Returns the suppression reason, if suppressed."""
    with get_locks().hold(address_key(channel, address_hash(channel, address))):
        return _process(RecordBounce(channel=channel, address=address, severity=severity, reason=reason))


def opt_out(channel, address, customer_id=None) -> None:
    with get_locks().hold(address_key(channel, address_hash(channel, address))):
        _process(OptOut(channel=channel, address=address, customer_id=customer_id))


def register_contact(customer_id, **details) -> str:
    return _process(RegisterContact(customer_id=customer_id, **details))


def update_consent(customer_id, channel, granted) -> None:
    _process(UpdateConsent(customer_id=customer_id, channel=channel, granted=granted))


def set_quiet_hours(customer_id, start, end) -> None:
    _process(SetContactQuietHours(customer_id=customer_id, start=start, end=end))


def clear_quiet_hours(customer_id) -> None:
    _process(ClearContactQuietHours(customer_id=customer_id))


# ---------------------------------------------------------------------------
# Scheduled work
# ---------------------------------------------------------------------------
def run_due_jobs(as_of=None) -> dict:
    runner = ScheduledJobRunner(
        handlers={
            JobKind.OFFER_EXPIRY.value: lambda payload, at: expire_offer(payload["offer_id"], as_of=at),
            JobKind.NOTIFICATION_DISPATCH.value: lambda payload, at: dispatch_notification(
                payload["idempotency_key"], as_of=at
            ),
        }
    )
    return runner.run_due(as_of)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def waitlist_summary(business_id, service_id):
    try:
        return current_domain.repository_for(WaitlistSummary).get(summary_key(business_id, service_id))
    except ObjectNotFoundError:
        return None


def audit_entries(subject_id=None, kind=None, business_id=None) -> list:
    return AuditLog().entries(subject_id=subject_id, kind=kind, business_id=business_id)
