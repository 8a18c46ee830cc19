"""Audit projector — writes one AuditRecord per domain event.

Covers every transition of entries, offers, notification jobs,
suppressions, bounces and contact validity. Event payloads never carry
raw addresses, only hashes and flags.
"""

from protean.core.projector import on

from waitlist.audit.record import AuditLog, AuditRecord
from waitlist.contact.contact import CustomerContact
from waitlist.contact.events import ChannelValidityChanged, ConsentChanged
from waitlist.dispatch.events import (
    ChannelSkipped,
    DeliveryAttempted,
    NotificationJobDeferred,
    NotificationJobFailed,
    NotificationJobQueued,
    NotificationJobRetryScheduled,
    NotificationJobSent,
)
from waitlist.dispatch.job import NotificationJob
from waitlist.domain import waitlist
from waitlist.entry.entry import WaitingListEntry
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
from waitlist.suppression.events import AddressSuppressed, BounceRecorded
from waitlist.suppression.suppression import BounceRecord, SuppressionEntry


# Keys that are columns of AuditRecord rather than free-form details
_RESERVED = ("_metadata", "kind", "subject_type", "subject_id", "business_id", "customer_id", "occurred_at")


def _details(event) -> dict:
    data = event.to_dict()
    for key in _RESERVED:
        data.pop(key, None)
    return data


@waitlist.projector(
    projector_for=AuditRecord,
    aggregates=[WaitingListEntry, Offer, NotificationJob, SuppressionEntry, BounceRecord, CustomerContact],
)
class AuditProjector:
    def _append(self, event, kind, subject_type, subject_id, business_id=None, customer_id=None):
        AuditLog().append(
            kind,
            subject_type,
            subject_id,
            business_id=business_id,
            customer_id=customer_id,
            **_details(event),
        )

    # -- Waiting-list entries ------------------------------------------
    def _entry(self, event, kind):
        self._append(event, kind, "WaitingListEntry", event.entry_id, event.business_id, event.customer_id)

    @on(CustomerJoinedWaitingList)
    def on_joined(self, event):
        self._entry(event, "entry_joined")

    @on(EntryNotified)
    def on_entry_notified(self, event):
        self._entry(event, "entry_notified")

    @on(EntryReactivated)
    def on_entry_reactivated(self, event):
        self._entry(event, "entry_reactivated")

    @on(EntryBooked)
    def on_entry_booked(self, event):
        self._entry(event, "entry_booked")

    @on(EntryRemoved)
    def on_entry_removed(self, event):
        self._entry(event, "entry_removed")

    # -- Offers ----------------------------------------------------------
    def _offer(self, event, kind):
        self._append(event, kind, "Offer", event.offer_id, event.business_id, event.customer_id)

    @on(OfferCreated)
    def on_offer_created(self, event):
        self._offer(event, "offer_created")

    @on(OfferAccepted)
    def on_offer_accepted(self, event):
        self._offer(event, "offer_accepted")

    @on(OfferDeclined)
    def on_offer_declined(self, event):
        self._offer(event, "offer_declined")

    @on(OfferExpired)
    def on_offer_expired(self, event):
        self._offer(event, "offer_expired")

    @on(OfferCancelled)
    def on_offer_cancelled(self, event):
        self._offer(event, "offer_cancelled")

    # -- Notification jobs -------------------------------------------------
    def _job(self, event, kind, business_id=None):
        self._append(event, kind, "NotificationJob", event.idempotency_key, business_id, event.customer_id)

    @on(NotificationJobQueued)
    def on_job_queued(self, event):
        self._job(event, "notification_queued", event.business_id)

    @on(ChannelSkipped)
    def on_channel_skipped(self, event):
        self._job(event, "channel_skipped")

    @on(NotificationJobDeferred)
    def on_job_deferred(self, event):
        self._job(event, "notification_deferred")

    @on(DeliveryAttempted)
    def on_delivery_attempted(self, event):
        self._job(event, "delivery_attempted")

    @on(NotificationJobRetryScheduled)
    def on_retry_scheduled(self, event):
        self._job(event, "notification_retry_scheduled")

    @on(NotificationJobSent)
    def on_job_sent(self, event):
        self._job(event, "notification_sent")

    @on(NotificationJobFailed)
    def on_job_failed(self, event):
        self._job(event, "notification_failed", event.business_id)

    # -- Suppression, bounces, contact validity ---------------------------
    @on(AddressSuppressed)
    def on_address_suppressed(self, event):
        self._append(event, "address_suppressed", "SuppressionEntry", event.suppression_key)

    @on(BounceRecorded)
    def on_bounce_recorded(self, event):
        self._append(event, "bounce_recorded", "BounceRecord", event.bounce_id)

    @on(ChannelValidityChanged)
    def on_validity_changed(self, event):
        self._append(event, "contact_validity_changed", "CustomerContact", event.customer_id, customer_id=event.customer_id)

    @on(ConsentChanged)
    def on_consent_changed(self, event):
        self._append(event, "consent_changed", "CustomerContact", event.customer_id, customer_id=event.customer_id)
