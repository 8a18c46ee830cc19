"""Application tests for offering slots and resolving offers."""

import threading
from datetime import timedelta

import pytest
from protean.utils.globals import current_domain
from waitlist import gateway
from waitlist.audit.record import AuditLog
from waitlist.clock import as_utc
from waitlist.domain import waitlist
from waitlist.entry.entry import EntryStatus
from waitlist.errors import (
    NoEligibleCustomers,
    OfferExpired,
    OfferNoLongerAvailable,
    OfferNotFound,
    SlotAlreadyCommitted,
    WaitingListUnavailable,
)
from waitlist.offer.lifecycle import OfferLifecycleManager
from waitlist.offer.offer import OfferStatus, Slot
from waitlist.scheduling.job import JobKind, ScheduledJob, ScheduledJobStatus
from waitlist.scheduling.scheduler import Scheduler


@pytest.fixture()
def queue_of_two(customer, frozen_clock):
    """cust-a and cust-b, equal priority, cust-a joined first."""
    customer("cust-a", visits=1)
    customer("cust-b", visits=1)
    entry_a = gateway.join_waiting_list("cust-a", "biz1", "svc1")
    frozen_clock.advance(timedelta(seconds=1))
    entry_b = gateway.join_waiting_list("cust-b", "biz1", "svc1")
    return entry_a, entry_b


def _offers_for(slot):
    return OfferLifecycleManager().offers_for_slot(Slot(*slot).key("biz1", "svc1"))


class TestOfferSlot:
    def test_offer_goes_to_earliest_of_equal_priority(self, queue_of_two, slot, offer_repo, entry_repo):
        entry_a, _ = queue_of_two
        offer_id = gateway.notify_slot_available("biz1", "svc1", *slot)

        offer = offer_repo.get(offer_id)
        assert offer.entry_id == entry_a
        assert offer.status == OfferStatus.PENDING.value
        assert entry_repo.get(entry_a).status == EntryStatus.NOTIFIED.value
        assert entry_repo.get(entry_a).current_offer_id == offer_id

    def test_offer_holds_for_two_hours_by_default(self, queue_of_two, slot, offer_repo, now):
        offer = offer_repo.get(gateway.notify_slot_available("biz1", "svc1", *slot))
        assert as_utc(offer.hold_expires_at) == now + timedelta(hours=2, seconds=1)

    def test_configured_hold(self, queue_of_two, slot, offer_repo, frozen_clock):
        gateway.configure_waitlist("biz1", "svc1", hold_minutes=45)
        offer = offer_repo.get(gateway.notify_slot_available("biz1", "svc1", *slot))
        assert as_utc(offer.hold_expires_at) == frozen_clock.utc_now() + timedelta(minutes=45)

    def test_expiry_is_scheduled(self, queue_of_two, slot, offer_repo):
        offer = offer_repo.get(gateway.notify_slot_available("biz1", "svc1", *slot))

        pending = Scheduler().pending(JobKind.OFFER_EXPIRY.value)
        assert [str(job.id) for job in pending] == [str(offer.expiry_job_id)]
        assert as_utc(pending[0].run_at) == as_utc(offer.hold_expires_at)
        assert pending[0].data == {"offer_id": str(offer.id)}

    def test_offer_notification_sent(self, queue_of_two, slot, email, offer_repo):
        offer_id = gateway.notify_slot_available("biz1", "svc1", *slot)

        offers = [m for m in email.sent_emails if m["subject"].startswith("A slot opened")]
        assert [m["to"] for m in offers] == ["cust-a@example.com"]
        token = offer_repo.get(offer_id).token
        assert f"https://book.example.com/offers/{token}" in offers[0]["body"]

    def test_notification_rounds_are_counted_on_the_offer(self, queue_of_two, slot, offer_repo):
        offer_id = gateway.notify_slot_available("biz1", "svc1", *slot)
        assert offer_repo.get(offer_id).notification_attempts == 1

    def test_empty_queue(self, slot):
        with pytest.raises(NoEligibleCustomers):
            gateway.notify_slot_available("biz1", "svc1", *slot)

    def test_disabled_waiting_list(self, queue_of_two, slot):
        gateway.configure_waitlist("biz1", "svc1", enabled=False)
        with pytest.raises(WaitingListUnavailable):
            gateway.notify_slot_available("biz1", "svc1", *slot)

    def test_one_pending_offer_per_slot(self, queue_of_two, slot):
        gateway.notify_slot_available("biz1", "svc1", *slot)
        with pytest.raises(SlotAlreadyCommitted):
            gateway.notify_slot_available("biz1", "svc1", *slot)
        assert len(_offers_for(slot)) == 1

    def test_different_slots_go_to_different_customers(self, queue_of_two, slot, offer_repo):
        start, end = slot
        first = offer_repo.get(gateway.notify_slot_available("biz1", "svc1", start, end))
        second = offer_repo.get(
            gateway.notify_slot_available("biz1", "svc1", start + timedelta(days=1), end + timedelta(days=1))
        )
        assert {first.customer_id, second.customer_id} == {"cust-a", "cust-b"}


class TestAccept:
    def test_accept_books_and_returns_draft(self, queue_of_two, slot, offer_repo, entry_repo, booking_sink):
        entry_a, _ = queue_of_two
        offer = offer_repo.get(gateway.notify_slot_available("biz1", "svc1", *slot))

        draft = gateway.resolve_offer(offer.token, "Accept")

        assert draft.offer_id == str(offer.id)
        assert draft.customer_id == "cust-a"
        assert draft.slot_start == slot[0]
        assert offer_repo.get(offer.id).status == OfferStatus.ACCEPTED.value
        assert entry_repo.get(entry_a).status == EntryStatus.BOOKED.value
        assert [d["offer_id"] for d in booking_sink.drafts] == [str(offer.id)]

    def test_accept_cancels_expiry(self, queue_of_two, slot, offer_repo):
        offer = offer_repo.get(gateway.notify_slot_available("biz1", "svc1", *slot))
        gateway.resolve_offer(offer.token, "Accept")

        assert Scheduler().pending(JobKind.OFFER_EXPIRY.value) == []

    def test_accept_sends_confirmation(self, queue_of_two, slot, offer_repo, email):
        offer = offer_repo.get(gateway.notify_slot_available("biz1", "svc1", *slot))
        gateway.resolve_offer(offer.token, "Accept")

        assert any(m["subject"].startswith("Booking confirmed") for m in email.sent_emails)

    def test_accept_does_not_reoffer(self, queue_of_two, slot, offer_repo):
        offer = offer_repo.get(gateway.notify_slot_available("biz1", "svc1", *slot))
        gateway.resolve_offer(offer.token, "Accept")

        assert len(_offers_for(slot)) == 1

    def test_second_accept_loses(self, queue_of_two, slot, offer_repo):
        offer = offer_repo.get(gateway.notify_slot_available("biz1", "svc1", *slot))
        gateway.resolve_offer(offer.token, "Accept")

        with pytest.raises(OfferNoLongerAvailable):
            gateway.resolve_offer(offer.token, "Accept")

    def test_concurrent_accepts_book_once(self, queue_of_two, slot, offer_repo, booking_sink):
        offer = offer_repo.get(gateway.notify_slot_available("biz1", "svc1", *slot))
        go = threading.Event()
        outcomes = []

        def accept():
            with waitlist.domain_context():
                go.wait(timeout=5)
                try:
                    outcomes.append(gateway.resolve_offer(offer.token, "Accept"))
                except OfferNoLongerAvailable:
                    outcomes.append("lost")

        threads = [threading.Thread(target=accept) for _ in range(6)]
        for thread in threads:
            thread.start()
        go.set()
        for thread in threads:
            thread.join(timeout=10)

        assert len(outcomes) == 6
        assert outcomes.count("lost") == 5
        assert len(booking_sink.drafts) == 1
        assert offer_repo.get(offer.id).status == OfferStatus.ACCEPTED.value

    def test_accept_cancels_overlapping_siblings(self, queue_of_two, slot, offer_repo, entry_repo):
        entry_a, _ = queue_of_two
        start, end = slot
        first = offer_repo.get(gateway.notify_slot_available("biz1", "svc1", start, end))
        second = offer_repo.get(
            gateway.notify_slot_available(
                "biz1", "svc1", start + timedelta(minutes=30), end + timedelta(minutes=30)
            )
        )

        gateway.resolve_offer(second.token, "Accept")

        cancelled = offer_repo.get(first.id)
        assert cancelled.status == OfferStatus.CANCELLED.value
        assert cancelled.resolution_reason == f"slot_taken:{second.id}"
        assert entry_repo.get(entry_a).status == EntryStatus.ACTIVE.value
        assert Scheduler().pending(JobKind.OFFER_EXPIRY.value) == []

    def test_unknown_token(self):
        with pytest.raises(OfferNotFound):
            gateway.resolve_offer("no-such-token", "Accept")


class TestDecline:
    def test_decline_offers_slot_to_next(self, queue_of_two, slot, offer_repo, entry_repo):
        entry_a, entry_b = queue_of_two
        first = offer_repo.get(gateway.notify_slot_available("biz1", "svc1", *slot))

        assert gateway.resolve_offer(first.token, "Decline") is None

        assert offer_repo.get(first.id).status == OfferStatus.DECLINED.value
        assert entry_repo.get(entry_a).status == EntryStatus.ACTIVE.value
        assert entry_repo.get(entry_b).status == EntryStatus.NOTIFIED.value
        offers = _offers_for(slot)
        assert len(offers) == 2
        assert {o.status for o in offers} == {OfferStatus.DECLINED.value, OfferStatus.PENDING.value}

    def test_decline_is_recorded(self, queue_of_two, slot, offer_repo):
        entry_a, entry_b = queue_of_two
        first = offer_repo.get(gateway.notify_slot_available("biz1", "svc1", *slot))

        gateway.resolve_offer(first.token, "Decline")

        assert AuditLog().kinds(first.id) == ["offer_created", "offer_declined"]
        assert AuditLog().kinds(entry_a) == ["entry_joined", "entry_notified", "entry_reactivated"]
        assert AuditLog().kinds(entry_b) == ["entry_joined", "entry_notified"]

    def test_new_announcement_starts_a_fresh_round(self, customer, slot, offer_repo, entry_repo):
        customer("cust-a")
        entry_id = gateway.join_waiting_list("cust-a", "biz1", "svc1")
        first = offer_repo.get(gateway.notify_slot_available("biz1", "svc1", *slot))
        gateway.resolve_offer(first.token, "Decline")
        assert entry_repo.get(entry_id).status == EntryStatus.ACTIVE.value

        again = offer_repo.get(gateway.notify_slot_available("biz1", "svc1", *slot))

        assert again.id != first.id
        assert again.customer_id == "cust-a"
        assert again.passed_over_ids == []

    def test_decline_cancels_expiry(self, queue_of_two, slot, offer_repo):
        first = offer_repo.get(gateway.notify_slot_available("biz1", "svc1", *slot))
        gateway.resolve_offer(first.token, "Decline")

        expiry = Scheduler().pending(JobKind.OFFER_EXPIRY.value)
        assert len(expiry) == 1
        assert expiry[0].data["offer_id"] != str(first.id)

    def test_slot_never_offered_twice_to_the_same_entry(self, queue_of_two, slot, offer_repo):
        first = offer_repo.get(gateway.notify_slot_available("biz1", "svc1", *slot))
        gateway.resolve_offer(first.token, "Decline")
        second = [o for o in _offers_for(slot) if o.status == OfferStatus.PENDING.value][0]
        gateway.resolve_offer(second.token, "Decline")

        offers = _offers_for(slot)
        assert len(offers) == 2
        assert all(o.status == OfferStatus.DECLINED.value for o in offers)
        assert AuditLog().entries(kind="slot_unfilled")

    def test_leaving_while_notified_passes_the_offer_on(self, queue_of_two, slot, offer_repo, entry_repo):
        entry_a, entry_b = queue_of_two
        first = offer_repo.get(gateway.notify_slot_available("biz1", "svc1", *slot))

        gateway.leave_waiting_list(entry_a)

        withdrawn = offer_repo.get(first.id)
        assert withdrawn.status == OfferStatus.DECLINED.value
        assert withdrawn.resolution_reason == "customer_left"
        assert entry_repo.get(entry_a).status == EntryStatus.REMOVED.value
        assert entry_repo.get(entry_b).status == EntryStatus.NOTIFIED.value
        assert AuditLog().kinds(first.id) == ["offer_created", "offer_declined"]
        assert AuditLog().kinds(entry_a)[-1] == "entry_removed"


class TestExpiry:
    def test_expiry_job_hands_slot_to_next(self, queue_of_two, slot, offer_repo, entry_repo, frozen_clock):
        entry_a, entry_b = queue_of_two
        first = offer_repo.get(gateway.notify_slot_available("biz1", "svc1", *slot))

        frozen_clock.advance(timedelta(hours=2))
        summary = gateway.run_due_jobs()

        assert summary["completed"] == 1
        assert offer_repo.get(first.id).status == OfferStatus.EXPIRED.value
        assert entry_repo.get(entry_a).status == EntryStatus.ACTIVE.value
        assert entry_repo.get(entry_b).status == EntryStatus.NOTIFIED.value
        assert AuditLog().kinds(first.id) == ["offer_created", "offer_expired"]
        assert AuditLog().kinds(entry_a)[-1] == "entry_reactivated"

    def test_nothing_expires_early(self, queue_of_two, slot, offer_repo, frozen_clock):
        first = offer_repo.get(gateway.notify_slot_available("biz1", "svc1", *slot))

        frozen_clock.advance(timedelta(minutes=119))
        assert gateway.run_due_jobs()["completed"] == 0
        assert offer_repo.get(first.id).status == OfferStatus.PENDING.value

    def test_late_response_expires_the_offer(self, queue_of_two, slot, offer_repo, entry_repo, frozen_clock):
        _, entry_b = queue_of_two
        first = offer_repo.get(gateway.notify_slot_available("biz1", "svc1", *slot))

        frozen_clock.advance(timedelta(hours=2, minutes=1))
        with pytest.raises(OfferExpired):
            gateway.resolve_offer(first.token, "Accept")

        assert offer_repo.get(first.id).status == OfferStatus.EXPIRED.value
        assert entry_repo.get(entry_b).status == EntryStatus.NOTIFIED.value

    def test_expiry_after_resolution_is_a_no_op(self, queue_of_two, slot, offer_repo, frozen_clock):
        first = offer_repo.get(gateway.notify_slot_available("biz1", "svc1", *slot))
        frozen_clock.advance(timedelta(hours=2, minutes=1))
        with pytest.raises(OfferExpired):
            gateway.resolve_offer(first.token, "Accept")

        # The stale expiry job completes without effect
        summary = gateway.run_due_jobs()
        assert summary["failed"] == 0
        jobs = [j for j in Scheduler().pending(JobKind.OFFER_EXPIRY.value) if j.data["offer_id"] == str(first.id)]
        assert jobs == []

    def test_completed_jobs_are_marked(self, queue_of_two, slot, offer_repo, frozen_clock):
        first = offer_repo.get(gateway.notify_slot_available("biz1", "svc1", *slot))
        frozen_clock.advance(timedelta(hours=2))
        gateway.run_due_jobs()

        job = current_domain.repository_for(ScheduledJob).get(first.expiry_job_id)
        assert job.status == ScheduledJobStatus.COMPLETED.value
