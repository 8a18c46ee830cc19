"""Application tests for joining, ordering and leaving waiting lists."""

from datetime import timedelta

import pytest
from protean.utils.globals import current_domain
from waitlist import gateway
from waitlist.contact.contact import CustomerContact
from waitlist.entry.entry import EntryStatus
from waitlist.entry.queue import WaitingListQueue
from waitlist.errors import DuplicateEntry, EntryNotFound, WaitingListUnavailable


class TestJoin:
    def test_join_creates_active_entry_with_priority(self, customer, entry_repo):
        customer("cust-a", visits=3, spend=250.0)
        entry_id = gateway.join_waiting_list("cust-a", "biz1", "svc1")

        entry = entry_repo.get(entry_id)
        assert entry.status == EntryStatus.ACTIVE.value
        assert entry.priority == 55.0  # 3 × 10 + 250 × 0.1

    def test_priority_is_frozen_at_join(self, customer, directory, entry_repo):
        customer("cust-a", visits=1)
        entry_id = gateway.join_waiting_list("cust-a", "biz1", "svc1")
        directory.set_history("cust-a", "biz1", visit_count=50)

        assert entry_repo.get(entry_id).priority == 10.0

    def test_duplicate_live_entry_rejected(self, customer):
        customer("cust-a")
        gateway.join_waiting_list("cust-a", "biz1", "svc1")
        with pytest.raises(DuplicateEntry):
            gateway.join_waiting_list("cust-a", "biz1", "svc1")

    def test_same_customer_may_wait_for_another_service(self, customer):
        customer("cust-a")
        gateway.join_waiting_list("cust-a", "biz1", "svc1")
        assert gateway.join_waiting_list("cust-a", "biz1", "svc2")

    def test_rejoin_after_leaving(self, customer):
        customer("cust-a")
        entry_id = gateway.join_waiting_list("cust-a", "biz1", "svc1")
        gateway.leave_waiting_list(entry_id)
        assert gateway.join_waiting_list("cust-a", "biz1", "svc1") != entry_id

    def test_disabled_waiting_list_rejects_joins(self, customer):
        customer("cust-a")
        gateway.configure_waitlist("biz1", "svc1", enabled=False)
        with pytest.raises(WaitingListUnavailable):
            gateway.join_waiting_list("cust-a", "biz1", "svc1")

    def test_join_records_subscription_consent(self, customer):
        customer("cust-a")
        gateway.join_waiting_list("cust-a", "biz1", "svc1")
        contact = current_domain.repository_for(CustomerContact).get("cust-a")
        assert contact.is_subscribed("waitlist:biz1:svc1")

    def test_join_without_contact_creates_one(self):
        gateway.join_waiting_list("cust-new", "biz1", "svc1")
        contact = current_domain.repository_for(CustomerContact).get("cust-new")
        assert contact.email is None
        assert contact.is_subscribed("waitlist:biz1:svc1")

    def test_join_sends_confirmation(self, customer, directory, email):
        directory.businesses["biz1"] = "Salon Nova"
        customer("cust-a")
        gateway.join_waiting_list("cust-a", "biz1", "svc1")

        assert [m["subject"] for m in email.sent_emails] == ["You're on the waiting list at Salon Nova"]
        assert email.sent_emails[0]["to"] == "cust-a@example.com"


class TestOrdering:
    def test_higher_priority_first(self, customer, frozen_clock):
        customer("cust-low", visits=1)
        customer("cust-high", visits=5)
        gateway.join_waiting_list("cust-low", "biz1", "svc1")
        frozen_clock.advance(timedelta(minutes=1))
        gateway.join_waiting_list("cust-high", "biz1", "svc1")

        entries = WaitingListQueue().entries("biz1", "svc1")
        assert [e.customer_id for e in entries] == ["cust-high", "cust-low"]

    def test_first_come_first_served_within_priority(self, customer, frozen_clock):
        customer("cust-a", visits=1)
        customer("cust-b", visits=1)
        gateway.join_waiting_list("cust-b", "biz1", "svc1", joined_at=frozen_clock.utc_now() + timedelta(seconds=1))
        gateway.join_waiting_list("cust-a", "biz1", "svc1")

        queue = WaitingListQueue()
        assert queue.next_eligible("biz1", "svc1").customer_id == "cust-a"

    def test_next_eligible_skips_excluded(self, customer):
        customer("cust-a", visits=2)
        customer("cust-b", visits=1)
        first = gateway.join_waiting_list("cust-a", "biz1", "svc1")
        gateway.join_waiting_list("cust-b", "biz1", "svc1")

        assert WaitingListQueue().next_eligible("biz1", "svc1", exclude=[first]).customer_id == "cust-b"

    def test_position(self, customer, entry_repo):
        customer("cust-a", visits=2)
        customer("cust-b", visits=1)
        gateway.join_waiting_list("cust-a", "biz1", "svc1")
        second = gateway.join_waiting_list("cust-b", "biz1", "svc1")

        assert WaitingListQueue().position(entry_repo.get(second)) == 2

    def test_entries_for_customer(self, customer):
        customer("cust-a")
        gateway.join_waiting_list("cust-a", "biz1", "svc1")
        gateway.join_waiting_list("cust-a", "biz1", "svc2")
        assert len(WaitingListQueue().entries_for_customer("cust-a")) == 2


class TestLeave:
    def test_leave_removes_entry(self, customer, entry_repo):
        customer("cust-a")
        entry_id = gateway.join_waiting_list("cust-a", "biz1", "svc1")
        gateway.leave_waiting_list(entry_id)

        entry = entry_repo.get(entry_id)
        assert entry.status == EntryStatus.REMOVED.value
        assert entry.removed_reason == "customer_left"

    def test_leave_is_idempotent(self, customer, entry_repo):
        customer("cust-a")
        entry_id = gateway.join_waiting_list("cust-a", "biz1", "svc1")
        gateway.leave_waiting_list(entry_id)
        gateway.leave_waiting_list(entry_id, reason="again")

        assert entry_repo.get(entry_id).removed_reason == "customer_left"

    def test_unknown_entry(self):
        with pytest.raises(EntryNotFound):
            gateway.leave_waiting_list("missing")

    def test_removed_entries_are_never_offered(self, customer):
        customer("cust-a")
        entry_id = gateway.join_waiting_list("cust-a", "biz1", "svc1")
        gateway.leave_waiting_list(entry_id)

        assert WaitingListQueue().next_eligible("biz1", "svc1") is None
