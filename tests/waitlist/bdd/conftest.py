"""Shared BDD fixtures and step definitions for the waitlist engine."""

from datetime import timedelta

import pytest
from protean.utils.globals import current_domain
from pytest_bdd import given, parsers, then, when
from waitlist import gateway
from waitlist.clock import as_utc
from waitlist.offer.offer import Offer


@pytest.fixture()
def entries():
    """Entry ids by customer id."""
    return {}


@pytest.fixture()
def error():
    """Container for captured engine errors."""
    return {"exc": None}


@pytest.fixture()
def offer_of():
    """Latest offer made to a customer."""

    def _find(customer_id):
        repo = current_domain.repository_for(Offer)
        matches = repo._dao.query.filter(customer_id=customer_id).all().items
        return max(matches, key=lambda o: as_utc(o.created_at))

    return _find


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('business "{business_id}" is called "{name}"'))
def business_name(directory, business_id, name):
    directory.businesses[business_id] = name


@given(parsers.cfparse('customer "{customer_id}" with {visits:d} past visits joins the waiting list'))
def customer_joins(customer, frozen_clock, entries, customer_id, visits):
    customer(customer_id, visits=visits)
    entries[customer_id] = gateway.join_waiting_list(customer_id, "biz1", "svc1")
    frozen_clock.advance(timedelta(seconds=1))


@given(parsers.cfparse('customer "{customer_id}" has email only'))
def email_only_customer(customer, customer_id):
    customer(customer_id)


@given(parsers.cfparse('customer "{customer_id}" has email and SMS'))
def email_and_sms_customer(customer, customer_id):
    customer(customer_id, phone="+447700900123")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("a slot becomes available")
def slot_becomes_available(slot):
    gateway.notify_slot_available("biz1", "svc1", *slot)


@when(parsers.cfparse("{hours:d} hours pass"))
def hours_pass(frozen_clock, hours):
    frozen_clock.advance(timedelta(hours=hours))
    gateway.run_due_jobs()


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('customer "{customer_id}" holds a pending offer'))
def holds_pending_offer(offer_of, customer_id):
    assert offer_of(customer_id).status == "Pending"


@then(parsers.cfparse('the entry of customer "{customer_id}" is {status}'))
def entry_status(entry_repo, entries, customer_id, status):
    assert entry_repo.get(entries[customer_id]).status == status
