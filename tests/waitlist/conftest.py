from datetime import UTC, datetime

import pytest
from protean.integrations.pytest import DomainFixture
from protean.utils.globals import current_domain

# Noon in London (GMT in early March): outside the default quiet hours
NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)
SLOT_START = datetime(2026, 3, 12, 14, 0, tzinfo=UTC)
SLOT_END = datetime(2026, 3, 12, 14, 45, tzinfo=UTC)


@pytest.fixture(scope="session")
def waitlist_bed():
    from waitlist.domain import waitlist

    bed = DomainFixture(waitlist)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(waitlist_bed):
    with waitlist_bed.domain_context():
        yield
        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


@pytest.fixture(autouse=True)
def frozen_clock():
    from waitlist import clock

    clock.freeze(NOW)
    yield clock
    clock.unfreeze()


@pytest.fixture()
def now():
    return NOW


@pytest.fixture()
def slot():
    return SLOT_START, SLOT_END


@pytest.fixture()
def directory():
    from waitlist.directory import get_directory

    return get_directory()


@pytest.fixture()
def email():
    from waitlist.channel import get_channel

    return get_channel("email")


@pytest.fixture()
def sms():
    from waitlist.channel import get_channel

    return get_channel("sms")


@pytest.fixture()
def booking_sink():
    from waitlist.booking import get_booking_sink

    return get_booking_sink()


@pytest.fixture()
def customer():
    """Register a reachable customer: ``customer("cust-a", visits=1)``."""
    from waitlist import gateway
    from waitlist.directory import get_directory

    def _register(customer_id, business_id="biz1", visits=0, spend=0.0, phone=None, sms_consent=None, **details):
        get_directory().set_history(customer_id, business_id, visit_count=visits, total_spend=spend)
        gateway.register_contact(
            customer_id,
            email=details.pop("email", f"{customer_id}@example.com"),
            phone=phone,
            sms_consent=sms_consent if sms_consent is not None else bool(phone),
            **details,
        )
        return customer_id

    return _register


@pytest.fixture()
def offer_repo():
    from waitlist.offer.offer import Offer

    return current_domain.repository_for(Offer)


@pytest.fixture()
def entry_repo():
    from waitlist.entry.entry import WaitingListEntry

    return current_domain.repository_for(WaitingListEntry)


@pytest.fixture()
def job_repo():
    from waitlist.dispatch.job import NotificationJob

    return current_domain.repository_for(NotificationJob)
