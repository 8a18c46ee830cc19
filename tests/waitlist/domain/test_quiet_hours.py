"""Tests for quiet-hours windows."""

from datetime import UTC, datetime, time
from zoneinfo import ZoneInfo

from waitlist.contact.contact import CustomerContact
from waitlist.dispatch.quiet_hours import QuietWindow, parse_hhmm, resolve_timezone
from waitlist.settings import EngineSettings

LONDON = ZoneInfo("Europe/London")
NEW_YORK = ZoneInfo("America/New_York")


def _window(start="21:00", end="08:00", tz=LONDON):
    return QuietWindow(start=parse_hhmm(start), end=parse_hhmm(end), tz=tz)


class TestContains:
    def test_late_evening_is_quiet(self):
        assert _window().contains(datetime(2026, 3, 10, 22, 0, tzinfo=UTC))

    def test_early_morning_is_quiet(self):
        assert _window().contains(datetime(2026, 3, 11, 7, 59, tzinfo=UTC))

    def test_start_is_inside_end_is_not(self):
        assert _window().contains(datetime(2026, 3, 10, 21, 0, tzinfo=UTC))
        assert not _window().contains(datetime(2026, 3, 11, 8, 0, tzinfo=UTC))

    def test_daytime_is_not_quiet(self):
        assert not _window().contains(datetime(2026, 3, 10, 12, 0, tzinfo=UTC))

    def test_window_that_does_not_wrap(self):
        window = _window("13:00", "14:00")
        assert window.contains(datetime(2026, 3, 10, 13, 30, tzinfo=UTC))
        assert not window.contains(datetime(2026, 3, 10, 22, 0, tzinfo=UTC))

    def test_local_time_is_used(self):
        # 22:00 UTC is 18:00 in New York (EDT from 8 March 2026)
        assert not _window(tz=NEW_YORK).contains(datetime(2026, 3, 10, 22, 0, tzinfo=UTC))

    def test_empty_window(self):
        assert not _window("08:00", "08:00").contains(datetime(2026, 3, 10, 8, 0, tzinfo=UTC))


class TestNextEnd:
    def test_evening_resumes_next_morning(self):
        resume = _window().next_end(datetime(2026, 3, 10, 22, 0, tzinfo=UTC))
        assert resume == datetime(2026, 3, 11, 8, 0, tzinfo=UTC)

    def test_early_morning_resumes_same_day(self):
        resume = _window().next_end(datetime(2026, 3, 11, 3, 0, tzinfo=UTC))
        assert resume == datetime(2026, 3, 11, 8, 0, tzinfo=UTC)

    def test_resume_in_recipient_timezone(self):
        # 23:00 in New York is 03:00 UTC; 08:00 EDT is 12:00 UTC
        resume = _window(tz=NEW_YORK).next_end(datetime(2026, 3, 11, 3, 0, tzinfo=UTC))
        assert resume == datetime(2026, 3, 11, 12, 0, tzinfo=UTC)


class TestForContact:
    def test_defaults_without_contact(self):
        window = QuietWindow.for_contact(None, EngineSettings())
        assert window.start == time(21, 0)
        assert window.end == time(8, 0)
        assert window.tz == LONDON

    def test_contact_window_and_timezone(self):
        contact = CustomerContact.register(customer_id="cust-a", timezone="America/New_York")
        contact.set_quiet_hours("22:30", "07:00")
        window = QuietWindow.for_contact(contact, EngineSettings())
        assert window.start == time(22, 30)
        assert window.end == time(7, 0)
        assert window.tz == NEW_YORK

    def test_unknown_timezone_falls_back(self):
        assert resolve_timezone("Mars/Olympus_Mons", "Europe/London") == LONDON
