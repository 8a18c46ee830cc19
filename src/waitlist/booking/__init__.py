"""Booking sink registry."""

_sink = None


def get_booking_sink():
    global _sink
    if _sink is None:
        from waitlist.booking.fake import FakeBookingSink

        _sink = FakeBookingSink()
    return _sink


def set_booking_sink(sink) -> None:
    global _sink
    _sink = sink


def reset_booking_sink():
    global _sink
    _sink = None
