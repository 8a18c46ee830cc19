"""Fake booking sink — records drafts for test assertions."""

from waitlist.booking.port import BookingPort


class FakeBookingSink(BookingPort):
    def __init__(self):
        self.drafts: list[dict] = []

    def receive(self, draft: dict) -> None:
        self.drafts.append(dict(draft))

    def reset(self):
        self.drafts.clear()
