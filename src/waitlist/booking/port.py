"""Booking port — the booking subsystem persists drafts emitted on accept."""

from abc import ABC, abstractmethod


class BookingPort(ABC):
    @abstractmethod
    def receive(self, draft: dict) -> None:
        """Take ownership of an accepted offer's booking draft."""
        ...
