"""Errors returned by the waitlist engine's public operations.

All are user-facing and non-retryable except ``SlotAlreadyCommitted``,
which signals an attempt to break the one-pending-offer-per-slot rule and
is rejected at the boundary.
"""


class WaitlistError(Exception):
    """Base class for waitlist engine errors."""

    code = "waitlist_error"

    def __init__(self, message: str | None = None, **context):
        super().__init__(message or self.__class__.__doc__)
        self.context = context


class DuplicateEntry(WaitlistError):
    """Customer is already waiting for this service."""

    code = "duplicate_entry"


class WaitingListUnavailable(WaitlistError):
    """The waiting list is switched off for this service."""

    code = "waiting_list_unavailable"


class NoEligibleCustomers(WaitlistError):
    """Nobody on the waiting list can be offered this slot."""

    code = "no_eligible_customers"


class OfferNotFound(WaitlistError):
    """No offer matches this token."""

    code = "offer_not_found"


class OfferNoLongerAvailable(WaitlistError):
    """This offer has already been resolved."""

    code = "offer_no_longer_available"


class OfferExpired(WaitlistError):
    """The hold on this offer has run out."""

    code = "offer_expired"


class SlotAlreadyCommitted(WaitlistError):
    """The slot already has a live offer or an accepted booking."""

    code = "slot_already_committed"


class EntryNotFound(WaitlistError):
    """No waiting-list entry with this id."""

    code = "entry_not_found"
