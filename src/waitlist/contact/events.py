"""Domain events for the CustomerContact aggregate."""

from protean.fields import Boolean, DateTime, Identifier, String

from waitlist.domain import waitlist


@waitlist.event(part_of="CustomerContact")
class ContactRegistered:
    """Contact details for a customer were recorded."""

    __version__ = 1

    customer_id: Identifier(required=True)
    has_email: Boolean(default=False)
    has_phone: Boolean(default=False)
    timezone: String(required=True)
    registered_at: DateTime(required=True)


@waitlist.event(part_of="CustomerContact")
class ContactDetailsUpdated:
    """A customer's address or timezone changed."""

    __version__ = 1

    customer_id: Identifier(required=True)
    has_email: Boolean(default=False)
    has_phone: Boolean(default=False)
    timezone: String(required=True)
    updated_at: DateTime(required=True)


@waitlist.event(part_of="CustomerContact")
class ConsentChanged:
    """Consent for a channel, or for a waiting-list subscription, changed."""

    __version__ = 1

    customer_id: Identifier(required=True)
    scope: String(required=True)  # channel name or "waitlist:<business>:<service>"
    granted: Boolean(required=True)
    changed_at: DateTime(required=True)


@waitlist.event(part_of="CustomerContact")
class ChannelValidityChanged:
    """Bounce handling changed whether an address can be used."""

    __version__ = 1

    customer_id: Identifier(required=True)
    channel: String(required=True)
    validity: String(required=True)
    reason: String()
    changed_at: DateTime(required=True)


@waitlist.event(part_of="CustomerContact")
class QuietHoursChanged:
    """The customer's own quiet-hours window was set or cleared."""

    __version__ = 1

    customer_id: Identifier(required=True)
    start: String()
    end: String()
    changed_at: DateTime(required=True)
