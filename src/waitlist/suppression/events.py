"""Domain events for suppression and bounce tracking."""

from protean.fields import DateTime, Identifier, String

from waitlist.domain import waitlist


@waitlist.event(part_of="SuppressionEntry")
class AddressSuppressed:
    """A channel address was added to the suppression list."""

    __version__ = 1

    suppression_key: Identifier(required=True)
    channel: String(required=True)
    reason: String(required=True)
    created_at: DateTime(required=True)


@waitlist.event(part_of="BounceRecord")
class BounceRecorded:
    """A transport reported a bounce for a channel address."""

    __version__ = 1

    bounce_id: Identifier(required=True)
    channel: String(required=True)
    address_hash: String(required=True)
    severity: String(required=True)
    reason: String()
    occurred_at: DateTime(required=True)
