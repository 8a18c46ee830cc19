"""RecordBounce and OptOut commands + handlers."""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from waitlist.contact.contact import CustomerContact
from waitlist.dispatch.job import Channel
from waitlist.domain import waitlist
from waitlist.suppression.registry import BouncePolicy, SuppressionRegistry, contacts_for_address
from waitlist.suppression.suppression import BounceSeverity, SuppressionEntry, SuppressionReason


@waitlist.command(part_of="SuppressionEntry")
class RecordBounce:
    """Bounce signal reported by a transport provider."""

    channel: String(required=True, max_length=10)
    address: String(required=True, max_length=254)
    severity: String(required=True, choices=BounceSeverity)
    reason: String(max_length=500)


@waitlist.command(part_of="SuppressionEntry")
class OptOut:
    """Explicit opt-out of a channel address (e.g. STOP reply, unsubscribe link)."""

    channel: String(required=True, max_length=10)
    address: String(required=True, max_length=254)
    customer_id: Identifier()


@waitlist.command_handler(part_of=SuppressionEntry)
class SuppressionCommandHandler:
    @handle(RecordBounce)
    def record_bounce(self, command: RecordBounce):
        _check_channel(command.channel)
        entry = BouncePolicy().handle(
            channel=command.channel,
            address=command.address,
            severity=command.severity,
            reason=command.reason,
        )
        return entry.reason if entry is not None else None

    @handle(OptOut)
    def opt_out(self, command: OptOut):
        _check_channel(command.channel)
        if command.customer_id:
            contacts = [current_domain.repository_for(CustomerContact).get(command.customer_id)]
        else:
            contacts = contacts_for_address(command.channel, command.address)

        SuppressionRegistry().record(command.channel, command.address, SuppressionReason.OPT_OUT.value)

        repo = current_domain.repository_for(CustomerContact)
        for contact in contacts:
            if contact.consent_for(command.channel):
                contact.set_consent(command.channel, False)
                repo.add(contact)


def _check_channel(channel):
    if channel not in {c.value for c in Channel}:
        raise ValidationError({"channel": [f"Unknown channel: {channel}"]})
