"""EligibilityGate — may this customer be contacted on this channel right now?

Checks, in order: an address is on file, the channel consent flag is on,
the waiting-list subscription (when the job names one) is consented, the
address is not Invalid, and the address is not suppressed. Urgency never
relaxes any of these.
"""

from dataclasses import dataclass

from waitlist.contact.contact import ChannelValidity
from waitlist.suppression.registry import SuppressionRegistry


@dataclass(frozen=True)
class Eligibility:
    allowed: bool
    reason: str | None = None


class EligibilityGate:
    def __init__(self, registry: SuppressionRegistry | None = None):
        self.registry = registry or SuppressionRegistry()

    def evaluate(self, contact, channel, subscription=None) -> Eligibility:
        if contact is None:
            return Eligibility(False, "no_contact")

        address = contact.address_for(channel)
        if not address:
            return Eligibility(False, "no_address")
        if not contact.consent_for(channel):
            return Eligibility(False, "no_consent")
        if subscription and not contact.is_subscribed(subscription):
            return Eligibility(False, "not_subscribed")
        if contact.validity_for(channel) == ChannelValidity.INVALID:
            return Eligibility(False, "invalid_address")

        suppression = self.registry.entry_for(channel, address)
        if suppression is not None:
            return Eligibility(False, f"suppressed:{suppression.reason}")

        return Eligibility(True)

    def check(self, contact, channel, subscription=None) -> bool:
        return self.evaluate(contact, channel, subscription).allowed
