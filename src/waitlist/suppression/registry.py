"""SuppressionRegistry and the bounce policy that feeds it.

The registry is the single source of truth consulted before every send.
It is never bypassed, urgent events included.
"""

from datetime import timedelta

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from waitlist.clock import as_utc, utc_now
from waitlist.contact.contact import ChannelValidity, CustomerContact
from waitlist.dispatch.job import Channel
from waitlist.keys import address_hash, mask_address, normalize_address
from waitlist.settings import get_settings
from waitlist.suppression.suppression import (
    BounceRecord,
    BounceSeverity,
    SuppressionEntry,
    SuppressionReason,
)

logger = structlog.get_logger(__name__)


class SuppressionRegistry:
    def entry_for(self, channel, address):
        if not address:
            return None
        try:
            return current_domain.repository_for(SuppressionEntry).get(address_hash(channel, address))
        except ObjectNotFoundError:
            return None

    def is_suppressed(self, channel, address) -> bool:
        return self.entry_for(channel, address) is not None

    def record(self, channel, address, reason) -> SuppressionEntry:
        """Suppress a channel address. Returns the existing entry if already suppressed."""
        existing = self.entry_for(channel, address)
        if existing is not None:
            return existing

        entry = SuppressionEntry.create(
            suppression_key=address_hash(channel, address),
            channel=channel,
            reason=SuppressionReason(reason).value,
        )
        current_domain.repository_for(SuppressionEntry).add(entry)

        logger.info(
            "Address suppressed",
            channel=channel,
            address=mask_address(address),
            reason=entry.reason,
        )
        return entry


def contacts_for_address(channel, address):
    """Contacts holding this address on the given channel."""
    repo = current_domain.repository_for(CustomerContact)
    field = "email" if channel == Channel.EMAIL.value else "phone"
    wanted = normalize_address(channel, address)
    candidates = repo._dao.query.filter(**{field: address}).all().items
    if not candidates and wanted != address:
        candidates = repo._dao.query.filter(**{field: wanted}).all().items
    return [c for c in candidates if normalize_address(channel, c.address_for(channel)) == wanted]


class BouncePolicy:
    """Turns transport bounce signals into contact validity and suppressions.

    Hard bounce → address Invalid and suppressed (``hard_bounce``).
    Soft bounce → address Restricted; the Nth soft bounce inside the
    configured window suppresses the address (``repeated_soft_bounce``).
    """

    def __init__(self, registry: SuppressionRegistry | None = None, settings=None):
        self.registry = registry or SuppressionRegistry()
        self.settings = settings or get_settings()

    def handle(self, channel, address, severity, reason=None, contacts=None):
        channel = Channel(channel).value
        severity = BounceSeverity(severity).value
        hashed = address_hash(channel, address)

        recent_soft = self._recent_soft_bounces(channel, hashed)
        current_domain.repository_for(BounceRecord).add(
            BounceRecord.create(channel=channel, address_hash=hashed, severity=severity, reason=reason)
        )

        validity = ChannelValidity.INVALID if severity == BounceSeverity.HARD.value else ChannelValidity.RESTRICTED
        contact_repo = current_domain.repository_for(CustomerContact)
        for contact in contacts if contacts is not None else contacts_for_address(channel, address):
            contact.mark_channel(channel, validity, reason=reason)
            contact_repo.add(contact)

        logger.warning(
            "Bounce recorded",
            channel=channel,
            address=mask_address(address),
            severity=severity,
            reason=reason,
        )

        if severity == BounceSeverity.HARD.value:
            return self.registry.record(channel, address, SuppressionReason.HARD_BOUNCE.value)

        # The bounce just recorded is not visible to queries until commit
        if recent_soft + 1 >= self.settings.soft_bounce_threshold:
            return self.registry.record(channel, address, SuppressionReason.REPEATED_SOFT_BOUNCE.value)
        return None

    def _recent_soft_bounces(self, channel, hashed) -> int:
        since = utc_now() - timedelta(days=self.settings.soft_bounce_window_days)
        records = (
            current_domain.repository_for(BounceRecord)
            ._dao.query.filter(address_hash=hashed, severity=BounceSeverity.SOFT.value)
            .all()
            .items
        )
        return sum(1 for r in records if r.channel == channel and as_utc(r.occurred_at) >= since)
