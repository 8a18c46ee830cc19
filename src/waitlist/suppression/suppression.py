"""Suppression list and bounce history.

SuppressionEntry is append-only: recording an address that is already
suppressed is a no-op, and nothing in the engine removes an entry.
Addresses are stored only as ``sha256(channel:normalized-address)``.
"""

from enum import Enum

from protean.fields import DateTime, Identifier, String

from waitlist.clock import utc_now
from waitlist.domain import waitlist
from waitlist.suppression.events import AddressSuppressed, BounceRecorded


class SuppressionReason(Enum):
    HARD_BOUNCE = "hard_bounce"
    REPEATED_SOFT_BOUNCE = "repeated_soft_bounce"
    OPT_OUT = "opt_out"


class BounceSeverity(Enum):
    HARD = "Hard"
    SOFT = "Soft"


@waitlist.aggregate
class SuppressionEntry:
    suppression_key: Identifier(identifier=True)
    channel: String(max_length=10, required=True)
    reason: String(choices=SuppressionReason, required=True)
    created_at: DateTime()

    @classmethod
    def create(cls, suppression_key, channel, reason):
        now = utc_now()
        entry = cls(
            suppression_key=suppression_key,
            channel=channel,
            reason=reason,
            created_at=now,
        )
        entry.raise_(
            AddressSuppressed(
                suppression_key=suppression_key,
                channel=channel,
                reason=reason,
                created_at=now,
            )
        )
        return entry


@waitlist.aggregate
class BounceRecord:
    channel: String(max_length=10, required=True)
    address_hash: String(max_length=64, required=True)
    severity: String(choices=BounceSeverity, required=True)
    reason: String(max_length=500)
    occurred_at: DateTime(required=True)

    @classmethod
    def create(cls, channel, address_hash, severity, reason=None):
        now = utc_now()
        record = cls(
            channel=channel,
            address_hash=address_hash,
            severity=severity,
            reason=reason,
            occurred_at=now,
        )
        record.raise_(
            BounceRecorded(
                bounce_id=str(record.id),
                channel=channel,
                address_hash=address_hash,
                severity=severity,
                reason=reason,
                occurred_at=now,
            )
        )
        return record
