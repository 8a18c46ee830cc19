"""AuditLog — append-only record of state transitions and dispatch attempts.

Domain events land here through ``AuditProjector``; components append
directly for facts that are not events (e.g. a slot with no candidate).
"""

import json
import uuid

from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from waitlist.clock import as_utc, utc_now
from waitlist.domain import waitlist


@waitlist.projection
class AuditRecord:
    record_id: Identifier(identifier=True, required=True)
    kind: String(max_length=100, required=True)
    subject_type: String(max_length=50, required=True)
    subject_id: String(max_length=255, required=True)
    business_id: String(max_length=255)
    customer_id: String(max_length=255)
    details: Text()  # JSON
    occurred_at: DateTime(required=True)


class AuditLog:
    def append(self, kind, subject_type, subject_id, business_id=None, customer_id=None, occurred_at=None, **details):
        record = AuditRecord(
            record_id=str(uuid.uuid4()),
            kind=kind,
            subject_type=subject_type,
            subject_id=str(subject_id),
            business_id=str(business_id) if business_id else None,
            customer_id=str(customer_id) if customer_id else None,
            details=json.dumps(details, default=str),
            occurred_at=occurred_at or utc_now(),
        )
        current_domain.repository_for(AuditRecord).add(record)
        return record

    def entries(self, subject_id=None, kind=None, business_id=None) -> list:
        criteria = {}
        if subject_id is not None:
            criteria["subject_id"] = str(subject_id)
        if kind is not None:
            criteria["kind"] = kind
        if business_id is not None:
            criteria["business_id"] = str(business_id)

        query = current_domain.repository_for(AuditRecord)._dao.query
        records = query.filter(**criteria).all().items if criteria else query.all().items
        return sorted(records, key=lambda r: as_utc(r.occurred_at))

    def kinds(self, subject_id) -> list[str]:
        return [r.kind for r in self.entries(subject_id=subject_id)]
