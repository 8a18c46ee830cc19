"""Pydantic request/response schemas for the Waitlist API.

These are external contracts, kept separate from the internal Protean
commands.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class JoinWaitingListRequest(BaseModel):
    customer_id: str
    business_id: str
    service_id: str

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_id": "cust-001",
                    "business_id": "salon-42",
                    "service_id": "haircut",
                }
            ]
        }
    }


class SlotAvailableRequest(BaseModel):
    business_id: str
    service_id: str
    slot_start: datetime
    slot_end: datetime

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "business_id": "salon-42",
                    "service_id": "haircut",
                    "slot_start": "2026-03-12T14:00:00Z",
                    "slot_end": "2026-03-12T14:45:00Z",
                }
            ]
        }
    }


class BounceRequest(BaseModel):
    channel: Literal["email", "sms"]
    address: str
    severity: Literal["Hard", "Soft"]
    reason: str | None = None


class OptOutRequest(BaseModel):
    channel: Literal["email", "sms"]
    address: str
    customer_id: str | None = None


class ContactRequest(BaseModel):
    email: str | None = None
    phone: str | None = None
    email_consent: bool | None = None
    sms_consent: bool | None = None
    timezone: str | None = None


class QuietHoursRequest(BaseModel):
    start: str = Field(pattern=r"^\d{2}:\d{2}$")
    end: str = Field(pattern=r"^\d{2}:\d{2}$")


class WaitlistSettingsRequest(BaseModel):
    enabled: bool | None = None
    hold_minutes: int | None = Field(default=None, ge=30, le=360)


class SendNotificationRequest(BaseModel):
    event_type: Literal["booking.create", "booking.cancel", "payment.failed"]
    business_id: str
    customer_id: str
    reference_id: str | None = None
    data: dict = Field(default_factory=dict)
    channels: list[Literal["email", "sms"]] | None = None


class RunDueJobsRequest(BaseModel):
    as_of: datetime | None = None


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class EntryIdResponse(BaseModel):
    entry_id: str


class EntryResponse(BaseModel):
    entry_id: str
    business_id: str
    service_id: str
    customer_id: str
    status: str
    priority: float
    position: int | None = None
    joined_at: datetime


class OfferIdResponse(BaseModel):
    offer_id: str


class BookingDraftResponse(BaseModel):
    offer_id: str
    entry_id: str
    business_id: str
    service_id: str
    customer_id: str
    slot_start: datetime
    slot_end: datetime
    accepted_at: datetime


class BounceResponse(BaseModel):
    suppressed: bool
    reason: str | None = None


class NotificationResponse(BaseModel):
    idempotency_key: str


class SummaryResponse(BaseModel):
    business_id: str
    service_id: str
    waiting: int = 0
    notified: int = 0
    booked: int = 0
    removed: int = 0
    open_offers: int = 0
    offers_made: int = 0
    offers_accepted: int = 0
    offers_expired: int = 0


class AuditRecordResponse(BaseModel):
    kind: str
    subject_type: str
    subject_id: str
    business_id: str | None = None
    customer_id: str | None = None
    details: dict
    occurred_at: datetime


class RunDueJobsResponse(BaseModel):
    completed: int
    rescheduled: int
    failed: int
    skipped: int


class StatusResponse(BaseModel):
    status: str = "ok"
