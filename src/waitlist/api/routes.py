"""FastAPI routes for the waitlist engine — a thin adapter over ``waitlist.gateway``."""

import json
from contextlib import contextmanager

from fastapi import APIRouter, HTTPException
from protean.exceptions import ObjectNotFoundError, ValidationError

from waitlist import gateway
from waitlist.api.schemas import (
    AuditRecordResponse,
    BookingDraftResponse,
    BounceRequest,
    BounceResponse,
    ContactRequest,
    EntryIdResponse,
    EntryResponse,
    JoinWaitingListRequest,
    NotificationResponse,
    OfferIdResponse,
    OptOutRequest,
    QuietHoursRequest,
    RunDueJobsRequest,
    RunDueJobsResponse,
    SendNotificationRequest,
    SlotAvailableRequest,
    StatusResponse,
    SummaryResponse,
    WaitlistSettingsRequest,
)
from waitlist.entry.queue import WaitingListQueue
from waitlist.errors import (
    DuplicateEntry,
    EntryNotFound,
    NoEligibleCustomers,
    OfferExpired,
    OfferNoLongerAvailable,
    OfferNotFound,
    SlotAlreadyCommitted,
    WaitingListUnavailable,
    WaitlistError,
)
from waitlist.offer.offer import Decision

router = APIRouter(prefix="/waitlist", tags=["waitlist"])

_STATUS_CODES = {
    EntryNotFound: 404,
    OfferNotFound: 404,
    DuplicateEntry: 409,
    WaitingListUnavailable: 409,
    NoEligibleCustomers: 409,
    SlotAlreadyCommitted: 409,
    OfferNoLongerAvailable: 410,
    OfferExpired: 410,
}


@contextmanager
def _translate_errors():
    """Map engine errors onto HTTP status codes."""
    try:
        yield
    except WaitlistError as exc:
        status_code = _STATUS_CODES.get(type(exc), 400)
        raise HTTPException(
            status_code=status_code,
            detail={"code": exc.code, "message": str(exc), **{k: str(v) for k, v in exc.context.items()}},
        ) from exc
    except ObjectNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.messages) from exc


# ---------------------------------------------------------------------------
# Waiting-list entries
# ---------------------------------------------------------------------------
@router.post("/entries", status_code=201, response_model=EntryIdResponse)
async def join_waiting_list(body: JoinWaitingListRequest) -> EntryIdResponse:
    with _translate_errors():
        entry_id = gateway.join_waiting_list(
            customer_id=body.customer_id,
            business_id=body.business_id,
            service_id=body.service_id,
        )
    return EntryIdResponse(entry_id=entry_id)


@router.get("/entries/{entry_id}", response_model=EntryResponse)
async def get_entry(entry_id: str) -> EntryResponse:
    queue = WaitingListQueue()
    with _translate_errors():
        entry = queue.get(entry_id)
    return EntryResponse(
        entry_id=str(entry.id),
        business_id=str(entry.business_id),
        service_id=str(entry.service_id),
        customer_id=str(entry.customer_id),
        status=entry.status,
        priority=entry.priority or 0.0,
        position=queue.position(entry),
        joined_at=entry.joined_at,
    )


@router.delete("/entries/{entry_id}", response_model=StatusResponse)
async def leave_waiting_list(entry_id: str, reason: str = "customer_left") -> StatusResponse:
    with _translate_errors():
        gateway.leave_waiting_list(entry_id, reason=reason)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Slots and offers
# ---------------------------------------------------------------------------
@router.post("/slots", status_code=201, response_model=OfferIdResponse)
async def slot_available(body: SlotAvailableRequest) -> OfferIdResponse:
    with _translate_errors():
        offer_id = gateway.notify_slot_available(
            business_id=body.business_id,
            service_id=body.service_id,
            slot_start=body.slot_start,
            slot_end=body.slot_end,
        )
    return OfferIdResponse(offer_id=offer_id)


@router.post("/offers/{token}/accept", response_model=BookingDraftResponse)
async def accept_offer(token: str) -> BookingDraftResponse:
    with _translate_errors():
        draft = gateway.resolve_offer(token, Decision.ACCEPT.value)
    return BookingDraftResponse(**draft.to_dict())


@router.post("/offers/{token}/decline", response_model=StatusResponse)
async def decline_offer(token: str) -> StatusResponse:
    with _translate_errors():
        gateway.resolve_offer(token, Decision.DECLINE.value)
    return StatusResponse(status="declined")


# ---------------------------------------------------------------------------
# Bounces, opt-outs and contacts
# ---------------------------------------------------------------------------
@router.post("/bounces", response_model=BounceResponse)
async def record_bounce(body: BounceRequest) -> BounceResponse:
    with _translate_errors():
        reason = gateway.record_bounce(
            channel=body.channel,
            address=body.address,
            severity=body.severity,
            reason=body.reason,
        )
    return BounceResponse(suppressed=reason is not None, reason=reason)


@router.post("/opt-outs", response_model=StatusResponse)
async def opt_out(body: OptOutRequest) -> StatusResponse:
    with _translate_errors():
        gateway.opt_out(channel=body.channel, address=body.address, customer_id=body.customer_id)
    return StatusResponse()


@router.put("/contacts/{customer_id}", response_model=StatusResponse)
async def register_contact(customer_id: str, body: ContactRequest) -> StatusResponse:
    with _translate_errors():
        gateway.register_contact(customer_id, **body.model_dump())
    return StatusResponse()


@router.put("/contacts/{customer_id}/quiet-hours", response_model=StatusResponse)
async def set_quiet_hours(customer_id: str, body: QuietHoursRequest) -> StatusResponse:
    with _translate_errors():
        gateway.set_quiet_hours(customer_id, start=body.start, end=body.end)
    return StatusResponse()


@router.delete("/contacts/{customer_id}/quiet-hours", response_model=StatusResponse)
async def clear_quiet_hours(customer_id: str) -> StatusResponse:
    with _translate_errors():
        gateway.clear_quiet_hours(customer_id)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Settings, notifications and reads
# ---------------------------------------------------------------------------
@router.put("/settings/{business_id}/{service_id}", response_model=StatusResponse)
async def configure_waitlist(business_id: str, service_id: str, body: WaitlistSettingsRequest) -> StatusResponse:
    with _translate_errors():
        gateway.configure_waitlist(
            business_id,
            service_id,
            enabled=body.enabled,
            hold_minutes=body.hold_minutes,
        )
    return StatusResponse()


@router.post("/notifications", status_code=202, response_model=NotificationResponse)
async def send_notification(body: SendNotificationRequest) -> NotificationResponse:
    with _translate_errors():
        key = gateway.send_notification(
            event_type=body.event_type,
            business_id=body.business_id,
            customer_id=body.customer_id,
            reference_id=body.reference_id,
            data=body.data,
            channels=body.channels,
        )
    return NotificationResponse(idempotency_key=key)


@router.get("/summary/{business_id}/{service_id}", response_model=SummaryResponse)
async def waitlist_summary(business_id: str, service_id: str) -> SummaryResponse:
    summary = gateway.waitlist_summary(business_id, service_id)
    if summary is None:
        return SummaryResponse(business_id=business_id, service_id=service_id)
    return SummaryResponse(
        business_id=summary.business_id,
        service_id=summary.service_id,
        waiting=summary.waiting or 0,
        notified=summary.notified or 0,
        booked=summary.booked or 0,
        removed=summary.removed or 0,
        open_offers=summary.open_offers or 0,
        offers_made=summary.offers_made or 0,
        offers_accepted=summary.offers_accepted or 0,
        offers_expired=summary.offers_expired or 0,
    )


@router.get("/audit", response_model=list[AuditRecordResponse])
async def audit_entries(
    subject_id: str | None = None,
    kind: str | None = None,
    business_id: str | None = None,
) -> list[AuditRecordResponse]:
    return [
        AuditRecordResponse(
            kind=record.kind,
            subject_type=record.subject_type,
            subject_id=record.subject_id,
            business_id=record.business_id,
            customer_id=record.customer_id,
            details=json.loads(record.details) if record.details else {},
            occurred_at=record.occurred_at,
        )
        for record in gateway.audit_entries(subject_id=subject_id, kind=kind, business_id=business_id)
    ]


@router.post("/maintenance/run-due-jobs", response_model=RunDueJobsResponse)
async def run_due_jobs(body: RunDueJobsRequest) -> RunDueJobsResponse:
    with _translate_errors():
        summary = gateway.run_due_jobs(as_of=body.as_of)
    return RunDueJobsResponse(**summary)
