"""Template registry — maps event types to template classes.

Each template knows its default channels and how to render content
from the job's structured data.
"""

from waitlist.dispatch.job import EventType
from waitlist.templates.booking import (
    BookingCancelledTemplate,
    BookingCreatedTemplate,
    PaymentFailedTemplate,
)
from waitlist.templates.slot_opened import SlotOpenedTemplate
from waitlist.templates.waitlist_joined import WaitlistJoinedTemplate

TEMPLATE_REGISTRY: dict[str, type] = {
    EventType.WAITLIST_JOINED.value: WaitlistJoinedTemplate,
    EventType.SLOT_OPENED.value: SlotOpenedTemplate,
    EventType.BOOKING_CREATE.value: BookingCreatedTemplate,
    EventType.BOOKING_CANCEL.value: BookingCancelledTemplate,
    EventType.PAYMENT_FAILED.value: PaymentFailedTemplate,
}


def get_template(event_type: str):
    """Look up a template class by event type string."""
    template_cls = TEMPLATE_REGISTRY.get(event_type)
    if template_cls is None:
        raise ValueError(f"No template registered for event type: {event_type}")
    return template_cls
