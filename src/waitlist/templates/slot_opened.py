"""Slot offer — sent to the customer holding a new offer."""

from waitlist.dispatch.job import Channel, EventType


class SlotOpenedTemplate:
    event_type = EventType.SLOT_OPENED.value
    default_channels = [Channel.EMAIL.value, Channel.SMS.value]

    @staticmethod
    def render(context: dict) -> dict:
        business = context.get("business_name", "the business")
        service = context.get("service_name", "your service")
        slot = context.get("slot_display", "")
        hold_hours = context.get("hold_hours", 2)
        link = context.get("offer_link", "")
        return {
            "subject": f"A slot opened at {business}!",
            "body": (
                f"Good news! A {service} slot opened at {business} on {slot}.\n\n"
                f"It's held for you for {hold_hours}h. Accept or decline here:\n{link}\n\n"
                "If we don't hear from you in time, the slot goes to the next person waiting."
            ),
            "sms": f"Slot opened at {business} {slot}. Book within {hold_hours}h: {link}. No replies.",
        }
