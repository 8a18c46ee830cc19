"""Booking lifecycle templates — confirmations, cancellations and payment failures."""

from waitlist.dispatch.job import Channel, EventType


class BookingCreatedTemplate:
    event_type = EventType.BOOKING_CREATE.value
    default_channels = [Channel.EMAIL.value, Channel.SMS.value]

    @staticmethod
    def render(context: dict) -> dict:
        business = context.get("business_name", "the business")
        slot = context.get("slot_display", "")
        return {
            "subject": f"Booking confirmed at {business}",
            "body": f"Your booking at {business} on {slot} is confirmed. See you then!",
            "sms": f"Booked: {business} {slot}. No replies.",
        }


class BookingCancelledTemplate:
    event_type = EventType.BOOKING_CANCEL.value
    default_channels = [Channel.EMAIL.value, Channel.SMS.value]

    @staticmethod
    def render(context: dict) -> dict:
        business = context.get("business_name", "the business")
        slot = context.get("slot_display", "")
        return {
            "subject": f"Booking cancelled at {business}",
            "body": f"Your booking at {business} on {slot} has been cancelled.",
            "sms": f"Cancelled: {business} {slot}. No replies.",
        }


class PaymentFailedTemplate:
    event_type = EventType.PAYMENT_FAILED.value
    default_channels = [Channel.EMAIL.value]

    @staticmethod
    def render(context: dict) -> dict:
        business = context.get("business_name", "the business")
        amount = context.get("amount")
        amount_text = f" of {amount}" if amount else ""
        return {
            "subject": f"Payment failed for your booking at {business}",
            "body": (
                f"We couldn't take your payment{amount_text} for {business}.\n\n"
                "Please update your payment details to keep your booking."
            ),
            "sms": f"Payment failed for {business}. Please update your card. No replies.",
        }
