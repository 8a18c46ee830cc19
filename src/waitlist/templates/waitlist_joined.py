"""Waiting-list confirmation — sent when a customer joins a list."""

from waitlist.dispatch.job import Channel, EventType


class WaitlistJoinedTemplate:
    event_type = EventType.WAITLIST_JOINED.value
    default_channels = [Channel.EMAIL.value]

    @staticmethod
    def render(context: dict) -> dict:
        business = context.get("business_name", "the business")
        service = context.get("service_name", "your service")
        return {
            "subject": f"You're on the waiting list at {business}",
            "body": (
                f"You're on the waiting list for {service} at {business}.\n\n"
                "We'll message you as soon as a slot opens up. Offers are held "
                "for a limited time, so keep an eye on your inbox."
            ),
            "sms": f"You're on the {business} waiting list for {service}. We'll text you when a slot opens.",
        }
