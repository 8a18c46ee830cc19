"""CustomerContact aggregate — how, and whether, a customer may be reached.

Holds addresses, per-channel consent, per-waiting-list subscription
consent, per-channel validity (set by bounce handling) and the local
timezone used for quiet hours. Read by the eligibility gate before every
send.
"""

import json
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, String, Text

from waitlist.clock import utc_now
from waitlist.contact.events import (
    ChannelValidityChanged,
    ConsentChanged,
    ContactDetailsUpdated,
    ContactRegistered,
    QuietHoursChanged,
)
from waitlist.dispatch.job import Channel
from waitlist.domain import waitlist

DEFAULT_TIMEZONE = "Europe/London"


class ChannelValidity(Enum):
    VALID = "Valid"
    RESTRICTED = "Restricted"
    INVALID = "Invalid"


def subscription_key(business_id, service_id) -> str:
    return f"waitlist:{business_id}:{service_id}"


def _channel(value):
    try:
        return Channel(value).value
    except ValueError:
        raise ValidationError({"channel": [f"Unknown channel: {value}"]}) from None


def validate_hhmm(label, value):
    parts = (value or "").split(":")
    if len(parts) != 2:
        raise ValidationError({f"quiet_hours_{label}": [f"Invalid time format: {value}. Use HH:MM"]})
    try:
        hour, minute = int(parts[0]), int(parts[1])
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            raise ValueError
    except ValueError:
        raise ValidationError({f"quiet_hours_{label}": [f"Invalid time format: {value}. Use HH:MM"]}) from None


@waitlist.aggregate
class CustomerContact:
    customer_id: Identifier(identifier=True)

    email: String(max_length=254)
    phone: String(max_length=32)

    email_consent: Boolean(default=True)
    sms_consent: Boolean(default=False)
    email_status: String(choices=ChannelValidity, default=ChannelValidity.VALID.value)
    sms_status: String(choices=ChannelValidity, default=ChannelValidity.VALID.value)

    subscriptions: Text()  # JSON list of subscription keys with consent
    timezone: String(max_length=64, default=DEFAULT_TIMEZONE)
    quiet_hours_start: String(max_length=5)
    quiet_hours_end: String(max_length=5)

    created_at: DateTime()
    updated_at: DateTime()

    @classmethod
    def register(cls, customer_id, email=None, phone=None, email_consent=True, sms_consent=False, timezone=None):
        now = utc_now()
        contact = cls(
            customer_id=customer_id,
            email=email,
            phone=phone,
            email_consent=email_consent,
            sms_consent=sms_consent,
            subscriptions=json.dumps([]),
            timezone=timezone or DEFAULT_TIMEZONE,
            created_at=now,
            updated_at=now,
        )
        contact.raise_(
            ContactRegistered(
                customer_id=str(customer_id),
                has_email=bool(email),
                has_phone=bool(phone),
                timezone=contact.timezone,
                registered_at=now,
            )
        )
        return contact

    # -------------------------------------------------------------------
    # Per-channel accessors
    # -------------------------------------------------------------------
    def address_for(self, channel):
        return self.email if channel == Channel.EMAIL.value else self.phone

    def consent_for(self, channel):
        return bool(self.email_consent if channel == Channel.EMAIL.value else self.sms_consent)

    def validity_for(self, channel):
        status = self.email_status if channel == Channel.EMAIL.value else self.sms_status
        return ChannelValidity(status or ChannelValidity.VALID.value)

    def reachable_channels(self):
        """Channels with an address on file, email first."""
        return [c.value for c in Channel if self.address_for(c.value)]

    @property
    def subscription_keys(self):
        return json.loads(self.subscriptions) if self.subscriptions else []

    def is_subscribed(self, key):
        return key in self.subscription_keys

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def update_details(self, email=None, phone=None, timezone=None):
        if email is None and phone is None and timezone is None:
            raise ValidationError({"contact": ["At least one detail must be provided"]})

        now = utc_now()
        if email is not None:
            if email != self.email:
                self.email_status = ChannelValidity.VALID.value
            self.email = email
        if phone is not None:
            if phone != self.phone:
                self.sms_status = ChannelValidity.VALID.value
            self.phone = phone
        if timezone is not None:
            self.timezone = timezone
        self.updated_at = now

        self.raise_(
            ContactDetailsUpdated(
                customer_id=str(self.customer_id),
                has_email=bool(self.email),
                has_phone=bool(self.phone),
                timezone=self.timezone,
                updated_at=now,
            )
        )

    def set_consent(self, channel, granted):
        channel = _channel(channel)
        if channel == Channel.EMAIL.value:
            self.email_consent = granted
        else:
            self.sms_consent = granted
        self._consent_changed(channel, granted)

    def subscribe(self, key):
        keys = self.subscription_keys
        if key in keys:
            return
        keys.append(key)
        self.subscriptions = json.dumps(keys)
        self._consent_changed(key, True)

    def unsubscribe(self, key):
        keys = self.subscription_keys
        if key not in keys:
            return
        keys.remove(key)
        self.subscriptions = json.dumps(keys)
        self._consent_changed(key, False)

    def _consent_changed(self, scope, granted):
        now = utc_now()
        self.updated_at = now
        self.raise_(
            ConsentChanged(
                customer_id=str(self.customer_id),
                scope=scope,
                granted=granted,
                changed_at=now,
            )
        )

    def mark_channel(self, channel, validity, reason=None):
        """Record bounce-driven validity. An Invalid address is never downgraded to Restricted."""
        channel = _channel(channel)
        current = self.validity_for(channel)
        if current == validity:
            return
        if current == ChannelValidity.INVALID and validity == ChannelValidity.RESTRICTED:
            return

        now = utc_now()
        if channel == Channel.EMAIL.value:
            self.email_status = validity.value
        else:
            self.sms_status = validity.value
        self.updated_at = now

        self.raise_(
            ChannelValidityChanged(
                customer_id=str(self.customer_id),
                channel=channel,
                validity=validity.value,
                reason=reason,
                changed_at=now,
            )
        )

    def set_quiet_hours(self, start, end):
        """Set a personal quiet-hours window overriding the default one."""
        if not start or not end:
            raise ValidationError({"quiet_hours": ["Both start and end times are required"]})
        validate_hhmm("start", start)
        validate_hhmm("end", end)

        now = utc_now()
        self.quiet_hours_start = start
        self.quiet_hours_end = end
        self.updated_at = now

        self.raise_(QuietHoursChanged(customer_id=str(self.customer_id), start=start, end=end, changed_at=now))

    def clear_quiet_hours(self):
        now = utc_now()
        self.quiet_hours_start = None
        self.quiet_hours_end = None
        self.updated_at = now

        self.raise_(QuietHoursChanged(customer_id=str(self.customer_id), changed_at=now))
