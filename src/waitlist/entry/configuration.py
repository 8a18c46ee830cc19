"""WaitlistSettings aggregate + ConfigureWaitlist — per-service waiting-list switches.

A service without settings has its waiting list enabled and uses the
default hold window.
"""

from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Boolean, DateTime, Identifier, Integer
from protean.utils.globals import current_domain

from waitlist.clock import utc_now
from waitlist.domain import waitlist
from waitlist.entry.events import WaitlistConfigured
from waitlist.settings import MAX_HOLD_MINUTES, MIN_HOLD_MINUTES


def settings_key(business_id, service_id) -> str:
    return f"{business_id}:{service_id}"


@waitlist.aggregate
class WaitlistSettings:
    settings_key: Identifier(identifier=True)
    business_id: Identifier(required=True)
    service_id: Identifier(required=True)
    enabled: Boolean(default=True)
    hold_minutes: Integer(min_value=MIN_HOLD_MINUTES, max_value=MAX_HOLD_MINUTES)
    updated_at: DateTime()

    @classmethod
    def create(cls, business_id, service_id):
        return cls(
            settings_key=settings_key(business_id, service_id),
            business_id=business_id,
            service_id=service_id,
            enabled=True,
            updated_at=utc_now(),
        )

    def configure(self, enabled=None, hold_minutes=None):
        if enabled is None and hold_minutes is None:
            raise ValidationError({"settings": ["Nothing to configure"]})
        if hold_minutes is not None and not (MIN_HOLD_MINUTES <= hold_minutes <= MAX_HOLD_MINUTES):
            raise ValidationError(
                {"hold_minutes": [f"Hold must be between {MIN_HOLD_MINUTES} and {MAX_HOLD_MINUTES} minutes"]}
            )

        now = utc_now()
        if enabled is not None:
            self.enabled = enabled
        if hold_minutes is not None:
            self.hold_minutes = hold_minutes
        self.updated_at = now

        self.raise_(
            WaitlistConfigured(
                business_id=str(self.business_id),
                service_id=str(self.service_id),
                enabled=self.enabled,
                hold_minutes=self.hold_minutes,
                configured_at=now,
            )
        )


def settings_for(business_id, service_id):
    """Stored settings for a service, or ``None`` when it uses the defaults."""
    try:
        return current_domain.repository_for(WaitlistSettings).get(settings_key(business_id, service_id))
    except ObjectNotFoundError:
        return None


def is_enabled(business_id, service_id) -> bool:
    config = settings_for(business_id, service_id)
    return config is None or bool(config.enabled)


@waitlist.command(part_of="WaitlistSettings")
class ConfigureWaitlist:
    business_id: Identifier(required=True)
    service_id: Identifier(required=True)
    enabled: Boolean()
    hold_minutes: Integer()


@waitlist.command_handler(part_of=WaitlistSettings)
class ConfigureWaitlistHandler:
    @handle(ConfigureWaitlist)
    def configure(self, command: ConfigureWaitlist):
        config = settings_for(command.business_id, command.service_id)
        if config is None:
            config = WaitlistSettings.create(command.business_id, command.service_id)
        config.configure(enabled=command.enabled, hold_minutes=command.hold_minutes)
        current_domain.repository_for(WaitlistSettings).add(config)
        return config.settings_key
