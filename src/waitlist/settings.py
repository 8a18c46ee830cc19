"""Engine tunables — hold windows, quiet hours, retry schedule, priority weights.

Infrastructure (databases, brokers, event store) lives in ``domain.toml``;
the knobs below shape engine behaviour and are read from ``WAITLIST_*``
environment variables.
"""

from datetime import timedelta
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MIN_HOLD_MINUTES = 30
MAX_HOLD_MINUTES = 360


class EngineSettings(BaseSettings):
    # Offer hold window and the link customers follow to respond
    offer_link_base: str = "https://book.example.com/offers"
    hold_minutes: int = Field(default=120, ge=MIN_HOLD_MINUTES, le=MAX_HOLD_MINUTES)

    # Quiet hours, in the recipient's local time
    quiet_hours_start: str = Field(default="21:00", pattern=r"^\d{2}:\d{2}$")
    quiet_hours_end: str = Field(default="08:00", pattern=r"^\d{2}:\d{2}$")
    default_timezone: str = "Europe/London"

    # Soft-failure retry schedule (1 / 5 / 20 minutes)
    retry_delays_seconds: list[int] = [60, 300, 1200]

    # Priority = visits * visit_weight + spend * spend_weight
    visit_weight: float = 10.0
    spend_weight: float = 0.1

    # Repeated soft bounces within the window become a suppression
    soft_bounce_threshold: int = 3
    soft_bounce_window_days: int = 30

    # Scheduled-work runner
    scheduled_job_max_attempts: int = 5
    scheduled_job_retry_seconds: int = 60
    poll_interval_seconds: int = 30

    model_config = SettingsConfigDict(
        env_prefix="WAITLIST_",
        extra="ignore",
    )

    @field_validator("retry_delays_seconds")
    @classmethod
    def _delays_positive(cls, value: list[int]) -> list[int]:
        if not value or any(delay <= 0 for delay in value):
            raise ValueError("retry delays must be a non-empty list of positive seconds")
        return value

    @model_validator(mode="after")
    def _valid_quiet_hours(self):
        for label, value in (("start", self.quiet_hours_start), ("end", self.quiet_hours_end)):
            hours, minutes = (int(part) for part in value.split(":"))
            if hours > 23 or minutes > 59:
                raise ValueError(f"quiet hours {label} must be a valid time, got {value}")
        return self

    @property
    def max_attempts(self) -> int:
        """First attempt plus one retry per configured delay."""
        return len(self.retry_delays_seconds) + 1

    def retry_delay(self, attempt: int) -> timedelta:
        """Backoff before the retry that follows attempt number ``attempt``."""
        index = min(max(attempt, 1), len(self.retry_delays_seconds)) - 1
        return timedelta(seconds=self.retry_delays_seconds[index])

    def bounded_hold(self, minutes: int | None) -> timedelta:
        """Clamp a requested hold to the allowed window."""
        if minutes is None:
            minutes = self.hold_minutes
        minutes = max(MIN_HOLD_MINUTES, min(MAX_HOLD_MINUTES, int(minutes)))
        return timedelta(minutes=minutes)


@lru_cache
def get_settings() -> EngineSettings:
    return EngineSettings()


def reset_settings() -> None:
    """Drop the cached settings so the next lookup re-reads the environment."""
    get_settings.cache_clear()
