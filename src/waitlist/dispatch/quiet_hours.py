"""Quiet-hours windows in the recipient's local time.

A window may wrap midnight (21:00–08:00). The start is inside the window,
the end is not, so a job deferred at 22:00 resumes at exactly 08:00 local.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

logger = structlog.get_logger(__name__)


def parse_hhmm(value: str) -> time:
    hours, minutes = (int(part) for part in value.split(":"))
    return time(hour=hours, minute=minutes)


def resolve_timezone(name: str | None, fallback: str) -> ZoneInfo:
    try:
        return ZoneInfo(name or fallback)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone, using default", timezone=name, default=fallback)
        return ZoneInfo(fallback)


@dataclass(frozen=True)
class QuietWindow:
    start: time
    end: time
    tz: ZoneInfo

    @classmethod
    def for_contact(cls, contact, settings) -> "QuietWindow":
        """The contact's own window if set, otherwise the configured default."""
        start = settings.quiet_hours_start
        end = settings.quiet_hours_end
        timezone = None
        if contact is not None:
            timezone = contact.timezone
            if contact.quiet_hours_start and contact.quiet_hours_end:
                start, end = contact.quiet_hours_start, contact.quiet_hours_end
        return cls(
            start=parse_hhmm(start),
            end=parse_hhmm(end),
            tz=resolve_timezone(timezone, settings.default_timezone),
        )

    def contains(self, moment: datetime) -> bool:
        local = moment.astimezone(self.tz).time()
        if self.start == self.end:
            return False
        if self.start < self.end:
            return self.start <= local < self.end
        return local >= self.start or local < self.end

    def next_end(self, moment: datetime) -> datetime:
        """First instant after ``moment`` at which the window closes, in UTC."""
        local = moment.astimezone(self.tz)
        candidate = datetime.combine(local.date(), self.end, tzinfo=self.tz)
        if candidate <= local:
            candidate = datetime.combine(local.date() + timedelta(days=1), self.end, tzinfo=self.tz)
        return candidate.astimezone(UTC)
