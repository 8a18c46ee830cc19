"""Single source of the current time for time-boxed engine behaviour."""

from datetime import UTC, datetime, timedelta

_frozen_at: datetime | None = None


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize to an aware UTC datetime; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def utc_now() -> datetime:
    if _frozen_at is not None:
        return _frozen_at
    return datetime.now(UTC)


def freeze(at: datetime) -> None:
    """Pin the clock (tests, replays)."""
    global _frozen_at
    _frozen_at = as_utc(at)


def advance(delta: timedelta) -> datetime:
    """Move a frozen clock forward."""
    global _frozen_at
    if _frozen_at is None:
        raise RuntimeError("Clock is not frozen")
    _frozen_at = _frozen_at + delta
    return _frozen_at


def unfreeze() -> None:
    global _frozen_at
    _frozen_at = None
