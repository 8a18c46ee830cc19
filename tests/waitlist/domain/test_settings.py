"""Tests for engine settings."""

from datetime import timedelta

import pytest
from pydantic import ValidationError
from waitlist.settings import EngineSettings, get_settings, reset_settings


class TestDefaults:
    def test_defaults(self):
        settings = EngineSettings()
        assert settings.hold_minutes == 120
        assert settings.quiet_hours_start == "21:00"
        assert settings.quiet_hours_end == "08:00"
        assert settings.retry_delays_seconds == [60, 300, 1200]
        assert settings.visit_weight == 10.0
        assert settings.spend_weight == 0.1

    def test_four_attempts_in_total(self):
        assert EngineSettings().max_attempts == 4

    def test_retry_delays_follow_attempts(self):
        settings = EngineSettings()
        assert settings.retry_delay(1) == timedelta(minutes=1)
        assert settings.retry_delay(2) == timedelta(minutes=5)
        assert settings.retry_delay(3) == timedelta(minutes=20)
        assert settings.retry_delay(9) == timedelta(minutes=20)


class TestHoldBounds:
    def test_default_hold(self):
        assert EngineSettings().bounded_hold(None) == timedelta(hours=2)

    def test_hold_is_clamped(self):
        settings = EngineSettings()
        assert settings.bounded_hold(5) == timedelta(minutes=30)
        assert settings.bounded_hold(1000) == timedelta(hours=6)

    def test_configured_hold_outside_bounds_rejected(self):
        with pytest.raises(ValidationError):
            EngineSettings(hold_minutes=10)


class TestEnvironment:
    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("WAITLIST_HOLD_MINUTES", "45")
        monkeypatch.setenv("WAITLIST_QUIET_HOURS_START", "22:00")
        reset_settings()
        settings = get_settings()
        assert settings.hold_minutes == 45
        assert settings.quiet_hours_start == "22:00"

    def test_settings_are_cached(self):
        assert get_settings() is get_settings()


class TestValidation:
    def test_invalid_quiet_hours(self):
        with pytest.raises(ValidationError):
            EngineSettings(quiet_hours_start="25:00")

    def test_retry_delays_must_be_positive(self):
        with pytest.raises(ValidationError):
            EngineSettings(retry_delays_seconds=[60, 0])
