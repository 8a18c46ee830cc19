"""Channel adapter registry — pluggable transports for email and SMS.

Provides singleton access to channel adapters. Fake adapters are used by
default; provider-backed adapters can be installed with ``set_channel``.
"""

from waitlist.dispatch.job import Channel

# Statuses an adapter reports for one send
SENT = "sent"
SOFT_FAIL = "soft_fail"
HARD_FAIL = "hard_fail"

_channel_instances: dict[str, object] = {}


def get_channel(channel_type: str):
    """Return the configured channel adapter (singleton per channel type).

    Args:
        channel_type: One of Channel enum values ("email", "sms")
    """
    if channel_type not in _channel_instances:
        if channel_type == Channel.EMAIL.value:
            from waitlist.channel.fake_email import FakeEmailAdapter

            _channel_instances[channel_type] = FakeEmailAdapter()
        elif channel_type == Channel.SMS.value:
            from waitlist.channel.fake_sms import FakeSMSAdapter

            _channel_instances[channel_type] = FakeSMSAdapter()
        else:
            raise ValueError(f"Unknown channel type: {channel_type}")

    return _channel_instances[channel_type]


def set_channel(channel_type: str, adapter) -> None:
    """Install a specific adapter for a channel (provider integrations, tests)."""
    _channel_instances[channel_type] = adapter


def reset_channels():
    """Reset all channel singletons (useful for testing)."""
    _channel_instances.clear()
