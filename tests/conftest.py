import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Select the config overlay before the domain is initialized."""
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(autouse=True)
def reset_collaborators():
    """Fresh fakes, settings and clock for every test."""
    from waitlist import clock
    from waitlist.booking import reset_booking_sink
    from waitlist.channel import reset_channels
    from waitlist.directory import reset_directory
    from waitlist.settings import reset_settings

    reset_channels()
    reset_directory()
    reset_booking_sink()
    reset_settings()

    yield

    clock.unfreeze()
    reset_channels()
    reset_directory()
    reset_booking_sink()
    reset_settings()
