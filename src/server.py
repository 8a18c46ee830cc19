"""Protean Engine runner for the waitlist domain.

Starts the Engine that processes events asynchronously in production:
- OutboxProcessor: polls the outbox table, publishes events to Redis Streams
- StreamSubscriptions: reads Redis Streams, invokes projectors and event handlers

Scheduled work (offer expiry, deferred and retried notifications) is run
separately by ``src/worker.py``.

Usage:
    PROTEAN_ENV=production python src/server.py
"""

import argparse
import asyncio

from protean.server.engine import Engine


def _get_domain():
    """Import and initialize the waitlist domain."""
    from waitlist.domain import waitlist

    waitlist.init()
    return waitlist


async def run(test_mode=False):
    engine = Engine(_get_domain(), test_mode=test_mode)
    await asyncio.gather(engine.run())


def main():
    parser = argparse.ArgumentParser(description="Waitlist engine runner")
    parser.add_argument(
        "--test-mode",
        action="store_true",
        help="Process pending messages once and exit",
    )
    args = parser.parse_args()

    asyncio.run(run(test_mode=args.test_mode))


if __name__ == "__main__":
    main()
