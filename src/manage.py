"""Waitlist engine management CLI.

Usage:
    python src/manage.py setup-db                 # Create all tables
    python src/manage.py drop-db                  # Drop all tables
    python src/manage.py run-due-jobs             # Run scheduled work that is due now
    python src/manage.py run-due-jobs --as-of 2026-03-10T09:00:00Z
"""

import argparse
import sys
from datetime import datetime


def setup_database():
    from waitlist.domain import waitlist
    from waitlist.utils.db import setup_db

    print("Initializing waitlist domain...")
    waitlist.init()
    print("Creating waitlist database schema...")
    setup_db(waitlist)
    print("Done.")


def drop_database():
    from waitlist.domain import waitlist
    from waitlist.utils.db import drop_db

    print("Initializing waitlist domain...")
    waitlist.init()
    print("Dropping waitlist database schema...")
    drop_db(waitlist)
    print("Done.")


def run_due_jobs(as_of=None):
    from waitlist.domain import waitlist
    from waitlist.gateway import run_due_jobs as run

    waitlist.init()
    with waitlist.domain_context():
        summary = run(as_of=as_of)
    print(", ".join(f"{name}: {count}" for name, count in summary.items()))


def main():
    parser = argparse.ArgumentParser(description="Waitlist engine management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    jobs_parser = subparsers.add_parser("run-due-jobs", help="Run scheduled jobs that are due")
    jobs_parser.add_argument(
        "--as-of",
        type=datetime.fromisoformat,
        default=None,
        help="ISO-8601 instant to treat as now (default: current time)",
    )

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "run-due-jobs":
        run_due_jobs(args.as_of)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
