"""Escrow administration CLI.

Usage:
    escrow-admin sweep              # Release escrow for orders past their grace period
    escrow-admin overview           # Summarise funds still held in escrow
    escrow-admin setup-db           # Create tables on SQL providers
    escrow-admin drop-db            # Drop tables on SQL providers

The sweep is meant to be run periodically from cron or a job scheduler.
"""

import argparse
import sys

import structlog

from escrow.utils.logging import configure_logging

logger = structlog.get_logger(__name__)


def _init_domain():
    from escrow.domain import escrow

    escrow.init()
    return escrow


def sweep(batch_size=None) -> int:
    from escrow.order.auto_release import run_auto_release_sweep

    domain = _init_domain()
    with domain.domain_context():
        released = run_auto_release_sweep(batch_size=batch_size)
    print(f"Released escrow for {released} order(s).")
    return released


def overview() -> dict:
    from escrow.order.queries import escrow_overview

    domain = _init_domain()
    with domain.domain_context():
        summary = escrow_overview()

    print(f"As of {summary['as_of']:%Y-%m-%d %H:%M} UTC")
    print(f"  Orders holding funds: {summary['held_count']}")
    print(f"  Total held:           {summary['held_total']:.2f}")
    print(f"  Due for auto-release: {summary['eligible_count']}")
    for row in summary["orders"]:
        due = row["release_due_at"].strftime("%Y-%m-%d") if row["release_due_at"] else "-"
        print(f"    {row['order_number']:<20} {row['status']:<11} {row['currency']} {row['amount']:>10.2f}  due {due}")
    return summary


def manage_schema(action: str) -> None:
    from escrow.utils.db import drop_db, setup_db

    domain = _init_domain()
    touched = setup_db(domain) if action == "setup-db" else drop_db(domain)
    if not touched:
        print("No SQL providers configured; nothing to do.")
    for name in touched:
        print(f"  {action}: provider '{name}' done.")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Escrow engine administration")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sweep_parser = subparsers.add_parser("sweep", help="Run the auto-release sweeper once")
    sweep_parser.add_argument("--batch-size", type=int, default=None, help="Orders loaded per page")

    subparsers.add_parser("overview", help="Summarise escrow holdings")
    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    args = parser.parse_args(argv)
    configure_logging()

    try:
        if args.command == "sweep":
            sweep(batch_size=args.batch_size)
        elif args.command == "overview":
            overview()
        else:
            manage_schema(args.command)
    except Exception as exc:
        logger.error("Command failed", command=args.command, error=str(exc))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
