"""Deliver pending appointment notifications from the outbox.

Usage:
    python -m petcare.relay_outbox [--limit N]

Safe to run repeatedly (e.g. from cron); events that failed in the request
cycle are retried until OUTBOX_MAX_ATTEMPTS.
"""
import argparse
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from petcare.core import config
from petcare.database import SessionLocal
from petcare.services.notifications import DatabaseNotificationSink, relay_pending_notifications


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Relay pending appointment notifications.")
    parser.add_argument("--limit", type=int, default=config.OUTBOX_BATCH_SIZE)
    args = parser.parse_args(argv)

    logging.basicConfig(level=config.LOG_LEVEL)

    db = SessionLocal()
    try:
        delivered = relay_pending_notifications(db, DatabaseNotificationSink(), limit=args.limit)
    except SQLAlchemyError as exc:
        print("Outbox relay failed:", exc, file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()

    print(f"Delivered {delivered} notification(s).")


if __name__ == "__main__":
    main()
