"""Per-day booking references such as ``FC01052024-07``.

The sequence is the number of appointments already created that day plus
one. ``appointments.booking_number`` is unique, so two writers that read the
same count cannot both commit; the loser retries with a fresh count
(see ``appointment_lifecycle.create_appointment``).
"""

from datetime import datetime, time

from sqlalchemy.orm import Session

from petcare.core import config
from petcare.stores import appointment_store


def day_bounds(moment: datetime) -> tuple[datetime, datetime]:
    day = moment.date()
    return datetime.combine(day, time.min), datetime.combine(day, time.max)


def format_booking_number(moment: datetime, sequence: int, prefix: str | None = None) -> str:
    return f'{prefix or config.BOOKING_NUMBER_PREFIX}{moment:%d%m%Y}-{sequence:02d}'


def next_booking_number(db: Session, created_at: datetime) -> str:
    start_of_day, end_of_day = day_bounds(created_at)
    existing = appointment_store.count_created_between(db, start_of_day, end_of_day)
    return format_booking_number(created_at, existing + 1)
