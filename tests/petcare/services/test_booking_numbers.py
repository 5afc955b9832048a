import re
from datetime import datetime

from conftest import PET_ID, SERVICE_ID, SHOP_ID, STAFF_ONE, USER_ID
from petcare.models.appointment import Appointment
from petcare.services.booking_numbers import (
    day_bounds,
    format_booking_number,
    next_booking_number,
)

BOOKING_NUMBER_PATTERN = re.compile(r'[A-Z]+\d{8}-\d{2,}')


def _store_appointment(db, booking_number: str, created_at: datetime) -> None:
    db.add(
        Appointment(
            booking_number=booking_number,
            user_id=USER_ID,
            pet_id=PET_ID,
            shop_id=SHOP_ID,
            staff_id=STAFF_ONE,
            service_id=SERVICE_ID,
            slot_date=created_at.date(),
            slot_start_time='09:00',
            slot_end_time='09:30',
            appointment_status='pending',
            created_at=created_at,
            updated_at=created_at,
        )
    )
    db.commit()


def test_format_booking_number_pads_sequence() -> None:
    assert format_booking_number(datetime(2024, 5, 1, 10, 30), 7) == 'FC01052024-07'
    assert format_booking_number(datetime(2024, 12, 31, 23, 59), 42) == 'FC31122024-42'


def test_format_booking_number_keeps_sequences_past_ninety_nine() -> None:
    number = format_booking_number(datetime(2024, 5, 1), 123)

    assert number == 'FC01052024-123'
    assert BOOKING_NUMBER_PATTERN.fullmatch(number)


def test_day_bounds_cover_the_whole_calendar_day() -> None:
    start, end = day_bounds(datetime(2024, 5, 1, 13, 45))

    assert start == datetime(2024, 5, 1, 0, 0)
    assert end.date() == start.date()
    assert (end.hour, end.minute, end.second) == (23, 59, 59)


def test_first_booking_of_the_day_is_sequence_one(db) -> None:
    assert next_booking_number(db, datetime(2024, 5, 1, 8, 0)) == 'FC01052024-01'


def test_sequence_counts_only_appointments_created_that_day(db) -> None:
    _store_appointment(db, 'FC30042024-01', datetime(2024, 4, 30, 23, 59, 59))
    _store_appointment(db, 'FC01052024-01', datetime(2024, 5, 1, 0, 0))
    _store_appointment(db, 'FC01052024-02', datetime(2024, 5, 1, 23, 59, 59))
    _store_appointment(db, 'FC02052024-01', datetime(2024, 5, 2, 0, 0))

    assert next_booking_number(db, datetime(2024, 5, 1, 12, 0)) == 'FC01052024-03'
    assert next_booking_number(db, datetime(2024, 5, 2, 12, 0)) == 'FC02052024-02'
    assert next_booking_number(db, datetime(2024, 5, 3, 12, 0)) == 'FC03052024-01'
