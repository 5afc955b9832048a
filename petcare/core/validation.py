import re
import secrets
from datetime import date

from petcare.core.errors import InputValidationError

OBJECT_ID_PATTERN = re.compile(r'[0-9a-fA-F]{24}')
DATE_PATTERN = re.compile(r'\d{4}-\d{2}-\d{2}')
CLOCK_TIME_PATTERN = re.compile(r'([01]\d|2[0-3]):[0-5]\d')


def new_object_id() -> str:
    return secrets.token_hex(12)


def is_object_id(value: str | None) -> bool:
    return bool(value) and OBJECT_ID_PATTERN.fullmatch(value) is not None


def validate_object_id(value: str | None, field: str) -> str:
    if not is_object_id(value):
        raise InputValidationError(field, f'Invalid {field} (24 hexadecimal characters required).')
    return value.lower()


def parse_slot_date(value: str | date | None, field: str = 'slot_date') -> date:
    if isinstance(value, date):
        return value

    if not value or not DATE_PATTERN.fullmatch(value):
        raise InputValidationError(field, f'Invalid {field} format (YYYY-MM-DD required).')

    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise InputValidationError(field, f'Invalid {field}: {value} is not a calendar date.') from exc


def validate_clock_time(value: str | None, field: str) -> str:
    if not value or not CLOCK_TIME_PATTERN.fullmatch(value):
        raise InputValidationError(field, f'Invalid {field} format (HH:MM required).')
    return value


def validate_duration(value: int | None, field: str = 'duration_in_minutes') -> int:
    if value is None or isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InputValidationError(field, f'Invalid {field} (positive number of minutes required).')
    return value


def to_minutes(clock_time: str) -> int:
    hours, minutes = clock_time.split(':')
    return int(hours) * 60 + int(minutes)


def validate_time_range(start_time: str, end_time: str) -> None:
    if to_minutes(end_time) <= to_minutes(start_time):
        raise InputValidationError('end_time', 'end_time must be later than start_time.')


def intervals_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open interval test: [start_a, end_a) and [start_b, end_b) share an instant."""
    return start_a < end_b and start_b < end_a
