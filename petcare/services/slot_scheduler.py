"""Slot scheduling: validation, overlap detection and slot mutations.

Every write that can change the set of active slots for a staff member and
day takes the ``staff_schedule_locks`` row for that pair first, so the
overlap check and the write it guards happen inside one transaction.
"""

import logging
from datetime import date, datetime

from sqlalchemy.orm import Session

from petcare.core.errors import ConflictError, InputValidationError, NotFoundError
from petcare.core.validation import (
    intervals_overlap,
    parse_slot_date,
    to_minutes,
    validate_clock_time,
    validate_duration,
    validate_object_id,
    validate_time_range,
)
from petcare.models.slot import Slot, SlotStatus, can_transition_slot
from petcare.stores import slot_store

logger = logging.getLogger(__name__)

SCHEDULE_FIELDS = ('shop_id', 'staff_id', 'slot_date', 'start_time', 'end_time')
UPDATABLE_FIELDS = SCHEDULE_FIELDS + ('duration_in_minutes', 'is_booked')


def find_overlapping_slot(
    db: Session,
    staff_id: str,
    slot_date: date,
    start_time: str,
    end_time: str,
    exclude_id: str | None = None,
) -> Slot | None:
    new_start = to_minutes(start_time)
    new_end = to_minutes(end_time)

    for slot in slot_store.find_active_for_staff_day(db, staff_id, slot_date, exclude_id=exclude_id):
        if intervals_overlap(new_start, new_end, to_minutes(slot.start_time), to_minutes(slot.end_time)):
            return slot

    return None


def _ensure_no_overlap(
    db: Session,
    staff_id: str,
    slot_date: date,
    start_time: str,
    end_time: str,
    exclude_id: str | None = None,
) -> None:
    slot_store.lock_staff_day(db, staff_id, slot_date)
    conflicting = find_overlapping_slot(db, staff_id, slot_date, start_time, end_time, exclude_id=exclude_id)
    if conflicting is not None:
        db.rollback()
        raise ConflictError(
            f'Slot overlaps with an existing active slot for this staff '
            f'({conflicting.start_time}-{conflicting.end_time}).'
        )


def _transition(slot: Slot, target: SlotStatus) -> None:
    if not can_transition_slot(slot.status, target):
        raise ConflictError(f'Slot cannot move from {slot.status} to {target.value}.')
    slot.status = target.value


def _get_slot_or_404(db: Session, slot_id: str) -> Slot:
    slot = slot_store.find_by_id(db, validate_object_id(slot_id, 'slot_id'))
    if slot is None:
        raise NotFoundError('Slot not found.')
    return slot


def create_slot(
    db: Session,
    *,
    shop_id: str,
    staff_id: str,
    slot_date: str | date,
    start_time: str,
    end_time: str,
    duration_in_minutes: int,
) -> Slot:
    shop_id = validate_object_id(shop_id, 'shop_id')
    staff_id = validate_object_id(staff_id, 'staff_id')
    parsed_date = parse_slot_date(slot_date)
    validate_clock_time(start_time, 'start_time')
    validate_clock_time(end_time, 'end_time')
    validate_time_range(start_time, end_time)
    validate_duration(duration_in_minutes)

    _ensure_no_overlap(db, staff_id, parsed_date, start_time, end_time)

    slot = Slot(
        shop_id=shop_id,
        staff_id=staff_id,
        slot_date=parsed_date,
        start_time=start_time,
        end_time=end_time,
        duration_in_minutes=duration_in_minutes,
        is_booked=False,
        status=SlotStatus.ACTIVE.value,
    )
    db.add(slot)
    db.commit()
    db.refresh(slot)

    logger.info('Created slot %s for staff %s on %s %s-%s', slot.id, staff_id, parsed_date, start_time, end_time)
    return slot


def _normalize_changes(changes: dict) -> dict:
    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        field = sorted(unknown)[0]
        raise InputValidationError(field, f'{field} cannot be updated.')

    normalized = {}
    for field, value in changes.items():
        if field in ('shop_id', 'staff_id'):
            normalized[field] = validate_object_id(value, field)
        elif field == 'slot_date':
            normalized[field] = parse_slot_date(value)
        elif field in ('start_time', 'end_time'):
            normalized[field] = validate_clock_time(value, field)
        elif field == 'duration_in_minutes':
            normalized[field] = validate_duration(value)
        elif field == 'is_booked':
            if not isinstance(value, bool):
                raise InputValidationError(field, 'is_booked must be true or false.')
            normalized[field] = value
    return normalized


def update_slot(db: Session, slot_id: str, changes: dict) -> Slot:
    slot_id = validate_object_id(slot_id, 'slot_id')
    normalized = _normalize_changes(changes)

    slot = _get_slot_or_404(db, slot_id)

    merged = {field: normalized.get(field, getattr(slot, field)) for field in SCHEDULE_FIELDS}
    if 'start_time' in normalized or 'end_time' in normalized:
        validate_time_range(merged['start_time'], merged['end_time'])

    schedule_changed = any(
        field in normalized and normalized[field] != getattr(slot, field)
        for field in SCHEDULE_FIELDS
    )
    if schedule_changed and slot.is_active:
        _ensure_no_overlap(
            db,
            merged['staff_id'],
            merged['slot_date'],
            merged['start_time'],
            merged['end_time'],
            exclude_id=slot.id,
        )

    for field, value in normalized.items():
        setattr(slot, field, value)

    db.commit()
    db.refresh(slot)

    logger.info('Updated slot %s (%s)', slot.id, ', '.join(sorted(normalized)) or 'no changes')
    return slot


def cancel_slot(db: Session, slot_id: str) -> Slot:
    slot = _get_slot_or_404(db, slot_id)

    if slot.is_cancelled:
        return slot

    _transition(slot, SlotStatus.CANCELLED)
    db.commit()
    db.refresh(slot)

    logger.info('Cancelled slot %s', slot.id)
    return slot


def delete_slot(db: Session, slot_id: str) -> Slot:
    slot = _get_slot_or_404(db, slot_id)

    _transition(slot, SlotStatus.DELETED)
    slot.deleted_at = datetime.now()
    db.commit()
    db.refresh(slot)

    logger.info('Soft-deleted slot %s', slot.id)
    return slot


def get_slot(db: Session, slot_id: str) -> Slot:
    return _get_slot_or_404(db, slot_id)


def list_shop_slots(db: Session, shop_id: str) -> list[Slot]:
    return slot_store.find_by_shop(db, validate_object_id(shop_id, 'shop_id'))


def list_shop_slots_in_range(db: Session, shop_id: str, start_date: str | date, end_date: str | date) -> list[Slot]:
    shop_id = validate_object_id(shop_id, 'shop_id')
    parsed_start = parse_slot_date(start_date, 'start_date')
    parsed_end = parse_slot_date(end_date, 'end_date')
    if parsed_end < parsed_start:
        raise InputValidationError('end_date', 'end_date must not be before start_date.')
    return slot_store.find_by_shop_and_date_range(db, shop_id, parsed_start, parsed_end)


def list_slots_on_date(db: Session, slot_date: str | date) -> list[Slot]:
    return slot_store.find_by_date(db, parse_slot_date(slot_date))


def list_booked_shop_slots(db: Session, shop_id: str) -> list[Slot]:
    return slot_store.find_booked_by_shop(db, validate_object_id(shop_id, 'shop_id'))


def list_available_shop_slots(db: Session, shop_id: str, slot_date: str | date) -> list[Slot]:
    shop_id = validate_object_id(shop_id, 'shop_id')
    return slot_store.find_available_by_shop_and_date(db, shop_id, parse_slot_date(slot_date))
