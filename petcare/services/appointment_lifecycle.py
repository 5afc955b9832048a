import logging
from datetime import datetime, time

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from petcare.core import config
from petcare.core.errors import InputValidationError, InvalidTransitionError, NotFoundError, UnexpectedError
from petcare.core.validation import new_object_id, parse_slot_date, validate_object_id
from petcare.models.appointment import Appointment, AppointmentStatus, can_transition_appointment
from petcare.services import notifications
from petcare.services.booking_numbers import next_booking_number
from petcare.stores import appointment_store, slot_store

logger = logging.getLogger(__name__)


def parse_status(value: str | AppointmentStatus | None) -> AppointmentStatus:
    if isinstance(value, AppointmentStatus):
        return value

    normalized = (value or '').strip().lower()
    try:
        return AppointmentStatus(normalized)
    except ValueError as exc:
        raise InputValidationError('appointment_status', f'Invalid appointment status: {value}.') from exc


def _validate_text(value: str | None, field: str) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > config.MAX_APPOINTMENT_NOTES_LENGTH:
        raise InputValidationError(field, f'{field} must be {config.MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

    return normalized


def create_appointment(
    db: Session,
    *,
    user_id: str,
    pet_id: str,
    service_id: str,
    slot_id: str,
    payment_details: dict | None = None,
    notes: str | None = None,
) -> Appointment:
    """Book the caller's chosen slot.

    The slot has to exist, but its availability is not checked again here:
    the caller picked it from an availability query. The appointment row,
    the slot's ``is_booked`` flag and both notification requests are
    committed together.
    """
    user_id = validate_object_id(user_id, 'user_id')
    pet_id = validate_object_id(pet_id, 'pet_id')
    service_id = validate_object_id(service_id, 'service_id')
    slot_id = validate_object_id(slot_id, 'slot_id')
    notes = _validate_text(notes, 'notes')

    for attempt in range(1, config.BOOKING_NUMBER_MAX_ATTEMPTS + 1):
        slot = slot_store.find_by_id(db, slot_id)
        if slot is None:
            raise NotFoundError('Slot not found.')

        created_at = datetime.now()
        appointment = Appointment(
            id=new_object_id(),
            booking_number=next_booking_number(db, created_at),
            user_id=user_id,
            pet_id=pet_id,
            shop_id=slot.shop_id,
            staff_id=slot.staff_id,
            service_id=service_id,
            slot_id=slot.id,
            slot_date=slot.slot_date,
            slot_start_time=slot.start_time,
            slot_end_time=slot.end_time,
            payment_details=payment_details,
            appointment_status=AppointmentStatus.PENDING.value,
            notes=notes,
            created_at=created_at,
            updated_at=created_at,
        )
        db.add(appointment)
        slot.is_booked = True
        notifications.enqueue_appointment_created(db, appointment)

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning(
                'Booking number %s already taken (attempt %s of %s)',
                appointment.booking_number,
                attempt,
                config.BOOKING_NUMBER_MAX_ATTEMPTS,
            )
            continue

        db.refresh(appointment)
        logger.info('Created appointment %s with booking number %s', appointment.id, appointment.booking_number)
        return appointment

    raise UnexpectedError('Could not assign a unique booking number. Please try again.')


def update_status(
    db: Session,
    appointment_id: str,
    new_status: str | AppointmentStatus,
    reason: str | None = None,
) -> Appointment:
    appointment_id = validate_object_id(appointment_id, 'appointment_id')
    target = parse_status(new_status)
    reason = _validate_text(reason, 'reason')
    if reason is not None and target is not AppointmentStatus.CANCELLED:
        raise InputValidationError('reason', 'A reason can only be given when cancelling.')

    appointment = appointment_store.find_by_id(db, appointment_id)
    if appointment is None:
        raise NotFoundError('Appointment not found.')

    current = AppointmentStatus(appointment.appointment_status)
    if not can_transition_appointment(current, target):
        raise InvalidTransitionError(
            f'Cannot change appointment status from {current.value} to {target.value}.'
        )

    appointment.appointment_status = target.value
    if target is AppointmentStatus.CANCELLED:
        appointment.cancellation_reason = reason
        slot = slot_store.find_by_id(db, appointment.slot_id) if appointment.slot_id else None
        if slot is not None:
            slot.is_booked = False

    notifications.enqueue_status_changed(db, appointment, target.value)
    db.commit()
    db.refresh(appointment)

    logger.info('Appointment %s moved from %s to %s', appointment.id, current.value, target.value)
    return appointment


def cancel_appointment(db: Session, appointment_id: str, reason: str | None) -> Appointment:
    if _validate_text(reason, 'reason') is None:
        raise InputValidationError('reason', 'Cancellation reason is required.')
    return update_status(db, appointment_id, AppointmentStatus.CANCELLED, reason=reason)


def get_appointment(db: Session, appointment_id: str) -> Appointment:
    appointment = appointment_store.find_by_id(db, validate_object_id(appointment_id, 'appointment_id'))
    if appointment is None:
        raise NotFoundError('Appointment not found.')
    return appointment


def _page_bounds(page: int, limit: int) -> tuple[int, int]:
    if page < 1:
        raise InputValidationError('page', 'page must be 1 or greater.')
    if limit < 1 or limit > config.MAX_PAGE_SIZE:
        raise InputValidationError('limit', f'limit must be between 1 and {config.MAX_PAGE_SIZE}.')
    return page, limit


def list_user_appointments(
    db: Session,
    user_id: str,
    page: int = 1,
    limit: int = config.DEFAULT_PAGE_SIZE,
    status: str | None = None,
) -> tuple[list[Appointment], int]:
    user_id = validate_object_id(user_id, 'user_id')
    page, limit = _page_bounds(page, limit)
    status_value = parse_status(status).value if status else None
    return appointment_store.find_by_user(db, user_id, page, limit, status=status_value)


def list_shop_appointments(
    db: Session,
    shop_id: str,
    page: int = 1,
    limit: int = config.DEFAULT_PAGE_SIZE,
    status: str | None = None,
    date: str | None = None,
) -> tuple[list[Appointment], int]:
    shop_id = validate_object_id(shop_id, 'shop_id')
    page, limit = _page_bounds(page, limit)
    status_value = parse_status(status).value if status else None
    slot_date = parse_slot_date(date, field='date') if date else None
    return appointment_store.find_by_shop(db, shop_id, page, limit, status=status_value, slot_date=slot_date)


def list_staff_appointments(
    db: Session,
    staff_id: str,
    page: int = 1,
    limit: int = config.DEFAULT_PAGE_SIZE,
    date: str | None = None,
) -> tuple[list[Appointment], int]:
    staff_id = validate_object_id(staff_id, 'staff_id')
    page, limit = _page_bounds(page, limit)
    slot_date = parse_slot_date(date, field='date') if date else None
    return appointment_store.find_by_staff(db, staff_id, page, limit, slot_date=slot_date)


def count_shop_appointments(db: Session, shop_id: str, start_date: str, end_date: str) -> int:
    """Appointments created for a shop between two calendar days, both included."""
    shop_id = validate_object_id(shop_id, 'shop_id')
    start = parse_slot_date(start_date, field='start_date')
    end = parse_slot_date(end_date, field='end_date')
    if end < start:
        raise InputValidationError('end_date', 'end_date must not be before start_date.')

    return appointment_store.count_for_shop_between(
        db,
        shop_id,
        datetime.combine(start, time.min),
        datetime.combine(end, time.max),
    )
