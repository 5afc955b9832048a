from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from petcare.auth.dependencies import Identity, get_current_identity, require_role
from petcare.core.errors import UnexpectedError
from petcare.routes.common import DATABASE_UNAVAILABLE, ApiResponse, ensure_database_ready, envelope, get_db
from petcare.services import slot_scheduler

router = APIRouter(tags=['slots'])


class CreateSlotRequest(BaseModel):
    staff_id: str
    slot_date: str
    start_time: str
    end_time: str
    duration_in_minutes: int

    @field_validator('staff_id', 'slot_date', 'start_time', 'end_time', mode='before')
    @classmethod
    def strip_text(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value


class UpdateSlotRequest(BaseModel):
    staff_id: str | None = None
    slot_date: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    duration_in_minutes: int | None = None
    is_booked: bool | None = None

    @field_validator('staff_id', 'slot_date', 'start_time', 'end_time', mode='before')
    @classmethod
    def strip_text(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value


class SlotResponse(BaseModel):
    id: str
    shop_id: str
    staff_id: str
    slot_date: date
    start_time: str
    end_time: str
    duration_in_minutes: int
    is_booked: bool
    is_active: bool
    is_cancelled: bool
    deleted_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


def _slot(slot) -> SlotResponse:
    return SlotResponse.model_validate(slot)


def _slots(slots) -> list[SlotResponse]:
    return [SlotResponse.model_validate(slot) for slot in slots]


def _database_unavailable(db: Session) -> UnexpectedError:
    db.rollback()
    return UnexpectedError(DATABASE_UNAVAILABLE)


def _get_owned_slot(slot_id: str, identity: Identity, db: Session):
    slot = slot_scheduler.get_slot(db, slot_id)
    if slot.shop_id != identity.subject:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Only the shop that owns this slot can change it.',
        )
    return slot


@router.post('', response_model=ApiResponse[SlotResponse], status_code=status.HTTP_201_CREATED)
def create_slot(
    data: CreateSlotRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    require_role(identity, 'shop')
    ensure_database_ready()

    try:
        slot = slot_scheduler.create_slot(
            db,
            shop_id=identity.subject,
            staff_id=data.staff_id,
            slot_date=data.slot_date,
            start_time=data.start_time,
            end_time=data.end_time,
            duration_in_minutes=data.duration_in_minutes,
        )
        return envelope(_slot(slot), 'Slot created successfully')
    except SQLAlchemyError as exc:
        raise _database_unavailable(db) from exc


@router.get('/shop/{shop_id}', response_model=ApiResponse[list[SlotResponse]])
def list_shop_slots(
    shop_id: str,
    start_date: str | None = Query(default=None),
    end_date: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        if start_date is None and end_date is None:
            slots = slot_scheduler.list_shop_slots(db, shop_id)
        else:
            slots = slot_scheduler.list_shop_slots_in_range(
                db,
                shop_id,
                start_date or end_date,
                end_date or start_date,
            )
        return envelope(_slots(slots), 'Slots retrieved successfully')
    except SQLAlchemyError as exc:
        raise _database_unavailable(db) from exc


@router.get('/shop/{shop_id}/booked', response_model=ApiResponse[list[SlotResponse]])
def list_booked_slots(shop_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        slots = slot_scheduler.list_booked_shop_slots(db, shop_id)
        return envelope(_slots(slots), 'Booked slots retrieved successfully')
    except SQLAlchemyError as exc:
        raise _database_unavailable(db) from exc


@router.get('/shop/{shop_id}/available', response_model=ApiResponse[list[SlotResponse]])
def list_available_slots(
    shop_id: str,
    slot_date: str = Query(..., alias='date'),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        slots = slot_scheduler.list_available_shop_slots(db, shop_id, slot_date)
        return envelope(_slots(slots), 'Available slots retrieved successfully')
    except SQLAlchemyError as exc:
        raise _database_unavailable(db) from exc


@router.get('/date/{slot_date}', response_model=ApiResponse[list[SlotResponse]])
def list_slots_on_date(slot_date: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        slots = slot_scheduler.list_slots_on_date(db, slot_date)
        return envelope(_slots(slots), 'Slots retrieved successfully')
    except SQLAlchemyError as exc:
        raise _database_unavailable(db) from exc


@router.get('/{slot_id}', response_model=ApiResponse[SlotResponse])
def get_slot(slot_id: str, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return envelope(_slot(slot_scheduler.get_slot(db, slot_id)), 'Slot retrieved successfully')
    except SQLAlchemyError as exc:
        raise _database_unavailable(db) from exc


@router.patch('/{slot_id}', response_model=ApiResponse[SlotResponse])
def update_slot(
    slot_id: str,
    data: UpdateSlotRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    require_role(identity, 'shop')
    ensure_database_ready()

    try:
        _get_owned_slot(slot_id, identity, db)
        slot = slot_scheduler.update_slot(db, slot_id, data.model_dump(exclude_unset=True))
        return envelope(_slot(slot), 'Slot updated successfully')
    except SQLAlchemyError as exc:
        raise _database_unavailable(db) from exc


@router.post('/{slot_id}/cancel', response_model=ApiResponse[SlotResponse])
def cancel_slot(
    slot_id: str,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    require_role(identity, 'shop')
    ensure_database_ready()

    try:
        _get_owned_slot(slot_id, identity, db)
        slot = slot_scheduler.cancel_slot(db, slot_id)
        return envelope(_slot(slot), 'Slot cancelled successfully')
    except SQLAlchemyError as exc:
        raise _database_unavailable(db) from exc


@router.delete('/{slot_id}', response_model=ApiResponse[SlotResponse])
def delete_slot(
    slot_id: str,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    require_role(identity, 'shop')
    ensure_database_ready()

    try:
        _get_owned_slot(slot_id, identity, db)
        slot = slot_scheduler.delete_slot(db, slot_id)
        return envelope(_slot(slot), 'Slot deleted successfully')
    except SQLAlchemyError as exc:
        raise _database_unavailable(db) from exc
