from datetime import date, datetime

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from petcare.auth.dependencies import Identity, get_current_identity, require_role
from petcare.core import config
from petcare.core.errors import UnexpectedError
from petcare.routes.common import DATABASE_UNAVAILABLE, ApiResponse, ensure_database_ready, envelope, get_db
from petcare.services import appointment_lifecycle
from petcare.services.notifications import dispatch_pending_notifications

router = APIRouter(tags=['appointments'])


class PaymentDetails(BaseModel):
    amount: float | None = None
    currency: str = 'INR'
    status: str = 'pending'
    method: str | None = None
    paid_at: datetime | None = None


class CreateAppointmentRequest(BaseModel):
    pet_id: str
    service_id: str
    slot_id: str
    payment_details: PaymentDetails | None = None
    notes: str | None = None

    @field_validator('pet_id', 'service_id', 'slot_id')
    @classmethod
    def normalize_id(cls, value: str) -> str:
        return value.strip().lower()


class UpdateAppointmentStatusRequest(BaseModel):
    appointment_status: str
    reason: str | None = None

    @field_validator('appointment_status')
    @classmethod
    def normalize_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError('Appointment status is required.')
        return normalized


class CancelAppointmentRequest(BaseModel):
    reason: str


class SlotDetailsResponse(BaseModel):
    start_time: str
    end_time: str
    date: date


class AppointmentResponse(BaseModel):
    id: str
    booking_number: str
    user_id: str
    pet_id: str
    shop_id: str
    staff_id: str
    service_id: str
    slot_id: str | None = None
    slot_details: SlotDetailsResponse
    payment_details: dict | None = None
    appointment_status: str
    notes: str | None = None
    cancellation_reason: str | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int


class AppointmentPage(BaseModel):
    appointments: list[AppointmentResponse]
    pagination: Pagination


class AppointmentCount(BaseModel):
    shop_id: str
    start_date: date
    end_date: date
    count: int


def _appointment(appointment) -> AppointmentResponse:
    return AppointmentResponse.model_validate(appointment)


def _page(appointments, total: int, page: int, limit: int) -> AppointmentPage:
    return AppointmentPage(
        appointments=[_appointment(appointment) for appointment in appointments],
        pagination=Pagination(total=total, page=page, limit=limit, pages=-(-total // limit)),
    )


def _database_unavailable(db: Session) -> UnexpectedError:
    db.rollback()
    return UnexpectedError(DATABASE_UNAVAILABLE)


@router.post('', response_model=ApiResponse[AppointmentResponse], status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    background_tasks: BackgroundTasks,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    require_role(identity, 'user')
    ensure_database_ready()

    try:
        appointment = appointment_lifecycle.create_appointment(
            db,
            user_id=identity.subject,
            pet_id=data.pet_id,
            service_id=data.service_id,
            slot_id=data.slot_id,
            payment_details=data.payment_details.model_dump(mode='json') if data.payment_details else None,
            notes=data.notes,
        )
    except SQLAlchemyError as exc:
        raise _database_unavailable(db) from exc

    background_tasks.add_task(dispatch_pending_notifications)
    return envelope(_appointment(appointment), 'Appointment created successfully')


@router.get('/user/me', response_model=ApiResponse[AppointmentPage])
def list_my_appointments(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    appointment_status: str | None = Query(default=None, alias='status'),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    require_role(identity, 'user')
    ensure_database_ready()

    try:
        appointments, total = appointment_lifecycle.list_user_appointments(
            db, identity.subject, page=page, limit=limit, status=appointment_status
        )
        return envelope(_page(appointments, total, page, limit), 'Appointments retrieved successfully')
    except SQLAlchemyError as exc:
        raise _database_unavailable(db) from exc


@router.get('/shop/{shop_id}', response_model=ApiResponse[AppointmentPage])
def list_shop_appointments(
    shop_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    appointment_status: str | None = Query(default=None, alias='status'),
    slot_date: str | None = Query(default=None, alias='date'),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    require_role(identity, 'shop', 'staff', 'admin')
    ensure_database_ready()

    try:
        appointments, total = appointment_lifecycle.list_shop_appointments(
            db, shop_id, page=page, limit=limit, status=appointment_status, date=slot_date
        )
        return envelope(_page(appointments, total, page, limit), 'Appointments retrieved successfully')
    except SQLAlchemyError as exc:
        raise _database_unavailable(db) from exc


@router.get('/shop/{shop_id}/count', response_model=ApiResponse[AppointmentCount])
def count_shop_appointments(
    shop_id: str,
    start_date: str = Query(...),
    end_date: str = Query(...),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    require_role(identity, 'shop', 'staff', 'admin')
    ensure_database_ready()

    try:
        count = appointment_lifecycle.count_shop_appointments(db, shop_id, start_date, end_date)
        result = AppointmentCount(shop_id=shop_id.lower(), start_date=start_date, end_date=end_date, count=count)
        return envelope(result, 'Appointment count retrieved successfully')
    except SQLAlchemyError as exc:
        raise _database_unavailable(db) from exc


@router.get('/staff/{staff_id}', response_model=ApiResponse[AppointmentPage])
def list_staff_appointments(
    staff_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    slot_date: str | None = Query(default=None, alias='date'),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    require_role(identity, 'shop', 'staff', 'admin')
    ensure_database_ready()

    try:
        appointments, total = appointment_lifecycle.list_staff_appointments(
            db, staff_id, page=page, limit=limit, date=slot_date
        )
        return envelope(_page(appointments, total, page, limit), 'Appointments retrieved successfully')
    except SQLAlchemyError as exc:
        raise _database_unavailable(db) from exc


@router.get('/{appointment_id}', response_model=ApiResponse[AppointmentResponse])
def get_appointment(
    appointment_id: str,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = appointment_lifecycle.get_appointment(db, appointment_id)
        return envelope(_appointment(appointment), 'Appointment retrieved successfully')
    except SQLAlchemyError as exc:
        raise _database_unavailable(db) from exc


@router.patch('/{appointment_id}/status', response_model=ApiResponse[AppointmentResponse])
def update_appointment_status(
    appointment_id: str,
    data: UpdateAppointmentStatusRequest,
    background_tasks: BackgroundTasks,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = appointment_lifecycle.update_status(
            db, appointment_id, data.appointment_status, reason=data.reason
        )
    except SQLAlchemyError as exc:
        raise _database_unavailable(db) from exc

    background_tasks.add_task(dispatch_pending_notifications)
    return envelope(_appointment(appointment), 'Appointment status updated successfully')


@router.post('/{appointment_id}/cancel', response_model=ApiResponse[AppointmentResponse])
def cancel_appointment(
    appointment_id: str,
    data: CancelAppointmentRequest,
    background_tasks: BackgroundTasks,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = appointment_lifecycle.cancel_appointment(db, appointment_id, data.reason)
    except SQLAlchemyError as exc:
        raise _database_unavailable(db) from exc

    background_tasks.add_task(dispatch_pending_notifications)
    return envelope(_appointment(appointment), 'Appointment cancelled successfully')
