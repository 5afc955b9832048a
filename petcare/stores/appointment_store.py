from datetime import date, datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from petcare.models.appointment import Appointment


def find_by_id(db: Session, appointment_id: str) -> Appointment | None:
    return db.query(Appointment).filter(Appointment.id == appointment_id).first()


def count_created_between(db: Session, start: datetime, end: datetime) -> int:
    return db.query(func.count(Appointment.id)).filter(
        Appointment.created_at >= start,
        Appointment.created_at <= end,
    ).scalar() or 0


def count_for_shop_between(db: Session, shop_id: str, start: datetime, end: datetime) -> int:
    return db.query(func.count(Appointment.id)).filter(
        Appointment.shop_id == shop_id,
        Appointment.created_at >= start,
        Appointment.created_at <= end,
    ).scalar() or 0


def _filtered(query, status: str | None, slot_date: date | None):
    if status is not None:
        query = query.filter(Appointment.appointment_status == status)
    if slot_date is not None:
        query = query.filter(Appointment.slot_date == slot_date)
    return query


def _page(query, page: int, limit: int) -> tuple[list[Appointment], int]:
    total = query.count()
    items = query.order_by(Appointment.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return items, total


def find_by_user(db: Session, user_id: str, page: int, limit: int, status: str | None = None):
    query = db.query(Appointment).filter(Appointment.user_id == user_id)
    return _page(_filtered(query, status, None), page, limit)


def find_by_shop(
    db: Session,
    shop_id: str,
    page: int,
    limit: int,
    status: str | None = None,
    slot_date: date | None = None,
):
    query = db.query(Appointment).filter(Appointment.shop_id == shop_id)
    return _page(_filtered(query, status, slot_date), page, limit)


def find_by_staff(db: Session, staff_id: str, page: int, limit: int, slot_date: date | None = None):
    query = db.query(Appointment).filter(Appointment.staff_id == staff_id)
    return _page(_filtered(query, None, slot_date), page, limit)
