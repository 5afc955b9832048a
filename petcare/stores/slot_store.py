from datetime import date

from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from petcare.models.slot import Slot, SlotStatus, StaffScheduleLock


def _visible(db: Session):
    return db.query(Slot).filter(Slot.status != SlotStatus.DELETED.value, Slot.deleted_at.is_(None))


def _ordered(query):
    return query.order_by(Slot.slot_date.asc(), Slot.start_time.asc())


def find_by_id(db: Session, slot_id: str) -> Slot | None:
    return _visible(db).filter(Slot.id == slot_id).first()


def find_by_shop(db: Session, shop_id: str) -> list[Slot]:
    return _ordered(_visible(db).filter(Slot.shop_id == shop_id)).all()


def find_by_shop_and_date_range(db: Session, shop_id: str, start_date: date, end_date: date) -> list[Slot]:
    return _ordered(
        db.query(Slot).filter(
            Slot.shop_id == shop_id,
            Slot.slot_date >= start_date,
            Slot.slot_date <= end_date,
            Slot.status == SlotStatus.ACTIVE.value,
        )
    ).all()


def find_by_date(db: Session, slot_date: date) -> list[Slot]:
    return _ordered(
        db.query(Slot).filter(
            Slot.slot_date == slot_date,
            Slot.status == SlotStatus.ACTIVE.value,
        )
    ).all()


def find_booked_by_shop(db: Session, shop_id: str) -> list[Slot]:
    return _ordered(
        db.query(Slot).filter(
            Slot.shop_id == shop_id,
            Slot.is_booked.is_(True),
            Slot.status == SlotStatus.ACTIVE.value,
        )
    ).all()


def find_available_by_shop_and_date(db: Session, shop_id: str, slot_date: date) -> list[Slot]:
    return _ordered(
        db.query(Slot).filter(
            Slot.shop_id == shop_id,
            Slot.slot_date == slot_date,
            Slot.is_booked.is_(False),
            Slot.status == SlotStatus.ACTIVE.value,
        )
    ).all()


def find_active_for_staff_day(
    db: Session,
    staff_id: str,
    slot_date: date,
    exclude_id: str | None = None,
) -> list[Slot]:
    query = db.query(Slot).filter(
        Slot.staff_id == staff_id,
        Slot.slot_date == slot_date,
        Slot.status == SlotStatus.ACTIVE.value,
    )
    if exclude_id is not None:
        query = query.filter(Slot.id != exclude_id)
    return query.all()


def lock_staff_day(db: Session, staff_id: str, slot_date: date) -> None:
    """Serialize slot writes for one staff member and day until the transaction ends."""
    insert = sqlite_insert if db.get_bind().dialect.name == 'sqlite' else postgresql_insert
    db.execute(
        insert(StaffScheduleLock)
        .values(staff_id=staff_id, slot_date=slot_date)
        .on_conflict_do_nothing(index_elements=['staff_id', 'slot_date'])
    )
    db.query(StaffScheduleLock).filter(
        StaffScheduleLock.staff_id == staff_id,
        StaffScheduleLock.slot_date == slot_date,
    ).with_for_update().one()
