"""Slot model definitions."""

import enum
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, String

from petcare.core.validation import new_object_id
from petcare.database import Base


class SlotStatus(str, enum.Enum):
    ACTIVE = 'active'
    CANCELLED = 'cancelled'
    DELETED = 'deleted'


SLOT_TRANSITIONS = {
    SlotStatus.ACTIVE: {SlotStatus.CANCELLED, SlotStatus.DELETED},
    SlotStatus.CANCELLED: {SlotStatus.CANCELLED, SlotStatus.DELETED},
    SlotStatus.DELETED: set(),
}


def can_transition_slot(current: SlotStatus, target: SlotStatus) -> bool:
    return target in SLOT_TRANSITIONS[SlotStatus(current)]


class Slot(Base):
    """Represents a bookable time window for one staff member on one day."""
    __tablename__ = "slots"

    id = Column(String(24), primary_key=True, default=new_object_id)
    shop_id = Column(String(24), nullable=False, index=True)
    staff_id = Column(String(24), nullable=False)
    slot_date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    duration_in_minutes = Column(Integer, nullable=False)
    is_booked = Column(Boolean, nullable=False, default=False)
    status = Column(String(16), nullable=False, default=SlotStatus.ACTIVE.value)
    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    @property
    def is_active(self) -> bool:
        return self.status == SlotStatus.ACTIVE.value

    @property
    def is_cancelled(self) -> bool:
        return self.status == SlotStatus.CANCELLED.value


class StaffScheduleLock(Base):
    """One row per staff member and day; locked while that day's slots are written."""
    __tablename__ = "staff_schedule_locks"

    staff_id = Column(String(24), primary_key=True)
    slot_date = Column(Date, primary_key=True)
