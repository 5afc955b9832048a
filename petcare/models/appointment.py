"""Appointment model definitions."""

import enum
from datetime import datetime

from sqlalchemy import JSON, Column, Date, DateTime, String, Text

from petcare.core.validation import new_object_id
from petcare.database import Base


class AppointmentStatus(str, enum.Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


APPOINTMENT_TRANSITIONS = {
    AppointmentStatus.PENDING: {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED},
    AppointmentStatus.CONFIRMED: {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED},
    AppointmentStatus.COMPLETED: set(),
    AppointmentStatus.CANCELLED: set(),
}


def can_transition_appointment(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in APPOINTMENT_TRANSITIONS[AppointmentStatus(current)]


class Appointment(Base):
    """Represents a booking of one slot by a pet owner."""
    __tablename__ = "appointments"

    id = Column(String(24), primary_key=True, default=new_object_id)
    booking_number = Column(String(32), nullable=False, unique=True)
    user_id = Column(String(24), nullable=False)
    pet_id = Column(String(24), nullable=False)
    shop_id = Column(String(24), nullable=False)
    staff_id = Column(String(24), nullable=False)
    service_id = Column(String(24), nullable=False)
    slot_id = Column(String(24), nullable=True)
    slot_date = Column(Date, nullable=False)
    slot_start_time = Column(String(5), nullable=False)
    slot_end_time = Column(String(5), nullable=False)
    payment_details = Column(JSON, nullable=True)
    appointment_status = Column(String(16), nullable=False, default=AppointmentStatus.PENDING.value)
    notes = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    @property
    def slot_details(self) -> dict:
        return {
            'start_time': self.slot_start_time,
            'end_time': self.slot_end_time,
            'date': self.slot_date,
        }
