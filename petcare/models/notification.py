"""Notification model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, String, Text

from petcare.core.validation import new_object_id
from petcare.database import Base

RECEIVER_USER = 'User'
RECEIVER_SHOP = 'Shop'
BOOKING_UPDATE = 'Booking Update'


class Notification(Base):
    """A message shown to a pet owner or a shop."""
    __tablename__ = "notifications"

    id = Column(String(24), primary_key=True, default=new_object_id)
    user_id = Column(String(24), nullable=False, index=True)
    shop_id = Column(String(24), nullable=False, index=True)
    receiver_type = Column(String(8), nullable=False)
    type = Column(String(32), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
