"""Outbox model definitions."""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text

from petcare.core.validation import new_object_id
from petcare.database import Base

NOTIFICATION_REQUESTED = 'notification.requested'


class OutboxEvent(Base):
    """A side effect recorded in the same transaction as the change that caused it."""
    __tablename__ = "outbox_events"

    id = Column(String(24), primary_key=True, default=new_object_id)
    event_type = Column(String(64), nullable=False)
    aggregate_id = Column(String(24), nullable=False, index=True)
    payload = Column(JSON, nullable=False)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    claimed_at = Column(DateTime, nullable=True)
    processed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
