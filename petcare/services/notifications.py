"""Notification side effects of appointment changes.

Appointment writes only enqueue ``OutboxEvent`` rows in their own
transaction. ``relay_pending_notifications`` delivers them to a
notification sink later; a failed delivery is logged, counted and left for
the next relay run. It never reaches the caller that changed the appointment.
"""

import logging
from datetime import datetime, timedelta
from typing import Protocol

from sqlalchemy import or_
from sqlalchemy.orm import Session

from petcare.core import config
from petcare.database import SessionLocal
from petcare.models.notification import BOOKING_UPDATE, RECEIVER_SHOP, RECEIVER_USER, Notification
from petcare.models.outbox import NOTIFICATION_REQUESTED, OutboxEvent

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def create_notification(
        self,
        user_id: str,
        shop_id: str,
        receiver_type: str,
        type: str,
        message: str,
    ) -> None:
        ...


class DatabaseNotificationSink:
    """Writes notifications to the ``notifications`` table in a session of its own."""

    def __init__(self, session_factory=SessionLocal) -> None:
        self._session_factory = session_factory

    def create_notification(
        self,
        user_id: str,
        shop_id: str,
        receiver_type: str,
        type: str,
        message: str,
    ) -> None:
        db = self._session_factory()
        try:
            db.add(
                Notification(
                    user_id=user_id,
                    shop_id=shop_id,
                    receiver_type=receiver_type,
                    type=type,
                    message=message,
                )
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


def enqueue_notification(
    db: Session,
    aggregate_id: str,
    *,
    user_id: str,
    shop_id: str,
    receiver_type: str,
    message: str,
    notification_type: str = BOOKING_UPDATE,
) -> OutboxEvent:
    """Add a notification request to the current transaction without committing it."""
    event = OutboxEvent(
        event_type=NOTIFICATION_REQUESTED,
        aggregate_id=aggregate_id,
        payload={
            'user_id': user_id,
            'shop_id': shop_id,
            'receiver_type': receiver_type,
            'type': notification_type,
            'message': message,
        },
        attempts=0,
    )
    db.add(event)
    return event


def enqueue_appointment_created(db: Session, appointment) -> None:
    enqueue_notification(
        db,
        appointment.id,
        user_id=appointment.user_id,
        shop_id=appointment.shop_id,
        receiver_type=RECEIVER_USER,
        message=f'New appointment created with booking number {appointment.booking_number}',
    )
    enqueue_notification(
        db,
        appointment.id,
        user_id=appointment.user_id,
        shop_id=appointment.shop_id,
        receiver_type=RECEIVER_SHOP,
        message=f'New appointment received — {appointment.booking_number}',
    )


def enqueue_status_changed(db: Session, appointment, new_status: str) -> None:
    enqueue_notification(
        db,
        appointment.id,
        user_id=appointment.user_id,
        shop_id=appointment.shop_id,
        receiver_type=RECEIVER_USER,
        message=f'Your appointment {appointment.booking_number} has been {new_status.lower()}.',
    )


def _claimable(db: Session, now: datetime):
    stale_before = now - timedelta(seconds=config.OUTBOX_CLAIM_TIMEOUT_SECONDS)
    return db.query(OutboxEvent).filter(
        OutboxEvent.event_type == NOTIFICATION_REQUESTED,
        OutboxEvent.processed_at.is_(None),
        OutboxEvent.attempts < config.OUTBOX_MAX_ATTEMPTS,
        or_(OutboxEvent.claimed_at.is_(None), OutboxEvent.claimed_at < stale_before),
    )


def _claim(db: Session, event_id: str) -> OutboxEvent | None:
    now = datetime.now()
    claimed = _claimable(db, now).filter(OutboxEvent.id == event_id).update(
        {OutboxEvent.claimed_at: now},
        synchronize_session=False,
    )
    db.commit()
    if not claimed:
        return None
    return db.get(OutboxEvent, event_id)


def relay_pending_notifications(
    db: Session,
    sink: NotificationSink,
    limit: int | None = None,
) -> int:
    """Deliver pending notification requests; returns how many were delivered.

    Each event is claimed with a conditional update before the sink is
    called, so relays running at the same time never deliver the same event
    twice. A claim older than ``OUTBOX_CLAIM_TIMEOUT_SECONDS`` is treated as
    abandoned and can be taken over.
    """
    event_ids = [
        event_id
        for (event_id,) in _claimable(db, datetime.now())
        .with_entities(OutboxEvent.id)
        .order_by(OutboxEvent.created_at.asc())
        .limit(limit or config.OUTBOX_BATCH_SIZE)
        .all()
    ]
    db.commit()

    delivered = 0
    for event_id in event_ids:
        event = _claim(db, event_id)
        if event is None:
            continue

        payload = event.payload
        try:
            sink.create_notification(
                payload['user_id'],
                payload['shop_id'],
                payload['receiver_type'],
                payload['type'],
                payload['message'],
            )
        except Exception as exc:
            logger.exception('Failed to create notification for outbox event %s', event.id)
            event.attempts += 1
            event.last_error = str(exc)
            event.claimed_at = None
        else:
            event.attempts += 1
            event.processed_at = datetime.now()
            delivered += 1
        db.commit()

    return delivered


def dispatch_pending_notifications() -> None:
    """Background-task entry point: relay with a fresh session and the default sink."""
    db = SessionLocal()
    try:
        relay_pending_notifications(db, DatabaseNotificationSink())
    except Exception:
        logger.exception('Notification relay run failed')
    finally:
        db.close()
