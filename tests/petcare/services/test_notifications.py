from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from conftest import SHOP_ID, USER_ID
from petcare import relay_outbox
from petcare.core import config
from petcare.database import Base
from petcare.models.notification import Notification
from petcare.models.outbox import NOTIFICATION_REQUESTED, OutboxEvent
from petcare.services.notifications import (
    DatabaseNotificationSink,
    enqueue_appointment_created,
    enqueue_notification,
    relay_pending_notifications,
)

APPOINTMENT_ID = '67d000000000000000000001'


class _SharedSession:
    def __init__(self, db):
        self._db = db

    def __getattr__(self, name):
        return getattr(self._db, name)

    def close(self):
        pass


def _enqueue(db, message: str = 'Hello') -> OutboxEvent:
    event = enqueue_notification(
        db,
        APPOINTMENT_ID,
        user_id=USER_ID,
        shop_id=SHOP_ID,
        receiver_type='User',
        message=message,
    )
    db.commit()
    return event


def test_enqueue_notification_waits_for_commit(db) -> None:
    event = enqueue_notification(
        db,
        APPOINTMENT_ID,
        user_id=USER_ID,
        shop_id=SHOP_ID,
        receiver_type='Shop',
        message='New appointment received',
    )
    db.rollback()

    assert db.query(OutboxEvent).count() == 0
    assert event.event_type == NOTIFICATION_REQUESTED


def test_database_sink_stores_unread_notification(db) -> None:
    _enqueue(db, 'Your appointment FC01052024-01 has been confirmed.')

    delivered = relay_pending_notifications(db, DatabaseNotificationSink(session_factory=lambda: _SharedSession(db)))

    assert delivered == 1
    stored = db.query(Notification).one()
    assert stored.receiver_type == 'User'
    assert stored.type == 'Booking Update'
    assert stored.message == 'Your appointment FC01052024-01 has been confirmed.'
    assert stored.is_read is False
    assert db.query(OutboxEvent).one().processed_at is not None


def test_relay_respects_limit(db, sink) -> None:
    for index in range(3):
        _enqueue(db, f'message {index}')

    assert relay_pending_notifications(db, sink, limit=2) == 2
    assert relay_pending_notifications(db, sink, limit=2) == 1
    assert len(sink.calls) == 3


def test_relay_command_reports_delivered_count(db, sink, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    _enqueue(db)
    monkeypatch.setattr(relay_outbox, 'SessionLocal', lambda: db)
    monkeypatch.setattr(relay_outbox, 'DatabaseNotificationSink', lambda: sink)

    relay_outbox.main(['--limit', '10'])

    assert capsys.readouterr().out.strip() == 'Delivered 1 notification(s).'
    assert sink.calls[0]['message'] == 'Hello'


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(f'sqlite:///{tmp_path / "relay.db"}')
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        engine.dispose()


class _OverlappingSink:
    """Starts a second relay on its own session while the first delivery is in flight."""

    def __init__(self, session_factory):
        self.session_factory = session_factory
        self.messages = []
        self.nested_delivered = None

    def create_notification(self, user_id, shop_id, receiver_type, type, message):
        self.messages.append(message)
        if self.nested_delivered is None:
            self.nested_delivered = 0
            other = self.session_factory()
            try:
                self.nested_delivered = relay_pending_notifications(other, self)
            finally:
                other.close()


def test_overlapping_relays_deliver_each_event_once(session_factory) -> None:
    db = session_factory()
    try:
        appointment = SimpleNamespace(
            id=APPOINTMENT_ID,
            user_id=USER_ID,
            shop_id=SHOP_ID,
            booking_number='FC01052024-01',
        )
        enqueue_appointment_created(db, appointment)
        db.commit()
        overlapping_sink = _OverlappingSink(session_factory)

        delivered = relay_pending_notifications(db, overlapping_sink)

        assert delivered + overlapping_sink.nested_delivered == 2
        assert sorted(overlapping_sink.messages) == [
            'New appointment created with booking number FC01052024-01',
            'New appointment received — FC01052024-01',
        ]
        assert all(event.processed_at is not None for event in db.query(OutboxEvent).all())
    finally:
        db.close()


def test_relay_skips_events_claimed_by_another_run(db, sink) -> None:
    event = _enqueue(db)
    event.claimed_at = datetime.now()
    db.commit()

    assert relay_pending_notifications(db, sink) == 0
    assert sink.calls == []


def test_relay_takes_over_abandoned_claims(db, sink) -> None:
    event = _enqueue(db)
    event.claimed_at = datetime.now() - timedelta(seconds=config.OUTBOX_CLAIM_TIMEOUT_SECONDS + 60)
    db.commit()

    assert relay_pending_notifications(db, sink) == 1
    assert [call['message'] for call in sink.calls] == ['Hello']


def test_failed_delivery_releases_its_claim(db, failing_sink) -> None:
    _enqueue(db)

    relay_pending_notifications(db, failing_sink)

    event = db.query(OutboxEvent).one()
    assert event.claimed_at is None
    assert event.attempts == 1
