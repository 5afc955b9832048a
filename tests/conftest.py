import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from petcare.database import Base  # noqa: E402
from petcare.models import appointment, notification, outbox, slot  # noqa: E402,F401

SHOP_ID = '64b7f0c2e1a4b5c6d7e8f901'
OTHER_SHOP_ID = '64b7f0c2e1a4b5c6d7e8f902'
STAFF_ONE = '65a1b2c3d4e5f60718293a01'
STAFF_TWO = '65a1b2c3d4e5f60718293a02'
USER_ID = '66c0ffee0000000000000001'
PET_ID = '66c0ffee0000000000000002'
SERVICE_ID = '66c0ffee0000000000000003'


@pytest.fixture
def db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


class RecordingSink:
    def __init__(self, fail: bool = False):
        self.calls = []
        self.fail = fail

    def create_notification(self, user_id, shop_id, receiver_type, type, message):
        self.calls.append(
            {
                'user_id': user_id,
                'shop_id': shop_id,
                'receiver_type': receiver_type,
                'type': type,
                'message': message,
            }
        )
        if self.fail:
            raise RuntimeError('notification service down')


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def failing_sink():
    return RecordingSink(fail=True)
