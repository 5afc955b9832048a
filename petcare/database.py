from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from petcare.core import config


engine = create_engine(config.DATABASE_URL, echo=config.DATABASE_ECHO)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_slot_schema_checked = False
_appointment_schema_checked = False


def ensure_slot_schema() -> None:
    global _slot_schema_checked

    if _slot_schema_checked:
        return

    with _schema_lock:
        if _slot_schema_checked:
            return

        inspector = inspect(engine)

        if 'slots' not in inspector.get_table_names():
            _slot_schema_checked = True
            return

        with engine.begin() as connection:
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_slots_staff_date_status ON slots(staff_id, slot_date, status)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_slots_shop_date ON slots(shop_id, slot_date)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_slots_shop_booked ON slots(shop_id, is_booked, status)')
            )

        _slot_schema_checked = True


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('cancellation_reason', 'ALTER TABLE appointments ADD COLUMN cancellation_reason TEXT'),
        ]
        has_outbox = 'outbox_events' in inspector.get_table_names()
        outbox_columns = (
            {column['name'] for column in inspector.get_columns('outbox_events')} if has_outbox else set()
        )

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            if has_outbox and 'claimed_at' not in outbox_columns:
                connection.execute(text('ALTER TABLE outbox_events ADD COLUMN claimed_at TIMESTAMP'))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_created_at ON appointments(created_at)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_shop_status ON appointments(shop_id, appointment_status)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_user_created ON appointments(user_id, created_at)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_staff_date ON appointments(staff_id, slot_date)')
            )
            if has_outbox:
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_outbox_pending ON outbox_events(processed_at, created_at)')
                )

        _appointment_schema_checked = True
