from typing import Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from petcare.core.errors import UnexpectedError
from petcare.database import SessionLocal, ensure_appointment_schema, ensure_slot_schema

DataT = TypeVar('DataT')

DATABASE_UNAVAILABLE = 'Database unavailable. Verify DATABASE_URL and database credentials.'


class ApiResponse(BaseModel, Generic[DataT]):
    success: bool
    data: DataT | None = None
    message: str


def envelope(data, message: str) -> dict:
    return {'success': True, 'data': data, 'message': message}


def ensure_database_ready() -> None:
    try:
        ensure_slot_schema()
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise UnexpectedError(DATABASE_UNAVAILABLE) from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
