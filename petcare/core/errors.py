"""Error kinds raised by the scheduling subsystem.

Each kind is an ``HTTPException`` so FastAPI maps it onto the response status
directly; the service layer raises them without knowing about HTTP.
"""

from fastapi import HTTPException, status


class SchedulingError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str) -> None:
        super().__init__(status_code=type(self).status_code, detail=detail)


class InputValidationError(SchedulingError):
    """Malformed date, time, duration or identifier."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, field: str, detail: str) -> None:
        super().__init__(detail)
        self.field = field


class ConflictError(SchedulingError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(SchedulingError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidTransitionError(SchedulingError):
    status_code = status.HTTP_400_BAD_REQUEST


class UnexpectedError(SchedulingError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
