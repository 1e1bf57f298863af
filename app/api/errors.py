from fastapi import HTTPException, status

from app.core.errors import (
    AppointmentNotFoundError,
    BookingError,
    DataFetchError,
    EmptySelectionError,
    InvalidDateError,
    InvalidTransitionError,
    PolicyViolationError,
    SlotConflictError,
    SlotUnavailableError,
)

UNABLE_TO_CONFIRM = "Unable to confirm availability. Please try again shortly."

_STATUS_CODES: dict[type[BookingError], int] = {
    InvalidDateError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    EmptySelectionError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    DataFetchError: status.HTTP_503_SERVICE_UNAVAILABLE,
    SlotUnavailableError: status.HTTP_409_CONFLICT,
    SlotConflictError: status.HTTP_409_CONFLICT,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    PolicyViolationError: status.HTTP_409_CONFLICT,
    AppointmentNotFoundError: status.HTTP_404_NOT_FOUND,
}


def to_http_exception(exc: BookingError) -> HTTPException:
    """Map a domain error to the HTTP response the client sees."""
    code = next(
        (c for cls, c in _STATUS_CODES.items() if isinstance(exc, cls)),
        status.HTTP_400_BAD_REQUEST,
    )
    if isinstance(exc, DataFetchError):
        # Never let an unknown answer look like "all free"
        return HTTPException(status_code=code, detail=UNABLE_TO_CONFIRM)
    if isinstance(exc, PolicyViolationError):
        return HTTPException(
            status_code=code,
            detail={"message": str(exc), "policy": exc.status.to_dict()},
        )
    return HTTPException(status_code=code, detail=str(exc))
