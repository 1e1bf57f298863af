"""Domain errors raised by the booking services.

Routes translate these into HTTP responses; services never swallow them.
"""
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.services.cancellation_policy import CancellationPolicyStatus


class BookingError(Exception):
    """Base class for booking domain failures."""


class InvalidDateError(BookingError, ValueError):
    """A date (YYYY-MM-DD) or time (HH:MM) could not be parsed."""


class EmptySelectionError(BookingError, ValueError):
    """A request that must name at least one slot named none."""


class DataFetchError(BookingError):
    """Booked or blocked slots could not be read, so availability is unknown."""


class SlotUnavailableError(BookingError):
    """The requested slot is not offered on that day, or is booked or blocked."""


class SlotConflictError(BookingError):
    """Another booking claimed the slot between the availability read and the write."""


class AppointmentNotFoundError(BookingError):
    pass


class PolicyViolationError(BookingError):
    """The cancellation policy forbids the requested change."""

    def __init__(self, message: str, status: "CancellationPolicyStatus") -> None:
        super().__init__(message)
        self.status = status


class InvalidTransitionError(BookingError):
    """The appointment's current status does not allow the requested change."""
