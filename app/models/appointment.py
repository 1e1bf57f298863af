import secrets
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import Index, text
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def new_access_token() -> str:
    """Unguessable per-booking secret; holders may read and change that booking."""
    return secrets.token_urlsafe(24)


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DONE = "done"
    CANCELLED = "cancelled"
    RESCHEDULE_REQUESTED = "reschedule_requested"
    CANCELLED_RESCHEDULE = "cancelled_reschedule"
    NO_SHOW = "no-show"


# Only these statuses hold a slot; every other status frees it
SLOT_HOLDING_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})

TERMINAL_STATUSES = frozenset(
    {
        AppointmentStatus.DONE,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.CANCELLED_RESCHEDULE,
        AppointmentStatus.NO_SHOW,
    }
)

_HOLDING_SQL = "status IN ('pending', 'confirmed')"


class AppointmentType(str, Enum):
    INITIAL = "Initial"
    FOLLOW_UP = "Follow-up"


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    # At most one slot-holding appointment per (date, timeslot)
    __table_args__ = (
        Index(
            "uq_appointments_active_slot",
            "date",
            "timeslot",
            unique=True,
            postgresql_where=text(_HOLDING_SQL),
            sqlite_where=text(_HOLDING_SQL),
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    date: str = Field(index=True)  # YYYY-MM-DD
    timeslot: str  # HH:MM
    status: str = Field(default=AppointmentStatus.PENDING.value, index=True)
    appointment_type: str = AppointmentType.INITIAL.value
    name: str
    email: str
    phone: str | None = None
    goals: str | None = None
    reschedule_reason: str | None = None
    requested_date: str | None = None
    requested_timeslot: str | None = None
    late_reschedule: bool = False
    potential_late_fee: float = 0.0
    created_at: datetime = Field(default_factory=_utc_naive_now)
    updated_at: datetime | None = None
    access_token: str = Field(default_factory=new_access_token, unique=True, index=True)


class AppointmentCreate(SQLModel):
    date: str
    timeslot: str
    name: str
    email: str
    phone: str | None = None
    appointment_type: AppointmentType = AppointmentType.INITIAL
    goals: str | None = None


class AppointmentPublic(SQLModel):
    id: int
    date: str
    timeslot: str
    status: str
    appointment_type: str
    name: str
    email: str
    phone: str | None = None
    goals: str | None = None
    reschedule_reason: str | None = None
    requested_date: str | None = None
    requested_timeslot: str | None = None
    late_reschedule: bool = False
    potential_late_fee: float = 0.0
    created_at: datetime


class AppointmentBooked(AppointmentPublic):
    """Returned once, at booking. The token is never shown again."""

    access_token: str
