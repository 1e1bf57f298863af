from datetime import UTC, datetime

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class BlockedSlot(SQLModel, table=True):
    """Slots an administrator has taken off the calendar for one date."""

    __tablename__ = "unavailable_slots"
    id: int | None = Field(default=None, primary_key=True)
    date: str = Field(index=True)  # YYYY-MM-DD
    timeslots: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    reason: str | None = None
    created_at: datetime = Field(default_factory=_utc_naive_now)


class BlockedSlotCreate(SQLModel):
    date: str
    timeslots: list[str] = Field(min_length=1)
    reason: str | None = None


class BlockedSlotPublic(SQLModel):
    id: int
    date: str
    timeslots: list[str]
    reason: str | None = None
    created_at: datetime
