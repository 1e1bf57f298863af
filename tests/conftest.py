import os

# Settings are read at import time; point them at throwaway values first.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")

from datetime import datetime  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

import app.models  # noqa: E402,F401 - register tables
from app.models.appointment import Appointment, AppointmentStatus  # noqa: E402

ADMIN_HEADERS = {"X-Admin-Key": "test-admin-key"}

# Monday 2025-03-10, 08:00 practice time
NOW = datetime(2025, 3, 10, 8, 0)
MONDAY = "2025-03-10"
TUESDAY = "2025-03-11"
SATURDAY = "2025-03-15"
SUNDAY = "2025-03-16"


@pytest.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine):
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with maker() as s:
        yield s


@pytest.fixture
def make_appointment(session):
    async def _make(day: str, timeslot: str, status: AppointmentStatus = AppointmentStatus.PENDING) -> Appointment:
        appointment = Appointment(
            date=day,
            timeslot=timeslot,
            status=status.value,
            name="Jana Novak",
            email="jana@example.com",
        )
        session.add(appointment)
        await session.commit()
        await session.refresh(appointment)
        return appointment

    return _make
