import secrets
from datetime import datetime

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.db import get_session
from app.models.appointment import Appointment
from app.services.cancellation_policy import practice_now
from app.services.slot_service import SlotAvailabilityResolver, resolver_for_session

__all__ = [
    "get_authorized_appointment",
    "get_now",
    "get_session",
    "get_slot_resolver",
    "require_admin",
]


def get_now() -> datetime:
    """Current wall-clock time in the practice timezone. Overridden in tests."""
    return practice_now()


def require_admin(x_admin_key: str | None = Header(default=None, alias="X-Admin-Key")) -> None:
    if not settings.admin_enabled:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin endpoints are disabled (ADMIN_API_KEY not set)",
        )
    if not x_admin_key or not secrets.compare_digest(x_admin_key, settings.admin_api_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid X-Admin-Key header",
        )


async def get_authorized_appointment(
    appointment_id: int,
    x_appointment_token: str | None = Header(default=None, alias="X-Appointment-Token"),
    session: AsyncSession = Depends(get_session),
) -> Appointment:
    """The appointment named in the path, if the caller holds its booking token.

    A wrong or missing token answers like an unknown id, so ids cannot
    be enumerated.
    """
    appointment = await session.get(Appointment, appointment_id)
    if (
        appointment is None
        or not x_appointment_token
        or not secrets.compare_digest(x_appointment_token.encode(), appointment.access_token.encode())
    ):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Appointment {appointment_id} not found",
        )
    return appointment


def get_slot_resolver(session: AsyncSession = Depends(get_session)) -> SlotAvailabilityResolver:
    return resolver_for_session(session)
