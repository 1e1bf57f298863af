import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_authorized_appointment, get_now, get_session, require_admin
from app.api.errors import to_http_exception
from app.api.schemas.appointment import (
    AppointmentActionResponse,
    PolicyStatusResponse,
    RescheduleRequest,
    StatusUpdateRequest,
)
from app.core.config import settings
from app.core.errors import BookingError
from app.models.appointment import Appointment, AppointmentBooked, AppointmentCreate, AppointmentPublic
from app.services.appointment_service import (
    cancel_appointment,
    create_appointment,
    list_appointments_for_date,
    request_reschedule,
    update_status,
)
from app.services.cancellation_policy import CancellationPolicyStatus, evaluate_policy

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/appointments", tags=["appointments"])


def _to_public(a: Appointment) -> AppointmentPublic:
    return AppointmentPublic.model_validate(a)


def _to_policy_response(p: CancellationPolicyStatus) -> PolicyStatusResponse:
    return PolicyStatusResponse(
        **p.to_dict(),
        currency=settings.fee_currency,
        refresh_seconds=settings.policy_refresh_seconds,
    )


@router.post("", response_model=AppointmentBooked, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    body: AppointmentCreate,
    session: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
) -> AppointmentBooked:
    """Book a slot. Keep `access_token`: later calls send it as `X-Appointment-Token`."""
    try:
        appointment = await create_appointment(session, body, now)
    except BookingError as e:
        raise to_http_exception(e) from e
    return AppointmentBooked.model_validate(appointment)


@router.get("", response_model=list[AppointmentPublic], dependencies=[Depends(require_admin)])
async def list_appointments(
    date_param: str = Query(..., alias="date", description="YYYY-MM-DD"),
    session: AsyncSession = Depends(get_session),
) -> list[AppointmentPublic]:
    try:
        appointments = await list_appointments_for_date(session, date_param)
    except BookingError as e:
        raise to_http_exception(e) from e
    return [_to_public(a) for a in appointments]


@router.get("/{appointment_id}", response_model=AppointmentPublic)
async def read_appointment(appointment: Appointment = Depends(get_authorized_appointment)) -> AppointmentPublic:
    return _to_public(appointment)


@router.get("/{appointment_id}/policy", response_model=PolicyStatusResponse)
async def read_policy(
    appointment: Appointment = Depends(get_authorized_appointment),
    now: datetime = Depends(get_now),
) -> PolicyStatusResponse:
    """Current cancel/reschedule terms. Re-fetch every `refresh_seconds` to keep the countdown live."""
    return _to_policy_response(evaluate_policy(appointment.date, appointment.timeslot, now))


@router.post("/{appointment_id}/cancel", response_model=AppointmentActionResponse)
async def cancel(
    appointment: Appointment = Depends(get_authorized_appointment),
    session: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
) -> AppointmentActionResponse:
    try:
        appointment, policy = await cancel_appointment(session, appointment.id, now)
    except BookingError as e:
        raise to_http_exception(e) from e
    return AppointmentActionResponse(appointment=_to_public(appointment), policy=_to_policy_response(policy))


@router.post("/{appointment_id}/reschedule-request", response_model=AppointmentActionResponse)
async def reschedule_request(
    body: RescheduleRequest,
    appointment: Appointment = Depends(get_authorized_appointment),
    session: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
) -> AppointmentActionResponse:
    try:
        appointment, policy = await request_reschedule(
            session, appointment.id, body.date, body.timeslot, now, reason=body.reason
        )
    except BookingError as e:
        raise to_http_exception(e) from e
    return AppointmentActionResponse(appointment=_to_public(appointment), policy=_to_policy_response(policy))


@router.patch("/{appointment_id}/status", response_model=AppointmentPublic, dependencies=[Depends(require_admin)])
async def change_status(
    appointment_id: int,
    body: StatusUpdateRequest,
    session: AsyncSession = Depends(get_session),
) -> AppointmentPublic:
    try:
        appointment = await update_status(session, appointment_id, body.status)
    except BookingError as e:
        raise to_http_exception(e) from e
    logger.info("Appointment %s status set to %s", appointment_id, body.status.value)
    return _to_public(appointment)
