import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    AppointmentNotFoundError,
    InvalidTransitionError,
    PolicyViolationError,
    SlotConflictError,
    SlotUnavailableError,
)
from app.models.appointment import (
    SLOT_HOLDING_STATUSES,
    TERMINAL_STATUSES,
    Appointment,
    AppointmentCreate,
    AppointmentStatus,
)
from app.services.cancellation_policy import (
    CancellationPolicy,
    CancellationPolicyStatus,
    appointment_datetime,
    to_practice_wall_clock,
)
from app.services.schedule import parse_calendar_date, parse_slot_time
from app.services.slot_service import resolver_for_session
from app.services.working_hours import working_hours_between

logger = logging.getLogger(__name__)


def _utc_naive_now() -> datetime:
    """Naive UTC for comparison with TIMESTAMP WITHOUT TIME ZONE."""
    return datetime.now(UTC).replace(tzinfo=None)


async def _ensure_bookable(session: AsyncSession, day: str, timeslot: str, now: datetime) -> None:
    """Raise SlotUnavailableError unless ``timeslot`` is offered, free and in the future."""
    if appointment_datetime(day, timeslot) <= to_practice_wall_clock(now):
        raise SlotUnavailableError(f"{day} {timeslot} is in the past")
    slots = await resolver_for_session(session).resolve(day)
    slot = next((s for s in slots if s.time == timeslot), None)
    if slot is None:
        raise SlotUnavailableError(f"{timeslot} is not offered on {day}")
    if not slot.available:
        raise SlotUnavailableError(f"{day} {timeslot} is already booked or blocked")


async def create_appointment(
    session: AsyncSession, data: AppointmentCreate, now: datetime
) -> Appointment:
    day = parse_calendar_date(data.date).isoformat()
    parse_slot_time(data.timeslot)
    await _ensure_bookable(session, day, data.timeslot, now)
    appointment = Appointment(
        date=day,
        timeslot=data.timeslot,
        status=AppointmentStatus.PENDING.value,
        appointment_type=data.appointment_type.value,
        name=data.name,
        email=data.email,
        phone=data.phone,
        goals=data.goals,
    )
    session.add(appointment)
    try:
        # The partial unique index rejects a second pending/confirmed booking
        # of the same slot that slipped in after the availability check.
        await session.flush()
    except IntegrityError as e:
        await session.rollback()
        logger.warning("Booking conflict on %s %s", day, data.timeslot)
        raise SlotConflictError(f"{day} {data.timeslot} was just booked by someone else") from e
    await session.refresh(appointment)
    logger.info("Appointment %s booked for %s %s", appointment.id, day, data.timeslot)
    return appointment


async def get_appointment(session: AsyncSession, appointment_id: int) -> Appointment:
    appointment = await session.get(Appointment, appointment_id)
    if appointment is None:
        raise AppointmentNotFoundError(f"Appointment {appointment_id} not found")
    return appointment


async def list_appointments_for_date(session: AsyncSession, day: str) -> list[Appointment]:
    key = parse_calendar_date(day).isoformat()
    result = await session.execute(
        select(Appointment).where(Appointment.date == key).order_by(Appointment.timeslot, Appointment.id)
    )
    return list(result.scalars().all())


def _require_active(appointment: Appointment) -> None:
    if appointment.status not in {s.value for s in SLOT_HOLDING_STATUSES}:
        raise InvalidTransitionError(
            f"Appointment {appointment.id} is {appointment.status} and can no longer be changed"
        )


async def cancel_appointment(
    session: AsyncSession,
    appointment_id: int,
    now: datetime,
    policy: CancellationPolicy | None = None,
) -> tuple[Appointment, CancellationPolicyStatus]:
    appointment = await get_appointment(session, appointment_id)
    _require_active(appointment)
    status = (policy or CancellationPolicy.from_settings()).evaluate(appointment.date, appointment.timeslot, now)
    if not status.can_cancel:
        raise PolicyViolationError(status.policy_message, status)
    appointment.status = AppointmentStatus.CANCELLED.value
    appointment.updated_at = _utc_naive_now()
    session.add(appointment)
    await session.flush()
    logger.info("Appointment %s cancelled (%.2fh before start)", appointment.id, status.hours_remaining)
    return appointment, status


async def request_reschedule(
    session: AsyncSession,
    appointment_id: int,
    new_date: str,
    new_timeslot: str,
    now: datetime,
    reason: str | None = None,
    policy: CancellationPolicy | None = None,
) -> tuple[Appointment, CancellationPolicyStatus]:
    """Move the appointment to ``reschedule_requested`` with the wanted slot.

    The fee is whatever the cancellation policy says right now; the
    ``late_reschedule`` flag additionally records short notice measured in
    opening hours.
    """
    appointment = await get_appointment(session, appointment_id)
    _require_active(appointment)
    status = (policy or CancellationPolicy.from_settings()).evaluate(appointment.date, appointment.timeslot, now)
    if not status.can_reschedule:
        raise PolicyViolationError(status.policy_message, status)

    day = parse_calendar_date(new_date).isoformat()
    parse_slot_time(new_timeslot)
    if (day, new_timeslot) == (appointment.date, appointment.timeslot):
        raise SlotUnavailableError("The requested slot is the current appointment slot")
    await _ensure_bookable(session, day, new_timeslot, now)

    notice = working_hours_between(
        to_practice_wall_clock(now), appointment_datetime(appointment.date, appointment.timeslot)
    )
    appointment.status = AppointmentStatus.RESCHEDULE_REQUESTED.value
    appointment.requested_date = day
    appointment.requested_timeslot = new_timeslot
    appointment.reschedule_reason = reason
    appointment.late_reschedule = notice.is_late_reschedule
    appointment.potential_late_fee = status.fee_amount
    appointment.updated_at = _utc_naive_now()
    session.add(appointment)
    await session.flush()
    logger.info(
        "Appointment %s reschedule requested to %s %s (fee %s, late=%s)",
        appointment.id,
        day,
        new_timeslot,
        status.fee_amount,
        notice.is_late_reschedule,
    )
    return appointment, status


async def update_status(
    session: AsyncSession, appointment_id: int, new_status: AppointmentStatus
) -> Appointment:
    """Admin status change (confirm, mark done, no-show, ...)."""
    appointment = await get_appointment(session, appointment_id)
    if new_status in SLOT_HOLDING_STATUSES and appointment.status not in {s.value for s in SLOT_HOLDING_STATUSES}:
        # Re-activating must not double-book the slot
        slots = await resolver_for_session(session).resolve(appointment.date)
        if not any(s.time == appointment.timeslot and s.available for s in slots):
            raise SlotUnavailableError(f"{appointment.date} {appointment.timeslot} is no longer free")
    appointment.status = new_status.value
    appointment.updated_at = _utc_naive_now()
    session.add(appointment)
    try:
        await session.flush()
    except IntegrityError as e:
        await session.rollback()
        raise SlotConflictError(f"{appointment.date} {appointment.timeslot} was just booked") from e
    return appointment


async def delete_appointments_older_than(session: AsyncSession, days: int) -> int:
    """Delete finished or cancelled appointments created more than `days` ago. Returns count deleted."""
    cutoff = _utc_naive_now() - timedelta(days=days)
    result = await session.execute(
        delete(Appointment).where(
            Appointment.created_at < cutoff,
            Appointment.status.in_([s.value for s in TERMINAL_STATUSES]),
        )
    )
    await session.flush()
    return result.rowcount or 0
