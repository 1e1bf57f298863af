"""Cancellation and reschedule rules for a booked appointment.

The outcome depends only on how far the appointment is from ``now``:

    more than 1h past      locked, nothing can change
    within 1h either side  free cancel / reschedule (grace window)
    over 1h, under 4h      rescheduling costs the fee, cancelling is free
    4h or more ahead       free

``now`` is always passed in. Anything displaying the result should call
``evaluate`` again every ``settings.policy_refresh_seconds`` so the window
moves with the clock.
"""
import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime
from zoneinfo import ZoneInfo

from app.core.config import settings
from app.core.errors import InvalidDateError
from app.services.schedule import parse_calendar_date, parse_slot_time

logger = logging.getLogger(__name__)

_CURRENCY_SYMBOLS = {"EUR": "€", "USD": "$", "GBP": "£"}

PASSED_MESSAGE = "This appointment has already passed and cannot be modified."
UNKNOWN_MESSAGE = "Unable to determine cancellation policy. Please contact support."


@dataclass(frozen=True)
class CancellationPolicyStatus:
    can_cancel: bool
    can_reschedule: bool
    requires_fee: bool
    fee_amount: float
    hours_remaining: float  # negative once the appointment time has passed
    time_until_appointment: str
    policy_message: str

    def to_dict(self) -> dict:
        return asdict(self)


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}" if n == 1 else f"{n} {unit}s"


def _format_hours(hours: float) -> str:
    if float(hours).is_integer():
        return _plural(int(hours), "hour")
    return f"{hours:g} hours"


def format_time_until(hours: float) -> str:
    """Human-readable duration for ``hours`` (must be >= 0).

    Minutes under an hour, hours and minutes under a day, days and hours
    beyond. Units are floored and zero trailing units are dropped.
    """
    total_minutes = math.floor(round(hours * 60, 6))
    if total_minutes < 60:
        return _plural(total_minutes, "minute")
    if total_minutes < 24 * 60:
        h, m = divmod(total_minutes, 60)
        return _plural(h, "hour") if m == 0 else f"{_plural(h, 'hour')} {_plural(m, 'minute')}"
    total_hours = total_minutes // 60
    d, h = divmod(total_hours, 24)
    return _plural(d, "day") if h == 0 else f"{_plural(d, 'day')} {_plural(h, 'hour')}"


def to_practice_wall_clock(moment: datetime) -> datetime:
    """Naive wall-clock time in the practice timezone."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(ZoneInfo(settings.practice_timezone)).replace(tzinfo=None)


def practice_now() -> datetime:
    return to_practice_wall_clock(datetime.now(ZoneInfo(settings.practice_timezone)))


def appointment_datetime(appointment_date: str, appointment_time: str) -> datetime:
    """Combine YYYY-MM-DD and HH:MM into a naive wall-clock datetime."""
    return datetime.combine(parse_calendar_date(appointment_date), parse_slot_time(appointment_time))


@dataclass(frozen=True)
class CancellationPolicy:
    fee_amount: float = 5.0
    currency: str = "EUR"
    grace_hours: float = 1.0
    fee_window_hours: float = 4.0

    def __post_init__(self) -> None:
        if not 0 < self.grace_hours < self.fee_window_hours:
            raise ValueError("grace_hours must be positive and smaller than fee_window_hours")
        if self.fee_amount < 0:
            raise ValueError("fee_amount must not be negative")

    @classmethod
    def from_settings(cls) -> "CancellationPolicy":
        return cls(
            fee_amount=settings.reschedule_fee_amount,
            currency=settings.fee_currency,
            grace_hours=settings.grace_window_hours,
            fee_window_hours=settings.fee_window_hours,
        )

    @property
    def fee_display(self) -> str:
        amount = f"{self.fee_amount:g}" if float(self.fee_amount).is_integer() else f"{self.fee_amount:.2f}"
        symbol = _CURRENCY_SYMBOLS.get(self.currency.upper())
        return f"{symbol}{amount}" if symbol else f"{amount} {self.currency}"

    def evaluate(self, appointment_date: str, appointment_time: str, now: datetime) -> CancellationPolicyStatus:
        try:
            scheduled = appointment_datetime(appointment_date, appointment_time)
        except InvalidDateError as e:
            logger.warning("Cannot evaluate cancellation policy: %s", e)
            return CancellationPolicyStatus(
                can_cancel=False,
                can_reschedule=False,
                requires_fee=False,
                fee_amount=0,
                hours_remaining=0,
                time_until_appointment="Unable to calculate",
                policy_message=UNKNOWN_MESSAGE,
            )
        hours_until = (scheduled - to_practice_wall_clock(now)).total_seconds() / 3600
        return self.classify(hours_until)

    def classify(self, hours_until: float) -> CancellationPolicyStatus:
        grace = self.grace_hours
        if hours_until < -grace:
            return CancellationPolicyStatus(
                can_cancel=False,
                can_reschedule=False,
                requires_fee=False,
                fee_amount=0,
                hours_remaining=hours_until,
                time_until_appointment="Appointment has passed",
                policy_message=PASSED_MESSAGE,
            )
        if hours_until <= grace:
            if hours_until < 0:
                message = (
                    f"You can still cancel or reschedule within {_format_hours(grace)} "
                    "after your appointment time with no charge."
                )
            else:
                message = (
                    f"You can cancel or reschedule with no charge within {_format_hours(grace)} "
                    "of your appointment."
                )
            return CancellationPolicyStatus(
                can_cancel=True,
                can_reschedule=True,
                requires_fee=False,
                fee_amount=0,
                hours_remaining=hours_until,
                time_until_appointment=format_time_until(abs(hours_until)),
                policy_message=message,
            )
        if hours_until < self.fee_window_hours:
            return CancellationPolicyStatus(
                can_cancel=True,
                can_reschedule=True,
                requires_fee=True,
                fee_amount=self.fee_amount,
                hours_remaining=hours_until,
                time_until_appointment=format_time_until(hours_until),
                policy_message=(
                    f"Rescheduling within {_format_hours(self.fee_window_hours)} requires a "
                    f"{self.fee_display} administrative fee. Cancellation is still free."
                ),
            )
        return CancellationPolicyStatus(
            can_cancel=True,
            can_reschedule=True,
            requires_fee=False,
            fee_amount=0,
            hours_remaining=hours_until,
            time_until_appointment=format_time_until(hours_until),
            policy_message="You can cancel or reschedule free of charge.",
        )


def evaluate_policy(
    appointment_date: str,
    appointment_time: str,
    now: datetime,
    policy: CancellationPolicy | None = None,
) -> CancellationPolicyStatus:
    return (policy or CancellationPolicy.from_settings()).evaluate(appointment_date, appointment_time, now)
