"""Opening-hours arithmetic used to flag short-notice reschedule requests.

Opening hours: Monday-Friday 09:00-22:00, Saturday 09:00-12:00, Sunday closed.
"""
from dataclasses import dataclass
from datetime import datetime, time, timedelta

from app.services.schedule import FRIDAY, MONDAY, SATURDAY, SUNDAY, THURSDAY, TUESDAY, WEDNESDAY, day_of_week

OPENING_HOURS: dict[int, tuple[time, time] | None] = {
    SUNDAY: None,
    MONDAY: (time(9), time(22)),
    TUESDAY: (time(9), time(22)),
    WEDNESDAY: (time(9), time(22)),
    THURSDAY: (time(9), time(22)),
    FRIDAY: (time(9), time(22)),
    SATURDAY: (time(9), time(12)),
}

LATE_NOTICE_HOURS = 4.0


@dataclass(frozen=True)
class WorkingHoursResult:
    working_hours_remaining: float
    is_within_working_hours: bool
    is_late_reschedule: bool


def is_within_working_hours(moment: datetime) -> bool:
    hours = OPENING_HOURS[day_of_week(moment.date())]
    if hours is None:
        return False
    opens, closes = hours
    return opens <= moment.time() < closes


def working_hours_between(start: datetime, end: datetime) -> WorkingHoursResult:
    """Opening hours elapsing between ``start`` and ``end``.

    Less than four working hours of notice counts as a late reschedule.
    """
    if start >= end:
        return WorkingHoursResult(0.0, False, True)

    total = timedelta()
    day = start.date()
    while day <= end.date():
        hours = OPENING_HOURS[day_of_week(day)]
        if hours is not None:
            opens = datetime.combine(day, hours[0])
            closes = datetime.combine(day, hours[1])
            segment_start = max(start, opens)
            segment_end = min(end, closes)
            if segment_end > segment_start:
                total += segment_end - segment_start
        day += timedelta(days=1)

    working_hours = total.total_seconds() / 3600
    return WorkingHoursResult(
        working_hours_remaining=working_hours,
        is_within_working_hours=is_within_working_hours(start),
        is_late_reschedule=working_hours < LATE_NOTICE_HOURS,
    )
