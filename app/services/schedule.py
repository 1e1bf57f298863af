"""Weekly opening table: which HH:MM slots are offered on each day of the week.

Days are numbered 0=Sunday .. 6=Saturday. Changing business hours is a change
to ``DAY_RULES`` only; the availability algorithm reads whatever is here.
"""
from collections.abc import Iterable, Mapping
from datetime import date, datetime, time
from types import MappingProxyType

from app.core.errors import InvalidDateError

SUNDAY, MONDAY, TUESDAY, WEDNESDAY, THURSDAY, FRIDAY, SATURDAY = range(7)

_SATURDAY_SLOTS = ("09:00", "10:00", "11:00")
_STANDARD_SLOTS = ("09:00", "10:00", "11:00", "13:00", "14:00", "15:00", "16:00", "17:00")
_EXTENDED_SLOTS = _STANDARD_SLOTS + ("18:00", "19:00", "20:00")

DAY_RULES: Mapping[int, tuple[str, ...]] = MappingProxyType(
    {
        SUNDAY: (),
        MONDAY: _STANDARD_SLOTS,
        TUESDAY: _EXTENDED_SLOTS,
        WEDNESDAY: _STANDARD_SLOTS,
        THURSDAY: _EXTENDED_SLOTS,
        FRIDAY: _STANDARD_SLOTS,
        SATURDAY: _SATURDAY_SLOTS,
    }
)


def parse_calendar_date(value: str) -> date:
    """Parse YYYY-MM-DD."""
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError) as e:
        raise InvalidDateError(f"Invalid date {value!r}, expected YYYY-MM-DD") from e


def parse_slot_time(value: str) -> time:
    """Parse a 24h HH:MM slot time."""
    try:
        parsed = datetime.strptime(value, "%H:%M").time()
    except (TypeError, ValueError) as e:
        raise InvalidDateError(f"Invalid time {value!r}, expected HH:MM") from e
    if len(value) != 5:
        raise InvalidDateError(f"Invalid time {value!r}, expected HH:MM")
    return parsed


def day_of_week(d: date) -> int:
    return d.isoweekday() % 7


def validate_day_rules(rules: Mapping[int, Iterable[str]]) -> None:
    """Raise ValueError unless the table covers 0..6, Sunday is closed and every
    other day lists strictly increasing HH:MM times."""
    if set(rules) != set(range(7)):
        raise ValueError("Day rules must define days 0 (Sunday) through 6 (Saturday)")
    if tuple(rules[SUNDAY]):
        raise ValueError("Sunday must not offer any slots")
    for day in range(1, 7):
        times = tuple(rules[day])
        if not times:
            raise ValueError(f"Day {day} must offer at least one slot")
        try:
            parsed = [parse_slot_time(t) for t in times]
        except InvalidDateError as e:
            raise ValueError(f"Day {day}: {e}") from e
        if any(a >= b for a, b in zip(parsed, parsed[1:])):
            raise ValueError(f"Day {day} slots must be strictly increasing without duplicates")


def candidate_times(d: date, rules: Mapping[int, Iterable[str]] = DAY_RULES) -> list[str]:
    return list(rules.get(day_of_week(d), ()))


validate_day_rules(DAY_RULES)
