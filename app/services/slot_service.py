import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import DataFetchError
from app.models.appointment import SLOT_HOLDING_STATUSES, Appointment
from app.models.blocked_slot import BlockedSlot
from app.services.schedule import DAY_RULES, candidate_times, parse_calendar_date

logger = logging.getLogger(__name__)

SlotFetcher = Callable[[str], Awaitable[Iterable[str]]]


@dataclass(frozen=True)
class TimeSlot:
    time: str  # HH:MM
    available: bool = field(compare=False)


async def fetch_booked_slots(session: AsyncSession, day: str) -> set[str]:
    """Timeslots held by pending or confirmed appointments on ``day``."""
    result = await session.execute(
        select(Appointment.timeslot).where(
            Appointment.date == day,
            Appointment.status.in_([s.value for s in SLOT_HOLDING_STATUSES]),
        )
    )
    return {row[0] for row in result.all()}


async def fetch_blocked_slots(session: AsyncSession, day: str) -> set[str]:
    """Union of every admin block recorded for ``day``."""
    result = await session.execute(select(BlockedSlot.timeslots).where(BlockedSlot.date == day))
    blocked: set[str] = set()
    for (timeslots,) in result.all():
        blocked.update(timeslots or [])
    return blocked


def resolve_slots(
    candidates: Iterable[str], booked: Iterable[str], blocked: Iterable[str]
) -> list[TimeSlot]:
    """A candidate is available only if it is neither booked nor blocked."""
    excluded = set(booked) | set(blocked)
    return [TimeSlot(time=t, available=t not in excluded) for t in candidates]


class SlotAvailabilityResolver:
    """Marks each of a date's candidate slots as available or not.

    Both lookups must succeed before anything is returned. If either fails or
    times out, DataFetchError is raised instead of guessing, so callers can tell
    "no slots that day" (empty list) from "could not check" (exception).
    """

    def __init__(
        self,
        fetch_booked: SlotFetcher,
        fetch_blocked: SlotFetcher,
        rules: Mapping[int, Iterable[str]] = DAY_RULES,
        timeout: float | None = None,
        concurrent: bool = True,
    ) -> None:
        self._fetch_booked = fetch_booked
        self._fetch_blocked = fetch_blocked
        self._rules = rules
        self._timeout = timeout
        self._concurrent = concurrent

    async def resolve(self, day: str) -> list[TimeSlot]:
        d = parse_calendar_date(day)
        candidates = candidate_times(d, self._rules)
        if not candidates:
            return []
        key = d.isoformat()
        booked, blocked = await self._fetch_both(key)
        return resolve_slots(candidates, booked, blocked)

    async def _fetch_both(self, day: str) -> tuple[set[str], set[str]]:
        if not self._concurrent:
            booked = await self._guarded("booked", self._fetch_booked, day)
            blocked = await self._guarded("blocked", self._fetch_blocked, day)
            return booked, blocked
        # Wait for both even if one fails; a half-known answer is never used
        results = await asyncio.gather(
            self._guarded("booked", self._fetch_booked, day),
            self._guarded("blocked", self._fetch_blocked, day),
            return_exceptions=True,
        )
        for r in results:
            if isinstance(r, BaseException):
                raise r
        booked, blocked = results
        return booked, blocked

    async def _guarded(self, name: str, fetch: SlotFetcher, day: str) -> set[str]:
        try:
            if self._timeout is None:
                values = await fetch(day)
            else:
                values = await asyncio.wait_for(fetch(day), timeout=self._timeout)
            return set(values)
        except TimeoutError as e:
            logger.warning("Fetching %s slots for %s timed out after %ss", name, day, self._timeout)
            raise DataFetchError(f"Timed out fetching {name} slots for {day}") from e
        except Exception as e:
            logger.exception("Fetching %s slots for %s failed: %s", name, day, e)
            raise DataFetchError(f"Could not fetch {name} slots for {day}") from e


def resolver_for_session(session: AsyncSession) -> SlotAvailabilityResolver:
    """Resolver reading from the database. One AsyncSession cannot run two
    queries at once, so the lookups run one after the other."""

    async def booked(day: str) -> set[str]:
        return await fetch_booked_slots(session, day)

    async def blocked(day: str) -> set[str]:
        return await fetch_blocked_slots(session, day)

    return SlotAvailabilityResolver(
        booked,
        blocked,
        timeout=settings.slot_fetch_timeout_seconds,
        concurrent=False,
    )
