import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import EmptySelectionError
from app.models.blocked_slot import BlockedSlot, BlockedSlotCreate
from app.services.schedule import parse_calendar_date, parse_slot_time

logger = logging.getLogger(__name__)


async def block_slots(session: AsyncSession, data: BlockedSlotCreate) -> BlockedSlot:
    day = parse_calendar_date(data.date).isoformat()
    for t in data.timeslots:
        parse_slot_time(t)
    timeslots = sorted(set(data.timeslots))
    if not timeslots:
        raise EmptySelectionError("At least one timeslot is required")
    record = BlockedSlot(date=day, timeslots=timeslots, reason=data.reason)
    session.add(record)
    await session.flush()
    await session.refresh(record)
    logger.info("Blocked %s on %s (%s)", ", ".join(timeslots), day, data.reason or "no reason")
    return record


async def list_blocked_slots(
    session: AsyncSession, from_date: str | None = None, to_date: str | None = None
) -> list[BlockedSlot]:
    q = select(BlockedSlot).order_by(BlockedSlot.date, BlockedSlot.id)
    # ISO dates sort lexically
    if from_date:
        q = q.where(BlockedSlot.date >= parse_calendar_date(from_date).isoformat())
    if to_date:
        q = q.where(BlockedSlot.date <= parse_calendar_date(to_date).isoformat())
    result = await session.execute(q)
    return list(result.scalars().all())


async def unblock(session: AsyncSession, blocked_id: int) -> bool:
    record = await session.get(BlockedSlot, blocked_id)
    if record is None:
        return False
    await session.delete(record)
    await session.flush()
    logger.info("Unblocked %s on %s", ", ".join(record.timeslots), record.date)
    return True
