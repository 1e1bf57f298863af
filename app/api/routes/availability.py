from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_session, require_admin
from app.api.errors import to_http_exception
from app.core.errors import BookingError
from app.models.blocked_slot import BlockedSlotCreate, BlockedSlotPublic
from app.services.blocked_slot_service import block_slots, list_blocked_slots, unblock

router = APIRouter(prefix="/availability", tags=["availability"], dependencies=[Depends(require_admin)])


@router.get("/blocked", response_model=list[BlockedSlotPublic])
async def list_blocked(
    from_date: str | None = Query(None),
    to_date: str | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> list[BlockedSlotPublic]:
    try:
        records = await list_blocked_slots(session, from_date=from_date, to_date=to_date)
    except BookingError as e:
        raise to_http_exception(e) from e
    return [BlockedSlotPublic.model_validate(r) for r in records]


@router.post("/blocked", response_model=BlockedSlotPublic, status_code=status.HTTP_201_CREATED)
async def create_blocked(
    body: BlockedSlotCreate,
    session: AsyncSession = Depends(get_session),
) -> BlockedSlotPublic:
    try:
        record = await block_slots(session, body)
    except BookingError as e:
        raise to_http_exception(e) from e
    return BlockedSlotPublic.model_validate(record)


@router.delete("/blocked/{blocked_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_blocked(
    blocked_id: int,
    session: AsyncSession = Depends(get_session),
) -> None:
    if not await unblock(session, blocked_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Blocked slot record not found",
        )
