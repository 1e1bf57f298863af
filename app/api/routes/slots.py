from fastapi import APIRouter, Depends, Query

from app.api.deps import get_slot_resolver
from app.api.errors import to_http_exception
from app.api.schemas.appointment import AvailableSlotsResponse, SlotInfo
from app.core.errors import BookingError
from app.services.schedule import parse_calendar_date
from app.services.slot_service import SlotAvailabilityResolver

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/available", response_model=AvailableSlotsResponse)
async def available_slots(
    date_param: str = Query(..., alias="date", description="YYYY-MM-DD"),
    resolver: SlotAvailabilityResolver = Depends(get_slot_resolver),
) -> AvailableSlotsResponse:
    """Return every slot offered on the given date with its availability.

    503 means availability could not be checked; clients must not offer any slot then.
    """
    try:
        day = parse_calendar_date(date_param).isoformat()
        slots = await resolver.resolve(day)
    except BookingError as e:
        raise to_http_exception(e) from e
    return AvailableSlotsResponse(
        date=day,
        slots=[SlotInfo(time=s.time, available=s.available) for s in slots],
    )
