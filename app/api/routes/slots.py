from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_session
from app.api.schemas.appointment import AvailableSlotsResponse, SlotInfo
from app.core.timezone import normalizer
from app.models.user import User
from app.services.slot_service import list_available_slots

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/available", response_model=AvailableSlotsResponse)
async def available_slots(
    provider_id: int = Query(...),
    date_param: date = Query(..., alias="date"),
    type_id: int = Query(...),
    slot_interval: int | None = Query(None, ge=5, le=240),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> AvailableSlotsResponse:
    """Free windows for a provider on a clinic-local date, sized by the appointment type."""
    slots, duration = await list_available_slots(
        session, provider_id, date_param, type_id, slot_interval_minutes=slot_interval
    )
    return AvailableSlotsResponse(
        provider_id=provider_id,
        date=date_param.isoformat(),
        duration_minutes=duration,
        slots=[
            SlotInfo(
                start_utc=s.start,
                end_utc=s.end,
                start_local=normalizer.to_local(s.start)[1],
                end_local=normalizer.to_local(s.end)[1],
            )
            for s in slots
        ],
    )
