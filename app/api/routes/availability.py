from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_session
from app.api.schemas.availability import UpsertAvailabilityRequest
from app.models.availability import AvailabilityBlock, AvailabilityBlockPublic, AvailabilityBlockWrite
from app.models.user import User
from app.services.availability_service import get_block, list_blocks, remove_block, upsert_block
from app.services.identity_service import require_can_manage_availability, require_staff

router = APIRouter(prefix="/providers", tags=["availability"])


def _to_public(block: AvailabilityBlock) -> AvailabilityBlockPublic:
    return AvailabilityBlockPublic.model_validate(block, from_attributes=True)


@router.get("/{provider_id}/availability", response_model=list[AvailabilityBlockPublic])
async def list_availability(
    provider_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> list[AvailabilityBlockPublic]:
    require_staff(current_user, "view raw availability blocks")
    return [_to_public(b) for b in await list_blocks(session, provider_id)]


@router.put("/{provider_id}/availability", response_model=AvailabilityBlockPublic)
async def upsert_availability_block(
    provider_id: int,
    body: UpsertAvailabilityRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> AvailabilityBlockPublic:
    require_can_manage_availability(current_user, provider_id)
    data = AvailabilityBlockWrite.model_validate(body.model_dump(exclude={"id"}))
    block = await upsert_block(session, provider_id, data, block_id=body.id)
    return _to_public(block)


@router.delete("/availability/{block_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_availability_block(
    block_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> None:
    block = await get_block(session, block_id)
    require_can_manage_availability(current_user, block.provider_id)
    await remove_block(session, block_id)
