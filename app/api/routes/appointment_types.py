from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_session
from app.core.errors import AuthorizationError
from app.models.appointment_type import (
    AppointmentType,
    AppointmentTypeCreate,
    AppointmentTypePublic,
    AppointmentTypeUpdate,
)
from app.models.user import Role, User
from app.services.appointment_type_service import create_type, get_type, list_types, set_active, update_type

router = APIRouter(prefix="/appointment-types", tags=["appointment-types"])


def _require_manager(user: User) -> None:
    if user.role != Role.MANAGER:
        raise AuthorizationError("Only clinic managers can manage appointment types")


def _to_public(t: AppointmentType) -> AppointmentTypePublic:
    return AppointmentTypePublic.model_validate(t, from_attributes=True)


@router.get("", response_model=list[AppointmentTypePublic])
async def list_appointment_types(
    active_only: bool = Query(False),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> list[AppointmentTypePublic]:
    return [_to_public(t) for t in await list_types(session, active_only=active_only)]


@router.post("", response_model=AppointmentTypePublic, status_code=status.HTTP_201_CREATED)
async def create_appointment_type(
    body: AppointmentTypeCreate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> AppointmentTypePublic:
    _require_manager(current_user)
    return _to_public(await create_type(session, body))


@router.get("/{type_id}", response_model=AppointmentTypePublic)
async def get_appointment_type(
    type_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> AppointmentTypePublic:
    return _to_public(await get_type(session, type_id))


@router.patch("/{type_id}", response_model=AppointmentTypePublic)
async def update_appointment_type(
    type_id: int,
    body: AppointmentTypeUpdate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> AppointmentTypePublic:
    _require_manager(current_user)
    return _to_public(await update_type(session, type_id, body))


@router.post("/{type_id}/deactivate", response_model=AppointmentTypePublic)
async def deactivate_appointment_type(
    type_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> AppointmentTypePublic:
    _require_manager(current_user)
    return _to_public(await set_active(session, type_id, False))
