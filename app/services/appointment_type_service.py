from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError, ValidationError
from app.models.appointment import COMMITTED_STATUSES, Appointment
from app.models.appointment_type import AppointmentType, AppointmentTypeCreate, AppointmentTypeUpdate


async def get_type(session: AsyncSession, type_id: int) -> AppointmentType:
    appointment_type = await session.get(AppointmentType, type_id)
    if appointment_type is None:
        raise NotFoundError(f"Appointment type {type_id} not found")
    return appointment_type


async def list_types(session: AsyncSession, active_only: bool = False) -> list[AppointmentType]:
    q = select(AppointmentType).order_by(AppointmentType.name)
    if active_only:
        q = q.where(AppointmentType.is_active == True)  # noqa: E712
    result = await session.execute(q)
    return list(result.scalars().all())


async def _ensure_name_free(session: AsyncSession, name: str, exclude_id: int | None = None) -> None:
    q = select(AppointmentType.id).where(AppointmentType.name == name)
    if exclude_id is not None:
        q = q.where(AppointmentType.id != exclude_id)
    result = await session.execute(q.limit(1))
    if result.first() is not None:
        raise ValidationError(f"Appointment type named {name!r} already exists")


async def _flush(session: AsyncSession, name: str) -> None:
    # The unique index still decides when two writers race past the pre-check.
    try:
        await session.flush()
    except IntegrityError as e:
        raise ValidationError(f"Appointment type named {name!r} already exists") from e


async def create_type(session: AsyncSession, data: AppointmentTypeCreate) -> AppointmentType:
    name = data.name.strip()
    if not name:
        raise ValidationError("Appointment type name is required")
    await _ensure_name_free(session, name)
    appointment_type = AppointmentType(
        name=name,
        duration_minutes=data.duration_minutes,
        description=data.description,
    )
    session.add(appointment_type)
    await _flush(session, name)
    await session.refresh(appointment_type)
    return appointment_type


async def is_referenced_by_committed(session: AsyncSession, type_id: int) -> bool:
    result = await session.execute(
        select(Appointment.id)
        .where(
            Appointment.appointment_type_id == type_id,
            Appointment.status.in_(COMMITTED_STATUSES),
        )
        .limit(1)
    )
    return result.first() is not None


async def update_type(
    session: AsyncSession, type_id: int, data: AppointmentTypeUpdate
) -> AppointmentType:
    """Name and duration are frozen once a committed appointment uses the type."""
    appointment_type = await get_type(session, type_id)
    new_name = data.name.strip() if data.name is not None else None
    if new_name == "":
        raise ValidationError("Appointment type name is required")
    changes_identity = (
        (new_name is not None and new_name != appointment_type.name)
        or (data.duration_minutes is not None and data.duration_minutes != appointment_type.duration_minutes)
    )
    if changes_identity and await is_referenced_by_committed(session, type_id):
        raise ValidationError(
            "Appointment type is referenced by committed appointments; only deactivation is allowed"
        )
    if new_name is not None and new_name != appointment_type.name:
        await _ensure_name_free(session, new_name, exclude_id=type_id)
        appointment_type.name = new_name
    if data.duration_minutes is not None:
        appointment_type.duration_minutes = data.duration_minutes
    if data.description is not None:
        appointment_type.description = data.description
    session.add(appointment_type)
    await _flush(session, appointment_type.name)
    await session.refresh(appointment_type)
    return appointment_type


async def set_active(session: AsyncSession, type_id: int, is_active: bool) -> AppointmentType:
    """Soft (de)activation. Existing appointments keep referencing the type unchanged."""
    appointment_type = await get_type(session, type_id)
    appointment_type.is_active = is_active
    session.add(appointment_type)
    await session.flush()
    await session.refresh(appointment_type)
    return appointment_type
