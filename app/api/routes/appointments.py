from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_notifier, get_session
from app.api.schemas.appointment import (
    CancelAppointmentRequest,
    ConfirmAppointmentRequest,
    RequestAppointmentRequest,
)
from app.core.timezone import normalizer
from app.models.appointment import Appointment, AppointmentPublic, AppointmentStatus
from app.models.user import User
from app.services.appointment_service import (
    cancel_appointment,
    complete_appointment,
    confirm_appointment,
    get_appointment,
    list_appointments,
    mark_no_show,
    request_appointment,
)
from app.services.notification_service import Notifier

router = APIRouter(prefix="/appointments", tags=["appointments"])


def _to_public(a: Appointment) -> AppointmentPublic:
    """Public shape, with the window also rendered in clinic-local HH:MM."""
    start_local = normalizer.to_local(a.start_time)[1] if a.start_time else None
    end_local = normalizer.to_local(a.end_time)[1] if a.end_time else None
    return AppointmentPublic(
        id=a.id,
        patient_id=a.patient_id,
        provider_id=a.provider_id,
        appointment_type_id=a.appointment_type_id,
        requested_date=a.requested_date,
        start_time=a.start_time,
        end_time=a.end_time,
        start_local=start_local,
        end_local=end_local,
        status=a.status,
        notes=a.notes,
        cancellation_reason=a.cancellation_reason,
        created_at=a.created_at,
        updated_at=a.updated_at,
    )


@router.post("", response_model=AppointmentPublic, status_code=status.HTTP_201_CREATED)
async def request_new_appointment(
    body: RequestAppointmentRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> AppointmentPublic:
    appointment = await request_appointment(
        session, current_user, body.appointment_type_id, body.requested_date, body.notes
    )
    return _to_public(appointment)


@router.get("", response_model=list[AppointmentPublic])
async def list_my_appointments(
    status_param: AppointmentStatus | None = Query(None, alias="status"),
    provider_id: int | None = Query(None),
    from_date: date | None = Query(None),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> list[AppointmentPublic]:
    appointments = await list_appointments(
        session, current_user, status=status_param, provider_id=provider_id, from_date=from_date
    )
    return [_to_public(a) for a in appointments]


@router.get("/{appointment_id}", response_model=AppointmentPublic)
async def get_one_appointment(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> AppointmentPublic:
    return _to_public(await get_appointment(session, current_user, appointment_id))


@router.post("/{appointment_id}/confirm", response_model=AppointmentPublic)
async def confirm(
    appointment_id: int,
    body: ConfirmAppointmentRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
    notifier: Notifier = Depends(get_notifier),
) -> AppointmentPublic:
    """Assign provider and time. 409 with error "conflict" means the window was
    taken meanwhile: re-query slots and retry."""
    appointment = await confirm_appointment(
        session, current_user, appointment_id, body.provider_id, body.start_time, notifier=notifier
    )
    return _to_public(appointment)


@router.post("/{appointment_id}/cancel", response_model=AppointmentPublic)
async def cancel(
    appointment_id: int,
    body: CancelAppointmentRequest | None = None,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
    notifier: Notifier = Depends(get_notifier),
) -> AppointmentPublic:
    reason = body.reason if body else None
    appointment = await cancel_appointment(session, current_user, appointment_id, reason, notifier=notifier)
    return _to_public(appointment)


@router.post("/{appointment_id}/complete", response_model=AppointmentPublic)
async def complete(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> AppointmentPublic:
    return _to_public(await complete_appointment(session, current_user, appointment_id))


@router.post("/{appointment_id}/no-show", response_model=AppointmentPublic)
async def no_show(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> AppointmentPublic:
    return _to_public(await mark_no_show(session, current_user, appointment_id))
