"""Appointment lifecycle.

Every status change is checked against ``TRANSITIONS`` first and then written
with a single-row UPDATE guarded by the status that was read, so two staff
sessions racing on the same appointment cannot both win. Confirmation also
commits through the provider's calendar version (see ``conflict_service``).
"""
import logging
from datetime import UTC, date, datetime, timedelta
from enum import Enum

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import ConflictError, NotFoundError, StateError, ValidationError
from app.core.timezone import normalizer, to_naive_utc
from app.models.appointment import Appointment, AppointmentStatus
from app.models.user import Role, User
from app.services.appointment_type_service import get_type
from app.services.availability_service import list_blocks_for_date
from app.services.conflict_service import bump_calendar_version, overlaps, read_calendar_version
from app.services.identity_service import (
    require_can_cancel,
    require_can_view,
    require_patient,
    require_staff,
    resolve_provider,
)
from app.services.notification_service import Notifier

logger = logging.getLogger(__name__)

EXPIRED_REQUEST_REASON = "Request expired"


class Action(str, Enum):
    CONFIRM = "confirm"
    CANCEL = "cancel"
    COMPLETE = "complete"
    NO_SHOW = "no_show"


# action -> (allowed source statuses, target status)
TRANSITIONS: dict[Action, tuple[frozenset[AppointmentStatus], AppointmentStatus]] = {
    Action.CONFIRM: (frozenset({AppointmentStatus.PENDING}), AppointmentStatus.CONFIRMED),
    Action.CANCEL: (
        frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED}),
        AppointmentStatus.CANCELLED,
    ),
    Action.COMPLETE: (frozenset({AppointmentStatus.CONFIRMED}), AppointmentStatus.COMPLETED),
    Action.NO_SHOW: (frozenset({AppointmentStatus.CONFIRMED}), AppointmentStatus.NO_SHOW),
}


def check_transition(current: AppointmentStatus, action: Action) -> AppointmentStatus:
    """Return the target status, or raise StateError if ``action`` is not allowed from ``current``."""
    sources, target = TRANSITIONS[action]
    if current not in sources:
        raise StateError(f"Cannot {action.value.replace('_', '-')} an appointment that is {current.value}")
    return target


def _utc_naive_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


async def get_appointment_record(session: AsyncSession, appointment_id: int) -> Appointment:
    appointment = await session.get(Appointment, appointment_id, populate_existing=True)
    if appointment is None:
        raise NotFoundError(f"Appointment {appointment_id} not found")
    return appointment


async def _apply_transition(
    session: AsyncSession, appointment: Appointment, action: Action, **values: object
) -> Appointment:
    read_status = appointment.status
    target = check_transition(read_status, action)
    result = await session.execute(
        update(Appointment)
        .where(Appointment.id == appointment.id, Appointment.status == read_status)
        .values(status=target, updated_at=_utc_naive_now(), **values)
        .execution_options(synchronize_session=False)
    )
    await session.refresh(appointment)
    if result.rowcount != 1:
        raise StateError(
            f"Appointment {appointment.id} changed to {appointment.status.value} concurrently"
        )
    logger.info("Appointment %s: %s -> %s", appointment.id, read_status.value, target.value)
    return appointment


async def _notify(session: AsyncSession, notifier: Notifier | None, event: str, appointment: Appointment) -> None:
    """Fire-and-forget; a failing notifier never undoes the transition."""
    if notifier is None:
        return
    try:
        patient = await session.get(User, appointment.patient_id)
        getattr(notifier, event)(appointment, patient)
    except Exception:
        logger.exception("Notification %s for appointment %s failed", event, appointment.id)


async def request_appointment(
    session: AsyncSession,
    actor: User,
    type_id: int,
    requested_date: date,
    notes: str | None = None,
    today: date | None = None,
) -> Appointment:
    require_patient(actor)
    appointment_type = await get_type(session, type_id)
    if not appointment_type.is_active:
        raise ValidationError(f"Appointment type {appointment_type.name!r} is not available for booking")
    today = today or normalizer.local_date(_utc_naive_now())
    if requested_date < today:
        raise ValidationError("requested_date is in the past")
    appointment = Appointment(
        patient_id=actor.id,
        appointment_type_id=appointment_type.id,
        requested_date=requested_date,
        notes=notes,
        status=AppointmentStatus.PENDING,
    )
    session.add(appointment)
    await session.flush()
    await session.refresh(appointment)
    logger.info("Appointment %s requested by patient %s for %s", appointment.id, actor.id, requested_date)
    return appointment


async def _fits_availability(session: AsyncSession, provider_id: int, start: datetime, end: datetime) -> bool:
    d = normalizer.local_date(start)
    for block in await list_blocks_for_date(session, provider_id, d):
        if normalizer.to_utc(d, block.start_time_of_day) <= start and end <= normalizer.to_utc(d, block.end_time_of_day):
            return True
    return False


async def confirm_appointment(
    session: AsyncSession,
    actor: User,
    appointment_id: int,
    provider_id: int,
    start_time: datetime,
    notifier: Notifier | None = None,
) -> Appointment:
    """Assign provider and time to a PENDING request.

    The overlap check runs against the provider's calendar as it is now, not
    against whatever slot list the caller looked at. The commit then
    compare-and-swaps the calendar version; if another confirm for the same
    provider landed in between, the check is repeated on fresh data.
    """
    require_staff(actor, "confirm appointments")
    appointment = await get_appointment_record(session, appointment_id)
    check_transition(appointment.status, Action.CONFIRM)
    await resolve_provider(session, provider_id)
    appointment_type = await get_type(session, appointment.appointment_type_id)

    start = to_naive_utc(start_time)
    end = start + timedelta(minutes=appointment_type.duration_minutes)
    if normalizer.local_date(start) != appointment.requested_date:
        raise ValidationError("start_time must be on the requested date")
    if start < _utc_naive_now():
        raise ValidationError("start_time is in the past")
    if settings.enforce_availability_on_confirm and not await _fits_availability(
        session, provider_id, start, end
    ):
        raise ValidationError("start_time is outside the provider's availability")

    for attempt in range(1, settings.confirm_max_attempts + 1):
        version = await read_calendar_version(session, provider_id)
        if await overlaps(session, provider_id, start, end, exclude_appointment_id=appointment.id):
            logger.info(
                "Confirm of appointment %s rejected: provider %s busy %s-%s",
                appointment.id, provider_id, start, end,
            )
            raise ConflictError("Chosen slot conflicts with an existing appointment")
        if await bump_calendar_version(session, provider_id, version):
            break
        logger.info(
            "Calendar of provider %s changed during confirm of appointment %s (attempt %d)",
            provider_id, appointment.id, attempt,
        )
    else:
        raise ConflictError("Provider calendar changed concurrently; re-query slots and retry")

    await _apply_transition(
        session, appointment, Action.CONFIRM, provider_id=provider_id, start_time=start, end_time=end
    )
    await _notify(session, notifier, "appointment_confirmed", appointment)
    return appointment


async def cancel_appointment(
    session: AsyncSession,
    actor: User,
    appointment_id: int,
    reason: str | None = None,
    notifier: Notifier | None = None,
) -> Appointment:
    appointment = await get_appointment_record(session, appointment_id)
    require_can_cancel(actor, appointment)
    await _apply_transition(session, appointment, Action.CANCEL, cancellation_reason=reason)
    await _notify(session, notifier, "appointment_cancelled", appointment)
    return appointment


async def complete_appointment(session: AsyncSession, actor: User, appointment_id: int) -> Appointment:
    require_staff(actor, "complete appointments")
    appointment = await get_appointment_record(session, appointment_id)
    return await _apply_transition(session, appointment, Action.COMPLETE)


async def mark_no_show(session: AsyncSession, actor: User, appointment_id: int) -> Appointment:
    require_staff(actor, "mark no-shows")
    appointment = await get_appointment_record(session, appointment_id)
    return await _apply_transition(session, appointment, Action.NO_SHOW)


async def get_appointment(session: AsyncSession, actor: User, appointment_id: int) -> Appointment:
    appointment = await get_appointment_record(session, appointment_id)
    require_can_view(actor, appointment)
    return appointment


async def list_appointments(
    session: AsyncSession,
    actor: User,
    status: AppointmentStatus | None = None,
    provider_id: int | None = None,
    from_date: date | None = None,
) -> list[Appointment]:
    """Patients see their own, providers the ones assigned to them, managers everything."""
    q = select(Appointment).order_by(Appointment.requested_date, Appointment.start_time, Appointment.id)
    if actor.role == Role.PATIENT:
        q = q.where(Appointment.patient_id == actor.id)
    elif actor.role == Role.PROVIDER:
        q = q.where(Appointment.provider_id == actor.id)
    if provider_id is not None:
        q = q.where(Appointment.provider_id == provider_id)
    if status is not None:
        q = q.where(Appointment.status == status)
    if from_date is not None:
        q = q.where(Appointment.requested_date >= from_date)
    result = await session.execute(q)
    return list(result.scalars().all())


async def expire_stale_requests(session: AsyncSession, days: int, today: date | None = None) -> int:
    """Cancel PENDING requests whose requested date is more than ``days`` in the past.
    Returns count cancelled."""
    today = today or normalizer.local_date(_utc_naive_now())
    cutoff = today - timedelta(days=days)
    result = await session.execute(
        select(Appointment).where(
            Appointment.status == AppointmentStatus.PENDING,
            Appointment.requested_date < cutoff,
        )
    )
    expired = 0
    for appointment in result.scalars().all():
        try:
            await _apply_transition(
                session, appointment, Action.CANCEL, cancellation_reason=EXPIRED_REQUEST_REASON
            )
        except StateError:
            # Confirmed or cancelled by staff since the select
            continue
        expired += 1
    return expired
