"""Identity lookups and the authorization rules the scheduling core relies on."""
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AuthorizationError, NotFoundError
from app.models.appointment import Appointment
from app.models.user import Role, User


async def resolve_provider(session: AsyncSession, provider_id: int) -> User:
    user = await session.get(User, provider_id)
    if user is None or user.role != Role.PROVIDER:
        raise NotFoundError(f"Provider {provider_id} not found")
    return user


def require_staff(actor: User, action: str) -> None:
    if not actor.is_staff:
        raise AuthorizationError(f"Only clinic staff can {action}")


def require_patient(actor: User) -> None:
    if actor.role != Role.PATIENT:
        raise AuthorizationError("Only patients can request appointments")


def require_can_cancel(actor: User, appointment: Appointment) -> None:
    # Patients may only cancel their own appointments; staff may cancel any.
    if actor.is_staff:
        return
    if appointment.patient_id != actor.id:
        raise AuthorizationError("Not authorized to cancel this appointment")


def require_can_view(actor: User, appointment: Appointment) -> None:
    if actor.role == Role.MANAGER:
        return
    if actor.role == Role.PATIENT and appointment.patient_id == actor.id:
        return
    if actor.role == Role.PROVIDER and appointment.provider_id == actor.id:
        return
    raise AuthorizationError("Not authorized to view this appointment")


def require_can_manage_availability(actor: User, provider_id: int) -> None:
    """Providers manage their own blocks; managers manage anyone's."""
    if actor.role == Role.MANAGER:
        return
    if actor.role == Role.PROVIDER and actor.id == provider_id:
        return
    raise AuthorizationError("Not authorized to manage this provider's availability")
