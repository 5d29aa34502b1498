from app.models.user import Role, User, UserCreate, UserPublic
from app.models.appointment_type import (
    AppointmentType,
    AppointmentTypeCreate,
    AppointmentTypePublic,
    AppointmentTypeUpdate,
)
from app.models.availability import AvailabilityBlock, AvailabilityBlockPublic, AvailabilityBlockWrite
from app.models.provider_calendar import ProviderCalendar
from app.models.appointment import Appointment, AppointmentPublic, AppointmentStatus

__all__ = [
    "Role",
    "User",
    "UserCreate",
    "UserPublic",
    "AppointmentType",
    "AppointmentTypeCreate",
    "AppointmentTypePublic",
    "AppointmentTypeUpdate",
    "AvailabilityBlock",
    "AvailabilityBlockPublic",
    "AvailabilityBlockWrite",
    "ProviderCalendar",
    "Appointment",
    "AppointmentPublic",
    "AppointmentStatus",
]
