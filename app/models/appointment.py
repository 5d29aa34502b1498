from datetime import UTC, date, datetime
from enum import Enum

from sqlalchemy import CheckConstraint, Index
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class AppointmentStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"
    NO_SHOW = "NO_SHOW"


TERMINAL_STATUSES = frozenset(
    {AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW}
)
# Statuses whose time window occupies the provider's calendar
BLOCKING_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)
# Statuses that were committed to a provider and time
COMMITTED_STATUSES = (
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.COMPLETED,
    AppointmentStatus.NO_SHOW,
)


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint(
            "(start_time IS NULL) = (end_time IS NULL)", name="ck_appointments_times_together"
        ),
        CheckConstraint(
            "start_time IS NULL OR start_time < end_time", name="ck_appointments_start_before_end"
        ),
        CheckConstraint(
            "status <> 'PENDING' OR start_time IS NULL", name="ck_appointments_pending_untimed"
        ),
        CheckConstraint(
            "status NOT IN ('CONFIRMED', 'COMPLETED', 'NO_SHOW') OR "
            "(start_time IS NOT NULL AND provider_id IS NOT NULL)",
            name="ck_appointments_committed_timed",
        ),
        Index("ix_appointments_provider_window", "provider_id", "start_time", "end_time"),
    )

    id: int | None = Field(default=None, primary_key=True)
    patient_id: int = Field(foreign_key="users.id", index=True)
    provider_id: int | None = Field(default=None, foreign_key="users.id")
    appointment_type_id: int = Field(foreign_key="appointment_types.id", index=True)
    requested_date: date
    start_time: datetime | None = None
    end_time: datetime | None = None
    status: AppointmentStatus = Field(default=AppointmentStatus.PENDING, index=True)
    notes: str | None = None
    cancellation_reason: str | None = None
    created_at: datetime = Field(default_factory=_utc_naive_now)
    updated_at: datetime = Field(default_factory=_utc_naive_now)


class AppointmentPublic(SQLModel):
    id: int
    patient_id: int
    provider_id: int | None = None
    appointment_type_id: int
    requested_date: date
    start_time: datetime | None = None
    end_time: datetime | None = None
    start_local: str | None = None
    end_local: str | None = None
    status: AppointmentStatus
    notes: str | None = None
    cancellation_reason: str | None = None
    created_at: datetime
    updated_at: datetime
