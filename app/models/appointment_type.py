from datetime import UTC, datetime

from sqlalchemy import CheckConstraint
from sqlmodel import Field, SQLModel

MIN_DURATION_MINUTES = 15
MAX_DURATION_MINUTES = 300


def _utc_naive_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class AppointmentTypeBase(SQLModel):
    name: str = Field(unique=True, index=True)
    duration_minutes: int
    description: str | None = None


class AppointmentType(AppointmentTypeBase, table=True):
    __tablename__ = "appointment_types"
    __table_args__ = (
        CheckConstraint(
            f"duration_minutes BETWEEN {MIN_DURATION_MINUTES} AND {MAX_DURATION_MINUTES}",
            name="ck_appointment_types_duration",
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=_utc_naive_now)


class AppointmentTypeCreate(AppointmentTypeBase):
    duration_minutes: int = Field(ge=MIN_DURATION_MINUTES, le=MAX_DURATION_MINUTES)


class AppointmentTypeUpdate(SQLModel):
    name: str | None = None
    duration_minutes: int | None = Field(default=None, ge=MIN_DURATION_MINUTES, le=MAX_DURATION_MINUTES)
    description: str | None = None


class AppointmentTypePublic(AppointmentTypeBase):
    id: int
    is_active: bool
