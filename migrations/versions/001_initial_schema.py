"""Initial schema: users, appointment_types, availability_blocks, provider_calendars, appointments.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-16

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ROLE = sa.Enum("PATIENT", "PROVIDER", "MANAGER", name="role")
APPOINTMENT_STATUS = sa.Enum(
    "PENDING", "CONFIRMED", "CANCELLED", "COMPLETED", "NO_SHOW", name="appointmentstatus"
)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("role", ROLE, nullable=False, server_default="PATIENT"),
        sa.Column("hashed_password", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    op.create_index(op.f("ix_users_role"), "users", ["role"], unique=False)

    op.create_table(
        "appointment_types",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("duration_minutes BETWEEN 15 AND 300", name="ck_appointment_types_duration"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_appointment_types_name"), "appointment_types", ["name"], unique=True)
    op.create_index(op.f("ix_appointment_types_is_active"), "appointment_types", ["is_active"], unique=False)

    op.create_table(
        "availability_blocks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("provider_id", sa.Integer(), nullable=False),
        sa.Column("weekday", sa.Integer(), nullable=False),
        sa.Column("start_time_of_day", sa.String(), nullable=False),
        sa.Column("end_time_of_day", sa.String(), nullable=False),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("weekday BETWEEN 0 AND 6", name="ck_availability_blocks_weekday"),
        sa.CheckConstraint(
            "start_time_of_day < end_time_of_day", name="ck_availability_blocks_start_before_end"
        ),
        sa.ForeignKeyConstraint(["provider_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_availability_blocks_provider_id"), "availability_blocks", ["provider_id"], unique=False)

    op.create_table(
        "provider_calendars",
        sa.Column("provider_id", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["provider_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("provider_id"),
    )

    op.create_table(
        "appointments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("patient_id", sa.Integer(), nullable=False),
        sa.Column("provider_id", sa.Integer(), nullable=True),
        sa.Column("appointment_type_id", sa.Integer(), nullable=False),
        sa.Column("requested_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.DateTime(), nullable=True),
        sa.Column("end_time", sa.DateTime(), nullable=True),
        sa.Column("status", APPOINTMENT_STATUS, nullable=False, server_default="PENDING"),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("cancellation_reason", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("(start_time IS NULL) = (end_time IS NULL)", name="ck_appointments_times_together"),
        sa.CheckConstraint("start_time IS NULL OR start_time < end_time", name="ck_appointments_start_before_end"),
        sa.CheckConstraint("status <> 'PENDING' OR start_time IS NULL", name="ck_appointments_pending_untimed"),
        sa.CheckConstraint(
            "status NOT IN ('CONFIRMED', 'COMPLETED', 'NO_SHOW') OR "
            "(start_time IS NOT NULL AND provider_id IS NOT NULL)",
            name="ck_appointments_committed_timed",
        ),
        # Confirmed appointments are history: a patient or provider with appointments cannot be deleted
        sa.ForeignKeyConstraint(["patient_id"], ["users.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["provider_id"], ["users.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["appointment_type_id"], ["appointment_types.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_appointments_patient_id"), "appointments", ["patient_id"], unique=False)
    op.create_index(op.f("ix_appointments_appointment_type_id"), "appointments", ["appointment_type_id"], unique=False)
    op.create_index(op.f("ix_appointments_status"), "appointments", ["status"], unique=False)
    op.create_index(
        "ix_appointments_provider_window", "appointments", ["provider_id", "start_time", "end_time"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_appointments_provider_window", table_name="appointments")
    op.drop_index(op.f("ix_appointments_status"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_appointment_type_id"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_patient_id"), table_name="appointments")
    op.drop_table("appointments")
    op.drop_table("provider_calendars")
    op.drop_index(op.f("ix_availability_blocks_provider_id"), table_name="availability_blocks")
    op.drop_table("availability_blocks")
    op.drop_index(op.f("ix_appointment_types_is_active"), table_name="appointment_types")
    op.drop_index(op.f("ix_appointment_types_name"), table_name="appointment_types")
    op.drop_table("appointment_types")
    op.drop_index(op.f("ix_users_role"), table_name="users")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
    APPOINTMENT_STATUS.drop(op.get_bind(), checkfirst=True)
    ROLE.drop(op.get_bind(), checkfirst=True)
