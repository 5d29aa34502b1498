"""Tests for the appointment type catalogue."""
import pytest

from app.core.errors import NotFoundError, ValidationError
from app.models.appointment_type import AppointmentTypeCreate, AppointmentTypeUpdate
from app.services.appointment_service import confirm_appointment, request_appointment
from app.services.appointment_type_service import (
    create_type,
    get_type,
    is_referenced_by_committed,
    list_types,
    set_active,
    update_type,
)
from conftest import MONDAY, at, upcoming


class TestCreate:
    @pytest.mark.asyncio
    async def test_create(self, session):
        created = await create_type(
            session, AppointmentTypeCreate(name="  Cleaning ", duration_minutes=45, description="Hygienist")
        )

        assert created.id is not None
        assert created.name == "Cleaning"
        assert created.is_active
        assert (await get_type(session, created.id)).duration_minutes == 45

    @pytest.mark.asyncio
    async def test_duplicate_name(self, session, checkup):
        with pytest.raises(ValidationError):
            await create_type(session, AppointmentTypeCreate(name="Checkup", duration_minutes=60))

    @pytest.mark.asyncio
    async def test_blank_name(self, session):
        with pytest.raises(ValidationError):
            await create_type(session, AppointmentTypeCreate(name="   ", duration_minutes=30))

    @pytest.mark.asyncio
    async def test_unknown(self, session):
        with pytest.raises(NotFoundError):
            await get_type(session, 9999)


class TestUpdate:
    @pytest.mark.asyncio
    async def test_unused_type_is_editable(self, session, checkup):
        updated = await update_type(
            session, checkup.id, AppointmentTypeUpdate(name="Consultation", duration_minutes=60)
        )
        assert (updated.name, updated.duration_minutes) == ("Consultation", 60)

    @pytest.mark.asyncio
    async def test_rename_onto_existing_name(self, session, checkup):
        await create_type(session, AppointmentTypeCreate(name="Filling", duration_minutes=60))
        with pytest.raises(ValidationError):
            await update_type(session, checkup.id, AppointmentTypeUpdate(name="Filling"))

    @pytest.mark.asyncio
    async def test_frozen_once_confirmed(self, session, users, checkup, monday_hours):
        monday = upcoming(MONDAY)
        appointment = await request_appointment(session, users["patient"], checkup.id, monday)
        await confirm_appointment(session, users["manager"], appointment.id, users["provider"].id, at(monday, "09:00"))
        assert await is_referenced_by_committed(session, checkup.id)

        with pytest.raises(ValidationError):
            await update_type(session, checkup.id, AppointmentTypeUpdate(duration_minutes=60))
        with pytest.raises(ValidationError):
            await update_type(session, checkup.id, AppointmentTypeUpdate(name="Renamed"))

        updated = await update_type(session, checkup.id, AppointmentTypeUpdate(description="Yearly"))
        assert updated.description == "Yearly"
        assert updated.duration_minutes == 30

    @pytest.mark.asyncio
    async def test_pending_requests_do_not_freeze(self, session, users, checkup):
        await request_appointment(session, users["patient"], checkup.id, upcoming(MONDAY))
        assert not await is_referenced_by_committed(session, checkup.id)

        updated = await update_type(session, checkup.id, AppointmentTypeUpdate(duration_minutes=45))
        assert updated.duration_minutes == 45


class TestDeactivate:
    @pytest.mark.asyncio
    async def test_deactivate_hides_from_active_list(self, session, checkup):
        other = await create_type(session, AppointmentTypeCreate(name="X-Ray", duration_minutes=15))

        await set_active(session, checkup.id, False)

        assert [t.id for t in await list_types(session, active_only=True)] == [other.id]
        assert {t.id for t in await list_types(session)} == {checkup.id, other.id}

    @pytest.mark.asyncio
    async def test_reactivate(self, session, checkup):
        await set_active(session, checkup.id, False)
        assert (await set_active(session, checkup.id, True)).is_active
