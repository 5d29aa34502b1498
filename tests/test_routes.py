"""End-to-end tests through the HTTP API.

The app's session dependency is pointed at the in-memory test database and
callers authenticate with tokens minted directly.
"""
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.core.db import get_session
from app.core.security import create_access_token
from app.main import app
from app.models.user import Role, UserCreate
from app.services.auth_service import create_user
from conftest import MONDAY, upcoming


def auth(user) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role.value)}"}


@pytest_asyncio.fixture
async def client(session_maker):
    async def override_get_session():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def request_visit(client, users, checkup, patient="patient"):
    response = await client.post(
        "/api/v1/appointments",
        json={"appointment_type_id": checkup.id, "requested_date": upcoming(MONDAY).isoformat()},
        headers=auth(users[patient]),
    )
    assert response.status_code == 201
    return response.json()


async def confirm_visit(client, users, appointment_id, local_hhmm, actor="manager"):
    start = f"{upcoming(MONDAY).isoformat()}T{local_hhmm}:00+05:30"
    return await client.post(
        f"/api/v1/appointments/{appointment_id}/confirm",
        json={"provider_id": users["provider"].id, "start_time": start},
        headers=auth(users[actor]),
    )


class TestHealthAndAuth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/api/v1/appointments")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_login(self, client, session):
        await create_user(
            session, UserCreate(email="frontdesk@example.com", password="s3cret-pass", role=Role.MANAGER)
        )
        await session.commit()

        response = await client.post(
            "/api/v1/auth/login", json={"email": "frontdesk@example.com", "password": "s3cret-pass"}
        )
        assert response.status_code == 200
        token = response.json()["access_token"]
        me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.json()["role"] == "MANAGER"

        response = await client.post(
            "/api/v1/auth/login", json={"email": "frontdesk@example.com", "password": "wrong"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_me(self, client, users):
        response = await client.get("/api/v1/auth/me", headers=auth(users["provider"]))
        assert response.status_code == 200
        assert response.json()["role"] == "PROVIDER"


class TestSlotsEndpoint:
    @pytest.mark.asyncio
    async def test_lists_local_and_utc_times(self, client, users, checkup, monday_hours):
        response = await client.get(
            "/api/v1/slots/available",
            params={"provider_id": users["provider"].id, "date": upcoming(MONDAY).isoformat(), "type_id": checkup.id},
            headers=auth(users["patient"]),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["duration_minutes"] == 30
        assert len(body["slots"]) == 31
        assert (body["slots"][0]["start_local"], body["slots"][0]["end_local"]) == ("09:00", "09:30")
        assert body["slots"][0]["start_utc"].startswith(f"{upcoming(MONDAY).isoformat()}T03:30")

    @pytest.mark.asyncio
    async def test_unknown_provider_is_404(self, client, users, checkup):
        response = await client.get(
            "/api/v1/slots/available",
            params={"provider_id": 9999, "date": upcoming(MONDAY).isoformat(), "type_id": checkup.id},
            headers=auth(users["patient"]),
        )
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


class TestAvailabilityEndpoints:
    @pytest.mark.asyncio
    async def test_provider_manages_own_blocks(self, client, users):
        provider = users["provider"]
        response = await client.put(
            f"/api/v1/providers/{provider.id}/availability",
            json={"weekday": MONDAY, "start_time_of_day": "09:00", "end_time_of_day": "12:00"},
            headers=auth(provider),
        )
        assert response.status_code == 200
        block_id = response.json()["id"]

        response = await client.put(
            f"/api/v1/providers/{provider.id}/availability",
            json={"id": block_id, "weekday": MONDAY, "start_time_of_day": "08:00", "end_time_of_day": "12:00"},
            headers=auth(provider),
        )
        assert response.json()["start_time_of_day"] == "08:00"

        listed = await client.get(f"/api/v1/providers/{provider.id}/availability", headers=auth(provider))
        assert [b["id"] for b in listed.json()] == [block_id]

        response = await client.delete(f"/api/v1/providers/availability/{block_id}", headers=auth(provider))
        assert response.status_code == 204

    @pytest.mark.asyncio
    async def test_invalid_block_is_422(self, client, users):
        provider = users["provider"]
        response = await client.put(
            f"/api/v1/providers/{provider.id}/availability",
            json={"weekday": MONDAY, "start_time_of_day": "17:00", "end_time_of_day": "09:00"},
            headers=auth(provider),
        )
        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_overlapping_block_is_409(self, client, users, monday_hours):
        provider = users["provider"]
        response = await client.put(
            f"/api/v1/providers/{provider.id}/availability",
            json={"weekday": MONDAY, "start_time_of_day": "16:00", "end_time_of_day": "18:00"},
            headers=auth(provider),
        )
        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

    @pytest.mark.asyncio
    async def test_other_provider_is_403(self, client, users):
        response = await client.put(
            f"/api/v1/providers/{users['provider'].id}/availability",
            json={"weekday": MONDAY, "start_time_of_day": "09:00", "end_time_of_day": "12:00"},
            headers=auth(users["other_provider"]),
        )
        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"


class TestAppointmentTypeEndpoints:
    @pytest.mark.asyncio
    async def test_manager_creates_patient_cannot(self, client, users):
        body = {"name": "Whitening", "duration_minutes": 60}

        response = await client.post("/api/v1/appointment-types", json=body, headers=auth(users["patient"]))
        assert response.status_code == 403

        response = await client.post("/api/v1/appointment-types", json=body, headers=auth(users["manager"]))
        assert response.status_code == 201
        type_id = response.json()["id"]

        response = await client.post(
            f"/api/v1/appointment-types/{type_id}/deactivate", headers=auth(users["manager"])
        )
        assert response.json()["is_active"] is False


class TestAppointmentFlow:
    @pytest.mark.asyncio
    async def test_request_confirm_complete(self, client, users, checkup, monday_hours):
        appointment = await request_visit(client, users, checkup)
        assert appointment["status"] == "PENDING"
        assert appointment["start_time"] is None

        response = await confirm_visit(client, users, appointment["id"], "10:00")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "CONFIRMED"
        assert (body["start_local"], body["end_local"]) == ("10:00", "10:30")

        response = await client.post(
            f"/api/v1/appointments/{appointment['id']}/complete", headers=auth(users["provider"])
        )
        assert response.json()["status"] == "COMPLETED"

    @pytest.mark.asyncio
    async def test_double_booking_is_409_conflict(self, client, users, checkup, monday_hours):
        first = await request_visit(client, users, checkup)
        second = await request_visit(client, users, checkup, patient="other_patient")
        assert (await confirm_visit(client, users, first["id"], "10:00")).status_code == 200

        response = await confirm_visit(client, users, second["id"], "10:15")

        assert response.status_code == 409
        assert response.json()["error"] == "conflict"
        response = await client.get(f"/api/v1/appointments/{second['id']}", headers=auth(users["manager"]))
        assert response.json()["status"] == "PENDING"

    @pytest.mark.asyncio
    async def test_invalid_transition_is_409_invalid_state(self, client, users, checkup):
        appointment = await request_visit(client, users, checkup)

        response = await client.post(
            f"/api/v1/appointments/{appointment['id']}/no-show", headers=auth(users["manager"])
        )

        assert response.status_code == 409
        assert response.json()["error"] == "invalid_state"

    @pytest.mark.asyncio
    async def test_patient_cannot_confirm(self, client, users, checkup, monday_hours):
        appointment = await request_visit(client, users, checkup)
        response = await confirm_visit(client, users, appointment["id"], "10:00", actor="patient")
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_patient_cancels_without_body(self, client, users, checkup):
        appointment = await request_visit(client, users, checkup)

        response = await client.post(
            f"/api/v1/appointments/{appointment['id']}/cancel", headers=auth(users["patient"])
        )

        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"

    @pytest.mark.asyncio
    async def test_list_is_scoped_to_caller(self, client, users, checkup):
        mine = await request_visit(client, users, checkup)
        await request_visit(client, users, checkup, patient="other_patient")

        response = await client.get("/api/v1/appointments", headers=auth(users["patient"]))

        assert [a["id"] for a in response.json()] == [mine["id"]]

    @pytest.mark.asyncio
    async def test_unknown_appointment_is_404(self, client, users):
        response = await client.get("/api/v1/appointments/9999", headers=auth(users["manager"]))
        assert response.status_code == 404
