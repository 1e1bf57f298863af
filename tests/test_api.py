import pytest
from httpx import ASGITransport, AsyncClient

from app.api.deps import get_now, get_session, get_slot_resolver
from app.main import app
from app.models.appointment import AppointmentStatus
from app.services.slot_service import SlotAvailabilityResolver

from conftest import ADMIN_HEADERS, MONDAY, NOW, SUNDAY, TUESDAY


@pytest.fixture
async def client(session):
    async def _session():
        yield session

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_now] = lambda: NOW
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def _use_resolver(booked, blocked):
    async def fetch_booked(day):
        if isinstance(booked, Exception):
            raise booked
        return booked

    async def fetch_blocked(day):
        if isinstance(blocked, Exception):
            raise blocked
        return blocked

    app.dependency_overrides[get_slot_resolver] = lambda: SlotAvailabilityResolver(fetch_booked, fetch_blocked)


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


class TestAvailableSlots:
    async def test_marks_booked_and_blocked(self, client):
        _use_resolver({"10:00"}, {"11:00"})
        resp = await client.get("/api/v1/slots/available", params={"date": MONDAY})
        assert resp.status_code == 200
        body = resp.json()
        assert body["date"] == MONDAY
        slots = {s["time"]: s["available"] for s in body["slots"]}
        assert slots["09:00"] is True
        assert slots["10:00"] is False
        assert slots["11:00"] is False

    async def test_sunday_is_empty(self, client):
        _use_resolver(set(), set())
        resp = await client.get("/api/v1/slots/available", params={"date": SUNDAY})
        assert resp.status_code == 200
        assert resp.json()["slots"] == []

    async def test_fetch_failure_is_503_not_all_available(self, client):
        _use_resolver(set(), ConnectionError("timeout"))
        resp = await client.get("/api/v1/slots/available", params={"date": MONDAY})
        assert resp.status_code == 503
        assert "Unable to confirm availability" in resp.json()["detail"]

    async def test_invalid_date(self, client):
        _use_resolver(set(), set())
        resp = await client.get("/api/v1/slots/available", params={"date": "next-monday"})
        assert resp.status_code == 422

    async def test_reads_database(self, client, make_appointment):
        await make_appointment(TUESDAY, "19:00", AppointmentStatus.CONFIRMED)
        resp = await client.get("/api/v1/slots/available", params={"date": TUESDAY})
        slots = {s["time"]: s["available"] for s in resp.json()["slots"]}
        assert slots["19:00"] is False
        assert slots["20:00"] is True


class TestAppointments:
    async def _book(self, client, day=MONDAY, timeslot="15:00"):
        return await client.post(
            "/api/v1/appointments",
            json={"date": day, "timeslot": timeslot, "name": "Jana Novak", "email": "jana@example.com"},
        )

    async def _book_with_token(self, client, **kwargs):
        body = (await self._book(client, **kwargs)).json()
        return body["id"], {"X-Appointment-Token": body["access_token"]}

    async def test_book_then_slot_is_taken(self, client):
        resp = await self._book(client)
        assert resp.status_code == 201
        assert resp.json()["status"] == "pending"

        again = await self._book(client)
        assert again.status_code == 409

        slots = await client.get("/api/v1/slots/available", params={"date": MONDAY})
        assert {s["time"]: s["available"] for s in slots.json()["slots"]}["15:00"] is False

    async def test_book_invalid_time(self, client):
        resp = await self._book(client, timeslot="3pm")
        assert resp.status_code == 422

    async def test_policy_endpoint(self, client):
        appointment_id, token = await self._book_with_token(client, timeslot="11:00")
        resp = await client.get(f"/api/v1/appointments/{appointment_id}/policy", headers=token)
        assert resp.status_code == 200
        body = resp.json()
        assert body["requires_fee"] is True
        assert body["fee_amount"] == 5.0
        assert body["currency"] == "EUR"
        assert body["time_until_appointment"] == "3 hours"
        assert body["refresh_seconds"] == 60

    async def test_policy_unknown_appointment(self, client):
        resp = await client.get("/api/v1/appointments/4242/policy", headers={"X-Appointment-Token": "x"})
        assert resp.status_code == 404

    async def test_cancel(self, client):
        appointment_id, token = await self._book_with_token(client)
        resp = await client.post(f"/api/v1/appointments/{appointment_id}/cancel", headers=token)
        assert resp.status_code == 200
        assert resp.json()["appointment"]["status"] == "cancelled"
        assert resp.json()["policy"]["can_cancel"] is True

        again = await client.post(f"/api/v1/appointments/{appointment_id}/cancel", headers=token)
        assert again.status_code == 409

    async def test_cancel_locked_returns_policy(self, client, make_appointment):
        appointment = await make_appointment("2025-03-07", "09:00", AppointmentStatus.CONFIRMED)
        resp = await client.post(
            f"/api/v1/appointments/{appointment.id}/cancel",
            headers={"X-Appointment-Token": appointment.access_token},
        )
        assert resp.status_code == 409
        detail = resp.json()["detail"]
        assert detail["policy"]["can_cancel"] is False
        assert "already passed" in detail["message"]

    async def test_reschedule_request(self, client):
        appointment_id, token = await self._book_with_token(client, timeslot="10:00")
        resp = await client.post(
            f"/api/v1/appointments/{appointment_id}/reschedule-request",
            json={"date": TUESDAY, "timeslot": "18:00", "reason": "sick"},
            headers=token,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["appointment"]["status"] == "reschedule_requested"
        assert body["appointment"]["potential_late_fee"] == 5.0
        assert body["policy"]["requires_fee"] is True


class TestAppointmentAccess:
    async def _book(self, client):
        resp = await client.post(
            "/api/v1/appointments",
            json={"date": MONDAY, "timeslot": "15:00", "name": "Jana Novak", "email": "jana@example.com"},
        )
        assert resp.status_code == 201
        return resp.json()

    async def test_booking_returns_a_token(self, client):
        body = await self._book(client)
        assert len(body["access_token"]) >= 32
        other = await client.post(
            "/api/v1/appointments",
            json={"date": MONDAY, "timeslot": "16:00", "name": "Ana", "email": "ana@example.com"},
        )
        assert other.json()["access_token"] != body["access_token"]

    async def test_read_with_token(self, client):
        body = await self._book(client)
        resp = await client.get(
            f"/api/v1/appointments/{body['id']}", headers={"X-Appointment-Token": body["access_token"]}
        )
        assert resp.status_code == 200
        assert resp.json()["email"] == "jana@example.com"
        assert "access_token" not in resp.json()

    @pytest.mark.parametrize("headers", [{}, {"X-Appointment-Token": "not-the-token"}])
    async def test_anonymous_caller_sees_nothing(self, client, headers):
        appointment_id = (await self._book(client))["id"]
        base = f"/api/v1/appointments/{appointment_id}"
        responses = [
            await client.get(base, headers=headers),
            await client.get(f"{base}/policy", headers=headers),
            await client.post(f"{base}/cancel", headers=headers),
            await client.post(
                f"{base}/reschedule-request",
                json={"date": TUESDAY, "timeslot": "18:00"},
                headers=headers,
            ),
        ]
        for resp in responses:
            assert resp.status_code == 404
            assert "jana@example.com" not in resp.text

    async def test_token_only_opens_its_own_booking(self, client, make_appointment):
        other = await make_appointment(MONDAY, "09:00", AppointmentStatus.CONFIRMED)
        token = (await self._book(client))["access_token"]
        resp = await client.post(
            f"/api/v1/appointments/{other.id}/cancel", headers={"X-Appointment-Token": token}
        )
        assert resp.status_code == 404
        assert other.status == AppointmentStatus.CONFIRMED.value

    async def test_admin_listing_hides_tokens(self, client):
        await self._book(client)
        listed = await client.get("/api/v1/appointments", params={"date": MONDAY}, headers=ADMIN_HEADERS)
        assert listed.status_code == 200
        assert all("access_token" not in a for a in listed.json())


class TestAdmin:
    async def test_requires_key(self, client):
        resp = await client.get("/api/v1/availability/blocked")
        assert resp.status_code == 401
        resp = await client.get("/api/v1/availability/blocked", headers={"X-Admin-Key": "wrong"})
        assert resp.status_code == 401

    async def test_block_list_unblock(self, client):
        resp = await client.post(
            "/api/v1/availability/blocked",
            json={"date": MONDAY, "timeslots": ["13:00", "14:00"], "reason": "conference"},
            headers=ADMIN_HEADERS,
        )
        assert resp.status_code == 201
        blocked_id = resp.json()["id"]

        slots = await client.get("/api/v1/slots/available", params={"date": MONDAY})
        availability = {s["time"]: s["available"] for s in slots.json()["slots"]}
        assert availability["13:00"] is False and availability["14:00"] is False

        listed = await client.get("/api/v1/availability/blocked", headers=ADMIN_HEADERS)
        assert [r["id"] for r in listed.json()] == [blocked_id]

        resp = await client.delete(f"/api/v1/availability/blocked/{blocked_id}", headers=ADMIN_HEADERS)
        assert resp.status_code == 204
        resp = await client.delete(f"/api/v1/availability/blocked/{blocked_id}", headers=ADMIN_HEADERS)
        assert resp.status_code == 404

    async def test_block_rejects_bad_time(self, client):
        resp = await client.post(
            "/api/v1/availability/blocked",
            json={"date": MONDAY, "timeslots": ["25:00"]},
            headers=ADMIN_HEADERS,
        )
        assert resp.status_code == 422

    async def test_block_rejects_empty_selection(self, client):
        resp = await client.post(
            "/api/v1/availability/blocked",
            json={"date": MONDAY, "timeslots": []},
            headers=ADMIN_HEADERS,
        )
        assert resp.status_code == 422
        listed = await client.get("/api/v1/availability/blocked", headers=ADMIN_HEADERS)
        assert listed.json() == []

    async def test_list_and_confirm_appointments(self, client, make_appointment):
        appointment = await make_appointment(MONDAY, "16:00")
        listed = await client.get("/api/v1/appointments", params={"date": MONDAY}, headers=ADMIN_HEADERS)
        assert listed.status_code == 200
        assert [a["id"] for a in listed.json()] == [appointment.id]

        resp = await client.patch(
            f"/api/v1/appointments/{appointment.id}/status",
            json={"status": "confirmed"},
            headers=ADMIN_HEADERS,
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "confirmed"


async def test_unhandled_error_is_generic(caplog):
    def broken_resolver():
        raise RuntimeError("secret detail from the database driver")

    app.dependency_overrides[get_slot_resolver] = broken_resolver
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            resp = await c.get("/api/v1/slots/available", params={"date": MONDAY})
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 500
    assert resp.json() == {"detail": "Internal server error"}
    assert "secret detail" not in resp.text
    assert "RuntimeError" not in resp.text
    assert "secret detail from the database driver" in caplog.text
