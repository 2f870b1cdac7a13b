from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from queueline.main import app
from queueline.core.config import settings
from queueline.services.appointment_service import AppointmentService
from tests.conftest import register, next_weekday

MONDAY = next_weekday(0)

def book(client, clinic, time="09:00", headers=None, **overrides):
    payload = {
        "organization_id": clinic["organization"]["id"],
        "expert_name": "Dr. A",
        "service_name": "Consultation",
        "appointment_date": MONDAY.isoformat(),
        "appointment_time": time,
        "notes": "First visit"
    }
    payload.update(overrides)
    return client.post("/api/v1/appointments", json=payload, headers=headers or clinic["user_headers"])

def set_status(client, clinic, appointment_id, new_status, headers=None):
    return client.put(
        f"/api/v1/appointments/{appointment_id}/status",
        json={"status": new_status},
        headers=headers or clinic["owner_headers"]
    )

def queue(client, clinic, **params):
    response = client.get(
        f"/api/v1/appointments/organization/{clinic['organization']['id']}",
        params=params,
        headers=clinic["owner_headers"]
    )
    assert response.status_code == 200
    return response.json()["data"]["appointments"]

class TestBooking:

    def test_book_first_in_queue(self, client, clinic):
        """Test the first booking of the day gets position 1 and no wait."""
        response = book(client, clinic)
        assert response.status_code == 201

        body = response.json()
        assert body["success"] is True
        appointment = body["data"]["appointment"]
        assert appointment["status"] == "pending"
        assert appointment["queue_position"] == 1
        assert appointment["estimated_wait_time"] == 0
        assert appointment["appointment_date"] == MONDAY.isoformat()
        assert appointment["user"] == {
            "id": clinic["user_id"], "name": "Pat Patient",
            "email": "patient@example.com", "phone": "555-0100"
        }
        assert appointment["organization"]["name"] == "Central Clinic"
        assert appointment["organization"]["category"] == "Clinic"

    def test_queue_position_and_wait_grow(self, client, clinic):
        """Test later bookings queue behind active ones."""
        book(client, clinic, "09:00")
        book(client, clinic, "09:20")
        appointment = book(client, clinic, "09:40").json()["data"]["appointment"]

        assert appointment["queue_position"] == 3
        assert appointment["estimated_wait_time"] == 40

    def test_same_slot_is_taken(self, client, clinic):
        """Test a second booking of the same expert and time is rejected."""
        assert book(client, clinic, "09:00").status_code == 201

        _, other_headers = register(client, "other@example.com")
        response = book(client, clinic, "09:00", headers=other_headers)
        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Slot is already taken"}

    def test_cancelled_slot_can_be_rebooked(self, client, clinic):
        """Test cancelling frees the slot again."""
        appointment_id = book(client, clinic, "09:00").json()["data"]["appointment"]["id"]
        client.delete(f"/api/v1/appointments/{appointment_id}", headers=clinic["user_headers"])

        assert book(client, clinic, "09:00").status_code == 201

    def test_before_opening(self, client, clinic):
        """Test a booking one minute before opening is rejected."""
        response = book(client, clinic, "08:59")
        assert response.status_code == 400
        assert "outside working hours" in response.json()["message"]

    def test_at_closing_time(self, client, clinic):
        """Test a booking exactly at closing time is accepted."""
        assert book(client, clinic, "17:00").status_code == 201

    def test_closed_day(self, client, clinic):
        """Test a weekday without working hours is rejected."""
        tuesday = MONDAY + timedelta(days=1)
        response = book(client, clinic, appointment_date=tuesday.isoformat())
        assert response.status_code == 400
        assert "outside working hours" in response.json()["message"]

    def test_past_date(self, client, clinic):
        """Test booking before today fails whatever the other fields are."""
        last_monday = MONDAY - timedelta(days=14)
        for time in ("09:00", "03:00"):
            response = book(client, clinic, time, appointment_date=last_monday.isoformat(), expert_name="Nobody")
            assert response.status_code == 400
            assert response.json()["message"] == "Cannot book appointment in the past"

    @pytest.mark.parametrize("missing", [
        "organization_id", "expert_name", "service_name", "appointment_date", "appointment_time"
    ])
    def test_missing_fields(self, client, clinic, missing):
        """Test every required field is checked first."""
        response = book(client, clinic, **{missing: None})
        assert response.status_code == 400
        assert response.json()["message"] == "Please provide all required fields"

    def test_unknown_organization(self, client, clinic):
        response = book(client, clinic, organization_id=999)
        assert response.status_code == 404
        assert response.json()["message"] == "Organization not found"

    def test_unknown_expert(self, client, clinic):
        response = book(client, clinic, expert_name="Dr. Z")
        assert response.status_code == 404
        assert response.json()["message"] == "Expert not found"

    def test_unavailable_expert(self, client, clinic):
        response = book(client, clinic, expert_name="Dr. B")
        assert response.status_code == 400
        assert response.json()["message"] == "Expert is not available"

    def test_malformed_time(self, client, clinic):
        """Test an unparseable time fails the working-hours check."""
        response = book(client, clinic, "9am")
        assert response.status_code == 400
        assert "outside working hours" in response.json()["message"]

    def test_past_date_with_malformed_time(self, client, clinic):
        last_monday = MONDAY - timedelta(days=7)
        response = book(client, clinic, "9am", appointment_date=last_monday.isoformat())
        assert response.status_code == 400
        assert response.json()["message"] == "Cannot book appointment in the past"

    def test_missing_field_with_malformed_time(self, client, clinic):
        response = book(client, clinic, "9am", service_name=None)
        assert response.status_code == 400
        assert response.json()["message"] == "Please provide all required fields"

    def test_organization_role_cannot_book(self, client, clinic):
        response = book(client, clinic, headers=clinic["owner_headers"])
        assert response.status_code == 403

class TestStatusUpdates:

    def test_owner_updates_status(self, client, clinic):
        appointment_id = book(client, clinic).json()["data"]["appointment"]["id"]

        response = set_status(client, clinic, appointment_id, "in-progress")
        assert response.status_code == 200
        assert response.json()["data"]["appointment"]["status"] == "in-progress"

    def test_completion_renumbers_queue(self, client, clinic):
        """Test completing the head of the queue moves everyone up."""
        first = book(client, clinic, "09:00").json()["data"]["appointment"]["id"]
        book(client, clinic, "09:20")
        book(client, clinic, "09:40")

        set_status(client, clinic, first, "completed")

        active = queue(client, clinic, status="pending")
        assert [a["appointment_time"] for a in active] == ["09:20", "09:40"]
        assert [a["queue_position"] for a in active] == [1, 2]

    def test_missing_status(self, client, clinic):
        appointment_id = book(client, clinic).json()["data"]["appointment"]["id"]
        response = client.put(
            f"/api/v1/appointments/{appointment_id}/status",
            json={},
            headers=clinic["owner_headers"]
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Please provide status"

    def test_unknown_status(self, client, clinic):
        appointment_id = book(client, clinic).json()["data"]["appointment"]["id"]
        response = set_status(client, clinic, appointment_id, "teleported")
        assert response.status_code == 400
        assert "Invalid status" in response.json()["message"]

    def test_other_organization_cannot_update(self, client, clinic):
        appointment_id = book(client, clinic).json()["data"]["appointment"]["id"]
        _, other_headers = register(client, "other@example.com", role="organization")

        response = set_status(client, clinic, appointment_id, "completed", headers=other_headers)
        assert response.status_code == 403

    def test_unknown_appointment(self, client, clinic):
        response = set_status(client, clinic, 999, "completed")
        assert response.status_code == 404

    def test_terminal_states_accept_changes_by_default(self, client, clinic):
        """Test the transition table is not enforced unless enabled."""
        appointment_id = book(client, clinic).json()["data"]["appointment"]["id"]
        set_status(client, clinic, appointment_id, "completed")

        response = set_status(client, clinic, appointment_id, "pending")
        assert response.status_code == 200

    def test_enforced_transitions(self, client, clinic, monkeypatch):
        """Test illegal transitions are rejected when enforcement is on."""
        monkeypatch.setattr(settings, "ENFORCE_STATUS_TRANSITIONS", True)
        appointment_id = book(client, clinic).json()["data"]["appointment"]["id"]

        assert set_status(client, clinic, appointment_id, "completed").status_code == 400
        assert set_status(client, clinic, appointment_id, "in-progress").status_code == 200
        assert set_status(client, clinic, appointment_id, "completed").status_code == 200

        response = set_status(client, clinic, appointment_id, "pending")
        assert response.status_code == 400
        assert response.json()["message"] == "Cannot change status from completed to pending"

class TestCancellation:

    def test_cancel_renumbers_queue(self, client, clinic):
        """Test cancelling the middle of three closes the gap."""
        a = book(client, clinic, "09:00").json()["data"]["appointment"]
        b = book(client, clinic, "09:20").json()["data"]["appointment"]
        c = book(client, clinic, "09:40").json()["data"]["appointment"]
        assert [a["queue_position"], b["queue_position"], c["queue_position"]] == [1, 2, 3]

        response = client.delete(f"/api/v1/appointments/{b['id']}", headers=clinic["user_headers"])
        assert response.status_code == 200
        assert response.json()["data"]["appointment"]["status"] == "cancelled"

        positions = {appt["id"]: appt["queue_position"] for appt in queue(client, clinic)}
        assert positions[a["id"]] == 1
        assert positions[c["id"]] == 2

    def test_cannot_cancel_completed(self, client, clinic):
        appointment_id = book(client, clinic).json()["data"]["appointment"]["id"]
        set_status(client, clinic, appointment_id, "completed")

        response = client.delete(f"/api/v1/appointments/{appointment_id}", headers=clinic["user_headers"])
        assert response.status_code == 400
        assert response.json()["message"] == "Cannot cancel completed appointment"

        response = client.get(f"/api/v1/appointments/{appointment_id}", headers=clinic["user_headers"])
        assert response.json()["data"]["appointment"]["status"] == "completed"

    def test_cannot_cancel_twice(self, client, clinic):
        appointment_id = book(client, clinic).json()["data"]["appointment"]["id"]
        client.delete(f"/api/v1/appointments/{appointment_id}", headers=clinic["user_headers"])

        response = client.delete(f"/api/v1/appointments/{appointment_id}", headers=clinic["user_headers"])
        assert response.status_code == 400
        assert response.json()["message"] == "Appointment is already cancelled"

    def test_only_owner_cancels(self, client, clinic):
        appointment_id = book(client, clinic).json()["data"]["appointment"]["id"]
        _, other_headers = register(client, "other@example.com")

        response = client.delete(f"/api/v1/appointments/{appointment_id}", headers=other_headers)
        assert response.status_code == 403

        response = client.get(f"/api/v1/appointments/{appointment_id}", headers=clinic["user_headers"])
        assert response.json()["data"]["appointment"]["status"] == "pending"

class TestRetrieval:

    def test_user_appointments_most_recent_first(self, client, clinic):
        book(client, clinic, "09:00")
        book(client, clinic, "11:00")
        book(client, clinic, "10:00", appointment_date=(MONDAY + timedelta(days=7)).isoformat())

        response = client.get("/api/v1/appointments/user", headers=clinic["user_headers"])
        assert response.status_code == 200

        body = response.json()
        assert body["count"] == 3
        order = [(a["appointment_date"], a["appointment_time"]) for a in body["data"]["appointments"]]
        assert order == sorted(order, reverse=True)

    def test_user_appointments_status_filter(self, client, clinic):
        first = book(client, clinic, "09:00").json()["data"]["appointment"]["id"]
        book(client, clinic, "10:00")
        client.delete(f"/api/v1/appointments/{first}", headers=clinic["user_headers"])

        response = client.get(
            "/api/v1/appointments/user",
            params={"status": "cancelled"},
            headers=clinic["user_headers"]
        )
        appointments = response.json()["data"]["appointments"]
        assert [a["id"] for a in appointments] == [first]

    def test_user_sees_only_own(self, client, clinic):
        book(client, clinic, "09:00")
        _, other_headers = register(client, "other@example.com")

        response = client.get("/api/v1/appointments/user", headers=other_headers)
        assert response.json()["count"] == 0

    def test_organization_queue_filters(self, client, clinic):
        book(client, clinic, "10:00")
        book(client, clinic, "09:00")
        next_monday = MONDAY + timedelta(days=7)
        book(client, clinic, "09:00", appointment_date=next_monday.isoformat())

        appointments = queue(client, clinic)
        assert [(a["appointment_date"], a["appointment_time"]) for a in appointments] == [
            (MONDAY.isoformat(), "09:00"),
            (MONDAY.isoformat(), "10:00"),
            (next_monday.isoformat(), "09:00"),
        ]

        appointments = queue(client, clinic, date=next_monday.isoformat())
        assert len(appointments) == 1
        assert appointments[0]["queue_position"] == 1
        assert appointments[0]["user"]["email"] == "patient@example.com"

    def test_organization_queue_owner_only(self, client, clinic):
        _, other_headers = register(client, "other@example.com", role="organization")
        response = client.get(
            f"/api/v1/appointments/organization/{clinic['organization']['id']}",
            headers=other_headers
        )
        assert response.status_code == 403
        assert response.json()["message"] == "Not authorized to view these appointments"

    def test_get_by_id_visibility(self, client, clinic):
        appointment_id = book(client, clinic).json()["data"]["appointment"]["id"]

        for headers in (clinic["user_headers"], clinic["owner_headers"]):
            response = client.get(f"/api/v1/appointments/{appointment_id}", headers=headers)
            assert response.status_code == 200
            assert response.json()["data"]["appointment"]["id"] == appointment_id

        _, stranger_headers = register(client, "stranger@example.com")
        response = client.get(f"/api/v1/appointments/{appointment_id}", headers=stranger_headers)
        assert response.status_code == 403

        response = client.get("/api/v1/appointments/999", headers=stranger_headers)
        assert response.status_code == 404

class TestUnexpectedErrors:

    def test_server_error_envelope(self, client, clinic, monkeypatch):
        """Test unexpected failures surface as 500 with the error text."""
        def explode(self, *args, **kwargs):
            raise RuntimeError("store unavailable")

        monkeypatch.setattr(AppointmentService, "get_user_appointments", explode)

        with TestClient(app, raise_server_exceptions=False) as failing_client:
            response = failing_client.get("/api/v1/appointments/user", headers=clinic["user_headers"])

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "message": "Server error",
            "error": "store unavailable"
        }
