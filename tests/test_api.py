"""HTTP surface: routing, identity header, admin guard and error rendering"""

from datetime import timedelta

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient

from clinic_booking.config import get_settings
from clinic_booking.database import get_db
from clinic_booking.domain.appointments import router as appointments_router_module
from clinic_booking.domain.appointments.service import AppointmentService
from clinic_booking.main import app
from clinic_booking.models import Appointment, AppointmentStatus, PaymentStatus
from clinic_booking.tasks import get_task_scheduler

from .conftest import TODAY
from .test_payments import esewa_callback


@pytest.fixture
def client(session_factory, db, scheduler, settings):
    def override_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def override_service(db=Depends(override_db)):
        return AppointmentService(db, scheduler, settings, today=lambda: TODAY)

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_task_scheduler] = lambda: scheduler
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[appointments_router_module.get_appointment_service] = override_service
    yield TestClient(app)
    app.dependency_overrides.clear()


def as_user(user) -> dict:
    return {"X-User-Id": user.id}


def booking(doctor, time="10:00", method="CASH", day=TODAY):
    return {
        "doctor_id": doctor.id,
        "date": day.isoformat(),
        "time": time,
        "age": 34,
        "gender": "FEMALE",
        "phone_number": "+977 9800000000",
        "payment_method": method,
    }


class TestAppointmentsApi:
    def test_requires_identity(self, client, doctor):
        response = client.post("/appointments", json=booking(doctor))
        assert response.status_code == 401

    def test_unknown_identity(self, client, doctor):
        response = client.post("/appointments", json=booking(doctor), headers={"X-User-Id": "nobody"})
        assert response.status_code == 401

    def test_cash_booking(self, client, patient, doctor):
        response = client.post("/appointments", json=booking(doctor), headers=as_user(patient))

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "BOOKED"
        assert body["payment_status"] == "PAID"
        assert body["doctor"]["name"] == "Gregory House"

    def test_domain_errors_are_rendered_with_code(self, client, patient, other_patient, doctor):
        client.post("/appointments", json=booking(doctor), headers=as_user(patient))
        response = client.post(
            "/appointments", json=booking(doctor, time="10:05"), headers=as_user(other_patient)
        )

        assert response.status_code == 409
        assert response.json()["code"] == "SLOT_CONFLICT"
        assert response.json()["success"] is False

    def test_past_date_is_bad_request(self, client, patient, doctor):
        response = client.post(
            "/appointments",
            json=booking(doctor, day=TODAY - timedelta(days=1)),
            headers=as_user(patient),
        )
        assert response.status_code == 400
        assert response.json()["code"] == "POLICY_VIOLATION"

    def test_invalid_phone_is_rejected_by_validation(self, client, patient, doctor):
        payload = booking(doctor)
        payload["phone_number"] = "call me"
        response = client.post("/appointments", json=payload, headers=as_user(patient))
        assert response.status_code == 422

    def test_listing_and_detail(self, client, patient, other_patient, doctor):
        created = client.post("/appointments", json=booking(doctor), headers=as_user(patient)).json()

        listing = client.get("/appointments", headers=as_user(patient)).json()
        assert listing["total"] == 1
        assert listing["items"][0]["id"] == created["id"]

        assert client.get(f"/appointments/{created['id']}", headers=as_user(patient)).status_code == 200
        assert client.get(f"/appointments/{created['id']}", headers=as_user(other_patient)).status_code == 404

        by_status = client.get("/appointments/status/BOOKED", headers=as_user(patient)).json()
        assert by_status["total"] == 1


class TestAdminApi:
    def test_patient_cannot_use_admin_routes(self, client, patient):
        assert client.get("/appointments/admin/all", headers=as_user(patient)).status_code == 403
        assert client.get("/calendar/holidays", headers=as_user(patient)).status_code == 403

    def test_complete_and_cancel(self, client, patient, admin, doctor):
        created = client.post("/appointments", json=booking(doctor), headers=as_user(patient)).json()

        response = client.patch(f"/appointments/admin/{created['id']}/complete", headers=as_user(admin))
        assert response.status_code == 200
        assert response.json()["status"] == "COMPLETED"

        response = client.patch(f"/appointments/admin/{created['id']}/cancel", headers=as_user(admin))
        assert response.status_code == 403
        assert response.json()["code"] == "POLICY_VIOLATION"

    def test_today_listing(self, client, patient, admin, doctor):
        client.post("/appointments", json=booking(doctor, time="11:00"), headers=as_user(patient))
        client.post("/appointments", json=booking(doctor, time="09:00"), headers=as_user(patient))

        response = client.get("/appointments/admin/today", headers=as_user(admin))
        assert [a["time"] for a in response.json()] == ["09:00:00", "11:00:00"]

    def test_holiday_closes_the_day(self, client, admin, doctor):
        response = client.post(
            "/calendar/holidays",
            json={"date": TODAY.isoformat(), "reason": "Tihar"},
            headers=as_user(admin),
        )
        assert response.status_code == 200

        slots = client.get(f"/availability/doctors/{doctor.id}/slots", params={"date": TODAY.isoformat()})
        assert slots.json()["slots"] == []

        holiday_id = response.json()["id"]
        assert client.delete(f"/calendar/holidays/{holiday_id}", headers=as_user(admin)).status_code == 200
        assert client.delete(f"/calendar/holidays/{holiday_id}", headers=as_user(admin)).status_code == 404

    def test_office_hours_validation(self, client, admin):
        response = client.put(
            "/calendar/office-hours",
            json={"day_of_week": 7, "open_time": "09:00", "close_time": "17:00"},
            headers=as_user(admin),
        )
        assert response.status_code == 422

        response = client.put(
            "/calendar/office-hours",
            json={"day_of_week": 6, "open_time": "10:00", "close_time": "14:00"},
            headers=as_user(admin),
        )
        assert response.status_code == 200
        assert response.json()["is_closed"] is False

    def test_absence_for_every_doctor(self, client, admin, doctor, second_doctor):
        response = client.post(
            "/calendar/absences",
            json={"date": TODAY.isoformat(), "from_time": "09:00", "to_time": "12:00"},
            headers=as_user(admin),
        )
        assert response.status_code == 200
        assert len(response.json()) == 2
        assert all(a["is_half_day"] for a in response.json())


class TestAvailabilityApi:
    def test_check_reports_reason(self, client, doctor):
        response = client.get(
            f"/availability/doctors/{doctor.id}/check",
            params={"date": TODAY.isoformat(), "time": "14:15"},
        )
        body = response.json()
        assert body["available"] is False
        assert "Lunch" in body["reason"]

    def test_available_doctors(self, client, doctor, second_doctor):
        response = client.get("/availability/doctors", params={"date": TODAY.isoformat(), "time": "10:00"})
        assert {d["id"] for d in response.json()} == {doctor.id, second_doctor.id}

    def test_unknown_doctor_slots(self, client):
        response = client.get("/availability/doctors/missing/slots", params={"date": TODAY.isoformat()})
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"


class TestPaymentsApi:
    def test_esewa_callback_books_the_appointment(self, client, db, settings, patient, doctor):
        created = client.post(
            "/appointments", json=booking(doctor, method="ESEWA"), headers=as_user(patient)
        ).json()
        assert created["status"] == "PENDING"

        # Checkout was issued earlier under this reference
        appointment = db.get(Appointment, created["id"])
        appointment.payment.transaction_id = "ref-api-1"
        appointment.payment.status = PaymentStatus.PROCESSING
        db.commit()

        response = client.post(
            "/payments/esewa/success", json={"data": esewa_callback(settings, "ref-api-1")}
        )
        assert response.status_code == 200
        assert response.json()["appointment_status"] == "BOOKED"

        replay = client.post("/payments/esewa/success", json={"data": esewa_callback(settings, "ref-api-1")})
        assert replay.status_code == 409
        assert replay.json()["code"] == "PAYMENT_STATE_CONFLICT"

        db.expire_all()
        assert db.get(Appointment, created["id"]).status == AppointmentStatus.BOOKED

    def test_unknown_channel(self, client, patient):
        response = client.post("/payments/paypal/initiate/abc", headers=as_user(patient))
        assert response.status_code == 422

    def test_status_of_uninitiated_payment(self, client, patient, doctor):
        created = client.post(
            "/appointments", json=booking(doctor, method="STRIPE"), headers=as_user(patient)
        ).json()
        response = client.get(f"/payments/stripe/status/{created['id']}", headers=as_user(patient))

        assert response.status_code == 200
        assert response.json()["payment_status"] == "PENDING"
