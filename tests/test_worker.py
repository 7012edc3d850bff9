"""Background tasks: expiry and confirmation documents"""

import os
from datetime import time
from unittest.mock import AsyncMock, patch

import pytest

from clinic_booking import worker
from clinic_booking.email_service import appointment_confirmation_html, send_email
from clinic_booking.models import Appointment, AppointmentStatus, PaymentMethod, PaymentStatus
from clinic_booking.services.confirmation_pdf import generate_confirmation_pdf

from .conftest import TODAY


@pytest.fixture
def worker_sessions(session_factory):
    with patch.object(worker, "SessionLocal", session_factory):
        yield


class TestExpireAppointmentTask:
    async def test_cancels_unpaid_appointment(self, worker_sessions, db, patient, doctor, make_appointment):
        appointment = make_appointment(
            patient, doctor, TODAY, time(10, 0), AppointmentStatus.PENDING, PaymentMethod.ESEWA
        )

        result = await worker.expire_appointment_task({"job_id": "job-1"}, appointment.id)

        assert result == {"appointment_id": appointment.id, "expired": True}
        db.expire_all()
        stored = db.get(Appointment, appointment.id)
        assert stored.status == AppointmentStatus.CANCELLED
        assert stored.payment.status == PaymentStatus.FAILED

    async def test_paid_appointment_is_left_alone(self, worker_sessions, db, patient, doctor, make_appointment):
        appointment = make_appointment(patient, doctor, TODAY, time(10, 0))

        result = await worker.expire_appointment_task({}, appointment.id)

        assert result["expired"] is False
        db.expire_all()
        assert db.get(Appointment, appointment.id).status == AppointmentStatus.BOOKED


class TestConfirmationTask:
    async def test_stores_pdf_and_sends_email(self, worker_sessions, db, patient, doctor, make_appointment):
        appointment = make_appointment(patient, doctor, TODAY, time(10, 0))

        with patch.object(worker, "send_appointment_confirmation", new=AsyncMock()) as send:
            result = await worker.send_appointment_confirmation_task({}, appointment.id)

        assert result["file_url"].endswith(f"/uploads/confirmations/appointment-{appointment.id}.pdf")
        sent_appointment, pdf_bytes = send.await_args.args
        assert sent_appointment.id == appointment.id
        assert pdf_bytes.startswith(b"%PDF")

        db.expire_all()
        assert db.get(Appointment, appointment.id).file_url == result["file_url"]
        assert os.path.exists(
            os.path.join(os.environ["UPLOADS_DIR"], "confirmations", f"appointment-{appointment.id}.pdf")
        )

    async def test_unknown_appointment(self, worker_sessions):
        with patch.object(worker, "send_appointment_confirmation", new=AsyncMock()) as send:
            result = await worker.send_appointment_confirmation_task({}, "missing")

        assert result == {"appointment_id": "missing", "file_url": None}
        send.assert_not_awaited()

    async def test_email_failure_propagates_for_retry(self, worker_sessions, patient, doctor, make_appointment):
        appointment = make_appointment(patient, doctor, TODAY, time(10, 0))

        with patch.object(
            worker, "send_appointment_confirmation", new=AsyncMock(side_effect=RuntimeError("down"))
        ):
            with pytest.raises(RuntimeError):
                await worker.send_appointment_confirmation_task({}, appointment.id)


class TestConfirmationContent:
    def test_pdf_and_html_mention_the_booking(self, patient, doctor, make_appointment):
        appointment = make_appointment(patient, doctor, TODAY, time(10, 0))

        assert generate_confirmation_pdf(appointment).startswith(b"%PDF")
        html = appointment_confirmation_html(appointment)
        assert "Gregory House" in html
        assert "10:00" in html

    async def test_send_email_requires_api_key(self):
        with patch("clinic_booking.email_service.RESEND_API_KEY", None):
            with pytest.raises(RuntimeError):
                await send_email("jane@example.com", "Hello", "<p>Hi</p>")
