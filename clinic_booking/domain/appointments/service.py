"""Appointment service - Booking and lifecycle of appointments"""

import logging
from datetime import date, time, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...config import Settings, get_settings
from ...errors import (
    CapacityExceededError,
    InvalidInputError,
    NotFoundError,
    PolicyViolationError,
    SlotConflictError,
)
from ...models import (
    TERMINAL_STATUSES,
    Appointment,
    AppointmentStatus,
    Currency,
    Gender,
    Payment,
    PaymentMethod,
    PaymentStatus,
)
from ...tasks import TaskScheduler, notify_confirmation
from ..scheduling.availability import SlotAvailabilityEngine, slot_window
from .expiry import ExpiryScheduler
from .repository import AppointmentRepository

logger = logging.getLogger(__name__)


class AppointmentService:
    """Service layer for the appointment lifecycle"""

    def __init__(
        self,
        db: Session,
        scheduler: TaskScheduler,
        settings: Optional[Settings] = None,
        today: Callable[[], date] = date.today,
    ):
        self.db = db
        self.scheduler = scheduler
        self.settings = settings or get_settings()
        self.today = today
        self.repo = AppointmentRepository()
        self.availability = SlotAvailabilityEngine(db)
        self.expiry = ExpiryScheduler(db, scheduler, self.settings)

    def _price_for(self, method: PaymentMethod) -> tuple:
        if method == PaymentMethod.ESEWA:
            return self.settings.appointment_fee_npr, Currency.NPR
        return self.settings.appointment_fee, Currency.USD

    async def create(
        self,
        patient_id: str,
        doctor_id: str,
        on: date,
        at: time,
        age: int,
        gender: Gender,
        phone_number: str,
        method: PaymentMethod,
    ) -> Appointment:
        """Book an appointment; CASH is confirmed immediately, gateway methods start PENDING"""
        logger.info(f"📥 Booking request: patient={patient_id} doctor={doctor_id} {on} {at:%H:%M} {method.value}")

        if not self.repo.get_patient(self.db, patient_id):
            raise NotFoundError("Patient not found")

        doctor = self.repo.get_doctor(self.db, doctor_id)
        if not doctor:
            raise NotFoundError("Doctor not found")

        if age < 0:
            raise InvalidInputError("Age cannot be negative")

        today = self.today()
        if on < today:
            raise PolicyViolationError("Cannot book an appointment in the past", status_code=400)
        if on > today + timedelta(days=self.settings.booking_window_days):
            raise PolicyViolationError(
                f"Appointments can only be booked up to {self.settings.booking_window_days} days in advance"
            )

        if self.repo.count_for_patient(self.db, patient_id, on) >= self.settings.max_patient_daily_appointments:
            logger.warning(f"⚠️ Patient {patient_id} reached the daily limit for {on}")
            raise CapacityExceededError(
                f"You can book at most {self.settings.max_patient_daily_appointments} appointments per day"
            )

        if self.repo.count_for_doctor(self.db, doctor_id, on) >= doctor.max_appointments_per_day:
            logger.warning(f"⚠️ {doctor.display_name} is fully booked on {on}")
            raise CapacityExceededError(f"{doctor.display_name} is fully booked on {on}")

        at = at.replace(second=0, microsecond=0)
        self.availability.check_slot(doctor_id, on, at)

        price, currency = self._price_for(method)
        is_cash = method == PaymentMethod.CASH
        appointment = Appointment(
            patient_id=patient_id,
            doctor_id=doctor_id,
            date=on,
            time=at,
            slot_start=slot_window(at)[0],
            age=age,
            gender=gender,
            phone_number=phone_number,
            price=price,
            currency=currency,
            payment_method=method,
            status=AppointmentStatus.BOOKED if is_cash else AppointmentStatus.PENDING,
            payment_status=PaymentStatus.PAID if is_cash else PaymentStatus.PENDING,
        )
        payment = Payment(
            method=method,
            amount=price,
            currency=currency,
            status=PaymentStatus.PAID if is_cash else PaymentStatus.PENDING,
        )

        try:
            self.repo.add(self.db, appointment, payment)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Slot race lost for {doctor_id} on {on} at {at:%H:%M}: {e.orig}")
            raise SlotConflictError("This slot was just booked by someone else") from e

        self.db.refresh(appointment)
        logger.info(f"✅ Appointment {appointment.id} created ({appointment.status.value})")

        if is_cash:
            await notify_confirmation(self.scheduler, appointment.id)
        else:
            try:
                await self.expiry.schedule_expiry(appointment.id)
            except Exception as e:
                logger.error(f"❌ Failed to schedule expiry for appointment {appointment.id}: {e}")

        return appointment

    def mark_paid(self, appointment: Appointment) -> Appointment:
        """PENDING -> BOOKED once its payment succeeded; the caller commits"""
        if appointment.status != AppointmentStatus.PENDING:
            raise PolicyViolationError(
                f"Appointment is {appointment.status.value}, only PENDING appointments can be paid"
            )
        appointment.status = AppointmentStatus.BOOKED
        appointment.payment_status = PaymentStatus.PAID
        return appointment

    def expire(self, appointment_id: str) -> bool:
        return self.expiry.run_expiry(appointment_id)

    def cancel(self, appointment_id: str) -> Appointment:
        """Admin cancellation of a non-terminal appointment"""
        appointment = self.repo.get_for_update(self.db, appointment_id)
        if not appointment:
            raise NotFoundError("Appointment not found")
        if appointment.status in TERMINAL_STATUSES:
            raise PolicyViolationError(f"Appointment is already {appointment.status.value}")

        appointment.status = AppointmentStatus.CANCELLED
        payment = self.repo.get_payment_for_update(self.db, appointment_id)
        # A settled payment stays PAID; refunds are handled outside this service
        if payment and payment.status != PaymentStatus.PAID:
            payment.status = PaymentStatus.FAILED
            payment.checkout_url = None
            appointment.payment_status = PaymentStatus.FAILED

        self.db.commit()
        logger.info(f"🚫 Appointment {appointment_id} cancelled by admin")
        return self.repo.get_by_id(self.db, appointment_id)

    def complete(self, appointment_id: str) -> Appointment:
        """Admin marks a BOOKED appointment as attended, on or after its date"""
        appointment = self.repo.get_for_update(self.db, appointment_id)
        if not appointment:
            raise NotFoundError("Appointment not found")
        if appointment.status != AppointmentStatus.BOOKED:
            raise PolicyViolationError(
                f"Only BOOKED appointments can be completed (status is {appointment.status.value})"
            )
        if appointment.date > self.today():
            raise PolicyViolationError("Cannot complete an appointment before its date")

        appointment.status = AppointmentStatus.COMPLETED
        self.db.commit()
        logger.info(f"✅ Appointment {appointment_id} completed")
        return self.repo.get_by_id(self.db, appointment_id)

    # Listings

    def get_for_patient(self, appointment_id: str, patient_id: str) -> Appointment:
        appointment = self.repo.get_for_patient(self.db, appointment_id, patient_id)
        if not appointment:
            raise NotFoundError("Appointment not found")
        return appointment

    def get(self, appointment_id: str) -> Appointment:
        appointment = self.repo.get_by_id(self.db, appointment_id)
        if not appointment:
            raise NotFoundError("Appointment not found")
        return appointment

    def list_for_patient(
        self, patient_id: str, page: int = 1, limit: int = 10, status: Optional[AppointmentStatus] = None
    ) -> dict:
        return self.repo.list_for_patient(self.db, patient_id, page, limit, status)

    def list_all(self, page: int = 1, limit: int = 10) -> dict:
        return self.repo.list_all(self.db, page, limit)

    def list_by_status(self, status: AppointmentStatus, page: int = 1, limit: int = 10) -> dict:
        return self.repo.list_by_status(self.db, status, page, limit)

    def list_doctor_day(self, doctor_id: str, on: date) -> list[Appointment]:
        if not self.repo.get_doctor(self.db, doctor_id):
            raise NotFoundError("Doctor not found")
        return self.repo.list_booked_for_doctor(self.db, doctor_id, on)

    def list_today(self) -> list[Appointment]:
        return self.repo.list_booked_on(self.db, self.today())
