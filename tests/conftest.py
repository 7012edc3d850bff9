"""Shared fixtures: in-memory database, seeded calendar, fixed clock, recording scheduler"""

import os
import tempfile
from datetime import date, time, timedelta
from decimal import Decimal
from typing import Optional

# Configure before the application modules read the environment
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")
os.environ.setdefault("UPLOADS_DIR", tempfile.mkdtemp(prefix="clinic-uploads-"))
os.environ.setdefault("APP_ENV", "test")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clinic_booking.config import Settings
from clinic_booking.database import Base
from clinic_booking.domain.appointments.service import AppointmentService
from clinic_booking.domain.calendar.service import seed_office_hours
from clinic_booking.domain.scheduling.availability import slot_window
from clinic_booking.models import (
    Appointment,
    AppointmentStatus,
    Currency,
    Doctor,
    Gender,
    Payment,
    PaymentMethod,
    PaymentStatus,
    User,
)

# A Monday: office hours 09:00-17:00
TODAY = date(2026, 10, 19)

ESEWA_TEST_SECRET = "8gBm/:&EnhH.1/q"


class RecordingScheduler:
    """TaskScheduler that keeps submitted jobs in memory"""

    def __init__(self):
        self.jobs = []

    async def schedule(self, task_name: str, *args, delay: Optional[timedelta] = None):
        self.jobs.append((task_name, args, delay))
        return f"job-{len(self.jobs)}"

    def names(self) -> list[str]:
        return [name for name, _, _ in self.jobs]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        appointment_fee=Decimal("20.00"),
        npr_exchange_rate=Decimal("120"),
        max_patient_daily_appointments=3,
        booking_window_days=7,
        appointment_expiry_minutes=10,
        esewa_merchant_code="EPAYTEST",
        esewa_secret_key=ESEWA_TEST_SECRET,
        esewa_payment_url="https://rc-epay.esewa.com.np/api/epay/main/v2/form",
        esewa_status_url="https://rc.esewa.com.np/api/epay/transaction/status",
        esewa_success_url="http://testserver/payments/esewa/success",
        esewa_failure_url="http://testserver/payments/esewa/failure",
        stripe_secret_key="sk_test_123",
        stripe_webhook_secret="whsec_test",
        stripe_success_url="http://testserver/success?session_id={CHECKOUT_SESSION_ID}",
        stripe_cancel_url="http://testserver/cancel",
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )

    @event.listens_for(engine, "connect")
    def _fk_pragma(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    seed_office_hours(session)
    yield session
    session.close()


@pytest.fixture
def patient(db) -> User:
    user = User(name="Jane Patient", email="jane@example.com", role="patient")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def other_patient(db) -> User:
    user = User(name="John Other", email="john@example.com", role="patient")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def admin(db) -> User:
    user = User(name="Clinic Admin", email="admin@example.com", role="admin")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def doctor(db) -> Doctor:
    doc = Doctor(name="Gregory House", specialization="Diagnostics", max_appointments_per_day=30)
    db.add(doc)
    db.commit()
    return doc


@pytest.fixture
def second_doctor(db) -> Doctor:
    doc = Doctor(name="Dr. Lisa Cuddy", specialization="Endocrinology", max_appointments_per_day=30)
    db.add(doc)
    db.commit()
    return doc


@pytest.fixture
def scheduler() -> RecordingScheduler:
    return RecordingScheduler()


@pytest.fixture
def service(db, scheduler, settings) -> AppointmentService:
    return AppointmentService(db, scheduler, settings, today=lambda: TODAY)


@pytest.fixture
def make_appointment(db):
    """Insert an appointment directly, bypassing booking rules"""

    def _make(
        patient: User,
        doctor: Doctor,
        on: date = TODAY,
        at: time = time(9, 0),
        status: AppointmentStatus = AppointmentStatus.BOOKED,
        method: PaymentMethod = PaymentMethod.CASH,
    ) -> Appointment:
        paid = status in (AppointmentStatus.BOOKED, AppointmentStatus.COMPLETED)
        currency = Currency.NPR if method == PaymentMethod.ESEWA else Currency.USD
        price = Decimal("2400.00") if currency == Currency.NPR else Decimal("20.00")
        appointment = Appointment(
            patient_id=patient.id,
            doctor_id=doctor.id,
            date=on,
            time=at,
            slot_start=slot_window(at)[0],
            age=30,
            gender=Gender.FEMALE,
            phone_number="9800000000",
            price=price,
            currency=currency,
            status=status,
            payment_status=PaymentStatus.PAID if paid else PaymentStatus.PENDING,
            payment_method=method,
        )
        appointment.payment = Payment(
            method=method,
            amount=price,
            currency=currency,
            status=PaymentStatus.PAID if paid else PaymentStatus.PENDING,
        )
        db.add(appointment)
        db.commit()
        return appointment

    return _make
