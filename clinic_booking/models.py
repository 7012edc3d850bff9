import enum
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Time,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_uuid():
    """Generate a string UUID primary key"""
    return str(uuid.uuid4())


class AppointmentStatus(str, enum.Enum):
    PENDING = "PENDING"
    BOOKED = "BOOKED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    ESEWA = "ESEWA"  # gateway A
    STRIPE = "STRIPE"  # gateway B


class Currency(str, enum.Enum):
    USD = "USD"
    NPR = "NPR"


class Gender(str, enum.Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    OTHER = "OTHER"


# Statuses that occupy a slot and count against daily caps
ACTIVE_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.BOOKED)
TERMINAL_STATUSES = (AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED)


def _enum(enum_cls, name: str):
    return Enum(enum_cls, name=name, native_enum=False, length=20)


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    role = Column(String(20), default="patient", nullable=False)  # patient, admin
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    appointments = relationship("Appointment", back_populates="patient")


class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    specialization = Column(String(255), nullable=True)
    max_appointments_per_day = Column(Integer, default=30, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    appointments = relationship("Appointment", back_populates="doctor")

    @property
    def display_name(self) -> str:
        return self.name if self.name.startswith("Dr.") else f"Dr. {self.name}"


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    patient_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    doctor_id = Column(
        String(36), ForeignKey("doctors.id", ondelete="SET NULL"), nullable=True, index=True
    )

    date = Column(Date, nullable=False, index=True)
    time = Column(Time, nullable=False)
    # Start of the 15-minute slot containing `time`; keyed by the active-slot unique index
    slot_start = Column(Time, nullable=False)

    age = Column(Integer, nullable=False)
    gender = Column(_enum(Gender, "gender"), nullable=False)
    phone_number = Column(String(50), nullable=False)

    price = Column(Numeric(10, 2), nullable=False)
    currency = Column(_enum(Currency, "currency"), default=Currency.USD, nullable=False)

    status = Column(
        _enum(AppointmentStatus, "appointment_status"),
        default=AppointmentStatus.PENDING,
        nullable=False,
        index=True,
    )
    payment_status = Column(
        _enum(PaymentStatus, "payment_status"), default=PaymentStatus.PENDING, nullable=False
    )
    payment_method = Column(
        _enum(PaymentMethod, "payment_method"), default=PaymentMethod.CASH, nullable=False
    )

    file_url = Column(String(500), nullable=True)  # Generated confirmation document

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    patient = relationship("User", back_populates="appointments")
    doctor = relationship("Doctor", back_populates="appointments")
    payment = relationship(
        "Payment", back_populates="appointment", uselist=False, cascade="all, delete-orphan"
    )

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        # One active booking per doctor per quarter-hour
        Index(
            "uq_appointments_active_slot",
            "doctor_id",
            "date",
            "slot_start",
            unique=True,
            sqlite_where=text("status IN ('PENDING', 'BOOKED')"),
            postgresql_where=text("status IN ('PENDING', 'BOOKED')"),
        ),
        Index("ix_appointments_patient_date", "patient_id", "date"),
    )


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    appointment_id = Column(
        String(36),
        ForeignKey("appointments.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    method = Column(_enum(PaymentMethod, "payment_method"), nullable=False)
    status = Column(
        _enum(PaymentStatus, "payment_status"), default=PaymentStatus.PENDING, nullable=False
    )
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(_enum(Currency, "currency"), default=Currency.USD, nullable=False)

    transaction_id = Column(String(255), nullable=True, index=True)  # Channel transaction reference
    transaction_code = Column(String(255), nullable=True)  # Gateway code stamped on success
    session_id = Column(String(255), nullable=True)  # Checkout session / form reference
    checkout_url = Column(String(1000), nullable=True)  # Cleared once resolved

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    appointment = relationship("Appointment", back_populates="payment")

    __mapper_args__ = {"version_id_col": version}


class Holiday(Base):
    __tablename__ = "holidays"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    date = Column(Date, nullable=False, index=True)
    reason = Column(String(255), nullable=True)
    is_recurring = Column(Boolean, default=False, nullable=False)  # Every year on this month-day
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class OfficeHours(Base):
    __tablename__ = "office_hours"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    day_of_week = Column(Integer, unique=True, nullable=False)  # 0 = Sunday, 6 = Saturday
    open_time = Column(Time, nullable=False)
    close_time = Column(Time, nullable=False)
    is_closed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class DoctorAbsence(Base):
    __tablename__ = "doctor_absences"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    doctor_id = Column(String(36), ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    from_time = Column(Time, nullable=True)  # Both set = half-day absence
    to_time = Column(Time, nullable=True)
    reason = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (Index("ix_doctor_absences_doctor_date", "doctor_id", "date"),)

    @property
    def is_half_day(self) -> bool:
        return self.from_time is not None and self.to_time is not None
