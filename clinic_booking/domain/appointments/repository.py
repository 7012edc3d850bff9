"""Appointment repository - Database operations for appointments and payments"""

from datetime import date, time
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ...models import ACTIVE_STATUSES, Appointment, AppointmentStatus, Doctor, Payment, User


def _paginate(query, page: int, limit: int) -> dict:
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return {"items": items, "total": total, "page": page, "limit": limit}


class AppointmentRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def get_patient(db: Session, patient_id: str) -> Optional[User]:
        return db.query(User).filter(User.id == patient_id).first()

    @staticmethod
    def get_doctor(db: Session, doctor_id: str) -> Optional[Doctor]:
        return db.query(Doctor).filter(Doctor.id == doctor_id).first()

    @staticmethod
    def list_doctors(db: Session) -> list[Doctor]:
        return db.query(Doctor).order_by(Doctor.name).all()

    # Count queries

    @staticmethod
    def count_for_doctor(
        db: Session, doctor_id: str, on: date, statuses: Iterable[AppointmentStatus] = ACTIVE_STATUSES
    ) -> int:
        return (
            db.query(func.count(Appointment.id))
            .filter(
                Appointment.doctor_id == doctor_id,
                Appointment.date == on,
                Appointment.status.in_(list(statuses)),
            )
            .scalar()
        )

    @staticmethod
    def count_for_patient(
        db: Session, patient_id: str, on: date, statuses: Iterable[AppointmentStatus] = ACTIVE_STATUSES
    ) -> int:
        return (
            db.query(func.count(Appointment.id))
            .filter(
                Appointment.patient_id == patient_id,
                Appointment.date == on,
                Appointment.status.in_(list(statuses)),
            )
            .scalar()
        )

    @staticmethod
    def booked_in_window(db: Session, doctor_id: str, on: date, start: time, end: time) -> bool:
        """Whether a BOOKED appointment for the doctor has a time in [start, end)"""
        query = db.query(Appointment.id).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.date == on,
            Appointment.status == AppointmentStatus.BOOKED,
            Appointment.time >= start,
        )
        # A window ending at midnight is open-ended
        if end != time(0, 0):
            query = query.filter(Appointment.time < end)
        return query.first() is not None

    @staticmethod
    def booked_times(db: Session, doctor_id: str, on: date) -> list[time]:
        rows = (
            db.query(Appointment.time)
            .filter(
                Appointment.doctor_id == doctor_id,
                Appointment.date == on,
                Appointment.status == AppointmentStatus.BOOKED,
            )
            .all()
        )
        return [row.time for row in rows]

    # Single rows

    @staticmethod
    def get_by_id(db: Session, appointment_id: str) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .options(joinedload(Appointment.payment), joinedload(Appointment.doctor))
            .filter(Appointment.id == appointment_id)
            .first()
        )

    @staticmethod
    def get_for_patient(db: Session, appointment_id: str, patient_id: str) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .options(joinedload(Appointment.payment), joinedload(Appointment.doctor))
            .filter(Appointment.id == appointment_id, Appointment.patient_id == patient_id)
            .first()
        )

    @staticmethod
    def get_for_update(db: Session, appointment_id: str) -> Optional[Appointment]:
        """Load an appointment under a row lock (no-op lock on SQLite)"""
        return (
            db.query(Appointment)
            .filter(Appointment.id == appointment_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    @staticmethod
    def get_payment_for_update(db: Session, appointment_id: str) -> Optional[Payment]:
        return (
            db.query(Payment)
            .filter(Payment.appointment_id == appointment_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    @staticmethod
    def add(db: Session, appointment: Appointment, payment: Payment) -> Appointment:
        """Stage an appointment and its payment; the caller commits"""
        appointment.payment = payment
        db.add(appointment)
        db.flush()
        return appointment

    # Listings

    @staticmethod
    def list_for_patient(
        db: Session,
        patient_id: str,
        page: int,
        limit: int,
        status: Optional[AppointmentStatus] = None,
    ) -> dict:
        query = (
            db.query(Appointment)
            .options(joinedload(Appointment.doctor), joinedload(Appointment.payment))
            .filter(Appointment.patient_id == patient_id)
        )
        if status is not None:
            query = query.filter(Appointment.status == status)
        query = query.order_by(Appointment.created_at.desc(), Appointment.date.desc())
        return _paginate(query, page, limit)

    @staticmethod
    def list_all(db: Session, page: int, limit: int) -> dict:
        query = (
            db.query(Appointment)
            .options(joinedload(Appointment.doctor), joinedload(Appointment.patient))
            .order_by(Appointment.created_at.desc(), Appointment.date.desc())
        )
        return _paginate(query, page, limit)

    @staticmethod
    def list_by_status(db: Session, status: AppointmentStatus, page: int, limit: int) -> dict:
        query = (
            db.query(Appointment)
            .options(joinedload(Appointment.doctor), joinedload(Appointment.patient))
            .filter(Appointment.status == status)
            .order_by(Appointment.date.desc(), Appointment.time.asc())
        )
        return _paginate(query, page, limit)

    @staticmethod
    def list_booked_for_doctor(db: Session, doctor_id: str, on: date) -> list[Appointment]:
        return (
            db.query(Appointment)
            .options(joinedload(Appointment.patient))
            .filter(
                Appointment.doctor_id == doctor_id,
                Appointment.date == on,
                Appointment.status == AppointmentStatus.BOOKED,
            )
            .order_by(Appointment.time.asc())
            .all()
        )

    @staticmethod
    def list_booked_on(db: Session, on: date) -> list[Appointment]:
        return (
            db.query(Appointment)
            .options(joinedload(Appointment.doctor), joinedload(Appointment.patient))
            .filter(Appointment.date == on, Appointment.status == AppointmentStatus.BOOKED)
            .order_by(Appointment.time.asc())
            .all()
        )
