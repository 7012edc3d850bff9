"""Calendar repository - Database operations for holidays, office hours and absences"""

from datetime import date, time
from typing import Optional

from sqlalchemy import extract
from sqlalchemy.orm import Session

from ...models import Doctor, DoctorAbsence, Holiday, OfficeHours


def day_of_week(value: date) -> int:
    """Weekday index with 0 = Sunday, 6 = Saturday"""
    return value.isoweekday() % 7


class CalendarRepository:
    """Repository for calendar policy database operations"""

    # Holidays

    @staticmethod
    def get_holiday(db: Session, on: date) -> Optional[Holiday]:
        """Get the holiday on a date: direct match first, then a recurring month-day match"""
        holiday = db.query(Holiday).filter(Holiday.date == on).first()
        if holiday:
            return holiday

        return (
            db.query(Holiday)
            .filter(
                Holiday.is_recurring.is_(True),
                extract("month", Holiday.date) == on.month,
                extract("day", Holiday.date) == on.day,
            )
            .first()
        )

    @staticmethod
    def list_holidays(db: Session) -> list[Holiday]:
        return db.query(Holiday).order_by(Holiday.date).all()

    @staticmethod
    def get_holiday_by_id(db: Session, holiday_id: str) -> Optional[Holiday]:
        return db.query(Holiday).filter(Holiday.id == holiday_id).first()

    @staticmethod
    def create_holiday(
        db: Session, on: date, reason: Optional[str] = None, is_recurring: bool = False
    ) -> Holiday:
        holiday = Holiday(date=on, reason=reason, is_recurring=is_recurring)
        db.add(holiday)
        db.commit()
        db.refresh(holiday)
        return holiday

    @staticmethod
    def delete(db: Session, row) -> None:
        db.delete(row)
        db.commit()

    # Office hours

    @staticmethod
    def get_office_hours(db: Session, weekday: int) -> Optional[OfficeHours]:
        return db.query(OfficeHours).filter(OfficeHours.day_of_week == weekday).first()

    @staticmethod
    def list_office_hours(db: Session) -> list[OfficeHours]:
        return db.query(OfficeHours).order_by(OfficeHours.day_of_week).all()

    @staticmethod
    def upsert_office_hours(
        db: Session, weekday: int, open_time: time, close_time: time, is_closed: bool = False
    ) -> OfficeHours:
        """Create or overwrite the hours for a weekday (last writer wins)"""
        hours = db.query(OfficeHours).filter(OfficeHours.day_of_week == weekday).first()
        if not hours:
            hours = OfficeHours(day_of_week=weekday)
            db.add(hours)
        hours.open_time = open_time
        hours.close_time = close_time
        hours.is_closed = is_closed
        db.commit()
        db.refresh(hours)
        return hours

    # Doctor absences

    @staticmethod
    def list_absences(db: Session, doctor_id: str, on: date) -> list[DoctorAbsence]:
        return (
            db.query(DoctorAbsence)
            .filter(DoctorAbsence.doctor_id == doctor_id, DoctorAbsence.date == on)
            .all()
        )

    @staticmethod
    def get_absence_by_id(db: Session, absence_id: str) -> Optional[DoctorAbsence]:
        return db.query(DoctorAbsence).filter(DoctorAbsence.id == absence_id).first()

    @staticmethod
    def create_absences(db: Session, absences: list[DoctorAbsence]) -> list[DoctorAbsence]:
        db.add_all(absences)
        db.commit()
        for absence in absences:
            db.refresh(absence)
        return absences

    @staticmethod
    def list_doctor_ids(db: Session) -> list[str]:
        return [row.id for row in db.query(Doctor.id).order_by(Doctor.name).all()]
