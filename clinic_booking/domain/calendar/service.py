"""Calendar service - Administrative operations on the calendar policy store"""

import logging
from datetime import date, time
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import NotFoundError
from ...models import Doctor, DoctorAbsence, Holiday, OfficeHours
from .repository import CalendarRepository

logger = logging.getLogger(__name__)


class CalendarService:
    """Service layer for holidays, office hours and doctor absences"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = CalendarRepository()

    # Holidays

    def add_holiday(self, on: date, reason: Optional[str] = None, is_recurring: bool = False) -> Holiday:
        holiday = self.repo.create_holiday(self.db, on, reason, is_recurring)
        logger.info(f"📅 Holiday added: {on} ({reason or 'no reason'}), recurring={is_recurring}")
        return holiday

    def remove_holiday(self, holiday_id: str) -> dict:
        holiday = self.repo.get_holiday_by_id(self.db, holiday_id)
        if not holiday:
            raise NotFoundError("Holiday not found")
        self.repo.delete(self.db, holiday)
        return {"message": "Holiday removed"}

    def get_holidays(self) -> list[Holiday]:
        return self.repo.list_holidays(self.db)

    # Office hours

    def set_office_hours(
        self, weekday: int, open_time: time, close_time: time, is_closed: bool = False
    ) -> OfficeHours:
        hours = self.repo.upsert_office_hours(self.db, weekday, open_time, close_time, is_closed)
        logger.info(
            f"🕘 Office hours for day {weekday}: "
            f"{'closed' if is_closed else f'{open_time:%H:%M}-{close_time:%H:%M}'}"
        )
        return hours

    def get_office_hours(self) -> list[OfficeHours]:
        return self.repo.list_office_hours(self.db)

    # Doctor absences

    def add_doctor_absence(
        self,
        doctor_id: str,
        on: date,
        from_time: Optional[time] = None,
        to_time: Optional[time] = None,
        reason: Optional[str] = None,
    ) -> DoctorAbsence:
        if not self.db.query(Doctor).filter(Doctor.id == doctor_id).first():
            raise NotFoundError("Doctor not found")

        absence = DoctorAbsence(
            doctor_id=doctor_id, date=on, from_time=from_time, to_time=to_time, reason=reason
        )
        return self.repo.create_absences(self.db, [absence])[0]

    def add_absence_for_all(
        self,
        on: date,
        from_time: Optional[time] = None,
        to_time: Optional[time] = None,
        reason: Optional[str] = None,
    ) -> list[DoctorAbsence]:
        """Record the same absence for every doctor (e.g. staff training day)"""
        absences = [
            DoctorAbsence(
                doctor_id=doctor_id, date=on, from_time=from_time, to_time=to_time, reason=reason
            )
            for doctor_id in self.repo.list_doctor_ids(self.db)
        ]
        logger.info(f"📅 Adding absence on {on} for {len(absences)} doctors")
        return self.repo.create_absences(self.db, absences)

    def remove_doctor_absence(self, absence_id: str) -> dict:
        absence = self.repo.get_absence_by_id(self.db, absence_id)
        if not absence:
            raise NotFoundError("Absence not found")
        self.repo.delete(self.db, absence)
        return {"message": "Absence removed"}

    def get_doctor_absences(self, doctor_id: str, on: date) -> list[DoctorAbsence]:
        return self.repo.list_absences(self.db, doctor_id, on)


# Weekly schedule used on first start (0 = Sunday)
DEFAULT_OFFICE_HOURS = [
    (0, time(10, 0), time(18, 0), False),
    (1, time(9, 0), time(17, 0), False),
    (2, time(9, 0), time(17, 0), False),
    (3, time(9, 0), time(17, 0), False),
    (4, time(9, 0), time(17, 0), False),
    (5, time(9, 0), time(17, 0), False),
    (6, time(0, 0), time(0, 0), True),
]


def seed_office_hours(db: Session) -> int:
    """Create the default hours for weekdays that have none; returns how many were added"""
    repo = CalendarRepository()
    added = 0
    for weekday, open_time, close_time, is_closed in DEFAULT_OFFICE_HOURS:
        if repo.get_office_hours(db, weekday):
            continue
        repo.upsert_office_hours(db, weekday, open_time, close_time, is_closed)
        added += 1
    if added:
        logger.info(f"🌱 Seeded office hours for {added} weekdays")
    return added
