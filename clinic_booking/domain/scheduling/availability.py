"""
Slot availability engine

Decides whether a doctor can be booked at a date/time given office hours,
holidays, doctor absences and existing bookings. Slots are 15 minutes long and
aligned to the quarter hour.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import NotFoundError, SlotConflictError
from ...models import DoctorAbsence, Holiday, OfficeHours
from ..appointments.repository import AppointmentRepository
from ..calendar.repository import CalendarRepository, day_of_week

logger = logging.getLogger(__name__)

SLOT_MINUTES = 15
LUNCH_START = time(14, 0)
LUNCH_END = time(14, 30)


def slot_window(value: time) -> tuple[time, time]:
    """Return the [start, end) quarter hour containing `value`"""
    start = value.replace(minute=(value.minute // SLOT_MINUTES) * SLOT_MINUTES, second=0, microsecond=0)
    end = (datetime.combine(date.min, start) + timedelta(minutes=SLOT_MINUTES)).time()
    return start, end


def _in_window(value: time, start: time, end: time) -> bool:
    """Half-open [start, end); an end of 00:00 means end of day"""
    if end == time(0, 0):
        return value >= start
    return start <= value < end


@dataclass
class DayPolicy:
    """Calendar facts for one doctor on one date, resolved once per query"""

    holiday: Optional[Holiday]
    hours: Optional[OfficeHours]
    absences: list[DoctorAbsence] = field(default_factory=list)

    def rejection(self, value: time) -> Optional[str]:
        """Reason the calendar forbids `value`, or None when it allows it"""
        if self.holiday:
            return f"Clinic is closed for a holiday ({self.holiday.reason or 'holiday'})"

        if not self.hours or self.hours.is_closed:
            return "Clinic is closed on this day"
        if value < self.hours.open_time or value > self.hours.close_time:
            return (
                f"Outside office hours ({self.hours.open_time:%H:%M}-"
                f"{self.hours.close_time:%H:%M})"
            )

        if LUNCH_START <= value <= LUNCH_END:
            return "Lunch break (14:00-14:30)"

        for absence in self.absences:
            if not absence.is_half_day:
                return "Doctor is absent for the day"
            if absence.from_time <= value <= absence.to_time:
                return (
                    f"Doctor is unavailable between {absence.from_time:%H:%M} "
                    f"and {absence.to_time:%H:%M}"
                )
        return None


class SlotAvailabilityEngine:
    """Checks and enumerates bookable quarter-hour slots"""

    def __init__(self, db: Session):
        self.db = db
        self.calendar = CalendarRepository()
        self.appointments = AppointmentRepository()

    def _day_policy(self, doctor_id: str, on: date) -> DayPolicy:
        holiday = self.calendar.get_holiday(self.db, on)
        if holiday:
            return DayPolicy(holiday=holiday, hours=None)
        return DayPolicy(
            holiday=None,
            hours=self.calendar.get_office_hours(self.db, day_of_week(on)),
            absences=self.calendar.list_absences(self.db, doctor_id, on),
        )

    def check_slot(self, doctor_id: str, on: date, at: time) -> None:
        """Raise SlotConflictError unless the doctor can be booked at `at` on `on`"""
        reason = self._day_policy(doctor_id, on).rejection(at)
        if reason:
            raise SlotConflictError(reason)

        start, end = slot_window(at)
        if self.appointments.booked_in_window(self.db, doctor_id, on, start, end):
            raise SlotConflictError(f"Slot {start:%H:%M} is already booked")

    def list_free_slots(self, doctor_id: str, on: date) -> list[time]:
        """Every quarter-hour start that check_slot would accept"""
        doctor = self.appointments.get_doctor(self.db, doctor_id)
        if not doctor:
            raise NotFoundError("Doctor not found")

        if self.appointments.count_for_doctor(self.db, doctor_id, on) >= doctor.max_appointments_per_day:
            logger.info(f"⚠️ {doctor.display_name} is fully booked on {on}")
            return []

        policy = self._day_policy(doctor_id, on)
        if policy.holiday or not policy.hours or policy.hours.is_closed:
            return []

        booked = self.appointments.booked_times(self.db, doctor_id, on)
        slots = []
        current = datetime.combine(on, policy.hours.open_time)
        close = datetime.combine(on, policy.hours.close_time)
        while current <= close:
            candidate = current.time()
            start, end = slot_window(candidate)
            taken = any(_in_window(t, start, end) for t in booked)
            if not taken and policy.rejection(candidate) is None:
                slots.append(candidate)
            current += timedelta(minutes=SLOT_MINUTES)
        return slots

    def available_doctors(self, on: date, at: time) -> list:
        """Doctors that can take a booking at `at` on `on` and are under their daily cap"""
        available = []
        for doctor in self.appointments.list_doctors(self.db):
            if self.appointments.count_for_doctor(self.db, doctor.id, on) >= doctor.max_appointments_per_day:
                continue
            try:
                self.check_slot(doctor.id, on, at)
            except SlotConflictError:
                continue
            available.append(doctor)
        return available

    def doctors_schedule(self, on: date) -> list[dict]:
        """Free slots of every doctor on a date"""
        return [
            {"doctor": doctor, "slots": self.list_free_slots(doctor.id, on)}
            for doctor in self.appointments.list_doctors(self.db)
        ]
