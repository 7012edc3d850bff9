"""Slot availability: office hours, lunch, holidays, absences and existing bookings"""

from datetime import date, datetime, time, timedelta

import pytest

from clinic_booking.domain.calendar.service import CalendarService
from clinic_booking.domain.scheduling.availability import SlotAvailabilityEngine, slot_window
from clinic_booking.errors import NotFoundError, SlotConflictError
from clinic_booking.models import AppointmentStatus, PaymentMethod

from .conftest import TODAY

SATURDAY = TODAY + timedelta(days=5)
SUNDAY = TODAY + timedelta(days=6)


@pytest.fixture
def engine_(db) -> SlotAvailabilityEngine:
    return SlotAvailabilityEngine(db)


@pytest.fixture
def calendar(db) -> CalendarService:
    return CalendarService(db)


def quarter_hours(start: time, end: time) -> list[time]:
    slots = []
    current = datetime.combine(TODAY, start)
    while current <= datetime.combine(TODAY, end):
        slots.append(current.time())
        current += timedelta(minutes=15)
    return slots


class TestSlotWindow:
    def test_floors_to_quarter_hour(self):
        assert slot_window(time(9, 14)) == (time(9, 0), time(9, 15))
        assert slot_window(time(9, 15)) == (time(9, 15), time(9, 30))

    def test_carries_into_next_hour(self):
        assert slot_window(time(10, 50)) == (time(10, 45), time(11, 0))

    def test_last_slot_of_day_ends_at_midnight(self):
        assert slot_window(time(23, 59)) == (time(23, 45), time(0, 0))


class TestCheckSlot:
    def test_open_slot_is_accepted(self, engine_, doctor):
        engine_.check_slot(doctor.id, TODAY, time(10, 0))

    def test_booked_quarter_hour_conflicts_only_within_window(
        self, engine_, doctor, patient, make_appointment
    ):
        make_appointment(patient, doctor, TODAY, time(9, 0))

        with pytest.raises(SlotConflictError):
            engine_.check_slot(doctor.id, TODAY, time(9, 14))
        engine_.check_slot(doctor.id, TODAY, time(9, 15))

    def test_pending_booking_is_not_counted_on_read(self, engine_, doctor, patient, make_appointment):
        make_appointment(
            patient, doctor, TODAY, time(9, 0), AppointmentStatus.PENDING, PaymentMethod.ESEWA
        )
        engine_.check_slot(doctor.id, TODAY, time(9, 5))

    def test_cancelled_booking_frees_the_slot(self, engine_, doctor, patient, make_appointment):
        make_appointment(patient, doctor, TODAY, time(9, 0), AppointmentStatus.CANCELLED)
        engine_.check_slot(doctor.id, TODAY, time(9, 0))

    def test_other_doctor_booking_does_not_conflict(
        self, engine_, doctor, second_doctor, patient, make_appointment
    ):
        make_appointment(patient, second_doctor, TODAY, time(9, 0))
        engine_.check_slot(doctor.id, TODAY, time(9, 0))

    def test_office_hours_bounds_are_inclusive(self, engine_, doctor):
        engine_.check_slot(doctor.id, TODAY, time(9, 0))
        engine_.check_slot(doctor.id, TODAY, time(17, 0))

        with pytest.raises(SlotConflictError, match="Outside office hours"):
            engine_.check_slot(doctor.id, TODAY, time(8, 59))
        with pytest.raises(SlotConflictError, match="Outside office hours"):
            engine_.check_slot(doctor.id, TODAY, time(17, 1))

    def test_closed_day(self, engine_, doctor):
        with pytest.raises(SlotConflictError, match="closed"):
            engine_.check_slot(doctor.id, SATURDAY, time(10, 0))

    def test_sunday_uses_its_own_hours(self, engine_, doctor):
        engine_.check_slot(doctor.id, SUNDAY, time(17, 30))
        with pytest.raises(SlotConflictError):
            engine_.check_slot(doctor.id, SUNDAY, time(9, 30))

    def test_missing_office_hours_rejects(self, engine_, doctor, db):
        from clinic_booking.models import OfficeHours

        db.query(OfficeHours).filter(OfficeHours.day_of_week == 1).delete()
        db.commit()
        with pytest.raises(SlotConflictError):
            engine_.check_slot(doctor.id, TODAY, time(10, 0))

    @pytest.mark.parametrize("at", [time(14, 0), time(14, 15), time(14, 30)])
    def test_lunch_break(self, engine_, doctor, at):
        with pytest.raises(SlotConflictError, match="Lunch"):
            engine_.check_slot(doctor.id, TODAY, at)

    def test_after_lunch_is_open(self, engine_, doctor):
        engine_.check_slot(doctor.id, TODAY, time(14, 31))
        engine_.check_slot(doctor.id, TODAY, time(13, 59))

    def test_holiday(self, engine_, doctor, calendar):
        calendar.add_holiday(TODAY, "Dashain")
        with pytest.raises(SlotConflictError, match="holiday"):
            engine_.check_slot(doctor.id, TODAY, time(10, 0))

    def test_recurring_holiday_matches_month_and_day(self, engine_, doctor, calendar):
        calendar.add_holiday(date(2019, TODAY.month, TODAY.day), "Founders day", is_recurring=True)
        with pytest.raises(SlotConflictError):
            engine_.check_slot(doctor.id, TODAY, time(10, 0))

    def test_one_off_holiday_from_another_year_is_ignored(self, engine_, doctor, calendar):
        calendar.add_holiday(date(2019, TODAY.month, TODAY.day), "Closed once")
        engine_.check_slot(doctor.id, TODAY, time(10, 0))

    def test_full_day_absence(self, engine_, doctor, calendar):
        calendar.add_doctor_absence(doctor.id, TODAY, reason="Conference")
        with pytest.raises(SlotConflictError, match="absent"):
            engine_.check_slot(doctor.id, TODAY, time(10, 0))

    def test_half_day_absence_is_inclusive(self, engine_, doctor, calendar):
        calendar.add_doctor_absence(doctor.id, TODAY, time(10, 0), time(11, 0))

        for at in (time(10, 0), time(10, 30), time(11, 0)):
            with pytest.raises(SlotConflictError, match="unavailable"):
                engine_.check_slot(doctor.id, TODAY, at)
        engine_.check_slot(doctor.id, TODAY, time(9, 45))
        engine_.check_slot(doctor.id, TODAY, time(11, 15))

    def test_absence_of_other_doctor_does_not_apply(self, engine_, doctor, second_doctor, calendar):
        calendar.add_doctor_absence(second_doctor.id, TODAY)
        engine_.check_slot(doctor.id, TODAY, time(10, 0))


class TestListFreeSlots:
    def test_weekday_has_every_quarter_hour_except_lunch(self, engine_, doctor):
        slots = engine_.list_free_slots(doctor.id, TODAY)

        assert slots[0] == time(9, 0)
        assert slots[-1] == time(17, 0)
        assert time(14, 0) not in slots and time(14, 30) not in slots
        assert len(slots) == 33 - 3

    def test_closing_time_is_offered_like_check_slot_accepts_it(self, engine_, doctor):
        engine_.check_slot(doctor.id, TODAY, time(17, 0))
        assert time(17, 0) in engine_.list_free_slots(doctor.id, TODAY)
        assert time(17, 15) not in engine_.list_free_slots(doctor.id, TODAY)

    def test_booked_slot_is_removed(self, engine_, doctor, patient, make_appointment):
        make_appointment(patient, doctor, TODAY, time(10, 5))
        slots = engine_.list_free_slots(doctor.id, TODAY)
        assert time(10, 0) not in slots
        assert time(10, 15) in slots

    def test_closed_and_holiday_days_are_empty(self, engine_, doctor, calendar):
        assert engine_.list_free_slots(doctor.id, SATURDAY) == []
        calendar.add_holiday(TODAY)
        assert engine_.list_free_slots(doctor.id, TODAY) == []

    def test_daily_cap_empties_the_list(self, engine_, doctor, patient, make_appointment, db):
        doctor.max_appointments_per_day = 1
        db.commit()
        make_appointment(
            patient, doctor, TODAY, time(9, 0), AppointmentStatus.PENDING, PaymentMethod.STRIPE
        )
        assert engine_.list_free_slots(doctor.id, TODAY) == []

    def test_unknown_doctor(self, engine_):
        with pytest.raises(NotFoundError):
            engine_.list_free_slots("missing", TODAY)

    def test_agrees_with_check_slot(self, engine_, doctor, patient, calendar, make_appointment):
        make_appointment(patient, doctor, TODAY, time(9, 30))
        make_appointment(patient, doctor, TODAY, time(15, 10))
        calendar.add_doctor_absence(doctor.id, TODAY, time(11, 0), time(12, 0))

        free = set(engine_.list_free_slots(doctor.id, TODAY))
        for at in quarter_hours(time(8, 45), time(17, 15)):
            try:
                engine_.check_slot(doctor.id, TODAY, at)
                accepted = True
            except SlotConflictError:
                accepted = False
            assert (at in free) == accepted, at


class TestDoctorQueries:
    def test_available_doctors_excludes_booked_and_capped(
        self, engine_, doctor, second_doctor, patient, make_appointment
    ):
        make_appointment(patient, doctor, TODAY, time(10, 0))
        available = engine_.available_doctors(TODAY, time(10, 0))
        assert [d.id for d in available] == [second_doctor.id]

    def test_doctors_schedule_lists_every_doctor(self, engine_, doctor, second_doctor, calendar):
        calendar.add_doctor_absence(second_doctor.id, TODAY)
        schedule = {entry["doctor"].id: entry["slots"] for entry in engine_.doctors_schedule(TODAY)}

        assert len(schedule[doctor.id]) == 30
        assert schedule[second_doctor.id] == []
