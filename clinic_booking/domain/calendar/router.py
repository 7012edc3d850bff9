"""Calendar router - Admin endpoints for holidays, office hours and absences"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from .schemas import (
    AbsenceCreate,
    AbsenceResponse,
    HolidayCreate,
    HolidayResponse,
    OfficeHoursResponse,
    OfficeHoursUpdate,
)
from .service import CalendarService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["Calendar"], dependencies=[Depends(require_admin)])


def get_calendar_service(db: Session = Depends(get_db)) -> CalendarService:
    """Dependency injection for CalendarService"""
    return CalendarService(db)


# ============================================================================
# HOLIDAYS
# ============================================================================


@router.get("/holidays", response_model=list[HolidayResponse])
async def list_holidays(service: CalendarService = Depends(get_calendar_service)):
    return service.get_holidays()


@router.post("/holidays", response_model=HolidayResponse)
async def add_holiday(body: HolidayCreate, service: CalendarService = Depends(get_calendar_service)):
    return service.add_holiday(body.date, body.reason, body.is_recurring)


@router.delete("/holidays/{holiday_id}")
async def remove_holiday(holiday_id: str, service: CalendarService = Depends(get_calendar_service)):
    return service.remove_holiday(holiday_id)


# ============================================================================
# OFFICE HOURS
# ============================================================================


@router.get("/office-hours", response_model=list[OfficeHoursResponse])
async def list_office_hours(service: CalendarService = Depends(get_calendar_service)):
    return service.get_office_hours()


@router.put("/office-hours", response_model=OfficeHoursResponse)
async def set_office_hours(
    body: OfficeHoursUpdate, service: CalendarService = Depends(get_calendar_service)
):
    return service.set_office_hours(body.day_of_week, body.open_time, body.close_time, body.is_closed)


# ============================================================================
# DOCTOR ABSENCES
# ============================================================================


@router.get("/absences/{doctor_id}", response_model=list[AbsenceResponse])
async def list_absences(
    doctor_id: str,
    on: date = Query(..., alias="date"),
    service: CalendarService = Depends(get_calendar_service),
):
    return service.get_doctor_absences(doctor_id, on)


@router.post("/absences/{doctor_id}", response_model=AbsenceResponse)
async def add_absence(
    doctor_id: str, body: AbsenceCreate, service: CalendarService = Depends(get_calendar_service)
):
    return service.add_doctor_absence(doctor_id, body.date, body.from_time, body.to_time, body.reason)


@router.post("/absences", response_model=list[AbsenceResponse])
async def add_absence_for_all(
    body: AbsenceCreate, service: CalendarService = Depends(get_calendar_service)
):
    """Add the same absence for every doctor"""
    return service.add_absence_for_all(body.date, body.from_time, body.to_time, body.reason)


@router.delete("/absences/{absence_id}")
async def remove_absence(absence_id: str, service: CalendarService = Depends(get_calendar_service)):
    return service.remove_doctor_absence(absence_id)
