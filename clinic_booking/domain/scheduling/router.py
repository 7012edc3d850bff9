"""Availability router - Public slot lookup endpoints"""

from datetime import date, time

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...errors import SlotConflictError
from .availability import SlotAvailabilityEngine
from .schemas import DoctorSchedule, DoctorSummary, FreeSlotsResponse, SlotCheckResponse

router = APIRouter(prefix="/availability", tags=["Availability"])


def get_availability_engine(db: Session = Depends(get_db)) -> SlotAvailabilityEngine:
    """Dependency injection for SlotAvailabilityEngine"""
    return SlotAvailabilityEngine(db)


@router.get("/doctors/{doctor_id}/slots", response_model=FreeSlotsResponse)
async def get_free_slots(
    doctor_id: str,
    on: date = Query(..., alias="date"),
    engine: SlotAvailabilityEngine = Depends(get_availability_engine),
):
    return {"doctor_id": doctor_id, "date": on, "slots": engine.list_free_slots(doctor_id, on)}


@router.get("/doctors/{doctor_id}/check", response_model=SlotCheckResponse)
async def check_slot(
    doctor_id: str,
    on: date = Query(..., alias="date"),
    at: time = Query(..., alias="time"),
    engine: SlotAvailabilityEngine = Depends(get_availability_engine),
):
    """Report whether a slot is bookable instead of failing the request"""
    try:
        engine.check_slot(doctor_id, on, at)
    except SlotConflictError as e:
        return {"doctor_id": doctor_id, "date": on, "time": at, "available": False, "reason": e.detail}
    return {"doctor_id": doctor_id, "date": on, "time": at, "available": True}


@router.get("/doctors", response_model=list[DoctorSummary])
async def get_available_doctors(
    on: date = Query(..., alias="date"),
    at: time = Query(..., alias="time"),
    engine: SlotAvailabilityEngine = Depends(get_availability_engine),
):
    return engine.available_doctors(on, at)


@router.get("/schedule", response_model=list[DoctorSchedule])
async def get_schedule(
    on: date = Query(..., alias="date"),
    engine: SlotAvailabilityEngine = Depends(get_availability_engine),
):
    return engine.doctors_schedule(on)
