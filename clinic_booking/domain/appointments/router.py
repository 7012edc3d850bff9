"""Appointment router - Patient booking and admin lifecycle endpoints"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_admin
from ...config import Settings, get_settings
from ...database import get_db
from ...models import AppointmentStatus, User
from ...tasks import TaskScheduler, get_task_scheduler
from .schemas import AppointmentCreate, AppointmentPage, AppointmentResponse
from .service import AppointmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


def get_appointment_service(
    db: Session = Depends(get_db),
    scheduler: TaskScheduler = Depends(get_task_scheduler),
    settings: Settings = Depends(get_settings),
) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(db, scheduler, settings)


# ============================================================================
# ADMIN ENDPOINTS (declared first so /admin/... is not captured by /{id})
# ============================================================================


@router.get("/admin/all", response_model=AppointmentPage)
async def list_all_appointments(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin: User = Depends(require_admin),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.list_all(page, limit)


@router.get("/admin/status/{status}", response_model=AppointmentPage)
async def list_appointments_by_status(
    status: AppointmentStatus,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin: User = Depends(require_admin),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.list_by_status(status, page, limit)


@router.get("/admin/today", response_model=list[AppointmentResponse])
async def list_today_appointments(
    admin: User = Depends(require_admin),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.list_today()


@router.get("/admin/doctor/{doctor_id}", response_model=list[AppointmentResponse])
async def list_doctor_appointments(
    doctor_id: str,
    on: date = Query(..., alias="date"),
    admin: User = Depends(require_admin),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.list_doctor_day(doctor_id, on)


@router.get("/admin/{appointment_id}", response_model=AppointmentResponse)
async def get_any_appointment(
    appointment_id: str,
    admin: User = Depends(require_admin),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.get(appointment_id)


@router.patch("/admin/{appointment_id}/complete", response_model=AppointmentResponse)
async def complete_appointment(
    appointment_id: str,
    admin: User = Depends(require_admin),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.complete(appointment_id)


@router.patch("/admin/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: str,
    admin: User = Depends(require_admin),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.cancel(appointment_id)


# ============================================================================
# PATIENT ENDPOINTS
# ============================================================================


@router.post("", response_model=AppointmentResponse, status_code=201)
async def create_appointment(
    data: AppointmentCreate,
    user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Book an appointment for the current user"""
    return await service.create(
        patient_id=user.id,
        doctor_id=data.doctor_id,
        on=data.date,
        at=data.time,
        age=data.age,
        gender=data.gender,
        phone_number=data.phone_number,
        method=data.payment_method,
    )


@router.get("", response_model=AppointmentPage)
async def list_my_appointments(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.list_for_patient(user.id, page, limit)


@router.get("/status/{status}", response_model=AppointmentPage)
async def list_my_appointments_by_status(
    status: AppointmentStatus,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.list_for_patient(user.id, page, limit, status)


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_my_appointment(
    appointment_id: str,
    user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.get_for_patient(appointment_id, user.id)
