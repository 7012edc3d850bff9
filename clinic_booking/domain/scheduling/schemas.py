"""Scheduling domain schemas - Availability responses"""

from datetime import date, time
from typing import Optional

from pydantic import BaseModel, ConfigDict


class DoctorSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    specialization: Optional[str] = None
    max_appointments_per_day: int


class FreeSlotsResponse(BaseModel):
    doctor_id: str
    date: date
    slots: list[time]


class SlotCheckResponse(BaseModel):
    doctor_id: str
    date: date
    time: time
    available: bool
    reason: Optional[str] = None


class DoctorSchedule(BaseModel):
    doctor: DoctorSummary
    slots: list[time]
