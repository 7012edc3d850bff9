"""Appointment domain schemas - Pydantic models for validation"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from ...models import AppointmentStatus, Currency, Gender, PaymentMethod, PaymentStatus


class AppointmentCreate(BaseModel):
    """Schema for booking an appointment"""

    doctor_id: str
    date: date
    time: time
    age: int
    gender: Gender
    phone_number: str
    payment_method: PaymentMethod = PaymentMethod.CASH

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("phone_number is required")
        if not all(ch.isdigit() or ch in "+- ()" for ch in v):
            raise ValueError("phone_number contains invalid characters")
        return v


class PaymentSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    method: PaymentMethod
    status: PaymentStatus
    amount: Decimal
    currency: Currency
    transaction_code: Optional[str] = None
    checkout_url: Optional[str] = None


class DoctorInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    specialization: Optional[str] = None


class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    patient_id: str
    doctor_id: Optional[str] = None
    doctor: Optional[DoctorInfo] = None
    date: date
    time: time
    age: int
    gender: Gender
    phone_number: str
    price: Decimal
    currency: Currency
    status: AppointmentStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    payment: Optional[PaymentSummary] = None
    file_url: Optional[str] = None
    created_at: Optional[datetime] = None


class AppointmentPage(BaseModel):
    items: list[AppointmentResponse]
    total: int
    page: int
    limit: int
