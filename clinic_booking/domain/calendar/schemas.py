"""Calendar domain schemas - Pydantic models for validation"""

from datetime import date, time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class HolidayCreate(BaseModel):
    """Schema for adding a clinic holiday"""

    date: date
    reason: Optional[str] = None
    is_recurring: bool = False


class HolidayResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    date: date
    reason: Optional[str] = None
    is_recurring: bool


class OfficeHoursUpdate(BaseModel):
    """Schema for setting the hours of one weekday (0 = Sunday)"""

    day_of_week: int = Field(..., ge=0, le=6)
    open_time: time
    close_time: time
    is_closed: bool = False

    @model_validator(mode="after")
    def validate_window(self):
        if not self.is_closed and self.close_time <= self.open_time:
            raise ValueError("close_time must be after open_time")
        return self


class OfficeHoursResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    day_of_week: int
    open_time: time
    close_time: time
    is_closed: bool


class AbsenceCreate(BaseModel):
    """Schema for a doctor absence; from/to both set makes it a half-day absence"""

    date: date
    from_time: Optional[time] = None
    to_time: Optional[time] = None
    reason: Optional[str] = None

    @model_validator(mode="after")
    def validate_window(self):
        if (self.from_time is None) != (self.to_time is None):
            raise ValueError("from_time and to_time must be given together")
        if self.from_time and self.to_time and self.to_time < self.from_time:
            raise ValueError("to_time must not be before from_time")
        return self


class AbsenceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    doctor_id: str
    date: date
    from_time: Optional[time] = None
    to_time: Optional[time] = None
    reason: Optional[str] = None
    is_half_day: bool
