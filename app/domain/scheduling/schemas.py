"""Scheduling domain schemas - Pydantic models for settings, slots and bookings"""

from datetime import date as date_type
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...shared.validators import validate_hhmm

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class BusinessHoursDay(BaseModel):
    open: str = "09:00"
    close: str = "17:00"
    is_open: bool = True

    @field_validator("open", "close")
    @classmethod
    def validate_time(cls, v):
        return validate_hhmm(v)

    @model_validator(mode="after")
    def check_order(self):
        if self.is_open and self.close <= self.open:
            raise ValueError("Closing time must be after opening time")
        return self


class BusinessHours(BaseModel):
    """Weekly opening hours. Defaults: Mon-Sat 09:00-17:00, Sunday closed."""

    monday: BusinessHoursDay = BusinessHoursDay()
    tuesday: BusinessHoursDay = BusinessHoursDay()
    wednesday: BusinessHoursDay = BusinessHoursDay()
    thursday: BusinessHoursDay = BusinessHoursDay()
    friday: BusinessHoursDay = BusinessHoursDay()
    saturday: BusinessHoursDay = BusinessHoursDay()
    sunday: BusinessHoursDay = BusinessHoursDay(is_open=False)

    def for_date(self, day: date_type) -> BusinessHoursDay:
        return getattr(self, WEEKDAYS[day.weekday()])


class BlockedDate(BaseModel):
    """A single blocked day, or an inclusive range when end_date is set"""

    date: date_type
    end_date: Optional[date_type] = None
    reason: str = ""

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date is not None and self.end_date < self.date:
            raise ValueError("end_date must be on or after date")
        return self

    def covers(self, day: date_type) -> bool:
        return self.date <= day <= (self.end_date or self.date)


class BookingSettings(BaseModel):
    min_advance_hours: int = Field(default=2, ge=0, le=168)
    max_advance_days: int = Field(default=90, ge=1, le=365)
    cancellation_cutoff_hours: int = Field(default=24, ge=0, le=168)
    buffer_minutes: int = Field(default=15, ge=0, le=120)
    blocked_dates: list[BlockedDate] = []
    # 0 = Sunday ... 6 = Saturday
    recurring_blocked_days: list[int] = [0]

    @field_validator("buffer_minutes")
    @classmethod
    def validate_buffer(cls, v):
        if v % 5 != 0:
            raise ValueError("buffer_minutes must be a multiple of 5")
        return v

    @field_validator("recurring_blocked_days")
    @classmethod
    def validate_recurring_days(cls, v):
        for day in v:
            if day < 0 or day > 6:
                raise ValueError("recurring_blocked_days must contain values 0-6 (0 = Sunday)")
        return sorted(set(v))


class BookedAppointment(BaseModel):
    """Typed view of an appointment row as seen by the conflict checker"""

    id: Optional[int] = None
    scheduled_at: datetime
    duration_minutes: int
    status: str
    groomer_id: Optional[int] = None

    class Config:
        from_attributes = True


class TimeSlot(BaseModel):
    time: str
    available: bool
    booked_count: int = 0


class DayAvailability(BaseModel):
    date: str
    is_closed: bool
    reason: Optional[str] = None
    business_hours: Optional[dict] = None
    time_slots: list[TimeSlot] = []


class BlockedDateResult(BaseModel):
    blocked_dates: list[BlockedDate]
    affected_appointments: int = 0
