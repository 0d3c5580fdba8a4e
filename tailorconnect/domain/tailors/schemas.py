"""Tailor domain schemas - Pydantic models for validation"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...shared.validators import validate_username


class TimeWindowIn(BaseModel):
    """A window as HH:MM strings, e.g. {"start": "09:00", "end": "12:00"}"""

    start: str
    end: str


class TimeWindowOut(BaseModel):
    start: str
    end: str


class DayScheduleIn(BaseModel):
    isOpen: bool = False
    windows: list[TimeWindowIn] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def accept_slots_alias(cls, data):
        # Older clients send the day's windows as "slots"
        if isinstance(data, dict) and "windows" not in data and "slots" in data:
            data = {**data, "windows": data["slots"]}
        return data


class DateExceptionIn(BaseModel):
    date: date
    isAvailable: bool = False
    windows: list[TimeWindowIn] = Field(default_factory=list)
    reason: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def accept_slots_alias(cls, data):
        if isinstance(data, dict) and "windows" not in data and "slots" in data:
            data = {**data, "windows": data["slots"]}
        return data


class WeeklyScheduleIn(BaseModel):
    monday: DayScheduleIn = Field(default_factory=DayScheduleIn)
    tuesday: DayScheduleIn = Field(default_factory=DayScheduleIn)
    wednesday: DayScheduleIn = Field(default_factory=DayScheduleIn)
    thursday: DayScheduleIn = Field(default_factory=DayScheduleIn)
    friday: DayScheduleIn = Field(default_factory=DayScheduleIn)
    saturday: DayScheduleIn = Field(default_factory=DayScheduleIn)
    sunday: DayScheduleIn = Field(default_factory=DayScheduleIn)


class AvailabilityUpdate(BaseModel):
    """Body of PUT /tailors/me/availability"""

    schedule: WeeklyScheduleIn
    slotDuration: int = 60
    bufferTime: int = 15
    advanceBookingDays: int = 30
    timezone: str = "UTC"
    exceptions: list[DateExceptionIn] = Field(default_factory=list)


class DayScheduleOut(BaseModel):
    isOpen: bool
    windows: list[TimeWindowOut]


class DateExceptionOut(BaseModel):
    date: date
    isAvailable: bool
    windows: list[TimeWindowOut]
    reason: Optional[str] = None


class AvailabilityResponse(BaseModel):
    schedule: dict[str, DayScheduleOut]
    slotDuration: int
    bufferTime: int
    advanceBookingDays: int
    timezone: str
    exceptions: list[DateExceptionOut]


class TailorProfileUpsert(BaseModel):
    username: str
    businessName: Optional[str] = None
    acceptingBookings: bool = True

    @field_validator("username")
    @classmethod
    def check_username(cls, v):
        return validate_username(v)


class TailorProfileResponse(BaseModel):
    id: int
    username: str
    businessName: Optional[str] = None
    acceptingBookings: bool

    class Config:
        from_attributes = True
