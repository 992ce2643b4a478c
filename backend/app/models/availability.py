"""
Availability Model
Weekly opening hours and time-off blocks for a business
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from app.models.common import (
    BaseDocument, generate_id, validate_time_string, validate_date_string
)


class WeeklyAvailability(BaseDocument):
    """Opening hours for one day of the week (0=Sunday ... 6=Saturday)"""
    availability_id: str = Field(default_factory=lambda: generate_id("avl"))
    business_id: str  # Multi-tenant key
    day_of_week: int = Field(ge=0, le=6)
    start_time: str
    end_time: str
    is_active: bool = True


class AvailabilityDay(BaseModel):
    """One row of the weekly schedule as submitted by the owner"""
    day_of_week: int = Field(ge=0, le=6)
    start_time: str
    end_time: str
    is_active: bool = True

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("start_time", "end_time")
    @classmethod
    def check_time_format(cls, v):
        return validate_time_string(v)

    @model_validator(mode="after")
    def check_window(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class AvailabilityReplace(BaseModel):
    """Full replacement of the weekly schedule"""
    days: list[AvailabilityDay] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_unique_days(self):
        seen = [d.day_of_week for d in self.days]
        if len(seen) != len(set(seen)):
            raise ValueError("Each day_of_week may appear only once")
        return self


class AvailabilityResponse(BaseModel):
    """Weekly hours row response"""
    availability_id: str
    day_of_week: int
    start_time: str
    end_time: str
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class TimeOff(BaseDocument):
    """A closed date, or a closed window on a date when times are set"""
    time_off_id: str = Field(default_factory=lambda: generate_id("tof"))
    business_id: str
    date: str  # YYYY-MM-DD
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = None

    @property
    def is_full_day(self) -> bool:
        return self.start_time is None or self.end_time is None


class TimeOffCreate(BaseModel):
    """Schema for creating a time-off entry"""
    date: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = Field(None, max_length=200)

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("date")
    @classmethod
    def check_date_format(cls, v):
        return validate_date_string(v)

    @field_validator("start_time", "end_time")
    @classmethod
    def check_time_format(cls, v):
        return validate_time_string(v)

    @model_validator(mode="after")
    def check_window(self):
        if (self.start_time is None) != (self.end_time is None):
            raise ValueError("Provide both start_time and end_time, or neither for a full day")
        if self.start_time and self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class TimeOffResponse(BaseModel):
    """Time-off response"""
    time_off_id: str
    date: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = None
    is_full_day: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
