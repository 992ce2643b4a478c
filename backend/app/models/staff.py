"""
Staff Model
Team members, their weekly schedules and the services they perform
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, EmailStr, ConfigDict, field_validator

from app.models.common import BaseDocument, generate_id, validate_time_string


class StaffRole(str, Enum):
    """Staff role; list order is owner, manager, staff"""
    OWNER = "owner"
    MANAGER = "manager"
    STAFF = "staff"


ROLE_ORDER = {StaffRole.OWNER.value: 0, StaffRole.MANAGER.value: 1, StaffRole.STAFF.value: 2}


class StaffSchedule(BaseModel):
    """Working hours for one day of the week"""
    day_of_week: int = Field(ge=0, le=6)
    start_time: str
    end_time: str
    is_active: bool = True

    @field_validator("start_time", "end_time")
    @classmethod
    def check_time_format(cls, v):
        return validate_time_string(v)


class Staff(BaseDocument):
    """Staff document model"""
    staff_id: str = Field(default_factory=lambda: generate_id("stf"))
    business_id: str  # Multi-tenant key

    name: str
    email: EmailStr
    phone: Optional[str] = None
    role: StaffRole = StaffRole.STAFF

    can_manage_bookings: bool = False
    can_manage_staff: bool = False

    service_ids: list[str] = Field(default_factory=list)
    schedules: list[StaffSchedule] = Field(default_factory=list)

    is_active: bool = True


class StaffCreate(BaseModel):
    """Schema for creating a staff member"""
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = None
    role: StaffRole = StaffRole.STAFF
    can_manage_bookings: bool = False
    can_manage_staff: bool = False
    service_ids: list[str] = Field(default_factory=list)
    schedules: list[StaffSchedule] = Field(default_factory=list)

    model_config = ConfigDict(str_strip_whitespace=True)


class StaffUpdate(BaseModel):
    """Schema for updating a staff member"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    role: Optional[StaffRole] = None
    can_manage_bookings: Optional[bool] = None
    can_manage_staff: Optional[bool] = None
    service_ids: Optional[list[str]] = None
    schedules: Optional[list[StaffSchedule]] = None
    is_active: Optional[bool] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class StaffResponse(BaseModel):
    """Staff response"""
    staff_id: str
    business_id: str
    name: str
    email: str
    phone: Optional[str] = None
    role: StaffRole
    can_manage_bookings: bool
    can_manage_staff: bool
    service_ids: list[str]
    schedules: list[StaffSchedule]
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
