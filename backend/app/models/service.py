"""
Service Model
Bookable treatments with pricing and duration
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime

from app.models.common import BaseDocument, generate_id


class ServiceCategory(str, Enum):
    """Service categories"""
    HAIRCUT = "haircut"
    COLOR = "color"
    STYLING = "styling"
    SHAVE = "shave"
    NAILS = "nails"
    FACIAL = "facial"
    MASSAGE = "massage"
    MAKEUP = "makeup"
    LASHES = "lashes"
    BROWS = "brows"
    WAXING = "waxing"
    BODY = "body"
    CONSULTATION = "consultation"
    OTHER = "other"


class Service(BaseDocument):
    """Service document model"""
    service_id: str = Field(default_factory=lambda: generate_id("svc"))
    business_id: str  # Multi-tenant key

    name: str
    description: Optional[str] = None
    category: ServiceCategory = ServiceCategory.OTHER

    price: float = Field(ge=0)
    duration_minutes: int = Field(default=60, ge=15, le=480)

    is_active: bool = True
    sort_order: int = 0

    # Stats (denormalized)
    times_booked: int = 0


class ServiceCreate(BaseModel):
    """Schema for creating a service"""
    name: str = Field(min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    category: ServiceCategory = ServiceCategory.OTHER
    price: float = Field(ge=0)
    duration_minutes: int = Field(default=60, ge=15, le=480)
    is_active: bool = True
    sort_order: int = 0

    model_config = ConfigDict(str_strip_whitespace=True)


class ServiceUpdate(BaseModel):
    """Schema for updating a service"""
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    category: Optional[ServiceCategory] = None
    price: Optional[float] = Field(None, ge=0)
    duration_minutes: Optional[int] = Field(None, ge=15, le=480)
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class ServiceResponse(BaseModel):
    """Service response"""
    service_id: str
    business_id: str
    name: str
    description: Optional[str] = None
    category: ServiceCategory
    price: float
    duration_minutes: int
    is_active: bool
    sort_order: int = 0
    times_booked: int = 0
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PublicServiceResponse(BaseModel):
    """Service as shown on the public booking page"""
    service_id: str
    name: str
    description: Optional[str] = None
    category: ServiceCategory
    price: float
    duration_minutes: int

    model_config = ConfigDict(from_attributes=True)
