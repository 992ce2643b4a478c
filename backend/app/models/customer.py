"""
Customer CRM Models
Business-scoped customer profiles and the communications logged against them
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from app.models.common import BaseDocument, generate_id


class CustomerTag(str, Enum):
    """Automatic customer tags"""
    NEW = "new"
    REGULAR = "regular"


class CommunicationType(str, Enum):
    """Communication channel"""
    NOTE = "note"
    EMAIL = "email"
    SMS = "sms"
    CALL = "call"


class CommunicationStatus(str, Enum):
    """Delivery state of a communication"""
    LOGGED = "logged"  # Stored only (notes, calls)
    SENT = "sent"
    FAILED = "failed"


class CustomerProfile(BaseDocument):
    """Customer profile, one per (business, customer user)"""
    profile_id: str = Field(default_factory=lambda: generate_id("cus"))
    business_id: str
    user_id: str

    name: str
    email: Optional[str] = None
    phone: Optional[str] = None

    # Visit history (completed bookings)
    total_visits: int = 0
    total_spent: float = 0.0
    average_spent: float = 0.0
    first_visit: Optional[datetime] = None
    last_visit: Optional[datetime] = None
    favorite_service: Optional[str] = None

    tags: list[str] = Field(default_factory=list)
    is_vip: bool = False

    # Owner-maintained fields
    notes: Optional[str] = None
    birthday: Optional[str] = None
    preferences: Optional[str] = None
    allergies: Optional[str] = None


class CustomerProfileUpdate(BaseModel):
    """Owner edits to a profile"""
    notes: Optional[str] = Field(None, max_length=5000)
    tags: Optional[list[str]] = None
    is_vip: Optional[bool] = None
    birthday: Optional[str] = None
    preferences: Optional[str] = Field(None, max_length=2000)
    allergies: Optional[str] = Field(None, max_length=2000)
    phone: Optional[str] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class CustomerProfileResponse(BaseModel):
    """Customer profile response"""
    profile_id: str
    business_id: str
    user_id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    total_visits: int
    total_spent: float
    average_spent: float
    first_visit: Optional[datetime] = None
    last_visit: Optional[datetime] = None
    favorite_service: Optional[str] = None
    tags: list[str]
    is_vip: bool
    notes: Optional[str] = None
    birthday: Optional[str] = None
    preferences: Optional[str] = None
    allergies: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Communication(BaseDocument):
    """A note or message exchanged with a customer"""
    communication_id: str = Field(default_factory=lambda: generate_id("com"))
    business_id: str
    profile_id: str
    type: CommunicationType = CommunicationType.NOTE
    subject: Optional[str] = None
    content: str
    status: CommunicationStatus = CommunicationStatus.LOGGED
    error: Optional[str] = None
    sent_by: Optional[str] = None  # User ID


class CommunicationCreate(BaseModel):
    """Message request"""
    type: CommunicationType = CommunicationType.NOTE
    subject: Optional[str] = Field(None, max_length=200)
    content: str = Field(min_length=1, max_length=5000)

    model_config = ConfigDict(str_strip_whitespace=True)


class CommunicationResponse(BaseModel):
    """Communication response"""
    communication_id: str
    profile_id: str
    type: CommunicationType
    subject: Optional[str] = None
    content: str
    status: CommunicationStatus
    error: Optional[str] = None
    sent_by: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
