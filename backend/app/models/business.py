"""
Business Model
Marketplace tenants: salons, spas, barbershops and other beauty businesses
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, EmailStr, ConfigDict
from datetime import datetime

from app.models.common import BaseDocument, generate_id


class BusinessCategory(str, Enum):
    """Beauty business categories"""
    HAIR_SALON = "hair_salon"
    BARBERSHOP = "barbershop"
    NAIL_SALON = "nail_salon"
    SPA = "spa"
    MASSAGE = "massage"
    MAKEUP = "makeup"
    LASH_BROW = "lash_brow"
    SKINCARE = "skincare"
    WAXING = "waxing"
    TATTOO = "tattoo"
    OTHER = "other"


class Business(BaseDocument):
    """Business document model"""
    business_id: str = Field(default_factory=lambda: generate_id("bus"))
    owner_id: str  # User ID of business owner

    # Basic Info
    business_name: str
    slug: str  # Public booking page identifier, stable once created
    category: BusinessCategory = BusinessCategory.OTHER
    description: Optional[str] = None

    # Contact
    email: Optional[EmailStr] = None
    phone: str
    website: Optional[str] = None
    instagram: Optional[str] = None

    # Address
    address: str
    city: str
    state: str
    zip_code: str
    country: str = "US"
    latitude: Optional[float] = None  # Filled by geocoding
    longitude: Optional[float] = None

    timezone: str = "America/New_York"

    # Stripe Connect
    stripe_account_id: Optional[str] = None
    stripe_onboarded: bool = False
    commission_rate: Optional[float] = None  # Overrides the platform fee percentage

    is_active: bool = True
    is_verified: bool = False

    @property
    def payments_enabled(self) -> bool:
        """Business can take online payments"""
        return bool(self.stripe_account_id) and self.stripe_onboarded


class BusinessProfileUpdate(BaseModel):
    """Schema for updating the business profile"""
    business_name: str = Field(min_length=2, max_length=100)
    category: BusinessCategory
    address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=2, max_length=50)
    zip_code: str = Field(min_length=3, max_length=10)
    phone: str = Field(min_length=7, max_length=20)

    description: Optional[str] = None
    email: Optional[EmailStr] = None
    website: Optional[str] = None
    instagram: Optional[str] = None
    timezone: Optional[str] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class BusinessResponse(BaseModel):
    """Business response for the owner dashboard"""
    business_id: str
    owner_id: str
    business_name: str
    slug: str
    category: BusinessCategory
    description: Optional[str] = None
    email: Optional[str] = None
    phone: str
    website: Optional[str] = None
    instagram: Optional[str] = None
    address: str
    city: str
    state: str
    zip_code: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    timezone: str
    stripe_account_id: Optional[str] = None
    stripe_onboarded: bool
    commission_rate: Optional[float] = None
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PublicBusinessResponse(BaseModel):
    """Public-facing business response for the booking page"""
    business_id: str
    business_name: str
    slug: str
    category: BusinessCategory
    description: Optional[str] = None
    phone: str
    address: str
    city: str
    state: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    timezone: str
    payments_enabled: bool = False

    model_config = ConfigDict(from_attributes=True)
