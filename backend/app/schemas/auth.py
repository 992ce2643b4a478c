"""
Authentication request/response schemas
"""

from typing import Optional
from pydantic import BaseModel, Field, EmailStr, ConfigDict

from app.models.business import BusinessCategory


class LoginRequest(BaseModel):
    """Login request schema"""
    email: EmailStr
    password: str = Field(min_length=1)

    model_config = ConfigDict(str_strip_whitespace=True)


class CustomerSignupRequest(BaseModel):
    """Customer account registration"""
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    phone: Optional[str] = Field(None, min_length=7, max_length=20)

    model_config = ConfigDict(str_strip_whitespace=True)


class BusinessSignupRequest(CustomerSignupRequest):
    """Business owner registration, creates the business as well"""
    business_name: str = Field(min_length=2, max_length=100)
    category: BusinessCategory = BusinessCategory.OTHER
    address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=2, max_length=50)
    zip_code: str = Field(min_length=3, max_length=10)
    business_phone: str = Field(min_length=7, max_length=20)
    timezone: str = "America/New_York"


class TokenResponse(BaseModel):
    """Token response after successful authentication"""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds until access token expires

    # User info for frontend
    user_id: str
    email: str
    role: str
    business_id: Optional[str] = None
    first_name: str
    last_name: str


class RefreshRequest(BaseModel):
    """Token refresh request"""
    refresh_token: str


class PasswordResetRequest(BaseModel):
    """Request password reset (forgot password)"""
    email: EmailStr

    model_config = ConfigDict(str_strip_whitespace=True)


class PasswordResetConfirm(BaseModel):
    """Confirm password reset with token"""
    token: str
    new_password: str = Field(min_length=8, max_length=128)

    model_config = ConfigDict(str_strip_whitespace=True)


class UserProfileResponse(BaseModel):
    """Current user profile response"""
    user_id: str
    email: EmailStr
    role: str
    business_id: Optional[str] = None
    first_name: str
    last_name: str
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    is_verified: bool

    model_config = ConfigDict(from_attributes=True)
