"""
User Model
Handles authentication and user accounts
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, EmailStr, ConfigDict

from app.models.common import BaseDocument, generate_id, utc_now


class UserRole(str, Enum):
    """User role types for RBAC"""
    CUSTOMER = "customer"
    BUSINESS_OWNER = "business_owner"
    ADMIN = "admin"


class User(BaseDocument):
    """User document model"""
    user_id: str = Field(default_factory=lambda: generate_id("usr"))
    email: EmailStr
    password_hash: str
    role: UserRole = UserRole.CUSTOMER
    business_id: Optional[str] = None  # Set for business owners

    # Profile
    first_name: str
    last_name: str
    phone: Optional[str] = None
    avatar_url: Optional[str] = None

    # Status
    is_active: bool = True
    is_verified: bool = False

    # Tracking
    last_login_at: Optional[datetime] = None
    failed_login_attempts: int = 0
    locked_until: Optional[datetime] = None

    # Payments
    stripe_customer_id: Optional[str] = None

    @property
    def full_name(self) -> str:
        """Get user's full name"""
        return f"{self.first_name} {self.last_name}"

    def record_login(self) -> None:
        """Record successful login"""
        self.last_login_at = utc_now()
        self.failed_login_attempts = 0
        self.locked_until = None
        self.updated_at = utc_now()

    def record_failed_login(self, max_attempts: int = 5, lockout_minutes: int = 30) -> None:
        """Record failed login attempt"""
        self.failed_login_attempts += 1
        if self.failed_login_attempts >= max_attempts:
            self.locked_until = utc_now() + timedelta(minutes=lockout_minutes)
        self.updated_at = utc_now()

    def is_locked(self) -> bool:
        """Check if account is locked"""
        if self.locked_until is None:
            return False
        locked_until = self.locked_until
        if locked_until.tzinfo is None:
            locked_until = locked_until.replace(tzinfo=utc_now().tzinfo)
        return utc_now() < locked_until


class UserResponse(BaseModel):
    """Public user response (excludes sensitive data)"""
    user_id: str
    email: EmailStr
    role: UserRole
    business_id: Optional[str] = None
    first_name: str
    last_name: str
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    is_active: bool
    is_verified: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
