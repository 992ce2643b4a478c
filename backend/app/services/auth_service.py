"""
Authentication Service
Handles customer and business signup, login, and token management
"""

from typing import Optional, Tuple
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError
import logging
import re
import secrets
from datetime import timedelta

from app.models.user import User, UserRole
from app.models.business import Business
from app.models.availability import WeeklyAvailability
from app.models.common import utc_now, slugify
from app.schemas.auth import CustomerSignupRequest, BusinessSignupRequest, TokenResponse
from app.services.email_service import get_email_service
from app.utils.security import (
    get_password_hash,
    verify_password,
    create_access_token,
    create_refresh_token,
    verify_token
)
from app.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

# New businesses open Tuesday to Saturday, 09:00-17:00
DEFAULT_OPEN_DAYS = [2, 3, 4, 5, 6]
DEFAULT_OPEN_TIME = "09:00"
DEFAULT_CLOSE_TIME = "17:00"


class AuthError(Exception):
    """Authentication error"""
    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


class AuthService:
    """Authentication service for user management"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.users = db.users
        self.businesses = db.businesses

    async def _ensure_email_available(self, email: str) -> None:
        existing = await self.users.find_one({"email": email.lower()})
        if existing:
            raise AuthError("EMAIL_EXISTS", "An account with this email already exists")

    async def _insert_user(self, user: User) -> None:
        try:
            await self.users.insert_one(user.model_dump())
        except DuplicateKeyError:
            raise AuthError("EMAIL_EXISTS", "An account with this email already exists")

    async def register_customer(self, data: CustomerSignupRequest) -> User:
        """
        Register a customer account

        Raises:
            AuthError: If the email is taken
        """
        await self._ensure_email_available(data.email)

        user = User(
            email=data.email.lower(),
            password_hash=get_password_hash(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            role=UserRole.CUSTOMER
        )
        await self._insert_user(user)

        logger.info(f"Customer registered: {user.email}")
        return user

    async def generate_unique_slug(self, business_name: str) -> str:
        """
        Slug from the business name, with a numeric suffix when taken

        "Glow Studio" -> glow-studio, then glow-studio-1, glow-studio-2 ...
        """
        base = slugify(business_name)
        taken = await self.businesses.find(
            {"slug": {"$regex": f"^{re.escape(base)}(-\\d+)?$"}}
        ).to_list(length=None)
        existing = {doc["slug"] for doc in taken}

        if base not in existing:
            return base
        suffix = 1
        while f"{base}-{suffix}" in existing:
            suffix += 1
        return f"{base}-{suffix}"

    async def register_business(
        self,
        data: BusinessSignupRequest
    ) -> Tuple[User, Business]:
        """
        Register a business owner together with their business

        The business gets a unique slug and default weekly hours.

        Raises:
            AuthError: If the email is taken
        """
        await self._ensure_email_available(data.email)

        user = User(
            email=data.email.lower(),
            password_hash=get_password_hash(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            role=UserRole.BUSINESS_OWNER
        )

        business = Business(
            owner_id=user.user_id,
            business_name=data.business_name,
            slug=await self.generate_unique_slug(data.business_name),
            category=data.category,
            email=data.email.lower(),
            phone=data.business_phone,
            address=data.address,
            city=data.city,
            state=data.state,
            zip_code=data.zip_code,
            timezone=data.timezone
        )
        user.business_id = business.business_id

        await self._insert_user(user)
        await self.businesses.insert_one(business.model_dump())

        for day in DEFAULT_OPEN_DAYS:
            row = WeeklyAvailability(
                business_id=business.business_id,
                day_of_week=day,
                start_time=DEFAULT_OPEN_TIME,
                end_time=DEFAULT_CLOSE_TIME
            )
            await self.db.availability.insert_one(row.model_dump())

        logger.info(
            f"Business registered: {business.business_name} ({business.slug}) "
            f"owner {user.email}"
        )
        return user, business

    async def authenticate(
        self,
        email: str,
        password: str
    ) -> User:
        """
        Authenticate user with email and password

        Raises:
            AuthError: If authentication fails
        """
        user_dict = await self.users.find_one({"email": email.lower()})

        if not user_dict:
            raise AuthError("INVALID_CREDENTIALS", "Invalid email or password")

        user = User(**user_dict)

        if user.is_locked():
            raise AuthError(
                "ACCOUNT_LOCKED",
                "Account is temporarily locked due to too many failed login attempts"
            )

        if not user.is_active:
            raise AuthError("ACCOUNT_DISABLED", "This account has been disabled")

        if not verify_password(password, user.password_hash):
            user.record_failed_login()
            await self.users.update_one(
                {"user_id": user.user_id},
                {"$set": {
                    "failed_login_attempts": user.failed_login_attempts,
                    "locked_until": user.locked_until,
                    "updated_at": utc_now()
                }}
            )
            if user.locked_until is not None:
                logger.warning(f"Account locked after failed logins: {user.email}")
            raise AuthError("INVALID_CREDENTIALS", "Invalid email or password")

        user.record_login()
        await self.users.update_one(
            {"user_id": user.user_id},
            {"$set": {
                "last_login_at": user.last_login_at,
                "failed_login_attempts": 0,
                "locked_until": None,
                "updated_at": utc_now()
            }}
        )

        logger.info(f"User authenticated: {user.email}")
        return user

    def create_tokens(self, user: User) -> TokenResponse:
        """Create access and refresh tokens for user"""
        access_token = create_access_token(
            user_id=user.user_id,
            role=user.role,
            business_id=user.business_id
        )

        refresh_token = create_refresh_token(
            user_id=user.user_id,
            role=user.role,
            business_id=user.business_id
        )

        return TokenResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            token_type="bearer",
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            user_id=user.user_id,
            email=user.email,
            role=user.role,
            business_id=user.business_id,
            first_name=user.first_name,
            last_name=user.last_name
        )

    async def refresh_tokens(self, refresh_token: str) -> TokenResponse:
        """
        Refresh access token using refresh token

        Raises:
            AuthError: If refresh token is invalid
        """
        token_data = verify_token(refresh_token, token_type="refresh")

        if not token_data:
            raise AuthError("INVALID_TOKEN", "Invalid or expired refresh token")

        user = await self.get_user_by_id(token_data.user_id)
        if not user:
            raise AuthError("USER_NOT_FOUND", "User no longer exists")

        if not user.is_active:
            raise AuthError("ACCOUNT_DISABLED", "This account has been disabled")

        return self.create_tokens(user)

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        """Get user by ID"""
        user_dict = await self.users.find_one({"user_id": user_id})
        if not user_dict:
            return None
        return User(**user_dict)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Get user by email"""
        user_dict = await self.users.find_one({"email": email.lower()})
        if not user_dict:
            return None
        return User(**user_dict)

    async def request_password_reset(self, email: str) -> None:
        """
        Store a reset token and email the reset link

        Unknown emails are ignored so callers cannot learn which accounts exist.
        """
        user = await self.get_user_by_email(email)
        if not user:
            logger.info(f"Password reset requested for unknown email: {email}")
            return

        token = secrets.token_urlsafe(32)
        expires_at = utc_now() + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES)

        await self.db.password_reset_tokens.delete_many({"user_id": user.user_id})
        await self.db.password_reset_tokens.insert_one({
            "token": token,
            "user_id": user.user_id,
            "email": user.email,
            "expires_at": expires_at,
            "created_at": utc_now(),
            "used": False
        })

        result = await get_email_service().send_password_reset(
            to_email=user.email,
            user_name=user.first_name,
            reset_link=f"{settings.APP_URL}/reset-password?token={token}",
            expires_minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES
        )
        if not result.success:
            logger.error(f"Password reset email failed for {user.email}: {result.error}")

        logger.info(f"Password reset token created for: {user.email}")

    async def reset_password(self, token: str, new_password: str) -> None:
        """
        Reset password using token

        Raises:
            AuthError: If token is invalid, expired or already used
        """
        token_doc = await self.db.password_reset_tokens.find_one({
            "token": token,
            "used": False,
            "expires_at": {"$gt": utc_now()}
        })

        if not token_doc:
            raise AuthError("INVALID_TOKEN", "Invalid or expired reset token")

        await self.users.update_one(
            {"user_id": token_doc["user_id"]},
            {"$set": {
                "password_hash": get_password_hash(new_password),
                "failed_login_attempts": 0,
                "locked_until": None,
                "updated_at": utc_now()
            }}
        )

        await self.db.password_reset_tokens.update_one(
            {"token": token},
            {"$set": {"used": True, "used_at": utc_now()}}
        )

        logger.info(f"Password reset completed for user: {token_doc['user_id']}")
