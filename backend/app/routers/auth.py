"""
Authentication API Router
Handles signup, login, token refresh, and password resets
"""

from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.database import get_database
from app.services.auth_service import AuthService, AuthError
from app.schemas.auth import (
    LoginRequest,
    CustomerSignupRequest,
    BusinessSignupRequest,
    TokenResponse,
    RefreshRequest,
    PasswordResetRequest,
    PasswordResetConfirm,
    UserProfileResponse
)
from app.schemas.common import MessageResponse, ErrorResponse
from app.middleware.auth import get_current_user
from app.models.user import User

router = APIRouter()


def get_auth_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> AuthService:
    """Dependency to get auth service"""
    return AuthService(db)


def _signup_error(e: AuthError) -> HTTPException:
    status_code = status.HTTP_409_CONFLICT if e.code == "EMAIL_EXISTS" else status.HTTP_400_BAD_REQUEST
    return HTTPException(
        status_code=status_code,
        detail={"code": e.code, "message": e.message}
    )


@router.post(
    "/signup/customer",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"model": ErrorResponse, "description": "Email already exists"}
    }
)
async def signup_customer(
    data: CustomerSignupRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Register a customer account

    Returns JWT tokens for immediate authentication.
    """
    try:
        user = await auth_service.register_customer(data)
        return auth_service.create_tokens(user)
    except AuthError as e:
        raise _signup_error(e)


@router.post(
    "/signup/business",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"model": ErrorResponse, "description": "Email already exists"}
    }
)
async def signup_business(
    data: BusinessSignupRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Register a business owner and their business

    The business gets a unique booking-page slug and is open
    Tuesday to Saturday, 09:00-17:00, until the owner changes it.
    """
    try:
        user, _ = await auth_service.register_business(data)
        return auth_service.create_tokens(user)
    except AuthError as e:
        raise _signup_error(e)


@router.post(
    "/login",
    response_model=TokenResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
        423: {"model": ErrorResponse, "description": "Account locked"}
    }
)
async def login(
    data: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Authenticate user and return JWT tokens

    Account will be locked for 30 minutes after 5 failed attempts.
    """
    try:
        user = await auth_service.authenticate(data.email, data.password)
        return auth_service.create_tokens(user)

    except AuthError as e:
        if e.code == "ACCOUNT_LOCKED":
            status_code = status.HTTP_423_LOCKED
        elif e.code == "ACCOUNT_DISABLED":
            status_code = status.HTTP_403_FORBIDDEN
        else:
            status_code = status.HTTP_401_UNAUTHORIZED

        raise HTTPException(
            status_code=status_code,
            detail={"code": e.code, "message": e.message}
        )


@router.post(
    "/refresh",
    response_model=TokenResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid refresh token"}
    }
)
async def refresh_token(
    data: RefreshRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """Exchange a refresh token for a new token pair"""
    try:
        return await auth_service.refresh_tokens(data.refresh_token)

    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": e.code, "message": e.message}
        )


@router.get(
    "/me",
    response_model=UserProfileResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"}
    }
)
async def get_current_user_profile(
    current_user: User = Depends(get_current_user)
):
    """Get current authenticated user's profile"""
    return UserProfileResponse(
        user_id=current_user.user_id,
        email=current_user.email,
        role=current_user.role,
        business_id=current_user.business_id,
        first_name=current_user.first_name,
        last_name=current_user.last_name,
        phone=current_user.phone,
        avatar_url=current_user.avatar_url,
        is_verified=current_user.is_verified
    )


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    responses={
        200: {"description": "Reset email sent (or user doesn't exist)"}
    }
)
async def forgot_password(
    data: PasswordResetRequest,
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Request a password reset email

    Always returns the same message to prevent email enumeration.
    """
    await auth_service.request_password_reset(data.email)
    return MessageResponse(
        message="If an account exists with this email, a password reset link has been sent."
    )


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid or expired token"}
    }
)
async def reset_password(
    data: PasswordResetConfirm,
    auth_service: AuthService = Depends(get_auth_service)
):
    """Set a new password with a reset token"""
    try:
        await auth_service.reset_password(data.token, data.new_password)
        return MessageResponse(message="Password has been reset successfully")
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": e.code, "message": e.message}
        )
