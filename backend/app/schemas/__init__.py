"""
API Request/Response Schemas
"""

from app.schemas.auth import (
    LoginRequest,
    CustomerSignupRequest,
    BusinessSignupRequest,
    TokenResponse,
    RefreshRequest,
    PasswordResetRequest,
    PasswordResetConfirm
)
from app.schemas.common import (
    PaginatedResponse,
    MessageResponse,
    ErrorResponse,
    ErrorDetail
)

__all__ = [
    # Auth
    "LoginRequest",
    "CustomerSignupRequest",
    "BusinessSignupRequest",
    "TokenResponse",
    "RefreshRequest",
    "PasswordResetRequest",
    "PasswordResetConfirm",
    # Common
    "PaginatedResponse",
    "MessageResponse",
    "ErrorResponse",
    "ErrorDetail"
]
