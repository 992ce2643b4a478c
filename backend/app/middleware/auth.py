"""
Authentication and Authorization Middleware
JWT token validation and role-based access control
"""

from typing import Optional, Callable
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.database import get_database
from app.models.user import User, UserRole
from app.models.business import Business
from app.utils.security import verify_token, TokenData

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


async def get_token_data(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[TokenData]:
    """
    Extract and validate token from Authorization header

    Returns TokenData if valid token, None if no token provided
    Raises HTTPException if token is invalid
    """
    if credentials is None:
        return None

    token = credentials.credentials
    token_data = verify_token(token, token_type="access")

    if token_data is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "INVALID_TOKEN", "message": "Invalid or expired access token"},
            headers={"WWW-Authenticate": "Bearer"}
        )

    return token_data


async def get_current_user(
    token_data: Optional[TokenData] = Depends(get_token_data),
    db: AsyncIOMotorDatabase = Depends(get_database)
) -> User:
    """
    Get current authenticated user from token

    Raises HTTPException if not authenticated or user not found
    """
    if token_data is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "NOT_AUTHENTICATED", "message": "Authentication required"},
            headers={"WWW-Authenticate": "Bearer"}
        )

    user_dict = await db.users.find_one({"user_id": token_data.user_id})

    if not user_dict:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "USER_NOT_FOUND", "message": "User not found"},
            headers={"WWW-Authenticate": "Bearer"}
        )

    user = User(**user_dict)

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "ACCOUNT_DISABLED", "message": "Account has been disabled"}
        )

    return user


def require_roles(*allowed_roles: UserRole) -> Callable:
    """
    Dependency factory for role-based access control

    Usage:
        @router.get("/admin-only")
        async def admin_endpoint(user: User = Depends(require_roles(UserRole.ADMIN))):
            ...

    Args:
        *allowed_roles: Roles that are allowed to access the endpoint

    Returns:
        Dependency function that validates user role
    """
    async def role_checker(
        current_user: User = Depends(get_current_user)
    ) -> User:
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "code": "INSUFFICIENT_PERMISSIONS",
                    "message": f"This action requires one of these roles: {[r.value for r in allowed_roles]}"
                }
            )
        return current_user

    return role_checker


# Convenience dependency instances
require_customer = require_roles(UserRole.CUSTOMER)
require_any_authenticated = get_current_user


async def require_business_owner(
    current_user: User = Depends(require_roles(UserRole.BUSINESS_OWNER, UserRole.ADMIN))
) -> User:
    """
    Business owner with a business attached

    Admins pass only when they are attached to a business as well.
    """
    if not current_user.business_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "code": "NO_BUSINESS_ACCESS",
                "message": "User is not associated with any business"
            }
        )
    return current_user


class BusinessContext:
    """
    Context for business-scoped operations

    Ensures queries are filtered by the owner's business_id
    """

    def __init__(self, user: User, business: Business, db: AsyncIOMotorDatabase):
        self.user = user
        self.business = business
        self.db = db
        self.business_id = business.business_id

    def filter_query(self, query: dict) -> dict:
        """Add business_id filter to query"""
        return {**query, "business_id": self.business_id}


async def get_current_business(
    current_user: User = Depends(require_business_owner),
    db: AsyncIOMotorDatabase = Depends(get_database)
) -> Business:
    """
    Dependency to get current owner's business
    """
    business_dict = await db.businesses.find_one({"business_id": current_user.business_id})

    if not business_dict:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "BUSINESS_NOT_FOUND", "message": "Business not found"}
        )

    return Business(**business_dict)


async def get_business_context(
    current_user: User = Depends(require_business_owner),
    business: Business = Depends(get_current_business),
    db: AsyncIOMotorDatabase = Depends(get_database)
) -> BusinessContext:
    """
    Dependency to get business context for scoped queries
    """
    return BusinessContext(current_user, business, db)
