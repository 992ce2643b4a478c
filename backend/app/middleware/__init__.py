"""
Middleware modules
"""

from app.middleware.auth import (
    get_current_user, require_roles, require_business_owner
)

__all__ = ["get_current_user", "require_roles", "require_business_owner"]
