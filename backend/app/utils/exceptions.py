"""
Custom Exceptions and Error Handling
Standardized error responses across the application
"""

from typing import Optional
from fastapi import HTTPException, status
from fastapi.responses import JSONResponse
from fastapi import Request
from pydantic import ValidationError
import logging

logger = logging.getLogger(__name__)


class GlowBookException(Exception):
    """Base exception for GlowBook application"""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        details: Optional[dict] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)

    def to_response(self) -> dict:
        """Convert to API response format"""
        response = {
            "success": False,
            "error": {
                "code": self.code,
                "message": self.message
            }
        }
        if self.details:
            response["error"]["details"] = self.details
        return response


# Booking Exceptions
class SlotUnavailableError(GlowBookException):
    """Requested time overlaps an existing reservation"""

    def __init__(self, message: str = "This time slot is no longer available"):
        super().__init__(
            code="SLOT_UNAVAILABLE",
            message=message,
            status_code=status.HTTP_409_CONFLICT
        )


class BusinessClosedError(GlowBookException):
    """Business is closed on requested date/time"""

    def __init__(self, date: str, reason: Optional[str] = None):
        message = f"Business is closed on {date}"
        if reason:
            message += f": {reason}"
        super().__init__(
            code="BUSINESS_CLOSED",
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST
        )


class BookingPolicyError(GlowBookException):
    """Booking rule violated (notice window, state transition)"""

    def __init__(self, message: str, code: str = "BOOKING_POLICY"):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST
        )


class PaymentsNotEnabledError(GlowBookException):
    """Business has not finished Stripe onboarding"""

    def __init__(self):
        super().__init__(
            code="PAYMENTS_NOT_ENABLED",
            message="This business has not set up online payments",
            status_code=status.HTTP_400_BAD_REQUEST
        )


# Exception Handlers for FastAPI
async def glowbook_exception_handler(request: Request, exc: GlowBookException) -> JSONResponse:
    """Handle GlowBook custom exceptions"""
    logger.warning(f"GlowBook exception: {exc.code} - {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response()
    )


async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Handle Pydantic validation errors"""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"]
        })

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Input validation failed",
                "details": {"errors": errors}
            }
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions"""
    detail = exc.detail
    if isinstance(detail, dict):
        code = detail.get("code", "HTTP_ERROR")
        message = detail.get("message", str(detail))
    else:
        code = "HTTP_ERROR"
        message = str(detail)

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": {
                "code": code,
                "message": message
            }
        },
        headers=getattr(exc, "headers", None)
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions"""
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": {
                "code": "INTERNAL_SERVER_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app"""
    from fastapi.exceptions import RequestValidationError

    app.add_exception_handler(GlowBookException, glowbook_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
