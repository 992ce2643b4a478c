"""
Bookings API Router
Customer bookings and the owner's booking dashboard
"""

from fastapi import APIRouter, Depends, HTTPException, status, Query
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional

from app.database import get_database
from app.models.booking import (
    BookingCreate, BookingResponse, BookingStatusUpdate, CustomerBookingResponse
)
from app.models.common import validate_date_string
from app.models.user import User
from app.middleware.auth import require_customer, BusinessContext, get_business_context
from app.schemas.common import ListResponse, SingleResponse
from app.services.booking_service import BookingService, BookingError
from app.services.promotion_service import PromotionError
from app.services.report_generator import bookings_csv, csv_download, export_filename

# Customer endpoints, mounted at /bookings
router = APIRouter()

# Owner endpoints, mounted at /business/bookings
business_router = APIRouter()

ERROR_STATUS = {
    "BUSINESS_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "SERVICE_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "STAFF_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "BOOKING_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "NOT_AUTHORIZED": status.HTTP_403_FORBIDDEN,
    "PAYMENT_FAILED": status.HTTP_502_BAD_GATEWAY,
    "REFUND_FAILED": status.HTTP_502_BAD_GATEWAY,
    "PAYMENT_CANCEL_FAILED": status.HTTP_502_BAD_GATEWAY,
}


def get_booking_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> BookingService:
    """Get booking service instance"""
    return BookingService(db)


def booking_http_error(e: BookingError) -> HTTPException:
    """Translate a booking error to its HTTP response"""
    return HTTPException(
        status_code=ERROR_STATUS.get(e.code, status.HTTP_400_BAD_REQUEST),
        detail={"code": e.code, "message": e.message}
    )


def promotion_http_error(e: PromotionError) -> HTTPException:
    """A rejected promo code on checkout"""
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"code": e.code, "message": e.message}
    )


def _check_dates(*values: Optional[str]) -> None:
    for value in values:
        try:
            validate_date_string(value)
        except ValueError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"code": "INVALID_DATE", "message": str(e)}
            )


# ==================== Customer ====================

@router.post(
    "",
    response_model=SingleResponse[BookingResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Book a service"
)
async def create_booking(
    data: BookingCreate,
    current_user: User = Depends(require_customer),
    service: BookingService = Depends(get_booking_service)
):
    """
    Book a service and pay at the venue

    The slot is reserved atomically; a taken slot returns 409.
    """
    try:
        booking = await service.create_booking(current_user, data)
    except BookingError as e:
        raise booking_http_error(e)
    except PromotionError as e:
        raise promotion_http_error(e)

    return SingleResponse(data=BookingResponse(**booking.model_dump()))


@router.get(
    "",
    response_model=ListResponse[CustomerBookingResponse],
    summary="List my bookings"
)
async def list_my_bookings(
    current_user: User = Depends(require_customer),
    service: BookingService = Depends(get_booking_service)
):
    """Current customer's bookings, newest first"""
    docs = await service.list_customer_bookings(current_user.user_id)
    bookings = [CustomerBookingResponse(**doc) for doc in docs]
    return ListResponse(data=bookings, count=len(bookings))


# ==================== Business ====================

@business_router.get(
    "",
    response_model=ListResponse[BookingResponse],
    summary="List business bookings"
)
async def list_business_bookings(
    start_date: Optional[str] = Query(None, description="YYYY-MM-DD, inclusive"),
    end_date: Optional[str] = Query(None, description="YYYY-MM-DD, inclusive"),
    booking_status: Optional[str] = Query(None, alias="status"),
    ctx: BusinessContext = Depends(get_business_context),
    service: BookingService = Depends(get_booking_service)
):
    """Bookings by date and start time"""
    _check_dates(start_date, end_date)
    docs = await service.list_business_bookings(ctx.business_id, start_date, end_date, booking_status)
    bookings = [BookingResponse(**doc) for doc in docs]
    return ListResponse(data=bookings, count=len(bookings))


@business_router.get(
    "/export",
    summary="Export bookings as CSV"
)
async def export_bookings(
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    booking_status: Optional[str] = Query(None, alias="status"),
    ctx: BusinessContext = Depends(get_business_context),
    service: BookingService = Depends(get_booking_service)
):
    """Download the filtered bookings"""
    _check_dates(start_date, end_date)
    docs = await service.list_business_bookings(ctx.business_id, start_date, end_date, booking_status)
    return csv_download(bookings_csv(docs), export_filename("bookings"))


@business_router.patch(
    "/{booking_id}",
    response_model=SingleResponse[BookingResponse],
    summary="Update booking status"
)
async def update_booking_status(
    booking_id: str,
    data: BookingStatusUpdate,
    ctx: BusinessContext = Depends(get_business_context),
    service: BookingService = Depends(get_booking_service)
):
    """Set the booking status; cancelling frees the slot"""
    try:
        booking = await service.update_status(ctx.business_id, booking_id, data.status, ctx.user)
    except BookingError as e:
        raise booking_http_error(e)

    return SingleResponse(data=BookingResponse(**booking.model_dump()))


@business_router.post(
    "/{booking_id}/complete",
    response_model=SingleResponse[BookingResponse],
    summary="Complete booking"
)
async def complete_booking(
    booking_id: str,
    ctx: BusinessContext = Depends(get_business_context),
    service: BookingService = Depends(get_booking_service)
):
    """Mark a booking completed and update the customer's visit history"""
    try:
        booking = await service.complete_booking(ctx.business_id, booking_id)
    except BookingError as e:
        raise booking_http_error(e)

    return SingleResponse(data=BookingResponse(**booking.model_dump()))
