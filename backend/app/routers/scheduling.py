"""
Booking Page API Router
Public booking page, slot availability and the prepaid booking flow
"""

from fastapi import APIRouter, Depends, HTTPException, status, Query
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional

from app.database import get_database
from app.models.availability import AvailabilityResponse
from app.models.booking import BookingCreate, BookingActionRequest, BookingResponse
from app.models.business import Business, PublicBusinessResponse
from app.models.common import validate_date_string
from app.models.service import PublicServiceResponse
from app.models.user import User
from app.middleware.auth import require_customer, require_any_authenticated
from app.routers.bookings import get_booking_service, booking_http_error, promotion_http_error
from app.services.booking_service import BookingService, BookingError, fees_payload
from app.services.promotion_service import PromotionError
from app.services.scheduling_service import SchedulingService

router = APIRouter()


def get_scheduling_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> SchedulingService:
    """Get scheduling service instance"""
    return SchedulingService(db)


async def _find_business(
    db: AsyncIOMotorDatabase,
    business_id: Optional[str] = None,
    slug: Optional[str] = None
) -> Business:
    query: dict = {"is_active": True, "deleted_at": None}
    if business_id:
        query["business_id"] = business_id
    elif slug:
        query["slug"] = slug.lower()
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "MISSING_BUSINESS", "message": "business_id or slug is required"}
        )

    doc = await db.businesses.find_one(query)
    if not doc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "BUSINESS_NOT_FOUND", "message": "Business not found"}
        )
    return Business(**doc)


@router.get(
    "/availability",
    summary="Get available slots"
)
async def get_availability(
    service_id: str,
    date: str = Query(..., description="YYYY-MM-DD"),
    business_id: Optional[str] = None,
    slug: Optional[str] = None,
    db: AsyncIOMotorDatabase = Depends(get_database),
    scheduling: SchedulingService = Depends(get_scheduling_service)
):
    """
    Slots for one service on one date

    A slot is unavailable when the service would overlap a booking or
    a time-off window, or when it has already started today.
    """
    try:
        validate_date_string(date)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "INVALID_DATE", "message": str(e)}
        )

    business = await _find_business(db, business_id, slug)

    service = await db.services.find_one({
        "service_id": service_id,
        "business_id": business.business_id,
        "is_active": True,
        "deleted_at": None
    })
    if not service:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "SERVICE_NOT_FOUND", "message": "Service not found"}
        )

    result = await scheduling.get_availability(business, service["duration_minutes"], date)
    return {"success": True, "data": result}


@router.post(
    "/create-payment-intent",
    status_code=status.HTTP_201_CREATED,
    summary="Book with prepayment"
)
async def create_payment_intent(
    data: BookingCreate,
    current_user: User = Depends(require_customer),
    service: BookingService = Depends(get_booking_service)
):
    """
    Reserve a slot and start a Stripe payment for it

    The booking stays pending until Stripe reports the payment.
    """
    try:
        result = await service.create_paid_booking(current_user, data)
    except BookingError as e:
        raise booking_http_error(e)
    except PromotionError as e:
        raise promotion_http_error(e)

    return {
        "success": True,
        "data": {
            "client_secret": result["client_secret"],
            "booking_id": result["booking_id"],
            "amount": result["amount"],
            "fees": fees_payload(result["fees"]),
        }
    }


@router.post(
    "/cancel",
    summary="Cancel booking"
)
async def cancel_booking(
    data: BookingActionRequest,
    current_user: User = Depends(require_any_authenticated),
    service: BookingService = Depends(get_booking_service)
):
    """
    Cancel a booking as its customer or the business owner

    Customers must cancel 24 hours ahead. Paid bookings are not refunded here.
    """
    try:
        booking, message = await service.cancel_booking(data.booking_id, current_user, data.reason)
    except BookingError as e:
        raise booking_http_error(e)

    return {
        "success": True,
        "message": message,
        "data": BookingResponse(**booking.model_dump())
    }


@router.post(
    "/refund",
    summary="Refund booking"
)
async def refund_booking(
    data: BookingActionRequest,
    current_user: User = Depends(require_any_authenticated),
    service: BookingService = Depends(get_booking_service)
):
    """Fully refund a paid booking and cancel it"""
    try:
        booking = await service.refund_booking(data.booking_id, current_user, data.reason)
    except BookingError as e:
        raise booking_http_error(e)

    return {
        "success": True,
        "message": "Refund issued",
        "data": BookingResponse(**booking.model_dump())
    }


@router.get(
    "/{slug}",
    summary="Public booking page"
)
async def get_booking_page(
    slug: str,
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Business details, weekly hours and active services for a booking page"""
    business = await _find_business(db, slug=slug)

    hours = await db.availability.find({
        "business_id": business.business_id,
        "is_active": True
    }).sort("day_of_week", 1).to_list(length=7)

    services = await db.services.find({
        "business_id": business.business_id,
        "is_active": True,
        "deleted_at": None
    }).sort("name", 1).to_list(length=500)

    return {
        "success": True,
        "data": {
            "business": PublicBusinessResponse(
                **business.model_dump(),
                payments_enabled=business.payments_enabled
            ),
            "availability": [AvailabilityResponse(**h) for h in hours],
            "services": [PublicServiceResponse(**s) for s in services],
        }
    }
