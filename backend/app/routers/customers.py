"""
Customers API Router
Business CRM: profiles, metrics, messaging and export
"""

from fastapi import APIRouter, Depends, HTTPException, status, Query
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional

from app.database import get_database
from app.models.booking import BookingResponse
from app.models.customer import (
    CustomerProfileResponse, CustomerProfileUpdate,
    CommunicationCreate, CommunicationResponse
)
from app.middleware.auth import BusinessContext, get_business_context
from app.schemas.common import PaginatedResponse, SingleResponse
from app.services.customer_service import CustomerService, CustomerError
from app.services.report_generator import customers_csv, csv_download, export_filename

router = APIRouter()


def get_customer_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> CustomerService:
    """Get customer service instance"""
    return CustomerService(db)


def _http_error(e: CustomerError) -> HTTPException:
    status_code = (
        status.HTTP_404_NOT_FOUND if e.code == "CUSTOMER_NOT_FOUND" else status.HTTP_400_BAD_REQUEST
    )
    return HTTPException(status_code=status_code, detail={"code": e.code, "message": e.message})


@router.get(
    "",
    response_model=PaginatedResponse[CustomerProfileResponse],
    summary="List customers"
)
async def list_customers(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    search: Optional[str] = None,
    tag: Optional[str] = None,
    vip_only: bool = Query(False),
    sort: str = Query("last_visit", pattern="^(last_visit|total_spent|total_visits|name)$"),
    ctx: BusinessContext = Depends(get_business_context),
    service: CustomerService = Depends(get_customer_service)
):
    """
    List customer profiles

    Profiles are built from past bookings the first time this is called.
    """
    profiles, meta = await service.list_customers(
        ctx.business_id, search, tag, vip_only, sort, page, per_page
    )
    data = [CustomerProfileResponse(**p.model_dump()) for p in profiles]
    return PaginatedResponse(data=data, meta=meta)


@router.get(
    "/metrics",
    summary="Customer metrics"
)
async def get_customer_metrics(
    ctx: BusinessContext = Depends(get_business_context),
    service: CustomerService = Depends(get_customer_service)
):
    """Totals, new customers this month, top spenders and at-risk customers"""
    metrics = await service.get_metrics(ctx.business_id)
    metrics["top_customers"] = [
        CustomerProfileResponse(**p.model_dump()) for p in metrics["top_customers"]
    ]
    metrics["at_risk"] = [
        CustomerProfileResponse(**p.model_dump()) for p in metrics["at_risk"]
    ]
    return {"success": True, "data": metrics}


@router.get(
    "/export",
    summary="Export customers as CSV"
)
async def export_customers(
    ctx: BusinessContext = Depends(get_business_context),
    service: CustomerService = Depends(get_customer_service)
):
    """Download all customer profiles"""
    rows = await service.export_rows(ctx.business_id)
    return csv_download(customers_csv(rows), export_filename("customers"))


@router.get(
    "/{profile_id}",
    summary="Get customer"
)
async def get_customer(
    profile_id: str,
    ctx: BusinessContext = Depends(get_business_context),
    service: CustomerService = Depends(get_customer_service)
):
    """Profile with communications and recent bookings"""
    try:
        detail = await service.get_customer_detail(ctx.business_id, profile_id)
    except CustomerError as e:
        raise _http_error(e)

    return {
        "success": True,
        "data": {
            "profile": CustomerProfileResponse(**detail["profile"].model_dump()),
            "communications": [
                CommunicationResponse(**c.model_dump()) for c in detail["communications"]
            ],
            "bookings": [BookingResponse(**b) for b in detail["bookings"]],
        }
    }


@router.patch(
    "/{profile_id}",
    response_model=SingleResponse[CustomerProfileResponse],
    summary="Update customer"
)
async def update_customer(
    profile_id: str,
    data: CustomerProfileUpdate,
    ctx: BusinessContext = Depends(get_business_context),
    service: CustomerService = Depends(get_customer_service)
):
    """Edit notes, tags, VIP flag and personal details"""
    try:
        profile = await service.update_profile(ctx.business_id, profile_id, data)
    except CustomerError as e:
        raise _http_error(e)
    return SingleResponse(data=CustomerProfileResponse(**profile.model_dump()))


@router.post(
    "/{profile_id}/message",
    response_model=SingleResponse[CommunicationResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Message customer"
)
async def message_customer(
    profile_id: str,
    data: CommunicationCreate,
    ctx: BusinessContext = Depends(get_business_context),
    service: CustomerService = Depends(get_customer_service)
):
    """
    Log a note or call, or send an email or SMS

    The delivery result is stored on the communication.
    """
    try:
        communication = await service.send_message(ctx.business, profile_id, data, ctx.user)
    except CustomerError as e:
        raise _http_error(e)
    return SingleResponse(data=CommunicationResponse(**communication.model_dump()))
