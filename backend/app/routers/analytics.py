"""
Analytics API Router
Business dashboard figures
"""

from fastapi import APIRouter, Depends

from app.middleware.auth import BusinessContext, get_business_context
from app.models.common import utc_now
from app.services.analytics_service import AnalyticsService

router = APIRouter()


def get_analytics_service(ctx: BusinessContext = Depends(get_business_context)) -> AnalyticsService:
    """Analytics scoped to the owner's business"""
    return AnalyticsService(ctx.db, ctx.business_id)


@router.get(
    "",
    summary="Dashboard analytics"
)
async def get_dashboard(
    service: AnalyticsService = Depends(get_analytics_service)
):
    """
    Revenue, booking counts, recent transactions and top services

    Revenue counts paid bookings only and is reported as the business payout.
    """
    return {"success": True, "data": await service.get_dashboard()}


@router.get(
    "/bookings",
    summary="Booking counts"
)
async def get_booking_counts(
    service: AnalyticsService = Depends(get_analytics_service)
):
    """Total, completed, upcoming and cancelled bookings"""
    return {"success": True, "data": await service.get_booking_counts(utc_now())}
