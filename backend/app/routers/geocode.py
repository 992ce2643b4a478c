"""
Geocoding API Router
Business coordinates from Mapbox
"""

from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.database import get_database
from app.models.user import User, UserRole
from app.middleware.auth import BusinessContext, get_business_context, require_roles
from app.services.geocoding_service import GeocodingService, GeocodingError

router = APIRouter()

ERROR_STATUS = {
    "BUSINESS_NOT_FOUND": status.HTTP_404_NOT_FOUND,
}


def get_geocoding_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> GeocodingService:
    """Get geocoding service instance"""
    return GeocodingService(db)


@router.post(
    "",
    summary="Geocode my business"
)
async def geocode_my_business(
    ctx: BusinessContext = Depends(get_business_context),
    service: GeocodingService = Depends(get_geocoding_service)
):
    """Look up coordinates for the owner's business address"""
    try:
        result = await service.geocode_business(ctx.business_id)
    except GeocodingError as e:
        raise HTTPException(
            status_code=ERROR_STATUS.get(e.code, status.HTTP_400_BAD_REQUEST),
            detail={"code": e.code, "message": e.message}
        )

    message = "Business already geocoded" if result["already_geocoded"] else "Business geocoded"
    return {"success": True, "message": message, "data": result}


@router.put(
    "",
    summary="Geocode all businesses"
)
async def geocode_all_businesses(
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    service: GeocodingService = Depends(get_geocoding_service)
):
    """Admin batch for every active business still missing coordinates"""
    counts = await service.geocode_missing()
    return {
        "success": True,
        "message": f"Geocoded {counts['geocoded']} businesses, {counts['failed']} failed",
        "data": counts
    }
