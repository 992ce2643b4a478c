"""
Business Profile API Router
The owner's business record
"""

from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.database import get_database
from app.models.business import Business, BusinessProfileUpdate, BusinessResponse
from app.models.common import utc_now
from app.middleware.auth import get_current_business
from app.schemas.common import SingleResponse

router = APIRouter()

ADDRESS_FIELDS = ("address", "city", "state", "zip_code")


@router.get(
    "/profile",
    response_model=SingleResponse[BusinessResponse],
    summary="Get business profile"
)
async def get_profile(
    business: Business = Depends(get_current_business)
):
    """Get the owner's business"""
    return SingleResponse(data=BusinessResponse(**business.model_dump()))


@router.patch(
    "/profile",
    response_model=SingleResponse[BusinessResponse],
    summary="Update business profile"
)
async def update_profile(
    data: BusinessProfileUpdate,
    business: Business = Depends(get_current_business),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """
    Update the business profile

    The slug is kept when the name changes so booking links stay valid.
    """
    update_data = data.model_dump(exclude_unset=True)

    if update_data.get("timezone"):
        try:
            ZoneInfo(update_data["timezone"])
        except (ZoneInfoNotFoundError, ValueError):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"code": "INVALID_TIMEZONE", "message": "Unknown timezone"}
            )
    elif "timezone" in update_data:
        update_data.pop("timezone")

    # A moved business needs geocoding again
    if any(
        field in update_data and update_data[field] != getattr(business, field)
        for field in ADDRESS_FIELDS
    ):
        update_data["latitude"] = None
        update_data["longitude"] = None

    update_data["updated_at"] = utc_now()

    result = await db.businesses.find_one_and_update(
        {"business_id": business.business_id},
        {"$set": update_data},
        return_document=True
    )

    return SingleResponse(data=BusinessResponse(**result))
