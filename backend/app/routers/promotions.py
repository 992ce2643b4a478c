"""
Promotions API Router
Owner promotion management and checkout validation
"""

from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.database import get_database
from app.models.promotion import (
    PromotionCreate, PromotionUpdate, PromotionResponse,
    PromotionValidateRequest, PromotionUseRequest
)
from app.models.user import User
from app.middleware.auth import BusinessContext, get_business_context, require_any_authenticated
from app.schemas.common import ListResponse, SingleResponse, MessageResponse
from app.services.promotion_service import PromotionService, PromotionError, promotion_to_response

# Checkout endpoints, mounted at /promotions
router = APIRouter()

# Owner endpoints, mounted at /business/promotions
business_router = APIRouter()

ERROR_STATUS = {
    "PROMOTION_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PROMOTION_CODE_EXISTS": status.HTTP_409_CONFLICT,
}


def get_promotion_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> PromotionService:
    """Get promotion service instance"""
    return PromotionService(db)


def _http_error(e: PromotionError) -> HTTPException:
    return HTTPException(
        status_code=ERROR_STATUS.get(e.code, status.HTTP_400_BAD_REQUEST),
        detail={"code": e.code, "message": e.message}
    )


# ==================== Owner CRUD ====================

@business_router.get(
    "",
    response_model=ListResponse[PromotionResponse],
    summary="List promotions"
)
async def list_promotions(
    ctx: BusinessContext = Depends(get_business_context),
    service: PromotionService = Depends(get_promotion_service)
):
    """Promotions newest first, flagged when expired"""
    promotions = await service.list_promotions(ctx.business_id)
    data = [PromotionResponse(**promotion_to_response(p)) for p in promotions]
    return ListResponse(data=data, count=len(data))


@business_router.post(
    "",
    response_model=SingleResponse[PromotionResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create promotion"
)
async def create_promotion(
    data: PromotionCreate,
    ctx: BusinessContext = Depends(get_business_context),
    service: PromotionService = Depends(get_promotion_service)
):
    """Create a promotion; codes are unique per business"""
    try:
        promotion = await service.create_promotion(ctx.business_id, data)
    except PromotionError as e:
        raise _http_error(e)
    return SingleResponse(data=PromotionResponse(**promotion_to_response(promotion)))


@business_router.get(
    "/{promotion_id}",
    response_model=SingleResponse[PromotionResponse],
    summary="Get promotion"
)
async def get_promotion(
    promotion_id: str,
    ctx: BusinessContext = Depends(get_business_context),
    service: PromotionService = Depends(get_promotion_service)
):
    """Get promotion by ID"""
    try:
        promotion = await service.get_promotion(ctx.business_id, promotion_id)
    except PromotionError as e:
        raise _http_error(e)
    return SingleResponse(data=PromotionResponse(**promotion_to_response(promotion)))


@business_router.patch(
    "/{promotion_id}",
    response_model=SingleResponse[PromotionResponse],
    summary="Update promotion"
)
async def update_promotion(
    promotion_id: str,
    data: PromotionUpdate,
    ctx: BusinessContext = Depends(get_business_context),
    service: PromotionService = Depends(get_promotion_service)
):
    """Partially update a promotion"""
    try:
        promotion = await service.update_promotion(ctx.business_id, promotion_id, data)
    except PromotionError as e:
        raise _http_error(e)
    return SingleResponse(data=PromotionResponse(**promotion_to_response(promotion)))


@business_router.delete(
    "/{promotion_id}",
    response_model=MessageResponse,
    summary="Delete promotion"
)
async def delete_promotion(
    promotion_id: str,
    ctx: BusinessContext = Depends(get_business_context),
    service: PromotionService = Depends(get_promotion_service)
):
    """Soft delete a promotion"""
    try:
        await service.delete_promotion(ctx.business_id, promotion_id)
    except PromotionError as e:
        raise _http_error(e)
    return MessageResponse(message="Promotion deleted successfully")


# ==================== Checkout ====================

@router.post(
    "/validate",
    summary="Validate promotion for a cart"
)
async def validate_promotion(
    data: PromotionValidateRequest,
    current_user: User = Depends(require_any_authenticated),
    service: PromotionService = Depends(get_promotion_service)
):
    """
    Check a promo code, or find the best automatic promotion, for a cart

    Returns the discount and the amount due after it.
    """
    try:
        result = await service.validate(current_user.user_id, data)
    except PromotionError as e:
        raise _http_error(e)
    return {"success": True, "data": result}


@router.post(
    "/use",
    status_code=status.HTTP_201_CREATED,
    summary="Record promotion use"
)
async def use_promotion(
    data: PromotionUseRequest,
    current_user: User = Depends(require_any_authenticated),
    service: PromotionService = Depends(get_promotion_service)
):
    """Record an applied promotion against one booking or order"""
    try:
        usage = await service.record_usage(current_user.user_id, data)
    except PromotionError as e:
        raise _http_error(e)
    return {
        "success": True,
        "data": usage.model_dump(exclude={"audit_log", "deleted_at"})
    }
