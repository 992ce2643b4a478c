"""
Reviews API Router
Customer reviews and business replies
"""

from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.database import get_database
from app.models.review import ReviewCreate, ReviewReply, ReviewResponse
from app.models.user import User
from app.middleware.auth import require_customer, BusinessContext, get_business_context
from app.schemas.common import SingleResponse
from app.services.review_service import ReviewService, ReviewError

router = APIRouter()

ERROR_STATUS = {
    "BOOKING_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "REVIEW_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "REVIEW_EXISTS": status.HTTP_409_CONFLICT,
}


def get_review_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> ReviewService:
    """Get review service instance"""
    return ReviewService(db)


def _http_error(e: ReviewError) -> HTTPException:
    return HTTPException(
        status_code=ERROR_STATUS.get(e.code, status.HTTP_400_BAD_REQUEST),
        detail={"code": e.code, "message": e.message}
    )


@router.post(
    "",
    response_model=SingleResponse[ReviewResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Review a booking"
)
async def create_review(
    data: ReviewCreate,
    current_user: User = Depends(require_customer),
    service: ReviewService = Depends(get_review_service)
):
    """Rate a completed booking; one review per booking"""
    try:
        review = await service.create_review(current_user, data)
    except ReviewError as e:
        raise _http_error(e)
    return SingleResponse(data=ReviewResponse(**review.model_dump()))


@router.get(
    "",
    summary="List business reviews"
)
async def list_reviews(
    business_id: str,
    service: ReviewService = Depends(get_review_service)
):
    """Public reviews, newest first, with the average rating"""
    result = await service.list_reviews(business_id)
    return {
        "success": True,
        "data": [ReviewResponse(**r.model_dump()) for r in result["reviews"]],
        "average_rating": result["average_rating"],
        "total": result["total"],
    }


@router.post(
    "/{review_id}/response",
    response_model=SingleResponse[ReviewResponse],
    summary="Reply to review"
)
async def respond_to_review(
    review_id: str,
    data: ReviewReply,
    ctx: BusinessContext = Depends(get_business_context),
    service: ReviewService = Depends(get_review_service)
):
    """Store the business's public reply"""
    try:
        review = await service.respond(ctx.business_id, review_id, data.response)
    except ReviewError as e:
        raise _http_error(e)
    return SingleResponse(data=ReviewResponse(**review.model_dump()))
