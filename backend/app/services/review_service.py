"""
Review Service
Customer reviews of completed bookings and business rating summaries
"""

import logging
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from app.models.booking import BookingStatus
from app.models.common import utc_now
from app.models.review import Review, ReviewCreate
from app.models.user import User

logger = logging.getLogger(__name__)


class ReviewError(Exception):
    """Review error"""
    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


def summarize_ratings(reviews: list[dict]) -> tuple[float, int]:
    """(average rating to 1 dp, count)"""
    if not reviews:
        return 0.0, 0
    total = sum(r["rating"] for r in reviews)
    return round(total / len(reviews), 1), len(reviews)


class ReviewService:
    """Service for reviews"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def create_review(self, user: User, data: ReviewCreate) -> Review:
        """
        Review a completed booking, once

        Raises:
            ReviewError: Booking not the user's, not completed or already reviewed
        """
        booking = await self.db.bookings.find_one({
            "booking_id": data.booking_id,
            "customer_id": user.user_id
        })
        if not booking:
            raise ReviewError("BOOKING_NOT_FOUND", "Booking not found")
        if booking["status"] != BookingStatus.COMPLETED.value:
            raise ReviewError("BOOKING_NOT_COMPLETED", "Only completed bookings can be reviewed")

        if await self.db.reviews.find_one({"booking_id": data.booking_id}):
            raise ReviewError("REVIEW_EXISTS", "This booking has already been reviewed")

        review = Review(
            business_id=booking["business_id"],
            booking_id=data.booking_id,
            user_id=user.user_id,
            customer_name=user.full_name,
            service_name=booking.get("service_name"),
            rating=data.rating,
            comment=data.comment
        )
        try:
            await self.db.reviews.insert_one(review.model_dump())
        except DuplicateKeyError:
            raise ReviewError("REVIEW_EXISTS", "This booking has already been reviewed")

        logger.info(f"Review {review.review_id} ({review.rating}) for {review.business_id}")
        return review

    async def list_reviews(self, business_id: str, limit: int = 100) -> dict:
        """Reviews newest first with the rating summary"""
        docs = await self.db.reviews.find({
            "business_id": business_id,
            "deleted_at": None
        }).sort("created_at", -1).to_list(length=None)
        average, total = summarize_ratings(docs)
        return {
            "reviews": [Review(**doc) for doc in docs[:limit]],
            "average_rating": average,
            "total": total,
        }

    async def respond(self, business_id: Optional[str], review_id: str, response: str) -> Review:
        """Store the business reply to one of its reviews"""
        doc = await self.db.reviews.find_one({"review_id": review_id, "deleted_at": None})
        if not doc or doc["business_id"] != business_id:
            raise ReviewError("REVIEW_NOT_FOUND", "Review not found")

        now = utc_now()
        await self.db.reviews.update_one(
            {"review_id": review_id},
            {"$set": {"response": response, "responded_at": now, "updated_at": now}}
        )
        return Review(**{**doc, "response": response, "responded_at": now, "updated_at": now})


def get_review_service(db: AsyncIOMotorDatabase) -> ReviewService:
    """Factory for review service"""
    return ReviewService(db)
