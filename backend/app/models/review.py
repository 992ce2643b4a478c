"""
Review Model
Customer ratings for completed bookings
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from app.models.common import BaseDocument, generate_id


class Review(BaseDocument):
    """Review document, one per booking"""
    review_id: str = Field(default_factory=lambda: generate_id("rev"))
    business_id: str
    booking_id: str
    user_id: str
    customer_name: str
    service_name: Optional[str] = None
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None
    response: Optional[str] = None
    responded_at: Optional[datetime] = None


class ReviewCreate(BaseModel):
    """Submit a review"""
    booking_id: str
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)

    model_config = ConfigDict(str_strip_whitespace=True)


class ReviewReply(BaseModel):
    """Business reply to a review"""
    response: str = Field(min_length=1, max_length=2000)

    model_config = ConfigDict(str_strip_whitespace=True)


class ReviewResponse(BaseModel):
    """Review response"""
    review_id: str
    business_id: str
    booking_id: str
    customer_name: str
    service_name: Optional[str] = None
    rating: int
    comment: Optional[str] = None
    response: Optional[str] = None
    responded_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
