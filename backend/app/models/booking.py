"""
Booking Model
Appointments between a customer and a business for a service
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from app.models.common import (
    BaseDocument, generate_id, validate_time_string, validate_date_string
)


class BookingStatus(str, Enum):
    """Booking status"""
    PENDING = "pending"  # Awaiting payment
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


class PaymentStatus(str, Enum):
    """Payment status for bookings and orders"""
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


# Statuses that hold a slot on the calendar
ACTIVE_BOOKING_STATUSES = [BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value]


class Booking(BaseDocument):
    """Booking document model"""
    booking_id: str = Field(default_factory=lambda: generate_id("bkg"))
    business_id: str  # Multi-tenant key
    customer_id: str  # User ID of the customer
    service_id: str
    staff_id: Optional[str] = None

    # Schedule, in the business's local time
    date: str  # YYYY-MM-DD
    start_time: str  # HH:MM
    end_time: str  # HH:MM
    start_at: datetime  # UTC instant of start_time, for notice windows

    # Snapshots for lists and exports
    customer_name: str
    customer_email: Optional[str] = None
    service_name: str
    duration_minutes: int

    # Money (dollars)
    subtotal: float = Field(ge=0)
    discount_amount: float = 0.0
    total_price: float = Field(ge=0)
    promotion_id: Optional[str] = None

    status: BookingStatus = BookingStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING

    # Stripe
    stripe_payment_intent_id: Optional[str] = None
    stripe_fee: Optional[float] = None
    platform_fee: Optional[float] = None
    business_payout: Optional[float] = None

    notes: Optional[str] = None

    # Lifecycle
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    refunded_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class BookingCreate(BaseModel):
    """Request to book a service"""
    business_id: str
    service_id: str
    staff_id: Optional[str] = None
    date: str
    start_time: str
    notes: Optional[str] = Field(None, max_length=1000)
    promo_code: Optional[str] = None

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("date")
    @classmethod
    def check_date_format(cls, v):
        return validate_date_string(v)

    @field_validator("start_time")
    @classmethod
    def check_time_format(cls, v):
        return validate_time_string(v)


class BookingActionRequest(BaseModel):
    """Cancel or refund request"""
    booking_id: str
    reason: Optional[str] = Field(None, max_length=500)

    model_config = ConfigDict(str_strip_whitespace=True)


class BookingStatusUpdate(BaseModel):
    """Owner status change"""
    status: str


class FeeBreakdown(BaseModel):
    """Marketplace fee split in dollars"""
    amount: float
    amount_cents: int
    stripe_fee: float
    platform_fee: float
    business_payout: float


class BookingResponse(BaseModel):
    """Booking response"""
    booking_id: str
    business_id: str
    customer_id: str
    service_id: str
    staff_id: Optional[str] = None
    date: str
    start_time: str
    end_time: str
    customer_name: str
    customer_email: Optional[str] = None
    service_name: str
    duration_minutes: int
    subtotal: float
    discount_amount: float
    total_price: float
    promotion_id: Optional[str] = None
    status: BookingStatus
    payment_status: PaymentStatus
    stripe_fee: Optional[float] = None
    platform_fee: Optional[float] = None
    business_payout: Optional[float] = None
    notes: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CustomerBookingResponse(BookingResponse):
    """Booking as listed for the customer, with the business name"""
    business_name: Optional[str] = None
    business_slug: Optional[str] = None
    has_review: bool = False
