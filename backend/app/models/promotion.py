"""
Promotion Model
Discount rules applied to bookings and product orders
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from app.models.common import BaseDocument, generate_id


class PromotionType(str, Enum):
    """How the discount is computed"""
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    BOGO = "bogo"
    BUNDLE = "bundle"


class PromotionScope(str, Enum):
    """What part of the purchase the promotion covers"""
    ENTIRE_PURCHASE = "entire_purchase"
    ALL_SERVICES = "all_services"
    ALL_PRODUCTS = "all_products"
    SPECIFIC_SERVICES = "specific_services"
    SPECIFIC_PRODUCTS = "specific_products"


class Promotion(BaseDocument):
    """Promotion document model"""
    promotion_id: str = Field(default_factory=lambda: generate_id("prm"))
    business_id: str

    name: str
    description: Optional[str] = None
    code: Optional[str] = None  # Stored uppercase; None for automatic promotions

    type: PromotionType
    value: float = Field(ge=0)
    scope: PromotionScope = PromotionScope.ENTIRE_PURCHASE
    service_ids: list[str] = Field(default_factory=list)
    product_ids: list[str] = Field(default_factory=list)

    # Rules
    minimum_amount: Optional[float] = None
    minimum_items: Optional[int] = None
    usage_limit: Optional[int] = None
    usage_count: int = 0
    per_customer_limit: Optional[int] = None
    first_time_only: bool = False

    start_date: datetime
    end_date: datetime

    is_active: bool = True
    featured: bool = False

    @field_validator("start_date", "end_date")
    @classmethod
    def dates_in_utc(cls, v):
        return _as_utc(v)


def _normalize_code(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip().upper()
    return v or None


def _as_utc(v: Optional[datetime]) -> Optional[datetime]:
    # Naive datetimes are taken as UTC so they compare with stored values
    if v is None or v.tzinfo is not None:
        return v
    return v.replace(tzinfo=timezone.utc)


class PromotionCreate(BaseModel):
    """Schema for creating a promotion"""
    name: str = Field(min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    code: Optional[str] = Field(None, max_length=30)
    type: PromotionType
    value: float = Field(ge=0)
    scope: PromotionScope
    service_ids: list[str] = Field(default_factory=list)
    product_ids: list[str] = Field(default_factory=list)
    minimum_amount: Optional[float] = Field(None, ge=0)
    minimum_items: Optional[int] = Field(None, ge=1)
    usage_limit: Optional[int] = Field(None, ge=1)
    per_customer_limit: Optional[int] = Field(None, ge=1)
    first_time_only: bool = False
    start_date: datetime
    end_date: datetime
    is_active: bool = True
    featured: bool = False

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v):
        return _normalize_code(v)

    @field_validator("start_date", "end_date")
    @classmethod
    def dates_in_utc(cls, v):
        return _as_utc(v)

    @model_validator(mode="after")
    def check_rules(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        if self.type in (PromotionType.PERCENTAGE, PromotionType.BUNDLE) and self.value > 100:
            raise ValueError("Percentage value cannot exceed 100")
        return self


class PromotionUpdate(BaseModel):
    """Partial promotion update"""
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    code: Optional[str] = Field(None, max_length=30)
    type: Optional[PromotionType] = None
    value: Optional[float] = Field(None, ge=0)
    scope: Optional[PromotionScope] = None
    service_ids: Optional[list[str]] = None
    product_ids: Optional[list[str]] = None
    minimum_amount: Optional[float] = Field(None, ge=0)
    minimum_items: Optional[int] = Field(None, ge=1)
    usage_limit: Optional[int] = Field(None, ge=1)
    per_customer_limit: Optional[int] = Field(None, ge=1)
    first_time_only: Optional[bool] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None
    featured: Optional[bool] = None

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v):
        return _normalize_code(v)

    @field_validator("start_date", "end_date")
    @classmethod
    def dates_in_utc(cls, v):
        return _as_utc(v)


class PromotionResponse(BaseModel):
    """Promotion response"""
    promotion_id: str
    business_id: str
    name: str
    description: Optional[str] = None
    code: Optional[str] = None
    type: PromotionType
    value: float
    scope: PromotionScope
    service_ids: list[str]
    product_ids: list[str]
    minimum_amount: Optional[float] = None
    minimum_items: Optional[int] = None
    usage_limit: Optional[int] = None
    usage_count: int
    per_customer_limit: Optional[int] = None
    first_time_only: bool
    start_date: datetime
    end_date: datetime
    is_active: bool
    featured: bool
    is_expired: bool = False
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PromotionValidateRequest(BaseModel):
    """Cart submitted for promotion validation"""
    business_id: str
    code: Optional[str] = None
    subtotal: float = Field(ge=0)
    service_ids: list[str] = Field(default_factory=list)
    product_ids: list[str] = Field(default_factory=list)
    item_count: int = Field(default=1, ge=0)


class PromotionUseRequest(BaseModel):
    """Record that a promotion was applied"""
    promotion_id: str
    discount_amount: float = Field(ge=0)
    order_total: float = Field(ge=0)
    booking_id: Optional[str] = None
    order_id: Optional[str] = None


class PromotionUsage(BaseDocument):
    """One application of a promotion by a customer"""
    usage_id: str = Field(default_factory=lambda: generate_id("pru"))
    promotion_id: str
    business_id: str
    user_id: str
    discount_amount: float
    order_total: float
    booking_id: Optional[str] = None
    order_id: Optional[str] = None
