"""
Order Model
Product orders placed by customers
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, model_validator

from app.models.common import BaseDocument, generate_id
from app.models.booking import PaymentStatus, FeeBreakdown


class OrderStatus(str, Enum):
    """Order status"""
    PENDING = "pending"  # Awaiting payment
    PROCESSING = "processing"  # Paid, being prepared
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DeliveryMethod(str, Enum):
    """Fulfilment method"""
    PICKUP = "pickup"
    DELIVERY = "delivery"


class OrderItem(BaseModel):
    """Line item snapshot"""
    product_id: str
    name: str
    unit_price: float
    quantity: int
    total: float


class Order(BaseDocument):
    """Order document model"""
    order_id: str = Field(default_factory=lambda: generate_id("ord"))
    business_id: str
    customer_id: str
    customer_name: str
    customer_email: Optional[str] = None

    items: list[OrderItem]
    subtotal: float
    discount_amount: float = 0.0
    delivery_fee: float = 0.0
    total: float
    promotion_id: Optional[str] = None

    delivery_method: DeliveryMethod = DeliveryMethod.PICKUP
    delivery_address: Optional[str] = None

    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING

    stripe_payment_intent_id: Optional[str] = None
    stripe_fee: Optional[float] = None
    platform_fee: Optional[float] = None
    business_payout: Optional[float] = None


class OrderItemRequest(BaseModel):
    """Requested product and quantity"""
    product_id: str
    quantity: int = Field(ge=1, le=100)


class OrderCreate(BaseModel):
    """Place an order"""
    business_id: str
    items: list[OrderItemRequest] = Field(min_length=1)
    delivery_method: DeliveryMethod = DeliveryMethod.PICKUP
    delivery_address: Optional[str] = Field(None, max_length=500)
    promo_code: Optional[str] = None

    model_config = ConfigDict(str_strip_whitespace=True)

    @model_validator(mode="after")
    def check_delivery(self):
        if self.delivery_method == DeliveryMethod.DELIVERY and not self.delivery_address:
            raise ValueError("delivery_address is required for delivery orders")
        return self


class OrderResponse(BaseModel):
    """Order response"""
    order_id: str
    business_id: str
    customer_id: str
    customer_name: str
    items: list[OrderItem]
    subtotal: float
    discount_amount: float
    delivery_fee: float
    total: float
    promotion_id: Optional[str] = None
    delivery_method: DeliveryMethod
    delivery_address: Optional[str] = None
    status: OrderStatus
    payment_status: PaymentStatus
    stripe_fee: Optional[float] = None
    platform_fee: Optional[float] = None
    business_payout: Optional[float] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderCheckoutResponse(BaseModel):
    """Returned after an order is placed"""
    order_id: str
    client_secret: Optional[str] = None
    total: float
    fees: FeeBreakdown
