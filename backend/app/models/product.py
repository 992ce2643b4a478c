"""
Product Models
Retail products sold by a business and their inventory history
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from app.models.common import BaseDocument, generate_id


class InventoryLogType(str, Enum):
    """Inventory movement types"""
    INITIAL = "initial"  # Initial stock count
    ADJUSTMENT = "adjustment"  # Manual change by the owner
    SALE = "sale"  # Sold through an order
    RETURN = "return"  # Restocked after a cancelled order


class Product(BaseDocument):
    """Product document model"""
    product_id: str = Field(default_factory=lambda: generate_id("prd"))
    business_id: str

    name: str
    description: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    brand: Optional[str] = None

    price: float = Field(ge=0)
    compare_at_price: Optional[float] = None
    cost: Optional[float] = None

    track_inventory: bool = True
    quantity: int = Field(default=0, ge=0)
    low_stock_alert: Optional[int] = None

    images: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    display_order: int = 0
    is_active: bool = True
    is_featured: bool = False


class ProductCreate(BaseModel):
    """Schema for creating a product"""
    name: str = Field(min_length=1, max_length=150)
    description: Optional[str] = Field(None, max_length=2000)
    sku: Optional[str] = None
    barcode: Optional[str] = None
    brand: Optional[str] = None
    price: float = Field(ge=0)
    compare_at_price: Optional[float] = Field(None, ge=0)
    cost: Optional[float] = Field(None, ge=0)
    track_inventory: bool = True
    quantity: int = Field(default=0, ge=0)
    low_stock_alert: Optional[int] = Field(None, ge=0)
    images: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    display_order: int = 0
    is_active: bool = True
    is_featured: bool = False

    model_config = ConfigDict(str_strip_whitespace=True)


class ProductUpdate(BaseModel):
    """Schema for updating a product"""
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = Field(None, max_length=2000)
    sku: Optional[str] = None
    barcode: Optional[str] = None
    brand: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    compare_at_price: Optional[float] = Field(None, ge=0)
    cost: Optional[float] = Field(None, ge=0)
    track_inventory: Optional[bool] = None
    quantity: Optional[int] = Field(None, ge=0)
    low_stock_alert: Optional[int] = Field(None, ge=0)
    images: Optional[list[str]] = None
    tags: Optional[list[str]] = None
    display_order: Optional[int] = None
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class ProductResponse(BaseModel):
    """Product response"""
    product_id: str
    business_id: str
    name: str
    description: Optional[str] = None
    sku: Optional[str] = None
    brand: Optional[str] = None
    price: float
    compare_at_price: Optional[float] = None
    cost: Optional[float] = None
    track_inventory: bool
    quantity: int
    low_stock_alert: Optional[int] = None
    images: list[str]
    tags: list[str]
    display_order: int
    is_active: bool
    is_featured: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InventoryLog(BaseDocument):
    """Inventory movement record"""
    log_id: str = Field(default_factory=lambda: generate_id("inv"))
    product_id: str
    business_id: str
    type: InventoryLogType
    quantity: int  # Signed change
    previous_qty: int
    new_qty: int
    reason: Optional[str] = None
    order_id: Optional[str] = None
    created_by: Optional[str] = None
