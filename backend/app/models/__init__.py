"""
GlowBook Data Models
Pydantic models for MongoDB documents
"""

from app.models.user import User, UserRole, UserResponse
from app.models.business import (
    Business, BusinessCategory, BusinessProfileUpdate, BusinessResponse,
    PublicBusinessResponse
)
from app.models.availability import (
    WeeklyAvailability, AvailabilityDay, AvailabilityReplace, TimeOff, TimeOffCreate
)
from app.models.service import Service, ServiceCategory, ServiceCreate, ServiceUpdate
from app.models.staff import Staff, StaffRole, StaffCreate, StaffUpdate
from app.models.booking import (
    Booking, BookingStatus, PaymentStatus, BookingCreate, FeeBreakdown
)
from app.models.promotion import (
    Promotion, PromotionType, PromotionScope, PromotionCreate, PromotionUpdate,
    PromotionUsage
)
from app.models.customer import (
    CustomerProfile, Communication, CommunicationType, CommunicationStatus
)
from app.models.photo import Photo, PhotoType
from app.models.review import Review
from app.models.product import Product, InventoryLog, InventoryLogType
from app.models.order import Order, OrderStatus, DeliveryMethod, OrderItem
from app.models.notification import (
    NotificationSettings, NotificationTemplate, NotificationTrigger, NotificationLog,
    NotificationType, NotificationChannel, TriggerEvent, TriggerTiming
)
from app.models.common import AuditEntry

__all__ = [
    # User
    "User", "UserRole", "UserResponse",
    # Business
    "Business", "BusinessCategory", "BusinessProfileUpdate", "BusinessResponse",
    "PublicBusinessResponse",
    # Availability
    "WeeklyAvailability", "AvailabilityDay", "AvailabilityReplace",
    "TimeOff", "TimeOffCreate",
    # Service
    "Service", "ServiceCategory", "ServiceCreate", "ServiceUpdate",
    # Staff
    "Staff", "StaffRole", "StaffCreate", "StaffUpdate",
    # Booking
    "Booking", "BookingStatus", "PaymentStatus", "BookingCreate", "FeeBreakdown",
    # Promotion
    "Promotion", "PromotionType", "PromotionScope", "PromotionCreate",
    "PromotionUpdate", "PromotionUsage",
    # Customer
    "CustomerProfile", "Communication", "CommunicationType", "CommunicationStatus",
    # Photo / Review
    "Photo", "PhotoType", "Review",
    # Products & orders
    "Product", "InventoryLog", "InventoryLogType",
    "Order", "OrderStatus", "DeliveryMethod", "OrderItem",
    # Notifications
    "NotificationSettings", "NotificationTemplate", "NotificationTrigger", "NotificationLog",
    "NotificationType", "NotificationChannel", "TriggerEvent", "TriggerTiming",
    # Common
    "AuditEntry",
]
