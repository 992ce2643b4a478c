"""
Promotion Service
Promotion CRUD, cart validation and usage tracking
"""

import logging
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.models.booking import BookingStatus
from app.models.common import utc_now, round_money
from app.models.order import OrderStatus
from app.models.promotion import (
    Promotion, PromotionCreate, PromotionUpdate, PromotionType, PromotionScope,
    PromotionUsage, PromotionValidateRequest, PromotionUseRequest
)

logger = logging.getLogger(__name__)


class PromotionError(Exception):
    """Promotion error"""
    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


def _format_amount(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")


def calculate_discount(promotion: Promotion, subtotal: float, item_count: int) -> float:
    """
    Discount for a cart

    PERCENTAGE takes value% of the subtotal, FIXED_AMOUNT is capped at the
    subtotal, BOGO halves the subtotal, BUNDLE takes value% once two or more
    items are in the cart.
    """
    if promotion.type == PromotionType.PERCENTAGE:
        discount = subtotal * promotion.value / 100
    elif promotion.type == PromotionType.FIXED_AMOUNT:
        discount = min(promotion.value, subtotal)
    elif promotion.type == PromotionType.BOGO:
        discount = subtotal * 0.5
    elif promotion.type == PromotionType.BUNDLE:
        discount = subtotal * promotion.value / 100 if item_count >= 2 else 0.0
    else:
        discount = 0.0
    return round_money(discount)


def is_expired(promotion: Promotion) -> bool:
    """Promotion end date has passed"""
    end = promotion.end_date
    if end.tzinfo is None:
        end = end.replace(tzinfo=utc_now().tzinfo)
    return end < utc_now()


def promotion_to_response(promotion: Promotion) -> dict:
    """Serialize a promotion with computed fields"""
    data = promotion.model_dump(exclude={"audit_log", "deleted_at"})
    data["is_expired"] = is_expired(promotion)
    return data


class PromotionService:
    """Service for promotion management and checkout validation"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    # ==================== CRUD ====================

    async def list_promotions(self, business_id: str) -> list[Promotion]:
        """Business promotions, newest first"""
        docs = await self.db.promotions.find({
            "business_id": business_id,
            "deleted_at": None
        }).sort("created_at", -1).to_list(length=500)
        return [Promotion(**doc) for doc in docs]

    async def get_promotion(self, business_id: str, promotion_id: str) -> Promotion:
        """Get one promotion owned by the business"""
        doc = await self.db.promotions.find_one({
            "promotion_id": promotion_id,
            "business_id": business_id,
            "deleted_at": None
        })
        if not doc:
            raise PromotionError("PROMOTION_NOT_FOUND", "Promotion not found")
        return Promotion(**doc)

    async def _ensure_code_available(
        self,
        business_id: str,
        code: Optional[str],
        exclude_id: Optional[str] = None
    ) -> None:
        if not code:
            return
        query = {"business_id": business_id, "code": code, "deleted_at": None}
        if exclude_id:
            query["promotion_id"] = {"$ne": exclude_id}
        if await self.db.promotions.find_one(query):
            raise PromotionError("PROMOTION_CODE_EXISTS", "A promotion with this code already exists")

    async def create_promotion(self, business_id: str, data: PromotionCreate) -> Promotion:
        """Create a promotion"""
        await self._ensure_code_available(business_id, data.code)

        promotion = Promotion(business_id=business_id, **data.model_dump())
        await self.db.promotions.insert_one(promotion.model_dump())

        logger.info(f"Promotion created: {promotion.promotion_id} for {business_id}")
        return promotion

    async def update_promotion(
        self,
        business_id: str,
        promotion_id: str,
        data: PromotionUpdate
    ) -> Promotion:
        """Partially update a promotion"""
        promotion = await self.get_promotion(business_id, promotion_id)
        changes = data.model_dump(exclude_unset=True)

        if "code" in changes:
            await self._ensure_code_available(business_id, changes["code"], exclude_id=promotion_id)

        merged = Promotion(**{**promotion.model_dump(), **changes})
        if merged.end_date < merged.start_date:
            raise PromotionError("INVALID_DATES", "end_date must be on or after start_date")
        if merged.type in (PromotionType.PERCENTAGE, PromotionType.BUNDLE) and merged.value > 100:
            raise PromotionError("INVALID_VALUE", "Percentage value cannot exceed 100")

        update = {k: getattr(merged, k) for k in changes}
        update["updated_at"] = utc_now()
        await self.db.promotions.update_one(
            {"promotion_id": promotion_id, "business_id": business_id},
            {"$set": update}
        )
        merged.updated_at = update["updated_at"]
        return merged

    async def delete_promotion(self, business_id: str, promotion_id: str) -> None:
        """Soft delete a promotion"""
        result = await self.db.promotions.update_one(
            {"promotion_id": promotion_id, "business_id": business_id, "deleted_at": None},
            {"$set": {"deleted_at": utc_now(), "is_active": False, "updated_at": utc_now()}}
        )
        if result.modified_count == 0:
            raise PromotionError("PROMOTION_NOT_FOUND", "Promotion not found")

    # ==================== Validation ====================

    async def check_promotion(
        self,
        promotion: Promotion,
        user_id: str,
        subtotal: float,
        service_ids: list[str],
        product_ids: list[str],
        item_count: int
    ) -> Optional[str]:
        """
        Run the promotion rules against a cart

        Returns:
            None when the promotion applies, else the first failure message
        """
        now = utc_now()
        start = promotion.start_date
        end = promotion.end_date
        if start.tzinfo is None:
            start = start.replace(tzinfo=now.tzinfo)
        if end.tzinfo is None:
            end = end.replace(tzinfo=now.tzinfo)

        if not promotion.is_active:
            return "Promotion is not active"
        if now < start:
            return "Promotion has not started yet"
        if now > end:
            return "Promotion has expired"

        if promotion.usage_limit and promotion.usage_count >= promotion.usage_limit:
            return "Promotion usage limit reached"

        if promotion.per_customer_limit:
            used = await self.db.promotion_usages.count_documents({
                "promotion_id": promotion.promotion_id,
                "user_id": user_id
            })
            if used >= promotion.per_customer_limit:
                return "You have already used this promotion the maximum number of times"

        if promotion.minimum_amount and subtotal < promotion.minimum_amount:
            return f"Minimum purchase amount of ${_format_amount(promotion.minimum_amount)} required"

        if promotion.minimum_items and item_count < promotion.minimum_items:
            return f"Minimum {promotion.minimum_items} items required"

        if promotion.first_time_only:
            previous_bookings = await self.db.bookings.count_documents({
                "customer_id": user_id,
                "business_id": promotion.business_id,
                "status": {"$in": [BookingStatus.COMPLETED.value, BookingStatus.CONFIRMED.value]}
            })
            previous_orders = await self.db.orders.count_documents({
                "customer_id": user_id,
                "business_id": promotion.business_id,
                "status": {"$in": [OrderStatus.COMPLETED.value, OrderStatus.PROCESSING.value]}
            })
            if previous_bookings > 0 or previous_orders > 0:
                return "This promotion is only for first-time customers"

        scope = promotion.scope
        if scope == PromotionScope.SPECIFIC_SERVICES:
            if not set(service_ids) & set(promotion.service_ids):
                return "This promotion does not apply to the selected services"
        elif scope == PromotionScope.SPECIFIC_PRODUCTS:
            if not set(product_ids) & set(promotion.product_ids):
                return "This promotion does not apply to the selected products"
        elif scope == PromotionScope.ALL_SERVICES:
            if not service_ids:
                return "This promotion only applies to services"
        elif scope == PromotionScope.ALL_PRODUCTS:
            if not product_ids:
                return "This promotion only applies to products"

        return None

    async def find_applicable(
        self,
        user_id: str,
        data: PromotionValidateRequest
    ) -> tuple[Promotion, float]:
        """
        Resolve the promotion for a cart and its discount

        With a code, the active promotion with that code must pass every rule.
        Without one, featured code-less promotions are tried best value first.

        Raises:
            PromotionError: No promotion found or the rules reject the cart
        """
        cart = (data.subtotal, data.service_ids, data.product_ids, data.item_count)

        if data.code:
            doc = await self.db.promotions.find_one({
                "business_id": data.business_id,
                "code": data.code.strip().upper(),
                "is_active": True,
                "deleted_at": None
            })
            if not doc:
                raise PromotionError("INVALID_PROMO_CODE", "Invalid promo code")
            promotion = Promotion(**doc)
            error = await self.check_promotion(promotion, user_id, *cart)
            if error:
                raise PromotionError("PROMOTION_NOT_APPLICABLE", error)
        else:
            docs = await self.db.promotions.find({
                "business_id": data.business_id,
                "code": None,
                "is_active": True,
                "featured": True,
                "deleted_at": None
            }).sort("value", -1).to_list(length=50)

            promotion = None
            for doc in docs:
                candidate = Promotion(**doc)
                if await self.check_promotion(candidate, user_id, *cart) is None:
                    promotion = candidate
                    break
            if promotion is None:
                raise PromotionError("NO_PROMOTIONS", "No promotions available")

        return promotion, calculate_discount(promotion, data.subtotal, data.item_count)

    async def validate(self, user_id: str, data: PromotionValidateRequest) -> dict:
        """Validate a cart and describe the resulting discount"""
        promotion, discount = await self.find_applicable(user_id, data)
        return {
            "valid": True,
            "promotion": {
                "promotion_id": promotion.promotion_id,
                "name": promotion.name,
                "description": promotion.description,
                "type": promotion.type,
                "value": promotion.value,
                "code": promotion.code,
            },
            "discount": discount,
            "final_amount": round_money(max(0.0, data.subtotal - discount)),
        }

    # ==================== Usage ====================

    async def record_usage(self, user_id: str, data: PromotionUseRequest) -> PromotionUsage:
        """Record an applied promotion and bump its usage count"""
        if bool(data.booking_id) == bool(data.order_id):
            raise PromotionError(
                "INVALID_USAGE_TARGET", "Exactly one of booking_id or order_id is required"
            )

        doc = await self.db.promotions.find_one({
            "promotion_id": data.promotion_id,
            "deleted_at": None
        })
        if not doc:
            raise PromotionError("PROMOTION_NOT_FOUND", "Promotion not found")

        usage = PromotionUsage(
            promotion_id=data.promotion_id,
            business_id=doc["business_id"],
            user_id=user_id,
            discount_amount=round_money(data.discount_amount),
            order_total=round_money(data.order_total),
            booking_id=data.booking_id,
            order_id=data.order_id
        )
        await self.db.promotion_usages.insert_one(usage.model_dump())
        await self.db.promotions.update_one(
            {"promotion_id": data.promotion_id},
            {"$inc": {"usage_count": 1}, "$set": {"updated_at": utc_now()}}
        )

        logger.info(f"Promotion {data.promotion_id} used by {user_id}")
        return usage


def get_promotion_service(db: AsyncIOMotorDatabase) -> PromotionService:
    """Factory for promotion service"""
    return PromotionService(db)
