"""
Order Service
Product checkout with stock reservation and the marketplace fee split
"""

import logging
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from app.config import get_settings
from app.models.booking import PaymentStatus
from app.models.business import Business
from app.models.common import utc_now, round_money
from app.models.order import Order, OrderCreate, OrderItem, OrderStatus, DeliveryMethod
from app.models.product import Product, InventoryLog, InventoryLogType
from app.models.promotion import PromotionValidateRequest, PromotionUseRequest
from app.models.user import User, UserRole
from app.services.promotion_service import PromotionService
from app.services.stripe_service import StripeService, StripeError, calculate_fees
from app.utils.exceptions import PaymentsNotEnabledError

logger = logging.getLogger(__name__)
settings = get_settings()

MINIMUM_CHARGE_CENTS = 50


class OrderError(Exception):
    """Order error"""
    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


class OrderService:
    """Service for product orders"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def _load_products(self, business_id: str, data: OrderCreate) -> list[tuple[Product, int]]:
        """Resolve requested items and check stock"""
        lines = []
        for item in data.items:
            doc = await self.db.products.find_one({
                "product_id": item.product_id,
                "business_id": business_id,
                "is_active": True,
                "deleted_at": None
            })
            if not doc:
                raise OrderError("PRODUCT_NOT_FOUND", f"Product {item.product_id} not found")
            product = Product(**doc)
            if product.track_inventory and product.quantity < item.quantity:
                raise OrderError(
                    "INSUFFICIENT_STOCK",
                    f"Insufficient stock for {product.name} ({product.quantity} available)"
                )
            lines.append((product, item.quantity))
        return lines

    async def _take_stock(self, lines: list[tuple[Product, int]]) -> list[tuple[Product, int, int]]:
        """
        Decrement tracked inventory, each item guarded on available quantity

        Returns:
            (product, quantity, quantity left) per line whose stock was taken
        """
        taken = []
        for product, quantity in lines:
            if not product.track_inventory:
                continue
            updated = await self.db.products.find_one_and_update(
                {"product_id": product.product_id, "quantity": {"$gte": quantity}},
                {"$inc": {"quantity": -quantity}, "$set": {"updated_at": utc_now()}},
                return_document=ReturnDocument.AFTER
            )
            if updated is None:
                await self._restore_stock(taken)
                raise OrderError("INSUFFICIENT_STOCK", f"Insufficient stock for {product.name}")
            taken.append((product, quantity, updated["quantity"]))
        return taken

    async def _restore_stock(self, taken: list[tuple[Product, int, int]]) -> None:
        for product, quantity, _ in taken:
            await self.db.products.update_one(
                {"product_id": product.product_id},
                {"$inc": {"quantity": quantity}, "$set": {"updated_at": utc_now()}}
            )

    async def create_order(self, user: User, data: OrderCreate) -> dict:
        """
        Place an order and start its card payment

        Returns:
            Dict with order_id, client_secret, total and fees
        """
        doc = await self.db.businesses.find_one({
            "business_id": data.business_id,
            "is_active": True,
            "deleted_at": None
        })
        if not doc:
            raise OrderError("BUSINESS_NOT_FOUND", "Business not found")
        business = Business(**doc)
        if not business.payments_enabled:
            raise PaymentsNotEnabledError()

        lines = await self._load_products(business.business_id, data)

        items = [
            OrderItem(
                product_id=product.product_id,
                name=product.name,
                unit_price=product.price,
                quantity=quantity,
                total=round_money(product.price * quantity)
            )
            for product, quantity in lines
        ]
        subtotal = round_money(sum(item.total for item in items))

        promotion = None
        discount = 0.0
        if data.promo_code:
            promotion, discount = await PromotionService(self.db).find_applicable(
                user.user_id,
                PromotionValidateRequest(
                    business_id=business.business_id,
                    code=data.promo_code,
                    subtotal=subtotal,
                    product_ids=[item.product_id for item in items],
                    item_count=sum(item.quantity for item in items)
                )
            )

        delivery_fee = (
            settings.ORDER_DELIVERY_FEE if data.delivery_method == DeliveryMethod.DELIVERY else 0.0
        )
        total = round_money(max(0.0, subtotal - discount) + delivery_fee)

        fees = calculate_fees(total, business.commission_rate)
        if fees.amount_cents < MINIMUM_CHARGE_CENTS:
            raise OrderError("AMOUNT_TOO_SMALL", "Order total is below the minimum card charge")

        order = Order(
            business_id=business.business_id,
            customer_id=user.user_id,
            customer_name=user.full_name,
            customer_email=user.email,
            items=items,
            subtotal=subtotal,
            discount_amount=discount,
            delivery_fee=delivery_fee,
            total=total,
            promotion_id=promotion.promotion_id if promotion else None,
            delivery_method=data.delivery_method,
            delivery_address=data.delivery_address,
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            stripe_fee=fees.stripe_fee,
            platform_fee=fees.platform_fee,
            business_payout=fees.business_payout
        )

        taken = await self._take_stock(lines)

        stripe = StripeService(self.db)
        try:
            customer_id = await stripe.get_or_create_customer(user)
            intent = await stripe.create_payment_intent(
                fees,
                destination_account=business.stripe_account_id,
                customer_id=customer_id,
                metadata={
                    "order_id": order.order_id,
                    "business_id": business.business_id,
                    "user_id": user.user_id,
                },
                description=f"Order from {business.business_name}"
            )
        except StripeError as e:
            await self._restore_stock(taken)
            logger.error(f"Payment intent failed for order {order.order_id}: {e.message}")
            raise OrderError("PAYMENT_FAILED", f"Could not start payment: {e.message}")

        order.stripe_payment_intent_id = intent["id"]
        await self.db.orders.insert_one(order.model_dump())

        for product, quantity, left in taken:
            log = InventoryLog(
                product_id=product.product_id,
                business_id=business.business_id,
                type=InventoryLogType.SALE,
                quantity=-quantity,
                previous_qty=left + quantity,
                new_qty=left,
                reason="Order",
                order_id=order.order_id,
                created_by=user.user_id
            )
            await self.db.inventory_logs.insert_one(log.model_dump())

        if promotion:
            await PromotionService(self.db).record_usage(
                user.user_id,
                PromotionUseRequest(
                    promotion_id=promotion.promotion_id,
                    discount_amount=discount,
                    order_total=total,
                    order_id=order.order_id
                )
            )

        logger.info(f"Order created: {order.order_id} for {business.business_id} ({total})")
        return {
            "order_id": order.order_id,
            "client_secret": intent.get("client_secret"),
            "total": total,
            "fees": fees,
        }

    async def list_customer_orders(self, user_id: str) -> list[Order]:
        """Customer orders, newest first"""
        docs = await self.db.orders.find(
            {"customer_id": user_id}
        ).sort("created_at", -1).to_list(length=200)
        return [Order(**doc) for doc in docs]

    async def get_order(self, order_id: str, user: User) -> Order:
        """One order, for its customer or the business owner"""
        doc = await self.db.orders.find_one({"order_id": order_id})
        if not doc:
            raise OrderError("ORDER_NOT_FOUND", "Order not found")
        order = Order(**doc)

        is_owner = (
            user.role in (UserRole.BUSINESS_OWNER, UserRole.ADMIN)
            and user.business_id == order.business_id
        )
        if order.customer_id != user.user_id and not is_owner:
            raise OrderError("ORDER_NOT_FOUND", "Order not found")
        return order


def get_order_service(db: AsyncIOMotorDatabase) -> OrderService:
    """Factory for order service"""
    return OrderService(db)
