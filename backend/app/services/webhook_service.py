"""
Webhook Service
Applies verified Stripe events to bookings, orders and connected accounts
"""

import logging
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.models.booking import BookingStatus, PaymentStatus
from app.models.common import utc_now
from app.models.notification import NotificationChannel
from app.models.order import OrderStatus
from app.services.customer_service import CustomerService
from app.services.email_service import get_email_service
from app.services.notification_service import NotificationService
from app.services.stripe_service import StripeService, StripeError, account_is_onboarded

logger = logging.getLogger(__name__)


class WebhookService:
    """Service for Stripe webhook deliveries"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def process(self, payload: bytes, signature: Optional[str]) -> dict:
        """
        Verify and handle one delivery

        Raises:
            StripeError: Signature or payload invalid
        """
        event = StripeService(self.db).construct_event(payload, signature)
        return await self.handle_event(event)

    async def handle_event(self, event: dict) -> dict:
        """Dispatch a decoded event; unknown types are acknowledged"""
        event_type = event.get("type")
        data = event.get("data", {}).get("object", {})

        if event_type == "payment_intent.succeeded":
            await self.payment_succeeded(data)
        elif event_type == "payment_intent.payment_failed":
            await self.payment_failed(data)
        elif event_type == "account.updated":
            await self.account_updated(data)
        else:
            logger.info(f"Unhandled Stripe event: {event_type}")

        return {"received": True, "type": event_type}

    async def _email_business(self, business_id: str) -> Optional[dict]:
        """Business document when it accepts automatic email, else None"""
        allowed = await NotificationService(self.db).channel_enabled(
            business_id, NotificationChannel.EMAIL
        )
        if not allowed:
            return None
        return await self.db.businesses.find_one({"business_id": business_id})

    async def payment_succeeded(self, intent: dict) -> None:
        """Confirm the booking or order paid by this intent"""
        intent_id = intent.get("id")
        now = utc_now()

        booking = await self.db.bookings.find_one({"stripe_payment_intent_id": intent_id})
        if booking and booking["status"] == BookingStatus.CANCELLED.value:
            await self.refund_cancelled_booking(booking)
            return
        if booking:
            await self.db.bookings.update_one(
                {"booking_id": booking["booking_id"]},
                {"$set": {
                    "status": BookingStatus.CONFIRMED.value,
                    "payment_status": PaymentStatus.SUCCEEDED.value,
                    "updated_at": now
                }}
            )
            await CustomerService(self.db).refresh_profile(
                booking["business_id"], booking["customer_id"]
            )
            logger.info(f"Payment succeeded for booking {booking['booking_id']}")

            business = await self._email_business(booking["business_id"])
            if business:
                await get_email_service().send_booking_confirmation(booking, business, paid=True)
            return

        order = await self.db.orders.find_one({"stripe_payment_intent_id": intent_id})
        if order:
            await self.db.orders.update_one(
                {"order_id": order["order_id"]},
                {"$set": {
                    "status": OrderStatus.PROCESSING.value,
                    "payment_status": PaymentStatus.SUCCEEDED.value,
                    "updated_at": now
                }}
            )
            logger.info(f"Payment succeeded for order {order['order_id']}")

            business = await self._email_business(order["business_id"])
            if business:
                await get_email_service().send_order_confirmation(order, business)
            return

        logger.warning(f"payment_intent.succeeded for unknown intent {intent_id}")

    async def refund_cancelled_booking(self, booking: dict) -> None:
        """
        Give back a payment that landed after its booking was cancelled

        The booking stays cancelled and its slot stays free. If Stripe
        rejects the refund the payment is recorded as succeeded so the
        refund endpoint can retry it.
        """
        booking_id = booking["booking_id"]
        intent_id = booking["stripe_payment_intent_id"]
        if booking.get("payment_status") == PaymentStatus.REFUNDED.value:
            logger.info(f"Repeated payment event {intent_id} for refunded booking {booking_id}")
            return

        now = utc_now()
        try:
            await StripeService(self.db).create_refund(
                intent_id,
                metadata={"booking_id": booking_id, "reason": "Booking cancelled before payment"}
            )
        except StripeError as e:
            logger.error(f"Refund of late payment {intent_id} for booking {booking_id} failed: {e.message}")
            await self.db.bookings.update_one(
                {"booking_id": booking_id},
                {"$set": {"payment_status": PaymentStatus.SUCCEEDED.value, "updated_at": now}}
            )
            return

        await self.db.bookings.update_one(
            {"booking_id": booking_id},
            {"$set": {
                "payment_status": PaymentStatus.REFUNDED.value,
                "refunded_at": now,
                "updated_at": now
            }}
        )
        logger.warning(f"Payment {intent_id} arrived for cancelled booking {booking_id}; refunded")

    async def payment_failed(self, intent: dict) -> None:
        """Mark the payment failed; a booking keeps its slot until cancelled"""
        intent_id = intent.get("id")
        error = (intent.get("last_payment_error") or {}).get("message")
        update = {"$set": {"payment_status": PaymentStatus.FAILED.value, "updated_at": utc_now()}}

        result = await self.db.bookings.update_one({"stripe_payment_intent_id": intent_id}, update)
        if result.modified_count == 0:
            result = await self.db.orders.update_one({"stripe_payment_intent_id": intent_id}, update)

        if result.modified_count:
            logger.warning(f"Payment failed for intent {intent_id}: {error}")
        else:
            logger.warning(f"payment_intent.payment_failed for unknown intent {intent_id}")

    async def account_updated(self, account: dict) -> None:
        """Sync the onboarding flag of a connected account"""
        onboarded = account_is_onboarded(account)
        result = await self.db.businesses.update_one(
            {"stripe_account_id": account.get("id")},
            {"$set": {"stripe_onboarded": onboarded, "updated_at": utc_now()}}
        )
        if result.matched_count:
            logger.info(f"Stripe account {account.get('id')} onboarded={onboarded}")


def get_webhook_service(db: AsyncIOMotorDatabase) -> WebhookService:
    """Factory for webhook service"""
    return WebhookService(db)
