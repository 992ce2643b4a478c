"""
Booking Service
Booking lifecycle: reservation, prepayment, cancellation, refunds and completion
"""

import logging
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from app.config import get_settings
from app.models.booking import (
    Booking, BookingCreate, BookingStatus, PaymentStatus, FeeBreakdown
)
from app.models.business import Business
from app.models.notification import NotificationChannel
from app.models.common import utc_now, round_money
from app.models.promotion import Promotion, PromotionValidateRequest, PromotionUseRequest
from app.models.service import Service
from app.models.user import User, UserRole
from app.services.customer_service import CustomerService
from app.services.email_service import get_email_service
from app.services.notification_service import NotificationService
from app.services.promotion_service import PromotionService
from app.services.scheduling_service import (
    SchedulingService, local_to_utc, minutes_to_time, time_to_minutes
)
from app.services.stripe_service import StripeService, StripeError, calculate_fees
from app.utils.exceptions import PaymentsNotEnabledError, SlotUnavailableError

logger = logging.getLogger(__name__)
settings = get_settings()

# Smallest card charge Stripe accepts, in cents
MINIMUM_CHARGE_CENTS = 50


class BookingError(Exception):
    """Booking error"""
    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


class BookingService:
    """Service for creating and managing bookings"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.scheduling = SchedulingService(db)
        self.promotions = PromotionService(db)
        self.customers = CustomerService(db)
        self.notifications = NotificationService(db)

    # ==================== Lookups ====================

    async def get_business(self, business_id: str) -> Business:
        """Active business by id"""
        doc = await self.db.businesses.find_one({
            "business_id": business_id,
            "is_active": True,
            "deleted_at": None
        })
        if not doc:
            raise BookingError("BUSINESS_NOT_FOUND", "Business not found")
        return Business(**doc)

    async def get_service(self, business_id: str, service_id: str) -> Service:
        """Active service of the business"""
        doc = await self.db.services.find_one({
            "service_id": service_id,
            "business_id": business_id,
            "is_active": True,
            "deleted_at": None
        })
        if not doc:
            raise BookingError("SERVICE_NOT_FOUND", "Service not found or not available")
        return Service(**doc)

    async def get_booking(self, booking_id: str) -> Booking:
        """Booking by id"""
        doc = await self.db.bookings.find_one({"booking_id": booking_id})
        if not doc:
            raise BookingError("BOOKING_NOT_FOUND", "Booking not found")
        return Booking(**doc)

    async def _check_staff(self, business_id: str, staff_id: Optional[str]) -> None:
        if not staff_id:
            return
        staff = await self.db.staff.find_one({
            "staff_id": staff_id,
            "business_id": business_id,
            "is_active": True,
            "deleted_at": None
        })
        if not staff:
            raise BookingError("STAFF_NOT_FOUND", "Staff member not found")

    # ==================== Creation ====================

    async def _build_booking(
        self,
        user: User,
        business: Business,
        data: BookingCreate,
        status: BookingStatus
    ) -> tuple[Booking, Optional[Promotion], int, int]:
        """
        Validate a request and build the unsaved booking

        Returns:
            (booking, applied promotion, start_minutes, end_minutes)
        """
        service = await self.get_service(business.business_id, data.service_id)
        await self._check_staff(business.business_id, data.staff_id)

        start, end = await self.scheduling.check_bookable(
            business, data.date, data.start_time, service.duration_minutes
        )

        promotion = None
        discount = 0.0
        if data.promo_code:
            promotion, discount = await self.promotions.find_applicable(
                user.user_id,
                PromotionValidateRequest(
                    business_id=business.business_id,
                    code=data.promo_code,
                    subtotal=service.price,
                    service_ids=[service.service_id],
                    item_count=1
                )
            )

        booking = Booking(
            business_id=business.business_id,
            customer_id=user.user_id,
            service_id=service.service_id,
            staff_id=data.staff_id,
            date=data.date,
            start_time=data.start_time,
            end_time=minutes_to_time(end),
            start_at=local_to_utc(business, data.date, data.start_time),
            customer_name=user.full_name,
            customer_email=user.email,
            service_name=service.name,
            duration_minutes=service.duration_minutes,
            subtotal=service.price,
            discount_amount=discount,
            total_price=round_money(max(0.0, service.price - discount)),
            promotion_id=promotion.promotion_id if promotion else None,
            status=status,
            payment_status=PaymentStatus.PENDING,
            notes=data.notes
        )
        return booking, promotion, start, end

    async def _reserve_and_insert(self, booking: Booking, start: int, end: int) -> None:
        """Claim the slot, then store the booking; the claim is undone if the insert fails"""
        reserved = await self.scheduling.reserve_slot(
            booking.business_id, booking.date, booking.booking_id, start, end
        )
        if not reserved:
            raise SlotUnavailableError()

        try:
            await self.db.bookings.insert_one(booking.model_dump())
        except PyMongoError:
            await self.scheduling.release_slot(booking.business_id, booking.date, booking.booking_id)
            raise

    async def _after_booking(
        self,
        user: User,
        booking: Booking,
        promotion: Optional[Promotion]
    ) -> None:
        """Profile, promotion usage and service counter updates"""
        await self.customers.ensure_profile(booking.business_id, user)

        if promotion:
            await self.promotions.record_usage(
                user.user_id,
                PromotionUseRequest(
                    promotion_id=promotion.promotion_id,
                    discount_amount=booking.discount_amount,
                    order_total=booking.total_price,
                    booking_id=booking.booking_id
                )
            )

        await self.db.services.update_one(
            {"service_id": booking.service_id},
            {"$inc": {"times_booked": 1}}
        )

    async def create_booking(self, user: User, data: BookingCreate) -> Booking:
        """
        Book a service to be paid at the venue

        Raises:
            BookingError: Unknown business, service or staff member
            BusinessClosedError: Day is closed
            BookingPolicyError: Window outside opening hours
            SlotUnavailableError: Window already taken
            PromotionError: Promo code rejected
        """
        business = await self.get_business(data.business_id)
        booking, promotion, start, end = await self._build_booking(
            user, business, data, BookingStatus.CONFIRMED
        )

        await self._reserve_and_insert(booking, start, end)
        await self._after_booking(user, booking, promotion)

        logger.info(
            f"Booking created: {booking.booking_id} for {booking.business_id} "
            f"on {booking.date} at {booking.start_time}"
        )

        if await self.notifications.channel_enabled(business.business_id, NotificationChannel.EMAIL):
            result = await get_email_service().send_booking_confirmation(
                booking.model_dump(), business.model_dump()
            )
            if not result.success:
                logger.warning(f"Confirmation email not sent for {booking.booking_id}: {result.error}")

        return booking

    async def create_paid_booking(self, user: User, data: BookingCreate) -> dict:
        """
        Book a service with card prepayment through Stripe Connect

        The booking is stored PENDING and confirmed by the payment webhook.
        If Stripe rejects the intent the booking and its reservation are
        removed.

        Returns:
            Dict with client_secret, booking_id, amount and fees
        """
        business = await self.get_business(data.business_id)
        if not business.payments_enabled:
            raise PaymentsNotEnabledError()

        booking, promotion, start, end = await self._build_booking(
            user, business, data, BookingStatus.PENDING
        )

        fees = calculate_fees(booking.total_price, business.commission_rate)
        if fees.amount_cents < MINIMUM_CHARGE_CENTS:
            raise BookingError(
                "AMOUNT_TOO_SMALL",
                "Amount is below the minimum card charge, book without prepayment instead"
            )
        booking.stripe_fee = fees.stripe_fee
        booking.platform_fee = fees.platform_fee
        booking.business_payout = fees.business_payout

        await self._reserve_and_insert(booking, start, end)

        stripe = StripeService(self.db)
        try:
            customer_id = await stripe.get_or_create_customer(user)
            intent = await stripe.create_payment_intent(
                fees,
                destination_account=business.stripe_account_id,
                customer_id=customer_id,
                metadata={
                    "booking_id": booking.booking_id,
                    "business_id": business.business_id,
                    "user_id": user.user_id,
                },
                description=f"{booking.service_name} at {business.business_name}"
            )
        except StripeError as e:
            await self.scheduling.release_slot(business.business_id, booking.date, booking.booking_id)
            await self.db.bookings.delete_one({"booking_id": booking.booking_id})
            logger.error(f"Payment intent failed for booking {booking.booking_id}: {e.message}")
            raise BookingError("PAYMENT_FAILED", f"Could not start payment: {e.message}")

        booking.stripe_payment_intent_id = intent["id"]
        await self.db.bookings.update_one(
            {"booking_id": booking.booking_id},
            {"$set": {"stripe_payment_intent_id": intent["id"], "updated_at": utc_now()}}
        )
        await self._after_booking(user, booking, promotion)

        logger.info(
            f"Prepaid booking created: {booking.booking_id} with intent {intent['id']}"
        )
        return {
            "client_secret": intent.get("client_secret"),
            "booking_id": booking.booking_id,
            "amount": fees.amount,
            "fees": fees,
        }

    # ==================== Cancellation & refunds ====================

    def _is_business_owner(self, booking: Booking, user: User) -> bool:
        return (
            user.role in (UserRole.BUSINESS_OWNER, UserRole.ADMIN)
            and user.business_id == booking.business_id
        )

    def _authorize(self, booking: Booking, user: User) -> bool:
        """
        Check the user may act on the booking

        Returns:
            True when acting as the business owner
        """
        if self._is_business_owner(booking, user):
            return True
        if booking.customer_id == user.user_id:
            return False
        raise BookingError("NOT_AUTHORIZED", "Not authorized to modify this booking")

    def _check_notice(self, booking: Booking, is_owner: bool) -> None:
        if is_owner:
            return
        if self.scheduling.hours_until(booking.start_at) < settings.CANCELLATION_NOTICE_HOURS:
            raise BookingError(
                "CANCELLATION_WINDOW",
                f"Bookings must be cancelled at least "
                f"{settings.CANCELLATION_NOTICE_HOURS} hours in advance"
            )

    def _notes_with_reason(self, notes: Optional[str], reason: Optional[str]) -> Optional[str]:
        if not reason:
            return notes
        line = f"Cancellation reason: {reason}"
        return f"{notes}\n{line}" if notes else line

    async def _email_business(self, business_id: str) -> Optional[dict]:
        """Business document when it accepts automatic email, else None"""
        if not await self.notifications.channel_enabled(business_id, NotificationChannel.EMAIL):
            return None
        return await self.db.businesses.find_one({"business_id": business_id})

    async def _cancel_open_intent(self, booking: Booking) -> None:
        """Cancel an unpaid PaymentIntent so it cannot be paid once the slot is freed"""
        if not booking.stripe_payment_intent_id or booking.payment_status == PaymentStatus.SUCCEEDED:
            return
        try:
            await StripeService(self.db).cancel_payment_intent(booking.stripe_payment_intent_id)
        except StripeError as e:
            logger.error(
                f"Could not cancel intent {booking.stripe_payment_intent_id} "
                f"for booking {booking.booking_id}: {e.message}"
            )
            raise BookingError(
                "PAYMENT_CANCEL_FAILED",
                "The pending payment could not be cancelled, please try again"
            )

    async def cancel_booking(
        self,
        booking_id: str,
        user: User,
        reason: Optional[str] = None
    ) -> tuple[Booking, str]:
        """
        Cancel a booking and free its slot

        Returns:
            (cancelled booking, message for the caller)
        """
        booking = await self.get_booking(booking_id)
        is_owner = self._authorize(booking, user)

        if booking.status in (BookingStatus.CANCELLED, BookingStatus.COMPLETED):
            raise BookingError(
                "INVALID_STATUS", f"Cannot cancel a booking that is {booking.status}"
            )
        self._check_notice(booking, is_owner)

        paid = booking.payment_status == PaymentStatus.SUCCEEDED
        await self._cancel_open_intent(booking)

        now = utc_now()
        booking.status = BookingStatus.CANCELLED.value
        booking.cancelled_at = now
        booking.cancelled_by = user.user_id
        booking.notes = self._notes_with_reason(booking.notes, reason)
        booking.updated_at = now

        await self.db.bookings.update_one(
            {"booking_id": booking_id},
            {"$set": {
                "status": booking.status,
                "cancelled_at": now,
                "cancelled_by": user.user_id,
                "notes": booking.notes,
                "updated_at": now
            }}
        )
        await self.scheduling.release_slot(booking.business_id, booking.date, booking_id)

        message = "Booking cancelled"
        refund_note = None
        if paid:
            message = "Booking cancelled. This booking was paid; request a refund separately"
            refund_note = "If you paid online, a refund will be issued separately."

        logger.info(f"Booking cancelled: {booking_id} by {user.user_id}")

        business = await self._email_business(booking.business_id)
        if business:
            await get_email_service().send_booking_cancelled(
                booking.model_dump(), business, reason=reason, refund_note=refund_note
            )

        return booking, message

    async def refund_booking(
        self,
        booking_id: str,
        user: User,
        reason: Optional[str] = None
    ) -> Booking:
        """
        Fully refund a paid booking and cancel it

        The transfer to the business and the platform fee are both reversed.
        """
        booking = await self.get_booking(booking_id)
        is_owner = self._authorize(booking, user)

        if booking.payment_status != PaymentStatus.SUCCEEDED or not booking.stripe_payment_intent_id:
            raise BookingError("NOT_REFUNDABLE", "Only paid bookings can be refunded")
        self._check_notice(booking, is_owner)

        try:
            await StripeService(self.db).create_refund(
                booking.stripe_payment_intent_id,
                metadata={"booking_id": booking_id, "reason": reason}
            )
        except StripeError as e:
            logger.error(f"Refund failed for booking {booking_id}: {e.message}")
            raise BookingError("REFUND_FAILED", f"Refund failed: {e.message}")

        now = utc_now()
        was_cancelled = booking.status == BookingStatus.CANCELLED
        booking.payment_status = PaymentStatus.REFUNDED.value
        booking.status = BookingStatus.CANCELLED.value
        booking.refunded_at = now
        booking.updated_at = now
        update = {
            "payment_status": booking.payment_status,
            "status": booking.status,
            "refunded_at": now,
            "updated_at": now
        }
        if not was_cancelled:
            booking.cancelled_at = now
            booking.cancelled_by = user.user_id
            booking.notes = self._notes_with_reason(booking.notes, reason)
            update.update(cancelled_at=now, cancelled_by=user.user_id, notes=booking.notes)

        await self.db.bookings.update_one({"booking_id": booking_id}, {"$set": update})
        await self.scheduling.release_slot(booking.business_id, booking.date, booking_id)

        logger.info(f"Booking refunded: {booking_id} ({booking.total_price})")

        business = await self._email_business(booking.business_id)
        if business:
            await get_email_service().send_refund_issued(booking.model_dump(), business)

        return booking

    # ==================== Owner actions ====================

    async def get_business_booking(self, business_id: str, booking_id: str) -> Booking:
        """Booking owned by the business"""
        doc = await self.db.bookings.find_one({
            "booking_id": booking_id,
            "business_id": business_id
        })
        if not doc:
            raise BookingError("BOOKING_NOT_FOUND", "Booking not found")
        return Booking(**doc)

    async def update_status(
        self,
        business_id: str,
        booking_id: str,
        status: str,
        user: User
    ) -> Booking:
        """
        Set a booking status

        Cancelling frees the slot. Reopening a cancelled booking claims it
        again and fails if the window was taken in the meantime.

        Raises:
            BookingError: Unknown status, or a cancelled booking being completed
            SlotUnavailableError: Slot of a reopened booking is taken
        """
        try:
            new_status = BookingStatus(status.lower())
        except ValueError:
            raise BookingError(
                "INVALID_STATUS",
                f"Invalid status. Must be one of: {', '.join(s.value for s in BookingStatus)}"
            )

        booking = await self.get_business_booking(business_id, booking_id)
        was_cancelled = booking.status == BookingStatus.CANCELLED
        if was_cancelled and new_status == BookingStatus.COMPLETED:
            raise BookingError("INVALID_STATUS", "Cannot complete a cancelled booking")

        if was_cancelled and new_status in (BookingStatus.PENDING, BookingStatus.CONFIRMED):
            reserved = await self.scheduling.reserve_slot(
                business_id,
                booking.date,
                booking_id,
                time_to_minutes(booking.start_time),
                time_to_minutes(booking.end_time)
            )
            if not reserved:
                raise SlotUnavailableError()

        if new_status == BookingStatus.CANCELLED and not was_cancelled:
            await self._cancel_open_intent(booking)

        now = utc_now()
        update = {"status": new_status.value, "updated_at": now}
        if new_status == BookingStatus.CANCELLED and not was_cancelled:
            update.update(cancelled_at=now, cancelled_by=user.user_id)
        if new_status == BookingStatus.COMPLETED:
            update["completed_at"] = now

        await self.db.bookings.update_one({"booking_id": booking_id}, {"$set": update})

        if new_status == BookingStatus.CANCELLED:
            await self.scheduling.release_slot(business_id, booking.date, booking_id)
        if new_status == BookingStatus.COMPLETED:
            await self.customers.refresh_profile(business_id, booking.customer_id)

        logger.info(f"Booking {booking_id} status {booking.status} -> {new_status.value}")
        return Booking(**{**booking.model_dump(), **update})

    async def complete_booking(self, business_id: str, booking_id: str) -> Booking:
        """Mark a booking completed and refresh the customer's stats"""
        booking = await self.get_business_booking(business_id, booking_id)
        if booking.status == BookingStatus.CANCELLED:
            raise BookingError("INVALID_STATUS", "Cannot complete a cancelled booking")

        now = utc_now()
        await self.db.bookings.update_one(
            {"booking_id": booking_id},
            {"$set": {
                "status": BookingStatus.COMPLETED.value,
                "completed_at": now,
                "updated_at": now
            }}
        )
        await self.customers.refresh_profile(business_id, booking.customer_id)

        logger.info(f"Booking completed: {booking_id}")
        booking.status = BookingStatus.COMPLETED.value
        booking.completed_at = now
        booking.updated_at = now
        return booking

    # ==================== Listing ====================

    async def list_business_bookings(
        self,
        business_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        status: Optional[str] = None
    ) -> list[dict]:
        """Business bookings by date then start time"""
        query: dict = {"business_id": business_id}
        date_range = {}
        if start_date:
            date_range["$gte"] = start_date
        if end_date:
            date_range["$lte"] = end_date
        if date_range:
            query["date"] = date_range
        if status:
            query["status"] = status.lower()

        return await self.db.bookings.find(query).sort(
            [("date", 1), ("start_time", 1)]
        ).to_list(length=2000)

    async def list_customer_bookings(self, user_id: str) -> list[dict]:
        """Customer bookings newest first, with business names and review state"""
        docs = await self.db.bookings.find(
            {"customer_id": user_id}
        ).sort("start_at", -1).to_list(length=200)
        if not docs:
            return []

        business_ids = list({d["business_id"] for d in docs})
        businesses = await self.db.businesses.find(
            {"business_id": {"$in": business_ids}}
        ).to_list(length=len(business_ids))
        by_id = {b["business_id"]: b for b in businesses}

        reviews = await self.db.reviews.find(
            {"booking_id": {"$in": [d["booking_id"] for d in docs]}}
        ).to_list(length=len(docs))
        reviewed = {r["booking_id"] for r in reviews}

        for doc in docs:
            business = by_id.get(doc["business_id"], {})
            doc["business_name"] = business.get("business_name")
            doc["business_slug"] = business.get("slug")
            doc["has_review"] = doc["booking_id"] in reviewed
        return docs


def fees_payload(fees: FeeBreakdown) -> dict:
    """Fee split as returned to clients"""
    return {
        "stripe_fee": fees.stripe_fee,
        "platform_fee": fees.platform_fee,
        "business_payout": fees.business_payout,
    }


def get_booking_service(db: AsyncIOMotorDatabase) -> BookingService:
    """Factory for booking service"""
    return BookingService(db)
