"""
Webhook Tests
Stripe events applied to bookings, orders and connected accounts
"""

import hashlib
import hmac
import json
import time
import pytest
from unittest.mock import AsyncMock, patch

from app.config import get_settings
from app.services.stripe_service import StripeService, StripeError
from app.services.webhook_service import WebhookService
from tests.conftest import make_booking

SECRET = "whsec_test_secret"


def event(event_type: str, obj: dict) -> dict:
    return {"id": "evt_1", "type": event_type, "data": {"object": obj}}


@pytest.fixture
def service(seeded_db):
    return WebhookService(seeded_db)


async def _order(db, **overrides) -> None:
    order = {
        "order_id": "ord_test123",
        "business_id": "bus_test123",
        "customer_id": "usr_cust123",
        "customer_name": "Casey Customer",
        "items": [],
        "subtotal": 40.0,
        "total": 40.0,
        "status": "pending",
        "payment_status": "pending",
        "stripe_payment_intent_id": "pi_order",
        "deleted_at": None,
    }
    order.update(overrides)
    await db.orders.insert_one(order)


class TestPaymentEvents:
    """Tests for payment_intent events"""

    async def test_succeeded_confirms_booking(self, seeded_db, service):
        await seeded_db.bookings.insert_one(make_booking(
            status="pending", stripe_payment_intent_id="pi_booking"
        ))

        result = await service.handle_event(event("payment_intent.succeeded", {"id": "pi_booking"}))

        assert result == {"received": True, "type": "payment_intent.succeeded"}
        stored = await seeded_db.bookings.find_one({"booking_id": "bkg_test123"})
        assert stored["status"] == "confirmed"
        assert stored["payment_status"] == "succeeded"
        assert await seeded_db.customer_profiles.count_documents({"user_id": "usr_cust123"}) == 1

    async def test_succeeded_moves_order_to_processing(self, seeded_db, service):
        await _order(seeded_db)

        await service.handle_event(event("payment_intent.succeeded", {"id": "pi_order"}))

        stored = await seeded_db.orders.find_one({"order_id": "ord_test123"})
        assert stored["status"] == "processing"
        assert stored["payment_status"] == "succeeded"

    async def test_failed_marks_payment_and_keeps_status(self, seeded_db, service):
        await seeded_db.bookings.insert_one(make_booking(
            status="pending", stripe_payment_intent_id="pi_booking"
        ))

        await service.handle_event(event("payment_intent.payment_failed", {
            "id": "pi_booking",
            "last_payment_error": {"message": "Your card was declined"}
        }))

        stored = await seeded_db.bookings.find_one({"booking_id": "bkg_test123"})
        assert stored["payment_status"] == "failed"
        assert stored["status"] == "pending"

    async def test_failed_falls_through_to_orders(self, seeded_db, service):
        await _order(seeded_db)

        await service.handle_event(event("payment_intent.payment_failed", {"id": "pi_order"}))

        stored = await seeded_db.orders.find_one({"order_id": "ord_test123"})
        assert stored["payment_status"] == "failed"

    async def test_unknown_intent_is_acknowledged(self, service):
        result = await service.handle_event(event("payment_intent.succeeded", {"id": "pi_nobody"}))
        assert result["received"] is True

    async def test_notification_settings_can_mute_confirmation(self, seeded_db, service):
        await seeded_db.bookings.insert_one(make_booking(
            status="pending", stripe_payment_intent_id="pi_booking"
        ))
        await seeded_db.notification_settings.insert_one({
            "settings_id": "nts_1", "business_id": "bus_test123", "email_enabled": False
        })
        email = AsyncMock()

        with patch("app.services.webhook_service.get_email_service") as get_email:
            get_email.return_value.send_booking_confirmation = email
            await service.handle_event(event("payment_intent.succeeded", {"id": "pi_booking"}))

        email.assert_not_awaited()
        stored = await seeded_db.bookings.find_one({"booking_id": "bkg_test123"})
        assert stored["status"] == "confirmed"


class TestLatePayment:
    """Tests for a payment that succeeds after its booking was cancelled"""

    async def _cancelled(self, db, **overrides) -> None:
        await db.bookings.insert_one(make_booking(
            status="cancelled", stripe_payment_intent_id="pi_late", **overrides
        ))

    async def test_booking_stays_cancelled_and_is_refunded(self, seeded_db, service):
        await self._cancelled(seeded_db)
        stripe = AsyncMock(return_value={"id": "re_1"})

        with patch.object(StripeService, "_stripe_request", stripe):
            await service.handle_event(event("payment_intent.succeeded", {"id": "pi_late"}))

        method, endpoint, data = stripe.await_args.args
        assert (method, endpoint) == ("POST", "refunds")
        assert data["payment_intent"] == "pi_late"
        stored = await seeded_db.bookings.find_one({"booking_id": "bkg_test123"})
        assert stored["status"] == "cancelled"
        assert stored["payment_status"] == "refunded"
        assert stored["refunded_at"] is not None

    async def test_slot_stays_free(self, seeded_db, service):
        await self._cancelled(seeded_db)
        other = make_booking(booking_id="bkg_other", customer_id="usr_other")
        await seeded_db.bookings.insert_one(other)

        with patch.object(StripeService, "_stripe_request", AsyncMock(return_value={"id": "re_1"})):
            await service.handle_event(event("payment_intent.succeeded", {"id": "pi_late"}))

        active = await seeded_db.bookings.count_documents({"status": {"$in": ["confirmed", "pending"]}})
        assert active == 1

    async def test_refund_failure_records_payment(self, seeded_db, service):
        await self._cancelled(seeded_db)
        stripe = AsyncMock(side_effect=StripeError("api_error", "Stripe is unavailable"))

        with patch.object(StripeService, "_stripe_request", stripe):
            await service.handle_event(event("payment_intent.succeeded", {"id": "pi_late"}))

        stored = await seeded_db.bookings.find_one({"booking_id": "bkg_test123"})
        assert stored["status"] == "cancelled"
        assert stored["payment_status"] == "succeeded"

    async def test_repeated_event_is_ignored(self, seeded_db, service):
        await self._cancelled(seeded_db, payment_status="refunded")
        stripe = AsyncMock()

        with patch.object(StripeService, "_stripe_request", stripe):
            await service.handle_event(event("payment_intent.succeeded", {"id": "pi_late"}))

        stripe.assert_not_awaited()


class TestAccountEvents:
    """Tests for connected account sync"""

    async def test_account_updated_sets_onboarded(self, seeded_db, service):
        await seeded_db.businesses.update_one(
            {"business_id": "bus_test123"},
            {"$set": {"stripe_account_id": "acct_123"}}
        )

        await service.handle_event(event("account.updated", {
            "id": "acct_123", "charges_enabled": True, "payouts_enabled": True
        }))
        stored = await seeded_db.businesses.find_one({"business_id": "bus_test123"})
        assert stored["stripe_onboarded"] is True

        await service.handle_event(event("account.updated", {
            "id": "acct_123", "charges_enabled": True, "payouts_enabled": False
        }))
        stored = await seeded_db.businesses.find_one({"business_id": "bus_test123"})
        assert stored["stripe_onboarded"] is False

    async def test_unhandled_type(self, service):
        result = await service.handle_event(event("charge.dispute.created", {"id": "dp_1"}))
        assert result == {"received": True, "type": "charge.dispute.created"}


class TestProcess:
    """Tests for signed delivery handling"""

    @pytest.fixture(autouse=True)
    def webhook_secret(self, monkeypatch):
        monkeypatch.setattr(get_settings(), "STRIPE_WEBHOOK_SECRET", SECRET)

    async def test_signed_delivery(self, seeded_db, service):
        await seeded_db.bookings.insert_one(make_booking(
            status="pending", stripe_payment_intent_id="pi_booking"
        ))
        payload = json.dumps(event("payment_intent.succeeded", {"id": "pi_booking"})).encode()
        timestamp = int(time.time())
        signature = hmac.new(
            SECRET.encode(), f"{timestamp}.{payload.decode()}".encode(), hashlib.sha256
        ).hexdigest()

        result = await service.process(payload, f"t={timestamp},v1={signature}")

        assert result["type"] == "payment_intent.succeeded"
        stored = await seeded_db.bookings.find_one({"booking_id": "bkg_test123"})
        assert stored["status"] == "confirmed"

    async def test_bad_signature_rejected(self, seeded_db, service):
        payload = b'{"type": "payment_intent.succeeded"}'

        with pytest.raises(StripeError):
            await service.process(payload, f"t={int(time.time())},v1=deadbeef")

    async def test_missing_secret(self, monkeypatch, service):
        monkeypatch.setattr(get_settings(), "STRIPE_WEBHOOK_SECRET", None)

        with pytest.raises(StripeError) as exc_info:
            await service.process(b"{}", "t=1,v1=abc")
        assert exc_info.value.code == "WEBHOOK_NOT_CONFIGURED"
