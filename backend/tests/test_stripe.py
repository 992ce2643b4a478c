"""
Stripe Tests
Fee split, webhook signatures and Connect request payloads
"""

import hashlib
import hmac
import json
import time
import pytest
from unittest.mock import AsyncMock, patch

from app.models.business import Business
from app.models.user import User
from app.services.stripe_service import (
    StripeService, StripeError, calculate_fees, to_cents,
    parse_stripe_signature, verify_webhook_signature, account_is_onboarded
)

SECRET = "whsec_test_secret"


def sign(payload: bytes, timestamp: int, secret: str = SECRET) -> str:
    signature = hmac.new(
        secret.encode(), f"{timestamp}.{payload.decode()}".encode(), hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


class TestFees:
    """Tests for the marketplace fee split"""

    def test_to_cents(self):
        assert to_cents(19.99) == 1999
        assert to_cents(0.1 + 0.2) == 30

    def test_default_split(self):
        fees = calculate_fees(100.0)

        assert fees.amount_cents == 10000
        assert fees.stripe_fee == 3.20
        assert fees.platform_fee == 15.00
        assert fees.business_payout == 81.80

    def test_half_up_rounding(self):
        """1030 cents: platform 154.5 rounds up, Stripe 59.87 rounds to 60"""
        fees = calculate_fees(10.30)

        assert fees.platform_fee == 1.55
        assert fees.stripe_fee == 0.60
        assert fees.business_payout == 8.15

    def test_components_add_up(self):
        fees = calculate_fees(49.99)
        total = round(fees.stripe_fee + fees.platform_fee + fees.business_payout, 2)
        assert total == fees.amount

    def test_business_commission_override(self):
        fees = calculate_fees(100.0, commission_rate=10)

        assert fees.platform_fee == 10.00
        assert fees.business_payout == 86.80


class TestWebhookSignature:
    """Tests for Stripe-Signature verification"""

    def test_parse_header(self):
        timestamp, signatures = parse_stripe_signature("t=123,v1=abc,v0=old,v1=def")
        assert timestamp == "123"
        assert signatures == ["abc", "def"]

    def test_valid_signature(self):
        payload = json.dumps({"type": "payment_intent.succeeded"}).encode()
        now = int(time.time())

        event = verify_webhook_signature(payload, sign(payload, now), SECRET, now=now)

        assert event["type"] == "payment_intent.succeeded"

    def test_any_v1_may_match(self):
        payload = b'{"type": "account.updated"}'
        now = int(time.time())
        good = sign(payload, now).split("v1=", 1)[1]
        header = f"t={now},v1=deadbeef,v1={good}"

        assert verify_webhook_signature(payload, header, SECRET, now=now)["type"] == "account.updated"

    def test_wrong_secret(self):
        payload = b'{"type": "x"}'
        now = int(time.time())

        with pytest.raises(StripeError):
            verify_webhook_signature(payload, sign(payload, now, "other"), SECRET, now=now)

    def test_tampered_payload(self):
        now = int(time.time())
        header = sign(b'{"amount": 100}', now)

        with pytest.raises(StripeError):
            verify_webhook_signature(b'{"amount": 1}', header, SECRET, now=now)

    def test_outside_tolerance(self):
        payload = b'{"type": "x"}'
        signed_at = int(time.time()) - 301

        with pytest.raises(StripeError) as exc_info:
            verify_webhook_signature(payload, sign(payload, signed_at), SECRET, now=signed_at + 301)
        assert "tolerance" in exc_info.value.message

    @pytest.mark.parametrize("header", [None, "", "garbage", "t=123"])
    def test_malformed_header(self, header):
        with pytest.raises(StripeError):
            verify_webhook_signature(b"{}", header, SECRET)


class TestConnectRequests:
    """Tests for the requests sent to Stripe"""

    def test_account_is_onboarded(self):
        assert account_is_onboarded({"charges_enabled": True, "payouts_enabled": True})
        assert not account_is_onboarded({"charges_enabled": True, "payouts_enabled": False})
        assert not account_is_onboarded({})

    async def test_payment_intent_fee_split(self, mock_db):
        stripe = StripeService(mock_db)
        request = AsyncMock(return_value={"id": "pi_123", "client_secret": "pi_123_secret"})

        with patch.object(StripeService, "_stripe_request", request):
            await stripe.create_payment_intent(
                calculate_fees(100.0),
                destination_account="acct_123",
                customer_id="cus_123",
                metadata={"booking_id": "bkg_1", "business_id": "bus_1", "user_id": None}
            )

        method, endpoint, data = request.call_args.args
        assert (method, endpoint) == ("POST", "payment_intents")
        assert data["amount"] == "10000"
        assert data["application_fee_amount"] == "1500"
        assert data["transfer_data[destination]"] == "acct_123"
        assert data["metadata[booking_id]"] == "bkg_1"
        assert "metadata[user_id]" not in data

    async def test_refund_reverses_transfer(self, mock_db):
        stripe = StripeService(mock_db)
        request = AsyncMock(return_value={"id": "re_123"})

        with patch.object(StripeService, "_stripe_request", request):
            await stripe.create_refund("pi_123")

        data = request.call_args.args[2]
        assert data["reverse_transfer"] == "true"
        assert data["refund_application_fee"] == "true"

    async def test_express_account(self, mock_db, sample_business):
        stripe = StripeService(mock_db)
        request = AsyncMock(return_value={"id": "acct_new"})

        with patch.object(StripeService, "_stripe_request", request):
            account_id = await stripe.create_express_account(
                Business(**sample_business), "owner@glowstudio.com"
            )

        data = request.call_args.args[2]
        assert account_id == "acct_new"
        assert data["type"] == "express"
        assert data["business_type"] == "individual"
        assert data["settings[payouts][schedule][interval]"] == "daily"
        assert data["metadata[business_id]"] == "bus_test123"

    async def test_customer_created_once(self, mock_db, sample_customer):
        await mock_db.users.insert_one(sample_customer)
        user = User(**sample_customer)
        stripe = StripeService(mock_db)
        request = AsyncMock(return_value={"id": "cus_new"})

        with patch.object(StripeService, "_stripe_request", request):
            assert await stripe.get_or_create_customer(user) == "cus_new"
            assert await stripe.get_or_create_customer(user) == "cus_new"

        assert request.await_count == 1
        stored = await mock_db.users.find_one({"user_id": user.user_id})
        assert stored["stripe_customer_id"] == "cus_new"

    async def test_unconfigured_stripe(self, mock_db):
        stripe = StripeService(mock_db)
        stripe._configured = False

        with pytest.raises(StripeError) as exc_info:
            await stripe.retrieve_account("acct_123")
        assert exc_info.value.code == "STRIPE_NOT_CONFIGURED"
