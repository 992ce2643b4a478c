"""
Stripe Service
Stripe Connect integration: marketplace fee split, payment intents,
refunds, Express account onboarding and webhook verification
"""

import hashlib
import hmac
import json
import logging
import time
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
import httpx

from app.config import get_settings
from app.models.booking import FeeBreakdown
from app.models.business import Business
from app.models.user import User
from app.models.common import utc_now

logger = logging.getLogger(__name__)
settings = get_settings()

WEBHOOK_TOLERANCE_SECONDS = 300


class StripeError(Exception):
    """Stripe API or configuration error"""
    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


def _half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_cents(amount: float) -> int:
    """Convert dollars to integer cents"""
    return _half_up(Decimal(str(amount)) * 100)


def calculate_fees(amount: float, commission_rate: Optional[float] = None) -> FeeBreakdown:
    """
    Split a charge between Stripe, the platform and the business

    All arithmetic is done in integer cents:
        stripe_fee   = round(cents * 2.9% + 30)
        platform_fee = round(cents * commission%)
        payout       = cents - stripe_fee - platform_fee

    Args:
        amount: Charge in dollars
        commission_rate: Business-specific commission percentage, falls back
            to PLATFORM_FEE_PERCENTAGE

    Returns:
        FeeBreakdown with cents total and dollar components
    """
    rate = commission_rate if commission_rate is not None else settings.PLATFORM_FEE_PERCENTAGE
    cents = to_cents(amount)

    stripe_fee = _half_up(
        Decimal(cents) * Decimal(str(settings.STRIPE_FEE_PERCENTAGE)) / 100
        + settings.STRIPE_FEE_FIXED_CENTS
    )
    platform_fee = _half_up(Decimal(cents) * Decimal(str(rate)) / 100)
    payout = cents - stripe_fee - platform_fee

    return FeeBreakdown(
        amount=cents / 100,
        amount_cents=cents,
        stripe_fee=stripe_fee / 100,
        platform_fee=platform_fee / 100,
        business_payout=payout / 100
    )


def parse_stripe_signature(header: str) -> tuple[str, list[str]]:
    """Parse Stripe-Signature header into timestamp and v1 signatures"""
    timestamp = ""
    signatures = []
    for pair in header.split(","):
        if "=" not in pair:
            continue
        key, value = pair.strip().split("=", 1)
        if key == "t":
            timestamp = value
        elif key == "v1":
            signatures.append(value)
    return timestamp, signatures


def verify_webhook_signature(
    payload: bytes,
    header: Optional[str],
    secret: str,
    tolerance: int = WEBHOOK_TOLERANCE_SECONDS,
    now: Optional[float] = None
) -> dict:
    """
    Verify a Stripe webhook and return the decoded event

    Raises:
        StripeError: If the header is missing, no v1 signature matches,
            or the timestamp is outside the tolerance window
    """
    if not header:
        raise StripeError("INVALID_SIGNATURE", "Missing Stripe-Signature header")

    timestamp, signatures = parse_stripe_signature(header)
    if not timestamp or not signatures:
        raise StripeError("INVALID_SIGNATURE", "Malformed Stripe-Signature header")

    expected_sig = hmac.new(
        secret.encode(),
        f"{timestamp}.{payload.decode()}".encode(),
        hashlib.sha256
    ).hexdigest()

    if not any(hmac.compare_digest(expected_sig, sig) for sig in signatures):
        raise StripeError("INVALID_SIGNATURE", "Invalid webhook signature")

    try:
        ts = int(timestamp)
    except ValueError:
        raise StripeError("INVALID_SIGNATURE", "Malformed webhook timestamp")

    current = time.time() if now is None else now
    if abs(current - ts) > tolerance:
        raise StripeError("INVALID_SIGNATURE", "Webhook timestamp outside tolerance")

    try:
        return json.loads(payload)
    except ValueError:
        raise StripeError("INVALID_PAYLOAD", "Webhook payload is not valid JSON")


class StripeService:
    """Stripe Connect service"""

    STRIPE_API_URL = "https://api.stripe.com/v1"

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.api_key = settings.STRIPE_SECRET_KEY
        self.webhook_secret = settings.STRIPE_WEBHOOK_SECRET
        self._configured = bool(self.api_key)

    @property
    def is_configured(self) -> bool:
        """Check if Stripe is configured"""
        return self._configured

    async def _stripe_request(
        self,
        method: str,
        endpoint: str,
        data: Optional[dict] = None
    ) -> dict:
        """Make a request to Stripe API"""
        if not self.is_configured:
            raise StripeError("STRIPE_NOT_CONFIGURED", "Stripe not configured")

        url = f"{self.STRIPE_API_URL}/{endpoint}"
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            async with httpx.AsyncClient() as client:
                if method == "GET":
                    response = await client.get(url, headers=headers, timeout=30.0)
                elif method == "POST":
                    response = await client.post(
                        url, headers=headers, data=data, timeout=30.0
                    )
                elif method == "DELETE":
                    response = await client.delete(url, headers=headers, timeout=30.0)
                else:
                    raise ValueError(f"Unsupported method: {method}")
        except httpx.HTTPError as e:
            logger.error(f"Stripe request failed: {method} {endpoint}: {e}")
            raise StripeError("STRIPE_ERROR", "Could not reach Stripe")

        if response.status_code >= 400:
            try:
                error_msg = response.json().get("error", {}).get("message", "Unknown error")
            except ValueError:
                error_msg = f"HTTP {response.status_code}"
            logger.error(f"Stripe error on {method} {endpoint}: {error_msg}")
            raise StripeError("STRIPE_ERROR", error_msg)

        return response.json()

    # ==================== Customers ====================

    async def get_or_create_customer(self, user: User) -> str:
        """Return the user's Stripe customer id, creating the customer once"""
        if user.stripe_customer_id:
            return user.stripe_customer_id

        customer_data = {
            "email": user.email,
            "name": user.full_name,
            "metadata[user_id]": user.user_id
        }
        result = await self._stripe_request("POST", "customers", customer_data)
        stripe_customer_id = result["id"]

        await self.db.users.update_one(
            {"user_id": user.user_id},
            {"$set": {"stripe_customer_id": stripe_customer_id, "updated_at": utc_now()}}
        )
        user.stripe_customer_id = stripe_customer_id
        return stripe_customer_id

    # ==================== Payments ====================

    async def create_payment_intent(
        self,
        fees: FeeBreakdown,
        destination_account: str,
        customer_id: str,
        metadata: dict,
        description: Optional[str] = None
    ) -> dict:
        """
        Create a destination-charge PaymentIntent

        The platform keeps application_fee_amount and the remainder is
        transferred to the connected account.
        """
        platform_fee_cents = to_cents(fees.platform_fee)
        intent_data = {
            "amount": str(fees.amount_cents),
            "currency": settings.STRIPE_CURRENCY,
            "customer": customer_id,
            "payment_method_types[]": "card",
            "application_fee_amount": str(platform_fee_cents),
            "transfer_data[destination]": destination_account,
        }
        if description:
            intent_data["description"] = description
        for key, value in metadata.items():
            if value is not None:
                intent_data[f"metadata[{key}]"] = str(value)

        result = await self._stripe_request("POST", "payment_intents", intent_data)
        logger.info(f"PaymentIntent created: {result.get('id')} ({fees.amount_cents} cents)")
        return result

    async def cancel_payment_intent(self, payment_intent_id: str) -> dict:
        """Cancel an unpaid PaymentIntent"""
        return await self._stripe_request(
            "POST", f"payment_intents/{payment_intent_id}/cancel"
        )

    async def create_refund(
        self,
        payment_intent_id: str,
        metadata: Optional[dict] = None
    ) -> dict:
        """
        Fully refund a destination charge

        Reverses the transfer and refunds the application fee so the
        business and the platform both give back their share.
        """
        refund_data = {
            "payment_intent": payment_intent_id,
            "reverse_transfer": "true",
            "refund_application_fee": "true",
            "reason": "requested_by_customer"
        }
        for key, value in (metadata or {}).items():
            if value is not None:
                refund_data[f"metadata[{key}]"] = str(value)

        result = await self._stripe_request("POST", "refunds", refund_data)
        logger.info(f"Refund created: {result.get('id')} for {payment_intent_id}")
        return result

    # ==================== Connect ====================

    async def create_express_account(self, business: Business, email: str) -> str:
        """Create an Express connected account for a business"""
        account_data = {
            "type": "express",
            "country": "US",
            "email": email,
            "capabilities[card_payments][requested]": "true",
            "capabilities[transfers][requested]": "true",
            "business_type": "individual",
            "business_profile[name]": business.business_name,
            "business_profile[product_description]":
                f"Beauty and wellness services at {business.business_name}",
            "settings[payouts][schedule][interval]": "daily",
            "metadata[business_id]": business.business_id,
        }
        result = await self._stripe_request("POST", "accounts", account_data)
        logger.info(f"Stripe Express account created for {business.business_id}: {result['id']}")
        return result["id"]

    async def create_account_link(self, account_id: str, business_id: str) -> str:
        """Create an onboarding link, returns its URL"""
        link_data = {
            "account": account_id,
            "refresh_url": f"{settings.APP_URL}/business/dashboard/settings?stripe=refresh",
            "return_url": (
                f"{settings.API_URL}{settings.API_PREFIX}/stripe/connect/callback"
                f"?business_id={business_id}"
            ),
            "type": "account_onboarding",
        }
        result = await self._stripe_request("POST", "account_links", link_data)
        return result["url"]

    async def retrieve_account(self, account_id: str) -> dict:
        """Get a connected account"""
        return await self._stripe_request("GET", f"accounts/{account_id}")

    async def create_login_link(self, account_id: str) -> str:
        """Create an Express dashboard login link, returns its URL"""
        result = await self._stripe_request("POST", f"accounts/{account_id}/login_links")
        return result["url"]

    # ==================== Webhooks ====================

    def construct_event(self, payload: bytes, signature: Optional[str]) -> dict:
        """Verify and decode a webhook delivery"""
        if not self.webhook_secret:
            raise StripeError("WEBHOOK_NOT_CONFIGURED", "Webhook secret not configured")
        return verify_webhook_signature(payload, signature, self.webhook_secret)


def account_is_onboarded(account: dict) -> bool:
    """Connected account can take charges and receive payouts"""
    return bool(account.get("charges_enabled")) and bool(account.get("payouts_enabled"))
