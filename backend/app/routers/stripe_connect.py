"""
Stripe API Router
Connect onboarding for businesses and the Stripe webhook
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status, Request, Header
from fastapi.responses import RedirectResponse
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.config import get_settings
from app.database import get_database
from app.models.common import utc_now
from app.middleware.auth import BusinessContext, get_business_context
from app.services.stripe_service import StripeService, StripeError, account_is_onboarded
from app.services.webhook_service import WebhookService

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()

SETTINGS_PAGE = "/business/dashboard/settings"


def get_stripe_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> StripeService:
    """Get Stripe service instance"""
    return StripeService(db)


def get_webhook_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> WebhookService:
    """Get webhook service instance"""
    return WebhookService(db)


def _stripe_http_error(e: StripeError) -> HTTPException:
    status_code = (
        status.HTTP_503_SERVICE_UNAVAILABLE
        if e.code == "STRIPE_NOT_CONFIGURED" else status.HTTP_502_BAD_GATEWAY
    )
    return HTTPException(status_code=status_code, detail={"code": e.code, "message": e.message})


# ==================== Connect ====================

@router.post(
    "/connect/account",
    summary="Start Stripe onboarding"
)
async def create_connect_account(
    ctx: BusinessContext = Depends(get_business_context),
    stripe: StripeService = Depends(get_stripe_service)
):
    """
    Create the business's Express account if needed and return an
    onboarding link
    """
    account_id = ctx.business.stripe_account_id
    try:
        if not account_id:
            email = ctx.business.email or ctx.user.email
            account_id = await stripe.create_express_account(ctx.business, email)
            await ctx.db.businesses.update_one(
                {"business_id": ctx.business_id},
                {"$set": {"stripe_account_id": account_id, "updated_at": utc_now()}}
            )
        url = await stripe.create_account_link(account_id, ctx.business_id)
    except StripeError as e:
        raise _stripe_http_error(e)

    return {"success": True, "data": {"url": url, "account_id": account_id}}


@router.get(
    "/connect/callback",
    summary="Stripe onboarding return"
)
async def connect_callback(
    business_id: str,
    db: AsyncIOMotorDatabase = Depends(get_database),
    stripe: StripeService = Depends(get_stripe_service)
):
    """Record onboarding progress and send the owner back to settings"""
    settings_url = f"{settings.APP_URL}{SETTINGS_PAGE}"

    business = await db.businesses.find_one({"business_id": business_id, "deleted_at": None})
    if not business or not business.get("stripe_account_id"):
        return RedirectResponse(f"{settings_url}?stripe=incomplete")

    try:
        account = await stripe.retrieve_account(business["stripe_account_id"])
    except StripeError as e:
        logger.error(f"Could not check Stripe account for {business_id}: {e.message}")
        return RedirectResponse(f"{settings_url}?stripe=incomplete")

    onboarded = account_is_onboarded(account)
    await db.businesses.update_one(
        {"business_id": business_id},
        {"$set": {"stripe_onboarded": onboarded, "updated_at": utc_now()}}
    )
    logger.info(f"Stripe onboarding for {business_id}: onboarded={onboarded}")

    result = "success" if onboarded else "incomplete"
    return RedirectResponse(f"{settings_url}?stripe={result}")


@router.post(
    "/connect/portal",
    summary="Open Stripe dashboard"
)
async def create_portal_link(
    ctx: BusinessContext = Depends(get_business_context),
    stripe: StripeService = Depends(get_stripe_service)
):
    """Login link to the Express dashboard for an onboarded business"""
    if not ctx.business.payments_enabled:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "STRIPE_NOT_ONBOARDED", "message": "Finish Stripe onboarding first"}
        )
    try:
        url = await stripe.create_login_link(ctx.business.stripe_account_id)
    except StripeError as e:
        raise _stripe_http_error(e)

    return {"success": True, "data": {"url": url}}


@router.get(
    "/connect/status",
    summary="Stripe connection status"
)
async def get_connect_status(
    ctx: BusinessContext = Depends(get_business_context),
    stripe: StripeService = Depends(get_stripe_service)
):
    """Account id, onboarding flag and whether the platform has Stripe keys"""
    return {
        "success": True,
        "data": {
            "stripe_account_id": ctx.business.stripe_account_id,
            "stripe_onboarded": ctx.business.stripe_onboarded,
            "stripe_configured": stripe.is_configured,
        }
    }


# ==================== Webhook ====================

@router.post(
    "/webhook",
    summary="Stripe webhook handler"
)
async def handle_stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    service: WebhookService = Depends(get_webhook_service)
):
    """
    Handle Stripe webhook events.
    Register this endpoint in the Stripe dashboard for payment_intent.*
    and account.updated.
    """
    payload = await request.body()
    try:
        return await service.process(payload, stripe_signature)
    except StripeError as e:
        logger.warning(f"Rejected Stripe webhook: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": e.code, "message": e.message}
        )
