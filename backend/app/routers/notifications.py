"""
Notifications API Router
Owner notification preferences, templates, triggers and test sends
"""

from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.database import get_database
from app.models.notification import (
    NotificationSettingsCreate, NotificationSettingsUpdate,
    NotificationTemplateUpsert, NotificationTriggerUpsert, NotificationTestRequest
)
from app.middleware.auth import BusinessContext, get_business_context
from app.services.notification_service import NotificationService, NotificationError

router = APIRouter()

ERROR_STATUS = {
    "SETTINGS_NOT_FOUND": status.HTTP_404_NOT_FOUND,
}


def get_notification_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> NotificationService:
    """Get notification service instance"""
    return NotificationService(db)


def _http_error(e: NotificationError) -> HTTPException:
    return HTTPException(
        status_code=ERROR_STATUS.get(e.code, status.HTTP_400_BAD_REQUEST),
        detail={"code": e.code, "message": e.message}
    )


@router.get(
    "/settings",
    summary="Get notification settings"
)
async def get_notification_settings(
    ctx: BusinessContext = Depends(get_business_context),
    service: NotificationService = Depends(get_notification_service)
):
    """Preferences with their templates and trigger rules"""
    try:
        overview = await service.get_overview(ctx.business_id)
    except NotificationError as e:
        raise _http_error(e)
    return {"success": True, "data": overview}


@router.post(
    "/settings",
    status_code=status.HTTP_201_CREATED,
    summary="Create notification settings"
)
async def create_notification_settings(
    data: NotificationSettingsCreate,
    ctx: BusinessContext = Depends(get_business_context),
    service: NotificationService = Depends(get_notification_service)
):
    """Create preferences; the timezone defaults to the business's"""
    try:
        prefs = await service.create_settings(ctx.business, data)
    except NotificationError as e:
        raise _http_error(e)
    return {"success": True, "data": prefs}


@router.patch(
    "/settings",
    summary="Update notification settings"
)
async def update_notification_settings(
    data: NotificationSettingsUpdate,
    ctx: BusinessContext = Depends(get_business_context),
    service: NotificationService = Depends(get_notification_service)
):
    """Partially update preferences"""
    try:
        prefs = await service.update_settings(ctx.business_id, data)
    except NotificationError as e:
        raise _http_error(e)
    return {"success": True, "data": prefs}


@router.post(
    "/templates",
    summary="Save notification template"
)
async def save_template(
    data: NotificationTemplateUpsert,
    ctx: BusinessContext = Depends(get_business_context),
    service: NotificationService = Depends(get_notification_service)
):
    """Create or replace the template for a type and channel"""
    try:
        template = await service.upsert_template(ctx.business_id, data)
    except NotificationError as e:
        raise _http_error(e)
    return {"success": True, "data": template}


@router.post(
    "/triggers",
    summary="Save notification trigger"
)
async def save_trigger(
    data: NotificationTriggerUpsert,
    ctx: BusinessContext = Depends(get_business_context),
    service: NotificationService = Depends(get_notification_service)
):
    """Create or replace the trigger for an event and channel"""
    try:
        trigger = await service.upsert_trigger(ctx.business_id, data)
    except NotificationError as e:
        raise _http_error(e)
    return {"success": True, "data": trigger}


@router.post(
    "/test",
    summary="Send test notification"
)
async def send_test_notification(
    data: NotificationTestRequest,
    ctx: BusinessContext = Depends(get_business_context),
    service: NotificationService = Depends(get_notification_service)
):
    """Send a sample message to the owner's own email or phone"""
    try:
        log = await service.send_test(ctx.business, ctx.user, data)
    except NotificationError as e:
        raise _http_error(e)

    channel = data.channel.value
    if log.status != "sent":
        return {
            "success": False,
            "message": f"Test {channel} to {log.recipient} failed: {log.error}",
            "data": log
        }
    return {
        "success": True,
        "message": f"Test {channel} sent to {log.recipient}",
        "data": log
    }
