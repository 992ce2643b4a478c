"""
Notification Service
Business notification preferences, templates, trigger rules and test sends
"""

import logging
import re
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from app.config import get_settings
from app.models.business import Business
from app.models.common import utc_now
from app.models.notification import (
    NotificationSettings, NotificationSettingsCreate, NotificationSettingsUpdate,
    NotificationTemplate, NotificationTemplateUpsert,
    NotificationTrigger, NotificationTriggerUpsert,
    NotificationTestRequest, NotificationLog,
    NotificationType, NotificationChannel
)
from app.models.user import User
from app.services.email_service import get_email_service
from app.services.scheduling_service import time_to_minutes
from app.services.sms_service import get_sms_service

logger = logging.getLogger(__name__)
settings = get_settings()

COMMON_VARIABLES = ["customerName", "businessName"]

TEMPLATE_VARIABLES = {
    NotificationType.BOOKING_CONFIRMATION: ["serviceName", "date", "time", "staffName", "price"],
    NotificationType.BOOKING_REMINDER: ["serviceName", "date", "time", "staffName", "hoursUntil"],
    NotificationType.BOOKING_CANCELLED: ["serviceName", "date", "time", "reason"],
    NotificationType.BOOKING_RESCHEDULED: ["serviceName", "oldDate", "oldTime", "newDate", "newTime"],
    NotificationType.BOOKING_COMPLETED: ["serviceName", "date", "reviewLink"],
    NotificationType.REVIEW_REQUEST: ["serviceName", "date", "reviewLink", "businessUrl"],
    NotificationType.PROMOTIONAL: ["offerDetails", "expiryDate", "discountCode"],
    NotificationType.BIRTHDAY: ["birthdayOffer", "expiryDate"],
    NotificationType.RE_ENGAGEMENT: ["lastVisitDate", "specialOffer"],
}

DEFAULT_SUBJECTS = {
    NotificationType.BOOKING_CONFIRMATION: "Booking Confirmation - {{businessName}}",
    NotificationType.BOOKING_REMINDER: "Appointment Reminder - {{businessName}}",
    NotificationType.BOOKING_CANCELLED: "Booking Cancelled - {{businessName}}",
    NotificationType.BOOKING_RESCHEDULED: "Booking Rescheduled - {{businessName}}",
    NotificationType.BOOKING_COMPLETED: "Thank You for Your Visit - {{businessName}}",
    NotificationType.REVIEW_REQUEST: "How was your experience? - {{businessName}}",
    NotificationType.PROMOTIONAL: "Special Offer from {{businessName}}",
    NotificationType.BIRTHDAY: "Happy Birthday from {{businessName}}!",
    NotificationType.RE_ENGAGEMENT: "We Miss You! - {{businessName}}",
}

DEFAULT_TEMPLATES = {
    (NotificationType.BOOKING_CONFIRMATION, NotificationChannel.EMAIL): (
        "Hi {{customerName}},\n\n"
        "Your booking at {{businessName}} has been confirmed!\n\n"
        "Service: {{serviceName}}\nDate: {{date}}\nTime: {{time}}\n"
        "Staff: {{staffName}}\nPrice: {{price}}\n\n"
        "We look forward to seeing you!\n\nBest regards,\n{{businessName}}"
    ),
    (NotificationType.BOOKING_CONFIRMATION, NotificationChannel.SMS): (
        "{{businessName}}: Your booking for {{serviceName}} on {{date}} at {{time}} "
        "is confirmed. See you soon!"
    ),
    (NotificationType.BOOKING_REMINDER, NotificationChannel.EMAIL): (
        "Hi {{customerName}},\n\n"
        "This is a reminder about your upcoming appointment at {{businessName}}.\n\n"
        "Service: {{serviceName}}\nDate: {{date}}\nTime: {{time}}\nStaff: {{staffName}}\n\n"
        "Your appointment is in {{hoursUntil}} hours. See you soon!\n\n"
        "Best regards,\n{{businessName}}"
    ),
    (NotificationType.BOOKING_REMINDER, NotificationChannel.SMS): (
        "{{businessName}}: Reminder - You have {{serviceName}} tomorrow at {{time}}."
    ),
    (NotificationType.BOOKING_CANCELLED, NotificationChannel.EMAIL): (
        "Hi {{customerName}},\n\n"
        "Your booking at {{businessName}} has been cancelled.\n\n"
        "Service: {{serviceName}}\nOriginal Date: {{date}}\nOriginal Time: {{time}}\n\n"
        "We hope to see you again soon.\n\nBest regards,\n{{businessName}}"
    ),
    (NotificationType.BOOKING_CANCELLED, NotificationChannel.SMS): (
        "{{businessName}}: Your booking for {{serviceName}} on {{date}} has been cancelled."
    ),
    (NotificationType.REVIEW_REQUEST, NotificationChannel.EMAIL): (
        "Hi {{customerName}},\n\n"
        "Thank you for visiting {{businessName}}! We hope you enjoyed your {{serviceName}}.\n\n"
        "We'd love to hear about your experience:\n{{reviewLink}}\n\n"
        "Best regards,\n{{businessName}}"
    ),
    (NotificationType.REVIEW_REQUEST, NotificationChannel.SMS): (
        "{{businessName}}: Thanks for your visit! We'd love your feedback: {{reviewLink}}"
    ),
}

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*(\w+)\s*\}\}")


class NotificationError(Exception):
    """Notification error"""
    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


def template_variables(notification_type: NotificationType) -> list[str]:
    """Placeholders available to a template type"""
    return COMMON_VARIABLES + TEMPLATE_VARIABLES.get(notification_type, [])


def default_content(notification_type: NotificationType, channel: NotificationChannel) -> str:
    return DEFAULT_TEMPLATES.get(
        (notification_type, channel),
        f"Test notification for {notification_type.value}"
    )


def default_subject(notification_type: NotificationType) -> str:
    return DEFAULT_SUBJECTS.get(notification_type, "Notification from {{businessName}}")


def render_template(text: str, values: dict) -> str:
    """Fill {{name}} placeholders; unknown names are left as written"""
    return PLACEHOLDER_PATTERN.sub(
        lambda m: str(values[m.group(1)]) if m.group(1) in values else m.group(0),
        text
    )


def in_quiet_hours(prefs: NotificationSettings, now: Optional[datetime] = None) -> bool:
    """
    Check whether local time falls in the quiet window

    The window may wrap midnight (21:00-09:00). Equal start and end means
    no quiet hours.
    """
    now = now or utc_now()
    local = now.astimezone(ZoneInfo(prefs.timezone))
    minute = local.hour * 60 + local.minute
    start = time_to_minutes(prefs.quiet_hours_start)
    end = time_to_minutes(prefs.quiet_hours_end)
    if start == end:
        return False
    if start < end:
        return start <= minute < end
    return minute >= start or minute < end


class NotificationService:
    """Service for business notification configuration"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    # ==================== Settings ====================

    async def find_settings(self, business_id: str) -> Optional[NotificationSettings]:
        doc = await self.db.notification_settings.find_one({"business_id": business_id})
        return NotificationSettings(**doc) if doc else None

    async def get_settings(self, business_id: str) -> NotificationSettings:
        prefs = await self.find_settings(business_id)
        if not prefs:
            raise NotificationError("SETTINGS_NOT_FOUND", "Notification settings not found")
        return prefs

    async def get_overview(self, business_id: str) -> dict:
        """Settings with their templates and triggers"""
        prefs = await self.get_settings(business_id)
        templates = await self.db.notification_templates.find(
            {"business_id": business_id}
        ).sort([("type", 1), ("channel", 1)]).to_list(length=100)
        triggers = await self.db.notification_triggers.find(
            {"business_id": business_id}
        ).sort([("event", 1), ("channel", 1)]).to_list(length=100)

        return {
            "settings": prefs,
            "quiet_hours_active": in_quiet_hours(prefs),
            "templates": [NotificationTemplate(**t) for t in templates],
            "triggers": [NotificationTrigger(**t) for t in triggers],
        }

    async def create_settings(
        self,
        business: Business,
        data: NotificationSettingsCreate
    ) -> NotificationSettings:
        """Create the business's preferences; only one set may exist"""
        if await self.find_settings(business.business_id):
            raise NotificationError("SETTINGS_EXIST", "Notification settings already exist")

        values = data.model_dump()
        values["timezone"] = values["timezone"] or business.timezone
        prefs = NotificationSettings(business_id=business.business_id, **values)
        await self.db.notification_settings.insert_one(prefs.model_dump())

        logger.info(f"Notification settings created for {business.business_id}")
        return prefs

    async def update_settings(
        self,
        business_id: str,
        data: NotificationSettingsUpdate
    ) -> NotificationSettings:
        changes = data.model_dump(exclude_unset=True)
        changes["updated_at"] = utc_now()

        doc = await self.db.notification_settings.find_one_and_update(
            {"business_id": business_id},
            {"$set": changes},
            return_document=ReturnDocument.AFTER
        )
        if not doc:
            raise NotificationError("SETTINGS_NOT_FOUND", "Notification settings not found")
        return NotificationSettings(**doc)

    async def _require_settings(self, business_id: str) -> NotificationSettings:
        prefs = await self.find_settings(business_id)
        if not prefs:
            raise NotificationError(
                "SETTINGS_NOT_CONFIGURED", "Create notification settings first"
            )
        return prefs

    async def channel_enabled(self, business_id: str, channel: NotificationChannel) -> bool:
        """
        Whether automatic messages may use a channel

        Businesses that never configured notifications get email only.
        """
        prefs = await self.find_settings(business_id)
        if prefs is None:
            return channel == NotificationChannel.EMAIL
        if channel == NotificationChannel.EMAIL:
            return prefs.email_enabled
        return prefs.sms_enabled

    # ==================== Templates & triggers ====================

    async def upsert_template(
        self,
        business_id: str,
        data: NotificationTemplateUpsert
    ) -> NotificationTemplate:
        """Create or replace the custom template for a type and channel"""
        await self._require_settings(business_id)
        now = utc_now()
        template = NotificationTemplate(
            business_id=business_id,
            type=data.type,
            channel=data.channel,
            name=data.name or f"{data.type.value} {data.channel.value}",
            subject=data.subject,
            content=data.content,
            variables=template_variables(data.type),
            is_active=data.is_active
        )
        fields = ("name", "subject", "content", "variables", "is_active", "is_default")

        doc = await self.db.notification_templates.find_one_and_update(
            {"business_id": business_id, "type": data.type.value, "channel": data.channel.value},
            {
                "$set": {**{f: getattr(template, f) for f in fields}, "updated_at": now},
                "$setOnInsert": {"template_id": template.template_id, "created_at": now}
            },
            upsert=True,
            return_document=ReturnDocument.AFTER
        )
        return NotificationTemplate(**doc)

    async def upsert_trigger(
        self,
        business_id: str,
        data: NotificationTriggerUpsert
    ) -> NotificationTrigger:
        """Create or replace the trigger for an event and channel"""
        await self._require_settings(business_id)
        now = utc_now()
        trigger = NotificationTrigger(business_id=business_id, **data.model_dump())
        fields = ("enabled", "timing", "delay_minutes", "advance_hours", "conditions")

        doc = await self.db.notification_triggers.find_one_and_update(
            {"business_id": business_id, "event": data.event.value, "channel": data.channel.value},
            {
                "$set": {**{f: getattr(trigger, f) for f in fields}, "updated_at": now},
                "$setOnInsert": {"trigger_id": trigger.trigger_id, "created_at": now}
            },
            upsert=True,
            return_document=ReturnDocument.AFTER
        )
        return NotificationTrigger(**doc)

    # ==================== Test send ====================

    async def send_test(
        self,
        business: Business,
        owner: User,
        data: NotificationTestRequest
    ) -> NotificationLog:
        """
        Send a sample of a template to the business owner

        The business's own template is used when one is active, otherwise
        the built-in default. Placeholders are filled with sample values.
        """
        prefs = await self._require_settings(business.business_id)
        if data.channel == NotificationChannel.EMAIL and not prefs.email_enabled:
            raise NotificationError("CHANNEL_DISABLED", "Email notifications are not enabled")
        if data.channel == NotificationChannel.SMS and not prefs.sms_enabled:
            raise NotificationError("CHANNEL_DISABLED", "SMS notifications are not enabled")

        template_doc = await self.db.notification_templates.find_one({
            "business_id": business.business_id,
            "type": data.type.value,
            "channel": data.channel.value,
            "is_active": True
        })
        content = template_doc["content"] if template_doc else default_content(data.type, data.channel)
        subject = (template_doc or {}).get("subject") or default_subject(data.type)

        sample = {
            "customerName": owner.full_name,
            "businessName": business.business_name,
            "serviceName": "Test Service",
            "date": utc_now().astimezone(ZoneInfo(prefs.timezone)).strftime("%m/%d/%Y"),
            "time": "2:00 PM",
            "staffName": "Test Staff",
            "price": "$50.00",
            "hoursUntil": "24",
            "reviewLink": f"{settings.APP_URL}/review",
            "businessUrl": f"{settings.APP_URL}/book/{business.slug}",
        }
        content = render_template(content, sample)
        subject = f"TEST: {render_template(subject, sample)}"

        if data.channel == NotificationChannel.EMAIL:
            recipient = owner.email
            result = await get_email_service().send_notification(
                to_email=recipient,
                subject=subject,
                content=content,
                business_name=business.business_name,
                reply_to=prefs.email_reply_to
            )
        else:
            if not owner.phone:
                raise NotificationError("NO_PHONE", "Add a phone number to your account to test SMS")
            recipient = owner.phone
            result = await get_sms_service().send_sms(recipient, content)

        log = NotificationLog(
            business_id=business.business_id,
            type=data.type,
            channel=data.channel,
            recipient=recipient,
            subject=subject if data.channel == NotificationChannel.EMAIL else None,
            content=content,
            status="sent" if result.success else "failed",
            error=result.error,
            is_test=True,
            sent_at=utc_now() if result.success else None
        )
        await self.db.notification_logs.insert_one(log.model_dump())

        logger.info(
            f"Test {data.channel.value} notification for {business.business_id}: {log.status}"
        )
        return log


def get_notification_service(db: AsyncIOMotorDatabase) -> NotificationService:
    """Factory for notification service"""
    return NotificationService(db)
