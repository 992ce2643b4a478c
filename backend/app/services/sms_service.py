"""
SMS Service
Twilio integration for messages from businesses to their customers
"""

import logging
from typing import Optional
from twilio.rest import Client as TwilioClient
from twilio.base.exceptions import TwilioRestException

from app.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

MAX_SMS_LENGTH = 1600


class SMSResult:
    """Result of SMS send operation"""
    def __init__(
        self,
        success: bool,
        message_id: Optional[str] = None,
        error: Optional[str] = None
    ):
        self.success = success
        self.message_id = message_id
        self.error = error


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """Normalize phone number to E.164 format"""
    if not phone:
        return None

    digits = "".join(filter(str.isdigit, phone))

    if phone.strip().startswith("+"):
        return f"+{digits}" if len(digits) >= 10 else None

    # Add US country code if not present
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"

    return None


class SMSService:
    """Twilio SMS service"""

    def __init__(self):
        self.from_number = settings.TWILIO_PHONE_NUMBER
        self.client: Optional[TwilioClient] = None

        if settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN and self.from_number:
            self.client = TwilioClient(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)

    @property
    def is_configured(self) -> bool:
        """Check if Twilio is configured"""
        return self.client is not None

    async def send_sms(self, to_number: str, message: str) -> SMSResult:
        """Send SMS via Twilio"""
        if not self.is_configured:
            logger.warning("Twilio not configured, skipping SMS")
            return SMSResult(success=False, error="SMS service not configured")

        to_number = normalize_phone(to_number)
        if not to_number:
            return SMSResult(success=False, error="Invalid phone number format")

        if len(message) > MAX_SMS_LENGTH:
            message = message[:MAX_SMS_LENGTH - 3] + "..."

        try:
            twilio_message = self.client.messages.create(
                body=message,
                from_=self.from_number,
                to=to_number
            )
            logger.info(f"SMS sent successfully: {twilio_message.sid}")
            return SMSResult(success=True, message_id=twilio_message.sid)

        except TwilioRestException as e:
            logger.error(f"Twilio error: {e}")
            return SMSResult(success=False, error=str(e.msg or e))


# Singleton instance
_sms_service: Optional[SMSService] = None


def get_sms_service() -> SMSService:
    """Get SMS service singleton"""
    global _sms_service
    if _sms_service is None:
        _sms_service = SMSService()
    return _sms_service
