"""
Notification Model
Per-business email/SMS preferences, message templates and trigger rules
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from pydantic import BaseModel, Field, EmailStr, ConfigDict, field_validator, model_validator

from app.models.common import BaseDocument, generate_id, validate_time_string


class NotificationType(str, Enum):
    """Kinds of customer message a business can template"""
    BOOKING_CONFIRMATION = "booking_confirmation"
    BOOKING_REMINDER = "booking_reminder"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_RESCHEDULED = "booking_rescheduled"
    BOOKING_COMPLETED = "booking_completed"
    REVIEW_REQUEST = "review_request"
    PROMOTIONAL = "promotional"
    BIRTHDAY = "birthday"
    RE_ENGAGEMENT = "re_engagement"


class NotificationChannel(str, Enum):
    """Delivery channel"""
    EMAIL = "email"
    SMS = "sms"


class TriggerEvent(str, Enum):
    """Events a trigger rule listens to"""
    BOOKING_CREATED = "booking_created"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_COMPLETED = "booking_completed"
    BEFORE_APPOINTMENT = "before_appointment"
    AFTER_APPOINTMENT = "after_appointment"
    CUSTOMER_BIRTHDAY = "customer_birthday"
    CUSTOMER_INACTIVE = "customer_inactive"


class TriggerTiming(str, Enum):
    """When a triggered message goes out"""
    IMMEDIATE = "immediate"
    DELAYED = "delayed"  # delay_minutes after the event
    ADVANCE = "advance"  # advance_hours before the appointment


def _check_timezone(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    try:
        ZoneInfo(v)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError("Unknown timezone")
    return v


class NotificationSettings(BaseDocument):
    """Notification preferences, one per business"""
    settings_id: str = Field(default_factory=lambda: generate_id("nts"))
    business_id: str

    email_enabled: bool = True
    email_from: Optional[str] = None
    email_reply_to: Optional[str] = None

    sms_enabled: bool = False
    sms_from: Optional[str] = None

    timezone: str = "America/New_York"
    quiet_hours_start: str = "21:00"
    quiet_hours_end: str = "09:00"


class NotificationSettingsCreate(BaseModel):
    """Initial notification preferences"""
    email_enabled: bool = True
    email_from: Optional[EmailStr] = None
    email_reply_to: Optional[EmailStr] = None
    sms_enabled: bool = False
    sms_from: Optional[str] = Field(None, max_length=20)
    timezone: Optional[str] = None  # Defaults to the business timezone
    quiet_hours_start: str = "21:00"
    quiet_hours_end: str = "09:00"

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("quiet_hours_start", "quiet_hours_end")
    @classmethod
    def check_time_format(cls, v):
        return validate_time_string(v)

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v):
        return _check_timezone(v)


class NotificationSettingsUpdate(BaseModel):
    """Partial update of notification preferences"""
    email_enabled: Optional[bool] = None
    email_from: Optional[EmailStr] = None
    email_reply_to: Optional[EmailStr] = None
    sms_enabled: Optional[bool] = None
    sms_from: Optional[str] = Field(None, max_length=20)
    timezone: Optional[str] = None
    quiet_hours_start: Optional[str] = None
    quiet_hours_end: Optional[str] = None

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("quiet_hours_start", "quiet_hours_end")
    @classmethod
    def check_time_format(cls, v):
        return validate_time_string(v)

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, v):
        return _check_timezone(v)


class NotificationTemplate(BaseDocument):
    """Custom message for one (type, channel) pair"""
    template_id: str = Field(default_factory=lambda: generate_id("ntm"))
    business_id: str
    type: NotificationType
    channel: NotificationChannel
    name: str
    subject: Optional[str] = None  # Email only
    content: str
    variables: list[str] = Field(default_factory=list)
    is_active: bool = True
    is_default: bool = False


class NotificationTemplateUpsert(BaseModel):
    """Create or replace the template for a (type, channel) pair"""
    type: NotificationType
    channel: NotificationChannel
    name: Optional[str] = Field(None, max_length=100)
    subject: Optional[str] = Field(None, max_length=200)
    content: str = Field(min_length=1, max_length=5000)
    is_active: bool = True

    model_config = ConfigDict(str_strip_whitespace=True)


class NotificationTrigger(BaseDocument):
    """Rule sending a message on an event, one per (event, channel) pair"""
    trigger_id: str = Field(default_factory=lambda: generate_id("ntr"))
    business_id: str
    event: TriggerEvent
    channel: NotificationChannel
    enabled: bool = True
    timing: TriggerTiming = TriggerTiming.IMMEDIATE
    delay_minutes: Optional[int] = None
    advance_hours: Optional[int] = None
    conditions: Optional[dict[str, Any]] = None


class NotificationTriggerUpsert(BaseModel):
    """Create or replace the trigger for an (event, channel) pair"""
    event: TriggerEvent
    channel: NotificationChannel
    enabled: bool = True
    timing: TriggerTiming = TriggerTiming.IMMEDIATE
    delay_minutes: Optional[int] = Field(None, ge=1, le=10080)
    advance_hours: Optional[int] = Field(None, ge=1, le=168)
    conditions: Optional[dict[str, Any]] = None

    @model_validator(mode="after")
    def check_timing(self):
        if self.timing == TriggerTiming.DELAYED and self.delay_minutes is None:
            raise ValueError("delay_minutes is required for delayed triggers")
        if self.timing == TriggerTiming.ADVANCE and self.advance_hours is None:
            raise ValueError("advance_hours is required for advance triggers")
        # Offsets only apply to their own timing
        if self.timing != TriggerTiming.DELAYED:
            self.delay_minutes = None
        if self.timing != TriggerTiming.ADVANCE:
            self.advance_hours = None
        return self


class NotificationTestRequest(BaseModel):
    """Send a sample message to the business owner"""
    type: NotificationType
    channel: NotificationChannel


class NotificationLog(BaseDocument):
    """A notification that was sent or attempted"""
    log_id: str = Field(default_factory=lambda: generate_id("ntl"))
    business_id: str
    type: NotificationType
    channel: NotificationChannel
    recipient: str
    subject: Optional[str] = None
    content: str
    status: str  # sent | failed
    error: Optional[str] = None
    is_test: bool = False
    sent_at: Optional[datetime] = None
