"""
Common model utilities and base classes
"""

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict
import re
import uuid


def generate_id(prefix: str) -> str:
    """Generate a prefixed unique ID"""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def utc_now() -> datetime:
    """Get current UTC timestamp"""
    return datetime.now(timezone.utc)


def round_money(amount: float) -> float:
    """Round a dollar amount to cents, half-up"""
    return float(Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def slugify(value: str) -> str:
    """Build a URL slug from a business name"""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or "business"


class AuditEntry(BaseModel):
    """Audit log entry for tracking changes"""
    action: str
    user_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)
    changes: Optional[dict] = None


class BaseDocument(BaseModel):
    """Base model for MongoDB documents"""
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    deleted_at: Optional[datetime] = None
    audit_log: list[AuditEntry] = Field(default_factory=list)

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        use_enum_values=True,
        validate_default=True
    )

    def soft_delete(self) -> None:
        """Mark document as deleted"""
        self.deleted_at = utc_now()
        self.updated_at = utc_now()

    def add_audit(self, action: str, user_id: Optional[str] = None,
                  changes: Optional[dict] = None) -> None:
        """Add an audit log entry"""
        self.audit_log.append(AuditEntry(
            action=action,
            user_id=user_id,
            changes=changes
        ))
        self.updated_at = utc_now()

    def is_deleted(self) -> bool:
        """Check if document is soft deleted"""
        return self.deleted_at is not None


TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def validate_time_string(value: Optional[str]) -> Optional[str]:
    """Validate an HH:MM (24h) time string"""
    if value is None:
        return value
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM format")
    return value


def validate_date_string(value: Optional[str]) -> Optional[str]:
    """Validate a YYYY-MM-DD date string"""
    if value is None:
        return value
    if not DATE_PATTERN.match(value):
        raise ValueError("Date must be in YYYY-MM-DD format")
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise ValueError("Date must be a valid calendar date")
    return value
