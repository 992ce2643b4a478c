"""
Customer Service
Business-scoped CRM: profiles built from bookings, metrics and messaging
"""

import logging
import re
from collections import Counter
from datetime import datetime, timedelta
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.config import get_settings
from app.models.booking import BookingStatus
from app.models.business import Business
from app.models.common import utc_now, round_money
from app.models.customer import (
    CustomerProfile, CustomerProfileUpdate, CustomerTag,
    Communication, CommunicationCreate, CommunicationType, CommunicationStatus
)
from app.models.user import User
from app.schemas.common import PaginationMeta, create_pagination_meta
from app.services.email_service import get_email_service
from app.services.sms_service import get_sms_service

logger = logging.getLogger(__name__)
settings = get_settings()

AUTO_TAGS = {CustomerTag.NEW.value, CustomerTag.REGULAR.value}

SORT_FIELDS = {
    "last_visit": ("last_visit", -1),
    "total_spent": ("total_spent", -1),
    "total_visits": ("total_visits", -1),
    "name": ("name", 1),
}


class CustomerError(Exception):
    """Customer CRM error"""
    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


def compute_visit_stats(bookings: list[dict]) -> dict:
    """
    Visit statistics from a customer's bookings

    Only COMPLETED bookings count as visits. Returns total_visits,
    total_spent, average_spent, first_visit, last_visit, favorite_service
    and the automatic tag.
    """
    completed = [b for b in bookings if b.get("status") == BookingStatus.COMPLETED.value]
    total_visits = len(completed)
    total_spent = round_money(sum(b.get("total_price", 0.0) for b in completed))
    visit_times = [b["start_at"] for b in completed if b.get("start_at")]

    services = Counter(b.get("service_name") for b in completed if b.get("service_name"))
    favorite = services.most_common(1)[0][0] if services else None

    tag = CustomerTag.REGULAR.value if total_visits > settings.REGULAR_VISIT_THRESHOLD else CustomerTag.NEW.value

    return {
        "total_visits": total_visits,
        "total_spent": total_spent,
        "average_spent": round_money(total_spent / total_visits) if total_visits else 0.0,
        "first_visit": min(visit_times) if visit_times else None,
        "last_visit": max(visit_times) if visit_times else None,
        "favorite_service": favorite,
        "tag": tag,
    }


def merge_tags(existing: list[str], auto_tag: str) -> list[str]:
    """Replace the automatic tag, keep owner-added tags"""
    return [auto_tag] + [t for t in existing if t not in AUTO_TAGS]


def _as_aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=utc_now().tzinfo)
    return value


class CustomerService:
    """Service for the customer CRM"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    # ==================== Profile maintenance ====================

    async def ensure_profile(
        self,
        business_id: str,
        user: User
    ) -> None:
        """Create the profile for a customer on first booking"""
        profile = CustomerProfile(
            business_id=business_id,
            user_id=user.user_id,
            name=user.full_name,
            email=user.email,
            phone=user.phone,
            tags=[CustomerTag.NEW.value]
        )
        doc = profile.model_dump()
        for key in ("business_id", "user_id"):
            doc.pop(key)

        await self.db.customer_profiles.update_one(
            {"business_id": business_id, "user_id": user.user_id},
            {"$setOnInsert": doc},
            upsert=True
        )

    async def refresh_profile(self, business_id: str, user_id: str) -> None:
        """Recompute visit statistics after a booking completes or is paid"""
        profile_doc = await self.db.customer_profiles.find_one({
            "business_id": business_id,
            "user_id": user_id
        })
        if not profile_doc:
            user_doc = await self.db.users.find_one({"user_id": user_id})
            if not user_doc:
                return
            await self.ensure_profile(business_id, User(**user_doc))
            profile_doc = await self.db.customer_profiles.find_one({
                "business_id": business_id,
                "user_id": user_id
            })

        bookings = await self.db.bookings.find({
            "business_id": business_id,
            "customer_id": user_id
        }).to_list(length=None)
        stats = compute_visit_stats(bookings)

        await self.db.customer_profiles.update_one(
            {"business_id": business_id, "user_id": user_id},
            {"$set": {
                "total_visits": stats["total_visits"],
                "total_spent": stats["total_spent"],
                "average_spent": stats["average_spent"],
                "first_visit": stats["first_visit"],
                "last_visit": stats["last_visit"],
                "favorite_service": stats["favorite_service"],
                "tags": merge_tags(profile_doc.get("tags", []), stats["tag"]),
                "is_vip": profile_doc.get("is_vip", False)
                or stats["total_spent"] > settings.VIP_SPEND_THRESHOLD,
                "updated_at": utc_now()
            }}
        )

    async def build_profiles_from_bookings(self, business_id: str) -> int:
        """
        Create one profile per customer that has booked the business

        Returns:
            Number of profiles created
        """
        bookings = await self.db.bookings.find({"business_id": business_id}).to_list(length=None)

        by_customer: dict[str, list[dict]] = {}
        for booking in bookings:
            by_customer.setdefault(booking["customer_id"], []).append(booking)

        created = 0
        for user_id, customer_bookings in by_customer.items():
            user_doc = await self.db.users.find_one({"user_id": user_id})
            latest = max(customer_bookings, key=lambda b: b.get("created_at") or utc_now())
            stats = compute_visit_stats(customer_bookings)

            profile = CustomerProfile(
                business_id=business_id,
                user_id=user_id,
                name=(
                    f"{user_doc['first_name']} {user_doc['last_name']}" if user_doc
                    else latest.get("customer_name") or "Unknown"
                ),
                email=user_doc.get("email") if user_doc else latest.get("customer_email"),
                phone=user_doc.get("phone") if user_doc else None,
                total_visits=stats["total_visits"],
                total_spent=stats["total_spent"],
                average_spent=stats["average_spent"],
                first_visit=stats["first_visit"],
                last_visit=stats["last_visit"],
                favorite_service=stats["favorite_service"],
                tags=[stats["tag"]],
                is_vip=stats["total_spent"] > settings.VIP_SPEND_THRESHOLD
            )
            await self.db.customer_profiles.insert_one(profile.model_dump())
            created += 1

        if created:
            logger.info(f"Built {created} customer profiles for {business_id}")
        return created

    # ==================== Queries ====================

    async def list_customers(
        self,
        business_id: str,
        search: Optional[str] = None,
        tag: Optional[str] = None,
        vip_only: bool = False,
        sort: str = "last_visit",
        page: int = 1,
        per_page: int = 50
    ) -> tuple[list[CustomerProfile], PaginationMeta]:
        """List profiles, building them from bookings the first time"""
        if await self.db.customer_profiles.count_documents({"business_id": business_id}) == 0:
            await self.build_profiles_from_bookings(business_id)

        query: dict = {"business_id": business_id}
        if search:
            pattern = re.escape(search)
            query["$or"] = [
                {"name": {"$regex": pattern, "$options": "i"}},
                {"email": {"$regex": pattern, "$options": "i"}}
            ]
        if tag:
            query["tags"] = tag
        if vip_only:
            query["is_vip"] = True

        sort_field, direction = SORT_FIELDS.get(sort, SORT_FIELDS["last_visit"])

        total = await self.db.customer_profiles.count_documents(query)
        skip = (page - 1) * per_page
        docs = await self.db.customer_profiles.find(query).sort(
            sort_field, direction
        ).skip(skip).limit(per_page).to_list(length=per_page)

        return [CustomerProfile(**doc) for doc in docs], create_pagination_meta(total, page, per_page)

    async def get_profile(self, business_id: str, profile_id: str) -> CustomerProfile:
        """Get a profile owned by the business"""
        doc = await self.db.customer_profiles.find_one({
            "profile_id": profile_id,
            "business_id": business_id
        })
        if not doc:
            raise CustomerError("CUSTOMER_NOT_FOUND", "Customer not found")
        return CustomerProfile(**doc)

    async def get_customer_detail(self, business_id: str, profile_id: str) -> dict:
        """Profile with its communications and recent bookings"""
        profile = await self.get_profile(business_id, profile_id)

        communications = await self.db.communications.find({
            "business_id": business_id,
            "profile_id": profile_id
        }).sort("created_at", -1).to_list(length=100)

        bookings = await self.db.bookings.find({
            "business_id": business_id,
            "customer_id": profile.user_id
        }).sort("start_at", -1).limit(50).to_list(length=50)

        return {
            "profile": profile,
            "communications": [Communication(**c) for c in communications],
            "bookings": bookings,
        }

    async def get_metrics(self, business_id: str) -> dict:
        """Dashboard metrics over the business's customer profiles"""
        docs = await self.db.customer_profiles.find({"business_id": business_id}).to_list(length=None)
        profiles = [CustomerProfile(**doc) for doc in docs]

        now = utc_now()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        at_risk_cutoff = now - timedelta(days=settings.AT_RISK_DAYS)

        def is_new(p: CustomerProfile) -> bool:
            first = _as_aware(p.first_visit)
            created = _as_aware(p.created_at)
            return (first is not None and first >= month_start) or created >= month_start

        total_revenue = round_money(sum(p.total_spent for p in profiles))
        top = sorted(profiles, key=lambda p: p.total_spent, reverse=True)[:5]
        at_risk = sorted(
            (
                p for p in profiles
                if p.last_visit is not None
                and _as_aware(p.last_visit) < at_risk_cutoff
                and p.total_visits > 2
            ),
            key=lambda p: p.total_spent,
            reverse=True
        )

        return {
            "total_customers": len(profiles),
            "new_this_month": sum(1 for p in profiles if is_new(p)),
            "total_revenue": total_revenue,
            "average_revenue": round_money(total_revenue / len(profiles)) if profiles else 0.0,
            "top_customers": top,
            "at_risk": at_risk,
        }

    # ==================== Updates ====================

    async def update_profile(
        self,
        business_id: str,
        profile_id: str,
        data: CustomerProfileUpdate
    ) -> CustomerProfile:
        """Owner edits to notes, tags, VIP flag and personal details"""
        profile = await self.get_profile(business_id, profile_id)
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return profile

        changes["updated_at"] = utc_now()
        await self.db.customer_profiles.update_one(
            {"profile_id": profile_id, "business_id": business_id},
            {"$set": changes}
        )
        return CustomerProfile(**{**profile.model_dump(), **changes})

    async def send_message(
        self,
        business: Business,
        profile_id: str,
        data: CommunicationCreate,
        sender: User
    ) -> Communication:
        """
        Log a communication and deliver it over its channel

        EMAIL goes through SendGrid and SMS through Twilio; NOTE and CALL are
        only recorded.
        """
        profile = await self.get_profile(business.business_id, profile_id)

        communication = Communication(
            business_id=business.business_id,
            profile_id=profile_id,
            type=data.type,
            subject=data.subject,
            content=data.content,
            sent_by=sender.user_id
        )

        if data.type == CommunicationType.EMAIL:
            if not profile.email:
                raise CustomerError("NO_EMAIL", "Customer has no email address")
            result = await get_email_service().send_customer_message(
                to_email=profile.email,
                customer_name=profile.name,
                business_name=business.business_name,
                subject=data.subject or f"A message from {business.business_name}",
                content=data.content,
                reply_to=business.email
            )
            communication.status = (
                CommunicationStatus.SENT.value if result.success else CommunicationStatus.FAILED.value
            )
            communication.error = result.error
        elif data.type == CommunicationType.SMS:
            if not profile.phone:
                raise CustomerError("NO_PHONE", "Customer has no phone number")
            result = await get_sms_service().send_sms(
                profile.phone, f"{business.business_name}: {data.content}"
            )
            communication.status = (
                CommunicationStatus.SENT.value if result.success else CommunicationStatus.FAILED.value
            )
            communication.error = result.error

        await self.db.communications.insert_one(communication.model_dump())
        logger.info(
            f"Communication {communication.communication_id} ({communication.type}) "
            f"for {profile_id}: {communication.status}"
        )
        return communication

    async def export_rows(self, business_id: str) -> list[dict]:
        """All profiles for CSV export, by name"""
        return await self.db.customer_profiles.find(
            {"business_id": business_id}
        ).sort("name", 1).to_list(length=None)


def get_customer_service(db: AsyncIOMotorDatabase) -> CustomerService:
    """Factory for customer service"""
    return CustomerService(db)
