"""
Analytics Service
Revenue and booking figures for the business dashboard
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.models.booking import BookingStatus, PaymentStatus
from app.models.common import utc_now, round_money

logger = logging.getLogger(__name__)


def growth_percentage(current: float, previous: float) -> float:
    """Period-over-period growth; 100 when growing from zero"""
    if previous > 0:
        return round_money((current - previous) / previous * 100)
    return 100.0 if current > 0 else 0.0


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=utc_now().tzinfo)
    return value


class AnalyticsService:
    """Service for dashboard aggregations"""

    def __init__(self, db: AsyncIOMotorDatabase, business_id: str):
        self.db = db
        self.business_id = business_id

    async def _paid_bookings(self) -> List[dict]:
        return await self.db.bookings.find({
            "business_id": self.business_id,
            "payment_status": PaymentStatus.SUCCEEDED.value
        }).sort("created_at", -1).to_list(length=None)

    def _period_bounds(self, now: datetime) -> Dict[str, datetime]:
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        last_month_start = (month_start - timedelta(days=1)).replace(day=1)
        today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        # Weeks start on Sunday
        week_start = today_start - timedelta(days=now.isoweekday() % 7)
        return {
            "month_start": month_start,
            "last_month_start": last_month_start,
            "week_start": week_start,
        }

    async def get_dashboard(self) -> Dict[str, Any]:
        """Revenue, booking counts, recent transactions and top services"""
        now = utc_now()
        bounds = self._period_bounds(now)
        paid = await self._paid_bookings()

        def payout_between(start: datetime, end: datetime) -> float:
            return round_money(sum(
                b.get("business_payout") or 0.0
                for b in paid
                if start <= _aware(b["created_at"]) < end
            ))

        this_month = payout_between(bounds["month_start"], now + timedelta(seconds=1))
        last_month = payout_between(bounds["last_month_start"], bounds["month_start"])
        this_week = payout_between(bounds["week_start"], now + timedelta(seconds=1))

        revenue = {
            "this_month": this_month,
            "last_month": last_month,
            "this_week": this_week,
            "growth_percentage": growth_percentage(this_month, last_month),
            "gross_revenue": round_money(sum(b.get("total_price", 0.0) for b in paid)),
            "total_payout": round_money(sum(b.get("business_payout") or 0.0 for b in paid)),
            "platform_fees": round_money(sum(b.get("platform_fee") or 0.0 for b in paid)),
            "stripe_fees": round_money(sum(b.get("stripe_fee") or 0.0 for b in paid)),
        }

        return {
            "revenue": revenue,
            "bookings": await self.get_booking_counts(now),
            "recent_transactions": [
                {
                    "booking_id": b["booking_id"],
                    "customer_name": b.get("customer_name"),
                    "service_name": b.get("service_name"),
                    "date": b.get("date"),
                    "total_price": b.get("total_price", 0.0),
                    "business_payout": b.get("business_payout"),
                    "created_at": b["created_at"],
                }
                for b in paid[:10]
            ],
            "top_services": self.top_services(paid),
        }

    async def get_booking_counts(self, now: datetime) -> Dict[str, int]:
        """Total, completed, upcoming and cancelled bookings"""
        base = {"business_id": self.business_id}
        return {
            "total": await self.db.bookings.count_documents(base),
            "completed": await self.db.bookings.count_documents(
                {**base, "status": BookingStatus.COMPLETED.value}
            ),
            "upcoming": await self.db.bookings.count_documents({
                **base,
                "status": BookingStatus.CONFIRMED.value,
                "start_at": {"$gt": now}
            }),
            "cancelled": await self.db.bookings.count_documents(
                {**base, "status": BookingStatus.CANCELLED.value}
            ),
        }

    def top_services(self, paid: List[dict], limit: int = 5) -> List[Dict[str, Any]]:
        """Services ranked by payout"""
        by_service: Dict[str, Dict[str, Any]] = {}
        for b in paid:
            entry = by_service.setdefault(b["service_id"], {
                "service_id": b["service_id"],
                "service_name": b.get("service_name"),
                "bookings": 0,
                "revenue": 0.0,
            })
            entry["bookings"] += 1
            entry["revenue"] += b.get("business_payout") or 0.0

        ranked = sorted(by_service.values(), key=lambda s: s["revenue"], reverse=True)[:limit]
        for entry in ranked:
            entry["revenue"] = round_money(entry["revenue"])
        return ranked
