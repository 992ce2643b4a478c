"""
Scheduling Service
Slot generation, bookability checks and atomic slot reservation
"""

from datetime import datetime, date, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from app.config import get_settings
from app.models.booking import ACTIVE_BOOKING_STATUSES
from app.models.business import Business
from app.models.common import utc_now
from app.utils.exceptions import BusinessClosedError, SlotUnavailableError, BookingPolicyError

logger = logging.getLogger(__name__)
settings = get_settings()

PAST_DATE_REASON = "Cannot book dates in the past"
CLOSED_WEEKDAY_REASON = "Business is closed on this day"
TIME_OFF_DEFAULT_REASON = "Closed"


def time_to_minutes(time_str: str) -> int:
    """Convert HH:MM to minutes since midnight"""
    hour, minute = map(int, time_str.split(":"))
    return hour * 60 + minute


def minutes_to_time(minutes: int) -> str:
    """Convert minutes since midnight to HH:MM"""
    hour = minutes // 60
    minute = minutes % 60
    return f"{hour:02d}:{minute:02d}"


def day_of_week(d: date) -> int:
    """Day of week with 0=Sunday ... 6=Saturday"""
    return d.isoweekday() % 7


def overlaps(start: int, end: int, other_start: int, other_end: int) -> bool:
    """Half-open interval overlap"""
    return start < other_end and end > other_start


class TimeSlot:
    """Represents a candidate booking start"""
    def __init__(self, start: int, end: int, available: bool = True):
        self.start = start  # minutes since midnight
        self.end = end
        self.available = available

    @property
    def time(self) -> str:
        return minutes_to_time(self.start)

    def to_dict(self) -> dict:
        return {
            "time": self.time,
            "end_time": minutes_to_time(self.end),
            "available": self.available
        }


def generate_slots(
    open_minutes: int,
    close_minutes: int,
    duration_minutes: int,
    busy: list[tuple[int, int]],
    now_minutes: Optional[int] = None,
    interval: int = 30
) -> list[TimeSlot]:
    """
    Build the slot grid for one day

    Slots start at open_minutes and step by interval while the whole service
    fits before close_minutes. A slot is unavailable when it overlaps any busy
    interval, or when now_minutes is given and the slot starts at or before it.
    """
    if duration_minutes <= 0 or interval <= 0:
        return []

    slots = []
    current = open_minutes
    while current + duration_minutes <= close_minutes:
        end = current + duration_minutes
        available = not any(overlaps(current, end, b_start, b_end) for b_start, b_end in busy)
        if now_minutes is not None and current <= now_minutes:
            available = False
        slots.append(TimeSlot(current, end, available))
        current += interval
    return slots


def business_timezone(business: Business) -> ZoneInfo:
    """Business timezone, UTC when the stored name is unknown"""
    try:
        return ZoneInfo(business.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone '{business.timezone}' for {business.business_id}, using UTC")
        return ZoneInfo("UTC")


def local_to_utc(business: Business, date_str: str, time_str: str) -> datetime:
    """Convert a business-local date and time to an aware UTC datetime"""
    local = datetime.combine(
        date.fromisoformat(date_str),
        time.fromisoformat(time_str),
        tzinfo=business_timezone(business)
    )
    return local.astimezone(timezone.utc)


class SchedulingService:
    """Service for availability and reservations"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    def business_now(self, business: Business) -> datetime:
        """Current time in the business timezone"""
        return utc_now().astimezone(business_timezone(business))

    async def get_opening_hours(self, business_id: str, weekday: int) -> Optional[dict]:
        """Active weekly availability row for a day, or None when closed"""
        return await self.db.availability.find_one({
            "business_id": business_id,
            "day_of_week": weekday,
            "is_active": True
        })

    async def get_time_off(self, business_id: str, date_str: str) -> list[dict]:
        """Time-off entries on a date"""
        return await self.db.time_off.find({
            "business_id": business_id,
            "date": date_str,
            "deleted_at": None
        }).to_list(length=50)

    async def get_day_bookings(self, business_id: str, date_str: str) -> list[dict]:
        """Bookings that hold a slot on a date"""
        return await self.db.bookings.find({
            "business_id": business_id,
            "date": date_str,
            "status": {"$in": ACTIVE_BOOKING_STATUSES}
        }).to_list(length=500)

    async def _load_day(self, business: Business, date_str: str) -> dict:
        """
        Resolve whether a day is open

        Returns:
            Dict with is_closed_day, closed_reason, open/close minutes,
            partial time-off windows and now_minutes (set only for today)
        """
        target = date.fromisoformat(date_str)
        local_now = self.business_now(business)
        today = local_now.date()

        day = {
            "is_closed_day": False,
            "closed_reason": None,
            "open_minutes": None,
            "close_minutes": None,
            "time_off": [],
            "now_minutes": None,
        }

        if target < today:
            day.update(is_closed_day=True, closed_reason=PAST_DATE_REASON)
            return day

        for entry in await self.get_time_off(business.business_id, date_str):
            if not entry.get("start_time") or not entry.get("end_time"):
                day.update(
                    is_closed_day=True,
                    closed_reason=entry.get("reason") or TIME_OFF_DEFAULT_REASON
                )
                return day
            day["time_off"].append(
                (time_to_minutes(entry["start_time"]), time_to_minutes(entry["end_time"]))
            )

        hours = await self.get_opening_hours(business.business_id, day_of_week(target))
        if not hours:
            day.update(is_closed_day=True, closed_reason=CLOSED_WEEKDAY_REASON)
            return day

        day["open_minutes"] = time_to_minutes(hours["start_time"])
        day["close_minutes"] = time_to_minutes(hours["end_time"])

        if target == today:
            day["now_minutes"] = local_now.hour * 60 + local_now.minute

        return day

    async def get_availability(
        self,
        business: Business,
        duration_minutes: int,
        date_str: str
    ) -> dict:
        """
        Slot availability for one service on one date

        Returns:
            Dict with date, is_closed_day, closed_reason, open_time,
            close_time, slots, booked_slots and available_count
        """
        day = await self._load_day(business, date_str)
        result = {
            "date": date_str,
            "day_of_week": day_of_week(date.fromisoformat(date_str)),
            "is_closed_day": day["is_closed_day"],
            "closed_reason": day["closed_reason"],
            "open_time": None,
            "close_time": None,
            "duration_minutes": duration_minutes,
            "slots": [],
            "booked_slots": [],
            "available_count": 0,
        }
        if day["is_closed_day"]:
            return result

        open_minutes = day["open_minutes"]
        close_minutes = day["close_minutes"]
        interval = settings.SLOT_INTERVAL_MINUTES

        bookings = await self.get_day_bookings(business.business_id, date_str)
        busy = [
            (time_to_minutes(b["start_time"]), time_to_minutes(b["end_time"]))
            for b in bookings
        ]
        busy.extend(day["time_off"])

        slots = generate_slots(
            open_minutes,
            close_minutes,
            duration_minutes,
            busy,
            now_minutes=day["now_minutes"],
            interval=interval
        )

        booked = {b["start_time"] for b in bookings}
        for off_start, off_end in day["time_off"]:
            grid = open_minutes
            while grid < close_minutes:
                if off_start <= grid < off_end:
                    booked.add(minutes_to_time(grid))
                grid += interval

        result.update(
            open_time=minutes_to_time(open_minutes),
            close_time=minutes_to_time(close_minutes),
            slots=[s.to_dict() for s in slots],
            booked_slots=sorted(booked),
            available_count=sum(1 for s in slots if s.available)
        )
        return result

    async def check_bookable(
        self,
        business: Business,
        date_str: str,
        start_time: str,
        duration_minutes: int
    ) -> tuple[int, int]:
        """
        Validate a requested window against opening hours and time off

        Existing bookings are not checked here; reserve_slot does that
        atomically.

        Returns:
            (start_minutes, end_minutes)

        Raises:
            BusinessClosedError: Day is in the past, closed or on time off
            BookingPolicyError: Window falls outside opening hours or has started
            SlotUnavailableError: Window overlaps partial time off
        """
        day = await self._load_day(business, date_str)
        if day["is_closed_day"]:
            raise BusinessClosedError(date_str, day["closed_reason"])

        start = time_to_minutes(start_time)
        end = start + duration_minutes

        if start < day["open_minutes"] or end > day["close_minutes"]:
            raise BookingPolicyError(
                f"Requested time is outside opening hours "
                f"({minutes_to_time(day['open_minutes'])}-{minutes_to_time(day['close_minutes'])})",
                code="OUTSIDE_OPENING_HOURS"
            )

        if day["now_minutes"] is not None and start <= day["now_minutes"]:
            raise BookingPolicyError("Requested time has already passed", code="TIME_PASSED")

        for off_start, off_end in day["time_off"]:
            if overlaps(start, end, off_start, off_end):
                raise SlotUnavailableError()

        return start, end

    async def reserve_slot(
        self,
        business_id: str,
        date_str: str,
        booking_id: str,
        start_minutes: int,
        end_minutes: int
    ) -> bool:
        """
        Atomically claim [start, end) on a business day

        One reservation document exists per (business_id, date). The push only
        matches when no stored interval overlaps the new one, so concurrent
        requests for overlapping windows cannot both succeed.

        Returns:
            True if reserved, False on conflict
        """
        key = {"business_id": business_id, "date": date_str}
        try:
            await self.db.slot_reservations.update_one(
                key,
                {"$setOnInsert": {"reservations": [], "created_at": utc_now()}},
                upsert=True
            )
        except DuplicateKeyError:
            # Another request created the day document first
            pass

        result = await self.db.slot_reservations.update_one(
            {
                **key,
                "reservations": {"$not": {"$elemMatch": {
                    "start_minutes": {"$lt": end_minutes},
                    "end_minutes": {"$gt": start_minutes}
                }}}
            },
            {
                "$push": {"reservations": {
                    "booking_id": booking_id,
                    "start_minutes": start_minutes,
                    "end_minutes": end_minutes
                }},
                "$set": {"updated_at": utc_now()}
            }
        )

        if result.modified_count == 0:
            logger.info(f"Slot conflict for {business_id} on {date_str} at {minutes_to_time(start_minutes)}")
            return False
        return True

    async def release_slot(self, business_id: str, date_str: str, booking_id: str) -> None:
        """Free the interval held by a booking"""
        await self.db.slot_reservations.update_one(
            {"business_id": business_id, "date": date_str},
            {
                "$pull": {"reservations": {"booking_id": booking_id}},
                "$set": {"updated_at": utc_now()}
            }
        )
        logger.info(f"Released slot for booking {booking_id}")

    def hours_until(self, start_at: datetime) -> float:
        """Hours from now until an aware UTC instant"""
        if start_at.tzinfo is None:
            start_at = start_at.replace(tzinfo=timezone.utc)
        return (start_at - utc_now()) / timedelta(hours=1)


def get_scheduling_service(db: AsyncIOMotorDatabase) -> SchedulingService:
    """Factory for scheduling service"""
    return SchedulingService(db)
