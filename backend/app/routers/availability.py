"""
Availability API Router
Weekly opening hours and time off
"""

from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.database import get_database
from app.models.availability import (
    WeeklyAvailability, AvailabilityReplace, AvailabilityResponse,
    TimeOff, TimeOffCreate, TimeOffResponse
)
from app.middleware.auth import BusinessContext, get_business_context
from app.schemas.common import ListResponse, SingleResponse, MessageResponse
from app.services.scheduling_service import SchedulingService

router = APIRouter()


def _time_off_response(doc: dict) -> TimeOffResponse:
    time_off = TimeOff(**doc)
    return TimeOffResponse(**time_off.model_dump(), is_full_day=time_off.is_full_day)


async def _business_today(ctx: BusinessContext) -> str:
    return SchedulingService(ctx.db).business_now(ctx.business).date().isoformat()


# ==================== Weekly hours ====================

@router.get(
    "/availability",
    response_model=ListResponse[AvailabilityResponse],
    summary="Get weekly hours"
)
async def get_availability(
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Weekly opening hours, Sunday first"""
    docs = await db.availability.find(
        ctx.filter_query({})
    ).sort("day_of_week", 1).to_list(length=7)

    rows = [AvailabilityResponse(**doc) for doc in docs]
    return ListResponse(data=rows, count=len(rows))


@router.put(
    "/availability",
    response_model=ListResponse[AvailabilityResponse],
    summary="Replace weekly hours"
)
async def replace_availability(
    data: AvailabilityReplace,
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """
    Replace the whole weekly schedule

    Days left out of the list are closed.
    """
    await db.availability.delete_many(ctx.filter_query({}))

    rows = []
    for day in sorted(data.days, key=lambda d: d.day_of_week):
        row = WeeklyAvailability(business_id=ctx.business_id, **day.model_dump())
        await db.availability.insert_one(row.model_dump())
        rows.append(AvailabilityResponse(**row.model_dump()))

    return ListResponse(data=rows, count=len(rows))


# ==================== Time off ====================

@router.get(
    "/timeoff",
    response_model=ListResponse[TimeOffResponse],
    summary="List upcoming time off"
)
async def list_time_off(
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Time off from today on, by date"""
    today = await _business_today(ctx)
    docs = await db.time_off.find(ctx.filter_query({
        "date": {"$gte": today},
        "deleted_at": None
    })).sort([("date", 1), ("start_time", 1)]).to_list(length=500)

    entries = [_time_off_response(doc) for doc in docs]
    return ListResponse(data=entries, count=len(entries))


@router.get(
    "/timeoff/dates",
    summary="Closed dates"
)
async def list_closed_dates(
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Upcoming full-day closures, for greying out calendar days"""
    today = await _business_today(ctx)
    docs = await db.time_off.find(ctx.filter_query({
        "date": {"$gte": today},
        "deleted_at": None
    })).sort("date", 1).to_list(length=500)

    dates = sorted({doc["date"] for doc in docs if TimeOff(**doc).is_full_day})
    return {"success": True, "data": dates}


@router.post(
    "/timeoff",
    response_model=SingleResponse[TimeOffResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Add time off"
)
async def create_time_off(
    data: TimeOffCreate,
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Close a full day, or a window when start and end times are given"""
    time_off = TimeOff(business_id=ctx.business_id, **data.model_dump())
    await db.time_off.insert_one(time_off.model_dump())

    return SingleResponse(data=_time_off_response(time_off.model_dump()))


@router.delete(
    "/timeoff/{time_off_id}",
    response_model=MessageResponse,
    summary="Delete time off"
)
async def delete_time_off(
    time_off_id: str,
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Remove a time-off entry"""
    result = await db.time_off.delete_one(ctx.filter_query({"time_off_id": time_off_id}))

    if result.deleted_count == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "TIME_OFF_NOT_FOUND", "message": "Time off not found"}
        )

    return MessageResponse(message="Time off deleted")
