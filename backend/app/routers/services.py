"""
Services API Router
Bookable treatments offered by the business
"""

import re
from fastapi import APIRouter, Depends, HTTPException, status, Query
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional

from app.database import get_database
from app.models.booking import ACTIVE_BOOKING_STATUSES
from app.models.service import (
    Service, ServiceCreate, ServiceUpdate, ServiceResponse, ServiceCategory
)
from app.models.common import utc_now
from app.middleware.auth import BusinessContext, get_business_context
from app.schemas.common import ListResponse, SingleResponse, MessageResponse
from app.services.scheduling_service import SchedulingService

router = APIRouter()


def _name_query(name: str) -> dict:
    return {"$regex": f"^{re.escape(name)}$", "$options": "i"}


async def _get_service_doc(ctx: BusinessContext, db: AsyncIOMotorDatabase, service_id: str) -> dict:
    doc = await db.services.find_one(ctx.filter_query({
        "service_id": service_id,
        "deleted_at": None
    }))
    if not doc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "SERVICE_NOT_FOUND", "message": "Service not found"}
        )
    return doc


@router.get(
    "",
    response_model=ListResponse[ServiceResponse],
    summary="List services"
)
async def list_services(
    category: Optional[ServiceCategory] = None,
    active_only: bool = Query(False),
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """List services for the current business"""
    query = ctx.filter_query({"deleted_at": None})

    if active_only:
        query["is_active"] = True

    if category:
        query["category"] = category.value

    docs = await db.services.find(query).sort(
        [("sort_order", 1), ("name", 1)]
    ).to_list(length=500)

    services = [ServiceResponse(**doc) for doc in docs]
    return ListResponse(data=services, count=len(services))


@router.post(
    "",
    response_model=SingleResponse[ServiceResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create service"
)
async def create_service(
    data: ServiceCreate,
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Create a new service"""
    existing = await db.services.find_one({
        "business_id": ctx.business_id,
        "name": _name_query(data.name),
        "deleted_at": None
    })

    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "SERVICE_EXISTS", "message": "A service with this name already exists"}
        )

    service = Service(
        business_id=ctx.business_id,
        **data.model_dump()
    )

    await db.services.insert_one(service.model_dump())

    return SingleResponse(data=ServiceResponse(**service.model_dump()))


@router.get(
    "/{service_id}",
    response_model=SingleResponse[ServiceResponse],
    summary="Get service by ID"
)
async def get_service(
    service_id: str,
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Get service by ID"""
    doc = await _get_service_doc(ctx, db, service_id)
    return SingleResponse(data=ServiceResponse(**doc))


@router.put(
    "/{service_id}",
    response_model=SingleResponse[ServiceResponse],
    summary="Update service"
)
async def update_service(
    service_id: str,
    data: ServiceUpdate,
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Update service by ID"""
    update_data = data.model_dump(exclude_unset=True)

    if "name" in update_data:
        existing = await db.services.find_one({
            "business_id": ctx.business_id,
            "name": _name_query(update_data["name"]),
            "service_id": {"$ne": service_id},
            "deleted_at": None
        })
        if existing:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"code": "SERVICE_EXISTS", "message": "A service with this name already exists"}
            )

    update_data["updated_at"] = utc_now()

    result = await db.services.find_one_and_update(
        ctx.filter_query({"service_id": service_id, "deleted_at": None}),
        {"$set": update_data},
        return_document=True
    )

    if not result:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "SERVICE_NOT_FOUND", "message": "Service not found"}
        )

    return SingleResponse(data=ServiceResponse(**result))


@router.patch(
    "/{service_id}/toggle-active",
    response_model=SingleResponse[ServiceResponse],
    summary="Toggle service active flag"
)
async def toggle_service_active(
    service_id: str,
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Show or hide a service on the booking page"""
    doc = await _get_service_doc(ctx, db, service_id)

    result = await db.services.find_one_and_update(
        ctx.filter_query({"service_id": service_id}),
        {"$set": {"is_active": not doc.get("is_active", True), "updated_at": utc_now()}},
        return_document=True
    )

    return SingleResponse(data=ServiceResponse(**result))


@router.delete(
    "/{service_id}",
    response_model=MessageResponse,
    summary="Delete service"
)
async def delete_service(
    service_id: str,
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """
    Soft delete a service

    Rejected while upcoming pending or confirmed bookings use it.
    """
    await _get_service_doc(ctx, db, service_id)

    today = SchedulingService(db).business_now(ctx.business).date().isoformat()
    upcoming = await db.bookings.count_documents(ctx.filter_query({
        "service_id": service_id,
        "status": {"$in": ACTIVE_BOOKING_STATUSES},
        "date": {"$gte": today}
    }))
    if upcoming:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "SERVICE_IN_USE",
                "message": f"Service has {upcoming} upcoming booking(s) and cannot be deleted"
            }
        )

    await db.services.update_one(
        ctx.filter_query({"service_id": service_id}),
        {"$set": {"deleted_at": utc_now(), "is_active": False, "updated_at": utc_now()}}
    )

    return MessageResponse(message="Service deleted successfully")
