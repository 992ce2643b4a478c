"""
Staff API Router
Team member management
"""

from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional

from app.database import get_database
from app.models.staff import Staff, StaffCreate, StaffUpdate, StaffResponse, ROLE_ORDER
from app.models.booking import BookingResponse
from app.models.common import utc_now
from app.middleware.auth import BusinessContext, get_business_context
from app.schemas.common import SingleResponse, ListResponse, MessageResponse

router = APIRouter()


async def _check_email_available(
    ctx: BusinessContext,
    db: AsyncIOMotorDatabase,
    email: str,
    exclude_id: Optional[str] = None
) -> None:
    query = ctx.filter_query({"email": email.lower(), "deleted_at": None})
    if exclude_id:
        query["staff_id"] = {"$ne": exclude_id}
    if await db.staff.find_one(query):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "STAFF_EXISTS", "message": "A staff member with this email already exists"}
        )


async def _check_services(ctx: BusinessContext, db: AsyncIOMotorDatabase, service_ids: list[str]) -> None:
    if not service_ids:
        return
    found = await db.services.count_documents(ctx.filter_query({
        "service_id": {"$in": service_ids},
        "deleted_at": None
    }))
    if found != len(set(service_ids)):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "INVALID_SERVICES", "message": "One or more services were not found"}
        )


@router.get(
    "",
    response_model=ListResponse[StaffResponse],
    summary="List staff members"
)
async def list_staff(
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Staff ordered owner, manager, staff, then by join date"""
    docs = await db.staff.find(
        ctx.filter_query({"deleted_at": None})
    ).sort("created_at", 1).to_list(length=500)

    docs.sort(key=lambda d: ROLE_ORDER.get(d.get("role"), len(ROLE_ORDER)))
    staff = [StaffResponse(**doc) for doc in docs]
    return ListResponse(data=staff, count=len(staff))


@router.post(
    "",
    response_model=SingleResponse[StaffResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create staff member"
)
async def create_staff(
    data: StaffCreate,
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Add a staff member"""
    await _check_email_available(ctx, db, data.email)
    await _check_services(ctx, db, data.service_ids)

    staff = Staff(
        business_id=ctx.business_id,
        **{**data.model_dump(), "email": data.email.lower()}
    )
    await db.staff.insert_one(staff.model_dump())

    return SingleResponse(data=StaffResponse(**staff.model_dump()))


@router.get(
    "/{staff_id}",
    summary="Get staff member"
)
async def get_staff(
    staff_id: str,
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Staff member with their 10 most recent bookings"""
    doc = await db.staff.find_one(ctx.filter_query({
        "staff_id": staff_id,
        "deleted_at": None
    }))

    if not doc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "STAFF_NOT_FOUND", "message": "Staff member not found"}
        )

    bookings = await db.bookings.find(
        ctx.filter_query({"staff_id": staff_id})
    ).sort("start_at", -1).limit(10).to_list(length=10)

    return {
        "success": True,
        "data": {
            **StaffResponse(**doc).model_dump(),
            "recent_bookings": [BookingResponse(**b).model_dump() for b in bookings]
        }
    }


@router.put(
    "/{staff_id}",
    response_model=SingleResponse[StaffResponse],
    summary="Update staff member"
)
async def update_staff(
    staff_id: str,
    data: StaffUpdate,
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Update a staff member; service_ids replaces the assignments"""
    update_data = data.model_dump(exclude_unset=True)

    if update_data.get("email"):
        update_data["email"] = update_data["email"].lower()
        await _check_email_available(ctx, db, update_data["email"], exclude_id=staff_id)

    if "service_ids" in update_data:
        update_data["service_ids"] = update_data["service_ids"] or []
        await _check_services(ctx, db, update_data["service_ids"])

    update_data["updated_at"] = utc_now()

    result = await db.staff.find_one_and_update(
        ctx.filter_query({"staff_id": staff_id, "deleted_at": None}),
        {"$set": update_data},
        return_document=True
    )

    if not result:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "STAFF_NOT_FOUND", "message": "Staff member not found"}
        )

    return SingleResponse(data=StaffResponse(**result))


@router.delete(
    "/{staff_id}",
    response_model=MessageResponse,
    summary="Delete staff member"
)
async def delete_staff(
    staff_id: str,
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Soft delete a staff member"""
    result = await db.staff.update_one(
        ctx.filter_query({"staff_id": staff_id, "deleted_at": None}),
        {"$set": {"deleted_at": utc_now(), "is_active": False, "updated_at": utc_now()}}
    )

    if result.modified_count == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "STAFF_NOT_FOUND", "message": "Staff member not found"}
        )

    return MessageResponse(message="Staff member deleted successfully")
