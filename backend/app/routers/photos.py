"""
Photos API Router
Business photo gallery and S3 direct uploads
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.database import get_database
from app.models.common import utc_now
from app.models.photo import (
    Photo, PhotoType, PhotoUpdate, PhotoResponse, PHOTO_TYPE_ORDER,
    PresignedUrlRequest, UploadCompleteRequest
)
from app.middleware.auth import BusinessContext, get_business_context
from app.schemas.common import ListResponse, SingleResponse, MessageResponse
from app.services.storage_service import StorageService, StorageError, get_storage_service

logger = logging.getLogger(__name__)

# Gallery endpoints, mounted at /business/photos
router = APIRouter()

# Upload endpoints, mounted at /upload
upload_router = APIRouter()

ERROR_STATUS = {
    "STORAGE_NOT_CONFIGURED": status.HTTP_503_SERVICE_UNAVAILABLE,
    "STORAGE_ERROR": status.HTTP_502_BAD_GATEWAY,
}


def _photo_not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"code": "PHOTO_NOT_FOUND", "message": "Photo not found"}
    )


async def _demote_hero(ctx: BusinessContext, db: AsyncIOMotorDatabase, keep_photo_id: str) -> None:
    """A business shows one hero photo; others fall back to the gallery"""
    await db.photos.update_many(
        ctx.filter_query({
            "type": PhotoType.HERO.value,
            "is_active": True,
            "photo_id": {"$ne": keep_photo_id}
        }),
        {"$set": {"type": PhotoType.GALLERY.value, "updated_at": utc_now()}}
    )


# ==================== Uploads ====================

@upload_router.post(
    "/presigned-url",
    summary="Get upload URL"
)
async def create_presigned_url(
    data: PresignedUrlRequest,
    ctx: BusinessContext = Depends(get_business_context),
    storage: StorageService = Depends(get_storage_service)
):
    """
    Presigned S3 PUT for a photo upload

    The browser uploads directly, then calls /upload/complete with public_url.
    """
    try:
        result = storage.create_presigned_upload(
            ctx.business_id, data.file_name, data.content_type, data.type
        )
    except StorageError as e:
        raise HTTPException(
            status_code=ERROR_STATUS.get(e.code, status.HTTP_400_BAD_REQUEST),
            detail={"code": e.code, "message": e.message}
        )
    return {"success": True, "data": result}


@upload_router.post(
    "/complete",
    response_model=SingleResponse[PhotoResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Register uploaded photo"
)
async def complete_upload(
    data: UploadCompleteRequest,
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Create the photo record for an uploaded file"""
    photo = Photo(business_id=ctx.business_id, **data.model_dump())
    await db.photos.insert_one(photo.model_dump())

    if photo.type == PhotoType.HERO:
        await _demote_hero(ctx, db, photo.photo_id)

    logger.info(f"Photo {photo.photo_id} added to {ctx.business_id}")
    return SingleResponse(data=PhotoResponse(**photo.model_dump()))


# ==================== Gallery ====================

@router.get(
    "",
    response_model=ListResponse[PhotoResponse],
    summary="List photos"
)
async def list_photos(
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Active photos: hero first, then gallery, logo, banner"""
    docs = await db.photos.find(
        ctx.filter_query({"is_active": True})
    ).sort("created_at", -1).to_list(length=500)

    docs.sort(key=lambda d: (PHOTO_TYPE_ORDER.get(d.get("type"), len(PHOTO_TYPE_ORDER)), d.get("order", 0)))
    photos = [PhotoResponse(**doc) for doc in docs]
    return ListResponse(data=photos, count=len(photos))


@router.put(
    "/{photo_id}",
    response_model=SingleResponse[PhotoResponse],
    summary="Update photo"
)
async def update_photo(
    photo_id: str,
    data: PhotoUpdate,
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database)
):
    """Change the type, caption or order"""
    update_data = data.model_dump(exclude_unset=True, exclude_none=True)
    update_data["updated_at"] = utc_now()

    result = await db.photos.find_one_and_update(
        ctx.filter_query({"photo_id": photo_id, "is_active": True}),
        {"$set": update_data},
        return_document=True
    )
    if not result:
        raise _photo_not_found()

    if result.get("type") == PhotoType.HERO.value:
        await _demote_hero(ctx, db, photo_id)

    return SingleResponse(data=PhotoResponse(**result))


@router.delete(
    "/{photo_id}",
    response_model=MessageResponse,
    summary="Delete photo"
)
async def delete_photo(
    photo_id: str,
    ctx: BusinessContext = Depends(get_business_context),
    db: AsyncIOMotorDatabase = Depends(get_database),
    storage: StorageService = Depends(get_storage_service)
):
    """Remove the file from storage and hide the photo"""
    doc = await db.photos.find_one(ctx.filter_query({"photo_id": photo_id, "is_active": True}))
    if not doc:
        raise _photo_not_found()

    # Storage failures are logged by the service and do not block the delete
    await storage.delete_object(doc["url"])

    now = utc_now()
    await db.photos.update_one(
        {"photo_id": photo_id},
        {"$set": {"is_active": False, "deleted_at": now, "updated_at": now}}
    )

    logger.info(f"Photo {photo_id} deleted from {ctx.business_id}")
    return MessageResponse(message="Photo deleted successfully")
