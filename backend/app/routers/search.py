"""
Search API Router
Public business discovery
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional

from app.database import get_database
from app.services.search_service import SearchService

router = APIRouter()


def get_search_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> SearchService:
    """Get search service instance"""
    return SearchService(db)


@router.get(
    "",
    summary="Search businesses"
)
async def search_businesses(
    q: Optional[str] = Query(None, max_length=100),
    category: Optional[str] = None,
    city: Optional[str] = None,
    min_rating: Optional[float] = Query(None, ge=0, le=5),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    radius_km: Optional[float] = Query(None, gt=0, le=500),
    service: SearchService = Depends(get_search_service)
):
    """Active businesses by name, description or category, best rated first"""
    if (lat is None) != (lng is None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "INVALID_LOCATION", "message": "lat and lng must be given together"}
        )
    results, meta = await service.search(
        q, category, city, min_rating, page, per_page, lat=lat, lng=lng, radius_km=radius_km
    )
    return {"success": True, "data": results, "meta": meta}
