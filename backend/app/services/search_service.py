"""
Search Service
Public business discovery with rating, price and photo summaries
"""

import re
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.models.photo import PhotoType
from app.schemas.common import PaginationMeta, create_pagination_meta
from app.services.geocoding_service import haversine_km
from app.services.review_service import summarize_ratings


class SearchService:
    """Service for marketplace search"""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def _summarize(self, business: dict) -> dict:
        business_id = business["business_id"]

        reviews = await self.db.reviews.find(
            {"business_id": business_id, "deleted_at": None}
        ).to_list(length=None)
        average, count = summarize_ratings(reviews)

        services = await self.db.services.find(
            {"business_id": business_id, "is_active": True, "deleted_at": None}
        ).to_list(length=None)

        hero = await self.db.photos.find_one({
            "business_id": business_id,
            "type": PhotoType.HERO.value,
            "is_active": True
        })

        return {
            "business_id": business_id,
            "business_name": business["business_name"],
            "slug": business["slug"],
            "category": business.get("category"),
            "description": business.get("description"),
            "city": business.get("city"),
            "state": business.get("state"),
            "latitude": business.get("latitude"),
            "longitude": business.get("longitude"),
            "average_rating": average,
            "review_count": count,
            "min_price": min((s["price"] for s in services), default=None),
            "service_count": len(services),
            "hero_image": hero["url"] if hero else None,
        }

    async def search(
        self,
        q: Optional[str] = None,
        category: Optional[str] = None,
        city: Optional[str] = None,
        min_rating: Optional[float] = None,
        page: int = 1,
        per_page: int = 20,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        radius_km: Optional[float] = None
    ) -> tuple[list[dict], PaginationMeta]:
        """
        Active businesses matching the filters, best rated first

        Ratings are computed per business, so filtering by min_rating and
        sorting happen before pagination.
        With lat and lng every result carries distance_km; businesses without
        coordinates are left out, as are those beyond radius_km.
        """
        query: dict = {"is_active": True, "deleted_at": None}
        if q:
            pattern = re.escape(q.strip())
            query["$or"] = [
                {"business_name": {"$regex": pattern, "$options": "i"}},
                {"description": {"$regex": pattern, "$options": "i"}},
                {"category": {"$regex": pattern, "$options": "i"}},
            ]
        if category:
            query["category"] = category
        if city:
            query["city"] = {"$regex": f"^{re.escape(city.strip())}$", "$options": "i"}

        businesses = await self.db.businesses.find(query).to_list(length=None)
        results = [await self._summarize(b) for b in businesses]

        if lat is not None and lng is not None:
            nearby = []
            for r in results:
                if r["latitude"] is None or r["longitude"] is None:
                    continue
                distance = round(haversine_km(lat, lng, r["latitude"], r["longitude"]), 2)
                if radius_km is not None and distance > radius_km:
                    continue
                nearby.append({**r, "distance_km": distance})
            results = nearby

        if min_rating is not None:
            results = [r for r in results if r["average_rating"] >= min_rating]
        results.sort(key=lambda r: (r["average_rating"], r["review_count"]), reverse=True)

        skip = (page - 1) * per_page
        return results[skip:skip + per_page], create_pagination_meta(len(results), page, per_page)


def get_search_service(db: AsyncIOMotorDatabase) -> SearchService:
    """Factory for search service"""
    return SearchService(db)
