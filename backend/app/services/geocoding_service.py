"""
Geocoding Service
Mapbox lookups that give businesses coordinates for map and radius search
"""

import asyncio
import logging
import math
from typing import Optional
from urllib.parse import quote
import httpx

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.config import get_settings
from app.models.common import utc_now

settings = get_settings()
logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


class GeocodeResult:
    """Coordinates found for an address"""
    def __init__(self, latitude: float, longitude: float, place_name: Optional[str] = None):
        self.latitude = latitude
        self.longitude = longitude
        self.place_name = place_name

    def to_dict(self) -> dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "place_name": self.place_name
        }


class GeocodingError(Exception):
    """Geocoding error with code"""
    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in kilometres"""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def full_address(business: dict) -> str:
    parts = [
        business.get("address"),
        business.get("city"),
        business.get("state"),
        business.get("zip_code"),
        business.get("country"),
    ]
    return ", ".join(p for p in parts if p)


class GeocodingService:
    """Service for address lookups"""

    MAPBOX_BASE_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places"

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.access_token = settings.MAPBOX_ACCESS_TOKEN
        self.batch_delay = settings.GEOCODE_BATCH_DELAY_SECONDS

    async def geocode_address(self, address: str) -> Optional[GeocodeResult]:
        """
        Look up the best match for an address

        Returns:
            GeocodeResult, or None when Mapbox is not configured or finds nothing
        """
        if not self.access_token:
            logger.warning("Mapbox access token not configured")
            return None

        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    f"{self.MAPBOX_BASE_URL}/{quote(address)}.json",
                    params={"access_token": self.access_token, "limit": 1},
                    timeout=10.0
                )

                if response.status_code != 200:
                    logger.error(f"Geocoding API error: {response.status_code}")
                    return None

                features = response.json().get("features") or []
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to geocode address: {e}")
            return None

        if not features:
            logger.info(f"No geocoding match for '{address}'")
            return None

        # Mapbox centers are [longitude, latitude]
        longitude, latitude = features[0]["center"][:2]
        return GeocodeResult(latitude, longitude, features[0].get("place_name"))

    async def _store(self, business_id: str, result: GeocodeResult) -> None:
        await self.db.businesses.update_one(
            {"business_id": business_id},
            {"$set": {
                "latitude": result.latitude,
                "longitude": result.longitude,
                "updated_at": utc_now()
            }}
        )

    async def geocode_business(self, business_id: str) -> dict:
        """
        Give one business coordinates from its address

        A business that already has coordinates is left alone.

        Raises:
            GeocodingError: Business missing or address not found
        """
        business = await self.db.businesses.find_one({"business_id": business_id})
        if not business:
            raise GeocodingError("BUSINESS_NOT_FOUND", "Business not found")

        if business.get("latitude") is not None and business.get("longitude") is not None:
            return {
                "latitude": business["latitude"],
                "longitude": business["longitude"],
                "already_geocoded": True
            }

        result = await self.geocode_address(full_address(business))
        if result is None:
            raise GeocodingError("GEOCODING_FAILED", "Could not find coordinates for this address")

        await self._store(business_id, result)
        logger.info(f"Geocoded business {business_id}: {result.latitude}, {result.longitude}")
        return {**result.to_dict(), "already_geocoded": False}

    async def geocode_missing(self) -> dict:
        """Geocode every active business without coordinates, one request at a time"""
        businesses = await self.db.businesses.find({
            "is_active": True,
            "deleted_at": None,
            "$or": [{"latitude": None}, {"longitude": None}]
        }).to_list(length=None)

        geocoded = 0
        failed = 0
        for index, business in enumerate(businesses):
            if index and self.batch_delay:
                # Mapbox rate limit
                await asyncio.sleep(self.batch_delay)

            result = await self.geocode_address(full_address(business))
            if result is None:
                failed += 1
                continue
            await self._store(business["business_id"], result)
            geocoded += 1

        logger.info(f"Batch geocoding: {geocoded} geocoded, {failed} failed")
        return {"geocoded": geocoded, "failed": failed, "total": len(businesses)}


def get_geocoding_service(db: AsyncIOMotorDatabase) -> GeocodingService:
    """Factory for geocoding service"""
    return GeocodingService(db)
