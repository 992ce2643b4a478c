"""
Geocoding Tests
Mapbox lookups, business coordinates and radius search
"""

import httpx
import pytest
from unittest.mock import AsyncMock, patch

from app.models.common import utc_now
from app.services.geocoding_service import (
    GeocodingService, GeocodingError, GeocodeResult, haversine_km
)
from app.utils.security import create_access_token

REAL_ASYNC_CLIENT = httpx.AsyncClient

AUSTIN = (30.2672, -97.7431)
DALLAS = (32.7767, -96.7970)


@pytest.fixture
def service(seeded_db, monkeypatch):
    geocoder = GeocodingService(seeded_db)
    monkeypatch.setattr(geocoder, "access_token", "pk.test")
    monkeypatch.setattr(geocoder, "batch_delay", 0)
    return geocoder


def mapbox(handler):
    """Route the service's httpx client through handler"""
    return patch(
        "app.services.geocoding_service.httpx.AsyncClient",
        side_effect=lambda *args, **kwargs: REAL_ASYNC_CLIENT(transport=httpx.MockTransport(handler))
    )


def found(lat: float, lng: float) -> AsyncMock:
    return AsyncMock(return_value=GeocodeResult(lat, lng, "12 Main St, Austin, Texas"))


def other_business(business_id: str, slug: str, **overrides) -> dict:
    business = {
        "business_id": business_id,
        "owner_id": f"usr_{business_id}",
        "business_name": slug.replace("-", " ").title(),
        "slug": slug,
        "category": "hair_salon",
        "phone": "+15550000000",
        "address": "1 Elm St",
        "city": "Dallas",
        "state": "TX",
        "zip_code": "75201",
        "country": "US",
        "timezone": "America/Chicago",
        "is_active": True,
        "created_at": utc_now(),
        "updated_at": utc_now(),
        "deleted_at": None,
    }
    business.update(overrides)
    return business


class TestHaversine:
    """Tests for great-circle distance"""

    def test_same_point(self):
        assert haversine_km(*AUSTIN, *AUSTIN) == 0

    def test_austin_to_dallas(self):
        assert 285 < haversine_km(*AUSTIN, *DALLAS) < 300

    def test_symmetric(self):
        assert haversine_km(*AUSTIN, *DALLAS) == pytest.approx(haversine_km(*DALLAS, *AUSTIN))


class TestGeocodeAddress:
    """Tests for the Mapbox places request"""

    async def test_first_feature_center(self, service):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"features": [
                {"center": [-97.7431, 30.2672], "place_name": "12 Main St, Austin, Texas"},
                {"center": [0, 0], "place_name": "Elsewhere"},
            ]})

        with mapbox(handler):
            result = await service.geocode_address("12 Main St, Austin, TX")

        assert (result.latitude, result.longitude) == AUSTIN
        assert result.place_name == "12 Main St, Austin, Texas"
        assert seen[0].url.params["access_token"] == "pk.test"
        assert seen[0].url.params["limit"] == "1"
        assert "12%20Main%20St" in str(seen[0].url)

    async def test_no_match(self, service):
        with mapbox(lambda request: httpx.Response(200, json={"features": []})):
            assert await service.geocode_address("Nowhere") is None

    async def test_api_error(self, service):
        with mapbox(lambda request: httpx.Response(401, json={"message": "Not Authorized"})):
            assert await service.geocode_address("12 Main St") is None

    async def test_network_error(self, service):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        with mapbox(handler):
            assert await service.geocode_address("12 Main St") is None

    async def test_without_token(self, service, monkeypatch):
        monkeypatch.setattr(service, "access_token", None)
        assert await service.geocode_address("12 Main St") is None


class TestGeocodeBusiness:
    """Tests for storing business coordinates"""

    async def test_stores_coordinates(self, seeded_db, service):
        lookup = found(*AUSTIN)

        with patch.object(GeocodingService, "geocode_address", lookup):
            result = await service.geocode_business("bus_test123")

        lookup.assert_awaited_once_with("12 Main St, Austin, TX, 78701, US")
        assert result["already_geocoded"] is False
        stored = await seeded_db.businesses.find_one({"business_id": "bus_test123"})
        assert (stored["latitude"], stored["longitude"]) == AUSTIN

    async def test_already_geocoded_is_left_alone(self, seeded_db, service):
        await seeded_db.businesses.update_one(
            {"business_id": "bus_test123"},
            {"$set": {"latitude": 1.5, "longitude": 2.5}}
        )
        lookup = found(*AUSTIN)

        with patch.object(GeocodingService, "geocode_address", lookup):
            result = await service.geocode_business("bus_test123")

        lookup.assert_not_awaited()
        assert result == {"latitude": 1.5, "longitude": 2.5, "already_geocoded": True}

    async def test_address_not_found(self, service):
        with patch.object(GeocodingService, "geocode_address", AsyncMock(return_value=None)):
            with pytest.raises(GeocodingError) as exc_info:
                await service.geocode_business("bus_test123")
        assert exc_info.value.code == "GEOCODING_FAILED"

    async def test_unknown_business(self, service):
        with pytest.raises(GeocodingError) as exc_info:
            await service.geocode_business("bus_missing")
        assert exc_info.value.code == "BUSINESS_NOT_FOUND"

    async def test_batch_counts(self, seeded_db, service):
        seeded_db.businesses.seed(other_business("bus_dallas", "dallas-cuts"))
        seeded_db.businesses.seed(other_business(
            "bus_placed", "placed-salon", latitude=DALLAS[0], longitude=DALLAS[1]
        ))
        seeded_db.businesses.seed(other_business("bus_closed", "closed-salon", is_active=False))
        lookup = AsyncMock(side_effect=[GeocodeResult(*AUSTIN), None])

        with patch.object(GeocodingService, "geocode_address", lookup):
            counts = await service.geocode_missing()

        assert counts == {"geocoded": 1, "failed": 1, "total": 2}
        stored = await seeded_db.businesses.find_one({"business_id": "bus_test123"})
        assert stored["latitude"] == AUSTIN[0]


class TestGeocodeApi:
    """Tests for the geocoding endpoints"""

    def test_owner_geocodes_business(self, client, owner_headers):
        with patch.object(GeocodingService, "geocode_address", found(*AUSTIN)):
            response = client.post("/api/business/geocode", headers=owner_headers)

        assert response.status_code == 200
        assert response.json()["data"]["latitude"] == AUSTIN[0]

    def test_failure_is_400(self, client, owner_headers):
        with patch.object(GeocodingService, "geocode_address", AsyncMock(return_value=None)):
            response = client.post("/api/business/geocode", headers=owner_headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "GEOCODING_FAILED"

    def test_batch_is_admin_only(self, client, owner_headers, seeded_db, password_hash):
        response = client.put("/api/business/geocode", headers=owner_headers)
        assert response.status_code == 403

        seeded_db.users.seed({
            "user_id": "usr_admin",
            "email": "admin@glowbook.com",
            "password_hash": password_hash,
            "role": "admin",
            "first_name": "Ada",
            "last_name": "Admin",
            "is_active": True,
            "failed_login_attempts": 0,
            "deleted_at": None,
        })
        token = create_access_token("usr_admin", "admin")

        with patch.object(GeocodingService, "geocode_address", found(*AUSTIN)):
            response = client.put(
                "/api/business/geocode", headers={"Authorization": f"Bearer {token}"}
            )

        assert response.status_code == 200
        assert response.json()["data"] == {"geocoded": 1, "failed": 0, "total": 1}

    def test_address_change_clears_coordinates(self, client, owner_headers, seeded_db):
        seeded_db.businesses.docs[0].update(latitude=AUSTIN[0], longitude=AUSTIN[1])
        payload = {
            "business_name": "Glow Studio",
            "category": "hair_salon",
            "address": "12 Main St",
            "city": "Austin",
            "state": "TX",
            "zip_code": "78701",
            "phone": "+15551230000",
        }

        data = client.patch("/api/business/profile", headers=owner_headers, json=payload).json()["data"]
        assert data["latitude"] == AUSTIN[0]

        payload["address"] = "400 Congress Ave"
        data = client.patch("/api/business/profile", headers=owner_headers, json=payload).json()["data"]
        assert data["latitude"] is None
        assert data["longitude"] is None


class TestRadiusSearch:
    """Tests for searching around a point"""

    @pytest.fixture
    def located(self, seeded_db):
        seeded_db.businesses.docs[0].update(latitude=AUSTIN[0], longitude=AUSTIN[1])
        seeded_db.businesses.seed(other_business(
            "bus_dallas", "dallas-cuts", latitude=DALLAS[0], longitude=DALLAS[1]
        ))
        seeded_db.businesses.seed(other_business("bus_unplaced", "unplaced-salon"))
        return seeded_db

    def test_radius_keeps_nearby(self, client, located):
        body = client.get("/api/search", params={
            "lat": 30.30, "lng": -97.75, "radius_km": 50
        }).json()

        assert [b["slug"] for b in body["data"]] == ["glow-studio"]
        assert body["data"][0]["distance_km"] < 5

    def test_location_without_radius(self, client, located):
        body = client.get("/api/search", params={"lat": 30.30, "lng": -97.75}).json()

        slugs = {b["slug"]: b["distance_km"] for b in body["data"]}
        assert set(slugs) == {"glow-studio", "dallas-cuts"}
        assert slugs["dallas-cuts"] > 250

    def test_lat_needs_lng(self, client, located):
        response = client.get("/api/search", params={"lat": 30.30})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_LOCATION"

    def test_without_location_no_distance(self, client, located):
        body = client.get("/api/search").json()

        assert len(body["data"]) == 3
        assert all("distance_km" not in b for b in body["data"])
