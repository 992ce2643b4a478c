"""
API Tests
End-to-end request handling through the FastAPI app
"""

import csv
import io
from datetime import timedelta

from app.models.common import utc_now
from app.models.promotion import Promotion
from tests.conftest import PASSWORD, future_date, make_booking


def profile_payload(**overrides) -> dict:
    data = {
        "business_name": "Glow Studio",
        "category": "hair_salon",
        "address": "12 Main St",
        "city": "Austin",
        "state": "TX",
        "zip_code": "78701",
        "phone": "+15551230000",
    }
    data.update(overrides)
    return data


class TestHealth:
    """Tests for health endpoints"""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_root(self, client):
        assert "version" in client.get("/").json()


class TestAuthApi:
    """Tests for authentication endpoints and access control"""

    def test_login_returns_tokens(self, client):
        response = client.post("/api/auth/login", json={
            "email": "owner@glowstudio.com", "password": PASSWORD
        })

        assert response.status_code == 200
        body = response.json()
        assert body["role"] == "business_owner"
        assert body["business_id"] == "bus_test123"
        assert body["token_type"] == "bearer"

    def test_wrong_password(self, client):
        response = client.post("/api/auth/login", json={
            "email": "owner@glowstudio.com", "password": "nope"
        })

        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "error": {"code": "INVALID_CREDENTIALS", "message": "Invalid email or password"}
        }

    def test_customer_signup_conflict(self, client):
        response = client.post("/api/auth/signup/customer", json={
            "email": "casey@example.com",
            "password": "longenough1",
            "first_name": "Casey",
            "last_name": "Again",
        })
        assert response.status_code == 409

    def test_business_signup(self, client, seeded_db):
        response = client.post("/api/auth/signup/business", json={
            "email": "new@salon.com",
            "password": "longenough1",
            "first_name": "Nia",
            "last_name": "Park",
            "business_name": "Nail Nook",
            "category": "nail_salon",
            "address": "5 Pine Rd",
            "city": "Austin",
            "state": "TX",
            "zip_code": "78702",
            "business_phone": "+15125550123",
        })

        assert response.status_code == 201
        business_id = response.json()["business_id"]
        assert business_id.startswith("bus_")
        stored = seeded_db.businesses.docs[-1]
        assert stored["slug"] == "nail-nook"

    def test_me_requires_token(self, client):
        response = client.get("/api/auth/me")
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "NOT_AUTHENTICATED"

    def test_me(self, client, customer_headers):
        response = client.get("/api/auth/me", headers=customer_headers)
        assert response.status_code == 200
        assert response.json()["email"] == "casey@example.com"

    def test_invalid_token(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer junk"})
        assert response.status_code == 401

    def test_customer_cannot_use_dashboard(self, client, customer_headers):
        response = client.get("/api/business/services", headers=customer_headers)
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "INSUFFICIENT_PERMISSIONS"

    def test_owner_cannot_book(self, client, owner_headers):
        response = client.post("/api/bookings", headers=owner_headers, json={
            "business_id": "bus_test123",
            "service_id": "svc_cut123",
            "date": future_date(5),
            "start_time": "10:00",
        })
        assert response.status_code == 403

    def test_login_rate_limit(self, client):
        for _ in range(10):
            client.post("/api/auth/login", json={"email": "x@example.com", "password": "x"})

        response = client.post("/api/auth/login", json={"email": "x@example.com", "password": "x"})

        assert response.status_code == 429
        assert response.json()["error"]["code"] == "RATE_LIMITED"
        assert "Retry-After" in response.headers


class TestBusinessApi:
    """Tests for the owner dashboard"""

    def test_profile(self, client, owner_headers):
        response = client.get("/api/business/profile", headers=owner_headers)
        assert response.status_code == 200
        assert response.json()["data"]["slug"] == "glow-studio"

    def test_update_keeps_slug(self, client, owner_headers):
        response = client.patch("/api/business/profile", headers=owner_headers, json=profile_payload(
            business_name="Glow Studio & Spa"
        ))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["business_name"] == "Glow Studio & Spa"
        assert data["slug"] == "glow-studio"

    def test_unknown_timezone(self, client, owner_headers):
        response = client.patch("/api/business/profile", headers=owner_headers, json=profile_payload(
            timezone="Mars/Olympus_Mons"
        ))
        assert response.status_code == 400

    def test_services_are_scoped(self, client, owner_headers, seeded_db):
        seeded_db.services.seed({
            "service_id": "svc_other",
            "business_id": "bus_other",
            "name": "Other Shop Cut",
            "price": 10.0,
            "duration_minutes": 30,
            "is_active": True,
            "created_at": utc_now(),
            "updated_at": utc_now(),
            "deleted_at": None,
        })

        response = client.get("/api/business/services", headers=owner_headers)

        assert [s["service_id"] for s in response.json()["data"]] == ["svc_cut123"]

    def test_create_service(self, client, owner_headers):
        response = client.post("/api/business/services", headers=owner_headers, json={
            "name": "Blowout",
            "category": "styling",
            "price": 45,
            "duration_minutes": 45,
        })

        assert response.status_code == 201
        assert response.json()["data"]["name"] == "Blowout"

    def test_weekly_hours(self, client, owner_headers):
        response = client.get("/api/business/availability", headers=owner_headers)

        data = response.json()["data"]
        assert [row["day_of_week"] for row in data] == list(range(7))


class TestBookingApi:
    """Tests for the public booking page and booking endpoints"""

    def test_booking_page(self, client):
        response = client.get("/api/booking/glow-studio")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["business"]["business_name"] == "Glow Studio"
        assert data["business"]["payments_enabled"] is False
        assert [s["service_id"] for s in data["services"]] == ["svc_cut123"]
        assert len(data["availability"]) == 7

    def test_unknown_page(self, client):
        response = client.get("/api/booking/no-such-salon")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "BUSINESS_NOT_FOUND"

    def test_availability(self, client):
        response = client.get("/api/booking/availability", params={
            "slug": "glow-studio",
            "service_id": "svc_cut123",
            "date": future_date(6),
        })

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["is_closed_day"] is False
        assert data["slots"][0]["time"] == "09:00"

    def test_availability_bad_date(self, client):
        response = client.get("/api/booking/availability", params={
            "business_id": "bus_test123",
            "service_id": "svc_cut123",
            "date": "06/01/2030",
        })
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_DATE"

    def test_book_then_conflict(self, client, customer_headers):
        payload = {
            "business_id": "bus_test123",
            "service_id": "svc_cut123",
            "date": future_date(6),
            "start_time": "13:00",
        }

        first = client.post("/api/bookings", headers=customer_headers, json=payload)
        assert first.status_code == 201
        assert first.json()["data"]["status"] == "confirmed"

        second = client.post("/api/bookings", headers=customer_headers, json=payload)
        assert second.status_code == 409
        assert second.json()["error"]["code"] == "SLOT_UNAVAILABLE"

        mine = client.get("/api/bookings", headers=customer_headers).json()
        assert mine["count"] == 1
        assert mine["data"][0]["business_name"] == "Glow Studio"

    def test_prepayment_needs_stripe(self, client, customer_headers):
        response = client.post("/api/booking/create-payment-intent", headers=customer_headers, json={
            "business_id": "bus_test123",
            "service_id": "svc_cut123",
            "date": future_date(6),
            "start_time": "10:00",
        })
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "PAYMENTS_NOT_ENABLED"

    def test_cancel_inside_window(self, client, customer_headers, seeded_db):
        seeded_db.bookings.seed(make_booking(start_at=utc_now() + timedelta(hours=2)))

        response = client.post("/api/booking/cancel", headers=customer_headers, json={
            "booking_id": "bkg_test123"
        })

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "CANCELLATION_WINDOW"

    def test_owner_completes_and_exports(self, client, owner_headers, seeded_db):
        seeded_db.bookings.seed(make_booking())

        response = client.post("/api/business/bookings/bkg_test123/complete", headers=owner_headers)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "completed"

        export = client.get("/api/business/bookings/export", headers=owner_headers)
        assert export.headers["content-type"].startswith("text/csv")
        assert "attachment" in export.headers["content-disposition"]
        rows = list(csv.reader(io.StringIO(export.text)))
        assert rows[0][:4] == ["Date", "Start Time", "End Time", "Customer"]
        assert rows[1][3] == "Casey Customer"

    def test_status_update_validation(self, client, owner_headers, seeded_db):
        seeded_db.bookings.seed(make_booking())

        response = client.patch(
            "/api/business/bookings/bkg_test123", headers=owner_headers, json={"status": "lost"}
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_STATUS"


class TestCustomersApi:
    """Tests for the CRM endpoints"""

    def test_export_csv(self, client, owner_headers, seeded_db):
        seeded_db.bookings.seed(make_booking(status="completed"))

        listing = client.get("/api/business/customers", headers=owner_headers)
        assert listing.json()["meta"]["total"] == 1

        export = client.get("/api/business/customers/export", headers=owner_headers)

        assert export.status_code == 200
        assert export.headers["content-type"].startswith("text/csv")
        rows = list(csv.reader(io.StringIO(export.text)))
        assert rows[0] == [
            "Name", "Email", "Phone", "Total Visits", "Total Spent", "Average Spent",
            "First Visit", "Last Visit", "Favorite Service", "Tags", "VIP",
        ]
        assert rows[1][0] == "Casey Customer"
        assert rows[1][4] == "100.00"
        assert rows[1][10] == "No"

    def test_unknown_customer(self, client, owner_headers):
        response = client.get("/api/business/customers/cus_missing", headers=owner_headers)
        assert response.status_code == 404


class TestPromotionsApi:
    """Tests for promotion endpoints"""

    def test_validate(self, client, customer_headers, seeded_db):
        seeded_db.promotions.seed(Promotion(
            business_id="bus_test123",
            name="Welcome",
            code="WELCOME10",
            type="fixed_amount",
            value=10,
            scope="entire_purchase",
            start_date=utc_now() - timedelta(days=1),
            end_date=utc_now() + timedelta(days=10),
        ).model_dump())

        response = client.post("/api/promotions/validate", headers=customer_headers, json={
            "business_id": "bus_test123",
            "code": "welcome10",
            "subtotal": 100.0,
            "service_ids": ["svc_cut123"],
            "item_count": 1,
        })

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["discount"] == 10.0
        assert data["final_amount"] == 90.0

    def test_owner_creates_and_duplicate_conflicts(self, client, owner_headers):
        payload = {
            "name": "Summer",
            "code": "SUMMER",
            "type": "percentage",
            "value": 15,
            "scope": "entire_purchase",
            "start_date": utc_now().isoformat(),
            "end_date": (utc_now() + timedelta(days=30)).isoformat(),
        }

        assert client.post("/api/business/promotions", headers=owner_headers, json=payload).status_code == 201
        duplicate = client.post("/api/business/promotions", headers=owner_headers, json=payload)
        assert duplicate.status_code == 409


class TestReviewsAndSearch:
    """Tests for reviews and business discovery"""

    def test_review_flow(self, client, customer_headers, owner_headers, seeded_db):
        seeded_db.bookings.seed(make_booking(status="completed"))

        created = client.post("/api/reviews", headers=customer_headers, json={
            "booking_id": "bkg_test123", "rating": 4, "comment": "Lovely cut"
        })
        assert created.status_code == 201
        review_id = created.json()["data"]["review_id"]

        again = client.post("/api/reviews", headers=customer_headers, json={
            "booking_id": "bkg_test123", "rating": 5
        })
        assert again.status_code == 409

        reply = client.post(f"/api/reviews/{review_id}/response", headers=owner_headers, json={
            "response": "Thanks Casey!"
        })
        assert reply.status_code == 200

        listing = client.get("/api/reviews", params={"business_id": "bus_test123"}).json()
        assert listing["total"] == 1
        assert listing["average_rating"] == 4.0

    def test_cannot_review_unfinished_booking(self, client, customer_headers, seeded_db):
        seeded_db.bookings.seed(make_booking())

        response = client.post("/api/reviews", headers=customer_headers, json={
            "booking_id": "bkg_test123", "rating": 5
        })
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "BOOKING_NOT_COMPLETED"

    def test_search(self, client):
        response = client.get("/api/search", params={"q": "cuts", "city": "austin"})

        assert response.status_code == 200
        body = response.json()
        assert [b["slug"] for b in body["data"]] == ["glow-studio"]
        assert body["meta"]["total"] == 1

    def test_search_no_match(self, client):
        body = client.get("/api/search", params={"category": "spa"}).json()
        assert body["data"] == []
