"""
Search Tests
Rating filter and ordering of the public marketplace search
"""

import pytest

from app.models.common import utc_now


def business(business_id: str, slug: str) -> dict:
    return {
        "business_id": business_id,
        "owner_id": f"usr_{business_id}",
        "business_name": slug.replace("-", " ").title(),
        "slug": slug,
        "category": "hair_salon",
        "phone": "+15550000000",
        "city": "Austin",
        "state": "TX",
        "timezone": "America/Chicago",
        "is_active": True,
        "created_at": utc_now(),
        "updated_at": utc_now(),
        "deleted_at": None,
    }


@pytest.fixture
def rated(seeded_db):
    for business_id, slug in (
        ("bus_bright", "bright-nails"),
        ("bus_calm", "calm-spa"),
        ("bus_fresh", "fresh-cuts"),
        ("bus_new", "new-salon"),
    ):
        seeded_db.businesses.seed(business(business_id, slug))

    ratings = {
        "bus_test123": [5, 4],
        "bus_bright": [5],
        "bus_calm": [3, 3, 4],
        "bus_fresh": [5, 4, 4, 5],
    }
    for business_id, values in ratings.items():
        for index, rating in enumerate(values):
            seeded_db.reviews.seed({
                "review_id": f"rev_{business_id}_{index}",
                "business_id": business_id,
                "rating": rating,
                "deleted_at": None,
            })
    # Removed reviews do not count
    seeded_db.reviews.seed({
        "review_id": "rev_removed",
        "business_id": "bus_new",
        "rating": 5,
        "deleted_at": utc_now(),
    })
    return seeded_db


class TestRatings:
    """Tests for rating summaries, filter and ordering"""

    def test_best_rated_first(self, client, rated):
        body = client.get("/api/search").json()

        assert [b["slug"] for b in body["data"]] == [
            "bright-nails", "fresh-cuts", "glow-studio", "calm-spa", "new-salon"
        ]
        summary = {b["slug"]: (b["average_rating"], b["review_count"]) for b in body["data"]}
        assert summary["calm-spa"] == (3.3, 3)
        assert summary["new-salon"] == (0.0, 0)

    def test_equal_average_ranks_by_review_count(self, client, rated):
        body = client.get("/api/search").json()
        slugs = [b["slug"] for b in body["data"]]

        assert slugs.index("fresh-cuts") < slugs.index("glow-studio")

    def test_min_rating_filter(self, client, rated):
        body = client.get("/api/search", params={"min_rating": 4.5}).json()

        assert [b["slug"] for b in body["data"]] == ["bright-nails", "fresh-cuts", "glow-studio"]
        assert body["meta"]["total"] == 3

    def test_min_rating_drops_unrated(self, client, rated):
        body = client.get("/api/search", params={"min_rating": 0.1}).json()

        assert "new-salon" not in [b["slug"] for b in body["data"]]

    def test_min_rating_out_of_range(self, client, rated):
        response = client.get("/api/search", params={"min_rating": 6})
        assert response.status_code == 422

    def test_pages_after_ordering(self, client, rated):
        body = client.get("/api/search", params={"page": 2, "per_page": 2}).json()

        assert [b["slug"] for b in body["data"]] == ["glow-studio", "calm-spa"]
        assert body["meta"]["total"] == 5
