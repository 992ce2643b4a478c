"""
Promotion Tests
Discount arithmetic, rule checks and usage tracking
"""

import pytest
from datetime import datetime, timedelta, timezone
from pydantic import ValidationError

from app.models.common import utc_now
from app.models.promotion import (
    Promotion, PromotionCreate, PromotionUpdate, PromotionValidateRequest, PromotionUseRequest
)
from app.services.promotion_service import (
    PromotionService, PromotionError, calculate_discount, is_expired
)


def make_promotion(**overrides) -> Promotion:
    data = {
        "promotion_id": "prm_test123",
        "business_id": "bus_test123",
        "name": "Spring Sale",
        "code": "SPRING20",
        "type": "percentage",
        "value": 20,
        "scope": "entire_purchase",
        "start_date": utc_now() - timedelta(days=1),
        "end_date": utc_now() + timedelta(days=30),
    }
    data.update(overrides)
    return Promotion(**data)


def cart(**overrides) -> PromotionValidateRequest:
    data = {
        "business_id": "bus_test123",
        "code": "spring20",
        "subtotal": 100.0,
        "service_ids": ["svc_cut123"],
        "item_count": 1,
    }
    data.update(overrides)
    return PromotionValidateRequest(**data)


class TestCalculateDiscount:
    """Tests for the discount formulas"""

    def test_percentage(self):
        assert calculate_discount(make_promotion(value=15), 80.0, 1) == 12.0

    def test_fixed_amount_capped_at_subtotal(self):
        promotion = make_promotion(type="fixed_amount", value=25)
        assert calculate_discount(promotion, 100.0, 1) == 25.0
        assert calculate_discount(promotion, 10.0, 1) == 10.0

    def test_bogo_halves_subtotal(self):
        assert calculate_discount(make_promotion(type="bogo", value=0), 45.0, 2) == 22.5

    def test_bundle_needs_two_items(self):
        promotion = make_promotion(type="bundle", value=10)
        assert calculate_discount(promotion, 200.0, 1) == 0.0
        assert calculate_discount(promotion, 200.0, 2) == 20.0

    def test_rounds_to_cents(self):
        assert calculate_discount(make_promotion(value=33), 10.01, 1) == 3.3


class TestPromotionModels:
    """Tests for request validation"""

    def test_code_is_uppercased(self):
        data = PromotionCreate(
            name="Welcome",
            code="  welcome10 ",
            type="percentage",
            value=10,
            scope="entire_purchase",
            start_date=utc_now(),
            end_date=utc_now() + timedelta(days=7),
        )
        assert data.code == "WELCOME10"

    def test_blank_code_becomes_none(self):
        assert PromotionUpdate(code="  ").code is None

    def test_end_before_start_rejected(self):
        with pytest.raises(ValidationError):
            PromotionCreate(
                name="Backwards",
                type="fixed_amount",
                value=5,
                scope="entire_purchase",
                start_date=utc_now(),
                end_date=utc_now() - timedelta(days=1),
            )

    def test_percentage_over_100_rejected(self):
        with pytest.raises(ValidationError):
            PromotionCreate(
                name="Too generous",
                type="percentage",
                value=150,
                scope="entire_purchase",
                start_date=utc_now(),
                end_date=utc_now() + timedelta(days=1),
            )

    def test_is_expired(self):
        assert is_expired(make_promotion(
            start_date=utc_now() - timedelta(days=10),
            end_date=utc_now() - timedelta(days=1)
        ))
        assert not is_expired(make_promotion())


@pytest.fixture
def service(mock_db):
    return PromotionService(mock_db)


async def _store(mock_db, promotion: Promotion) -> None:
    await mock_db.promotions.insert_one(promotion.model_dump())


class TestValidate:
    """Tests for promotion validation against a cart"""

    async def test_valid_code(self, mock_db, service):
        await _store(mock_db, make_promotion())

        result = await service.validate("usr_cust123", cart())

        assert result["valid"] is True
        assert result["promotion"]["code"] == "SPRING20"
        assert result["discount"] == 20.0
        assert result["final_amount"] == 80.0

    async def test_unknown_code(self, service):
        with pytest.raises(PromotionError) as exc_info:
            await service.validate("usr_cust123", cart(code="NOPE"))
        assert exc_info.value.message == "Invalid promo code"

    async def test_inactive_code_is_not_found(self, mock_db, service):
        await _store(mock_db, make_promotion(is_active=False))

        with pytest.raises(PromotionError) as exc_info:
            await service.validate("usr_cust123", cart())
        assert exc_info.value.code == "INVALID_PROMO_CODE"

    @pytest.mark.parametrize("overrides,message", [
        ({"start_date": utc_now() + timedelta(days=2), "end_date": utc_now() + timedelta(days=9)},
         "Promotion has not started yet"),
        ({"start_date": utc_now() - timedelta(days=9), "end_date": utc_now() - timedelta(days=2)},
         "Promotion has expired"),
        ({"usage_limit": 5, "usage_count": 5}, "Promotion usage limit reached"),
        ({"minimum_amount": 150.0}, "Minimum purchase amount of $150 required"),
        ({"minimum_items": 3}, "Minimum 3 items required"),
        ({"scope": "specific_services", "service_ids": ["svc_color"]},
         "This promotion does not apply to the selected services"),
        ({"scope": "all_products"}, "This promotion only applies to products"),
    ])
    async def test_rule_failures(self, mock_db, service, overrides, message):
        await _store(mock_db, make_promotion(**overrides))

        with pytest.raises(PromotionError) as exc_info:
            await service.validate("usr_cust123", cart())
        assert exc_info.value.code == "PROMOTION_NOT_APPLICABLE"
        assert exc_info.value.message == message

    async def test_per_customer_limit(self, mock_db, service):
        await _store(mock_db, make_promotion(per_customer_limit=1))
        await mock_db.promotion_usages.insert_one({
            "usage_id": "pru_1",
            "promotion_id": "prm_test123",
            "user_id": "usr_cust123",
        })

        with pytest.raises(PromotionError) as exc_info:
            await service.validate("usr_cust123", cart())
        assert "maximum number of times" in exc_info.value.message

        # Another customer is unaffected
        result = await service.validate("usr_other", cart())
        assert result["valid"] is True

    async def test_first_time_only(self, mock_db, service):
        await _store(mock_db, make_promotion(first_time_only=True))
        await mock_db.bookings.insert_one({
            "booking_id": "bkg_old",
            "business_id": "bus_test123",
            "customer_id": "usr_cust123",
            "status": "completed",
        })

        with pytest.raises(PromotionError) as exc_info:
            await service.validate("usr_cust123", cart())
        assert exc_info.value.message == "This promotion is only for first-time customers"

    async def test_first_time_only_ignores_cancelled_history(self, mock_db, service):
        await _store(mock_db, make_promotion(first_time_only=True))
        await mock_db.bookings.insert_one({
            "booking_id": "bkg_old",
            "business_id": "bus_test123",
            "customer_id": "usr_cust123",
            "status": "cancelled",
        })

        result = await service.validate("usr_cust123", cart())
        assert result["valid"] is True

    async def test_automatic_picks_best_valid_featured(self, mock_db, service):
        await _store(mock_db, make_promotion(
            promotion_id="prm_big", code=None, featured=True, value=50, minimum_amount=500.0
        ))
        await _store(mock_db, make_promotion(
            promotion_id="prm_mid", code=None, featured=True, value=25
        ))
        await _store(mock_db, make_promotion(
            promotion_id="prm_small", code=None, featured=True, value=10
        ))
        await _store(mock_db, make_promotion(
            promotion_id="prm_hidden", code=None, featured=False, value=40
        ))

        result = await service.validate("usr_cust123", cart(code=None))

        assert result["promotion"]["promotion_id"] == "prm_mid"
        assert result["discount"] == 25.0

    async def test_automatic_without_candidates(self, service):
        with pytest.raises(PromotionError) as exc_info:
            await service.validate("usr_cust123", cart(code=None))
        assert exc_info.value.message == "No promotions available"


class TestCrudAndUsage:
    """Tests for management and usage recording"""

    async def test_duplicate_code_rejected(self, service):
        data = PromotionCreate(
            name="Spring Sale",
            code="SPRING20",
            type="percentage",
            value=20,
            scope="entire_purchase",
            start_date=utc_now(),
            end_date=utc_now() + timedelta(days=7),
        )
        await service.create_promotion("bus_test123", data)

        with pytest.raises(PromotionError) as exc_info:
            await service.create_promotion("bus_test123", data)
        assert exc_info.value.code == "PROMOTION_CODE_EXISTS"

        # Codes are scoped per business
        await service.create_promotion("bus_other", data)

    async def test_update_checks_merged_rules(self, mock_db, service):
        await _store(mock_db, make_promotion())

        with pytest.raises(PromotionError) as exc_info:
            await service.update_promotion(
                "bus_test123", "prm_test123", PromotionUpdate(value=120)
            )
        assert exc_info.value.code == "INVALID_VALUE"

        updated = await service.update_promotion(
            "bus_test123", "prm_test123", PromotionUpdate(value=30)
        )
        assert updated.value == 30
        stored = await mock_db.promotions.find_one({"promotion_id": "prm_test123"})
        assert stored["value"] == 30

    async def test_delete_hides_promotion(self, mock_db, service):
        await _store(mock_db, make_promotion())

        await service.delete_promotion("bus_test123", "prm_test123")

        assert await service.list_promotions("bus_test123") == []
        with pytest.raises(PromotionError):
            await service.delete_promotion("bus_test123", "prm_test123")

    async def test_record_usage_increments_count(self, mock_db, service):
        await _store(mock_db, make_promotion())

        usage = await service.record_usage("usr_cust123", PromotionUseRequest(
            promotion_id="prm_test123",
            discount_amount=20.0,
            order_total=80.0,
            booking_id="bkg_1"
        ))

        assert usage.business_id == "bus_test123"
        stored = await mock_db.promotions.find_one({"promotion_id": "prm_test123"})
        assert stored["usage_count"] == 1
        assert await mock_db.promotion_usages.count_documents({"user_id": "usr_cust123"}) == 1

    @pytest.mark.parametrize("targets", [{}, {"booking_id": "bkg_1", "order_id": "ord_1"}])
    async def test_record_usage_needs_one_target(self, mock_db, service, targets):
        await _store(mock_db, make_promotion())

        with pytest.raises(PromotionError) as exc_info:
            await service.record_usage("usr_cust123", PromotionUseRequest(
                promotion_id="prm_test123", discount_amount=5.0, order_total=50.0, **targets
            ))
        assert exc_info.value.code == "INVALID_USAGE_TARGET"


class TestPromotionDates:
    """Tests for dates sent with and without a UTC offset"""

    def test_mixed_offsets_on_create(self):
        data = PromotionCreate(
            name="Summer",
            type="percentage",
            value=10,
            scope="entire_purchase",
            start_date="2027-06-01T00:00:00",
            end_date="2027-06-30T00:00:00Z",
        )

        assert data.start_date == datetime(2027, 6, 1, tzinfo=timezone.utc)
        assert data.end_date.tzinfo is not None

    def test_mixed_offsets_still_ordered(self):
        with pytest.raises(ValidationError):
            PromotionCreate(
                name="Backwards",
                type="percentage",
                value=10,
                scope="entire_purchase",
                start_date="2027-06-30T00:00:00Z",
                end_date="2027-06-01T00:00:00",
            )

    async def test_update_with_naive_end_date(self, mock_db, service):
        created = await service.create_promotion("bus_test123", PromotionCreate(
            name="Summer",
            code="SUMMER",
            type="percentage",
            value=10,
            scope="entire_purchase",
            start_date="2027-01-01T00:00:00Z",
            end_date="2027-12-31T00:00:00Z",
        ))

        updated = await service.update_promotion(
            "bus_test123", created.promotion_id, PromotionUpdate(end_date="2027-06-01T00:00:00")
        )

        assert updated.end_date == datetime(2027, 6, 1, tzinfo=timezone.utc)
        stored = await mock_db.promotions.find_one({"promotion_id": created.promotion_id})
        assert stored["end_date"] == datetime(2027, 6, 1, tzinfo=timezone.utc)

    async def test_update_naive_end_before_start(self, mock_db, service):
        await _store(mock_db, make_promotion(
            start_date=datetime(2027, 1, 1, tzinfo=timezone.utc),
            end_date=datetime(2027, 12, 31, tzinfo=timezone.utc),
        ))

        with pytest.raises(PromotionError) as exc_info:
            await service.update_promotion(
                "bus_test123", "prm_test123", PromotionUpdate(end_date="2026-12-01T00:00:00")
            )
        assert exc_info.value.code == "INVALID_DATES"
