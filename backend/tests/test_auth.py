"""
Authentication Tests
Signup, slugs, login lockout, tokens and password reset
"""

import pytest
from datetime import timedelta

from app.models.common import utc_now
from app.schemas.auth import CustomerSignupRequest, BusinessSignupRequest
from app.services.auth_service import AuthService, AuthError, DEFAULT_OPEN_DAYS
from app.utils.security import (
    verify_password, verify_token, create_access_token, create_refresh_token
)
from tests.conftest import PASSWORD


def business_signup(**overrides) -> BusinessSignupRequest:
    data = {
        "email": "Jamie@BrowBar.com",
        "password": "Br0wB4r!pass",
        "first_name": "Jamie",
        "last_name": "Rivera",
        "business_name": "Glow Studio",
        "category": "lash_brow",
        "address": "8 Oak Ave",
        "city": "Denver",
        "state": "CO",
        "zip_code": "80202",
        "business_phone": "+13035550100",
        "timezone": "America/Denver",
    }
    data.update(overrides)
    return BusinessSignupRequest(**data)


@pytest.fixture
def service(seeded_db):
    return AuthService(seeded_db)


class TestSecurity:
    """Tests for password hashing and JWTs"""

    def test_password_hash(self, password_hash):
        assert verify_password(PASSWORD, password_hash)
        assert not verify_password("wrong", password_hash)

    def test_token_types_are_not_interchangeable(self):
        access = create_access_token("usr_1", "customer")
        refresh = create_refresh_token("usr_1", "customer")

        assert verify_token(access).user_id == "usr_1"
        assert verify_token(access, token_type="refresh") is None
        assert verify_token(refresh, token_type="refresh").role == "customer"

    def test_expired_token(self):
        token = create_access_token("usr_1", "customer", expires_delta=timedelta(seconds=-1))
        assert verify_token(token) is None

    def test_garbage_token(self):
        assert verify_token("not.a.jwt") is None


class TestSignup:
    """Tests for account registration"""

    async def test_customer_signup(self, seeded_db, service):
        user = await service.register_customer(CustomerSignupRequest(
            email="New.Client@Example.com",
            password="longenough1",
            first_name="New",
            last_name="Client",
        ))

        assert user.email == "new.client@example.com"
        assert user.role == "customer"
        assert user.password_hash != "longenough1"
        assert await seeded_db.users.find_one({"email": "new.client@example.com"})

    async def test_duplicate_email(self, service):
        with pytest.raises(AuthError) as exc_info:
            await service.register_customer(CustomerSignupRequest(
                email="CASEY@example.com",
                password="longenough1",
                first_name="Casey",
                last_name="Again",
            ))
        assert exc_info.value.code == "EMAIL_EXISTS"

    async def test_business_signup_creates_business_and_hours(self, seeded_db, service):
        user, business = await service.register_business(business_signup())

        assert user.role == "business_owner"
        assert user.business_id == business.business_id
        assert business.owner_id == user.user_id
        # glow-studio is taken by the seeded business
        assert business.slug == "glow-studio-1"
        assert business.timezone == "America/Denver"

        rows = await seeded_db.availability.find(
            {"business_id": business.business_id}
        ).to_list(length=10)
        assert sorted(r["day_of_week"] for r in rows) == DEFAULT_OPEN_DAYS
        assert all((r["start_time"], r["end_time"]) == ("09:00", "17:00") for r in rows)

    async def test_slug_suffixes_fill_in_order(self, seeded_db, service):
        await seeded_db.businesses.insert_one({"business_id": "bus_2", "slug": "glow-studio-1"})

        assert await service.generate_unique_slug("Glow  Studio!") == "glow-studio-2"
        assert await service.generate_unique_slug("Brow Bar") == "brow-bar"


class TestLogin:
    """Tests for credential checks"""

    async def test_login(self, seeded_db, service):
        user = await service.authenticate("CASEY@example.com", PASSWORD)

        assert user.user_id == "usr_cust123"
        stored = await seeded_db.users.find_one({"user_id": "usr_cust123"})
        assert stored["last_login_at"] is not None

    async def test_unknown_email(self, service):
        with pytest.raises(AuthError) as exc_info:
            await service.authenticate("nobody@example.com", PASSWORD)
        assert exc_info.value.code == "INVALID_CREDENTIALS"

    async def test_lockout_after_five_failures(self, seeded_db, service):
        for _ in range(5):
            with pytest.raises(AuthError) as exc_info:
                await service.authenticate("casey@example.com", "wrong-password")
            assert exc_info.value.code == "INVALID_CREDENTIALS"

        with pytest.raises(AuthError) as exc_info:
            await service.authenticate("casey@example.com", PASSWORD)
        assert exc_info.value.code == "ACCOUNT_LOCKED"

    async def test_disabled_account(self, seeded_db, service):
        await seeded_db.users.update_one({"user_id": "usr_cust123"}, {"$set": {"is_active": False}})

        with pytest.raises(AuthError) as exc_info:
            await service.authenticate("casey@example.com", PASSWORD)
        assert exc_info.value.code == "ACCOUNT_DISABLED"

    async def test_refresh(self, service):
        token = create_refresh_token("usr_owner123", "business_owner", "bus_test123")

        tokens = await service.refresh_tokens(token)

        assert tokens.business_id == "bus_test123"
        assert verify_token(tokens.access_token).user_id == "usr_owner123"

    async def test_refresh_rejects_access_token(self, service):
        with pytest.raises(AuthError) as exc_info:
            await service.refresh_tokens(create_access_token("usr_owner123", "business_owner"))
        assert exc_info.value.code == "INVALID_TOKEN"


class TestPasswordReset:
    """Tests for the forgot/reset flow"""

    async def test_reset_flow(self, seeded_db, service):
        await service.request_password_reset("casey@example.com")
        token_doc = await seeded_db.password_reset_tokens.find_one({"user_id": "usr_cust123"})
        assert token_doc["used"] is False

        await service.reset_password(token_doc["token"], "BrandNew!pass1")

        user = await service.authenticate("casey@example.com", "BrandNew!pass1")
        assert user.user_id == "usr_cust123"

        with pytest.raises(AuthError) as exc_info:
            await service.reset_password(token_doc["token"], "AnotherOne!2")
        assert exc_info.value.code == "INVALID_TOKEN"

    async def test_unknown_email_is_silent(self, seeded_db, service):
        await service.request_password_reset("nobody@example.com")
        assert await seeded_db.password_reset_tokens.count_documents({}) == 0

    async def test_expired_token(self, seeded_db, service):
        await seeded_db.password_reset_tokens.insert_one({
            "token": "stale",
            "user_id": "usr_cust123",
            "expires_at": utc_now() - timedelta(minutes=1),
            "used": False,
        })

        with pytest.raises(AuthError):
            await service.reset_password("stale", "BrandNew!pass1")
