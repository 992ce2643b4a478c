"""
Test configuration and fixtures
"""

import copy
import re
import pytest
from datetime import timedelta
from types import SimpleNamespace
from typing import Any

from fastapi.testclient import TestClient

from app.database import get_database
from app.models.common import utc_now
from app.utils.security import create_access_token, get_password_hash


# ============== Mock database ==============

_MISSING = object()


def _get_path(doc: Any, key: str) -> Any:
    current = doc
    for part in key.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return _MISSING
    return current


def _set_path(doc: dict, key: str, value: Any) -> None:
    parts = key.split(".")
    current = doc
    for part in parts[:-1]:
        current = current.setdefault(part, {})
    current[parts[-1]] = value


def _compare(value: Any, other: Any, op) -> bool:
    if value is _MISSING or value is None or other is None:
        return False
    try:
        return op(value, other)
    except TypeError:
        return False


def _equals(value: Any, expected: Any) -> bool:
    if expected is None:
        return value is _MISSING or value is None
    if value is _MISSING:
        return False
    if isinstance(value, list) and not isinstance(expected, list):
        return expected in value
    return value == expected


def _is_operator_dict(cond: Any) -> bool:
    return isinstance(cond, dict) and bool(cond) and all(k.startswith("$") for k in cond)


def _match_condition(value: Any, cond: Any) -> bool:
    if not _is_operator_dict(cond):
        return _equals(value, cond)

    for op, arg in cond.items():
        if op == "$eq":
            if not _equals(value, arg):
                return False
        elif op == "$ne":
            if _equals(value, arg):
                return False
        elif op == "$in":
            if not any(_equals(value, a) for a in arg):
                return False
        elif op == "$nin":
            if any(_equals(value, a) for a in arg):
                return False
        elif op == "$gt":
            if not _compare(value, arg, lambda a, b: a > b):
                return False
        elif op == "$gte":
            if not _compare(value, arg, lambda a, b: a >= b):
                return False
        elif op == "$lt":
            if not _compare(value, arg, lambda a, b: a < b):
                return False
        elif op == "$lte":
            if not _compare(value, arg, lambda a, b: a <= b):
                return False
        elif op == "$exists":
            if (value is not _MISSING) != bool(arg):
                return False
        elif op == "$regex":
            flags = re.IGNORECASE if "i" in cond.get("$options", "") else 0
            if not isinstance(value, str) or not re.search(arg, value, flags):
                return False
        elif op == "$options":
            continue
        elif op == "$not":
            if _match_condition(value, arg):
                return False
        elif op == "$elemMatch":
            if not isinstance(value, list):
                return False
            if not any(isinstance(item, dict) and match_query(item, arg) for item in value):
                return False
        else:
            raise NotImplementedError(f"Mock does not support {op}")
    return True


def match_query(doc: dict, query: dict) -> bool:
    """Evaluate a MongoDB filter against a document"""
    for key, cond in (query or {}).items():
        if key == "$or":
            if not any(match_query(doc, sub) for sub in cond):
                return False
        elif key == "$and":
            if not all(match_query(doc, sub) for sub in cond):
                return False
        elif not _match_condition(_get_path(doc, key), cond):
            return False
    return True


def _sort_key(value: Any):
    # None and missing sort first, as in MongoDB
    if value is _MISSING or value is None:
        return (0, 0)
    return (1, value)


class MockCursor:
    """Mock MongoDB cursor"""

    def __init__(self, data: list):
        self._data = data
        self._skip = 0
        self._limit = None

    def sort(self, key_or_list, direction: int = 1):
        keys = key_or_list if isinstance(key_or_list, list) else [(key_or_list, direction)]
        for key, order in reversed(keys):
            self._data.sort(key=lambda d: _sort_key(_get_path(d, key)), reverse=order == -1)
        return self

    def skip(self, n: int):
        self._skip = n
        return self

    def limit(self, n: int):
        self._limit = n
        return self

    async def to_list(self, length: int = None):
        data = self._data[self._skip:]
        if self._limit:
            data = data[:self._limit]
        if length:
            data = data[:length]
        return [copy.deepcopy(d) for d in data]


class MockCollection:
    """Mock MongoDB collection"""

    def __init__(self):
        self.docs: list[dict] = []
        self.counter = 0

    def _apply_update(self, doc: dict, update: dict, inserting: bool = False) -> None:
        for key, value in update.get("$set", {}).items():
            _set_path(doc, key, copy.deepcopy(value))
        if inserting:
            for key, value in update.get("$setOnInsert", {}).items():
                _set_path(doc, key, copy.deepcopy(value))
        for key, value in update.get("$inc", {}).items():
            current = _get_path(doc, key)
            _set_path(doc, key, (0 if current is _MISSING else current) + value)
        for key in update.get("$unset", {}):
            parts = key.split(".")
            parent = _get_path(doc, ".".join(parts[:-1])) if len(parts) > 1 else doc
            if isinstance(parent, dict):
                parent.pop(parts[-1], None)
        for key, value in update.get("$push", {}).items():
            current = _get_path(doc, key)
            items = [] if current is _MISSING else current
            items.append(copy.deepcopy(value))
            _set_path(doc, key, items)
        for key, cond in update.get("$pull", {}).items():
            current = _get_path(doc, key)
            if isinstance(current, list):
                _set_path(doc, key, [
                    item for item in current
                    if not (match_query(item, cond) if isinstance(cond, dict) else item == cond)
                ])

    def _upsert(self, query: dict, update: dict) -> dict:
        doc = {
            key: copy.deepcopy(value)
            for key, value in query.items()
            if not key.startswith("$") and not _is_operator_dict(value)
        }
        self._apply_update(doc, update, inserting=True)
        self.counter += 1
        doc["_id"] = f"mock_id_{self.counter}"
        self.docs.append(doc)
        return doc

    async def find_one(self, query: dict = None, *args, **kwargs):
        for doc in self.docs:
            if match_query(doc, query):
                return copy.deepcopy(doc)
        return None

    def find(self, query: dict = None, *args, **kwargs):
        return MockCursor([d for d in self.docs if match_query(d, query)])

    def seed(self, doc: dict) -> str:
        """Synchronous insert for fixtures"""
        self.counter += 1
        stored = copy.deepcopy(doc)
        stored.setdefault("_id", f"mock_id_{self.counter}")
        self.docs.append(stored)
        return stored["_id"]

    async def insert_one(self, doc: dict):
        return SimpleNamespace(inserted_id=self.seed(doc))

    async def update_one(self, query: dict, update: dict, upsert: bool = False, **kwargs):
        for doc in self.docs:
            if match_query(doc, query):
                before = copy.deepcopy(doc)
                self._apply_update(doc, update)
                return SimpleNamespace(
                    matched_count=1,
                    modified_count=int(doc != before),
                    upserted_id=None
                )
        if upsert:
            doc = self._upsert(query, update)
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=doc["_id"])
        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)

    async def update_many(self, query: dict, update: dict, **kwargs):
        modified = 0
        for doc in self.docs:
            if match_query(doc, query):
                before = copy.deepcopy(doc)
                self._apply_update(doc, update)
                modified += int(doc != before)
        return SimpleNamespace(matched_count=modified, modified_count=modified)

    async def find_one_and_update(
        self,
        query: dict,
        update: dict,
        return_document: bool = False,
        upsert: bool = False,
        **kwargs
    ):
        for doc in self.docs:
            if match_query(doc, query):
                before = copy.deepcopy(doc)
                self._apply_update(doc, update)
                return copy.deepcopy(doc) if return_document else before
        if upsert:
            doc = self._upsert(query, update)
            return copy.deepcopy(doc) if return_document else None
        return None

    async def delete_one(self, query: dict):
        for index, doc in enumerate(self.docs):
            if match_query(doc, query):
                del self.docs[index]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def delete_many(self, query: dict):
        keep = [d for d in self.docs if not match_query(d, query)]
        deleted = len(self.docs) - len(keep)
        self.docs = keep
        return SimpleNamespace(deleted_count=deleted)

    async def count_documents(self, query: dict = None):
        return sum(1 for d in self.docs if match_query(d, query))

    async def create_index(self, *args, **kwargs):
        return "mock_index"


class MockDatabase:
    """Mock MongoDB database"""

    def __init__(self):
        self._collections = {}

    def __getattr__(self, name: str):
        if name.startswith("_"):
            return super().__getattribute__(name)
        if name not in self._collections:
            self._collections[name] = MockCollection()
        return self._collections[name]


@pytest.fixture
def mock_db():
    """Create a mock database"""
    return MockDatabase()


# ============== Sample data ==============

PASSWORD = "Sup3rSecret!"


@pytest.fixture(scope="session")
def password_hash():
    """bcrypt hash of PASSWORD, computed once"""
    return get_password_hash(PASSWORD)


@pytest.fixture
def sample_owner(password_hash):
    """Business owner user"""
    return {
        "user_id": "usr_owner123",
        "email": "owner@glowstudio.com",
        "password_hash": password_hash,
        "role": "business_owner",
        "business_id": "bus_test123",
        "first_name": "Olivia",
        "last_name": "Owner",
        "phone": "+15551230000",
        "is_active": True,
        "failed_login_attempts": 0,
        "created_at": utc_now(),
        "updated_at": utc_now(),
        "deleted_at": None,
    }


@pytest.fixture
def sample_customer(password_hash):
    """Customer user"""
    return {
        "user_id": "usr_cust123",
        "email": "casey@example.com",
        "password_hash": password_hash,
        "role": "customer",
        "business_id": None,
        "first_name": "Casey",
        "last_name": "Customer",
        "phone": "+15559870000",
        "is_active": True,
        "failed_login_attempts": 0,
        "created_at": utc_now(),
        "updated_at": utc_now(),
        "deleted_at": None,
    }


@pytest.fixture
def sample_business():
    """Business open Tuesday to Saturday"""
    return {
        "business_id": "bus_test123",
        "owner_id": "usr_owner123",
        "business_name": "Glow Studio",
        "slug": "glow-studio",
        "category": "hair_salon",
        "description": "Cuts, color and styling",
        "email": "hello@glowstudio.com",
        "phone": "+15551230000",
        "address": "12 Main St",
        "city": "Austin",
        "state": "TX",
        "zip_code": "78701",
        "country": "US",
        "timezone": "America/Chicago",
        "stripe_account_id": None,
        "stripe_onboarded": False,
        "commission_rate": None,
        "is_active": True,
        "created_at": utc_now(),
        "updated_at": utc_now(),
        "deleted_at": None,
    }


@pytest.fixture
def sample_service():
    """60 minute haircut"""
    return {
        "service_id": "svc_cut123",
        "business_id": "bus_test123",
        "name": "Haircut",
        "description": "Wash, cut and style",
        "category": "haircut",
        "price": 100.0,
        "duration_minutes": 60,
        "is_active": True,
        "sort_order": 0,
        "times_booked": 0,
        "created_at": utc_now(),
        "updated_at": utc_now(),
        "deleted_at": None,
    }


def weekly_hours(business_id: str = "bus_test123", days=range(7)) -> list[dict]:
    """09:00-17:00 availability rows"""
    return [
        {
            "availability_id": f"avl_{day}",
            "business_id": business_id,
            "day_of_week": day,
            "start_time": "09:00",
            "end_time": "17:00",
            "is_active": True,
            "created_at": utc_now(),
            "updated_at": utc_now(),
        }
        for day in days
    ]


def future_date(days: int = 7) -> str:
    """A date safely in the future in every timezone"""
    return (utc_now() + timedelta(days=days)).date().isoformat()


@pytest.fixture
def seeded_db(mock_db, sample_owner, sample_customer, sample_business, sample_service):
    """Owner, customer, business open every day and one service"""
    mock_db.users.seed(sample_owner)
    mock_db.users.seed(sample_customer)
    mock_db.businesses.seed(sample_business)
    mock_db.services.seed(sample_service)
    for row in weekly_hours():
        mock_db.availability.seed(row)
    return mock_db


# ============== API client ==============

@pytest.fixture
def owner_headers(sample_owner):
    """Bearer token for the business owner"""
    token = create_access_token(
        sample_owner["user_id"], sample_owner["role"], sample_owner["business_id"]
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer_headers(sample_customer):
    """Bearer token for the customer"""
    token = create_access_token(sample_customer["user_id"], sample_customer["role"])
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(seeded_db):
    """TestClient bound to the seeded mock database"""
    from server import app, auth_rate_limiter, public_rate_limiter

    auth_rate_limiter.reset()
    public_rate_limiter.reset()
    app.dependency_overrides[get_database] = lambda: seeded_db
    # Not entered as a context manager, so the MongoDB lifespan never runs
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_booking(**overrides) -> dict:
    """Booking document with sensible defaults"""
    start_at = overrides.pop("start_at", utc_now() + timedelta(days=3))
    booking = {
        "booking_id": "bkg_test123",
        "business_id": "bus_test123",
        "customer_id": "usr_cust123",
        "customer_name": "Casey Customer",
        "customer_email": "casey@example.com",
        "service_id": "svc_cut123",
        "service_name": "Haircut",
        "staff_id": None,
        "date": start_at.date().isoformat(),
        "start_time": "10:00",
        "end_time": "11:00",
        "start_at": start_at,
        "duration_minutes": 60,
        "subtotal": 100.0,
        "discount_amount": 0.0,
        "total_price": 100.0,
        "status": "confirmed",
        "payment_status": "pending",
        "stripe_payment_intent_id": None,
        "stripe_fee": None,
        "platform_fee": None,
        "business_payout": None,
        "notes": None,
        "created_at": utc_now(),
        "updated_at": utc_now(),
        "deleted_at": None,
    }
    booking.update(overrides)
    return booking
