# shared fixtures for backend api tests
# provides mock db, test accounts, auth tokens, a fixed clock and httpx test client

import copy
import re
from datetime import datetime, timezone, timedelta
from types import SimpleNamespace

import pytest
import pytest_asyncio
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from httpx import AsyncClient, ASGITransport

from app.main import app
from app.dependencies import get_now
from app.services.db import get_db
from app.services.auth_service import hash_password, issue_tokens


# fixed clock
NOW = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


def days_ago(days: int) -> str:
    return (NOW - timedelta(days=days)).isoformat()


# test ids
THERAPIST_OID = ObjectId("650000000000000000000001")
THERAPIST_2_OID = ObjectId("650000000000000000000002")
PENDING_THERAPIST_OID = ObjectId("650000000000000000000003")
USER_OID = ObjectId("650000000000000000000011")
PRO_USER_OID = ObjectId("650000000000000000000012")
ADMIN_OID = ObjectId("650000000000000000000021")
PUBLIC_EXERCISE_OID = ObjectId("650000000000000000000031")
PREMIUM_EXERCISE_OID = ObjectId("650000000000000000000032")
PRIVATE_EXERCISE_OID = ObjectId("650000000000000000000033")
PRO_EXERCISE_OID = ObjectId("650000000000000000000034")
CONSULTATION_OID = ObjectId("650000000000000000000041")
ROUTINE_OID = ObjectId("650000000000000000000051")
MISSING_OID = ObjectId("650000000000000000000099")

THERAPIST_ID = str(THERAPIST_OID)
THERAPIST_2_ID = str(THERAPIST_2_OID)
PENDING_THERAPIST_ID = str(PENDING_THERAPIST_OID)
USER_ID = str(USER_OID)
PRO_USER_ID = str(PRO_USER_OID)
ADMIN_ID = str(ADMIN_OID)
PUBLIC_EXERCISE_ID = str(PUBLIC_EXERCISE_OID)
PREMIUM_EXERCISE_ID = str(PREMIUM_EXERCISE_OID)
PRIVATE_EXERCISE_ID = str(PRIVATE_EXERCISE_OID)
PRO_EXERCISE_ID = str(PRO_EXERCISE_OID)
CONSULTATION_ID = str(CONSULTATION_OID)
ROUTINE_ID = str(ROUTINE_OID)
MISSING_ID = str(MISSING_OID)

PASSWORD = "hep2go123"
PASSWORD_HASH = hash_password(PASSWORD)


# account documents (as they'd appear from mongodb)

def _therapist(oid, name, email, status, consultation_count=0):
    return {
        "_id": oid,
        "email": email,
        "hashed_password": PASSWORD_HASH,
        "name": name,
        "gender": "female",
        "specializations": ["Orthopedics"],
        "working_at": "Northside Physio",
        "address": "12 Harbour Road",
        "experience": "8 years",
        "status": status,
        "membership": [{"type": "free", "payment_date": None, "status": "active"}],
        "consultation_count": consultation_count,
        "created_at": "2025-01-10T00:00:00+00:00",
        "updated_at": "2025-01-10T00:00:00+00:00",
    }


THERAPIST_DOC = _therapist(THERAPIST_OID, "Dr. Maya Lin", "maya.lin@clinic.com", "active", 1)
THERAPIST_2_DOC = _therapist(THERAPIST_2_OID, "Dr. Omar Haddad", "omar.haddad@clinic.com", "active")
PENDING_THERAPIST_DOC = _therapist(
    PENDING_THERAPIST_OID, "Dr. Ines Moreau", "ines.moreau@clinic.com", "pending"
)

USER_DOC = {
    "_id": USER_OID,
    "email": "sam.reed@email.com",
    "hashed_password": PASSWORD_HASH,
    "full_name": "Sam Reed",
    "profile_image": None,
    "role": "user",
    "membership": [{"type": "free", "payment_date": None, "status": "active"}],
    "creator": {"created_by": "therapist", "created_by_id": THERAPIST_ID},
    "created_at": "2025-02-01T00:00:00+00:00",
    "updated_at": "2025-02-01T00:00:00+00:00",
}

PRO_USER_DOC = {
    "_id": PRO_USER_OID,
    "email": "jo.park@email.com",
    "hashed_password": PASSWORD_HASH,
    "full_name": "Jo Park",
    "profile_image": None,
    "role": "user",
    "membership": [
        {"type": "free", "payment_date": None, "status": "inactive"},
        {"type": "monthly", "payment_date": days_ago(5), "status": "active"},
    ],
    "creator": {"created_by": "self", "created_by_id": None},
    "created_at": "2025-03-01T00:00:00+00:00",
    "updated_at": "2025-03-01T00:00:00+00:00",
}

ADMIN_DOC = {
    "_id": ADMIN_OID,
    "email": "admin@hep2go.app",
    "hashed_password": PASSWORD_HASH,
    "full_name": "HEP2GO Admin",
    "profile_image": None,
    "role": "admin",
    "membership": [{"type": "free", "payment_date": None, "status": "active"}],
    "creator": {"created_by": "self", "created_by_id": None},
    "created_at": "2025-01-01T00:00:00+00:00",
    "updated_at": "2025-01-01T00:00:00+00:00",
}


# catalog documents

def _exercise(oid, title, created_at, created_by="admin", creator_id=ADMIN_ID, type_="public",
              is_premium=False, video="", category="Hip and Knee", sub_category="Open Chain",
              views=0, favorites=0):
    return {
        "_id": oid,
        "title": title,
        "description": f"{title} description",
        "instruction": f"{title} instruction",
        "video": video,
        "image": [f"https://cdn.hep2go.app/images/{oid}.png"],
        "reps": 10,
        "hold": 5,
        "set": 2,
        "perform": {"count": 1, "type": "day"},
        "category": category,
        "sub_category": sub_category,
        "position": "Supine",
        "is_premium": is_premium,
        "custom": {"created_by": created_by, "creator_id": creator_id, "type": type_},
        "views": views,
        "favorites": favorites,
        "created_at": created_at,
        "updated_at": created_at,
    }


PUBLIC_EXERCISE = _exercise(
    PUBLIC_EXERCISE_OID, "Straight Leg Raise", "2025-04-01T00:00:00+00:00",
    video="https://cdn.hep2go.app/videos/slr.mp4", views=40, favorites=3,
)
PREMIUM_EXERCISE = _exercise(
    PREMIUM_EXERCISE_OID, "Pendulum Swing", "2025-04-02T00:00:00+00:00", is_premium=True,
    video="https://cdn.hep2go.app/videos/pendulum.mp4", category="Shoulder", sub_category="Pendulum",
    views=90,
)
PRIVATE_EXERCISE = _exercise(
    PRIVATE_EXERCISE_OID, "Clinic Step Drill", "2025-04-03T00:00:00+00:00",
    created_by="therapist", creator_id=THERAPIST_ID, type_="private",
)
PRO_EXERCISE = _exercise(
    PRO_EXERCISE_OID, "Morning Hip Flow", "2025-04-04T00:00:00+00:00",
    created_by="proUser", creator_id=PRO_USER_ID, views=200,
)

CONSULTATION_DOC = {
    "_id": CONSULTATION_OID,
    "therapist_id": THERAPIST_ID,
    "patient_id": USER_ID,
    "recommended_exercises": [PUBLIC_EXERCISE_ID, PRIVATE_EXERCISE_ID],
    "request": {
        "status": "active",
        "active_days": 14,
        "expires_on": (NOW + timedelta(days=12)).isoformat(),
        "activated_at": days_ago(2),
    },
    "notes": "Twice daily, stop if pain increases.",
    "created_at": days_ago(2),
    "updated_at": days_ago(2),
}

ROUTINE_DOC = {
    "_id": ROUTINE_OID,
    "user_id": USER_ID,
    "exercise_id": PUBLIC_EXERCISE_ID,
    "name": "Morning knee set",
    "reps": 10,
    "hold": 5,
    "complete": 0,
    "perform": {"count": 2, "type": "day"},
    "created_at": days_ago(3),
    "updated_at": days_ago(3),
}


# async cursor mock

class AsyncCursorMock:
    """mock for motor's async cursor — supports async for and chained methods"""

    def __init__(self, data=None):
        self._data = list(data or [])
        self._index = 0

    def sort(self, key_or_list, direction=None):
        keys = key_or_list if isinstance(key_or_list, list) else [(key_or_list, direction or 1)]
        # stable sorts applied from the least significant key
        for key, order in reversed(keys):
            self._data.sort(key=lambda d: _sort_value(_get(d, key)), reverse=order == -1)
        return self

    def skip(self, n):
        self._data = self._data[n:]
        return self

    def limit(self, n):
        if n:
            self._data = self._data[:n]
        return self

    def __aiter__(self):
        self._index = 0
        return self

    async def __anext__(self):
        if self._index >= len(self._data):
            raise StopAsyncIteration
        item = self._data[self._index]
        self._index += 1
        return item

    async def to_list(self, length=None):
        if length is not None:
            return self._data[:length]
        return self._data


def _get(doc, key):
    value = doc
    for part in key.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _sort_value(value):
    return (value is not None, value if value is not None else 0)


def _set(doc, key, value):
    parts = key.split(".")
    target = doc
    for part in parts[:-1]:
        target = target.setdefault(part, {})
    target[parts[-1]] = value


class MockCollection:
    """mock for a motor collection with async methods"""

    def __init__(self, data=None, unique=None):
        self._data = data or []
        self.inserted = []
        # tuples of field names that must be unique together
        self._unique = unique or []

    def find(self, query=None, projection=None):
        results = self._data
        if query:
            results = [d for d in results if self._matches(d, query)]
        return AsyncCursorMock(results)

    async def find_one(self, query=None, projection=None):
        if not query:
            return self._data[0] if self._data else None
        for doc in self._data:
            if self._matches(doc, query):
                return doc
        return None

    async def insert_one(self, doc):
        for fields in self._unique:
            key = {f: _get(doc, f) for f in fields}
            if any(self._matches(d, key) for d in self._data):
                raise DuplicateKeyError(f"E11000 duplicate key error: {key}")
        oid = doc.get("_id", ObjectId())
        doc["_id"] = oid
        self._data.append(doc)
        self.inserted.append(doc)
        return SimpleNamespace(inserted_id=oid)

    async def count_documents(self, query=None):
        if not query:
            return len(self._data)
        return len([d for d in self._data if self._matches(d, query)])

    async def update_one(self, query, update, upsert=False):
        for doc in self._data:
            if self._matches(doc, query):
                self._apply(doc, update)
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def update_many(self, query, update):
        matched = [d for d in self._data if self._matches(d, query)]
        for doc in matched:
            self._apply(doc, update)
        return SimpleNamespace(matched_count=len(matched), modified_count=len(matched))

    async def delete_one(self, query):
        for i, doc in enumerate(self._data):
            if self._matches(doc, query):
                del self._data[i]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def delete_many(self, query):
        kept = [d for d in self._data if not self._matches(d, query)]
        deleted = len(self._data) - len(kept)
        self._data[:] = kept
        return SimpleNamespace(deleted_count=deleted)

    async def create_index(self, *args, **kwargs):
        return "mock_index"

    def _apply(self, doc, update):
        for key, value in update.get("$set", {}).items():
            _set(doc, key, copy.deepcopy(value))
        for key, value in update.get("$inc", {}).items():
            _set(doc, key, (_get(doc, key) or 0) + value)
        for key, value in update.get("$push", {}).items():
            current = _get(doc, key) or []
            _set(doc, key, current + [value])
        for key, value in update.get("$pull", {}).items():
            current = _get(doc, key) or []
            _set(doc, key, [v for v in current if v != value])

    def _matches(self, doc, query):
        """mongodb query matching for the operators the routers use"""
        for key, value in query.items():
            if key == "$or":
                if not any(self._matches(doc, cond) for cond in value):
                    return False
                continue
            if key == "$and":
                if not all(self._matches(doc, cond) for cond in value):
                    return False
                continue
            doc_val = _get(doc, key)
            if isinstance(value, dict) and any(k.startswith("$") for k in value):
                if not self._match_ops(doc_val, value):
                    return False
            elif isinstance(doc_val, list) and not isinstance(value, list):
                if value not in doc_val:
                    return False
            elif doc_val != value:
                return False
        return True

    def _match_ops(self, doc_val, ops):
        for op, arg in ops.items():
            if op == "$in" and doc_val not in arg:
                return False
            if op == "$nin" and doc_val in arg:
                return False
            if op == "$ne" and doc_val == arg:
                return False
            if op == "$exists" and (doc_val is not None) != arg:
                return False
            if op in ("$gt", "$gte", "$lt", "$lte"):
                if doc_val is None:
                    return False
                if op == "$gt" and not doc_val > arg:
                    return False
                if op == "$gte" and not doc_val >= arg:
                    return False
                if op == "$lt" and not doc_val < arg:
                    return False
                if op == "$lte" and not doc_val <= arg:
                    return False
            if op == "$regex":
                flags = re.IGNORECASE if "i" in ops.get("$options", "") else 0
                if doc_val is None or not re.search(arg, str(doc_val), flags):
                    return False
            if op == "$elemMatch":
                if not isinstance(doc_val, list):
                    return False
                if not any(isinstance(item, dict) and self._matches(item, arg) for item in doc_val):
                    return False
        return True


class MockDatabase:
    """mock database that mimics the Database class"""

    def __init__(self):
        self.users = MockCollection(
            copy.deepcopy([USER_DOC, PRO_USER_DOC, ADMIN_DOC]), unique=[("email",)]
        )
        self.therapists = MockCollection(
            copy.deepcopy([THERAPIST_DOC, THERAPIST_2_DOC, PENDING_THERAPIST_DOC]), unique=[("email",)]
        )
        self.exercises = MockCollection(
            copy.deepcopy([PUBLIC_EXERCISE, PREMIUM_EXERCISE, PRIVATE_EXERCISE, PRO_EXERCISE])
        )
        self.consultations = MockCollection(copy.deepcopy([CONSULTATION_DOC]))
        self.favorites = MockCollection([], unique=[("user_id", "exercise_id")])
        self.follows = MockCollection([], unique=[("user_id", "therapist_id")])
        self.routines = MockCollection(copy.deepcopy([ROUTINE_DOC]))
        self.otp_codes = MockCollection([])

    async def connect(self):
        pass

    async def close(self):
        pass

    async def ensure_indexes(self):
        pass


@pytest.fixture
def mock_db():
    """create a fresh mock database for each test"""
    return MockDatabase()


def token_for(subject_id: str, kind: str) -> str:
    return issue_tokens(subject_id, kind)["accessToken"]


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def therapist_headers():
    return bearer(token_for(THERAPIST_ID, "therapist"))


@pytest.fixture
def therapist_2_headers():
    return bearer(token_for(THERAPIST_2_ID, "therapist"))


@pytest.fixture
def pending_therapist_headers():
    return bearer(token_for(PENDING_THERAPIST_ID, "therapist"))


@pytest.fixture
def user_headers():
    return bearer(token_for(USER_ID, "user"))


@pytest.fixture
def pro_headers():
    return bearer(token_for(PRO_USER_ID, "user"))


@pytest.fixture
def admin_headers():
    return bearer(token_for(ADMIN_ID, "admin"))


@pytest.fixture
def clock():
    """mutable clock; tests move clock.now to step through time"""
    return SimpleNamespace(now=NOW)


@pytest_asyncio.fixture
async def client(mock_db, clock):
    """httpx async test client with mocked database and fixed clock"""

    async def override_get_db():
        return mock_db

    async def override_get_now():
        return clock.now

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_now] = override_get_now

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
