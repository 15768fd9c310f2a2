import asyncio
import copy
import itertools
from collections import defaultdict

import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.core.errors import AuthError
from app.core.security import IdentityVerifier, get_identity_verifier
from app.main import app
from app.services.db_service import DocumentStore, get_store
from app.services.reservation_service import ReservationService


class FakeStore(DocumentStore):
    """In-memory stand-in for Supabase. Ties in ``order_by`` keep insertion order."""

    def __init__(self):
        self.collections = defaultdict(dict)
        self.failures = {}
        self._ids = itertools.count(1)
        self._seq = {}

    def seed(self, collection, doc_id, **data):
        self.collections[collection][doc_id] = {"id": doc_id, **data}
        self._seq[(collection, doc_id)] = next(self._ids)

    def fail_get(self, collection, doc_id, exc):
        self.failures[(collection, doc_id)] = exc

    def all(self, collection):
        return list(self.collections[collection].values())

    async def get(self, collection, doc_id):
        if (collection, doc_id) in self.failures:
            raise self.failures[(collection, doc_id)]
        doc = self.collections[collection].get(doc_id)
        return copy.deepcopy(doc) if doc else None

    async def add(self, collection, data):
        seq = next(self._ids)
        doc_id = f"{collection[:3]}-{seq}"
        self.collections[collection][doc_id] = {**copy.deepcopy(data), "id": doc_id}
        self._seq[(collection, doc_id)] = seq
        return copy.deepcopy(self.collections[collection][doc_id])

    async def query(self, collection, filters=(), order_by=None, descending=False):
        docs = []
        for doc in self.collections[collection].values():
            matches = True
            for field, op, value in filters:
                if op == "==" and doc.get(field) != value:
                    matches = False
                elif op == "!=" and doc.get(field) == value:
                    matches = False
            if matches:
                docs.append(doc)
        if order_by:
            docs.sort(
                key=lambda d: (d.get(order_by) or "", self._seq[(collection, d["id"])]),
                reverse=descending,
            )
        return copy.deepcopy(docs)


class SlowStore(FakeStore):
    def __init__(self, delay=1.0):
        super().__init__()
        self.delay = delay

    async def query(self, *args, **kwargs):
        await asyncio.sleep(self.delay)
        return await super().query(*args, **kwargs)


class FakeVerifier(IdentityVerifier):
    def __init__(self, tokens=None):
        self.tokens = tokens or {"token-u1": "u1", "token-u2": "u2"}

    async def verify(self, token):
        if token not in self.tokens:
            raise AuthError("Invalid token")
        return self.tokens[token]


@pytest.fixture
def test_settings():
    return Settings(
        SUPABASE_URL="",
        SUPABASE_KEY="",
        STORE_TIMEOUT_SECONDS=0.1,
        ENVIRONMENT="test",
    )


@pytest.fixture
def store():
    fake = FakeStore()
    fake.seed("services", "svc1", title="Massage", category="wellness", price=50)
    fake.seed("services", "svc2", title="Haircut", category="beauty", price=30)
    return fake


@pytest.fixture
def service(store, test_settings):
    return ReservationService(store, test_settings)


@pytest.fixture
def verifier():
    return FakeVerifier()


@pytest.fixture
def client(store, verifier):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_identity_verifier] = lambda: verifier
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_u1():
    return {"Authorization": "Bearer token-u1"}


@pytest.fixture
def auth_u2():
    return {"Authorization": "Bearer token-u2"}


@pytest.fixture
def slow_store():
    fake = SlowStore(delay=1.0)
    fake.seed("services", "svc1", title="Massage", category="wellness", price=50)
    return fake
