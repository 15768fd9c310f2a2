import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock

from postgrest.exceptions import APIError

from app.core.config import Settings
from app.core.errors import (
    ConflictError,
    InternalError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    StoreTimeoutError,
)
from app.services import db_service as db_module
from app.services.db_service import SupabaseStore, map_store_error


@pytest.mark.parametrize("code, expected", [
    ("42501", PermissionDeniedError),
    ("PGRST301", PermissionDeniedError),
    ("429", RateLimitError),
    ("53300", RateLimitError),
    ("23P01", ConflictError),
    ("PGRST116", NotFoundError),
    ("XX000", InternalError),
])
def test_map_postgrest_codes(code, expected):
    error = APIError({"code": code, "message": "nope", "details": None, "hint": None})
    mapped = map_store_error(error)
    assert isinstance(mapped, expected)
    assert mapped.cause is error


def test_map_timeout():
    assert isinstance(map_store_error(httpx.ReadTimeout("slow")), StoreTimeoutError)


def test_map_passthrough_and_unknown():
    conflict = ConflictError()
    assert map_store_error(conflict) is conflict
    assert isinstance(map_store_error(RuntimeError("x")), InternalError)


@pytest.fixture
def supabase_request(monkeypatch):
    """A chainable stand-in for ``client.table(...).select(...)...execute()``."""
    request = MagicMock()
    for method in ("select", "eq", "neq", "order", "limit", "insert"):
        getattr(request, method).return_value = request
    request.execute = AsyncMock(return_value=MagicMock(data=[]))
    client = MagicMock()
    client.table.return_value = request

    store = SupabaseStore()
    monkeypatch.setattr(store, "_client", client)
    return store, client, request


@pytest.mark.asyncio
async def test_query_builds_filters_and_order(supabase_request):
    store, client, request = supabase_request
    request.execute.return_value = MagicMock(data=[{"id": "r1"}])

    docs = await store.query(
        "reservations",
        [("client_id", "==", "u1"), ("status", "!=", "cancelled")],
        order_by="created_at",
        descending=True,
    )

    assert docs == [{"id": "r1"}]
    client.table.assert_called_with("reservations")
    request.eq.assert_called_once_with("client_id", "u1")
    request.neq.assert_called_once_with("status", "cancelled")
    request.order.assert_called_once_with("created_at", desc=True)


@pytest.mark.asyncio
async def test_query_rejects_unknown_operator(supabase_request):
    store, _, _ = supabase_request
    with pytest.raises(ValueError):
        await store.query("reservations", [("date", ">", "2024-01-01")])


@pytest.mark.asyncio
async def test_get_missing_returns_none(supabase_request):
    store, _, request = supabase_request
    assert await store.get("services", "svc1") is None
    request.eq.assert_called_once_with("id", "svc1")


@pytest.mark.asyncio
async def test_add_returns_stored_row(supabase_request):
    store, _, request = supabase_request
    request.execute.return_value = MagicMock(data=[{"id": "r9", "status": "pending"}])

    doc = await store.add("reservations", {"status": "pending"})

    assert doc["id"] == "r9"
    request.insert.assert_called_once_with({"status": "pending"})


@pytest.mark.asyncio
async def test_add_maps_exclusion_violation(supabase_request):
    store, _, request = supabase_request
    request.execute.side_effect = APIError({"code": "23P01", "message": "conflicting key value"})

    with pytest.raises(ConflictError):
        await store.add("reservations", {"status": "pending"})


@pytest.mark.asyncio
async def test_missing_credentials(monkeypatch):
    store = SupabaseStore()
    monkeypatch.setattr(store, "_client", None)
    monkeypatch.setattr(db_module, "settings", Settings(SUPABASE_URL="", SUPABASE_KEY=""))

    with pytest.raises(InternalError):
        await store.get_client()
