from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx
from postgrest.exceptions import APIError
from supabase import create_async_client, AsyncClient

from app.core.config import settings
from app.core.errors import (
    ConflictError,
    InternalError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    ReservationAPIError,
    StoreTimeoutError,
)
from app.core.logger import logger

# (field, operator, value); operator is "==" or "!="
Filter = Tuple[str, str, Any]

PERMISSION_CODES = {"42501", "PGRST301", "PGRST302"}
RATE_LIMIT_CODES = {"429", "53300", "53400"}
EXCLUSION_VIOLATION = "23P01"
NO_ROWS = "PGRST116"


def map_store_error(exc: BaseException) -> ReservationAPIError:
    """
    Translates an exception raised by the Supabase SDK into the API taxonomy.
    Already-translated errors pass through untouched.
    """
    if isinstance(exc, ReservationAPIError):
        return exc
    if isinstance(exc, httpx.TimeoutException):
        return StoreTimeoutError(cause=exc)
    if isinstance(exc, APIError):
        code = str(exc.code) if exc.code is not None else ""
        if code in PERMISSION_CODES:
            return PermissionDeniedError(cause=exc)
        if code in RATE_LIMIT_CODES:
            return RateLimitError(cause=exc)
        if code == EXCLUSION_VIOLATION:
            return ConflictError(cause=exc)
        if code == NO_ROWS:
            return NotFoundError(cause=exc)
    return InternalError("Database error", cause=exc)


class DocumentStore(ABC):
    """Collection-scoped access to JSON-like records keyed by ``id``."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Returns the record or None when it does not exist."""

    @abstractmethod
    async def add(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Persists a new record and returns it including its assigned ``id``."""

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        """Returns all records matching every filter."""


class SupabaseStore(DocumentStore):
    _instance = None
    _client: AsyncClient = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(SupabaseStore, cls).__new__(cls)
            # Async client can't be created here, see get_client()
        return cls._instance

    async def get_client(self) -> AsyncClient:
        if not self._client:
            if not settings.has_store_credentials:
                logger.error("❌ Supabase credentials missing, cannot reach the database")
                raise InternalError("Database is not configured")
            try:
                self._client = await create_async_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
                logger.info("✅ Supabase Async client initialized")
            except Exception as e:
                logger.error(f"❌ Failed to initialize Supabase Async: {e}")
                raise InternalError("Database is not available", cause=e)
        return self._client

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        client = await self.get_client()
        try:
            response = await client.table(collection).select("*").eq("id", doc_id).limit(1).execute()
        except Exception as e:
            logger.error(f"❌ DB Error (get {collection}/{doc_id}): {e}")
            raise map_store_error(e)
        return response.data[0] if response.data else None

    async def add(self, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
        client = await self.get_client()
        try:
            response = await client.table(collection).insert(data).execute()
        except Exception as e:
            logger.error(f"❌ DB Error (add {collection}): {e}")
            raise map_store_error(e)
        if not response.data:
            raise InternalError("Database returned no record after insert")
        return response.data[0]

    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        client = await self.get_client()
        request = client.table(collection).select("*")
        for field, op, value in filters:
            if op == "==":
                request = request.eq(field, value)
            elif op == "!=":
                request = request.neq(field, value)
            else:
                raise ValueError(f"Unsupported filter operator: {op}")
        if order_by:
            request = request.order(order_by, desc=descending)

        try:
            response = await request.execute()
        except Exception as e:
            logger.error(f"❌ DB Error (query {collection}): {e}")
            raise map_store_error(e)
        return list(response.data or [])


db_service = SupabaseStore()


def get_store() -> DocumentStore:
    """FastAPI dependency; overridden in tests."""
    return db_service
