import asyncio
import math
import re
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Dict, List, Optional, TypeVar

from app.core.config import Settings, settings as default_settings
from app.core.errors import (
    ConflictError,
    InternalError,
    NotFoundError,
    ReservationAPIError,
    StoreTimeoutError,
    ValidationError,
)
from app.core.logger import logger
from app.models.reservation_models import (
    Reservation,
    ReservationCreate,
    ReservationStatus,
    ServiceSnapshot,
)
from app.services.db_service import DocumentStore

T = TypeVar("T")

REQUIRED_FIELDS = ("service_id", "provider_id", "date", "start_time", "end_time")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def overlaps(start_a: str, end_a: str, start_b: str, end_b: str) -> bool:
    """
    Half-open interval overlap on zero-padded "HH:MM" strings.
    Touching slots (one ends exactly when the other starts) do not overlap.
    """
    return not (start_a >= end_b or end_a <= start_b)


def normalize_time(value: Any) -> str:
    """'10:00:00' (as Postgres returns a time column) -> '10:00'."""
    text = str(value or "").strip()
    return text[:5]


def parse_price(value: Any) -> float:
    try:
        price = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(price) or price < 0:
        return 0
    return price


def _clean(value: Any) -> str:
    return str(value).strip() if value is not None else ""


class ReservationService:
    def __init__(self, store: DocumentStore, settings: Settings = default_settings):
        self.store = store
        self.settings = settings
        self.reservations = settings.RESERVATIONS_TABLE
        self.services = settings.SERVICES_TABLE

    async def _bounded(self, operation: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(operation, timeout=self.settings.STORE_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            raise StoreTimeoutError()

    # --- list ---

    async def list_reservations(self, user_id: str, provider_id: Optional[str] = None) -> List[Reservation]:
        """
        Returns the user's reservations, newest first, each with a snapshot of
        its service. A failed service lookup only blanks that record's service.
        """
        user_id = _clean(user_id)
        filters = [("client_id", "==", user_id)]
        provider_id = _clean(provider_id)
        if provider_id:
            filters.append(("provider_id", "==", provider_id))

        logger.info(f"🔍 Fetching reservations for user {user_id}")
        try:
            docs = await self._bounded(
                self.store.query(self.reservations, filters, order_by="created_at", descending=True)
            )
        except ReservationAPIError:
            raise
        except Exception as e:
            logger.error(f"❌ Error while retrieving reservations: {e}")
            raise InternalError("Error while retrieving reservations", cause=e)

        if not docs:
            logger.info(f"📭 No reservations found for user {user_id}")
            return []

        service_ids = sorted({_clean(doc.get("service_id")) for doc in docs} - {""})
        snapshots = await asyncio.gather(*(self._service_snapshot(sid) for sid in service_ids))
        by_id = dict(zip(service_ids, snapshots))

        reservations = [
            self._to_reservation(doc, service=by_id.get(_clean(doc.get("service_id"))))
            for doc in docs
        ]
        logger.info(f"✅ {len(reservations)} reservations found")
        return reservations

    async def _service_snapshot(self, service_id: str) -> Optional[ServiceSnapshot]:
        try:
            doc = await self._bounded(self.store.get(self.services, service_id))
        except Exception as e:
            logger.warning(f"⚠️ Could not load service {service_id}: {e}")
            return None
        if not doc:
            return None
        try:
            return ServiceSnapshot(
                title=str(doc.get("title") or ""),
                category=str(doc.get("category") or ""),
                price=parse_price(doc.get("price")),
            )
        except Exception as e:
            logger.warning(f"⚠️ Unusable service record {service_id}: {e}")
            return None

    # --- create ---

    async def create_reservation(self, user_id: str, request: ReservationCreate) -> Reservation:
        """
        Validates the request, checks the slot against every non-cancelled
        reservation of the same service and day, then stores it as pending.
        """
        user_id = _clean(user_id)
        logger.info(f"📥 Reservation request from user {user_id}: {request.model_dump(by_alias=True)}")

        fields = self._validate(request)

        try:
            service = await self._bounded(self.store.get(self.services, fields["service_id"]))
            if not service:
                logger.info(f"🔎 Service not found: {fields['service_id']}")
                raise NotFoundError("Service not found")

            await self._check_conflicts(fields)

            now = datetime.now(timezone.utc).isoformat()
            data = {
                "client_id": user_id,
                **fields,
                "total_price": parse_price(request.total_price),
                "status": ReservationStatus.PENDING.value,
                "created_at": now,
                "updated_at": now,
            }
            doc = await self._bounded(self.store.add(self.reservations, data))
        except ReservationAPIError:
            raise
        except Exception as e:
            logger.error(f"❌ Error while creating the reservation: {e}")
            raise InternalError("Error while creating the reservation", cause=e)

        reservation = self._to_reservation(doc)
        logger.info(f"✅ Reservation {reservation.id} created for user {user_id}")
        return reservation

    def _validate(self, request: ReservationCreate) -> Dict[str, str]:
        fields = {name: _clean(getattr(request, name)) for name in REQUIRED_FIELDS}
        missing = [name for name, value in fields.items() if not value]
        if missing:
            logger.info(f"🚫 Validation failed, missing: {missing}")
            raise ValidationError("serviceId, providerId, date, startTime and endTime are required")

        # Stored dates are matched by exact string, so only the zero-padded form is accepted
        if not DATE_RE.match(fields["date"]):
            raise ValidationError("date must be a valid YYYY-MM-DD date")
        try:
            date.fromisoformat(fields["date"])
        except ValueError:
            raise ValidationError("date must be a valid YYYY-MM-DD date")

        for name in ("start_time", "end_time"):
            if not TIME_RE.match(fields[name]):
                raise ValidationError("startTime and endTime must use the HH:MM format")

        if fields["start_time"] >= fields["end_time"]:
            raise ValidationError("startTime must be before endTime")
        return fields

    async def _check_conflicts(self, fields: Dict[str, str]) -> None:
        # Not atomic with the insert that follows; the Postgres exclusion
        # constraint in sql/schema.sql rejects the loser of a concurrent race.
        existing = await self._bounded(
            self.store.query(
                self.reservations,
                [
                    ("service_id", "==", fields["service_id"]),
                    ("date", "==", fields["date"]),
                    ("status", "!=", ReservationStatus.CANCELLED.value),
                ],
            )
        )
        for doc in existing:
            start, end = normalize_time(doc.get("start_time")), normalize_time(doc.get("end_time"))
            if overlaps(fields["start_time"], fields["end_time"], start, end):
                logger.info(
                    f"⛔ Slot {fields['date']} {fields['start_time']}-{fields['end_time']} "
                    f"conflicts with reservation {doc.get('id')} ({start}-{end})"
                )
                raise ConflictError()

    @staticmethod
    def _to_reservation(doc: Dict[str, Any], service: Optional[ServiceSnapshot] = None) -> Reservation:
        return Reservation(
            id=_clean(doc.get("id")),
            client_id=_clean(doc.get("client_id")),
            service_id=_clean(doc.get("service_id")),
            provider_id=_clean(doc.get("provider_id")),
            date=_clean(doc.get("date")),
            start_time=normalize_time(doc.get("start_time")),
            end_time=normalize_time(doc.get("end_time")),
            total_price=parse_price(doc.get("total_price")),
            status=doc.get("status") or ReservationStatus.PENDING.value,
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
            service=service,
        )
