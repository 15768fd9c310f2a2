from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ReservationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReservationCreate(CamelModel):
    # Everything optional here: missing fields are reported as 400 by the service
    service_id: Optional[str] = None
    provider_id: Optional[str] = None
    date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    total_price: Optional[Any] = None


class ServiceSnapshot(CamelModel):
    title: str = ""
    category: str = ""
    price: float = 0


class Reservation(CamelModel):
    id: str
    client_id: str
    service_id: str = ""
    provider_id: str = ""
    date: str = ""
    start_time: str = ""
    end_time: str = ""
    total_price: float = 0
    status: str = ReservationStatus.PENDING.value
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    service: Optional[ServiceSnapshot] = None


class ReservationListResponse(CamelModel):
    success: bool = True
    reservations: List[Reservation] = Field(default_factory=list)
    message: str


class ReservationCreatedResponse(CamelModel):
    success: bool = True
    reservation_id: str
    reservation: Reservation
    message: str


class ErrorResponse(CamelModel):
    success: bool = False
    error: str
    details: Optional[str] = None


class HealthResponse(BaseModel):
    status: str = "OK"
    timestamp: datetime
