from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.core.security import get_current_user_id
from app.models.reservation_models import (
    ErrorResponse,
    ReservationCreate,
    ReservationCreatedResponse,
    ReservationListResponse,
)
from app.services.db_service import DocumentStore, get_store
from app.services.reservation_service import ReservationService

router = APIRouter()

ERROR_RESPONSES = {
    code: {"model": ErrorResponse}
    for code in (400, 401, 403, 404, 409, 429, 500, 504)
}


def get_reservation_service(store: DocumentStore = Depends(get_store)) -> ReservationService:
    return ReservationService(store)


@router.get("/reservations", response_model=ReservationListResponse, responses=ERROR_RESPONSES)
async def list_reservations(
    provider_id: Optional[str] = Query(None, alias="providerId"),
    user_id: str = Depends(get_current_user_id),
    service: ReservationService = Depends(get_reservation_service),
):
    reservations = await service.list_reservations(user_id, provider_id)
    message = "Reservations retrieved successfully" if reservations else "No reservations found"
    return ReservationListResponse(reservations=reservations, message=message)


@router.post(
    "/reservations",
    response_model=ReservationCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def create_reservation(
    request: ReservationCreate,
    user_id: str = Depends(get_current_user_id),
    service: ReservationService = Depends(get_reservation_service),
):
    reservation = await service.create_reservation(user_id, request)
    return ReservationCreatedResponse(
        reservation_id=reservation.id,
        reservation=reservation,
        message="Reservation created successfully",
    )
