"""Member reservation endpoints."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from libs.common.logging import get_logger
from services.courts_service.dependencies import (
    current_actor_id,
    get_bookings,
    get_payments,
)
from services.courts_service.schemas import (
    ReservationCancel,
    ReservationCreate,
    ReservationDetailResponse,
    ReservationResponse,
)
from services.courts_service.services.bookings import BookingEngine
from services.courts_service.services.payments import PaymentProcessor

router = APIRouter(prefix="/reservations", tags=["reservations"])
logger = get_logger(__name__)


@router.post(
    "",
    response_model=ReservationDetailResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_reservation(
    payload: ReservationCreate,
    user_id: uuid.UUID = Depends(current_actor_id),
    bookings: BookingEngine = Depends(get_bookings),
):
    """Book a court slot for the current user. Payment starts pending."""
    reservation_id = await bookings.create_reservation(
        user_id, payload.booking_date, payload.slot, payload.court_id
    )
    detail = await bookings.get_reservation(reservation_id)
    return ReservationDetailResponse.model_validate(detail)


@router.get("/mine", response_model=list[ReservationResponse])
async def list_my_reservations(
    q: Optional[str] = Query(default=None, max_length=100),
    user_id: uuid.UUID = Depends(current_actor_id),
    bookings: BookingEngine = Depends(get_bookings),
):
    return await bookings.list_user_reservations(user_id, q)


@router.get("/{reservation_id}", response_model=ReservationDetailResponse)
async def get_reservation(
    reservation_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_actor_id),
    bookings: BookingEngine = Depends(get_bookings),
):
    detail = await bookings.get_reservation(reservation_id, viewer_id=user_id)
    return ReservationDetailResponse.model_validate(detail)


@router.post("/{reservation_id}/cancel", response_model=ReservationResponse)
async def cancel_reservation(
    reservation_id: uuid.UUID,
    payload: Optional[ReservationCancel] = None,
    user_id: uuid.UUID = Depends(current_actor_id),
    bookings: BookingEngine = Depends(get_bookings),
):
    # Owners and administrators only; anyone else gets a 404.
    await bookings.get_reservation(reservation_id, viewer_id=user_id)
    return await bookings.cancel_reservation(
        user_id, reservation_id, payload.reason if payload else None
    )


@router.post("/{reservation_id}/pay", response_model=ReservationDetailResponse)
async def pay_reservation(
    reservation_id: uuid.UUID,
    user_id: uuid.UUID = Depends(current_actor_id),
    bookings: BookingEngine = Depends(get_bookings),
    payments: PaymentProcessor = Depends(get_payments),
):
    """Charge the reservation through the online gateway."""
    await bookings.get_reservation(reservation_id, viewer_id=user_id)
    await payments.pay_online(user_id, reservation_id)
    detail = await bookings.get_reservation(reservation_id)
    return ReservationDetailResponse.model_validate(detail)
