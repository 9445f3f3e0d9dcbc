"""Administrator endpoints: courts, blocks, config, manual bookings, reports."""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from libs.common.logging import get_logger
from services.courts_service.dependencies import (
    admin_actor_id,
    get_accounts,
    get_bookings,
    get_payments,
)
from services.courts_service.schemas import (
    AgendaRowResponse,
    AuditEntryResponse,
    BlockCreate,
    BlockResponse,
    BookingConfigResponse,
    BookingConfigUpdate,
    CourtResponse,
    CourtUpdate,
    ManualReservationCreate,
    NotificationResponse,
    ReservationDetailResponse,
    ReservationResponse,
    UserResponse,
)
from services.courts_service.services.accounts import AccountService
from services.courts_service.services.bookings import BookingEngine
from services.courts_service.services.payments import PaymentProcessor

router = APIRouter(prefix="/admin", tags=["admin"])
logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Courts and blocks
# ---------------------------------------------------------------------------


@router.patch("/courts/{court_id}", response_model=CourtResponse)
async def update_court(
    court_id: str,
    payload: CourtUpdate,
    admin_id: uuid.UUID = Depends(admin_actor_id),
    bookings: BookingEngine = Depends(get_bookings),
):
    """Activate or deactivate a court. Existing reservations are kept."""
    return await bookings.set_court_active(admin_id, court_id, payload.is_active)


@router.get("/blocks", response_model=list[BlockResponse])
async def list_blocks(
    booking_date: Optional[date] = Query(default=None, alias="date"),
    admin_id: uuid.UUID = Depends(admin_actor_id),
    bookings: BookingEngine = Depends(get_bookings),
):
    return await bookings.list_blocks(booking_date)


@router.post("/blocks", response_model=BlockResponse, status_code=status.HTTP_201_CREATED)
async def create_block(
    payload: BlockCreate,
    admin_id: uuid.UUID = Depends(admin_actor_id),
    bookings: BookingEngine = Depends(get_bookings),
):
    block_id = await bookings.add_block(
        admin_id, payload.court_id, payload.booking_date, payload.slot, payload.reason
    )
    return await bookings.get_block(block_id)


@router.delete("/blocks/{block_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_block(
    block_id: uuid.UUID,
    admin_id: uuid.UUID = Depends(admin_actor_id),
    bookings: BookingEngine = Depends(get_bookings),
):
    await bookings.remove_block(admin_id, block_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


@router.get("/config", response_model=BookingConfigResponse)
async def get_config(
    admin_id: uuid.UUID = Depends(admin_actor_id),
    bookings: BookingEngine = Depends(get_bookings),
):
    return await bookings.get_config()


@router.patch("/config", response_model=BookingConfigResponse)
async def update_config(
    payload: BookingConfigUpdate,
    admin_id: uuid.UUID = Depends(admin_actor_id),
    bookings: BookingEngine = Depends(get_bookings),
):
    """Partial update; prices apply to reservations created afterwards."""
    return await bookings.set_config(admin_id, payload.model_dump(exclude_unset=True))


# ---------------------------------------------------------------------------
# Reservations
# ---------------------------------------------------------------------------


@router.get("/users/lookup", response_model=UserResponse)
async def lookup_user(
    q: str = Query(..., min_length=1),
    admin_id: uuid.UUID = Depends(admin_actor_id),
    accounts: AccountService = Depends(get_accounts),
):
    """Find a member by email, phone or government id."""
    return await accounts.find_user(q)


@router.post(
    "/reservations",
    response_model=ReservationDetailResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_manual_reservation(
    payload: ManualReservationCreate,
    admin_id: uuid.UUID = Depends(admin_actor_id),
    bookings: BookingEngine = Depends(get_bookings),
):
    reservation_id = await bookings.create_manual_reservation(
        admin_id,
        payload.user_id,
        payload.booking_date,
        payload.slot,
        payload.court_id,
        mark_paid_cash=payload.mark_paid_cash,
    )
    detail = await bookings.get_reservation(reservation_id)
    return ReservationDetailResponse.model_validate(detail)


@router.get("/reservations", response_model=list[ReservationResponse])
async def list_day_reservations(
    booking_date: date = Query(..., alias="date"),
    admin_id: uuid.UUID = Depends(admin_actor_id),
    bookings: BookingEngine = Depends(get_bookings),
):
    return await bookings.list_day_reservations(booking_date)


@router.post("/reservations/{reservation_id}/cash", response_model=ReservationDetailResponse)
async def register_cash_payment(
    reservation_id: uuid.UUID,
    admin_id: uuid.UUID = Depends(admin_actor_id),
    bookings: BookingEngine = Depends(get_bookings),
    payments: PaymentProcessor = Depends(get_payments),
):
    await payments.register_cash_payment(admin_id, reservation_id)
    detail = await bookings.get_reservation(reservation_id)
    return ReservationDetailResponse.model_validate(detail)


@router.post(
    "/reservations/{reservation_id}/no-show", response_model=ReservationDetailResponse
)
async def mark_no_show(
    reservation_id: uuid.UUID,
    admin_id: uuid.UUID = Depends(admin_actor_id),
    bookings: BookingEngine = Depends(get_bookings),
):
    """Mark a confirmed reservation as no-show and refund half of its payment."""
    detail = await bookings.mark_no_show_and_refund_half(admin_id, reservation_id)
    return ReservationDetailResponse.model_validate(detail)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


@router.get("/agenda", response_model=list[AgendaRowResponse])
async def get_agenda(
    start: date = Query(...),
    days: int = Query(default=1),
    admin_id: uuid.UUID = Depends(admin_actor_id),
    bookings: BookingEngine = Depends(get_bookings),
):
    """Daily (days=1) or weekly (days=7) grid of court slots."""
    rows = await bookings.get_agenda(start, days)
    return [
        AgendaRowResponse(
            booking_date=row.date,
            slot=row.slot,
            court_id=row.court.id,
            court_name=row.court.name,
            court_active=row.court.is_active,
            block=BlockResponse.model_validate(row.block) if row.block else None,
            reservation=(
                ReservationResponse.model_validate(row.reservation)
                if row.reservation
                else None
            ),
        )
        for row in rows
    ]


@router.get("/audit", response_model=list[AuditEntryResponse])
async def list_audit(
    limit: int = Query(default=200, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    admin_id: uuid.UUID = Depends(admin_actor_id),
    bookings: BookingEngine = Depends(get_bookings),
):
    return await bookings.list_audit(limit=limit, offset=offset)


@router.get("/notifications", response_model=list[NotificationResponse])
async def list_notifications(
    recipient: Optional[str] = Query(default=None),
    limit: int = Query(default=200, ge=1, le=1000),
    admin_id: uuid.UUID = Depends(admin_actor_id),
    bookings: BookingEngine = Depends(get_bookings),
):
    return await bookings.list_notifications(recipient, limit=limit)
