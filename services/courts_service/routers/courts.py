"""Court listing and availability endpoints."""

from datetime import date

from fastapi import APIRouter, Depends, Query
from services.courts_service.dependencies import current_actor_id, get_bookings
from services.courts_service.policy import SLOT_TIMES
from services.courts_service.schemas import CourtAvailabilityResponse, CourtResponse
from services.courts_service.services.bookings import BookingEngine

router = APIRouter(tags=["courts"], dependencies=[Depends(current_actor_id)])


@router.get("/courts", response_model=list[CourtResponse])
async def list_courts(bookings: BookingEngine = Depends(get_bookings)):
    return await bookings.list_courts()


@router.get("/slots", response_model=list[str])
async def list_slots():
    """Bookable start times, one hour each."""
    return list(SLOT_TIMES)


@router.get("/availability", response_model=list[CourtAvailabilityResponse])
async def get_availability(
    booking_date: date = Query(..., alias="date"),
    slot: str = Query(...),
    bookings: BookingEngine = Depends(get_bookings),
):
    return await bookings.get_availability(booking_date, slot)
