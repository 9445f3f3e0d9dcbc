"""Helpers shared by the booking engine and the payment processor."""

import uuid
from datetime import date

from services.courts_service.errors import InvalidInput, NotFound, PermissionDenied
from services.courts_service.models import (
    BookingConfig,
    Payment,
    Reservation,
    ReservationStatus,
    User,
)
from services.courts_service.policy import is_valid_slot
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession


async def ensure_admin(session: AsyncSession, actor_id: uuid.UUID) -> User:
    """Capability check for administrative operations, against the stored role."""
    actor = await session.get(User, actor_id)
    if actor is None or not actor.is_admin:
        raise PermissionDenied()
    return actor


async def load_config(session: AsyncSession) -> BookingConfig:
    config = await session.get(BookingConfig, BookingConfig.SINGLETON_ID)
    if config is None:
        raise RuntimeError("Booking config missing; provision the store first")
    return config


async def load_reservation(
    session: AsyncSession, reservation_id: uuid.UUID
) -> tuple[Reservation, Payment]:
    reservation = await session.get(Reservation, reservation_id)
    if reservation is None:
        raise NotFound("Reservation not found")
    result = await session.execute(
        select(Payment).where(Payment.reservation_id == reservation_id)
    )
    payment = result.scalar_one_or_none()
    if payment is None:
        raise NotFound("Payment not found")
    return reservation, payment


def require_slot(slot: str) -> str:
    if not is_valid_slot(slot):
        raise InvalidInput(f"Unknown slot {slot!r}")
    return slot


def describe(reservation: Reservation) -> str:
    return f"{reservation.id} ({reservation.booking_date.isoformat()} {reservation.slot} {reservation.court_id})"


def reservation_payload(reservation: Reservation, **extra) -> dict:
    payload = {
        "reservation_id": str(reservation.id),
        "date": reservation.booking_date.isoformat(),
        "slot": reservation.slot,
        "court_id": reservation.court_id,
    }
    payload.update(extra)
    return payload


def active_on(booking_date: date, slot: str):
    """Filter for the non-cancelled reservations holding a given time slot."""
    return (
        Reservation.booking_date == booking_date,
        Reservation.slot == slot,
        Reservation.status != ReservationStatus.CANCELLED,
    )
