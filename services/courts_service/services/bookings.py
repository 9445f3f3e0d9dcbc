"""
Booking engine.

Creates, cancels and closes reservations, and owns the administrative
operations on courts, blocks and the booking config. Every mutating
operation validates and commits inside one store transaction, so two calls
racing for the same slot are decided by whichever takes the lock first.
"""

import uuid
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Callable, Optional

from libs.common.logging import get_logger
from services.courts_service.audit import list_audit as query_audit
from services.courts_service.errors import (
    AccountNotValidated,
    BookingError,
    CashPaymentFailed,
    InvalidInput,
    InvalidTransition,
    InvalidUser,
    NotFound,
    ResourceUnavailable,
    SlotBlocked,
    SlotTaken,
    UserDoubleBooked,
)
from services.courts_service.models import (
    RESERVATION_TRANSITIONS,
    AuditAction,
    AuditEntry,
    Block,
    BookingConfig,
    Court,
    Notification,
    NotificationEvent,
    Payment,
    PaymentMethod,
    PaymentStatus,
    Reservation,
    ReservationStatus,
    SlotState,
    User,
)
from services.courts_service.policy import (
    DEFAULT_WINDOW_DAYS,
    SLOT_TIMES,
    check_advance_window,
    price_for_tier,
    refund_amount,
)
from services.courts_service.services._shared import (
    active_on,
    describe,
    ensure_admin,
    load_config,
    load_reservation,
    require_slot,
    reservation_payload,
)
from services.courts_service.services.payments import PaymentProcessor
from services.courts_service.store import DomainStore, UnitOfWork
from sqlalchemy import desc, select

logger = get_logger(__name__)

CONFIG_FIELDS = (
    "require_email_validation",
    "require_phone_validation",
    "price_member",
    "price_non_member",
    "currency",
)
AGENDA_SCOPES = (1, 7)


@dataclass
class CourtAvailability:
    court_id: str
    name: str
    state: SlotState


@dataclass
class AgendaRow:
    date: date
    slot: str
    court: Court
    block: Optional[Block]
    reservation: Optional[Reservation]


@dataclass
class ReservationDetail:
    reservation: Reservation
    payment: Payment


class BookingEngine:
    def __init__(
        self,
        store: DomainStore,
        payments: PaymentProcessor,
        *,
        today: Callable[[], date],
        window_days: int = DEFAULT_WINDOW_DAYS,
    ):
        self.store = store
        self.payments = payments
        self.today = today
        self.window_days = window_days

    # ------------------------------------------------------------------
    # Reservations
    # ------------------------------------------------------------------

    async def create_reservation(
        self,
        actor_id: uuid.UUID,
        booking_date: date,
        slot: str,
        court_id: str,
        target_user_id: Optional[uuid.UUID] = None,
    ) -> uuid.UUID:
        require_slot(slot)
        async with self.store.transaction() as uow:
            # Booking on someone else's behalf is an administrative action.
            if target_user_id is not None and target_user_id != actor_id:
                await ensure_admin(uow.session, actor_id)
            reservation = await self._place(
                uow, actor_id, target_user_id or actor_id, booking_date, slot, court_id
            )

        logger.info(f"Reservation created {describe(reservation)}")
        return reservation.id

    async def _place(
        self,
        uow: UnitOfWork,
        actor_id: uuid.UUID,
        user_id: uuid.UUID,
        booking_date: date,
        slot: str,
        court_id: str,
    ) -> Reservation:
        """Run the booking checks in order and stage the reservation.

        The first failing check wins; nothing is staged unless all pass.
        """
        session = uow.session

        user = await session.get(User, user_id)
        if user is None:
            raise InvalidUser()

        config = await load_config(session)
        if config.require_email_validation and not user.email_verified:
            raise AccountNotValidated("email")
        if config.require_phone_validation and not user.phone_verified:
            raise AccountNotValidated("phone")

        check_advance_window(booking_date, self.today(), self.window_days)

        court = await session.get(Court, court_id)
        if court is None or not court.is_active:
            raise ResourceUnavailable()

        blocked = await session.execute(
            select(Block.id)
            .where(
                Block.court_id == court_id,
                Block.booking_date == booking_date,
                Block.slot == slot,
            )
            .limit(1)
        )
        if blocked.first() is not None:
            raise SlotBlocked()

        taken = await session.execute(
            select(Reservation.id)
            .where(Reservation.court_id == court_id, *active_on(booking_date, slot))
            .limit(1)
        )
        if taken.first() is not None:
            raise SlotTaken()

        double = await session.execute(
            select(Reservation.id)
            .where(Reservation.user_id == user.id, *active_on(booking_date, slot))
            .limit(1)
        )
        if double.first() is not None:
            raise UserDoubleBooked()

        price = price_for_tier(
            user.tier,
            price_member=config.price_member,
            price_non_member=config.price_non_member,
        )
        reservation = Reservation(
            id=uuid.uuid4(),
            user_id=user.id,
            created_by=actor_id,
            booking_date=booking_date,
            slot=slot,
            court_id=court_id,
            status=ReservationStatus.PENDING_PAYMENT,
            price=price,
        )
        session.add(reservation)
        # The payment row references the reservation.
        await session.flush()

        payment = Payment(
            id=uuid.uuid4(),
            reservation_id=reservation.id,
            method=PaymentMethod.UNSET,
            status=PaymentStatus.PENDING,
            amount=price,
            currency=config.currency,
            payment_metadata={},
        )
        session.add(payment)

        uow.audit(actor_id, AuditAction.RESERVATION_CREATED, f"Created {describe(reservation)}")
        uow.notify(
            NotificationEvent.RESERVATION_CREATED,
            user.email,
            reservation_payload(reservation, price=price, currency=config.currency),
        )
        return reservation

    async def cancel_reservation(
        self,
        actor_id: uuid.UUID,
        reservation_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> Reservation:
        """
        Cancel a pending or confirmed reservation.

        Cancelling an already-cancelled reservation succeeds without writing
        anything. No-show reservations cannot be cancelled.
        """
        async with self.store.transaction() as uow:
            reservation, _ = await load_reservation(uow.session, reservation_id)
            if reservation.status == ReservationStatus.CANCELLED:
                return reservation
            if ReservationStatus.CANCELLED not in RESERVATION_TRANSITIONS[reservation.status]:
                raise InvalidTransition(
                    f"Cannot cancel a {reservation.status.value} reservation"
                )

            reservation.status = ReservationStatus.CANCELLED
            reservation.cancel_reason = (reason or "").strip() or None

            owner = await uow.session.get(User, reservation.user_id)
            uow.audit(
                actor_id,
                AuditAction.RESERVATION_CANCELLED,
                f"Cancelled {describe(reservation)}"
                + (f": {reservation.cancel_reason}" if reservation.cancel_reason else ""),
            )
            uow.notify(
                NotificationEvent.CANCELLATION,
                owner.email,
                reservation_payload(reservation, reason=reservation.cancel_reason),
            )

        logger.info(f"Reservation cancelled {describe(reservation)}")
        return reservation

    async def mark_no_show_and_refund_half(
        self, actor_id: uuid.UUID, reservation_id: uuid.UUID
    ) -> ReservationDetail:
        """Close a confirmed reservation as a no-show and refund half its payment."""
        async with self.store.transaction() as uow:
            await ensure_admin(uow.session, actor_id)
            reservation, payment = await load_reservation(uow.session, reservation_id)
            if reservation.status != ReservationStatus.CONFIRMED:
                raise InvalidTransition(
                    f"Only confirmed reservations can be marked as no-show, "
                    f"this one is {reservation.status.value}"
                )
            if payment.status != PaymentStatus.APPROVED:
                raise InvalidTransition(f"Payment is {payment.status.value}, not approved")

            refund = refund_amount(payment.amount)
            reservation.status = ReservationStatus.NO_SHOW
            payment.status = PaymentStatus.REFUNDED_PARTIAL
            payment.refund_amount = refund

            owner = await uow.session.get(User, reservation.user_id)
            uow.audit(
                actor_id,
                AuditAction.NO_SHOW,
                f"No-show {describe(reservation)}, refund {refund} {payment.currency}",
            )
            uow.notify(NotificationEvent.NO_SHOW, owner.email, reservation_payload(reservation))
            uow.notify(
                NotificationEvent.REFUND,
                owner.email,
                reservation_payload(reservation, refund=refund, currency=payment.currency),
            )

        logger.info(f"No-show recorded for {describe(reservation)}, refunded {refund}")
        return ReservationDetail(reservation=reservation, payment=payment)

    async def create_manual_reservation(
        self,
        actor_id: uuid.UUID,
        target_user_id: uuid.UUID,
        booking_date: date,
        slot: str,
        court_id: str,
        mark_paid_cash: bool = False,
    ) -> uuid.UUID:
        """
        Book on a member's behalf, optionally registering a cash payment.

        The reservation and the payment are separate commits. If the payment
        step fails the reservation is kept, pending payment, and
        ``CashPaymentFailed`` reports both the reservation id and the cause.
        """
        require_slot(slot)
        async with self.store.transaction() as uow:
            await ensure_admin(uow.session, actor_id)
            reservation = await self._place(
                uow, actor_id, target_user_id, booking_date, slot, court_id
            )
            uow.audit(
                actor_id,
                AuditAction.MANUAL_RESERVATION,
                f"Admin manual reservation {describe(reservation)}",
            )

        logger.info(f"Manual reservation created {describe(reservation)}")
        if not mark_paid_cash:
            return reservation.id

        try:
            await self.payments.register_cash_payment(actor_id, reservation.id)
        except BookingError as e:
            logger.warning(
                f"Cash payment failed for manual reservation {reservation.id}: {e.code}"
            )
            raise CashPaymentFailed(reservation.id, e) from e
        return reservation.id

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    async def set_court_active(
        self, actor_id: uuid.UUID, court_id: str, active: bool
    ) -> Court:
        async with self.store.transaction() as uow:
            await ensure_admin(uow.session, actor_id)
            court = await uow.session.get(Court, court_id)
            if court is None:
                raise NotFound("Court not found")
            court.is_active = active
            uow.audit(actor_id, AuditAction.COURT, f"{court_id} active={str(active).lower()}")
        return court

    async def add_block(
        self,
        actor_id: uuid.UUID,
        court_id: str,
        booking_date: date,
        slot: str,
        reason: str = "",
    ) -> uuid.UUID:
        require_slot(slot)
        reason = (reason or "").strip() or "Maintenance"
        async with self.store.transaction() as uow:
            await ensure_admin(uow.session, actor_id)
            if await uow.session.get(Court, court_id) is None:
                raise NotFound("Court not found")
            block = Block(
                id=uuid.uuid4(),
                court_id=court_id,
                booking_date=booking_date,
                slot=slot,
                reason=reason,
                created_by=actor_id,
            )
            uow.session.add(block)
            uow.audit(
                actor_id,
                AuditAction.BLOCK,
                f"{court_id} {booking_date.isoformat()} {slot} ({reason})",
            )
        return block.id

    async def get_block(self, block_id: uuid.UUID) -> Block:
        async with self.store.snapshot() as session:
            block = await session.get(Block, block_id)
        if block is None:
            raise NotFound("Block not found")
        return block

    async def remove_block(self, actor_id: uuid.UUID, block_id: uuid.UUID) -> None:
        async with self.store.transaction() as uow:
            await ensure_admin(uow.session, actor_id)
            block = await uow.session.get(Block, block_id)
            if block is None:
                raise NotFound("Block not found")
            await uow.session.delete(block)
            uow.audit(actor_id, AuditAction.UNBLOCK, str(block_id))

    async def get_config(self) -> BookingConfig:
        async with self.store.snapshot() as session:
            return await load_config(session)

    async def set_config(self, actor_id: uuid.UUID, changes: dict[str, Any]) -> BookingConfig:
        """Apply a partial config update.

        Unknown keys, nulls and negative prices are rejected.
        """
        unknown = set(changes) - set(CONFIG_FIELDS)
        if unknown:
            raise InvalidInput(f"Unknown config fields: {', '.join(sorted(unknown))}")
        missing = sorted(key for key, value in changes.items() if value is None)
        if missing:
            raise InvalidInput(f"Config fields cannot be null: {', '.join(missing)}")
        for key in ("price_member", "price_non_member"):
            if key in changes and changes[key] < 0:
                raise InvalidInput(f"{key} must be zero or positive")
        if "currency" in changes and not (changes["currency"] or "").strip():
            raise InvalidInput("currency is required")

        async with self.store.transaction() as uow:
            await ensure_admin(uow.session, actor_id)
            config = await load_config(uow.session)
            for key, value in changes.items():
                setattr(config, key, value)
            detail = ", ".join(f"{key}={changes[key]}" for key in CONFIG_FIELDS if key in changes)
            uow.audit(actor_id, AuditAction.CONFIG, detail or "no changes")
        return config

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_courts(self) -> list[Court]:
        async with self.store.snapshot() as session:
            result = await session.execute(select(Court).order_by(Court.id))
            return list(result.scalars().all())

    async def get_availability(
        self, booking_date: date, slot: str
    ) -> list[CourtAvailability]:
        """State of every court for one slot: inactive, then blocked, then reserved."""
        require_slot(slot)
        async with self.store.snapshot() as session:
            courts = (await session.execute(select(Court).order_by(Court.id))).scalars().all()
            blocked = set(
                (
                    await session.execute(
                        select(Block.court_id).where(
                            Block.booking_date == booking_date, Block.slot == slot
                        )
                    )
                ).scalars()
            )
            reserved = set(
                (
                    await session.execute(
                        select(Reservation.court_id).where(*active_on(booking_date, slot))
                    )
                ).scalars()
            )

        availability = []
        for court in courts:
            if not court.is_active:
                state = SlotState.INACTIVE
            elif court.id in blocked:
                state = SlotState.BLOCKED
            elif court.id in reserved:
                state = SlotState.RESERVED
            else:
                state = SlotState.AVAILABLE
            availability.append(CourtAvailability(court_id=court.id, name=court.name, state=state))
        return availability

    async def get_agenda(self, start_date: date, days: int = 1) -> list[AgendaRow]:
        if days not in AGENDA_SCOPES:
            raise InvalidInput("Agenda covers either 1 or 7 days")
        end_date = start_date + timedelta(days=days - 1)

        async with self.store.snapshot() as session:
            courts = (await session.execute(select(Court).order_by(Court.id))).scalars().all()
            blocks = (
                await session.execute(
                    select(Block).where(Block.booking_date.between(start_date, end_date))
                )
            ).scalars().all()
            reservations = (
                await session.execute(
                    select(Reservation).where(
                        Reservation.booking_date.between(start_date, end_date),
                        Reservation.status != ReservationStatus.CANCELLED,
                    )
                )
            ).scalars().all()

        blocks_by_key = {}
        for block in blocks:
            blocks_by_key.setdefault((block.booking_date, block.slot, block.court_id), block)
        reservations_by_key = {
            (r.booking_date, r.slot, r.court_id): r for r in reservations
        }

        rows = []
        for offset in range(days):
            day = start_date + timedelta(days=offset)
            for slot in SLOT_TIMES:
                for court in courts:
                    key = (day, slot, court.id)
                    rows.append(
                        AgendaRow(
                            date=day,
                            slot=slot,
                            court=court,
                            block=blocks_by_key.get(key),
                            reservation=reservations_by_key.get(key),
                        )
                    )
        return rows

    async def get_reservation(
        self, reservation_id: uuid.UUID, viewer_id: Optional[uuid.UUID] = None
    ) -> ReservationDetail:
        """Reservation with its payment.

        With ``viewer_id`` set, reservations of other users are reported as
        not found unless the viewer is an administrator.
        """
        async with self.store.snapshot() as session:
            reservation, payment = await load_reservation(session, reservation_id)
            if viewer_id is not None and reservation.user_id != viewer_id:
                viewer = await session.get(User, viewer_id)
                if viewer is None or not viewer.is_admin:
                    raise NotFound("Reservation not found")
        return ReservationDetail(reservation=reservation, payment=payment)

    async def list_user_reservations(
        self, user_id: uuid.UUID, query: Optional[str] = None
    ) -> list[Reservation]:
        """A user's live reservations by date and slot, optionally text-filtered."""
        async with self.store.snapshot() as session:
            result = await session.execute(
                select(Reservation, Court.name)
                .join(Court, Court.id == Reservation.court_id)
                .where(
                    Reservation.user_id == user_id,
                    Reservation.status != ReservationStatus.CANCELLED,
                )
                .order_by(Reservation.booking_date, Reservation.slot)
            )
            rows = result.all()

        needle = (query or "").strip().lower()
        return [
            reservation
            for reservation, court_name in rows
            if not needle
            or needle
            in " ".join(
                (
                    reservation.booking_date.isoformat(),
                    reservation.slot,
                    court_name,
                    reservation.court_id,
                    reservation.status.value,
                )
            ).lower()
        ]

    async def list_day_reservations(self, booking_date: date) -> list[Reservation]:
        async with self.store.snapshot() as session:
            result = await session.execute(
                select(Reservation)
                .where(Reservation.booking_date == booking_date)
                .order_by(Reservation.slot, Reservation.court_id)
            )
            return list(result.scalars().all())

    async def list_blocks(self, booking_date: Optional[date] = None) -> list[Block]:
        query = select(Block).order_by(Block.booking_date, Block.slot, Block.court_id)
        if booking_date is not None:
            query = query.where(Block.booking_date == booking_date)
        async with self.store.snapshot() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def list_notifications(
        self, recipient: Optional[str] = None, limit: int = 200
    ) -> list[Notification]:
        query = select(Notification).order_by(desc(Notification.at)).limit(limit)
        if recipient:
            query = query.where(Notification.recipient == recipient.strip().lower())
        async with self.store.snapshot() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def list_audit(self, limit: int = 200, offset: int = 0) -> list[AuditEntry]:
        async with self.store.snapshot() as session:
            return await query_audit(session, limit=limit, offset=offset)
