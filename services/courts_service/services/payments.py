"""
Payment processor.

Online payments charge the gateway without holding the store lock, then
re-check the reservation before confirming it: the reservation may have been
cancelled or paid while the charge was in flight.
"""

import asyncio
import uuid
from typing import Any

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.courts_service.errors import InvalidTransition, PaymentRejected
from services.courts_service.gateway import ChargeGateway
from services.courts_service.models import (
    AuditAction,
    NotificationEvent,
    Payment,
    PaymentMethod,
    PaymentStatus,
    Reservation,
    ReservationStatus,
    User,
)
from services.courts_service.services._shared import (
    describe,
    ensure_admin,
    load_reservation,
    reservation_payload,
)
from services.courts_service.store import DomainStore, UnitOfWork

logger = get_logger(__name__)


def _check_payable(reservation: Reservation, payment: Payment) -> None:
    if reservation.status != ReservationStatus.PENDING_PAYMENT:
        raise InvalidTransition(
            f"Reservation is {reservation.status.value}, not pending payment"
        )
    if payment.status != PaymentStatus.PENDING:
        raise InvalidTransition(f"Payment is already {payment.status.value}")


class PaymentProcessor:
    def __init__(
        self,
        store: DomainStore,
        gateway: ChargeGateway,
        *,
        gateway_timeout: float = 30.0,
    ):
        self.store = store
        self.gateway = gateway
        self.gateway_timeout = gateway_timeout

    async def pay_online(self, actor_id: uuid.UUID, reservation_id: uuid.UUID) -> Payment:
        async with self.store.snapshot() as session:
            reservation, payment = await load_reservation(session, reservation_id)
        _check_payable(reservation, payment)

        try:
            result = await asyncio.wait_for(
                self.gateway.charge(payment.amount, payment.currency, reservation.id),
                timeout=self.gateway_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning(f"Gateway timed out charging reservation {reservation_id}")
            raise PaymentRejected("Payment gateway did not answer in time") from e
        except Exception as e:
            logger.error(f"Gateway error charging reservation {reservation_id}: {e}")
            raise PaymentRejected() from e

        if not result.approved:
            logger.info(f"Gateway declined reservation {reservation_id}")
            raise PaymentRejected()

        try:
            async with self.store.transaction() as uow:
                reservation, payment = await load_reservation(uow.session, reservation_id)
                _check_payable(reservation, payment)
                await self._approve(
                    uow,
                    actor_id,
                    reservation,
                    payment,
                    method=PaymentMethod.ONLINE_GATEWAY,
                    metadata={
                        "gateway": {
                            "status": "approved",
                            "reference": result.reference,
                            "at": utc_now().isoformat(),
                        }
                    },
                )
        except InvalidTransition:
            # The charge went through but the reservation moved on meanwhile.
            logger.error(
                f"Charge {result.reference} approved for reservation {reservation_id} "
                "that is no longer payable; needs manual reconciliation"
            )
            raise

        logger.info(f"Online payment approved for reservation {reservation_id}")
        return payment

    async def register_cash_payment(
        self, actor_id: uuid.UUID, reservation_id: uuid.UUID
    ) -> Payment:
        """Confirm a reservation paid in cash at the front desk. Admin only."""
        async with self.store.transaction() as uow:
            await ensure_admin(uow.session, actor_id)
            reservation, payment = await load_reservation(uow.session, reservation_id)
            _check_payable(reservation, payment)
            await self._approve(
                uow,
                actor_id,
                reservation,
                payment,
                method=PaymentMethod.MANUAL_CASH,
                metadata={"cash": {"by": str(actor_id), "at": utc_now().isoformat()}},
            )

        logger.info(f"Cash payment registered for reservation {reservation_id}")
        return payment

    async def _approve(
        self,
        uow: UnitOfWork,
        actor_id: uuid.UUID,
        reservation: Reservation,
        payment: Payment,
        *,
        method: PaymentMethod,
        metadata: dict[str, Any],
    ) -> None:
        payment.status = PaymentStatus.APPROVED
        payment.method = method
        payment.payment_metadata = metadata
        reservation.status = ReservationStatus.CONFIRMED

        owner = await uow.session.get(User, reservation.user_id)
        uow.audit(actor_id, AuditAction.PAYMENT, f"{method.value} approved {describe(reservation)}")
        uow.notify(
            NotificationEvent.PAYMENT_CONFIRMED,
            owner.email,
            reservation_payload(
                reservation,
                amount=payment.amount,
                currency=payment.currency,
                method=method.value,
            ),
        )
