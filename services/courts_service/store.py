"""
Domain store.

Wraps the async engine with the single write discipline the booking core
relies on: every session scope, read or write, runs under one per-store
``asyncio.Lock``. Validation and mutation of a business operation therefore
see the same state, and no other operation interleaves with them. Callers
must never await an external collaborator while holding a scope.

Audit entries and notification rows are staged on the ``UnitOfWork`` and
committed together with the business change; staged notifications are handed
to the dispatcher only after the commit succeeded.
"""

import asyncio
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from libs.auth.passwords import PasswordHasher
from libs.common.config import Settings
from libs.common.logging import get_logger
from libs.db.base import Base
from services.courts_service.audit import record_audit
from services.courts_service.errors import (
    BookingError,
    DuplicateUser,
    SlotTaken,
    UserDoubleBooked,
)
from services.courts_service.models import (
    AuditAction,
    AuditEntry,
    BookingConfig,
    Court,
    MembershipTier,
    NotificationEvent,
    User,
    UserRole,
)
from services.courts_service.notifications import (
    NotificationDispatcher,
    OutboundNotification,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

logger = get_logger(__name__)

SEED_COURTS: tuple[tuple[str, str], ...] = (
    ("c1", "Court 1"),
    ("c2", "Court 2"),
    ("c3", "Court 3"),
    ("c4", "Court 4"),
)


def translate_integrity_error(exc: IntegrityError) -> Optional[BookingError]:
    """Map a unique-index violation back to the business error it stands for.

    PostgreSQL reports the index name, SQLite the constrained columns.
    """
    message = str(exc.orig)
    if "uq_reservations_user_slot_active" in message or "reservations.user_id" in message:
        return UserDoubleBooked()
    if "uq_reservations_court_slot_active" in message or "reservations.court_id" in message:
        return SlotTaken()
    if "users" in message:
        return DuplicateUser()
    return None


class UnitOfWork:
    """One committed business change plus its audit and notification rows."""

    def __init__(self, session: AsyncSession, dispatcher: NotificationDispatcher):
        self.session = session
        self._dispatcher = dispatcher
        self.outbox: list[OutboundNotification] = []

    def audit(
        self, actor_id: Optional[uuid.UUID], action: AuditAction, detail: str = ""
    ) -> AuditEntry:
        return record_audit(self.session, actor_id, action, detail)

    def notify(
        self,
        event: NotificationEvent,
        recipient: str,
        payload: Optional[dict[str, Any]] = None,
    ) -> None:
        self.outbox.append(
            self._dispatcher.stage(self.session, event, recipient, payload)
        )


class DomainStore:
    def __init__(self, engine: AsyncEngine, dispatcher: NotificationDispatcher):
        self.engine = engine
        self.dispatcher = dispatcher
        self._session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[UnitOfWork]:
        """Serialized read-validate-write scope, committed on clean exit.

        Any exception raised inside the block rolls everything back, audit
        and notification rows included.
        """
        async with self._lock:
            async with self._session_factory() as session:
                uow = UnitOfWork(session, self.dispatcher)
                try:
                    async with session.begin():
                        yield uow
                except IntegrityError as e:
                    mapped = translate_integrity_error(e)
                    if mapped is None:
                        raise
                    logger.info(f"Commit rejected by unique index: {mapped.code}")
                    raise mapped from e

        if uow.outbox:
            await self.dispatcher.deliver(uow.outbox)

    @asynccontextmanager
    async def snapshot(self) -> AsyncIterator[AsyncSession]:
        """Serialized read-only scope. Nothing is committed."""
        async with self._lock:
            async with self._session_factory() as session:
                yield session

    async def provision(self, settings: Settings, hasher: PasswordHasher) -> None:
        """Create the schema and seed courts, config and the administrator.

        Seeding runs once; later calls find the config row and return.
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        # Hashed outside the lock.
        admin_hash = hasher.hash(settings.ADMIN_PASSWORD)

        async with self.transaction() as uow:
            session = uow.session
            if await session.get(BookingConfig, BookingConfig.SINGLETON_ID) is not None:
                return

            session.add_all(
                [Court(id=court_id, name=name, is_active=True) for court_id, name in SEED_COURTS]
            )
            session.add(
                BookingConfig(
                    id=BookingConfig.SINGLETON_ID,
                    require_email_validation=settings.DEFAULT_REQUIRE_EMAIL_VALIDATION,
                    require_phone_validation=settings.DEFAULT_REQUIRE_PHONE_VALIDATION,
                    price_member=settings.DEFAULT_PRICE_MEMBER,
                    price_non_member=settings.DEFAULT_PRICE_NON_MEMBER,
                    currency=settings.DEFAULT_CURRENCY,
                )
            )
            admin = User(
                id=uuid.uuid4(),
                role=UserRole.ADMIN,
                email=settings.ADMIN_EMAIL.strip().lower(),
                phone=settings.ADMIN_PHONE.strip(),
                gov_id=settings.ADMIN_GOV_ID.strip(),
                tier=MembershipTier.MEMBER,
                email_verified=True,
                phone_verified=True,
                password_hash=admin_hash,
            )
            session.add(admin)
            uow.audit(admin.id, AuditAction.SEED, "Initial courts, config and administrator")

        logger.info("Provisioned courts store with %d courts", len(SEED_COURTS))

    async def dispose(self) -> None:
        await self.engine.dispose()
