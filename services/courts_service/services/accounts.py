"""Registration, login and account validation."""

import asyncio
import uuid
from dataclasses import dataclass
from typing import Optional

from libs.auth.passwords import PasswordHasher
from libs.common.logging import get_logger
from services.courts_service.codes import CodeChallengeSink
from services.courts_service.errors import (
    DuplicateUser,
    InvalidCode,
    InvalidCredentials,
    InvalidInput,
    MembershipUnavailable,
    UserNotFound,
)
from services.courts_service.membership import MembershipLookup
from services.courts_service.models import (
    AuditAction,
    LoginMode,
    MembershipTier,
    NotificationEvent,
    User,
)
from services.courts_service.policy import check_password_policy
from services.courts_service.store import DomainStore
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

MIN_GOV_ID_LENGTH = 6


@dataclass(frozen=True)
class OneTimeCodeChallenge:
    """Returned to the caller after a code was sent. Never carries the code."""

    channel: str
    destination: str
    expires_in_seconds: int


def _flag(value: Optional[bool]) -> str:
    return "-" if value is None else str(value).lower()


def normalize_destination(value: str) -> str:
    value = (value or "").strip()
    return value.lower() if "@" in value else value


async def _find_conflicting_user(
    session: AsyncSession, email: str, phone: str, gov_id: str
) -> Optional[User]:
    result = await session.execute(
        select(User)
        .where(or_(User.email == email, User.phone == phone, User.gov_id == gov_id))
        .limit(1)
    )
    return result.scalar_one_or_none()


class AccountService:
    def __init__(
        self,
        store: DomainStore,
        membership: MembershipLookup,
        codes: CodeChallengeSink,
        hasher: PasswordHasher,
        *,
        membership_timeout: float = 10.0,
        code_ttl_seconds: int = 300,
    ):
        self.store = store
        self.membership = membership
        self.codes = codes
        self.hasher = hasher
        self.membership_timeout = membership_timeout
        self.code_ttl_seconds = code_ttl_seconds

    async def register(
        self, email: str, phone: str, gov_id: str, password: str
    ) -> uuid.UUID:
        """
        Create a member account.

        The membership registry decides the tier once, here. The lookup runs
        without holding the store lock; uniqueness is checked again before the
        insert because another registration may have committed meanwhile.
        """
        email = (email or "").strip().lower()
        phone = (phone or "").strip()
        gov_id = (gov_id or "").strip()
        password = password or ""

        if len(gov_id) < MIN_GOV_ID_LENGTH:
            raise InvalidInput(
                f"Government id must have at least {MIN_GOV_ID_LENGTH} characters"
            )
        if "@" not in email:
            raise InvalidInput("Invalid email")
        if not phone:
            raise InvalidInput("Phone is required")
        check_password_policy(password)

        async with self.store.snapshot() as session:
            if await _find_conflicting_user(session, email, phone, gov_id):
                raise DuplicateUser()

        try:
            membership = await asyncio.wait_for(
                self.membership.lookup(gov_id), timeout=self.membership_timeout
            )
        except asyncio.TimeoutError as e:
            logger.warning(f"Membership lookup timed out for gov_id ending {gov_id[-2:]}")
            raise MembershipUnavailable() from e

        tier = MembershipTier.MEMBER if membership.active else MembershipTier.NON_MEMBER
        # Hashing runs in a worker thread, off the event loop.
        password_hash = await asyncio.to_thread(self.hasher.hash, password)

        async with self.store.transaction() as uow:
            if await _find_conflicting_user(uow.session, email, phone, gov_id):
                raise DuplicateUser()

            user = User(
                id=uuid.uuid4(),
                email=email,
                phone=phone,
                gov_id=gov_id,
                tier=tier,
                email_verified=False,
                phone_verified=False,
                password_hash=password_hash,
            )
            uow.session.add(user)
            uow.audit(user.id, AuditAction.REGISTER, f"New user ({tier.value})")
            uow.notify(
                NotificationEvent.ACCOUNT_VALIDATION,
                email,
                {"message": "Account created. Validate your email and phone to book."},
            )

        logger.info(f"Registered user {user.id} as {tier.value}")
        return user.id

    async def login_with_credentials(self, email: str, password: str) -> uuid.UUID:
        email = (email or "").strip().lower()
        async with self.store.snapshot() as session:
            result = await session.execute(select(User).where(User.email == email))
            user = result.scalar_one_or_none()

        if user is None:
            raise UserNotFound()
        if not await asyncio.to_thread(
            self.hasher.verify, password or "", user.password_hash
        ):
            raise InvalidCredentials()

        async with self.store.transaction() as uow:
            uow.audit(user.id, AuditAction.LOGIN, "email+password")
        return user.id

    async def request_one_time_code(
        self, channel: str, destination: str
    ) -> OneTimeCodeChallenge:
        """Send a login code. Succeeds whether or not the destination has an account."""
        destination = normalize_destination(destination)
        await self.codes.issue(channel, destination)
        return OneTimeCodeChallenge(
            channel=channel,
            destination=destination,
            expires_in_seconds=self.code_ttl_seconds,
        )

    async def login_with_one_time_code(
        self, mode: LoginMode, identifier: str, code: str
    ) -> uuid.UUID:
        identifier = normalize_destination(identifier)
        if not await self.codes.verify(identifier, (code or "").strip()):
            raise InvalidCode()

        if mode == LoginMode.PHONE_OTP:
            condition = User.phone == identifier
        else:
            condition = User.email == identifier
        async with self.store.snapshot() as session:
            result = await session.execute(select(User).where(condition))
            user = result.scalar_one_or_none()
        if user is None:
            raise UserNotFound()

        async with self.store.transaction() as uow:
            uow.audit(user.id, AuditAction.LOGIN, mode.value)
        return user.id

    async def validate_account(
        self,
        user_id: uuid.UUID,
        email_ok: Optional[bool] = None,
        phone_ok: Optional[bool] = None,
    ) -> User:
        """Set the verification flags that were given; leave the others alone."""
        async with self.store.transaction() as uow:
            user = await uow.session.get(User, user_id)
            if user is None:
                raise UserNotFound()
            if email_ok is not None:
                user.email_verified = email_ok
            if phone_ok is not None:
                user.phone_verified = phone_ok

            uow.audit(
                user.id,
                AuditAction.ACCOUNT_VALIDATION,
                f"email={_flag(email_ok)} phone={_flag(phone_ok)}",
            )
            uow.notify(
                NotificationEvent.ACCOUNT_VALIDATION,
                user.email,
                {"email_ok": email_ok, "phone_ok": phone_ok},
            )
        return user

    async def get_user(self, user_id: uuid.UUID) -> User:
        async with self.store.snapshot() as session:
            user = await session.get(User, user_id)
        if user is None:
            raise UserNotFound()
        return user

    async def find_user(self, identifier: str) -> User:
        """Look a user up by email, phone or government id."""
        identifier = normalize_destination(identifier)
        async with self.store.snapshot() as session:
            result = await session.execute(
                select(User).where(
                    or_(
                        User.email == identifier,
                        User.phone == identifier,
                        User.gov_id == identifier,
                    )
                )
            )
            user = result.scalars().first()
        if user is None:
            raise UserNotFound()
        return user
