"""Wiring of the booking core and its FastAPI dependencies."""

import uuid
from dataclasses import dataclass
from datetime import date
from functools import partial
from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request, status
from libs.auth.dependencies import get_current_user, require_admin
from libs.auth.models import AuthUser
from libs.auth.passwords import BcryptPasswordHasher, PasswordHasher
from libs.common.config import Settings
from libs.common.datetime_utils import local_today
from libs.db.config import create_engine_from_settings
from services.courts_service.codes import CodeChallengeSink, InMemoryCodeChallengeSink
from services.courts_service.gateway import (
    ChargeGateway,
    DemoChargeGateway,
    HttpChargeGateway,
)
from services.courts_service.membership import (
    HttpMembershipLookup,
    MembershipLookup,
    ParityMembershipLookup,
)
from services.courts_service.notifications import (
    HttpNotificationSink,
    LoggingNotificationSink,
    NotificationDispatcher,
    NotificationSink,
)
from services.courts_service.services.accounts import AccountService
from services.courts_service.services.bookings import BookingEngine
from services.courts_service.services.payments import PaymentProcessor
from services.courts_service.store import DomainStore
from sqlalchemy.ext.asyncio import AsyncEngine


@dataclass
class CourtsServices:
    store: DomainStore
    accounts: AccountService
    bookings: BookingEngine
    payments: PaymentProcessor
    codes: CodeChallengeSink
    hasher: PasswordHasher


def build_services(
    settings: Settings,
    *,
    engine: Optional[AsyncEngine] = None,
    membership: Optional[MembershipLookup] = None,
    gateway: Optional[ChargeGateway] = None,
    sink: Optional[NotificationSink] = None,
    codes: Optional[CodeChallengeSink] = None,
    hasher: Optional[PasswordHasher] = None,
    today: Optional[Callable[[], date]] = None,
) -> CourtsServices:
    """
    Assemble the store, engine and processors.

    Collaborators not passed in are chosen from settings: the HTTP clients
    when their URL is configured, the in-process demo implementations
    otherwise.
    """
    if membership is None:
        membership = (
            HttpMembershipLookup(
                settings.MEMBERSHIP_SERVICE_URL,
                timeout=settings.MEMBERSHIP_TIMEOUT_SECONDS,
            )
            if settings.MEMBERSHIP_SERVICE_URL
            else ParityMembershipLookup()
        )
    if gateway is None:
        gateway = (
            HttpChargeGateway(
                settings.PAYMENT_GATEWAY_URL,
                settings.PAYMENT_GATEWAY_API_KEY,
                timeout=settings.GATEWAY_TIMEOUT_SECONDS,
            )
            if settings.PAYMENT_GATEWAY_URL
            else DemoChargeGateway()
        )
    if sink is None:
        sink = (
            HttpNotificationSink(settings.NOTIFICATIONS_SERVICE_URL)
            if settings.NOTIFICATIONS_SERVICE_URL
            else LoggingNotificationSink()
        )
    codes = codes or InMemoryCodeChallengeSink(ttl_seconds=settings.OTP_TTL_SECONDS)
    hasher = hasher or BcryptPasswordHasher()
    today = today or partial(local_today, settings.TIMEZONE)

    store = DomainStore(
        engine or create_engine_from_settings(settings),
        NotificationDispatcher(sink, settings.NOTIFICATION_CHANNELS),
    )
    payments = PaymentProcessor(
        store, gateway, gateway_timeout=settings.GATEWAY_TIMEOUT_SECONDS
    )
    return CourtsServices(
        store=store,
        accounts=AccountService(
            store,
            membership,
            codes,
            hasher,
            membership_timeout=settings.MEMBERSHIP_TIMEOUT_SECONDS,
            code_ttl_seconds=settings.OTP_TTL_SECONDS,
        ),
        bookings=BookingEngine(
            store, payments, today=today, window_days=settings.BOOKING_WINDOW_DAYS
        ),
        payments=payments,
        codes=codes,
        hasher=hasher,
    )


def get_courts(request: Request) -> CourtsServices:
    return request.app.state.courts


def get_accounts(request: Request) -> AccountService:
    return get_courts(request).accounts


def get_bookings(request: Request) -> BookingEngine:
    return get_courts(request).bookings


def get_payments(request: Request) -> PaymentProcessor:
    return get_courts(request).payments


def _subject_id(user: AuthUser) -> uuid.UUID:
    try:
        return uuid.UUID(user.user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def current_actor_id(user: AuthUser = Depends(get_current_user)) -> uuid.UUID:
    return _subject_id(user)


async def admin_actor_id(user: AuthUser = Depends(require_admin)) -> uuid.UUID:
    return _subject_id(user)
