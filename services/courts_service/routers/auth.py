"""Registration, login and account validation endpoints."""

import uuid

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import create_access_token
from libs.common.logging import get_logger
from services.courts_service.dependencies import current_actor_id, get_accounts
from services.courts_service.schemas import (
    AccountValidationRequest,
    LoginRequest,
    OneTimeCodeChallengeResponse,
    OneTimeCodeLoginRequest,
    OneTimeCodeRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from services.courts_service.services.accounts import AccountService

router = APIRouter(prefix="/auth", tags=["auth"])
accounts_router = APIRouter(prefix="/accounts", tags=["accounts"])
logger = get_logger(__name__)


async def _issue_token(accounts: AccountService, user_id: uuid.UUID) -> TokenResponse:
    user = await accounts.get_user(user_id)
    token = create_access_token(
        user_id=str(user.id), email=user.email, role=user.role.value
    )
    return TokenResponse(access_token=token, user_id=user.id, role=user.role)


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    accounts: AccountService = Depends(get_accounts),
):
    """
    Create an account. The membership registry decides the member tier.
    Email and phone start unverified.
    """
    user_id = await accounts.register(
        payload.email, payload.phone, payload.gov_id, payload.password
    )
    return await accounts.get_user(user_id)


@router.post("/login", response_model=TokenResponse)
async def login(
    payload: LoginRequest,
    accounts: AccountService = Depends(get_accounts),
):
    user_id = await accounts.login_with_credentials(payload.email, payload.password)
    return await _issue_token(accounts, user_id)


@router.post(
    "/otp/request",
    response_model=OneTimeCodeChallengeResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def request_one_time_code(
    payload: OneTimeCodeRequest,
    accounts: AccountService = Depends(get_accounts),
):
    """Send a one-time login code by email or WhatsApp."""
    return await accounts.request_one_time_code(payload.channel, payload.destination)


@router.post("/otp/login", response_model=TokenResponse)
async def login_with_one_time_code(
    payload: OneTimeCodeLoginRequest,
    accounts: AccountService = Depends(get_accounts),
):
    user_id = await accounts.login_with_one_time_code(
        payload.mode, payload.identifier, payload.code
    )
    return await _issue_token(accounts, user_id)


@router.get("/me", response_model=UserResponse)
async def get_me(
    user_id: uuid.UUID = Depends(current_actor_id),
    accounts: AccountService = Depends(get_accounts),
):
    return await accounts.get_user(user_id)


@accounts_router.post("/me/validate", response_model=UserResponse)
async def validate_my_account(
    payload: AccountValidationRequest,
    user_id: uuid.UUID = Depends(current_actor_id),
    accounts: AccountService = Depends(get_accounts),
):
    """Record the outcome of the email and/or phone verification."""
    return await accounts.validate_account(user_id, payload.email_ok, payload.phone_ok)
