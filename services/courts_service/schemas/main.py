import uuid
from datetime import date, datetime
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field
from services.courts_service.models import (
    AuditAction,
    LoginMode,
    MembershipTier,
    NotificationEvent,
    PaymentMethod,
    PaymentStatus,
    ReservationStatus,
    SlotState,
    UserRole,
)

# Models store the calendar day as ``booking_date``; the API calls it "date".
def _date_in():
    return Field(alias="date")


def _date_out():
    return Field(
        validation_alias=AliasChoices("booking_date", "date"),
        serialization_alias="date",
    )


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=32)
    gov_id: str = Field(..., max_length=32)
    password: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class OneTimeCodeRequest(BaseModel):
    channel: Literal["email", "whatsapp"] = "email"
    destination: str = Field(..., min_length=1)


class OneTimeCodeChallengeResponse(BaseModel):
    channel: str
    destination: str
    expires_in_seconds: int

    model_config = ConfigDict(from_attributes=True)


class OneTimeCodeLoginRequest(BaseModel):
    mode: LoginMode
    identifier: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1, max_length=12)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: uuid.UUID
    role: UserRole


class UserResponse(BaseModel):
    id: uuid.UUID
    role: UserRole
    email: str
    phone: str
    gov_id: str
    tier: MembershipTier
    email_verified: bool
    phone_verified: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AccountValidationRequest(BaseModel):
    email_ok: Optional[bool] = None
    phone_ok: Optional[bool] = None


# ---------------------------------------------------------------------------
# Courts and availability
# ---------------------------------------------------------------------------


class CourtResponse(BaseModel):
    id: str
    name: str
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class CourtUpdate(BaseModel):
    is_active: bool


class CourtAvailabilityResponse(BaseModel):
    court_id: str
    name: str
    state: SlotState

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Reservations and payments
# ---------------------------------------------------------------------------


class ReservationCreate(BaseModel):
    booking_date: date = _date_in()
    slot: str
    court_id: str

    model_config = ConfigDict(populate_by_name=True)


class ManualReservationCreate(BaseModel):
    user_id: uuid.UUID
    booking_date: date = _date_in()
    slot: str
    court_id: str
    mark_paid_cash: bool = False

    model_config = ConfigDict(populate_by_name=True)


class ReservationCancel(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class ReservationResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    created_by: uuid.UUID
    booking_date: date = _date_out()
    slot: str
    court_id: str
    status: ReservationStatus
    price: int
    cancel_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class PaymentResponse(BaseModel):
    id: uuid.UUID
    reservation_id: uuid.UUID
    method: PaymentMethod
    status: PaymentStatus
    amount: int
    currency: str
    refund_amount: Optional[int] = None
    # ORM models expose the SQLAlchemy MetaData as ``metadata``; read the
    # mapped attribute first.
    payment_metadata: dict = Field(
        default_factory=dict,
        validation_alias=AliasChoices("payment_metadata", "metadata"),
        serialization_alias="metadata",
    )
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class ReservationDetailResponse(BaseModel):
    reservation: ReservationResponse
    payment: PaymentResponse

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------


class BlockCreate(BaseModel):
    court_id: str
    booking_date: date = _date_in()
    slot: str
    reason: str = Field(default="", max_length=200)

    model_config = ConfigDict(populate_by_name=True)


class BlockResponse(BaseModel):
    id: uuid.UUID
    court_id: str
    booking_date: date = _date_out()
    slot: str
    reason: str
    created_by: uuid.UUID
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class BookingConfigResponse(BaseModel):
    require_email_validation: bool
    require_phone_validation: bool
    price_member: int
    price_non_member: int
    currency: str
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BookingConfigUpdate(BaseModel):
    require_email_validation: Optional[bool] = None
    require_phone_validation: Optional[bool] = None
    price_member: Optional[int] = Field(default=None, ge=0)
    price_non_member: Optional[int] = Field(default=None, ge=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=8)


class AgendaRowResponse(BaseModel):
    booking_date: date = _date_out()
    slot: str
    court_id: str
    court_name: str
    court_active: bool
    block: Optional[BlockResponse] = None
    reservation: Optional[ReservationResponse] = None

    model_config = ConfigDict(populate_by_name=True)


class AuditEntryResponse(BaseModel):
    id: uuid.UUID
    at: datetime
    actor_id: Optional[uuid.UUID] = None
    action: AuditAction
    detail: str

    model_config = ConfigDict(from_attributes=True)


class NotificationResponse(BaseModel):
    id: uuid.UUID
    at: datetime
    channel: str
    recipient: str
    event: NotificationEvent
    payload: dict

    model_config = ConfigDict(from_attributes=True)
