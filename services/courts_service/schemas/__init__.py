"""Courts Service schemas package."""

from services.courts_service.schemas.main import (
    AccountValidationRequest,
    AgendaRowResponse,
    AuditEntryResponse,
    BlockCreate,
    BlockResponse,
    BookingConfigResponse,
    BookingConfigUpdate,
    CourtAvailabilityResponse,
    CourtResponse,
    CourtUpdate,
    LoginRequest,
    ManualReservationCreate,
    NotificationResponse,
    OneTimeCodeChallengeResponse,
    OneTimeCodeLoginRequest,
    OneTimeCodeRequest,
    PaymentResponse,
    RegisterRequest,
    ReservationCancel,
    ReservationCreate,
    ReservationDetailResponse,
    ReservationResponse,
    TokenResponse,
    UserResponse,
)

__all__ = [
    "AccountValidationRequest",
    "AgendaRowResponse",
    "AuditEntryResponse",
    "BlockCreate",
    "BlockResponse",
    "BookingConfigResponse",
    "BookingConfigUpdate",
    "CourtAvailabilityResponse",
    "CourtResponse",
    "CourtUpdate",
    "LoginRequest",
    "ManualReservationCreate",
    "NotificationResponse",
    "OneTimeCodeChallengeResponse",
    "OneTimeCodeLoginRequest",
    "OneTimeCodeRequest",
    "PaymentResponse",
    "RegisterRequest",
    "ReservationCancel",
    "ReservationCreate",
    "ReservationDetailResponse",
    "ReservationResponse",
    "TokenResponse",
    "UserResponse",
]
