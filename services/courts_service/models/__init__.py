"""Courts Service models package."""

from services.courts_service.models.core import (
    AuditEntry,
    Block,
    BookingConfig,
    Court,
    Notification,
    Payment,
    Reservation,
    User,
)
from services.courts_service.models.enums import (
    PAYMENT_TRANSITIONS,
    RESERVATION_TRANSITIONS,
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

__all__ = [
    "PAYMENT_TRANSITIONS",
    "RESERVATION_TRANSITIONS",
    "AuditAction",
    "AuditEntry",
    "Block",
    "BookingConfig",
    "Court",
    "LoginMode",
    "MembershipTier",
    "Notification",
    "NotificationEvent",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "Reservation",
    "ReservationStatus",
    "SlotState",
    "User",
    "UserRole",
]
