"""Enum definitions for courts service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class UserRole(str, enum.Enum):
    MEMBER = "member"
    ADMIN = "admin"


class MembershipTier(str, enum.Enum):
    MEMBER = "member"
    NON_MEMBER = "non_member"


class ReservationStatus(str, enum.Enum):
    PENDING_PAYMENT = "pending_payment"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    REFUNDED_PARTIAL = "refunded_partial"


class PaymentMethod(str, enum.Enum):
    UNSET = "unset"
    ONLINE_GATEWAY = "online_gateway"
    MANUAL_CASH = "manual_cash"


class AuditAction(str, enum.Enum):
    SEED = "seed"
    REGISTER = "register"
    LOGIN = "login"
    ACCOUNT_VALIDATION = "account_validation"
    CONFIG = "config"
    COURT = "court"
    BLOCK = "block"
    UNBLOCK = "unblock"
    RESERVATION_CREATED = "reservation_created"
    RESERVATION_CANCELLED = "reservation_cancelled"
    PAYMENT = "payment"
    NO_SHOW = "no_show"
    MANUAL_RESERVATION = "manual_reservation"


class NotificationEvent(str, enum.Enum):
    ACCOUNT_VALIDATION = "account_validation"
    RESERVATION_CREATED = "reservation_created"
    PAYMENT_CONFIRMED = "payment_confirmed"
    CANCELLATION = "cancellation"
    NO_SHOW = "no_show"
    REFUND = "refund"


class LoginMode(str, enum.Enum):
    EMAIL_OTP = "email_otp"
    PHONE_OTP = "phone_otp"


class SlotState(str, enum.Enum):
    AVAILABLE = "available"
    RESERVED = "reserved"
    BLOCKED = "blocked"
    INACTIVE = "inactive"


# Reservation transitions allowed by the engine. Cancelled and no-show are
# terminal.
RESERVATION_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.PENDING_PAYMENT: frozenset(
        {ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED}
    ),
    ReservationStatus.CONFIRMED: frozenset(
        {ReservationStatus.CANCELLED, ReservationStatus.NO_SHOW}
    ),
    ReservationStatus.CANCELLED: frozenset(),
    ReservationStatus.NO_SHOW: frozenset(),
}

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.APPROVED, PaymentStatus.REJECTED}),
    PaymentStatus.APPROVED: frozenset({PaymentStatus.REFUNDED_PARTIAL}),
    PaymentStatus.REJECTED: frozenset(),
    PaymentStatus.REFUNDED_PARTIAL: frozenset(),
}
