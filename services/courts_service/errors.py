"""Business-rule errors raised by the booking core.

Every error carries a stable machine ``code`` and the HTTP status the API
layer should answer with. Only :class:`PaymentRejected` and
:class:`MembershipUnavailable` are worth retrying.
"""

import uuid
from typing import Optional


class BookingError(Exception):
    """Base exception for booking, account and payment rule violations."""

    code = "booking_error"
    status_code = 400
    retryable = False

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)

    def context(self) -> dict:
        """Extra fields for the API error body."""
        return {"retryable": True} if self.retryable else {}


class InvalidInput(BookingError):
    """Invalid input."""

    code = "invalid_input"
    status_code = 422


class WeakPassword(BookingError):
    """Password needs at least 6 characters, one upper-case letter and one symbol."""

    code = "weak_password"
    status_code = 422


class DuplicateUser(BookingError):
    """A user with that email, phone or government id already exists."""

    code = "duplicate_user"
    status_code = 409


class UserNotFound(BookingError):
    """User not found."""

    code = "user_not_found"
    status_code = 404


class InvalidCredentials(BookingError):
    """Invalid credentials."""

    code = "invalid_credentials"
    status_code = 401


class InvalidCode(BookingError):
    """Invalid or expired one-time code."""

    code = "invalid_code"
    status_code = 401


class InvalidUser(BookingError):
    """Reservation target user does not exist."""

    code = "invalid_user"
    status_code = 404


class AccountNotValidated(BookingError):
    """Account must be validated before booking."""

    code = "account_not_validated"
    status_code = 403

    def __init__(self, channel: str):
        self.channel = channel
        super().__init__(f"Validate your {channel} before booking")

    def context(self) -> dict:
        return {"channel": self.channel}


class PastDate(BookingError):
    """Cannot book a date in the past."""

    code = "past_date"


class TooFarAhead(BookingError):
    """Date is beyond the advance booking window."""

    code = "too_far_ahead"


class ResourceUnavailable(BookingError):
    """Court does not exist or is not active."""

    code = "resource_unavailable"
    status_code = 409


class SlotBlocked(BookingError):
    """Slot is blocked by an administrator."""

    code = "slot_blocked"
    status_code = 409


class SlotTaken(BookingError):
    """Slot is already reserved."""

    code = "slot_taken"
    status_code = 409


class UserDoubleBooked(BookingError):
    """You already have a reservation at that time."""

    code = "user_double_booked"
    status_code = 409


class InvalidTransition(BookingError):
    """Operation not allowed in the current status."""

    code = "invalid_transition"
    status_code = 409


class NotFound(BookingError):
    """Not found."""

    code = "not_found"
    status_code = 404


class PaymentRejected(BookingError):
    """Payment was rejected by the gateway."""

    code = "payment_rejected"
    status_code = 402
    retryable = True


class PermissionDenied(BookingError):
    """Administrator privileges required."""

    code = "permission_denied"
    status_code = 403


class CashPaymentFailed(BookingError):
    """Reservation was created but registering the cash payment failed.

    The reservation stays pending payment; ``reservation_id`` points at it and
    ``cause`` is the error raised by the cash registration.
    """

    code = "cash_payment_failed"
    status_code = 409

    def __init__(self, reservation_id: uuid.UUID, cause: BookingError):
        self.reservation_id = reservation_id
        self.cause = cause
        super().__init__(
            f"Reservation {reservation_id} created but cash payment failed: {cause.message}"
        )

    def context(self) -> dict:
        return {"reservation_id": str(self.reservation_id), "cause": self.cause.code}


class MembershipUnavailable(BookingError):
    """Membership registry could not be reached; try again."""

    code = "membership_unavailable"
    status_code = 503
    retryable = True
