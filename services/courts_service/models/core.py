import uuid
from datetime import date, datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.courts_service.models.enums import (
    AuditAction,
    MembershipTier,
    NotificationEvent,
    PaymentMethod,
    PaymentStatus,
    ReservationStatus,
    UserRole,
    enum_values,
)
from sqlalchemy import JSON, Boolean, Date, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

# Reservations in any of these statuses hold their court slot and their
# member's time slot.
_ACTIVE_RESERVATION = text("status != 'cancelled'")


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    role: Mapped[UserRole] = mapped_column(
        SAEnum(
            UserRole,
            name="user_role_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=UserRole.MEMBER,
        nullable=False,
    )

    email: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    phone: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    gov_id: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)

    # Set once at registration from the membership registry; never updated.
    tier: Mapped[MembershipTier] = mapped_column(
        SAEnum(
            MembershipTier,
            name="membership_tier_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )

    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    phone_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    password_hash: Mapped[str] = mapped_column(String, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __repr__(self):
        return f"<User {self.email} {self.tier.value}>"


class Court(Base):
    __tablename__ = "courts"

    id: Mapped[str] = mapped_column(String(16), primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<Court {self.id} active={self.is_active}>"


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        # One live reservation per court slot, and one per member slot across
        # all courts. Cancelled rows are excluded so the slot can be rebooked.
        Index(
            "uq_reservations_court_slot_active",
            "court_id",
            "booking_date",
            "slot",
            unique=True,
            sqlite_where=_ACTIVE_RESERVATION,
            postgresql_where=_ACTIVE_RESERVATION,
        ),
        Index(
            "uq_reservations_user_slot_active",
            "user_id",
            "booking_date",
            "slot",
            unique=True,
            sqlite_where=_ACTIVE_RESERVATION,
            postgresql_where=_ACTIVE_RESERVATION,
        ),
        Index("ix_reservations_date", "booking_date", "slot"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), index=True, nullable=False
    )
    # Differs from user_id when an administrator books on a member's behalf.
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    booking_date: Mapped[date] = mapped_column(Date, nullable=False)
    slot: Mapped[str] = mapped_column(String(5), nullable=False)
    court_id: Mapped[str] = mapped_column(
        String(16), ForeignKey("courts.id"), nullable=False
    )

    status: Mapped[ReservationStatus] = mapped_column(
        SAEnum(
            ReservationStatus,
            name="reservation_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=ReservationStatus.PENDING_PAYMENT,
        nullable=False,
    )

    # Price snapshot taken at creation; config changes never touch it.
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    cancel_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    @property
    def is_active(self) -> bool:
        return self.status != ReservationStatus.CANCELLED

    def __repr__(self):
        return f"<Reservation {self.id} {self.court_id} {self.booking_date} {self.slot} {self.status.value}>"


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    reservation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("reservations.id"), unique=True, index=True, nullable=False
    )

    method: Mapped[PaymentMethod] = mapped_column(
        SAEnum(
            PaymentMethod,
            name="payment_method_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=PaymentMethod.UNSET,
        nullable=False,
    )
    status: Mapped[PaymentStatus] = mapped_column(
        SAEnum(
            PaymentStatus,
            name="payment_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=PaymentStatus.PENDING,
        nullable=False,
    )

    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False)
    refund_amount: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # "metadata" is reserved by SQLAlchemy's Declarative API, so we map the DB column
    # named "metadata" onto a safe attribute name.
    payment_metadata: Mapped[dict] = mapped_column("metadata", JSON, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    def __repr__(self):
        return f"<Payment {self.id} {self.status.value}>"


class Block(Base):
    """Administrator-imposed unavailability of one court slot."""

    __tablename__ = "blocks"
    __table_args__ = (Index("ix_blocks_court_slot", "court_id", "booking_date", "slot"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    court_id: Mapped[str] = mapped_column(
        String(16), ForeignKey("courts.id"), nullable=False
    )
    booking_date: Mapped[date] = mapped_column(Date, nullable=False)
    slot: Mapped[str] = mapped_column(String(5), nullable=False)
    reason: Mapped[str] = mapped_column(Text, default="", nullable=False)
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )


class AuditEntry(Base):
    __tablename__ = "audit_entries"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, index=True
    )
    actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    action: Mapped[AuditAction] = mapped_column(
        SAEnum(
            AuditAction,
            name="audit_action_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    detail: Mapped[str] = mapped_column(Text, default="", nullable=False)


class Notification(Base):
    """Outbound message record. Written once, never updated."""

    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, index=True
    )
    channel: Mapped[str] = mapped_column(String(32), nullable=False)
    recipient: Mapped[str] = mapped_column(String, index=True, nullable=False)
    event: Mapped[NotificationEvent] = mapped_column(
        SAEnum(
            NotificationEvent,
            name="notification_event_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    payload: Mapped[dict] = mapped_column(JSON, default=dict)


class BookingConfig(Base):
    """Singleton row holding the administrator-editable booking rules."""

    __tablename__ = "booking_config"

    SINGLETON_ID = 1

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=SINGLETON_ID)
    require_email_validation: Mapped[bool] = mapped_column(Boolean, nullable=False)
    require_phone_validation: Mapped[bool] = mapped_column(Boolean, nullable=False)
    price_member: Mapped[int] = mapped_column(Integer, nullable=False)
    price_non_member: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )
