"""Unit tests for the booking engine.

Covers the creation pipeline order, conflict detection under concurrency,
cancellation, no-show refunds, administrative operations and queries.
"""

import asyncio
import uuid
from datetime import timedelta

import pytest
from services.courts_service.errors import (
    AccountNotValidated,
    BookingError,
    CashPaymentFailed,
    InvalidInput,
    InvalidTransition,
    InvalidUser,
    NotFound,
    PastDate,
    PermissionDenied,
    ResourceUnavailable,
    SlotBlocked,
    SlotTaken,
    TooFarAhead,
    UserDoubleBooked,
)
from services.courts_service.models import (
    AuditAction,
    MembershipTier,
    NotificationEvent,
    PaymentMethod,
    PaymentStatus,
    Reservation,
    ReservationStatus,
    SlotState,
)
from tests.factories import (
    insert_user,
    member_gov_id,
    non_member_gov_id,
    register_member,
)


@pytest.fixture
def tomorrow(clock):
    return clock.today + timedelta(days=1)


async def _confirmed(courts, member_id, booking_date, slot="10:00", court_id="c1"):
    reservation_id = await courts.bookings.create_reservation(
        member_id, booking_date, slot, court_id
    )
    await courts.payments.pay_online(member_id, reservation_id)
    return reservation_id


# ---------------------------------------------------------------------------
# Provisioning
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_store_is_seeded(courts, test_settings):
    courts_list = await courts.bookings.list_courts()
    assert [c.id for c in courts_list] == ["c1", "c2", "c3", "c4"]
    assert [c.name for c in courts_list] == ["Court 1", "Court 2", "Court 3", "Court 4"]
    assert all(c.is_active for c in courts_list)

    config = await courts.bookings.get_config()
    assert config.require_email_validation is before
    assert config.require_phone_validation is True
    assert config.price_member == 0
    assert config.price_non_member == 8000
    assert config.currency == "ARS"

    admin = await courts.accounts.find_user(test_settings.ADMIN_EMAIL)
    assert admin.is_admin
    entries = await courts.bookings.list_audit()
    assert [e.action for e in entries] == [AuditAction.SEED]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_provision_is_idempotent(courts, test_settings):
    await courts.store.provision(test_settings, courts.hasher)

    assert len(await courts.bookings.list_courts()) == 4
    assert len(await courts.bookings.list_audit()) == 1


# ---------------------------------------------------------------------------
# create_reservation: pipeline
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_reservation_pending_with_pending_payment(
    courts, tomorrow, notification_sink
):
    member_id = await register_member(courts.accounts, gov_id=non_member_gov_id())
    notification_sink.sent.clear()

    reservation_id = await courts.bookings.create_reservation(
        member_id, tomorrow, "10:00", "c1"
    )

    detail = await courts.bookings.get_reservation(reservation_id)
    assert detail.reservation.status == ReservationStatus.PENDING_PAYMENT
    assert detail.reservation.price == 8000
    assert detail.reservation.created_by == member_id
    assert detail.payment.status == PaymentStatus.PENDING
    assert detail.payment.method == PaymentMethod.UNSET
    assert detail.payment.amount == 8000
    assert detail.payment.currency == "ARS"

    assert notification_sink.events() == [NotificationEvent.RESERVATION_CREATED.value]
    payload = notification_sink.sent[0]["payload"]
    assert payload["reservation_id"] == str(reservation_id)
    assert payload["court_id"] == "c1"
    assert payload["price"] == 8000


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unknown_target_user_is_invalid(courts, tomorrow):
    with pytest.raises(InvalidUser):
        await courts.bookings.create_reservation(uuid.uuid4(), tomorrow, "10:00", "c1")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_email_validation_checked_before_phone(courts, tomorrow):
    member_id = await register_member(courts.accounts, validated=False)

    with pytest.raises(AccountNotValidated) as exc_info:
        await courts.bookings.create_reservation(member_id, tomorrow, "10:00", "c1")
    assert exc_info.value.channel == "email"

    await courts.accounts.validate_account(member_id, email_ok=True)
    with pytest.raises(AccountNotValidated) as exc_info:
        await courts.bookings.create_reservation(member_id, tomorrow, "10:00", "c1")
    assert exc_info.value.channel == "phone"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_validation_not_required_when_config_says_so(courts, admin_id, tomorrow):
    member_id = await register_member(courts.accounts, validated=False)
    await courts.bookings.set_config(
        admin_id, {"require_email_validation": False, "require_phone_validation": False}
    )

    reservation_id = await courts.bookings.create_reservation(
        member_id, tomorrow, "10:00", "c1"
    )
    assert reservation_id is not None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_advance_window_seven_days_ok_eight_days_too_far(courts, clock):
    member_id = await register_member(courts.accounts)

    await courts.bookings.create_reservation(
        member_id, clock.today + timedelta(days=7), "10:00", "c1"
    )
    with pytest.raises(TooFarAhead):
        await courts.bookings.create_reservation(
            member_id, clock.today + timedelta(days=8), "10:00", "c1"
        )
    with pytest.raises(PastDate):
        await courts.bookings.create_reservation(
            member_id, clock.today - timedelta(days=1), "10:00", "c1"
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_window_follows_the_injected_clock(courts, clock):
    member_id = await register_member(courts.accounts)
    target = clock.today + timedelta(days=8)

    with pytest.raises(TooFarAhead):
        await courts.bookings.create_reservation(member_id, target, "10:00", "c1")

    clock.today = clock.today + timedelta(days=1)
    await courts.bookings.create_reservation(member_id, target, "10:00", "c1")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_inactive_or_unknown_court_unavailable(courts, admin_id, tomorrow):
    member_id = await register_member(courts.accounts)
    await courts.bookings.set_court_active(admin_id, "c2", False)

    with pytest.raises(ResourceUnavailable):
        await courts.bookings.create_reservation(member_id, tomorrow, "10:00", "c2")
    with pytest.raises(ResourceUnavailable):
        await courts.bookings.create_reservation(member_id, tomorrow, "10:00", "c9")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_blocked_slot(courts, admin_id, clock):
    member_id = await register_member(courts.accounts)
    await courts.bookings.add_block(admin_id, "c1", clock.today, "10:00", "Resurfacing")

    with pytest.raises(SlotBlocked):
        await courts.bookings.create_reservation(member_id, clock.today, "10:00", "c1")
    # Same slot on another court is unaffected.
    await courts.bookings.create_reservation(member_id, clock.today, "10:00", "c2")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_slot_taken_and_user_double_booked(courts, tomorrow):
    first = await register_member(courts.accounts)
    second = await register_member(courts.accounts)
    await courts.bookings.create_reservation(first, tomorrow, "10:00", "c1")

    with pytest.raises(SlotTaken):
        await courts.bookings.create_reservation(second, tomorrow, "10:00", "c1")
    with pytest.raises(UserDoubleBooked):
        await courts.bookings.create_reservation(first, tomorrow, "10:00", "c3")

    # Different slot is fine.
    await courts.bookings.create_reservation(first, tomorrow, "11:00", "c3")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_first_failing_check_wins(courts, admin_id, clock):
    """An unvalidated user on a blocked, inactive court too far ahead sees the validation error."""
    member_id = await register_member(courts.accounts, validated=False)
    far = clock.today + timedelta(days=30)
    await courts.bookings.set_court_active(admin_id, "c1", False)
    await courts.bookings.add_block(admin_id, "c1", far, "10:00")

    with pytest.raises(AccountNotValidated):
        await courts.bookings.create_reservation(member_id, far, "10:00", "c1")

    await courts.accounts.validate_account(member_id, email_ok=True, phone_ok=True)
    with pytest.raises(TooFarAhead):
        await courts.bookings.create_reservation(member_id, far, "10:00", "c1")

    near = clock.today + timedelta(days=2)
    await courts.bookings.add_block(admin_id, "c1", near, "10:00")
    with pytest.raises(ResourceUnavailable):
        await courts.bookings.create_reservation(member_id, near, "10:00", "c1")

    await courts.bookings.set_court_active(admin_id, "c1", True)
    with pytest.raises(SlotBlocked):
        await courts.bookings.create_reservation(member_id, near, "10:00", "c1")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_invalid_slot_label(courts, tomorrow):
    member_id = await register_member(courts.accounts)
    with pytest.raises(InvalidInput):
        await courts.bookings.create_reservation(member_id, tomorrow, "10:30", "c1")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_failed_creation_writes_no_audit_or_notification(
    courts, tomorrow, notification_sink
):
    first = await register_member(courts.accounts)
    second = await register_member(courts.accounts)
    await courts.bookings.create_reservation(first, tomorrow, "10:00", "c1")
    audit_before = len(await courts.bookings.list_audit())
    notifications_before = len(await courts.bookings.list_notifications())
    notification_sink.sent.clear()

    with pytest.raises(SlotTaken):
        await courts.bookings.create_reservation(second, tomorrow, "10:00", "c1")

    assert len(await courts.bookings.list_audit()) == audit_before
    assert len(await courts.bookings.list_notifications()) == notifications_before
    assert notification_sink.sent == []


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_concurrent_creation_for_same_court_slot_exactly_one_wins(courts, tomorrow):
    members = [await register_member(courts.accounts) for _ in range(5)]

    results = await asyncio.gather(
        *(
            courts.bookings.create_reservation(m, tomorrow, "18:00", "c4")
            for m in members
        ),
        return_exceptions=True,
    )

    winners = [r for r in results if isinstance(r, uuid.UUID)]
    losers = [r for r in results if isinstance(r, BookingError)]
    assert len(winners) == 1
    assert len(losers) == 4
    assert all(isinstance(e, SlotTaken) for e in losers)

    day = await courts.bookings.list_day_reservations(tomorrow)
    assert [(r.court_id, r.slot) for r in day] == [("c4", "18:00")]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_concurrent_creation_for_same_user_slot_exactly_one_wins(courts, tomorrow):
    member_id = await register_member(courts.accounts)

    results = await asyncio.gather(
        *(
            courts.bookings.create_reservation(member_id, tomorrow, "09:00", court_id)
            for court_id in ("c1", "c2", "c3", "c4")
        ),
        return_exceptions=True,
    )

    winners = [r for r in results if isinstance(r, uuid.UUID)]
    losers = [r for r in results if isinstance(r, BookingError)]
    assert len(winners) == 1
    assert all(isinstance(e, UserDoubleBooked) for e in losers)
    assert len(losers) == 3


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unique_index_backstops_double_booking(courts, tomorrow):
    """Rows written behind the engine's back still cannot share a court slot."""
    first = await register_member(courts.accounts)
    second = await register_member(courts.accounts)
    await courts.bookings.create_reservation(first, tomorrow, "12:00", "c1")

    with pytest.raises(SlotTaken):
        async with courts.store.transaction() as uow:
            uow.session.add(
                Reservation(
                    user_id=second,
                    created_by=second,
                    booking_date=tomorrow,
                    slot="12:00",
                    court_id="c1",
                    status=ReservationStatus.PENDING_PAYMENT,
                    price=0,
                )
            )


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_member_price_end_to_end(courts, admin_id, tomorrow):
    await courts.bookings.set_config(admin_id, {"price_member": 3000})
    member_id = await register_member(courts.accounts, gov_id=member_gov_id())

    user = await courts.accounts.get_user(member_id)
    assert user.tier == MembershipTier.MEMBER

    reservation_id = await courts.bookings.create_reservation(
        member_id, tomorrow, "10:00", "c1"
    )
    detail = await courts.bookings.get_reservation(reservation_id)
    assert detail.reservation.price == 3000


@pytest.mark.asyncio
@pytest.mark.unit
async def test_price_snapshot_survives_config_change(courts, admin_id, tomorrow):
    member_id = await register_member(courts.accounts, gov_id=non_member_gov_id())
    reservation_id = await courts.bookings.create_reservation(
        member_id, tomorrow, "10:00", "c1"
    )

    await courts.bookings.set_config(admin_id, {"price_non_member": 12000})

    detail = await courts.bookings.get_reservation(reservation_id)
    assert detail.reservation.price == 8000
    assert detail.payment.amount == 8000

    other = await courts.bookings.create_reservation(member_id, tomorrow, "11:00", "c1")
    assert (await courts.bookings.get_reservation(other)).reservation.price == 12000


# ---------------------------------------------------------------------------
# cancel_reservation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancel_frees_the_slot(courts, tomorrow, notification_sink):
    first = await register_member(courts.accounts)
    second = await register_member(courts.accounts)
    reservation_id = await courts.bookings.create_reservation(first, tomorrow, "10:00", "c1")
    notification_sink.sent.clear()

    reservation = await courts.bookings.cancel_reservation(first, reservation_id, " rain ")
    assert reservation.status == ReservationStatus.CANCELLED
    assert reservation.cancel_reason == "rain"
    assert notification_sink.events() == [NotificationEvent.CANCELLATION.value]

    # Slot can be booked again, by anyone.
    await courts.bookings.create_reservation(second, tomorrow, "10:00", "c1")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancel_confirmed_reservation(courts, tomorrow):
    member_id = await register_member(courts.accounts, gov_id=non_member_gov_id())
    reservation_id = await _confirmed(courts, member_id, tomorrow)

    reservation = await courts.bookings.cancel_reservation(member_id, reservation_id)
    assert reservation.status == ReservationStatus.CANCELLED
    assert reservation.cancel_reason is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_recancel_is_a_silent_noop(courts, tomorrow, notification_sink):
    member_id = await register_member(courts.accounts)
    reservation_id = await courts.bookings.create_reservation(
        member_id, tomorrow, "10:00", "c1"
    )
    await courts.bookings.cancel_reservation(member_id, reservation_id, "first")
    audit_count = len(await courts.bookings.list_audit())
    sent = len(notification_sink.sent)

    reservation = await courts.bookings.cancel_reservation(member_id, reservation_id, "again")

    assert reservation.status == ReservationStatus.CANCELLED
    assert reservation.cancel_reason == "first"
    assert len(await courts.bookings.list_audit()) == audit_count
    assert len(notification_sink.sent) == sent


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancel_unknown_reservation(courts):
    with pytest.raises(NotFound):
        await courts.bookings.cancel_reservation(uuid.uuid4(), uuid.uuid4())


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cannot_cancel_no_show(courts, admin_id, tomorrow):
    member_id = await register_member(courts.accounts, gov_id=non_member_gov_id())
    reservation_id = await _confirmed(courts, member_id, tomorrow)
    await courts.bookings.mark_no_show_and_refund_half(admin_id, reservation_id)

    with pytest.raises(InvalidTransition):
        await courts.bookings.cancel_reservation(member_id, reservation_id)


# ---------------------------------------------------------------------------
# mark_no_show_and_refund_half
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_full_lifecycle_pay_then_no_show(courts, admin_id, tomorrow, notification_sink):
    member_id = await register_member(courts.accounts, gov_id=non_member_gov_id())
    reservation_id = await courts.bookings.create_reservation(
        member_id, tomorrow, "20:00", "c3"
    )
    detail = await courts.bookings.get_reservation(reservation_id)
    assert detail.reservation.status == ReservationStatus.PENDING_PAYMENT
    assert detail.payment.status == PaymentStatus.PENDING

    await courts.payments.pay_online(member_id, reservation_id)
    detail = await courts.bookings.get_reservation(reservation_id)
    assert detail.reservation.status == ReservationStatus.CONFIRMED
    assert detail.payment.status == PaymentStatus.APPROVED

    notification_sink.sent.clear()
    result = await courts.bookings.mark_no_show_and_refund_half(admin_id, reservation_id)

    assert result.reservation.status == ReservationStatus.NO_SHOW
    assert result.payment.status == PaymentStatus.REFUNDED_PARTIAL
    assert result.payment.refund_amount == 4000
    assert notification_sink.events() == [
        NotificationEvent.NO_SHOW.value,
        NotificationEvent.REFUND.value,
    ]
    assert notification_sink.sent[1]["payload"]["refund"] == 4000


@pytest.mark.asyncio
@pytest.mark.unit
async def test_refund_rounds_half_up(courts, admin_id, tomorrow):
    await courts.bookings.set_config(admin_id, {"price_non_member": 8001})
    member_id = await register_member(courts.accounts, gov_id=non_member_gov_id())
    reservation_id = await _confirmed(courts, member_id, tomorrow)

    result = await courts.bookings.mark_no_show_and_refund_half(admin_id, reservation_id)
    assert result.payment.refund_amount == 4001


@pytest.mark.asyncio
@pytest.mark.unit
async def test_no_show_twice_is_rejected(courts, admin_id, tomorrow):
    member_id = await register_member(courts.accounts, gov_id=non_member_gov_id())
    reservation_id = await _confirmed(courts, member_id, tomorrow)
    await courts.bookings.mark_no_show_and_refund_half(admin_id, reservation_id)
    audit_count = len(await courts.bookings.list_audit())

    with pytest.raises(InvalidTransition):
        await courts.bookings.mark_no_show_and_refund_half(admin_id, reservation_id)
    assert len(await courts.bookings.list_audit()) == audit_count


@pytest.mark.asyncio
@pytest.mark.unit
async def test_no_show_requires_confirmed(courts, admin_id, tomorrow):
    member_id = await register_member(courts.accounts)
    reservation_id = await courts.bookings.create_reservation(
        member_id, tomorrow, "10:00", "c1"
    )
    with pytest.raises(InvalidTransition):
        await courts.bookings.mark_no_show_and_refund_half(admin_id, reservation_id)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_no_show_requires_admin(courts, tomorrow):
    member_id = await register_member(courts.accounts)
    reservation_id = await _confirmed(courts, member_id, tomorrow)

    with pytest.raises(PermissionDenied):
        await courts.bookings.mark_no_show_and_refund_half(member_id, reservation_id)


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_admin_operations_require_admin(courts, tomorrow):
    member_id = await register_member(courts.accounts)

    with pytest.raises(PermissionDenied):
        await courts.bookings.set_court_active(member_id, "c1", False)
    with pytest.raises(PermissionDenied):
        await courts.bookings.add_block(member_id, "c1", tomorrow, "10:00")
    with pytest.raises(PermissionDenied):
        await courts.bookings.set_config(member_id, {"price_member": 1})
    with pytest.raises(PermissionDenied):
        await courts.bookings.create_manual_reservation(
            member_id, member_id, tomorrow, "10:00", "c1"
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_deactivated_court_keeps_existing_reservations(courts, admin_id, tomorrow):
    member_id = await register_member(courts.accounts)
    reservation_id = await courts.bookings.create_reservation(
        member_id, tomorrow, "10:00", "c1"
    )

    court = await courts.bookings.set_court_active(admin_id, "c1", False)
    assert court.is_active is False

    detail = await courts.bookings.get_reservation(reservation_id)
    assert detail.reservation.status == ReservationStatus.PENDING_PAYMENT
    entries = await courts.bookings.list_audit()
    assert entries[0].action == AuditAction.COURT
    assert entries[0].detail == "c1 active=false"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_set_court_active_unknown_court(courts, admin_id):
    with pytest.raises(NotFound):
        await courts.bookings.set_court_active(admin_id, "c9", False)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_add_and_remove_block(courts, admin_id, tomorrow):
    member_id = await register_member(courts.accounts)
    block_id = await courts.bookings.add_block(admin_id, "c1", tomorrow, "10:00", "")

    block = await courts.bookings.get_block(block_id)
    assert block.reason == "Maintenance"
    assert [b.id for b in await courts.bookings.list_blocks(tomorrow)] == [block_id]

    await courts.bookings.remove_block(admin_id, block_id)
    assert await courts.bookings.list_blocks() == []
    await courts.bookings.create_reservation(member_id, tomorrow, "10:00", "c1")

    actions = [e.action for e in await courts.bookings.list_audit()]
    assert AuditAction.BLOCK in actions
    assert AuditAction.UNBLOCK in actions


@pytest.mark.asyncio
@pytest.mark.unit
async def test_remove_unknown_block(courts, admin_id):
    with pytest.raises(NotFound):
        await courts.bookings.remove_block(admin_id, uuid.uuid4())


@pytest.mark.asyncio
@pytest.mark.unit
async def test_set_config_partial_update_is_audited(courts, admin_id):
    config = await courts.bookings.set_config(admin_id, {"price_member": 500})
    assert config.price_member == 500
    assert config.price_non_member == 8000

    entries = await courts.bookings.list_audit()
    assert entries[0].action == AuditAction.CONFIG
    assert entries[0].detail == "price_member=500"


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize(
    "changes",
    [
        {"price_member": -1},
        {"price_member": None},
        {"unknown_field": True},
        {"currency": "  "},
        {"require_email_validation": None},
        {"require_phone_validation": None},
    ],
)
async def test_set_config_rejects_invalid_changes(courts, admin_id, changes):
    with pytest.raises(InvalidInput):
        await courts.bookings.set_config(admin_id, changes)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_null_validation_flag_leaves_config_untouched(courts, admin_id):
    before = (await courts.bookings.get_config()).require_email_validation

    with pytest.raises(InvalidInput):
        await courts.bookings.set_config(admin_id, {"require_email_validation": None})

    config = await courts.bookings.get_config()
    assert config.require_email_validation is before
    assert (await courts.bookings.list_audit())[0].action == AuditAction.SEED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_booking_for_another_user_requires_admin(courts, admin_id, tomorrow):
    member_id = await register_member(courts.accounts)
    other_id = await register_member(courts.accounts)

    with pytest.raises(PermissionDenied):
        await courts.bookings.create_reservation(
            member_id, tomorrow, "10:00", "c1", target_user_id=other_id
        )
    assert await courts.bookings.list_day_reservations(tomorrow) == []

    # Naming yourself as the target is an ordinary booking.
    await courts.bookings.create_reservation(
        member_id, tomorrow, "10:00", "c1", target_user_id=member_id
    )

    reservation_id = await courts.bookings.create_reservation(
        admin_id, tomorrow, "11:00", "c2", target_user_id=other_id
    )
    detail = await courts.bookings.get_reservation(reservation_id)
    assert detail.reservation.user_id == other_id
    assert detail.reservation.created_by == admin_id


# ---------------------------------------------------------------------------
# create_manual_reservation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_manual_reservation_paid_in_cash(courts, admin_id, tomorrow):
    member_id = await register_member(courts.accounts, gov_id=non_member_gov_id())

    reservation_id = await courts.bookings.create_manual_reservation(
        admin_id, member_id, tomorrow, "10:00", "c1", mark_paid_cash=True
    )

    detail = await courts.bookings.get_reservation(reservation_id)
    assert detail.reservation.user_id == member_id
    assert detail.reservation.created_by == admin_id
    assert detail.reservation.status == ReservationStatus.CONFIRMED
    assert detail.payment.method == PaymentMethod.MANUAL_CASH
    assert detail.payment.payment_metadata["cash"]["by"] == str(admin_id)

    actions = [e.action for e in await courts.bookings.list_audit()]
    assert AuditAction.MANUAL_RESERVATION in actions
    assert AuditAction.PAYMENT in actions


@pytest.mark.asyncio
@pytest.mark.unit
async def test_manual_reservation_without_payment_stays_pending(courts, admin_id, tomorrow):
    member_id = await register_member(courts.accounts)

    reservation_id = await courts.bookings.create_manual_reservation(
        admin_id, member_id, tomorrow, "10:00", "c1"
    )

    detail = await courts.bookings.get_reservation(reservation_id)
    assert detail.reservation.status == ReservationStatus.PENDING_PAYMENT


@pytest.mark.asyncio
@pytest.mark.unit
async def test_manual_reservation_follows_the_booking_rules(courts, admin_id, tomorrow):
    member_id = await register_member(courts.accounts, validated=False)

    with pytest.raises(AccountNotValidated):
        await courts.bookings.create_manual_reservation(
            admin_id, member_id, tomorrow, "10:00", "c1"
        )
    with pytest.raises(InvalidUser):
        await courts.bookings.create_manual_reservation(
            admin_id, uuid.uuid4(), tomorrow, "10:00", "c1"
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_manual_reservation_cash_failure_is_reported_distinctly(
    courts, admin_id, tomorrow
):
    member_id = await register_member(courts.accounts)

    async def failing_cash(actor_id, reservation_id):
        raise InvalidTransition("Payment is already approved")

    courts.payments.register_cash_payment = failing_cash

    with pytest.raises(CashPaymentFailed) as exc_info:
        await courts.bookings.create_manual_reservation(
            admin_id, member_id, tomorrow, "10:00", "c1", mark_paid_cash=True
        )

    error = exc_info.value
    assert isinstance(error.cause, InvalidTransition)
    detail = await courts.bookings.get_reservation(error.reservation_id)
    assert detail.reservation.status == ReservationStatus.PENDING_PAYMENT
    assert detail.payment.status == PaymentStatus.PENDING


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_availability_states(courts, admin_id, tomorrow):
    member_id = await register_member(courts.accounts)
    await courts.bookings.create_reservation(member_id, tomorrow, "10:00", "c1")
    await courts.bookings.add_block(admin_id, "c2", tomorrow, "10:00")
    await courts.bookings.set_court_active(admin_id, "c3", False)

    availability = await courts.bookings.get_availability(tomorrow, "10:00")

    assert {a.court_id: a.state for a in availability} == {
        "c1": SlotState.RESERVED,
        "c2": SlotState.BLOCKED,
        "c3": SlotState.INACTIVE,
        "c4": SlotState.AVAILABLE,
    }


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancelled_reservations_do_not_hold_availability(courts, tomorrow):
    member_id = await register_member(courts.accounts)
    reservation_id = await courts.bookings.create_reservation(
        member_id, tomorrow, "10:00", "c1"
    )
    await courts.bookings.cancel_reservation(member_id, reservation_id)

    availability = await courts.bookings.get_availability(tomorrow, "10:00")
    assert availability[0].state == SlotState.AVAILABLE


@pytest.mark.asyncio
@pytest.mark.unit
async def test_agenda_daily_and_weekly(courts, admin_id, clock):
    member_id = await register_member(courts.accounts)
    reservation_id = await courts.bookings.create_reservation(
        member_id, clock.today, "08:00", "c1"
    )
    block_id = await courts.bookings.add_block(admin_id, "c2", clock.today, "08:00")

    daily = await courts.bookings.get_agenda(clock.today, 1)
    assert len(daily) == 14 * 4
    first, second = daily[0], daily[1]
    assert (first.slot, first.court.id) == ("08:00", "c1")
    assert first.reservation.id == reservation_id
    assert second.block.id == block_id
    assert daily[2].reservation is None and daily[2].block is None

    weekly = await courts.bookings.get_agenda(clock.today, 7)
    assert len(weekly) == 7 * 14 * 4
    assert weekly[-1].date == clock.today + timedelta(days=6)

    with pytest.raises(InvalidInput):
        await courts.bookings.get_agenda(clock.today, 3)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_user_reservations_sorted_and_filtered(courts, clock):
    member_id = await register_member(courts.accounts)
    day1 = clock.today + timedelta(days=1)
    day2 = clock.today + timedelta(days=2)
    await courts.bookings.create_reservation(member_id, day2, "09:00", "c1")
    await courts.bookings.create_reservation(member_id, day1, "15:00", "c2")
    await courts.bookings.create_reservation(member_id, day1, "09:00", "c3")
    cancelled = await courts.bookings.create_reservation(member_id, day1, "12:00", "c4")
    await courts.bookings.cancel_reservation(member_id, cancelled)

    mine = await courts.bookings.list_user_reservations(member_id)
    assert [(r.booking_date, r.slot) for r in mine] == [
        (day1, "09:00"),
        (day1, "15:00"),
        (day2, "09:00"),
    ]

    filtered = await courts.bookings.list_user_reservations(member_id, "C2")
    assert [r.court_id for r in filtered] == ["c2"]

    by_name = await courts.bookings.list_user_reservations(member_id, "court 3")
    assert [r.court_id for r in by_name] == ["c3"]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_day_reservations_sorted_by_slot_then_court(courts, tomorrow):
    members = [await register_member(courts.accounts) for _ in range(3)]
    await courts.bookings.create_reservation(members[0], tomorrow, "11:00", "c2")
    await courts.bookings.create_reservation(members[1], tomorrow, "09:00", "c3")
    await courts.bookings.create_reservation(members[2], tomorrow, "11:00", "c1")

    day = await courts.bookings.list_day_reservations(tomorrow)
    assert [(r.slot, r.court_id) for r in day] == [
        ("09:00", "c3"),
        ("11:00", "c1"),
        ("11:00", "c2"),
    ]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reservation_detail_hidden_from_other_members(courts, admin_id, tomorrow):
    owner = await register_member(courts.accounts)
    other = await register_member(courts.accounts)
    reservation_id = await courts.bookings.create_reservation(owner, tomorrow, "10:00", "c1")

    assert (await courts.bookings.get_reservation(reservation_id, viewer_id=owner)).reservation.id == reservation_id
    assert (await courts.bookings.get_reservation(reservation_id, viewer_id=admin_id)).reservation.id == reservation_id
    with pytest.raises(NotFound):
        await courts.bookings.get_reservation(reservation_id, viewer_id=other)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_directly_inserted_user_can_book(courts, tomorrow):
    user = await insert_user(courts.store, tier=MembershipTier.NON_MEMBER)

    reservation_id = await courts.bookings.create_reservation(user.id, tomorrow, "10:00", "c1")
    assert (await courts.bookings.get_reservation(reservation_id)).reservation.price == 8000
