"""Tests for user and admin cancellation."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import Mock

import pytest
from sqlalchemy import select

from classbook.core.enums import RefundStatus, RejectionReason, ReservationStatus
from classbook.core.ulid_helper import generate_ulid
from classbook.models.cancellation import Cancellation
from classbook.services.availability_cache import CACHE_MISS
from classbook.services.availability_service import AvailabilityService
from classbook.services.cancellation_service import CancellationService
from classbook.services.hold_service import HoldService
from classbook.services.notification_service import Notifier
from classbook.services.refund_gateway import RefundGateway, RefundOutcome


@pytest.fixture
def gateway():
    gateway = Mock(spec=RefundGateway)
    gateway.refund.return_value = RefundOutcome(success=True, reference="rf_1")
    return gateway


@pytest.fixture
def notifier():
    return Mock(spec=Notifier)


@pytest.fixture
def service(db, cache, gateway, notifier):
    return CancellationService(db, cache=cache, refund_gateway=gateway, notifier=notifier)


def _cancellations(db):
    return list(db.execute(select(Cancellation)).unique().scalars().all())


def _hours_from_now(hours):
    return datetime.now(timezone.utc) + timedelta(hours=hours)


class TestCancelReservation:
    def test_early_cancellation_refunds_in_full(
        self, db, service, gateway, make_schedule, make_reservation, user_id
    ):
        schedule = make_schedule(capacity=10, start_at=_hours_from_now(72))
        reservation = make_reservation(schedule, user_id=user_id, student_count=2)

        result = service.cancel_reservation(reservation.id, user_id, reason="Schedule conflict")

        assert result.success is True
        assert result.refund_amount == 100000
        assert result.refund_rate == Decimal("1.0")
        assert result.refund_status == RefundStatus.COMPLETED
        assert result.message == "Reservation cancelled. Refund amount: 100,000"

        db.refresh(reservation)
        db.refresh(schedule)
        assert reservation.status == ReservationStatus.CANCELLED.value
        assert schedule.remaining_seats == 10

        [cancellation] = _cancellations(db)
        db.refresh(cancellation)
        assert cancellation.id == result.cancellation_id
        assert cancellation.cancelled_by_id == user_id
        assert cancellation.reason == "Schedule conflict"
        assert cancellation.refund_amount == 100000
        assert cancellation.refund_status == RefundStatus.COMPLETED.value
        assert cancellation.is_admin_cancellation is False
        gateway.refund.assert_called_once_with(
            reservation_id=reservation.id,
            cancellation_id=cancellation.id,
            amount=100000,
            payment_method="card",
        )

    def test_late_cancellation_for_regular_member(
        self, service, make_schedule, make_reservation, user_id
    ):
        schedule = make_schedule(start_at=_hours_from_now(2))
        reservation = make_reservation(schedule, user_id=user_id, total_price=80000)

        result = service.cancel_reservation(reservation.id, user_id)

        assert result.refund_amount == 40000
        assert result.refund_rate == Decimal("0.5")

    def test_membership_tier_applies(
        self, service, make_class, make_schedule, make_reservation, make_membership, user_id
    ):
        workshop = make_class(class_type="WORKSHOP", price=100000)
        schedule = make_schedule(fitness_class=workshop, start_at=_hours_from_now(30))
        reservation = make_reservation(schedule, user_id=user_id)
        make_membership(user_id, tier="GOLD")

        result = service.cancel_reservation(reservation.id, user_id)

        assert result.refund_amount == 56000

    def test_second_cancel_is_rejected_without_restoring_seats(
        self, db, service, make_schedule, make_reservation, user_id
    ):
        schedule = make_schedule(capacity=10)
        make_reservation(schedule, user_id=generate_ulid(), student_count=3)
        reservation = make_reservation(schedule, user_id=user_id, student_count=2)

        assert service.cancel_reservation(reservation.id, user_id).success is True
        again = service.cancel_reservation(reservation.id, user_id)

        assert again.success is False
        assert again.reason == RejectionReason.ALREADY_CANCELLED
        assert again.message == "This reservation has already been cancelled."
        db.refresh(schedule)
        assert schedule.remaining_seats == 7
        assert len(_cancellations(db)) == 1

    def test_hold_then_cancel_restores_original_seats(
        self, db, cache, service, make_schedule, make_credit, user_id
    ):
        schedule = make_schedule(capacity=6, remaining_seats=4)
        credit = make_credit(user_id, session_count=2)
        hold = HoldService(db, cache=cache).create_temp_reservation(
            schedule.id, user_id, student_count=3
        )
        db.refresh(schedule)
        assert schedule.remaining_seats == 1
        db.refresh(credit)
        assert credit.session_count == 1

        result = service.cancel_reservation(hold.reservation_id, user_id)

        assert result.success is True
        db.refresh(schedule)
        assert schedule.remaining_seats == 4
        db.refresh(credit)
        assert credit.session_count == 2

    def test_other_users_reservation_is_invisible(
        self, db, service, make_schedule, make_reservation, user_id
    ):
        schedule = make_schedule(capacity=10)
        reservation = make_reservation(schedule, user_id=user_id)

        result = service.cancel_reservation(reservation.id, generate_ulid())

        assert result.success is False
        assert result.reason == RejectionReason.NOT_FOUND
        db.refresh(reservation)
        assert reservation.status == ReservationStatus.CONFIRMED.value
        assert _cancellations(db) == []

    def test_started_class_cannot_be_cancelled(
        self, db, service, gateway, make_schedule, make_reservation, user_id
    ):
        schedule = make_schedule(start_at=_hours_from_now(-0.25))
        reservation = make_reservation(schedule, user_id=user_id)

        result = service.cancel_reservation(reservation.id, user_id)

        assert result.success is False
        assert result.reason == RejectionReason.POLICY_DENIED
        assert result.message == "The class has already started and can no longer be cancelled."
        assert _cancellations(db) == []
        gateway.refund.assert_not_called()

    def test_zero_refund_skips_gateway(
        self, db, service, gateway, make_schedule, make_reservation, user_id
    ):
        schedule = make_schedule()
        reservation = make_reservation(schedule, user_id=user_id, total_price=0)

        result = service.cancel_reservation(reservation.id, user_id)

        assert result.success is True
        assert result.refund_amount == 0
        assert result.refund_status == RefundStatus.COMPLETED
        assert result.message == "Reservation cancelled. No refund is due."
        gateway.refund.assert_not_called()

    def test_declined_refund_is_marked_failed(
        self, db, service, gateway, make_schedule, make_reservation, user_id
    ):
        gateway.refund.return_value = RefundOutcome(success=False, error="card expired")
        schedule = make_schedule()
        reservation = make_reservation(schedule, user_id=user_id)

        result = service.cancel_reservation(reservation.id, user_id)

        assert result.success is True
        assert result.refund_status == RefundStatus.FAILED
        [cancellation] = _cancellations(db)
        db.refresh(cancellation)
        assert cancellation.refund_status == RefundStatus.FAILED.value
        db.refresh(reservation)
        assert reservation.status == ReservationStatus.CANCELLED.value

    def test_gateway_error_is_marked_failed(
        self, db, service, gateway, make_schedule, make_reservation, user_id
    ):
        gateway.refund.side_effect = ConnectionError("payment provider unreachable")
        schedule = make_schedule()
        reservation = make_reservation(schedule, user_id=user_id)

        result = service.cancel_reservation(reservation.id, user_id)

        assert result.success is True
        assert result.refund_status == RefundStatus.FAILED

    def test_invalidates_cached_availability(
        self, db, cache, service, make_schedule, make_reservation, user_id
    ):
        schedule = make_schedule(capacity=10)
        reservation = make_reservation(schedule, user_id=user_id)
        AvailabilityService(db, cache=cache).check_schedule_availability(schedule.id)

        service.cancel_reservation(reservation.id, user_id)

        assert cache.get(schedule.id) is CACHE_MISS

    def test_user_cancel_sends_no_notice(
        self, service, notifier, make_schedule, make_reservation, user_id
    ):
        schedule = make_schedule()
        reservation = make_reservation(schedule, user_id=user_id)

        result = service.cancel_reservation(reservation.id, user_id)

        assert result.notification_sent is False
        notifier.notify_cancellation.assert_not_called()


    def test_missing_reason_is_recorded_as_user_request(
        self, db, service, make_schedule, make_reservation, user_id
    ):
        schedule = make_schedule()
        reservation = make_reservation(schedule, user_id=user_id)

        service.cancel_reservation(reservation.id, user_id, reason="")

        [cancellation] = _cancellations(db)
        assert cancellation.reason == "Cancelled at the user's request"


class TestExpiredHolds:
    def test_overdue_hold_is_expired_on_read(
        self, db, service, make_schedule, make_reservation, user_id
    ):
        schedule = make_schedule(capacity=10)
        hold = make_reservation(
            schedule,
            user_id=user_id,
            status=ReservationStatus.PENDING,
            student_count=2,
            expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
        )

        result = service.cancel_reservation(hold.id, user_id)

        assert result.success is False
        assert result.reason == RejectionReason.HOLD_EXPIRED
        db.refresh(hold)
        db.refresh(schedule)
        assert hold.status == ReservationStatus.EXPIRED.value
        assert schedule.remaining_seats == 10
        assert _cancellations(db) == []

    def test_expired_reservation_is_invalid(
        self, service, make_schedule, make_reservation, user_id
    ):
        schedule = make_schedule()
        reservation = make_reservation(
            schedule, user_id=user_id, status=ReservationStatus.EXPIRED, take_seats=False
        )

        result = service.cancel_reservation(reservation.id, user_id)

        assert result.reason == RejectionReason.INVALID_STATUS

    def test_quote_of_overdue_hold_reports_expiry_without_writing(
        self, db, service, make_schedule, make_reservation, user_id
    ):
        schedule = make_schedule(capacity=10)
        hold = make_reservation(
            schedule,
            user_id=user_id,
            status=ReservationStatus.PENDING,
            student_count=2,
            expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
        )

        quote = service.quote_cancellation(hold.id, user_id)

        assert quote.success is False
        assert quote.can_cancel is False
        assert quote.reason == RejectionReason.HOLD_EXPIRED
        assert quote.message == (
            "This temporary reservation has expired and has nothing left to cancel."
        )
        db.refresh(hold)
        db.refresh(schedule)
        assert hold.status == ReservationStatus.PENDING.value
        assert schedule.remaining_seats == 8


class TestAdminCancelReservation:
    def test_full_refund_regardless_of_timing(
        self, db, service, notifier, make_schedule, make_reservation, user_id
    ):
        schedule = make_schedule(start_at=_hours_from_now(1))
        reservation = make_reservation(schedule, user_id=user_id, total_price=80000)
        admin_id = generate_ulid()

        result = service.admin_cancel_reservation(reservation.id, admin_id, reason="Studio closed")

        assert result.success is True
        assert result.refund_amount == 80000
        assert result.refund_rate == Decimal("1.0")
        assert result.notification_sent is True
        notifier.notify_cancellation.assert_called_once_with(
            user_id=user_id, reservation_id=reservation.id, refund_amount=80000
        )

        [cancellation] = _cancellations(db)
        db.refresh(cancellation)
        assert cancellation.is_admin_cancellation is True
        assert cancellation.cancelled_by_id == admin_id
        assert cancellation.notification_sent is True
        assert cancellation.refund_rate == Decimal("1")

    def test_admin_can_cancel_after_start(
        self, service, make_schedule, make_reservation, user_id
    ):
        schedule = make_schedule(start_at=_hours_from_now(-1))
        reservation = make_reservation(schedule, user_id=user_id, total_price=80000)

        result = service.admin_cancel_reservation(reservation.id, generate_ulid())

        assert result.success is True
        assert result.refund_amount == 80000

    def test_without_notice(self, db, service, notifier, make_schedule, make_reservation):
        schedule = make_schedule()
        reservation = make_reservation(schedule)

        result = service.admin_cancel_reservation(
            reservation.id, generate_ulid(), notify_user=False
        )

        assert result.notification_sent is False
        notifier.notify_cancellation.assert_not_called()

    def test_failed_notice_keeps_cancellation(
        self, db, service, notifier, make_schedule, make_reservation
    ):
        notifier.notify_cancellation.side_effect = RuntimeError("push service down")
        schedule = make_schedule()
        reservation = make_reservation(schedule)

        result = service.admin_cancel_reservation(reservation.id, generate_ulid())

        assert result.success is True
        assert result.notification_sent is False
        [cancellation] = _cancellations(db)
        db.refresh(cancellation)
        assert cancellation.notification_sent is False

    def test_already_cancelled(self, service, make_schedule, make_reservation):
        schedule = make_schedule()
        reservation = make_reservation(
            schedule, status=ReservationStatus.CANCELLED, take_seats=False
        )

        result = service.admin_cancel_reservation(reservation.id, generate_ulid())

        assert result.reason == RejectionReason.ALREADY_CANCELLED

    def test_unknown_reservation(self, service):
        result = service.admin_cancel_reservation(generate_ulid(), generate_ulid())
        assert result.reason == RejectionReason.NOT_FOUND


    def test_missing_reason_is_recorded_as_admin_action(
        self, db, service, make_schedule, make_reservation
    ):
        schedule = make_schedule()
        reservation = make_reservation(schedule)

        service.admin_cancel_reservation(reservation.id, generate_ulid())

        [cancellation] = _cancellations(db)
        assert cancellation.reason == "Cancelled by an administrator"

    def test_admin_cancel_of_hold_gives_sessions_back(
        self, db, cache, service, make_schedule, make_credit, user_id
    ):
        schedule = make_schedule(capacity=6)
        credit = make_credit(user_id, session_count=1)
        hold = HoldService(db, cache=cache).create_temp_reservation(schedule.id, user_id)
        db.refresh(credit)
        assert credit.session_count == 0

        result = service.admin_cancel_reservation(hold.reservation_id, generate_ulid())

        assert result.success is True
        db.refresh(credit)
        assert credit.session_count == 1


class TestQuoteAndReporting:
    def test_quote_writes_nothing(
        self, db, service, gateway, make_schedule, make_reservation, user_id
    ):
        schedule = make_schedule(start_at=_hours_from_now(30))
        reservation = make_reservation(schedule, user_id=user_id, total_price=100000)

        quote = service.quote_cancellation(reservation.id, user_id)

        assert quote.success is True
        assert quote.can_cancel is True
        assert quote.refund_amount == 80000
        assert quote.message == "Cancelling now refunds 80% (80,000)"
        db.refresh(reservation)
        assert reservation.status == ReservationStatus.CONFIRMED.value
        assert _cancellations(db) == []
        gateway.refund.assert_not_called()

    def test_quote_for_someone_else(self, service, make_schedule, make_reservation):
        schedule = make_schedule()
        reservation = make_reservation(schedule)

        quote = service.quote_cancellation(reservation.id, generate_ulid())

        assert quote.success is False
        assert quote.reason == RejectionReason.NOT_FOUND

    def test_history_lists_only_own_cancellations(
        self, service, make_schedule, make_reservation, user_id
    ):
        schedule = make_schedule(capacity=10)
        mine = [make_reservation(schedule, user_id=user_id) for _ in range(2)]
        theirs = make_reservation(schedule)
        for reservation in mine:
            service.cancel_reservation(reservation.id, user_id)
        service.admin_cancel_reservation(theirs.id, generate_ulid())

        history = service.get_user_cancellation_history(user_id)

        assert {item.reservation_id for item in history} == {r.id for r in mine}
        assert all(item.refund_status == RefundStatus.COMPLETED for item in history)

    def test_summary(self, db, service, make_schedule, make_reservation, user_id):
        schedule = make_schedule(capacity=10, start_at=_hours_from_now(72))
        first = make_reservation(schedule, user_id=user_id, total_price=50000)
        second = make_reservation(schedule, user_id=user_id, total_price=30000)
        third = make_reservation(schedule, total_price=20000)
        service.cancel_reservation(first.id, user_id, reason="Sick")
        service.cancel_reservation(second.id, user_id)
        service.admin_cancel_reservation(third.id, generate_ulid(), reason="Sick")

        summary = service.get_cancellation_summary()

        assert summary.total_count == 3
        assert summary.total_refunded == 100000
        assert summary.admin_count == 1
        assert summary.user_count == 2
        assert summary.by_reason == {"Sick": 2, "Cancelled at the user's request": 1}

    def test_summary_since_future_is_empty(self, service, make_schedule, make_reservation):
        schedule = make_schedule()
        reservation = make_reservation(schedule)
        service.admin_cancel_reservation(reservation.id, generate_ulid())

        summary = service.get_cancellation_summary(since=_hours_from_now(24))

        assert summary.total_count == 0
        assert summary.total_refunded == 0
        assert summary.by_reason == {}
