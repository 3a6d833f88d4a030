# classbook/services/cancellation_service.py
"""
Cancellation Service for the classbook engine.

Executes user and admin cancellations. One transaction covers the status
change, the audit row and the seat restoration; refund settlement and the
member notice happen after that commit and can only downgrade the audit
row (refund failed, notification not sent), never undo the cancellation.
"""

from datetime import datetime
from decimal import Decimal
import logging
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.enums import RefundStatus, RejectionReason, ReservationStatus
from ..core.timezone_utils import ensure_utc, utc_now
from ..models.reservation import Reservation
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.cancellation import (
    CancellationHistoryItem,
    CancellationQuote,
    CancellationResult,
    CancellationSummary,
)
from .availability_cache import AvailabilityCache, availability_cache
from .base import BaseService
from .cancellation_policy import CancellationPolicyEngine
from .hold_service import HoldService
from .notification_service import LoggingNotifier, Notifier
from .refund_gateway import LoggingRefundGateway, RefundGateway

logger = logging.getLogger(__name__)

FULL_REFUND_RATE = Decimal("1.0")
UNSPECIFIED_REASON = "unspecified"
DEFAULT_USER_REASON = "Cancelled at the user's request"
DEFAULT_ADMIN_REASON = "Cancelled by an administrator"

MESSAGE_NOT_FOUND = "Reservation not found or you do not have permission to cancel it."
MESSAGE_ALREADY_CANCELLED = "This reservation has already been cancelled."
MESSAGE_EXPIRED = "This reservation has expired and can no longer be cancelled."
MESSAGE_HOLD_EXPIRED = "This temporary reservation has expired; its seats have been released."
MESSAGE_HOLD_LAPSED = "This temporary reservation has expired and has nothing left to cancel."
MESSAGE_CANCELLED_WITH_REFUND = "Reservation cancelled. Refund amount: {amount:,}"
MESSAGE_CANCELLED_NO_REFUND = "Reservation cancelled. No refund is due."


class CancellationService(BaseService):
    """User- and admin-initiated reservation cancellation."""

    def __init__(
        self,
        db: Session,
        cache: Optional[AvailabilityCache] = None,
        policy_engine: Optional[CancellationPolicyEngine] = None,
        refund_gateway: Optional[RefundGateway] = None,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(db, cache if cache is not None else availability_cache)
        self.schedule_repository = RepositoryFactory.create_schedule_repository(db)
        self.reservation_repository = RepositoryFactory.create_reservation_repository(db)
        self.membership_repository = RepositoryFactory.create_membership_repository(db)
        self.cancellation_repository = RepositoryFactory.create_cancellation_repository(db)
        self.policy_engine = policy_engine or CancellationPolicyEngine()
        self.refund_gateway = refund_gateway or LoggingRefundGateway()
        self.notifier = notifier or LoggingNotifier()
        self.hold_service = HoldService(db, cache=self.cache, clock=clock)
        self.clock = clock

    @BaseService.measure_operation("quote_cancellation")
    def quote_cancellation(self, reservation_id: str, user_id: str) -> CancellationQuote:
        """What cancelling right now would refund. Writes nothing."""
        reservation = self.reservation_repository.get_for_user(reservation_id, user_id)
        if reservation is None:
            return CancellationQuote(
                success=False, reason=RejectionReason.NOT_FOUND, message=MESSAGE_NOT_FOUND
            )
        rejection = self._status_rejection(reservation.status_enum)
        if rejection is not None:
            return CancellationQuote(success=False, reason=rejection[0], message=rejection[1])
        if reservation.is_hold_expired(self.clock()):
            return CancellationQuote(
                success=False, reason=RejectionReason.HOLD_EXPIRED, message=MESSAGE_HOLD_LAPSED
            )

        schedule = self.schedule_repository.get_schedule(reservation.schedule_id)
        membership = self.membership_repository.get_membership(user_id)
        policy = self.policy_engine.evaluate(reservation, schedule, membership, self.clock())
        return CancellationQuote(
            success=policy.can_cancel,
            message=policy.message,
            reason=None if policy.can_cancel else RejectionReason.POLICY_DENIED,
            can_cancel=policy.can_cancel,
            time_band=policy.time_band,
            membership_level=policy.membership_level,
            class_type=policy.class_type,
            refund_rate=policy.refund_rate,
            refund_amount=policy.refund_amount,
            time_to_class_hours=policy.time_to_class_hours,
        )

    @BaseService.measure_operation("cancel_reservation")
    def cancel_reservation(
        self, reservation_id: str, user_id: str, reason: str = ""
    ) -> CancellationResult:
        """
        Cancel the user's own reservation under the refund policy.

        Reservations of other users are reported as NOT_FOUND.

        Raises:
            ServiceException: If any of the cancellation writes failed
        """
        reservation = self.reservation_repository.get_for_user(reservation_id, user_id)
        if reservation is None:
            return self._reject(RejectionReason.NOT_FOUND, MESSAGE_NOT_FOUND, reservation_id)

        now = self.clock()
        rejection = self._check_cancellable(reservation, now)
        if rejection is not None:
            return rejection

        schedule = self.schedule_repository.get_schedule(reservation.schedule_id)
        membership = self.membership_repository.get_membership(user_id)
        policy = self.policy_engine.evaluate(reservation, schedule, membership, now)
        if not policy.can_cancel:
            return self._reject(RejectionReason.POLICY_DENIED, policy.message, reservation_id)

        return self._execute(
            reservation,
            cancelled_by_id=user_id,
            reason=reason or DEFAULT_USER_REASON,
            refund_amount=policy.refund_amount,
            refund_rate=policy.refund_rate,
            is_admin=False,
            notify_user=False,
        )

    @BaseService.measure_operation("admin_cancel_reservation")
    def admin_cancel_reservation(
        self,
        reservation_id: str,
        admin_id: str,
        reason: str = "",
        notify_user: bool = True,
    ) -> CancellationResult:
        """
        Cancel any reservation with a full refund, skipping the policy check.

        Raises:
            ServiceException: If any of the cancellation writes failed
        """
        reservation = self.reservation_repository.get_reservation(reservation_id)
        if reservation is None:
            return self._reject(RejectionReason.NOT_FOUND, MESSAGE_NOT_FOUND, reservation_id)

        rejection = self._check_cancellable(reservation, self.clock())
        if rejection is not None:
            return rejection

        return self._execute(
            reservation,
            cancelled_by_id=admin_id,
            reason=reason or DEFAULT_ADMIN_REASON,
            refund_amount=int(reservation.total_price or 0),
            refund_rate=FULL_REFUND_RATE,
            is_admin=True,
            notify_user=notify_user,
        )

    def get_user_cancellation_history(self, user_id: str) -> List[CancellationHistoryItem]:
        cancellations = self.cancellation_repository.get_for_user(user_id)
        return [CancellationHistoryItem.model_validate(row) for row in cancellations]

    @BaseService.measure_operation("get_cancellation_summary")
    def get_cancellation_summary(self, since: Optional[datetime] = None) -> CancellationSummary:
        """Totals for the admin cancellation report, optionally from `since` onwards."""
        since = ensure_utc(since) if since is not None else None
        raw = self.cancellation_repository.get_summary(since)

        by_reason: Dict[str, int] = {}
        for reason, count in raw["by_reason"].items():
            key = (reason or "").strip() or UNSPECIFIED_REASON
            by_reason[key] = by_reason.get(key, 0) + count

        return CancellationSummary(
            since=since,
            total_count=raw["total_count"],
            total_refunded=raw["total_refunded"],
            admin_count=raw["admin_count"],
            user_count=raw["total_count"] - raw["admin_count"],
            by_reason=by_reason,
        )

    def _check_cancellable(
        self, reservation: Reservation, now: datetime
    ) -> Optional[CancellationResult]:
        """Status gate shared by both entry points; expires stale holds on the way."""
        rejection = self._status_rejection(reservation.status_enum)
        if rejection is not None:
            return self._reject(rejection[0], rejection[1], reservation.id)

        if reservation.is_hold_expired(now):
            self.hold_service.expire_hold(reservation)
            return self._reject(RejectionReason.HOLD_EXPIRED, MESSAGE_HOLD_EXPIRED, reservation.id)
        return None

    @staticmethod
    def _status_rejection(status: ReservationStatus):
        if not status.is_terminal:
            return None
        if status == ReservationStatus.CANCELLED:
            return RejectionReason.ALREADY_CANCELLED, MESSAGE_ALREADY_CANCELLED
        return RejectionReason.INVALID_STATUS, MESSAGE_EXPIRED

    def _execute(
        self,
        reservation: Reservation,
        *,
        cancelled_by_id: str,
        reason: str,
        refund_amount: int,
        refund_rate: Decimal,
        is_admin: bool,
        notify_user: bool,
    ) -> CancellationResult:
        cancellation = None
        with self.transaction():
            if self.reservation_repository.transition_status(
                reservation.id,
                [ReservationStatus.PENDING, ReservationStatus.CONFIRMED],
                ReservationStatus.CANCELLED,
            ):
                cancellation = self.cancellation_repository.create_cancellation(
                    reservation_id=reservation.id,
                    cancelled_by_id=cancelled_by_id,
                    reason=reason,
                    refund_amount=refund_amount,
                    refund_rate=refund_rate,
                    is_admin_cancellation=is_admin,
                )
                self.schedule_repository.restore_seats(
                    reservation.schedule_id, reservation.student_count
                )
                if reservation.session_credit_id and reservation.sessions_used:
                    self.membership_repository.restore_sessions(
                        reservation.session_credit_id, reservation.sessions_used
                    )

        if cancellation is None:
            # Another writer settled the reservation between our read and the update
            current = self.reservation_repository.get_reservation(reservation.id)
            rejection = self._status_rejection(current.status_enum) if current else None
            reason_code, message = rejection or (
                RejectionReason.ALREADY_CANCELLED,
                MESSAGE_ALREADY_CANCELLED,
            )
            return self._reject(reason_code, message, reservation.id)

        prometheus_metrics.inc_cancellation(is_admin)
        self.invalidate_cache(reservation.schedule_id)
        self.log_operation(
            "reservation_cancelled",
            reservation_id=reservation.id,
            cancellation_id=cancellation.id,
            cancelled_by_id=cancelled_by_id,
            is_admin=is_admin,
            refund_amount=refund_amount,
        )

        refund_status = RefundStatus.COMPLETED
        if refund_amount > 0:
            refund_status = self._settle_refund(reservation, cancellation.id, refund_amount)

        notification_sent = False
        if notify_user:
            notification_sent = self._notify_user(reservation, cancellation.id, refund_amount)

        message = (
            MESSAGE_CANCELLED_WITH_REFUND.format(amount=refund_amount)
            if refund_amount > 0
            else MESSAGE_CANCELLED_NO_REFUND
        )
        return CancellationResult(
            success=True,
            message=message,
            cancellation_id=cancellation.id,
            refund_amount=refund_amount,
            refund_rate=refund_rate,
            refund_status=refund_status,
            notification_sent=notification_sent,
        )

    def _settle_refund(
        self, reservation: Reservation, cancellation_id: str, amount: int
    ) -> RefundStatus:
        try:
            outcome = self.refund_gateway.refund(
                reservation_id=reservation.id,
                cancellation_id=cancellation_id,
                amount=amount,
                payment_method=reservation.payment_method,
            )
            succeeded = outcome.success
            if not succeeded:
                self.logger.error(
                    f"Refund rejected for reservation {reservation.id}: {outcome.error}",
                    extra={"reservation_id": reservation.id, "cancellation_id": cancellation_id},
                )
        except Exception as e:
            self.logger.error(
                f"Refund gateway failed for reservation {reservation.id}: {str(e)}",
                extra={"reservation_id": reservation.id, "cancellation_id": cancellation_id},
                exc_info=True,
            )
            succeeded = False

        status = RefundStatus.COMPLETED if succeeded else RefundStatus.FAILED
        prometheus_metrics.inc_refund(status.value)
        with self.transaction():
            self.cancellation_repository.update_refund_status(cancellation_id, status)
        return status

    def _notify_user(self, reservation: Reservation, cancellation_id: str, amount: int) -> bool:
        try:
            self.notifier.notify_cancellation(
                user_id=reservation.user_id,
                reservation_id=reservation.id,
                refund_amount=amount,
            )
        except Exception as e:
            self.logger.error(
                f"Cancellation notice failed for reservation {reservation.id}: {str(e)}",
                extra={"reservation_id": reservation.id, "cancellation_id": cancellation_id},
                exc_info=True,
            )
            return False

        with self.transaction():
            self.cancellation_repository.mark_notification_sent(cancellation_id)
        return True

    def _reject(
        self, reason: RejectionReason, message: str, reservation_id: str
    ) -> CancellationResult:
        self.logger.info(
            f"Cancellation rejected: {reason.value}",
            extra={"reservation_id": reservation_id, "reason": reason.value},
        )
        return CancellationResult(success=False, reason=reason, message=message)
