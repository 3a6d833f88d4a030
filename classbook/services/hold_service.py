# classbook/services/hold_service.py
"""
Hold Service for the classbook engine.

A hold is a pending reservation that has already taken its seats from the
schedule counter and its sessions from the member's credit. It either gets
confirmed by the payment flow, cancelled, or expires; expiry gives both back.
"""

from datetime import datetime, timedelta
import logging
from typing import Callable, Optional, Set, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import RejectionReason, ReservationStatus
from ..core.exceptions import NotFoundException
from ..core.timezone_utils import utc_now
from ..models.reservation import Reservation
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.reservation import HoldResult
from .admission_service import MESSAGE_NOT_ENOUGH_SEATS, AdmissionService
from .availability_cache import AvailabilityCache, availability_cache
from .base import BaseService

logger = logging.getLogger(__name__)

MESSAGE_HOLD_CREATED = (
    "Temporary reservation created. Please complete payment within {minutes} minutes."
)
MESSAGE_SCHEDULE_NOT_FOUND = "Class schedule not found."
MESSAGE_SESSIONS_USED_UP = (
    "Your session credit no longer covers the {required} session(s) this class needs."
)


class HoldService(BaseService):
    """Creates temporary holds and sweeps the expired ones."""

    def __init__(
        self,
        db: Session,
        cache: Optional[AvailabilityCache] = None,
        admission_service: Optional[AdmissionService] = None,
        hold_expiry_minutes: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(db, cache if cache is not None else availability_cache)
        self.schedule_repository = RepositoryFactory.create_schedule_repository(db)
        self.reservation_repository = RepositoryFactory.create_reservation_repository(db)
        self.membership_repository = RepositoryFactory.create_membership_repository(db)
        self.admission_service = admission_service or AdmissionService(db, clock=clock)
        self.hold_expiry_minutes = hold_expiry_minutes or settings.hold_expiry_minutes
        self.clock = clock

    @BaseService.measure_operation("create_temp_reservation")
    def create_temp_reservation(
        self,
        schedule_id: str,
        user_id: str,
        student_count: int = 1,
        payment_method: Optional[str] = None,
        sessions_required: int = 1,
    ) -> HoldResult:
        """
        Re-run admission and, if it passes, take the seats and write a pending hold.

        Seats and session credits are debited with guarded updates in the same
        transaction as the insert. Losing the seat race is reported as
        NOT_ENOUGH_SEATS, an exhausted credit as INSUFFICIENT_SESSIONS, and in
        both cases nothing is written.
        """
        try:
            admission = self.admission_service.check_reservation_availability(
                schedule_id,
                student_count=student_count,
                user_id=user_id,
                sessions_required=sessions_required,
            )
        except NotFoundException:
            prometheus_metrics.inc_hold("rejected")
            return HoldResult(
                success=False,
                reason=RejectionReason.NOT_FOUND,
                message=MESSAGE_SCHEDULE_NOT_FOUND,
            )

        if not admission.can_reserve:
            prometheus_metrics.inc_hold("rejected")
            return HoldResult(success=False, reason=admission.reason, message=admission.message)

        now = self.clock()
        expires_at = now + timedelta(minutes=self.hold_expiry_minutes)
        total_price = admission.schedule.price * student_count
        credit_id = admission.session_credit.id if admission.session_credit else None
        sessions_used = sessions_required if credit_id else 0

        rejection: Optional[Tuple[RejectionReason, str]] = None
        reservation: Optional[Reservation] = None

        with self.transaction():
            if not self.schedule_repository.try_reserve_seats(schedule_id, student_count):
                rejection = (RejectionReason.NOT_ENOUGH_SEATS, MESSAGE_NOT_ENOUGH_SEATS)
            elif sessions_used and not self.membership_repository.try_use_sessions(
                credit_id, sessions_used
            ):
                # Undo the seat debit taken a moment ago
                self.db.rollback()
                rejection = (
                    RejectionReason.INSUFFICIENT_SESSIONS,
                    MESSAGE_SESSIONS_USED_UP.format(required=sessions_used),
                )
            else:
                reservation = self.reservation_repository.create(
                    user_id=user_id,
                    schedule_id=schedule_id,
                    student_count=student_count,
                    total_price=total_price,
                    payment_method=payment_method,
                    session_credit_id=credit_id,
                    sessions_used=sessions_used,
                    status=ReservationStatus.PENDING.value,
                    expires_at=expires_at,
                )

        if rejection is not None:
            reason, message = rejection
            prometheus_metrics.inc_hold("rejected")
            self.logger.info(
                f"Hold lost the race: {reason.value}",
                extra={"schedule_id": schedule_id, "user_id": user_id, "reason": reason.value},
            )
            return HoldResult(success=False, reason=reason, message=message)

        prometheus_metrics.inc_hold("created")
        self.invalidate_cache(schedule_id)
        self.log_operation(
            "hold_created",
            reservation_id=reservation.id,
            schedule_id=schedule_id,
            user_id=user_id,
            student_count=student_count,
            sessions_used=sessions_used,
        )
        return HoldResult(
            success=True,
            message=MESSAGE_HOLD_CREATED.format(minutes=self.hold_expiry_minutes),
            reservation_id=reservation.id,
            expires_at=expires_at,
            total_price=total_price,
        )

    def expire_hold(self, reservation: Reservation) -> bool:
        """
        Expire one pending hold and give its seats and sessions back.

        Returns False when the hold was already settled by someone else.
        """
        with self.transaction():
            expired = self.reservation_repository.transition_status(
                reservation.id, [ReservationStatus.PENDING], ReservationStatus.EXPIRED
            )
            if expired:
                self.schedule_repository.restore_seats(
                    reservation.schedule_id, reservation.student_count
                )
                if reservation.session_credit_id and reservation.sessions_used:
                    self.membership_repository.restore_sessions(
                        reservation.session_credit_id, reservation.sessions_used
                    )

        if expired:
            self.invalidate_cache(reservation.schedule_id)
            prometheus_metrics.inc_hold("expired")
            self.log_operation(
                "hold_expired",
                reservation_id=reservation.id,
                schedule_id=reservation.schedule_id,
            )
        return expired

    @BaseService.measure_operation("expire_stale_holds")
    def expire_stale_holds(self, now: Optional[datetime] = None) -> int:
        """Expire every pending hold whose expiry has passed. Returns how many were expired."""
        now = now or self.clock()
        holds = self.reservation_repository.get_expired_holds(now)
        if not holds:
            return 0

        expired_count = 0
        touched: Set[str] = set()
        for hold in holds:
            if self.expire_hold(hold):
                expired_count += 1
                touched.add(hold.schedule_id)

        self.logger.info(
            f"Expired {expired_count} stale holds",
            extra={"expired_count": expired_count, "schedule_count": len(touched)},
        )
        return expired_count
