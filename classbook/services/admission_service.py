# classbook/services/admission_service.py
"""
Admission Service for the classbook engine.

Decides whether a reservation attempt may proceed by applying an ordered
rule sequence against the schedule table (never the availability cache).
The first failing rule is the answer; rejections are returned as values.
"""

from datetime import datetime
import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..core.enums import RejectionReason
from ..core.exceptions import NotFoundException, ValidationException
from ..core.timezone_utils import ensure_utc, utc_now
from ..repositories.factory import RepositoryFactory
from ..schemas.availability import ScheduleWithStatus
from ..schemas.reservation import AdmissionResult, SessionCreditSnapshot
from .availability_service import classify_availability
from .base import BaseService

logger = logging.getLogger(__name__)

MESSAGE_CANCELLED = "This class has been cancelled."
MESSAGE_PAST_CLASS = "This class has already taken place."
MESSAGE_NOT_ENOUGH_SEATS = "This class is fully booked."
MESSAGE_ALREADY_RESERVED = "You have already reserved this class."
MESSAGE_NO_VALID_SESSION = "No usable session credit. Please purchase a session pack."
MESSAGE_INSUFFICIENT_SESSIONS = (
    "Not enough session credits (available: {available}, required: {required})."
)


class AdmissionService(BaseService):
    """Ordered admission rules for reservation attempts."""

    def __init__(
        self,
        db: Session,
        limited_ratio: Optional[float] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(db)
        self.schedule_repository = RepositoryFactory.create_schedule_repository(db)
        self.reservation_repository = RepositoryFactory.create_reservation_repository(db)
        self.membership_repository = RepositoryFactory.create_membership_repository(db)
        self.limited_ratio = limited_ratio
        self.clock = clock

    @BaseService.measure_operation("check_reservation_availability")
    def check_reservation_availability(
        self,
        schedule_id: str,
        student_count: int = 1,
        user_id: Optional[str] = None,
        sessions_required: int = 1,
    ) -> AdmissionResult:
        """
        Check whether `student_count` seats on a schedule may be reserved.

        Rules, in order:
            1. schedule is cancelled          -> CANCELLED
            2. schedule started in the past   -> PAST_CLASS
            3. fewer seats than requested     -> NOT_ENOUGH_SEATS
            4. user already holds a booking   -> ALREADY_RESERVED
            5. no unexpired session credit    -> NO_VALID_SESSION
               credit below sessions_required -> INSUFFICIENT_SESSIONS

        Rules 4 and 5 need a user; without one the guest branch applies.

        Raises:
            ValidationException: For non-positive counts
            NotFoundException: If the schedule does not exist
            RepositoryException: If the schedule store cannot be read
        """
        if student_count < 1:
            raise ValidationException(
                "student_count must be at least 1", details={"student_count": student_count}
            )
        if sessions_required < 0:
            raise ValidationException(
                "sessions_required cannot be negative",
                details={"sessions_required": sessions_required},
            )

        schedule = self.schedule_repository.get_schedule(schedule_id)
        if schedule is None:
            raise NotFoundException(
                "Class schedule not found.", details={"schedule_id": schedule_id}
            )

        status = classify_availability(schedule, self.limited_ratio)
        snapshot = ScheduleWithStatus.from_schedule(schedule, status)
        now = self.clock()

        if schedule.is_cancelled:
            return self._reject(RejectionReason.CANCELLED, MESSAGE_CANCELLED, snapshot)

        if ensure_utc(schedule.start_at) < now:
            return self._reject(RejectionReason.PAST_CLASS, MESSAGE_PAST_CLASS, snapshot)

        if schedule.remaining_seats < student_count:
            return self._reject(
                RejectionReason.NOT_ENOUGH_SEATS, MESSAGE_NOT_ENOUGH_SEATS, snapshot
            )

        if user_id is None:
            return self._admit_guest(snapshot, student_count)

        if self.reservation_repository.get_confirmed_for_user(user_id, schedule_id):
            return self._reject(
                RejectionReason.ALREADY_RESERVED, MESSAGE_ALREADY_RESERVED, snapshot
            )

        credit = self.membership_repository.get_active_credit(user_id, now)
        if credit is None:
            return self._reject(
                RejectionReason.NO_VALID_SESSION, MESSAGE_NO_VALID_SESSION, snapshot
            )
        if credit.session_count < sessions_required:
            return self._reject(
                RejectionReason.INSUFFICIENT_SESSIONS,
                MESSAGE_INSUFFICIENT_SESSIONS.format(
                    available=credit.session_count, required=sessions_required
                ),
                snapshot,
            )

        self.log_operation(
            "admission_granted",
            schedule_id=schedule_id,
            user_id=user_id,
            student_count=student_count,
        )
        return AdmissionResult(
            can_reserve=True,
            schedule=snapshot,
            availability_status=status,
            session_credit=SessionCreditSnapshot(
                id=credit.id,
                session_count=credit.session_count,
                expires_at=ensure_utc(credit.expires_at),
            ),
        )

    def _admit_guest(self, snapshot: ScheduleWithStatus, student_count: int) -> AdmissionResult:
        """
        Admission for callers without a user id.

        Duplicate-booking and session-credit rules are skipped on this path.
        """
        self.log_operation(
            "admission_granted_guest",
            schedule_id=snapshot.id,
            student_count=student_count,
        )
        return AdmissionResult(
            can_reserve=True,
            schedule=snapshot,
            availability_status=snapshot.availability_status,
            is_guest=True,
        )

    def _reject(
        self, reason: RejectionReason, message: str, snapshot: ScheduleWithStatus
    ) -> AdmissionResult:
        self.logger.info(
            f"Admission rejected: {reason.value}",
            extra={"schedule_id": snapshot.id, "reason": reason.value},
        )
        return AdmissionResult.rejected(reason, message, snapshot)
