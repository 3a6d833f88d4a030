# classbook/services/class_cancellation_service.py
"""
Class-wide cancellation.

Marks a schedule cancelled, then cancels every confirmed reservation on it
concurrently. Each reservation runs in a worker thread with its own session;
one failing reservation never stops the others, and the result reports how
many actually went through.
"""

import asyncio
from datetime import datetime
import logging
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session, sessionmaker

from ..core.enums import RejectionReason, ReservationStatus
from ..core.exceptions import is_db_pool_exhaustion
from ..core.timezone_utils import utc_now
from ..database import SessionLocal
from ..repositories.factory import RepositoryFactory
from ..schemas.cancellation import CancellationResult, ClassCancellationResult
from .availability_cache import AvailabilityCache, availability_cache
from .base import BaseService
from .cancellation_service import CancellationService
from .notification_service import Notifier
from .refund_gateway import RefundGateway

logger = logging.getLogger(__name__)

DEFAULT_CANCELLATION_REASON = "Class cancelled by an administrator"
MESSAGE_SCHEDULE_NOT_FOUND = "Class schedule not found."
MESSAGE_SCHEDULE_ALREADY_CANCELLED = "This class schedule has already been cancelled."
MESSAGE_CLASS_CANCELLED = (
    "Class cancelled. {count} reservation(s) were cancelled automatically."
)


class ClassCancellationService(BaseService):
    """Cancels a whole schedule and fans out the reservation cancellations."""

    def __init__(
        self,
        db: Session,
        session_factory: Optional[sessionmaker] = None,
        cache: Optional[AvailabilityCache] = None,
        refund_gateway: Optional[RefundGateway] = None,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(db, cache if cache is not None else availability_cache)
        self.session_factory = session_factory or SessionLocal
        self.schedule_repository = RepositoryFactory.create_schedule_repository(db)
        self.reservation_repository = RepositoryFactory.create_reservation_repository(db)
        self.refund_gateway = refund_gateway
        self.notifier = notifier
        self.clock = clock

    @BaseService.measure_operation("cancel_class_schedule")
    async def cancel_class_schedule(
        self, schedule_id: str, admin_id: str, reason: str = ""
    ) -> ClassCancellationResult:
        """
        Cancel a schedule and all of its confirmed reservations.

        success=True means the schedule is now cancelled; compare
        cancelled_count with failed_count to detect partial completion.
        """
        schedule_reason = reason or DEFAULT_CANCELLATION_REASON
        rejection, reservation_ids = await asyncio.to_thread(
            self._mark_schedule_cancelled, schedule_id, schedule_reason
        )
        if rejection is not None:
            return rejection

        self.log_operation(
            "class_schedule_cancelled",
            schedule_id=schedule_id,
            admin_id=admin_id,
            reservation_count=len(reservation_ids),
        )

        reservation_reason = f"Class cancelled: {schedule_reason}"
        async with self.async_measure_operation_context("cancel_class_reservations"):
            outcomes = await asyncio.gather(
                *(
                    asyncio.to_thread(
                        self._cancel_reservation, reservation_id, admin_id, reservation_reason
                    )
                    for reservation_id in reservation_ids
                ),
                return_exceptions=True,
            )

        cancelled_count = 0
        failed_count = 0
        for reservation_id, outcome in zip(reservation_ids, outcomes):
            if isinstance(outcome, BaseException):
                failed_count += 1
                self.logger.error(
                    f"Failed to cancel reservation {reservation_id} of schedule {schedule_id}: "
                    f"{outcome}",
                    extra={
                        "schedule_id": schedule_id,
                        "reservation_id": reservation_id,
                        "pool_exhausted": is_db_pool_exhaustion(outcome)
                        if isinstance(outcome, Exception)
                        else False,
                    },
                    exc_info=outcome,
                )
            elif outcome.success:
                cancelled_count += 1
            else:
                failed_count += 1
                self.logger.warning(
                    f"Reservation {reservation_id} not cancelled: {outcome.reason}",
                    extra={"schedule_id": schedule_id, "reservation_id": reservation_id},
                )

        self.invalidate_cache(schedule_id)
        return ClassCancellationResult(
            success=True,
            message=MESSAGE_CLASS_CANCELLED.format(count=cancelled_count),
            cancelled_count=cancelled_count,
            failed_count=failed_count,
        )

    def _mark_schedule_cancelled(
        self, schedule_id: str, reason: str
    ) -> Tuple[Optional[ClassCancellationResult], List[str]]:
        """Flip the schedule to cancelled and list the confirmed reservations to unwind."""
        schedule = self.schedule_repository.get_schedule(schedule_id)
        if schedule is None:
            return (
                ClassCancellationResult(
                    success=False,
                    reason=RejectionReason.NOT_FOUND,
                    message=MESSAGE_SCHEDULE_NOT_FOUND,
                ),
                [],
            )
        if schedule.is_cancelled:
            return self._already_cancelled(), []

        with self.transaction():
            marked = self.schedule_repository.mark_cancelled(schedule_id, reason)
        if not marked:
            return self._already_cancelled(), []

        reservations = self.reservation_repository.get_for_schedule(
            schedule_id, ReservationStatus.CONFIRMED
        )
        return None, [reservation.id for reservation in reservations]

    def _cancel_reservation(
        self, reservation_id: str, admin_id: str, reason: str
    ) -> CancellationResult:
        """Runs in a worker thread; sessions are not shared across threads."""
        with self.session_factory() as session:
            service = CancellationService(
                session,
                cache=self.cache,
                refund_gateway=self.refund_gateway,
                notifier=self.notifier,
                clock=self.clock,
            )
            return service.admin_cancel_reservation(
                reservation_id, admin_id, reason=reason, notify_user=True
            )

    def _already_cancelled(self) -> ClassCancellationResult:
        return ClassCancellationResult(
            success=False,
            reason=RejectionReason.ALREADY_CANCELLED,
            message=MESSAGE_SCHEDULE_ALREADY_CANCELLED,
        )
