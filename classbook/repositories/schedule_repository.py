# classbook/repositories/schedule_repository.py
"""
Schedule Repository for the classbook engine.

Seat accounting never follows a read-then-write pattern: holds and
restorations are single guarded UPDATE statements, and the affected row
count is the authoritative answer to "did it fit".
"""

from datetime import datetime
import logging
from typing import List, Optional

from sqlalchemy import case, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.schedule import ClassSchedule
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ScheduleRepository(BaseRepository[ClassSchedule]):
    """Data access for class schedules and their seat counters."""

    def __init__(self, db: Session):
        super().__init__(db, ClassSchedule)
        self.logger = logging.getLogger(__name__)

    def get_schedule(self, schedule_id: str) -> Optional[ClassSchedule]:
        """
        Read a schedule straight from the database.

        populate_existing refreshes an instance already held by the session,
        so callers always see the committed seat count.
        """
        try:
            stmt = (
                select(ClassSchedule)
                .where(ClassSchedule.id == schedule_id)
                .execution_options(populate_existing=True)
            )
            return self.db.execute(stmt).unique().scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading schedule {schedule_id}: {str(e)}")
            raise RepositoryException(f"Failed to load schedule: {str(e)}") from e

    def get_schedules_in_range(
        self, start: datetime, end: datetime, class_id: Optional[str] = None
    ) -> List[ClassSchedule]:
        """Active (not cancelled) schedules starting within [start, end], earliest first."""
        try:
            stmt = select(ClassSchedule).where(
                ClassSchedule.start_at >= start,
                ClassSchedule.start_at <= end,
                ClassSchedule.is_cancelled.is_(False),
            )
            if class_id:
                stmt = stmt.where(ClassSchedule.class_id == class_id)
            stmt = stmt.order_by(ClassSchedule.start_at.asc()).execution_options(
                populate_existing=True
            )
            return list(self.db.execute(stmt).unique().scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading schedules between {start} and {end}: {str(e)}")
            raise RepositoryException(f"Failed to load schedules: {str(e)}") from e

    def try_reserve_seats(self, schedule_id: str, seats: int) -> bool:
        """
        Atomically take `seats` from the counter if enough remain.

        Returns False when the guard matched no row (not enough seats or the
        schedule was cancelled in the meantime).
        """
        try:
            stmt = (
                update(ClassSchedule)
                .where(
                    ClassSchedule.id == schedule_id,
                    ClassSchedule.is_cancelled.is_(False),
                    ClassSchedule.remaining_seats >= seats,
                )
                .values(remaining_seats=ClassSchedule.remaining_seats - seats)
                .execution_options(synchronize_session=False)
            )
            result = self.db.execute(stmt)
            reserved = result.rowcount == 1
            self.logger.debug(
                "Seat reservation attempt",
                extra={"schedule_id": schedule_id, "seats": seats, "reserved": reserved},
            )
            return reserved
        except SQLAlchemyError as e:
            self.logger.error(f"Error reserving seats on schedule {schedule_id}: {str(e)}")
            raise RepositoryException(f"Failed to reserve seats: {str(e)}") from e

    def restore_seats(self, schedule_id: str, seats: int) -> bool:
        """Give `seats` back to the counter, never exceeding capacity."""
        try:
            restored = ClassSchedule.remaining_seats + seats
            stmt = (
                update(ClassSchedule)
                .where(ClassSchedule.id == schedule_id)
                .values(
                    remaining_seats=case(
                        (restored > ClassSchedule.capacity, ClassSchedule.capacity),
                        else_=restored,
                    )
                )
                .execution_options(synchronize_session=False)
            )
            result = self.db.execute(stmt)
            return result.rowcount == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error restoring seats on schedule {schedule_id}: {str(e)}")
            raise RepositoryException(f"Failed to restore seats: {str(e)}") from e

    def mark_cancelled(self, schedule_id: str, reason: str) -> bool:
        """Flip is_cancelled once; False if it was already cancelled or missing."""
        try:
            stmt = (
                update(ClassSchedule)
                .where(ClassSchedule.id == schedule_id, ClassSchedule.is_cancelled.is_(False))
                .values(is_cancelled=True, cancellation_reason=reason)
                .execution_options(synchronize_session=False)
            )
            result = self.db.execute(stmt)
            return result.rowcount == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error cancelling schedule {schedule_id}: {str(e)}")
            raise RepositoryException(f"Failed to cancel schedule: {str(e)}") from e
