# classbook/repositories/reservation_repository.py
"""
Reservation Repository for the classbook engine.

Status changes are compare-and-set updates: the caller names the statuses it
expects the row to be in, and a zero row count means another writer got
there first.
"""

from datetime import datetime
import logging
from typing import Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import ReservationStatus
from ..core.exceptions import RepositoryException
from ..models.reservation import Reservation
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ReservationRepository(BaseRepository[Reservation]):
    """Data access for reservations and temporary holds."""

    def __init__(self, db: Session):
        super().__init__(db, Reservation)
        self.logger = logging.getLogger(__name__)

    def get_reservation(self, reservation_id: str) -> Optional[Reservation]:
        try:
            stmt = (
                select(Reservation)
                .where(Reservation.id == reservation_id)
                .execution_options(populate_existing=True)
            )
            return self.db.execute(stmt).unique().scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading reservation {reservation_id}: {str(e)}")
            raise RepositoryException(f"Failed to load reservation: {str(e)}") from e

    def get_for_user(self, reservation_id: str, user_id: str) -> Optional[Reservation]:
        """Load a reservation only if it belongs to `user_id`."""
        try:
            stmt = (
                select(Reservation)
                .where(Reservation.id == reservation_id, Reservation.user_id == user_id)
                .execution_options(populate_existing=True)
            )
            return self.db.execute(stmt).unique().scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error loading reservation {reservation_id} for user {user_id}: {str(e)}"
            )
            raise RepositoryException(f"Failed to load reservation: {str(e)}") from e

    def get_confirmed_for_user(self, user_id: str, schedule_id: str) -> Optional[Reservation]:
        try:
            stmt = select(Reservation).where(
                Reservation.user_id == user_id,
                Reservation.schedule_id == schedule_id,
                Reservation.status == ReservationStatus.CONFIRMED.value,
            )
            return self.db.execute(stmt).unique().scalars().first()
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error checking reservation of user {user_id} on {schedule_id}: {str(e)}"
            )
            raise RepositoryException(f"Failed to check existing reservation: {str(e)}") from e

    def get_for_schedule(
        self, schedule_id: str, status: ReservationStatus
    ) -> List[Reservation]:
        try:
            stmt = (
                select(Reservation)
                .where(Reservation.schedule_id == schedule_id, Reservation.status == status.value)
                .order_by(Reservation.created_at.asc())
            )
            return list(self.db.execute(stmt).unique().scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing reservations for {schedule_id}: {str(e)}")
            raise RepositoryException(f"Failed to list reservations: {str(e)}") from e

    def get_expired_holds(self, now: datetime, limit: int = 500) -> List[Reservation]:
        """Pending holds whose expiry has passed, oldest first."""
        try:
            stmt = (
                select(Reservation)
                .where(
                    Reservation.status == ReservationStatus.PENDING.value,
                    Reservation.expires_at.is_not(None),
                    Reservation.expires_at <= now,
                )
                .order_by(Reservation.expires_at.asc())
                .limit(limit)
            )
            return list(self.db.execute(stmt).unique().scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing expired holds: {str(e)}")
            raise RepositoryException(f"Failed to list expired holds: {str(e)}") from e

    def transition_status(
        self,
        reservation_id: str,
        from_statuses: Iterable[ReservationStatus],
        to_status: ReservationStatus,
    ) -> bool:
        """
        Move a reservation to `to_status` if it is currently in one of `from_statuses`.

        Only forward transitions are accepted; asking for a backwards move is a
        programming error and raises ValueError.
        """
        allowed = [status for status in from_statuses if status.can_transition_to(to_status)]
        if not allowed:
            raise ValueError(f"No allowed transition into {to_status.value}")
        try:
            stmt = (
                update(Reservation)
                .where(
                    Reservation.id == reservation_id,
                    Reservation.status.in_([status.value for status in allowed]),
                )
                .values(status=to_status.value)
                .execution_options(synchronize_session=False)
            )
            result = self.db.execute(stmt)
            changed = result.rowcount == 1
            if changed:
                self.logger.info(
                    f"Reservation {reservation_id} moved to {to_status.value}",
                    extra={"reservation_id": reservation_id, "status": to_status.value},
                )
            return changed
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating reservation {reservation_id}: {str(e)}")
            raise RepositoryException(f"Failed to update reservation status: {str(e)}") from e
