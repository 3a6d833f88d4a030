# classbook/repositories/cancellation_repository.py
"""
Cancellation Repository for the classbook engine.

Audit rows are written once per cancelled reservation. After insert only the
refund status and the notification flag are ever touched.
"""

from datetime import datetime
from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import RefundStatus
from ..core.exceptions import RepositoryException
from ..models.cancellation import Cancellation
from ..models.reservation import Reservation
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class CancellationRepository(BaseRepository[Cancellation]):
    """Data access for the cancellation audit trail."""

    def __init__(self, db: Session):
        super().__init__(db, Cancellation)
        self.logger = logging.getLogger(__name__)

    def create_cancellation(
        self,
        *,
        reservation_id: str,
        cancelled_by_id: str,
        reason: Optional[str],
        refund_amount: int,
        refund_rate: Decimal,
        is_admin_cancellation: bool = False,
    ) -> Cancellation:
        """
        Insert the audit row for a cancellation.

        A zero refund has nothing left to pay out, so it starts as completed.
        """
        refund_status = RefundStatus.PENDING if refund_amount > 0 else RefundStatus.COMPLETED
        return self.create(
            reservation_id=reservation_id,
            cancelled_by_id=cancelled_by_id,
            reason=reason,
            refund_amount=refund_amount,
            refund_rate=refund_rate,
            refund_status=refund_status.value,
            is_admin_cancellation=is_admin_cancellation,
            notification_sent=False,
        )

    def update_refund_status(self, cancellation_id: str, status: RefundStatus) -> bool:
        """Settle a pending refund; completed/failed rows are left alone."""
        try:
            stmt = (
                update(Cancellation)
                .where(
                    Cancellation.id == cancellation_id,
                    Cancellation.refund_status == RefundStatus.PENDING.value,
                )
                .values(refund_status=status.value)
                .execution_options(synchronize_session=False)
            )
            return self.db.execute(stmt).rowcount == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating refund status of {cancellation_id}: {str(e)}")
            raise RepositoryException(f"Failed to update refund status: {str(e)}") from e

    def mark_notification_sent(self, cancellation_id: str) -> bool:
        try:
            stmt = (
                update(Cancellation)
                .where(Cancellation.id == cancellation_id)
                .values(notification_sent=True)
                .execution_options(synchronize_session=False)
            )
            return self.db.execute(stmt).rowcount == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error flagging notification of {cancellation_id}: {str(e)}")
            raise RepositoryException(f"Failed to flag notification: {str(e)}") from e

    def get_for_user(self, user_id: str, limit: int = 100) -> List[Cancellation]:
        """Cancellations of reservations owned by `user_id`, newest first."""
        try:
            stmt = (
                select(Cancellation)
                .join(Reservation, Reservation.id == Cancellation.reservation_id)
                .where(Reservation.user_id == user_id)
                .order_by(Cancellation.created_at.desc(), Cancellation.id.desc())
                .limit(limit)
            )
            return list(self.db.execute(stmt).unique().scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading cancellation history of {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to load cancellation history: {str(e)}") from e

    def get_summary(self, since: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Aggregate cancellations for reporting.

        Returns:
            Dict with total_count, total_refunded, admin_count and by_reason
            (raw reason text -> count).
        """
        try:
            totals = select(
                func.count(Cancellation.id),
                func.coalesce(func.sum(Cancellation.refund_amount), 0),
                func.coalesce(
                    func.sum(case((Cancellation.is_admin_cancellation.is_(True), 1), else_=0)),
                    0,
                ),
            )
            by_reason = select(Cancellation.reason, func.count(Cancellation.id)).group_by(
                Cancellation.reason
            )
            if since is not None:
                totals = totals.where(Cancellation.created_at >= since)
                by_reason = by_reason.where(Cancellation.created_at >= since)

            total_count, total_refunded, admin_count = self.db.execute(totals).one()
            reasons = {reason: count for reason, count in self.db.execute(by_reason).all()}
            return {
                "total_count": int(total_count or 0),
                "total_refunded": int(total_refunded or 0),
                "admin_count": int(admin_count or 0),
                "by_reason": reasons,
            }
        except SQLAlchemyError as e:
            self.logger.error(f"Error building cancellation summary: {str(e)}")
            raise RepositoryException(f"Failed to build cancellation summary: {str(e)}") from e
