# classbook/models/cancellation.py
"""
Cancellation audit record.

One row per cancelled reservation. The applied refund rate and amount are
stored as computed at cancellation time so the policy outcome can be
reconstructed later without re-deriving it. Only refund_status and
notification_sent change after insert.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.enums import RefundStatus
from ..core.ulid_helper import generate_ulid
from ..database import Base


class Cancellation(Base):
    __tablename__ = "cancellations"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    reservation_id = Column(
        String(26), ForeignKey("reservations.id"), nullable=False, index=True
    )
    cancelled_by_id = Column(String(26), nullable=False)
    reason = Column(Text, nullable=True)

    refund_amount = Column(Integer, nullable=False, default=0)
    refund_rate = Column(Numeric(5, 4), nullable=False, default=0)
    refund_status = Column(String(20), nullable=False, default=RefundStatus.PENDING.value)

    is_admin_cancellation = Column(Boolean, nullable=False, default=False)
    notification_sent = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    reservation = relationship("Reservation", back_populates="cancellations", lazy="joined")

    def __repr__(self) -> str:
        return (
            f"<Cancellation {self.id} reservation={self.reservation_id} "
            f"refund={self.refund_amount} status={self.refund_status}>"
        )
