# classbook/models/reservation.py
"""
Reservation model.

A reservation is a user's claim on seats of one schedule. It is created as a
pending hold, confirmed by the payment flow, and ends cancelled or expired.
Status changes only move forward; see ReservationStatus.can_transition_to.
"""

from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..core.enums import ReservationStatus
from ..core.timezone_utils import ensure_utc
from ..core.ulid_helper import generate_ulid
from ..database import Base


class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    user_id = Column(String(26), nullable=False, index=True)
    schedule_id = Column(String(26), ForeignKey("class_schedules.id"), nullable=False, index=True)

    student_count = Column(Integer, nullable=False, default=1)
    total_price = Column(Integer, nullable=False, default=0)
    payment_method = Column(String(20), nullable=True)
    # Credit debited when the hold was created; given back on expiry or cancellation
    session_credit_id = Column(String(26), ForeignKey("session_credits.id"), nullable=True)
    sessions_used = Column(Integer, nullable=False, default=0)

    status = Column(
        String(20), nullable=False, default=ReservationStatus.PENDING.value, index=True
    )
    # Only meaningful while the reservation is pending
    expires_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    schedule = relationship("ClassSchedule", back_populates="reservations", lazy="joined")
    cancellations = relationship("Cancellation", back_populates="reservation")

    __table_args__ = (
        CheckConstraint("student_count >= 1", name="ck_reservations_student_count_positive"),
        CheckConstraint("total_price >= 0", name="ck_reservations_total_price_non_negative"),
        CheckConstraint("sessions_used >= 0", name="ck_reservations_sessions_used_non_negative"),
    )

    @property
    def status_enum(self) -> ReservationStatus:
        return ReservationStatus(self.status)

    def is_hold_expired(self, now: datetime) -> bool:
        """True for a pending hold whose expiry has passed."""
        if self.status != ReservationStatus.PENDING.value or self.expires_at is None:
            return False
        return ensure_utc(self.expires_at) <= now

    def __repr__(self) -> str:
        return f"<Reservation {self.id} user={self.user_id} status={self.status}>"
