# classbook/models/membership.py
"""
Membership and session-credit models.

Both are owned by the membership/billing side of the platform. The engine
reads tiers for refund policy and debits session credits while a hold or
booking is live.
"""

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from ..core.enums import MembershipTier
from ..core.ulid_helper import generate_ulid
from ..database import Base


class UserMembership(Base):
    __tablename__ = "user_memberships"

    user_id = Column(String(26), primary_key=True)
    # Stored as free text by the profile service; resolved through MembershipTier.parse
    tier = Column(String(20), nullable=False, default=MembershipTier.REGULAR.value)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class SessionCredit(Base):
    """A purchased pack of class sessions, usable until expires_at."""

    __tablename__ = "session_credits"

    id = Column(String(26), primary_key=True, index=True, default=generate_ulid)
    user_id = Column(String(26), nullable=False, index=True)
    session_count = Column(Integer, nullable=False, default=0)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("session_count >= 0", name="ck_session_credits_count_non_negative"),
    )
