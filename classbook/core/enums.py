# classbook/core/enums.py
"""
Core enums for the classbook engine.

All enums persisted to the database inherit from (str, Enum) so the stored
value is the lowercase/uppercase literal shown here, never the member name.
"""

from enum import Enum
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class AvailabilityStatus(str, Enum):
    """Seat availability of a single class schedule."""

    AVAILABLE = "AVAILABLE"
    LIMITED = "LIMITED"
    FULL = "FULL"
    CANCELLED = "CANCELLED"


class ReservationStatus(str, Enum):
    """Reservation lifecycle statuses."""

    PENDING = "pending"  # Temporary hold awaiting payment
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"  # Hold not paid before expires_at

    @property
    def is_terminal(self) -> bool:
        return self in (ReservationStatus.CANCELLED, ReservationStatus.EXPIRED)

    def can_transition_to(self, target: "ReservationStatus") -> bool:
        return target in _ALLOWED_TRANSITIONS.get(self, frozenset())


_ALLOWED_TRANSITIONS = {
    ReservationStatus.PENDING: frozenset(
        {ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED, ReservationStatus.EXPIRED}
    ),
    ReservationStatus.CONFIRMED: frozenset({ReservationStatus.CANCELLED}),
}


class RefundStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class MembershipTier(str, Enum):
    """Membership tiers that parameterize the cancellation policy."""

    REGULAR = "REGULAR"
    SILVER = "SILVER"
    GOLD = "GOLD"
    VIP = "VIP"

    @classmethod
    def parse(cls, value: Optional[str]) -> "MembershipTier":
        """
        Resolve a stored tier string.

        Missing values mean REGULAR. Unrecognized values also resolve to
        REGULAR, but are logged so bad data does not go unnoticed.
        """
        if not value:
            return cls.REGULAR
        try:
            return cls(value.strip().upper())
        except ValueError:
            logger.warning(
                "Unknown membership tier %r, falling back to REGULAR",
                value,
                extra={"membership_tier": value},
            )
            return cls.REGULAR


class ClassType(str, Enum):
    """Class categories with their own refund modifiers."""

    REGULAR = "REGULAR"
    SPECIAL = "SPECIAL"
    WORKSHOP = "WORKSHOP"
    EVENT = "EVENT"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ClassType":
        if not value:
            return cls.REGULAR
        try:
            return cls(value.strip().upper())
        except ValueError:
            logger.warning(
                "Unknown class type %r, falling back to REGULAR",
                value,
                extra={"class_type": value},
            )
            return cls.REGULAR


class TimeBand(str, Enum):
    """Time-to-class bands of the cancellation policy."""

    EARLY = "EARLY"
    STANDARD = "STANDARD"
    LATE = "LATE"
    AFTER_START = "AFTER_START"


class RejectionReason(str, Enum):
    """Expected business outcomes returned (never raised) by the engine."""

    CANCELLED = "CANCELLED"
    PAST_CLASS = "PAST_CLASS"
    NOT_ENOUGH_SEATS = "NOT_ENOUGH_SEATS"
    ALREADY_RESERVED = "ALREADY_RESERVED"
    NO_VALID_SESSION = "NO_VALID_SESSION"
    INSUFFICIENT_SESSIONS = "INSUFFICIENT_SESSIONS"
    ALREADY_CANCELLED = "ALREADY_CANCELLED"
    POLICY_DENIED = "POLICY_DENIED"
    NOT_FOUND = "NOT_FOUND"
    HOLD_EXPIRED = "HOLD_EXPIRED"
    INVALID_STATUS = "INVALID_STATUS"
