# classbook/repositories/factory.py
"""
Repository Factory for the classbook engine.

Provides centralized creation of repository instances so services never
construct data access objects ad hoc.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

if TYPE_CHECKING:
    from .cancellation_repository import CancellationRepository
    from .membership_repository import MembershipRepository
    from .reservation_repository import ReservationRepository
    from .schedule_repository import ScheduleRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_schedule_repository(db: Session) -> "ScheduleRepository":
        """Create repository for schedules and seat counters."""
        from .schedule_repository import ScheduleRepository

        return ScheduleRepository(db)

    @staticmethod
    def create_reservation_repository(db: Session) -> "ReservationRepository":
        """Create repository for reservations and holds."""
        from .reservation_repository import ReservationRepository

        return ReservationRepository(db)

    @staticmethod
    def create_membership_repository(db: Session) -> "MembershipRepository":
        from .membership_repository import MembershipRepository

        return MembershipRepository(db)

    @staticmethod
    def create_cancellation_repository(db: Session) -> "CancellationRepository":
        """Create repository for the cancellation audit trail."""
        from .cancellation_repository import CancellationRepository

        return CancellationRepository(db)
