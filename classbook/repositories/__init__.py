# classbook/repositories/__init__.py
"""
Repository layer for the classbook engine.

Key Components:
- BaseRepository: generic create with error translation
- RepositoryFactory: central construction point used by services
- ScheduleRepository: schedules and guarded seat-counter updates
- ReservationRepository: reservations, holds and status compare-and-set
- MembershipRepository: membership tier reads and guarded session-credit debits
- CancellationRepository: cancellation audit trail and reporting

Usage:
    from classbook.repositories import RepositoryFactory

    schedule_repository = RepositoryFactory.create_schedule_repository(db)
    if not schedule_repository.try_reserve_seats(schedule_id, 2):
        ...
"""

from .base_repository import BaseRepository
from .cancellation_repository import CancellationRepository
from .factory import RepositoryFactory
from .membership_repository import MembershipRepository
from .reservation_repository import ReservationRepository
from .schedule_repository import ScheduleRepository

__all__ = [
    "BaseRepository",
    "CancellationRepository",
    "MembershipRepository",
    "RepositoryFactory",
    "ReservationRepository",
    "ScheduleRepository",
]
