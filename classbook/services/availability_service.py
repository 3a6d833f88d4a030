# classbook/services/availability_service.py
"""
Availability Service for the classbook engine.

Serves the read-mostly listing path (calendars, class cards). Results go
through the AvailabilityCache and may be stale up to its window; admission
and cancellation read the schedule table directly instead.
"""

from datetime import datetime
from decimal import ROUND_CEILING, Decimal
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import AvailabilityStatus
from ..core.exceptions import NotFoundException
from ..core.timezone_utils import ensure_utc
from ..models.schedule import ClassSchedule
from ..repositories.factory import RepositoryFactory
from ..schemas.availability import ScheduleWithStatus
from .availability_cache import (
    CACHE_MISS,
    AvailabilityCache,
    availability_cache,
    range_key,
    schedule_key,
)
from .base import BaseService

logger = logging.getLogger(__name__)


def limited_threshold(capacity: int, ratio: Optional[float] = None) -> int:
    """Seat count at or below which a schedule is LIMITED: ceil(capacity * ratio)."""
    ratio = settings.limited_seat_ratio if ratio is None else ratio
    value = Decimal(capacity) * Decimal(str(ratio))
    return int(value.to_integral_value(rounding=ROUND_CEILING))


def classify_availability(
    schedule: ClassSchedule, limited_ratio: Optional[float] = None
) -> AvailabilityStatus:
    """
    Map a schedule's seat counters to an availability status.

    CANCELLED dominates FULL, which dominates LIMITED, which dominates AVAILABLE.
    """
    if schedule.is_cancelled:
        return AvailabilityStatus.CANCELLED
    if schedule.remaining_seats <= 0:
        return AvailabilityStatus.FULL
    if schedule.remaining_seats <= limited_threshold(schedule.capacity, limited_ratio):
        return AvailabilityStatus.LIMITED
    return AvailabilityStatus.AVAILABLE


class AvailabilityService(BaseService):
    """Cache-assisted schedule availability lookups."""

    def __init__(
        self,
        db: Session,
        cache: Optional[AvailabilityCache] = None,
        limited_ratio: Optional[float] = None,
    ):
        super().__init__(db, cache if cache is not None else availability_cache)
        self.schedule_repository = RepositoryFactory.create_schedule_repository(db)
        self.limited_ratio = limited_ratio

    def to_schedule_with_status(self, schedule: ClassSchedule) -> ScheduleWithStatus:
        return ScheduleWithStatus.from_schedule(
            schedule, classify_availability(schedule, self.limited_ratio)
        )

    @BaseService.measure_operation("check_schedule_availability")
    def check_schedule_availability(self, schedule_id: str) -> ScheduleWithStatus:
        """
        Availability of one schedule.

        Raises:
            NotFoundException: If the schedule does not exist
        """
        key = schedule_key(schedule_id)
        cached = self.cache.get(key)
        if cached is not CACHE_MISS:
            return cached

        schedule = self.schedule_repository.get_schedule(schedule_id)
        if schedule is None:
            raise NotFoundException(
                "Class schedule not found.", details={"schedule_id": schedule_id}
            )

        result = self.to_schedule_with_status(schedule)
        self.cache.put(key, result)
        return result

    @BaseService.measure_operation("get_schedules_availability")
    def get_schedules_availability(
        self, start: datetime, end: datetime, class_id: Optional[str] = None
    ) -> List[ScheduleWithStatus]:
        """Active schedules starting between start and end, earliest first."""
        start = ensure_utc(start)
        end = ensure_utc(end)
        key = range_key(start.isoformat(), end.isoformat(), class_id)
        cached = self.cache.get(key)
        if cached is not CACHE_MISS:
            return list(cached)

        schedules = self.schedule_repository.get_schedules_in_range(start, end, class_id)
        results = [self.to_schedule_with_status(schedule) for schedule in schedules]
        self.cache.put(key, tuple(results))
        self.logger.debug(
            f"Loaded {len(results)} schedules into availability cache",
            extra={"cache_key": key},
        )
        return results

    def invalidate_schedule_cache(self, schedule_id: str) -> None:
        self.invalidate_cache(schedule_id)

    def clear_availability_cache(self) -> None:
        self.cache.clear()
        self.logger.info("Availability cache cleared")
