"""Schemas for schedule availability listings."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from ..core.enums import AvailabilityStatus, ClassType
from ..core.timezone_utils import ensure_utc

if TYPE_CHECKING:
    from ..models.schedule import ClassSchedule


class ScheduleWithStatus(BaseModel):
    """
    Detached snapshot of a schedule plus its availability classification.

    Instances are shared through the availability cache, so they are frozen.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    class_id: str
    class_title: str | None = None
    class_type: ClassType = ClassType.REGULAR
    price: int = 0
    start_at: datetime
    duration_minutes: int
    capacity: int
    remaining_seats: int
    is_cancelled: bool = False
    cancellation_reason: str | None = None
    availability_status: AvailabilityStatus

    @classmethod
    def from_schedule(
        cls, schedule: "ClassSchedule", status: AvailabilityStatus
    ) -> "ScheduleWithStatus":
        fitness_class = schedule.fitness_class
        return cls(
            id=schedule.id,
            class_id=schedule.class_id,
            class_title=fitness_class.title if fitness_class is not None else None,
            class_type=schedule.class_type,
            price=fitness_class.price if fitness_class is not None else 0,
            start_at=ensure_utc(schedule.start_at),
            duration_minutes=schedule.duration_minutes,
            capacity=schedule.capacity,
            remaining_seats=schedule.remaining_seats,
            is_cancelled=bool(schedule.is_cancelled),
            cancellation_reason=schedule.cancellation_reason,
            availability_status=status,
        )
