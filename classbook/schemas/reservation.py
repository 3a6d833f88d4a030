"""Schemas returned by admission checks and temporary holds."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from ..core.enums import AvailabilityStatus, RejectionReason
from .availability import ScheduleWithStatus


class SessionCreditSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    session_count: int
    expires_at: datetime


class AdmissionResult(BaseModel):
    """Outcome of the ordered admission rules. Rejections are values, not errors."""

    can_reserve: bool
    reason: RejectionReason | None = None
    message: str = ""
    schedule: ScheduleWithStatus | None = None
    availability_status: AvailabilityStatus | None = None
    session_credit: SessionCreditSnapshot | None = None
    is_guest: bool = False

    @classmethod
    def rejected(
        cls,
        reason: RejectionReason,
        message: str,
        schedule: ScheduleWithStatus | None = None,
    ) -> "AdmissionResult":
        return cls(
            can_reserve=False,
            reason=reason,
            message=message,
            schedule=schedule,
            availability_status=schedule.availability_status if schedule else None,
        )


class HoldResult(BaseModel):
    success: bool
    message: str
    reason: RejectionReason | None = None
    reservation_id: str | None = None
    expires_at: datetime | None = None
    total_price: int | None = None
