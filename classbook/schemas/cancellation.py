"""Schemas for cancellation quotes, executions and reporting."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Dict

from pydantic import BaseModel, ConfigDict

from ..core.enums import ClassType, MembershipTier, RefundStatus, RejectionReason, TimeBand


class CancellationQuote(BaseModel):
    """Read-only answer to "what would I get back if I cancel now"."""

    success: bool
    message: str
    reason: RejectionReason | None = None
    can_cancel: bool = False
    time_band: TimeBand | None = None
    membership_level: MembershipTier | None = None
    class_type: ClassType | None = None
    refund_rate: Decimal = Decimal("0")
    refund_amount: int = 0
    time_to_class_hours: int = 0


class CancellationResult(BaseModel):
    success: bool
    message: str
    reason: RejectionReason | None = None
    cancellation_id: str | None = None
    refund_amount: int = 0
    refund_rate: Decimal = Decimal("0")
    refund_status: RefundStatus | None = None
    notification_sent: bool = False


class ClassCancellationResult(BaseModel):
    success: bool
    message: str
    reason: RejectionReason | None = None
    cancelled_count: int = 0
    failed_count: int = 0


class CancellationHistoryItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    reservation_id: str
    cancelled_by_id: str
    reason: str | None = None
    refund_amount: int
    refund_rate: Decimal
    refund_status: RefundStatus
    is_admin_cancellation: bool
    notification_sent: bool
    created_at: datetime | None = None


class CancellationSummary(BaseModel):
    since: datetime | None = None
    total_count: int = 0
    total_refunded: int = 0
    admin_count: int = 0
    user_count: int = 0
    by_reason: Dict[str, int] = {}
