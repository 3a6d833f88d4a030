"""Pydantic result models returned by classbook services."""

from .availability import ScheduleWithStatus
from .cancellation import (
    CancellationHistoryItem,
    CancellationQuote,
    CancellationResult,
    CancellationSummary,
    ClassCancellationResult,
)
from .reservation import AdmissionResult, HoldResult, SessionCreditSnapshot

__all__ = [
    "AdmissionResult",
    "CancellationHistoryItem",
    "CancellationQuote",
    "CancellationResult",
    "CancellationSummary",
    "ClassCancellationResult",
    "HoldResult",
    "ScheduleWithStatus",
    "SessionCreditSnapshot",
]
