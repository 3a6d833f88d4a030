# classbook/services/__init__.py
"""
Service layer for the classbook engine.

- AvailabilityCache / AvailabilityService: cached listing reads and classification
- AdmissionService: ordered reservation admission rules
- HoldService: temporary holds and their expiry
- CancellationPolicyEngine: refund policy evaluation
- CancellationService: user and admin cancellation
- ClassCancellationService: class-wide cancellation fan-out
"""

from .admission_service import AdmissionService
from .availability_cache import CACHE_MISS, AvailabilityCache, availability_cache
from .availability_service import AvailabilityService, classify_availability
from .base import BaseService
from .cancellation_policy import (
    CancellationDeadlines,
    CancellationPolicyEngine,
    CancellationPolicyResult,
)
from .cancellation_service import CancellationService
from .class_cancellation_service import ClassCancellationService
from .hold_service import HoldService
from .notification_service import LoggingNotifier, Notifier
from .refund_gateway import LoggingRefundGateway, RefundGateway, RefundOutcome

__all__ = [
    "CACHE_MISS",
    "AdmissionService",
    "AvailabilityCache",
    "AvailabilityService",
    "BaseService",
    "CancellationDeadlines",
    "CancellationPolicyEngine",
    "CancellationPolicyResult",
    "CancellationService",
    "ClassCancellationService",
    "HoldService",
    "LoggingNotifier",
    "LoggingRefundGateway",
    "Notifier",
    "RefundGateway",
    "RefundOutcome",
    "availability_cache",
    "classify_availability",
]
