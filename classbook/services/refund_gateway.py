# classbook/services/refund_gateway.py
"""
Refund gateway port.

Payment execution lives outside this engine. Executors hand refunds to a
RefundGateway and mark the audit row completed or failed from its answer.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefundOutcome:
    success: bool
    reference: Optional[str] = None
    error: Optional[str] = None


class RefundGateway(ABC):
    @abstractmethod
    def refund(
        self,
        *,
        reservation_id: str,
        cancellation_id: str,
        amount: int,
        payment_method: Optional[str],
    ) -> RefundOutcome:
        """Request a refund of `amount` for the reservation's payment."""


class LoggingRefundGateway(RefundGateway):
    """Default gateway: records the request and reports success."""

    def refund(
        self,
        *,
        reservation_id: str,
        cancellation_id: str,
        amount: int,
        payment_method: Optional[str],
    ) -> RefundOutcome:
        logger.info(
            f"Refund requested for reservation {reservation_id}: {amount:,}",
            extra={
                "reservation_id": reservation_id,
                "cancellation_id": cancellation_id,
                "refund_amount": amount,
                "payment_method": payment_method,
            },
        )
        return RefundOutcome(success=True, reference=cancellation_id)
