# classbook/services/notification_service.py
"""Cancellation notices sent to members after an admin cancellation."""

from abc import ABC, abstractmethod
import logging

logger = logging.getLogger(__name__)


class Notifier(ABC):
    @abstractmethod
    def notify_cancellation(self, *, user_id: str, reservation_id: str, refund_amount: int) -> None:
        """Deliver the notice. Raise on delivery failure."""


class LoggingNotifier(Notifier):
    def notify_cancellation(self, *, user_id: str, reservation_id: str, refund_amount: int) -> None:
        logger.info(
            f"Cancellation notice for user {user_id}, reservation {reservation_id}",
            extra={
                "user_id": user_id,
                "reservation_id": reservation_id,
                "refund_amount": refund_amount,
            },
        )
