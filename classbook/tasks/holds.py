# classbook/tasks/holds.py
"""Celery task that releases seats held by unpaid, expired reservations."""

from datetime import datetime, timezone
import logging
from typing import Any, Dict

from sqlalchemy.orm import Session

from ..database import SessionLocal
from ..services.hold_service import HoldService
from .celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    name="classbook.tasks.holds.expire_stale_holds",
    bind=True,
    max_retries=3,
    default_retry_delay=60,
)
def expire_stale_holds(self: Any) -> Dict[str, Any]:
    """Expire pending holds past their expiry and restore their seats."""
    db: Session = SessionLocal()
    try:
        expired = HoldService(db).expire_stale_holds()
        if expired:
            logger.info(f"Hold sweep expired {expired} reservations")
        return {
            "status": "success",
            "expired": expired,
            "completed_at": datetime.now(timezone.utc).isoformat(),
        }
    except Exception as exc:
        logger.error(f"Hold sweep failed: {str(exc)}", exc_info=True)
        raise self.retry(exc=exc)
    finally:
        db.close()
