# classbook/tasks/beat_schedule.py
"""Celery Beat schedule for classbook maintenance tasks."""

from datetime import timedelta
from typing import Any, Dict

from ..core.config import settings


def maintenance_queue(environment: str = "development") -> str:
    """Queue for maintenance tasks; task routes and beat entries both use it."""
    return "maintenance" if environment == "production" else "celery"


def get_beat_schedule(environment: str = "development") -> Dict[str, Dict[str, Any]]:
    """
    Periodic tasks for the given environment.

    The hold sweep runs everywhere; production routes it to the maintenance queue.
    """
    return {
        "expire-stale-holds": {
            "task": "classbook.tasks.holds.expire_stale_holds",
            "schedule": timedelta(seconds=settings.hold_sweep_interval_seconds),
            "options": {
                "queue": maintenance_queue(environment),
                "expires": settings.hold_sweep_interval_seconds,
            },
        },
    }
