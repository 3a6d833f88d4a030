# classbook/tasks/__init__.py
"""Background tasks for the classbook engine."""

from .celery_app import celery_app

__all__ = ["celery_app"]
