"""
Timezone utilities for the classbook engine.

Class start times are stored in UTC. SQLite returns naive datetimes from
DateTime(timezone=True) columns, so every comparison goes through ensure_utc.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
