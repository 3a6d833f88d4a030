# classbook/services/availability_cache.py
"""
In-process availability cache.

The whole cache shares one time window: the first put after a clear records
the populated-at instant, and every lookup is a miss once the window has
elapsed, regardless of when the individual key was written. Entries are
removed by schedule (together with every range listing) or wholesale.

Admission and cancellation never read from here; only listings do.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from ..core.config import settings
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

RANGE_KEY_DELIMITER = "|"


class _CacheMiss:
    def __repr__(self) -> str:
        return "CACHE_MISS"

    def __bool__(self) -> bool:
        return False


CACHE_MISS: Any = _CacheMiss()


def schedule_key(schedule_id: str) -> str:
    return schedule_id


def range_key(start: str, end: str, class_id: Optional[str] = None) -> str:
    """Composite key of a date-range listing; always contains the delimiter."""
    return RANGE_KEY_DELIMITER.join((start, end, class_id or "all"))


class AvailabilityCache:
    """Thread-safe key -> payload map with a single global TTL window."""

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = (
            ttl_seconds if ttl_seconds is not None else settings.availability_cache_ttl_seconds
        )
        self._clock = clock
        self._entries: Dict[str, Any] = {}
        self._populated_at: Optional[float] = None
        self._lock = threading.Lock()

    def get(self, key: str) -> Any:
        """Return the cached payload or CACHE_MISS."""
        payload = self._lookup(key)
        prometheus_metrics.inc_cache_lookup(hit=payload is not CACHE_MISS)
        return payload

    def _lookup(self, key: str) -> Any:
        with self._lock:
            if self._populated_at is None:
                return CACHE_MISS
            if self._clock() - self._populated_at >= self.ttl_seconds:
                logger.debug("Availability cache window elapsed", extra={"cache_key": key})
                return CACHE_MISS
            if key not in self._entries:
                return CACHE_MISS
            logger.debug("Availability cache hit", extra={"cache_key": key})
            return self._entries[key]

    def put(self, key: str, payload: Any) -> None:
        with self._lock:
            if self._populated_at is None:
                self._populated_at = self._clock()
            self._entries[key] = payload

    def invalidate(self, schedule_id: str) -> int:
        """Drop the schedule's own key and every range key. Returns how many were removed."""
        with self._lock:
            doomed = [
                key
                for key in self._entries
                if key == schedule_key(schedule_id) or RANGE_KEY_DELIMITER in key
            ]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._populated_at = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# Process-wide instance used when a service is not handed one explicitly
availability_cache = AvailabilityCache()
