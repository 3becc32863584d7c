"""
Usage tracking -- which statuses were interacted with recently.

Every eligible interaction calls `record()`, so writes must stay cheap and
must never wait on a refresh. A refresh reads `recently_used()` once and
calls `trim()` after it commits, which is the expiry policy: entries older
than the usage window are dropped at the end of each refresh cycle.

Two backends:
  MemoryUsageTracker -- hour-bucketed in-process map (single worker setups, tests)
  RedisUsageTracker  -- sorted set shared by every web/worker process
"""

import logging
import os
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Dict, Optional, Set

from trends.errors import UsageTrackerError

logger = logging.getLogger(__name__)

USED_KEY = "trending_statuses:used"
BUCKET_SECONDS = 3600


class UsageTracker(ABC):
    """Records status usage and answers 'what was used recently?'."""

    def __init__(self, window: timedelta):
        self.window = window

    def cutoff(self, at: datetime) -> float:
        """Epoch seconds at (and before) which usage has expired."""
        return (at - self.window).timestamp()

    @abstractmethod
    def record(self, status_id: int, at: datetime) -> bool:
        """Mark a status as used at `at`. Returns False if it could not be stored."""
        ...

    @abstractmethod
    def recently_used(self, at: datetime) -> Set[int]:
        """
        Ids used within the window ending at `at`.

        Raises:
            UsageTrackerError: If the backend could not be read.
        """
        ...

    @abstractmethod
    def trim(self, at: datetime) -> int:
        """Drop usage older than the window ending at `at`. Returns entries removed."""
        ...


class MemoryUsageTracker(UsageTracker):
    """
    In-process tracker keyed by hour bucket.

    The lock only guards single dictionary operations; readers copy out
    what they need and release it immediately.
    """

    def __init__(self, window: timedelta):
        super().__init__(window)
        self._buckets: Dict[int, Dict[int, float]] = {}
        self._lock = threading.Lock()

    def record(self, status_id: int, at: datetime) -> bool:
        ts = at.timestamp()
        bucket = int(ts // BUCKET_SECONDS)
        with self._lock:
            used = self._buckets.setdefault(bucket, {})
            if ts > used.get(status_id, float("-inf")):
                used[status_id] = ts
        return True

    def recently_used(self, at: datetime) -> Set[int]:
        upper = at.timestamp()
        lower = self.cutoff(at)
        first_bucket = int(lower // BUCKET_SECONDS)
        last_bucket = int(upper // BUCKET_SECONDS)

        with self._lock:
            snapshot = [
                dict(used) for bucket, used in self._buckets.items()
                if first_bucket <= bucket <= last_bucket
            ]

        ids = set()
        for used in snapshot:
            ids.update(sid for sid, ts in used.items() if lower < ts <= upper)
        return ids

    def trim(self, at: datetime) -> int:
        lower = self.cutoff(at)
        boundary = int(lower // BUCKET_SECONDS)
        removed = 0
        with self._lock:
            # Buckets before the boundary hold only expired entries
            for bucket in [b for b in self._buckets if b < boundary]:
                removed += len(self._buckets.pop(bucket))

            used = self._buckets.get(boundary)
            if used:
                stale = [sid for sid, ts in used.items() if ts <= lower]
                for sid in stale:
                    del used[sid]
                removed += len(stale)
                if not used:
                    del self._buckets[boundary]
        if removed:
            logger.debug(f"Trimmed {removed} expired usage entries")
        return removed


class RedisUsageTracker(UsageTracker):
    """
    Tracker backed by a Redis sorted set (member = status id, score = epoch).

    ZADD is atomic on the server, so concurrent writers from any number of
    processes never contend with each other or with the refresh job.
    """

    def __init__(self, window: timedelta, redis_url: Optional[str] = None,
                 client=None, key: str = USED_KEY):
        super().__init__(window)
        self.key = key

        if client is not None:
            self.client = client
            return

        import redis

        if not redis_url:
            redis_url = os.getenv("REDIS_URL", "redis://localhost:6379")

        try:
            self.client = redis.from_url(redis_url, decode_responses=True)
            self.client.ping()
            logger.info("Redis connection established for usage tracking")
        except Exception as e:
            logger.error(f"Failed to connect to Redis: {e}")
            raise

    def record(self, status_id: int, at: datetime) -> bool:
        try:
            self.client.zadd(self.key, {str(status_id): at.timestamp()})
            return True
        except Exception as e:
            logger.error(f"Failed to record usage for status {status_id}: {e}")
            return False

    def recently_used(self, at: datetime) -> Set[int]:
        try:
            members = self.client.zrangebyscore(self.key, f"({self.cutoff(at)}", at.timestamp())
        except Exception as e:
            raise UsageTrackerError(f"Failed to read recent usage from {self.key}: {e}") from e
        return {int(m) for m in members}

    def trim(self, at: datetime) -> int:
        removed = self.client.zremrangebyscore(self.key, "-inf", self.cutoff(at))
        if removed:
            logger.debug(f"Trimmed {removed} expired usage entries from {self.key}")
        return int(removed or 0)
