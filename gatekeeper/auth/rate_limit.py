"""In-process fixed-window rate limiter.

Counters live in a dict shared by every request handler; each check is a
read-modify-write done under one lock. State is process-local and lost on
restart, so a multi-process deployment needs a shared counter store instead.
"""

import logging
import math
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import lru_cache

from gatekeeper.core.mixins import Clock, utc_now

logger = logging.getLogger(__name__)


@dataclass
class RateLimitEntry:
    count: int
    reset_at: datetime


@dataclass(frozen=True)
class RateLimitResult:
    limited: bool
    remaining: int
    reset_at: datetime
    retry_after_seconds: int | None = None


@dataclass(frozen=True)
class RateLimitRule:
    """A named limit applied per identity, e.g. ``RateLimitRule("api", 100, 15min)``."""

    scope: str
    max_requests: int
    window: timedelta

    def key_for(self, identity: str) -> str:
        return f"{self.scope}:{identity}"


class RateLimiter:
    def __init__(self, clock: Clock = utc_now):
        self._clock = clock
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def check(self, key: str, max_requests: int, window: timedelta) -> RateLimitResult:
        """Count a hit against ``key`` and report whether it is over the limit.

        A hit is only counted when allowed, so a throttled client does not
        push its own reset further out.
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or now > entry.reset_at:
                entry = RateLimitEntry(count=0, reset_at=now + window)
                self._entries[key] = entry

            if entry.count >= max_requests:
                retry_after = max(1, math.ceil((entry.reset_at - now).total_seconds()))
                return RateLimitResult(
                    limited=True,
                    remaining=0,
                    reset_at=entry.reset_at,
                    retry_after_seconds=retry_after,
                )

            entry.count += 1
            return RateLimitResult(
                limited=False,
                remaining=max_requests - entry.count,
                reset_at=entry.reset_at,
            )

    def check_rule(self, rule: RateLimitRule, identity: str) -> RateLimitResult:
        return self.check(rule.key_for(identity), rule.max_requests, rule.window)

    def reset(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def sweep(self) -> int:
        """Evict entries whose window has passed; returns how many were dropped."""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if now > entry.reset_at]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Evicted %d expired rate limit entries", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


@lru_cache
def get_rate_limiter() -> RateLimiter:
    """Process-wide limiter shared by all requests."""
    return RateLimiter()
