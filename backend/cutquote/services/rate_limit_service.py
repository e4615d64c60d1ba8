"""
Rate Limiting Service

WHY: Customers can trigger admin notifications (revision requests) and
comment threads from the public side. Repeated submissions are throttled
per (identifier, action).

DESIGN:
- Fixed TTL buckets: the first hit opens a bucket that lives for the
  rule's window; hits inside the window count against max_attempts
- The limiter is injected: create_app builds one per application and
  stores it in app.extensions["rate_limiter"]; there is no module-level
  state, so each app (and each test app) has its own buckets
- The bucket store is pluggable; MemoryBucketStore is the in-process default
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app

from ..errors import RateLimitedError
from cutquote.time_utils import utcnow


@dataclass(frozen=True)
class RateLimitRule:
    max_attempts: int
    window: timedelta


# Configuration constants
DEFAULT_RULES: dict[str, RateLimitRule] = {
    "QUOTE_RESPONSE": RateLimitRule(max_attempts=5, window=timedelta(minutes=15)),
    "COMMENT": RateLimitRule(max_attempts=20, window=timedelta(minutes=10)),
}

RATE_LIMIT_MESSAGES = {
    "QUOTE_RESPONSE": "Too many responses to this quote",
    "COMMENT": "Too many comments",
}


@dataclass
class Bucket:
    count: int
    expires_at: datetime


class MemoryBucketStore:
    """Thread-safe in-process bucket store keyed by (identifier, action)."""

    def __init__(self):
        self._buckets: dict[tuple[str, str], Bucket] = {}
        self._lock = threading.Lock()

    def hit(self, key: tuple[str, str], window: timedelta, now: datetime) -> Bucket:
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None or bucket.expires_at <= now:
                bucket = Bucket(count=0, expires_at=now + window)
                self._buckets[key] = bucket
            bucket.count += 1
            return Bucket(count=bucket.count, expires_at=bucket.expires_at)

    def peek(self, key: tuple[str, str], now: datetime) -> Bucket | None:
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None or bucket.expires_at <= now:
                return None
            return Bucket(count=bucket.count, expires_at=bucket.expires_at)

    def reset(self, key: tuple[str, str]) -> None:
        with self._lock:
            self._buckets.pop(key, None)

    def prune(self, now: datetime) -> int:
        """Drop expired buckets. Returns how many were removed."""
        with self._lock:
            expired = [k for k, b in self._buckets.items() if b.expires_at <= now]
            for k in expired:
                del self._buckets[k]
            return len(expired)


class RateLimiter:
    def __init__(self, store=None, rules: dict[str, RateLimitRule] | None = None, clock=utcnow):
        self.store = store or MemoryBucketStore()
        self.rules = dict(rules or DEFAULT_RULES)
        self._clock = clock

    def _rule(self, action: str) -> RateLimitRule:
        try:
            return self.rules[action]
        except KeyError:
            raise ValueError(f"No rate limit rule for action '{action}'") from None

    def check(self, identifier: str, action: str) -> None:
        """
        Count one attempt and raise RateLimitedError once the bucket is full.

        The attempt that crosses max_attempts is rejected, not counted as allowed.
        """
        rule = self._rule(action)
        now = self._clock()
        bucket = self.store.hit((str(identifier), action), rule.window, now)
        if bucket.count > rule.max_attempts:
            seconds = max(1, int((bucket.expires_at - now).total_seconds()))
            message = RATE_LIMIT_MESSAGES.get(action, "Too many attempts")
            raise RateLimitedError(
                f"{message}; try again in {seconds // 60 + (1 if seconds % 60 else 0)} minute(s)",
                retry_after_seconds=seconds,
            )

    def status(self, identifier: str, action: str) -> dict:
        rule = self._rule(action)
        now = self._clock()
        bucket = self.store.peek((str(identifier), action), now)
        used = bucket.count if bucket else 0
        return {
            "action": action,
            "attempts": used,
            "max_attempts": rule.max_attempts,
            "limited": used >= rule.max_attempts,
            "window_minutes": int(rule.window.total_seconds() / 60),
        }

    def reset(self, identifier: str, action: str) -> None:
        self.store.reset((str(identifier), action))


def get_rate_limiter() -> RateLimiter:
    """Limiter bound to the current application."""
    return current_app.extensions["rate_limiter"]
