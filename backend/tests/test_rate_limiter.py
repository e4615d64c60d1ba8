"""
Rate limiter tests (no database).

Verifies:
- The attempt that crosses max_attempts is rejected
- Buckets are keyed by (identifier, action)
- Buckets expire after the window
"""

from datetime import datetime, timedelta

import pytest

from cutquote.errors import RateLimitedError
from cutquote.services.rate_limit_service import MemoryBucketStore, RateLimiter, RateLimitRule


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 3, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    rules = {"QUOTE_RESPONSE": RateLimitRule(max_attempts=3, window=timedelta(minutes=15))}
    return RateLimiter(rules=rules, clock=clock)


def test_allows_up_to_max_attempts(limiter):
    for _ in range(3):
        limiter.check("7", "QUOTE_RESPONSE")

    with pytest.raises(RateLimitedError) as exc:
        limiter.check("7", "QUOTE_RESPONSE")

    assert exc.value.retry_after_seconds == 15 * 60
    assert "15 minute(s)" in exc.value.message


def test_identifiers_are_independent(limiter):
    for _ in range(3):
        limiter.check("7", "QUOTE_RESPONSE")
    limiter.check("8", "QUOTE_RESPONSE")


def test_window_expiry_resets_bucket(limiter, clock):
    for _ in range(3):
        limiter.check("7", "QUOTE_RESPONSE")

    clock.advance(minutes=15)

    limiter.check("7", "QUOTE_RESPONSE")
    assert limiter.status("7", "QUOTE_RESPONSE")["attempts"] == 1


def test_retry_after_shrinks_with_time(limiter, clock):
    for _ in range(3):
        limiter.check("7", "QUOTE_RESPONSE")
    clock.advance(minutes=10)

    with pytest.raises(RateLimitedError) as exc:
        limiter.check("7", "QUOTE_RESPONSE")
    assert exc.value.retry_after_seconds == 5 * 60


def test_status_and_reset(limiter):
    limiter.check("7", "QUOTE_RESPONSE")
    limiter.check("7", "QUOTE_RESPONSE")
    limiter.check("7", "QUOTE_RESPONSE")

    status = limiter.status("7", "QUOTE_RESPONSE")
    assert status["attempts"] == 3
    assert status["limited"] is True

    limiter.reset("7", "QUOTE_RESPONSE")
    assert limiter.status("7", "QUOTE_RESPONSE")["attempts"] == 0


def test_unknown_action(limiter):
    with pytest.raises(ValueError):
        limiter.check("7", "LOGIN")


def test_prune_drops_expired(clock):
    store = MemoryBucketStore()
    store.hit(("1", "COMMENT"), timedelta(minutes=1), clock())
    store.hit(("2", "COMMENT"), timedelta(minutes=30), clock())
    clock.advance(minutes=5)

    assert store.prune(clock()) == 1
    assert store.peek(("2", "COMMENT"), clock()).count == 1
