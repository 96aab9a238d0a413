"""Tests for the rate/quota controller."""

import pytest

from valuebet.verification.quota import (
    InMemoryQuotaStore,
    QuotaConfig,
    RateLimiter,
    REASON_DAILY,
    REASON_HOURLY,
    REASON_RATE,
)


def limiter_with(clock, **overrides):
    config = QuotaConfig(**{"min_delay_between_calls_ms": 0, **overrides})
    return RateLimiter(config, clock=clock)


class CountingStore(InMemoryQuotaStore):
    """Store that records how often state is touched."""

    def __init__(self):
        super().__init__()
        self.transactions = 0

    def transact(self, mutate):
        self.transactions += 1
        return super().transact(mutate)


class TestLimits:

    def test_hourly_limit_and_rollover(self, clock):
        limiter = limiter_with(clock, max_calls_per_hour=3)
        for i in range(3):
            assert limiter.can_call().allowed
            limiter.record_call(f"call-{i}")

        check = limiter.can_call()
        assert not check.allowed
        assert check.reason == REASON_HOURLY
        assert check.remaining_hourly == 0
        assert check.wait_time_ms == 45 * 60_000

        clock.advance(hours=1)
        check = limiter.can_call()
        assert check.allowed
        assert check.remaining_hourly == 3
        assert check.remaining_daily == 497

    def test_daily_limit(self, clock):
        limiter = limiter_with(clock, max_calls_per_day=2)
        limiter.record_call()
        limiter.record_call()

        check = limiter.can_call()
        assert not check.allowed
        assert check.reason == REASON_DAILY
        assert check.message == "Daily limit reached (2 calls). Resets at midnight."

    def test_daily_checked_before_hourly(self, clock):
        limiter = limiter_with(clock, max_calls_per_day=2, max_calls_per_hour=2)
        limiter.record_call()
        limiter.record_call()
        assert limiter.can_call().reason == REASON_DAILY

    def test_min_delay_between_calls(self, clock):
        limiter = limiter_with(clock, min_delay_between_calls_ms=1000)
        limiter.record_call()

        check = limiter.can_call()
        assert check.reason == REASON_RATE
        assert check.wait_time_ms == 1000

        clock.advance(milliseconds=400)
        assert limiter.can_call().wait_time_ms == 600

        clock.advance(milliseconds=600)
        assert limiter.can_call().allowed

    def test_day_rollover_resets_counters_and_history(self, clock):
        limiter = limiter_with(clock, max_calls_per_day=2)
        limiter.record_call("a")
        limiter.record_call("b")

        clock.advance(days=1)
        assert limiter.can_call().allowed
        status = limiter.quota_status()
        assert status["daily"]["used"] == 0
        assert status["recent_calls"] == []

    def test_history_is_bounded(self, clock):
        limiter = limiter_with(clock, max_calls_per_day=1000, max_calls_per_hour=1000, history_limit=100)
        for i in range(105):
            limiter.record_call(f"call-{i}")

        state = limiter.store.transact(lambda s: s)
        assert len(state.call_history) == 100
        assert state.call_history[0].label == "call-5"
        assert state.call_history[-1].label == "call-104"

    def test_reset(self, clock):
        limiter = limiter_with(clock, max_calls_per_hour=1)
        limiter.record_call()
        limiter.reset()
        assert limiter.can_call().allowed

    def test_quota_status(self, clock):
        limiter = limiter_with(clock, max_calls_per_day=10, max_calls_per_hour=4)
        limiter.record_call("result:1")

        status = limiter.quota_status()
        assert status["daily"] == {"used": 1, "limit": 10, "remaining": 9, "percentage": 10.0}
        assert status["hourly"]["remaining"] == 3
        assert status["recent_calls"][0]["label"] == "result:1"

    def test_custom_store_is_used(self, clock):
        store = CountingStore()
        limiter = RateLimiter(QuotaConfig(min_delay_between_calls_ms=0), store=store, clock=clock)
        limiter.can_call()
        limiter.record_call()
        assert store.transactions == 2


class TestCache:

    def test_cache_hit_within_ttl(self, rate_limiter, clock):
        rate_limiter.cache_result("evt-1", {"finished": True})
        clock.advance(hours=23)
        assert rate_limiter.get_cached_result("evt-1") == {"finished": True}

    def test_expired_entry_is_evicted_on_read(self, rate_limiter, clock):
        rate_limiter.cache_result("evt-1", {"finished": True})
        clock.advance(hours=24)

        assert rate_limiter.get_cached_result("evt-1") is None
        assert rate_limiter.store.cache_size == 0

    def test_clear_cache(self, rate_limiter):
        rate_limiter.cache_result("evt-1", "x")
        rate_limiter.clear_cache()
        assert rate_limiter.get_cached_result("evt-1") is None

    def test_cache_does_not_spend_quota(self, rate_limiter):
        rate_limiter.cache_result("evt-1", "x")
        rate_limiter.get_cached_result("evt-1")
        assert rate_limiter.quota_status()["daily"]["used"] == 0


def test_reason_codes():
    assert {REASON_DAILY, REASON_HOURLY, REASON_RATE} == {"daily_limit", "hourly_limit", "rate_limit"}
