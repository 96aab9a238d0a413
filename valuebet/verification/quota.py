"""
Rate/Quota Controller for the result provider.

Gates every outbound result call against a daily cap, an hourly cap and
a minimum spacing between calls, and keeps a TTL cache of finished
results so repeat lookups cost nothing.

Counters reset lazily: the next check or record after the calendar day
(or hour) changes zeroes them. There is no background timer.

State lives behind the QuotaStore protocol. The in-memory store is
process-local; a multi-instance deployment must plug in a store whose
transact() is atomic across processes.
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Protocol, TypeVar

import structlog

from valuebet.models.schemas import CacheEntry, CallRecord, RateLimiterState

logger = structlog.get_logger()

T = TypeVar("T")

REASON_DAILY = "daily_limit"
REASON_HOURLY = "hourly_limit"
REASON_RATE = "rate_limit"


@dataclass
class QuotaConfig:
    """Call budget for the result provider."""

    max_calls_per_day: int = 500
    max_calls_per_hour: int = 100
    min_delay_between_calls_ms: int = 1000
    cache_expiry_hours: float = 24.0
    history_limit: int = 100

    @classmethod
    def from_settings(cls, settings) -> "QuotaConfig":
        """Build from config.settings.QuotaSettings."""
        return cls(
            max_calls_per_day=settings.max_calls_per_day,
            max_calls_per_hour=settings.max_calls_per_hour,
            min_delay_between_calls_ms=settings.min_delay_between_calls_ms,
            cache_expiry_hours=settings.cache_expiry_hours,
            history_limit=settings.history_limit,
        )


@dataclass
class QuotaCheck:
    """Answer to "may I call the provider now?"."""
    allowed: bool
    remaining_daily: int
    remaining_hourly: int
    reason: Optional[str] = None
    message: Optional[str] = None
    wait_time_ms: int = 0


# =============================================================================
# Stores
# =============================================================================

class QuotaStore(Protocol):
    """
    Backing store for limiter state and the result cache.

    transact() must run the mutation as one atomic read-modify-write and
    return its value. get_cache_entry() must evict and return None for an
    expired entry in the same atomic step.
    """

    def transact(self, mutate: Callable[[RateLimiterState], T]) -> T: ...

    def get_cache_entry(self, event_id: str, now_ms: int) -> Optional[CacheEntry]: ...

    def put_cache_entry(self, event_id: str, entry: CacheEntry) -> None: ...

    def clear_cache(self) -> None: ...

    def reset_state(self) -> None: ...


class InMemoryQuotaStore:
    """Process-local store guarded by a lock."""

    def __init__(self):
        self._lock = threading.RLock()
        self._state = RateLimiterState()
        self._cache: dict[str, CacheEntry] = {}

    def transact(self, mutate: Callable[[RateLimiterState], T]) -> T:
        with self._lock:
            return mutate(self._state)

    def get_cache_entry(self, event_id: str, now_ms: int) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._cache.get(event_id)
            if entry is None:
                return None
            if entry.is_expired(now_ms):
                del self._cache[event_id]
                return None
            return entry

    def put_cache_entry(self, event_id: str, entry: CacheEntry) -> None:
        with self._lock:
            self._cache[event_id] = entry

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def reset_state(self) -> None:
        with self._lock:
            self._state = RateLimiterState()

    @property
    def cache_size(self) -> int:
        with self._lock:
            return len(self._cache)


# =============================================================================
# Limiter
# =============================================================================

def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RateLimiter:
    """
    Quota gate for result-provider calls.

    Usage:
        limiter = RateLimiter(QuotaConfig(max_calls_per_hour=50))
        check = limiter.can_call()
        if check.allowed:
            result = await provider.fetch_result(event_id)
            limiter.record_call(f"result:{event_id}")
    """

    def __init__(
        self,
        config: Optional[QuotaConfig] = None,
        store: Optional[QuotaStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or QuotaConfig()
        self.store = store or InMemoryQuotaStore()
        self._clock = clock or _utc_now
        self.logger = logger.bind(component="rate_limiter")

    # =========================================================================
    # Time
    # =========================================================================

    def _now(self) -> datetime:
        return self._clock()

    def _now_ms(self) -> int:
        return int(self._now().timestamp() * 1000)

    @staticmethod
    def _markers(now: datetime) -> tuple[str, str]:
        return now.strftime("%Y-%m-%d"), now.strftime("%Y-%m-%dT%H")

    def _reset_if_needed(self, state: RateLimiterState, now: datetime) -> None:
        """Zero counters whose calendar period has rolled over. Runs inside transact."""
        day, hour = self._markers(now)

        if state.day_marker != day:
            if state.day_marker is not None:
                self.logger.info("Daily quota reset", previous_calls=state.daily_calls)
            state.daily_calls = 0
            state.call_history = []
            state.day_marker = day

        if state.hour_marker != hour:
            state.hourly_calls = 0
            state.hour_marker = hour

    # =========================================================================
    # Quota
    # =========================================================================

    def can_call(self) -> QuotaCheck:
        """Check daily cap, hourly cap, then minimum spacing, in that order."""
        now = self._now()
        now_ms = int(now.timestamp() * 1000)
        cfg = self.config

        def check(state: RateLimiterState) -> QuotaCheck:
            self._reset_if_needed(state, now)
            remaining_daily = max(0, cfg.max_calls_per_day - state.daily_calls)
            remaining_hourly = max(0, cfg.max_calls_per_hour - state.hourly_calls)

            if state.daily_calls >= cfg.max_calls_per_day:
                midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
                wait_ms = 86_400_000 - int((now - midnight).total_seconds() * 1000)
                return QuotaCheck(
                    allowed=False,
                    reason=REASON_DAILY,
                    message=f"Daily limit reached ({cfg.max_calls_per_day} calls). Resets at midnight.",
                    remaining_daily=0,
                    remaining_hourly=remaining_hourly,
                    wait_time_ms=wait_ms,
                )

            if state.hourly_calls >= cfg.max_calls_per_hour:
                wait_ms = (60 - now.minute) * 60_000 - now.second * 1000
                return QuotaCheck(
                    allowed=False,
                    reason=REASON_HOURLY,
                    message=(
                        f"Hourly limit reached ({cfg.max_calls_per_hour} calls). "
                        f"Wait {max(1, round(wait_ms / 60_000))} minutes."
                    ),
                    remaining_daily=remaining_daily,
                    remaining_hourly=0,
                    wait_time_ms=wait_ms,
                )

            if state.last_call_ms is not None:
                elapsed = now_ms - state.last_call_ms
                if elapsed < cfg.min_delay_between_calls_ms:
                    wait_ms = cfg.min_delay_between_calls_ms - elapsed
                    return QuotaCheck(
                        allowed=False,
                        reason=REASON_RATE,
                        message=f"Please wait {wait_ms / 1000:.1f}s between calls",
                        remaining_daily=remaining_daily,
                        remaining_hourly=remaining_hourly,
                        wait_time_ms=wait_ms,
                    )

            return QuotaCheck(
                allowed=True,
                remaining_daily=remaining_daily,
                remaining_hourly=remaining_hourly,
            )

        result = self.store.transact(check)
        if not result.allowed:
            self.logger.debug("Call refused", reason=result.reason, wait_ms=result.wait_time_ms)
        return result

    def record_call(self, label: str = "") -> None:
        """Count one provider call and stamp the spacing clock."""
        now = self._now()
        now_ms = int(now.timestamp() * 1000)
        limit = self.config.history_limit

        def record(state: RateLimiterState) -> tuple[int, int]:
            self._reset_if_needed(state, now)
            state.daily_calls += 1
            state.hourly_calls += 1
            state.last_call_ms = now_ms
            state.call_history.append(CallRecord(timestamp_ms=now_ms, label=label))
            if len(state.call_history) > limit:
                del state.call_history[:-limit]
            return state.daily_calls, state.hourly_calls

        daily, hourly = self.store.transact(record)
        self.logger.debug(
            "Call recorded",
            label=label,
            daily=f"{daily}/{self.config.max_calls_per_day}",
            hourly=f"{hourly}/{self.config.max_calls_per_hour}",
        )

    # =========================================================================
    # Cache
    # =========================================================================

    def cache_result(self, event_id: str, result: Any) -> None:
        now_ms = self._now_ms()
        ttl_ms = int(self.config.cache_expiry_hours * 3_600_000)
        self.store.put_cache_entry(
            str(event_id),
            CacheEntry(result=result, cached_at_ms=now_ms, expires_at_ms=now_ms + ttl_ms),
        )

    def get_cached_result(self, event_id: str) -> Optional[Any]:
        entry = self.store.get_cache_entry(str(event_id), self._now_ms())
        return entry.result if entry is not None else None

    def clear_cache(self) -> None:
        self.store.clear_cache()
        self.logger.info("Result cache cleared")

    # =========================================================================
    # Status
    # =========================================================================

    def reset(self) -> None:
        """Zero all counters and history. The cache is kept."""
        self.store.reset_state()
        self.logger.info("Quota counters reset")

    def quota_status(self) -> dict:
        now = self._now()
        cfg = self.config

        def snapshot(state: RateLimiterState) -> dict:
            self._reset_if_needed(state, now)
            return {
                "daily": {
                    "used": state.daily_calls,
                    "limit": cfg.max_calls_per_day,
                    "remaining": max(0, cfg.max_calls_per_day - state.daily_calls),
                    "percentage": round(100 * state.daily_calls / max(1, cfg.max_calls_per_day), 1),
                },
                "hourly": {
                    "used": state.hourly_calls,
                    "limit": cfg.max_calls_per_hour,
                    "remaining": max(0, cfg.max_calls_per_hour - state.hourly_calls),
                    "percentage": round(100 * state.hourly_calls / max(1, cfg.max_calls_per_hour), 1),
                },
                "last_call_ms": state.last_call_ms,
                "recent_calls": [
                    {"timestamp_ms": c.timestamp_ms, "label": c.label}
                    for c in state.call_history[-10:]
                ],
            }

        return self.store.transact(snapshot)


# =============================================================================
# Global instance
# =============================================================================

_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Process-wide limiter, created with defaults on first use."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter()
    return _rate_limiter


def init_rate_limiter(
    config: Optional[QuotaConfig] = None,
    store: Optional[QuotaStore] = None,
) -> RateLimiter:
    """Initialize the process-wide limiter."""
    global _rate_limiter
    _rate_limiter = RateLimiter(config=config, store=store)
    return _rate_limiter
