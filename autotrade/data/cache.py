"""Expiring cache for external data, with hit/miss/error monitoring.

Every source kind has a fixed time-to-live.  Entries are keyed by the
kind plus an order-independent rendering of the request parameters, so
``{"a": 1, "b": 2}`` and ``{"b": 2, "a": 1}`` share a slot.  The cache is
in-memory only; re-fetching is the recovery path after a restart.
"""

import json
import logging
import math
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from autotrade.retry import ExponentialBackoff, with_retry

logger = logging.getLogger("autotrade.cache")


class SourceKind(str, Enum):
    MARKET_DATA = "market_data"
    PRICE_HISTORY = "price_history"
    SENTIMENT = "sentiment"
    NEWS = "news"
    TECHNICAL_INDICATORS = "technical_indicators"


# Seconds each kind stays fresh.
CACHE_TTL_SECONDS: dict[SourceKind, float] = {
    SourceKind.MARKET_DATA: 60.0,
    SourceKind.PRICE_HISTORY: 60.0,
    SourceKind.SENTIMENT: 300.0,
    SourceKind.NEWS: 300.0,
    SourceKind.TECHNICAL_INDICATORS: 600.0,
}

DEFAULT_CAPACITY = 1000
TARGET_LOAD_FACTOR = 0.9


class HealthStatus(str, Enum):
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


@dataclass(frozen=True)
class CacheEntry:
    payload: Any
    written_at: float
    expires_at: float
    source_kind: SourceKind


def make_key(kind: SourceKind, params: Any) -> str:
    """Deterministic cache key; dict ordering does not matter."""
    if isinstance(params, dict):
        rendered = json.dumps(params, sort_keys=True, default=str)
    else:
        rendered = str(params)
    return f"{SourceKind(kind).value}:{rendered}"


class CacheMonitor:
    """Hit/miss/error counters and the derived traffic-light status."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self._hits = 0
            self._misses = 0
            self._errors = 0
            self._started = self._clock()

    def record_hit(self) -> None:
        with self._lock:
            self._hits += 1

    def record_miss(self) -> None:
        with self._lock:
            self._misses += 1

    def record_error(self) -> None:
        with self._lock:
            self._errors += 1

    def stats(self) -> dict:
        with self._lock:
            total = self._hits + self._misses
            uptime = max(self._clock() - self._started, 1e-9)
            return {
                "hits": self._hits,
                "misses": self._misses,
                "errors": self._errors,
                "total": total,
                "hit_rate": round(self._hits / total * 100, 1) if total else 0.0,
                "error_rate": round(self._errors / total * 100, 1) if total else 0.0,
                "uptime_seconds": round(uptime, 1),
                "requests_per_second": total / uptime,
            }

    def health(self) -> HealthStatus:
        """Red above 10 % errors, yellow below 30 % hit rate, else green."""
        s = self.stats()
        if s["errors"] > s["total"] * 0.1:
            return HealthStatus.RED
        if s["total"] > 0 and s["hit_rate"] < 30:
            return HealthStatus.YELLOW
        return HealthStatus.GREEN


class ExpiringCache:
    """Per-source TTL store bounded to *capacity* entries.

    Args:
        capacity: Maximum entries before oldest-first eviction.
        ttl: Override of ``CACHE_TTL_SECONDS`` (tests, tuning).
        clock: Monotonic seconds source; injectable for tests.
        monitor: Shared ``CacheMonitor``; one is created when omitted.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        ttl: Optional[dict[SourceKind, float]] = None,
        clock: Callable[[], float] = time.monotonic,
        monitor: Optional[CacheMonitor] = None,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._ttl = {**CACHE_TTL_SECONDS, **(ttl or {})}
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self.monitor = monitor or CacheMonitor(clock=clock)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def capacity(self) -> int:
        return self._capacity

    def ttl_for(self, kind: SourceKind) -> float:
        return self._ttl[SourceKind(kind)]

    # ── Access ───────────────────────────────────────────────────────────

    def get(self, kind: SourceKind, params: Any) -> Optional[Any]:
        """Return the cached payload, or ``None`` on a miss or expiry."""
        key = make_key(kind, params)
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._clock() > entry.expires_at:
                del self._entries[key]
                entry = None
        if entry is None:
            self.monitor.record_miss()
            logger.debug("Cache miss for %s", key)
            return None
        self.monitor.record_hit()
        return entry.payload

    def set(self, kind: SourceKind, params: Any, payload: Any) -> None:
        """Store *payload*, evicting the oldest entries on overflow."""
        kind = SourceKind(kind)
        key = make_key(kind, params)
        now = self._clock()
        entry = CacheEntry(
            payload=payload,
            written_at=now,
            expires_at=now + self._ttl[kind],
            source_kind=kind,
        )
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = entry
            if len(self._entries) > self._capacity:
                self._evict_oldest()
        logger.debug("Cached %s (expires in %.0fs)", key, self._ttl[kind])

    def clear(self, kind: Optional[SourceKind] = None) -> int:
        """Drop every entry, or only those of *kind*.  Returns the count."""
        with self._lock:
            if kind is None:
                removed = len(self._entries)
                self._entries.clear()
            else:
                kind = SourceKind(kind)
                keys = [k for k, e in self._entries.items() if e.source_kind is kind]
                for k in keys:
                    del self._entries[k]
                removed = len(keys)
        logger.info("Cleared %d cache entries", removed)
        return removed

    def sweep(self) -> int:
        """Remove all expired entries.  Returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if now > e.expires_at]
            for k in expired:
                del self._entries[k]
        if expired:
            logger.debug("Swept %d expired cache entries", len(expired))
        return len(expired)

    def stats(self) -> dict:
        now = self._clock()
        with self._lock:
            entries = list(self._entries.values())
        by_source: dict[str, int] = {}
        for e in entries:
            by_source[e.source_kind.value] = by_source.get(e.source_kind.value, 0) + 1
        return {
            "total_entries": len(entries),
            "capacity": self._capacity,
            "by_source": by_source,
            "expired_entries": sum(1 for e in entries if now > e.expires_at),
            "oldest_age_seconds": (
                round(now - min(e.written_at for e in entries), 1) if entries else 0.0
            ),
        }

    # ── Eviction ─────────────────────────────────────────────────────────

    def _evict_oldest(self) -> None:
        # Caller holds the lock.
        target = int(self._capacity * TARGET_LOAD_FACTOR)
        to_remove = max(
            len(self._entries) - target,
            math.ceil(len(self._entries) * 0.1),
        )
        oldest = sorted(self._entries.items(), key=lambda kv: kv[1].written_at)
        for key, _ in oldest[:to_remove]:
            del self._entries[key]
        logger.info("Evicted %d oldest cache entries", to_remove)


class CachedFeed:
    """Read-through access to providers via an ``ExpiringCache``.

    On a miss the loader runs under ``with_retry``; its result is stored
    and returned.  Loader failures count as cache errors and propagate.
    """

    def __init__(
        self,
        cache: ExpiringCache,
        max_attempts: int = 3,
        backoff: Optional[ExponentialBackoff] = None,
    ) -> None:
        self.cache = cache
        self._max_attempts = max_attempts
        self._backoff = backoff or ExponentialBackoff()

    async def fetch(
        self,
        kind: SourceKind,
        params: Any,
        loader: Callable[[], Awaitable[Any]],
    ) -> Any:
        cached = self.cache.get(kind, params)
        if cached is not None:
            return cached
        try:
            payload = await with_retry(
                loader,
                max_attempts=self._max_attempts,
                backoff=self._backoff,
                label=f"fetch {SourceKind(kind).value}",
            )
        except Exception:
            self.cache.monitor.record_error()
            raise
        if payload is not None:
            self.cache.set(kind, params, payload)
        return payload
