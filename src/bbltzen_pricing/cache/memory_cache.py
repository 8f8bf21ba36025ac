"""
Process-local TTL cache.

A best-effort performance layer over pricing and catalog reads. Values are
never authoritative once their TTL elapses; nothing here is persisted or
shared across processes.
"""

from __future__ import annotations

import inspect
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Tuple, Union

from ..errors import InvalidArgumentError
from ..utils.logging import get_logger

logger = get_logger(__name__)

TTL = Union[timedelta, int, float]
DEFAULT_TTL = timedelta(minutes=30)


def _ttl_seconds(ttl: TTL) -> float:
    seconds = ttl.total_seconds() if isinstance(ttl, timedelta) else float(ttl)
    if seconds <= 0:
        raise InvalidArgumentError(f"TTL must be positive, got {ttl!r}")
    return seconds


def _check_key(key: Any) -> Hashable:
    if key is None or (isinstance(key, str) and not key.strip()):
        raise InvalidArgumentError("Cache key must not be empty")
    hash(key)
    return key


class CacheStatistics:
    """Cumulative hit/miss counters owned by one cache instance."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def record_hit(self) -> None:
        with self._lock:
            self._hits += 1

    def record_miss(self) -> None:
        with self._lock:
            self._misses += 1

    @property
    def hits(self) -> int:
        return self._hits

    @property
    def misses(self) -> int:
        return self._misses

    @property
    def total_requests(self) -> int:
        with self._lock:
            return self._hits + self._misses

    @property
    def hit_rate(self) -> float:
        """hits / (hits + misses), 0.0 before the first access."""
        with self._lock:
            total = self._hits + self._misses
            return self._hits / total if total else 0.0

    @property
    def hit_rate_percent(self) -> Decimal:
        return Decimal(str(self.hit_rate * 100)).quantize(Decimal("0.01"))

    @property
    def miss_rate_percent(self) -> Decimal:
        if self.total_requests == 0:
            return Decimal("0.00")
        return Decimal("100.00") - self.hit_rate_percent

    def reset(self) -> None:
        with self._lock:
            self._hits = 0
            self._misses = 0

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            hits, misses = self._hits, self._misses
        total = hits + misses
        return {
            "hits": hits,
            "misses": misses,
            "total_requests": total,
            "hit_rate": hits / total if total else 0.0,
        }


@dataclass
class CacheEntry:
    value: Any
    ttl_seconds: float
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass
class CacheOperationResult:
    success: bool
    key: Hashable
    message: str = ""
    expires_at: Optional[datetime] = None
    ttl: Optional[timedelta] = None


@dataclass
class CacheBulkResult:
    completed: int = 0
    failed: int = 0
    processed_keys: List[Hashable] = field(default_factory=list)
    results: Dict[Hashable, Any] = field(default_factory=dict)
    errors: List[Tuple[Any, str]] = field(default_factory=list)
    elapsed: timedelta = timedelta(0)


@dataclass
class CacheCleanupResult:
    removed: int
    elapsed: timedelta
    cleaned_at: datetime


@dataclass
class CacheInfo:
    total_entries: int
    active_keys: List[Hashable]
    hits: int
    misses: int
    hit_rate_percent: Decimal


class MemoryCache:
    """Thread-safe key/value store with per-entry TTL.

    Callers never lock around cache calls. ``get_or_set`` gives no single-flight
    guarantee: concurrent misses on the same key may each run the factory.
    """

    def __init__(self, default_ttl: TTL = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic) -> None:
        self.default_ttl = _ttl_seconds(default_ttl)
        self._clock = clock
        self._entries: Dict[Hashable, CacheEntry] = {}
        self._lock = threading.RLock()
        self.statistics = CacheStatistics()

    def _wall_time(self, monotonic_at: float) -> datetime:
        return datetime.now(timezone.utc) + timedelta(seconds=monotonic_at - self._clock())

    def _live_entry(self, key: Hashable) -> Optional[CacheEntry]:
        """Return the entry for ``key`` if unexpired, evicting it otherwise."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None
        return entry

    def try_get(self, key: Hashable) -> Tuple[bool, Any]:
        with self._lock:
            entry = self._live_entry(key)
        if entry is None:
            self.statistics.record_miss()
            return False, None
        self.statistics.record_hit()
        return True, entry.value

    def get(self, key: Hashable, default: Any = None) -> Any:
        found, value = self.try_get(key)
        return value if found else default

    def set(self, key: Hashable, value: Any, ttl: Optional[TTL] = None) -> CacheOperationResult:
        _check_key(key)
        seconds = self.default_ttl if ttl is None else _ttl_seconds(ttl)
        with self._lock:
            now = self._clock()
            entry = CacheEntry(value=value, ttl_seconds=seconds, created_at=now, expires_at=now + seconds)
            self._entries[key] = entry
        logger.debug(f"Cache set {key!r} (ttl={seconds}s)")
        return CacheOperationResult(
            success=True,
            key=key,
            message="stored",
            expires_at=self._wall_time(entry.expires_at),
            ttl=timedelta(seconds=seconds),
        )

    def remove(self, key: Hashable) -> CacheOperationResult:
        with self._lock:
            removed = self._entries.pop(key, None) is not None
        return CacheOperationResult(success=removed, key=key, message="removed" if removed else "not found")

    def exists(self, key: Hashable) -> bool:
        with self._lock:
            return self._live_entry(key) is not None

    def get_expiration(self, key: Hashable) -> Optional[datetime]:
        with self._lock:
            entry = self._live_entry(key)
            return self._wall_time(entry.expires_at) if entry else None

    def get_or_set(self, key: Hashable, factory: Callable[[], Any], ttl: Optional[TTL] = None) -> Any:
        found, value = self.try_get(key)
        if found:
            return value
        value = factory()
        self.set(key, value, ttl)
        return value

    async def aget_or_set(
        self, key: Hashable, factory: Callable[[], Union[Any, Awaitable[Any]]], ttl: Optional[TTL] = None
    ) -> Any:
        found, value = self.try_get(key)
        if found:
            return value
        value = factory()
        if inspect.isawaitable(value):
            value = await value
        self.set(key, value, ttl)
        return value

    def refresh(self, key: Hashable, new_ttl: Optional[TTL] = None) -> bool:
        """Re-insert the current value under a new TTL, without recomputing it."""
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return False
            seconds = entry.ttl_seconds if new_ttl is None else _ttl_seconds(new_ttl)
            now = self._clock()
            self._entries[key] = CacheEntry(value=entry.value, ttl_seconds=seconds, created_at=now, expires_at=now + seconds)
        return True

    def get_bulk(self, keys: Iterable[Hashable]) -> CacheBulkResult:
        started = self._clock()
        result = CacheBulkResult()
        for key in keys:
            try:
                _check_key(key)
                found, value = self.try_get(key)
                if found:
                    result.results[key] = value
                result.processed_keys.append(key)
                result.completed += 1
            except Exception as exc:
                logger.warning(f"Cache bulk get failed for {key!r}: {exc}")
                result.errors.append((key, str(exc)))
                result.failed += 1
        result.elapsed = timedelta(seconds=self._clock() - started)
        return result

    def set_bulk(self, values: Mapping[Hashable, Any], ttl: Optional[TTL] = None) -> CacheBulkResult:
        started = self._clock()
        result = CacheBulkResult()
        for key, value in values.items():
            try:
                self.set(key, value, ttl)
                result.processed_keys.append(key)
                result.completed += 1
            except Exception as exc:
                logger.warning(f"Cache bulk set failed for {key!r}: {exc}")
                result.errors.append((key, str(exc)))
                result.failed += 1
        result.elapsed = timedelta(seconds=self._clock() - started)
        return result

    def remove_bulk(self, keys: Iterable[Hashable]) -> CacheBulkResult:
        started = self._clock()
        result = CacheBulkResult()
        for key in keys:
            try:
                _check_key(key)
                outcome = self.remove(key)
                result.results[key] = outcome.success
                result.processed_keys.append(key)
                result.completed += 1
            except Exception as exc:
                logger.warning(f"Cache bulk remove failed for {key!r}: {exc}")
                result.errors.append((key, str(exc)))
                result.failed += 1
        result.elapsed = timedelta(seconds=self._clock() - started)
        return result

    def keys(self) -> List[Hashable]:
        with self._lock:
            now = self._clock()
            return [k for k, e in self._entries.items() if not e.is_expired(now)]

    def remove_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [k for k in self._entries if isinstance(k, str) and k.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def cleanup_expired(self) -> CacheCleanupResult:
        started = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.is_expired(started)]
            for key in expired:
                del self._entries[key]
        logger.debug(f"Cache cleanup removed {len(expired)} expired entries")
        return CacheCleanupResult(
            removed=len(expired),
            elapsed=timedelta(seconds=self._clock() - started),
            cleaned_at=datetime.now(timezone.utc),
        )

    def info(self) -> CacheInfo:
        active = self.keys()
        return CacheInfo(
            total_entries=len(active),
            active_keys=active,
            hits=self.statistics.hits,
            misses=self.statistics.misses,
            hit_rate_percent=self.statistics.hit_rate_percent,
        )

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self.keys())

    def __contains__(self, key: Hashable) -> bool:
        return self.exists(key)
