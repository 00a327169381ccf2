"""
Per-key in-memory caching for AI feature results.

Entries expire after a fixed TTL or at an expiry the value itself carries
(meeting suggestions say how long they stay valid). Expired entries are
removed lazily on read; clear_expired() sweeps the ones nobody reads.

Key: CacheStore[T] with get/set/remove and an injectable clock.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Generic, TypeVar

from convoq.observability.telemetry import counter, log_event
from convoq.utils.clock import Clock, utc_now

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """Cache entry with value and expiry timestamp."""

    key: str
    value: T
    cached_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class CacheStore(Generic[T]):
    """TTL cache keyed by string, one per feature."""

    def __init__(
        self,
        name: str,
        ttl_seconds: float | None = 3600.0,
        expiry: Callable[[T], datetime | None] | None = None,
        clock: Clock = utc_now,
    ):
        """
        Initialize cache.

        Args:
            name: Cache name for telemetry (e.g., "summary", "meeting_suggestions")
            ttl_seconds: Default time-to-live, None when values carry their own expiry
            expiry: Reads the expiry embedded in a value, used when no ttl applies
            clock: Returns the current UTC time
        """
        if ttl_seconds is None and expiry is None:
            raise ValueError(f"Cache {name!r} needs a ttl or an expiry extractor")
        self.name = name
        self.ttl_seconds = ttl_seconds
        self.expiry = expiry
        self.clock = clock
        self._store: dict[str, CacheEntry[T]] = {}

    def get(self, key: str) -> T | None:
        """
        Get value from cache if not expired.

        Returns None if key not found or expired.
        """
        entry = self._store.get(key)
        if entry is None:
            counter(f"cache.{self.name}.miss")
            return None

        if entry.is_expired(self.clock()):
            del self._store[key]
            counter(f"cache.{self.name}.expired")
            log_event("cache.expired", cache=self.name, key_hash=self._hash_key(key))
            return None

        counter(f"cache.{self.name}.hit")
        return entry.value

    def set(
        self,
        key: str,
        value: T,
        *,
        ttl: float | None = None,
        expires_at: datetime | None = None,
    ) -> CacheEntry[T]:
        """
        Store value, replacing any entry for the key.

        Expiry precedence: explicit expires_at, explicit ttl, the value's embedded
        expiry, then the cache's default ttl.

        Side Effects:
            - Increments telemetry counter (cache.{name}.write)
        """
        now = self.clock()
        if expires_at is None and ttl is not None:
            expires_at = now + timedelta(seconds=ttl)
        if expires_at is None and self.expiry is not None:
            expires_at = self.expiry(value)
        if expires_at is None:
            if self.ttl_seconds is None:
                raise ValueError(f"No expiry available for cache {self.name!r} entry")
            expires_at = now + timedelta(seconds=self.ttl_seconds)

        entry = CacheEntry(key=key, value=value, cached_at=now, expires_at=expires_at)
        self._store[key] = entry
        counter(f"cache.{self.name}.write")
        return entry

    def contains(self, key: str) -> bool:
        entry = self._store.get(key)
        return entry is not None and not entry.is_expired(self.clock())

    def remove(self, key: str) -> None:
        if key in self._store:
            del self._store[key]
            counter(f"cache.{self.name}.invalidate")

    def clear(self) -> None:
        """
        Clear all entries

        Side Effects:
            - Writes telemetry event with entry count
        """
        count = len(self._store)
        self._store.clear()
        log_event("cache.cleared", cache=self.name, count=count)

    def clear_expired(self) -> int:
        """Drop expired entries. Returns the number removed."""
        now = self.clock()
        expired = [key for key, entry in self._store.items() if entry.is_expired(now)]
        for key in expired:
            del self._store[key]
        if expired:
            counter(f"cache.{self.name}.expired", len(expired))
        return len(expired)

    def stats(self) -> dict[str, int]:
        """Get cache statistics."""
        now = self.clock()
        active = sum(1 for entry in self._store.values() if not entry.is_expired(now))
        return {
            "total_entries": len(self._store),
            "active_entries": active,
            "expired_entries": len(self._store) - active,
        }

    def __len__(self) -> int:
        return len(self._store)

    def _hash_key(self, key: str) -> str:
        """Return first 12 chars of key for safe logging."""
        return key[:12] if len(key) > 12 else key
