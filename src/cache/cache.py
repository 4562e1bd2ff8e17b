#!/usr/bin/env python3
"""
Enrichment Cache Layer
TTL-bounded key/value cache for enrichment payloads

Implements:
- store(key, payload, ttl)     upsert, then evict oldest-inserted past max_entries
- retrieve(key) -> payload | None   lazy expiry: an expired hit is removed
- remove(key), clear_all()
- clear_expired() -> removed count  full scan, run by CacheSweeper
- get_stats() -> CacheStats
"""

import logging
import threading
import time
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, Optional

from enrichment.models import CacheEntry, CacheKey

from .storage import CacheStore, MemoryStore

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60
DEFAULT_MAX_ENTRIES = 100


@dataclass(frozen=True)
class CacheStats:
    total_entries: int
    expired_entries: int
    hits: int = 0
    misses: int = 0
    writes: int = 0
    evictions: int = 0

    @property
    def hit_rate_percent(self) -> float:
        total = self.hits + self.misses
        return round(self.hits / total * 100, 1) if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["hit_rate_percent"] = self.hit_rate_percent
        return payload


class TTLCache:
    """
    Cache with expiration and insertion-order capacity eviction.

    Design principles:
    - One lock: every read and write runs inside the same exclusive section
    - Graceful degradation: a storage failure on retrieve is a miss, on store a no-op
    - Substrate-agnostic: MemoryStore by default, SQLiteStore for durability
    """

    def __init__(
        self,
        store: Optional[CacheStore] = None,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")

        self._store = store if store is not None else MemoryStore()
        self.max_entries = max_entries
        self.default_ttl = default_ttl
        self._clock = clock
        self._lock = threading.RLock()

        self._counters = {"hits": 0, "misses": 0, "writes": 0, "evictions": 0}

        logger.info(
            f"TTLCache initialized ({type(self._store).__name__}, "
            f"max_entries={max_entries}, default_ttl={default_ttl:.0f}s)"
        )

    def store(self, key: CacheKey, payload: str, ttl: Optional[float] = None) -> bool:
        """Store payload for key, replacing any previous entry. Returns False on storage failure."""
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            entry = CacheEntry(key=key, payload=payload, stored_at=self._clock(), ttl=ttl)
            try:
                evicted = self._store.put_and_trim(entry, self.max_entries)
            except Exception as e:  # noqa: BLE001
                logger.error(f"Cache store error for {key}: {e}")
                return False

            self._counters["writes"] += 1
            self._counters["evictions"] += len(evicted)

        logger.debug(f"Stored {key} (expires in {ttl / 3600:.1f}h)")
        if evicted:
            logger.info(f"Evicted {len(evicted)} oldest entries: {', '.join(evicted)}")
        return True

    def retrieve(self, key: CacheKey) -> Optional[str]:
        with self._lock:
            try:
                entry = self._store.get(key.storage_key)
                if entry is None:
                    self._counters["misses"] += 1
                    logger.debug(f"Cache MISS for {key}")
                    return None

                if entry.is_expired(self._clock()):
                    self._store.delete(key.storage_key)
                    self._counters["misses"] += 1
                    logger.debug(f"Cache EXPIRED for {key}")
                    return None
            except Exception as e:  # noqa: BLE001
                self._counters["misses"] += 1
                logger.error(f"Cache retrieve error for {key}: {e}")
                return None

            self._counters["hits"] += 1

        logger.debug(f"Cache HIT for {key}")
        return entry.payload

    def remove(self, key: CacheKey) -> bool:
        with self._lock:
            removed = self._store.delete(key.storage_key)
        if removed:
            logger.debug(f"Removed {key} from cache")
        return removed

    def clear_all(self) -> int:
        with self._lock:
            cleared = self._store.clear()
            self._counters["evictions"] += cleared
        logger.info(f"Cleared all enrichment cache ({cleared} entries)")
        return cleared

    def clear_expired(self) -> int:
        """Remove every expired entry. Called on a schedule by CacheSweeper."""
        with self._lock:
            now = self._clock()
            expired = [e.key.storage_key for e in self._store.entries() if e.is_expired(now)]
            for storage_key in expired:
                self._store.delete(storage_key)
            self._counters["evictions"] += len(expired)

        if expired:
            logger.info(f"Cleared {len(expired)} expired cache entries")
        return len(expired)

    def get_stats(self) -> CacheStats:
        """Diagnostic snapshot; scans every entry."""
        with self._lock:
            now = self._clock()
            entries = self._store.entries()
            return CacheStats(
                total_entries=len(entries),
                expired_entries=sum(1 for e in entries if e.is_expired(now)),
                **self._counters,
            )

    def __len__(self) -> int:
        with self._lock:
            return self._store.count()

    def close(self):
        with self._lock:
            self._store.close()
