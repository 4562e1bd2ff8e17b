"""
Storage substrates for TTLCache.

Both keep entries in insertion order so the cache can evict oldest-first.
Neither is thread-safe on its own; TTLCache serializes every call.
"""

import logging
import os
import sqlite3
from collections import OrderedDict
from pathlib import Path
from typing import List, Optional

from enrichment.models import CacheEntry, CacheKey, ContentType, FunFactType

logger = logging.getLogger(__name__)


class CacheStore:
    """Interface shared by the in-memory and SQLite substrates."""

    def get(self, storage_key: str) -> Optional[CacheEntry]:
        raise NotImplementedError

    def put(self, entry: CacheEntry) -> None:
        """Upsert. A replaced entry moves to the newest position."""
        raise NotImplementedError

    def delete(self, storage_key: str) -> bool:
        raise NotImplementedError

    def clear(self) -> int:
        raise NotImplementedError

    def entries(self) -> List[CacheEntry]:
        """All entries, oldest first."""
        raise NotImplementedError

    def count(self) -> int:
        raise NotImplementedError

    def evict_oldest(self, n: int) -> List[str]:
        raise NotImplementedError

    def put_and_trim(self, entry: CacheEntry, max_entries: int) -> List[str]:
        """Store entry, then evict oldest entries down to max_entries."""
        self.put(entry)
        overflow = self.count() - max_entries
        if overflow > 0:
            return self.evict_oldest(overflow)
        return []

    def close(self) -> None:
        pass


class MemoryStore(CacheStore):
    def __init__(self) -> None:
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()

    def get(self, storage_key: str) -> Optional[CacheEntry]:
        return self._entries.get(storage_key)

    def put(self, entry: CacheEntry) -> None:
        storage_key = entry.key.storage_key
        self._entries.pop(storage_key, None)
        self._entries[storage_key] = entry

    def delete(self, storage_key: str) -> bool:
        return self._entries.pop(storage_key, None) is not None

    def clear(self) -> int:
        cleared = len(self._entries)
        self._entries.clear()
        return cleared

    def entries(self) -> List[CacheEntry]:
        return list(self._entries.values())

    def count(self) -> int:
        return len(self._entries)

    def evict_oldest(self, n: int) -> List[str]:
        evicted = []
        while n > 0 and self._entries:
            storage_key, _ = self._entries.popitem(last=False)
            evicted.append(storage_key)
            n -= 1
        return evicted


class SQLiteStore(CacheStore):
    """
    Durable substrate. Rowid order is insertion order: INSERT OR REPLACE
    deletes the old row and inserts a fresh one at the end.
    """

    def __init__(self, db_path: str = None):
        if db_path is None:
            db_path = os.path.expanduser("~/.tracknerd/cache/enrichment.db")

        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        # TTLCache serializes access; the connection is shared across worker threads
        self.conn = sqlite3.connect(db_path, check_same_thread=False, timeout=10.0)
        self.conn.row_factory = sqlite3.Row
        self._create_schema()
        logger.info(f"SQLiteStore initialized at {db_path}")

    def _create_schema(self):
        with self.conn:
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS enrichment_cache (
                    storage_key TEXT PRIMARY KEY,
                    entity_id TEXT NOT NULL,
                    category TEXT NOT NULL,
                    subtype TEXT,
                    payload TEXT NOT NULL,
                    stored_at REAL NOT NULL,
                    ttl REAL NOT NULL
                )
            """)
            self.conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_enrichment_stored_at ON enrichment_cache(stored_at)"
            )

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> CacheEntry:
        subtype = FunFactType(row["subtype"]) if row["subtype"] else None
        key = CacheKey(row["entity_id"], ContentType(row["category"], subtype))
        return CacheEntry(key=key, payload=row["payload"], stored_at=row["stored_at"], ttl=row["ttl"])

    def get(self, storage_key: str) -> Optional[CacheEntry]:
        row = self.conn.execute(
            "SELECT * FROM enrichment_cache WHERE storage_key = ?", (storage_key,)
        ).fetchone()
        return self._row_to_entry(row) if row else None

    def _insert(self, entry: CacheEntry) -> None:
        content_type = entry.key.content_type
        self.conn.execute(
            """
            INSERT OR REPLACE INTO enrichment_cache
            (storage_key, entity_id, category, subtype, payload, stored_at, ttl)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.key.storage_key,
                entry.key.entity_id,
                content_type.category,
                content_type.subtype.value if content_type.subtype else None,
                entry.payload,
                entry.stored_at,
                entry.ttl,
            ),
        )

    def _evict(self, n: int) -> List[str]:
        rows = self.conn.execute(
            "SELECT storage_key FROM enrichment_cache ORDER BY rowid ASC LIMIT ?", (n,)
        ).fetchall()
        keys = [row["storage_key"] for row in rows]
        self.conn.executemany(
            "DELETE FROM enrichment_cache WHERE storage_key = ?", [(k,) for k in keys]
        )
        return keys

    def put(self, entry: CacheEntry) -> None:
        with self.conn:
            self._insert(entry)

    def put_and_trim(self, entry: CacheEntry, max_entries: int) -> List[str]:
        # One transaction: either the write and its evictions land, or nothing does
        with self.conn:
            self._insert(entry)
            overflow = self.count() - max_entries
            return self._evict(overflow) if overflow > 0 else []

    def delete(self, storage_key: str) -> bool:
        with self.conn:
            cursor = self.conn.execute(
                "DELETE FROM enrichment_cache WHERE storage_key = ?", (storage_key,)
            )
        return cursor.rowcount > 0

    def clear(self) -> int:
        with self.conn:
            cursor = self.conn.execute("DELETE FROM enrichment_cache")
        return cursor.rowcount

    def entries(self) -> List[CacheEntry]:
        rows = self.conn.execute("SELECT * FROM enrichment_cache ORDER BY rowid ASC").fetchall()
        return [self._row_to_entry(row) for row in rows]

    def count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) AS count FROM enrichment_cache").fetchone()["count"]

    def evict_oldest(self, n: int) -> List[str]:
        with self.conn:
            return self._evict(n)

    def close(self):
        if self.conn:
            self.conn.close()
            logger.info("SQLiteStore closed")
