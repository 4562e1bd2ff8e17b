"""
Enrichment Cache Layer
TTL expiry, insertion-order eviction, memory or SQLite storage, scheduled sweeps
"""

from .cache import TTLCache, CacheStats
from .storage import CacheStore, MemoryStore, SQLiteStore
from .sweeper import CacheSweeper

__all__ = ['TTLCache', 'CacheStats', 'CacheStore', 'MemoryStore', 'SQLiteStore', 'CacheSweeper']
