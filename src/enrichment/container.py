"""Composition root: builds and owns the enrichment services."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from cache import CacheSweeper, MemoryStore, SQLiteStore, TTLCache
from musicnerd import MusicNerdClient

from .config import EnrichmentConfig
from .connectivity import ConnectivityMonitor
from .errors import ErrorClassifier
from .orchestrator import EnrichmentOrchestrator
from .retry import RetryExecutor

logger = logging.getLogger(__name__)


@dataclass
class EnrichmentServices:
    cache: TTLCache
    sweeper: CacheSweeper
    connectivity: Optional[ConnectivityMonitor]
    client: MusicNerdClient
    orchestrator: EnrichmentOrchestrator

    def start(self) -> None:
        self.sweeper.start()

    def close(self) -> None:
        self.sweeper.stop()
        self.cache.close()


def build_cache(config: EnrichmentConfig) -> TTLCache:
    cache_cfg = config.cache
    if cache_cfg.backend == "sqlite":
        db_path = os.path.expanduser(cache_cfg.db_path) if cache_cfg.db_path else None
        store = SQLiteStore(db_path)
    elif cache_cfg.backend == "memory":
        store = MemoryStore()
    else:
        raise ValueError(f"Unknown cache backend: {cache_cfg.backend}")
    return TTLCache(store, max_entries=cache_cfg.max_entries, default_ttl=cache_cfg.ttl_seconds)


def build_services(config: EnrichmentConfig) -> EnrichmentServices:
    classifier = ErrorClassifier()
    cache = build_cache(config)

    connectivity = None
    if config.connectivity.probe_url:
        connectivity = ConnectivityMonitor(
            config.connectivity.probe_url,
            cache_ttl=config.connectivity.cache_ttl_sec,
        )

    client = MusicNerdClient(
        base_url=config.catalog.base_url,
        timeout=config.catalog.timeout_sec,
        classifier=classifier,
    )
    executor = RetryExecutor(
        classifier,
        connectivity=connectivity,
        poll_interval=config.connectivity.poll_interval_sec,
    )
    orchestrator = EnrichmentOrchestrator(
        resolver=client,
        fetcher=client,
        cache=cache,
        executor=executor,
        policy=config.retry.to_policy(),
        ttl=config.cache.ttl_seconds,
        fun_fact_types=config.fun_fact_types,
    )
    sweeper = CacheSweeper(cache, interval=config.cache.sweep_interval_sec)

    logger.info(
        "Enrichment services built (cache=%s, slots=%d, max_attempts=%d)",
        config.cache.backend, len(orchestrator.slots), config.retry.max_attempts,
    )
    return EnrichmentServices(
        cache=cache,
        sweeper=sweeper,
        connectivity=connectivity,
        client=client,
        orchestrator=orchestrator,
    )
