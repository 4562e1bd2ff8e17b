from dataclasses import replace

import pytest

from cache import MemoryStore, SQLiteStore
from enrichment.config import EnrichmentConfig
from enrichment.container import build_cache, build_services


def make_config(**cache_overrides):
    config = EnrichmentConfig.from_dict({"connectivity": {"probe_url": None}})
    return replace(config, cache=replace(config.cache, **cache_overrides))


def test_build_services_wires_shared_cache():
    services = build_services(make_config(max_entries=10))

    assert services.orchestrator.cache is services.cache
    assert services.orchestrator.resolver is services.client
    assert services.orchestrator.fetcher is services.client
    assert services.connectivity is None
    assert services.cache.max_entries == 10
    assert len(services.orchestrator.slots) == 5

    services.start()
    assert services.sweeper.running
    services.close()
    assert not services.sweeper.running


def test_connectivity_monitor_built_when_probe_configured():
    config = EnrichmentConfig.from_dict({"connectivity": {"probe_url": "https://api.musicnerd.xyz"}})

    services = build_services(config)

    assert services.connectivity is not None
    assert services.orchestrator.executor.connectivity is services.connectivity


def test_sqlite_backend(tmp_path):
    cache = build_cache(make_config(backend="sqlite", db_path=str(tmp_path / "c.db")))

    assert isinstance(cache._store, SQLiteStore)
    cache.close()


def test_memory_backend():
    assert isinstance(build_cache(make_config())._store, MemoryStore)


def test_unknown_backend():
    with pytest.raises(ValueError):
        build_cache(make_config(backend="redis"))
