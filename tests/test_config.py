from pathlib import Path

import pytest

from enrichment.config import ENV_MAP, EnrichmentConfig, load_config
from enrichment.models import FunFactType, RetryPolicy

DEFAULTS = Path(__file__).parent.parent / "config" / "enrichment.defaults.yml"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for env_name in ENV_MAP.values():
        monkeypatch.delenv(env_name, raising=False)


def test_load_config_defaults(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text("log_level: debug", encoding="utf-8")

    cfg = load_config(path)

    assert isinstance(cfg, EnrichmentConfig)
    assert cfg.log_level == "DEBUG"
    assert cfg.retry.max_attempts == 3
    assert cfg.cache.max_entries == 100
    assert cfg.cache.ttl_seconds == 24 * 60 * 60
    assert cfg.fun_fact_types == tuple(FunFactType)
    assert cfg.enrich_timeout_sec is None


def test_shipped_defaults_file():
    cfg = load_config(DEFAULTS)

    assert cfg.catalog.base_url == "https://api.musicnerd.xyz"
    assert cfg.cache.backend == "memory"
    assert cfg.connectivity.poll_interval_sec == 0.5
    assert cfg.enrich_timeout_sec == 90.0


def test_env_overrides(monkeypatch, tmp_path):
    source = tmp_path / "config.yml"
    source.write_text("retry:\n  max_attempts: 2\n", encoding="utf-8")

    monkeypatch.setenv("RETRY_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("ENRICHMENT_CACHE_TTL_HOURS", "0.5")
    monkeypatch.setenv("MUSICNERD_BASE_URL", "http://localhost:3000")

    cfg = load_config(source)

    assert cfg.retry.max_attempts == 5
    assert cfg.cache.ttl_seconds == 1800
    assert cfg.catalog.base_url == "http://localhost:3000"


def test_retry_config_to_policy(tmp_path):
    source = tmp_path / "config.yml"
    source.write_text(
        "retry:\n  max_attempts: 4\n  base_delay_sec: 0.5\n  attempt_timeout_sec: 10\n",
        encoding="utf-8",
    )

    policy = load_config(source).retry.to_policy()

    assert policy == RetryPolicy(max_attempts=4, base_delay=0.5, max_delay=8.0, jitter_ratio=0.25, attempt_timeout=10.0)


def test_fun_fact_subset(tmp_path):
    source = tmp_path / "config.yml"
    source.write_text("fun_fact_types: [lore, surprise]", encoding="utf-8")

    cfg = load_config(source)

    assert cfg.fun_fact_types == (FunFactType.LORE, FunFactType.SURPRISE)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yml")
