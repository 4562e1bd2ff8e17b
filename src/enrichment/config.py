"""Configuration loader for the enrichment client."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from .models import ALL_FUN_FACT_TYPES, FunFactType, RetryPolicy


@dataclass(frozen=True)
class CatalogConfig:
    base_url: str
    timeout_sec: float


@dataclass(frozen=True)
class CacheConfig:
    backend: str
    db_path: Optional[str]
    ttl_hours: float
    max_entries: int
    sweep_interval_sec: float

    @property
    def ttl_seconds(self) -> float:
        return self.ttl_hours * 60 * 60


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int
    base_delay_sec: float
    max_delay_sec: float
    jitter_ratio: float
    attempt_timeout_sec: Optional[float] = None

    def to_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay_sec,
            max_delay=self.max_delay_sec,
            jitter_ratio=self.jitter_ratio,
            attempt_timeout=self.attempt_timeout_sec,
        )


@dataclass(frozen=True)
class ConnectivityConfig:
    probe_url: Optional[str]
    poll_interval_sec: float
    cache_ttl_sec: float


@dataclass(frozen=True)
class EnrichmentConfig:
    catalog: CatalogConfig
    cache: CacheConfig
    retry: RetryConfig
    connectivity: ConnectivityConfig
    fun_fact_types: Tuple[FunFactType, ...]
    enrich_timeout_sec: Optional[float]
    log_level: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EnrichmentConfig":
        catalog = data.get("catalog", {})
        cache = data.get("cache", {})
        retry = data.get("retry", {})
        connectivity = data.get("connectivity", {})
        fact_names = data.get("fun_fact_types") or [t.value for t in ALL_FUN_FACT_TYPES]
        attempt_timeout = retry.get("attempt_timeout_sec")
        enrich_timeout = data.get("enrich_timeout_sec")

        return cls(
            catalog=CatalogConfig(
                base_url=catalog.get("base_url", "https://api.musicnerd.xyz"),
                timeout_sec=float(catalog.get("timeout_sec", 25.0)),
            ),
            cache=CacheConfig(
                backend=cache.get("backend", "memory"),
                db_path=cache.get("db_path"),
                ttl_hours=float(cache.get("ttl_hours", 24.0)),
                max_entries=int(cache.get("max_entries", 100)),
                sweep_interval_sec=float(cache.get("sweep_interval_sec", 3600)),
            ),
            retry=RetryConfig(
                max_attempts=int(retry.get("max_attempts", 3)),
                base_delay_sec=float(retry.get("base_delay_sec", 1.0)),
                max_delay_sec=float(retry.get("max_delay_sec", 8.0)),
                jitter_ratio=float(retry.get("jitter_ratio", 0.25)),
                attempt_timeout_sec=float(attempt_timeout) if attempt_timeout is not None else None,
            ),
            connectivity=ConnectivityConfig(
                probe_url=connectivity.get("probe_url"),
                poll_interval_sec=float(connectivity.get("poll_interval_sec", 0.5)),
                cache_ttl_sec=float(connectivity.get("cache_ttl_sec", 0.25)),
            ),
            fun_fact_types=tuple(FunFactType(name) for name in fact_names),
            enrich_timeout_sec=float(enrich_timeout) if enrich_timeout is not None else None,
            log_level=str(data.get("log_level", "INFO")).upper(),
        )


ENV_MAP = {
    "catalog.base_url": "MUSICNERD_BASE_URL",
    "catalog.timeout_sec": "MUSICNERD_TIMEOUT_SEC",
    "cache.backend": "ENRICHMENT_CACHE_BACKEND",
    "cache.db_path": "ENRICHMENT_CACHE_DB",
    "cache.ttl_hours": "ENRICHMENT_CACHE_TTL_HOURS",
    "cache.max_entries": "ENRICHMENT_CACHE_MAX_ENTRIES",
    "cache.sweep_interval_sec": "ENRICHMENT_CACHE_SWEEP_SEC",
    "retry.max_attempts": "RETRY_MAX_ATTEMPTS",
    "retry.base_delay_sec": "RETRY_BASE_DELAY_SEC",
    "retry.max_delay_sec": "RETRY_MAX_DELAY_SEC",
    "retry.jitter_ratio": "RETRY_JITTER_RATIO",
    "enrich_timeout_sec": "ENRICH_TIMEOUT_SEC",
    "log_level": "LOG_LEVEL",
}

_INT_KEYS = {"max_entries", "max_attempts"}
_FLOAT_KEYS = {
    "timeout_sec", "ttl_hours", "sweep_interval_sec", "base_delay_sec",
    "max_delay_sec", "jitter_ratio", "enrich_timeout_sec",
}


def load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def merge_env_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    merged = json.loads(json.dumps(config_data))  # deep copy via json

    for dotted_key, env_name in ENV_MAP.items():
        if env_name not in os.environ:
            continue
        value: Any = os.environ[env_name]
        target = merged
        parts = dotted_key.split(".")
        for part in parts[:-1]:
            target = target.setdefault(part, {})
        last = parts[-1]
        if last in _INT_KEYS:
            value = int(value)
        elif last in _FLOAT_KEYS:
            value = float(value)
        target[last] = value

    return merged


def load_config(config_path: str | Path = "config/enrichment.defaults.yml") -> EnrichmentConfig:
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    data = load_yaml(path)
    data = merge_env_overrides(data)
    return EnrichmentConfig.from_dict(data)
