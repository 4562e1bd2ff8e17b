"""
Resilient artist enrichment

Provides:
- ErrorClassifier / ErrorKind: closed failure taxonomy
- RetryExecutor: bounded retries with backoff, jitter and connectivity waits
- EnrichmentOrchestrator: concurrent per-slot fetches into one EnrichmentResult
- load_config / build_services (enrichment.container): configuration and wiring
"""

from .errors import ErrorClassifier, ErrorKind, RawFailure, is_retryable, fallback_message
from .models import (
    BIO, CacheEntry, CacheKey, ContentType, EnrichmentResult,
    FunFactType, Outcome, RetryPolicy,
)
from .retry import RetryExecutor, compute_delay
from .orchestrator import EnrichmentOrchestrator
from .config import EnrichmentConfig, load_config

__all__ = [
    'ErrorClassifier', 'ErrorKind', 'RawFailure', 'is_retryable', 'fallback_message',
    'BIO', 'CacheEntry', 'CacheKey', 'ContentType', 'EnrichmentResult',
    'FunFactType', 'Outcome', 'RetryPolicy',
    'RetryExecutor', 'compute_delay',
    'EnrichmentOrchestrator',
    'EnrichmentConfig', 'load_config',
]
