#!/usr/bin/env python3
"""
Enrichment Orchestrator - fan-out/fan-in over content slots

Takes a raw artist name and returns an EnrichmentResult:

  resolve name → entity id        (RetryExecutor around the resolver)
  failure      → every slot carries the resolution error, nothing fetched
  success      → one concurrent task per slot (bio + each fun-fact subtype):
                   cache hit  → payload, no network
                   cache miss → RetryExecutor(fetcher) → store on success
  join         → assemble by slot, never by completion order

enrich() never raises. Every failure ends up as a per-slot ErrorKind.
"""

import json
import logging
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout, wait
from typing import Dict, Iterable, Mapping, Optional, Protocol, Tuple

from .errors import ErrorKind
from .models import (
    ALL_FUN_FACT_TYPES,
    CacheKey,
    ContentType,
    EnrichmentResult,
    FunFactType,
    Outcome,
    RetryPolicy,
    slots_for,
)
from .observability import EnrichmentLogRecord
from .retry import RetryExecutor

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60


class EntityResolver(Protocol):
    def resolve(self, name: str) -> Outcome:
        """Outcome carrying the canonical entity id."""


class ContentFetcher(Protocol):
    def fetch(self, entity_id: str, slot: ContentType) -> Outcome:
        """Outcome carrying the slot's text payload."""


class EnrichmentOrchestrator:
    """
    Resolves an entity, then fetches every content slot concurrently.

    The cache is the only state shared between slot tasks. Slots never wait
    on one another, so one slow or failing slot cannot hold up the others
    beyond the final join.
    """

    def __init__(
        self,
        resolver: EntityResolver,
        fetcher: ContentFetcher,
        cache,
        executor: RetryExecutor,
        policy: RetryPolicy,
        ttl: float = DEFAULT_TTL_SECONDS,
        fun_fact_types: Iterable[FunFactType] = ALL_FUN_FACT_TYPES,
        ttl_overrides: Optional[Mapping[ContentType, float]] = None,
        max_workers: Optional[int] = None,
    ):
        self.resolver = resolver
        self.fetcher = fetcher
        self.cache = cache
        self.executor = executor
        self.policy = policy
        self.ttl = ttl
        self.fun_fact_types: Tuple[FunFactType, ...] = tuple(fun_fact_types)
        self.ttl_overrides: Dict[ContentType, float] = dict(ttl_overrides or {})
        self.slots = slots_for(self.fun_fact_types)
        self.max_workers = max_workers or len(self.slots)

        self._stats_lock = threading.Lock()
        self._stats = {
            "enrich_calls": 0,
            "resolution_failures": 0,
            "cache_hits": 0,
            "network_fetches": 0,
            "slot_errors": 0,
        }

    def ttl_for(self, slot: ContentType) -> float:
        return self.ttl_overrides.get(slot, self.ttl)

    def enrich(self, raw_name: str, timeout: Optional[float] = None) -> EnrichmentResult:
        """
        Main entry point. Never throws. Always returns a result with every
        slot filled by either a payload or an error.

        Args:
            raw_name: Artist name as recognized (untrimmed is fine)
            timeout: Optional bound on the whole call in seconds; slots still
                running when it elapses are cancelled and reported as timeout
        """
        started = time.monotonic()
        request_id = uuid.uuid4().hex[:12]
        name = (raw_name or "").strip()
        self._bump("enrich_calls")

        try:
            if not name:
                logger.info("request=%s rejected blank entity name", request_id)
                result = EnrichmentResult.failed(name, ErrorKind.ENTITY_NOT_FOUND, self.fun_fact_types)
                self._log_record(request_id, result, "rejected", started)
                return result
            return self._enrich(request_id, name, started, timeout)
        except Exception as e:  # noqa: BLE001
            logger.exception("request=%s enrichment crashed for '%s': %s", request_id, name, e)
            result = EnrichmentResult.failed(name, ErrorKind.UNKNOWN, self.fun_fact_types)
            self._log_record(request_id, result, "crashed", started)
            return result

    def get_stats(self) -> Dict[str, int]:
        with self._stats_lock:
            return dict(self._stats)

    # ── Private methods ──

    def _enrich(self, request_id: str, name: str, started: float, timeout: Optional[float]) -> EnrichmentResult:
        cancel = threading.Event()
        timer = None
        if timeout is not None:
            timer = threading.Timer(timeout, cancel.set)
            timer.daemon = True
            timer.start()

        try:
            # 1. Resolve
            resolution = self._resolve(name, cancel, timeout)
            if resolution is None or cancel.is_set():
                logger.warning("request=%s deadline hit while resolving '%s'", request_id, name)
                entity_id = str(resolution.value) if resolution is not None and resolution.ok else None
                result = EnrichmentResult.failed(name, ErrorKind.TIMEOUT, self.fun_fact_types, entity_id=entity_id)
                self._log_record(
                    request_id, result, "timed_out", started,
                    resolve_attempts=resolution.attempts if resolution is not None else 0,
                )
                return result

            if not resolution.ok:
                self._bump("resolution_failures")
                logger.info(
                    "request=%s resolution of '%s' failed: %s", request_id, name, resolution.error.value,
                )
                result = EnrichmentResult.failed(
                    name, resolution.error, self.fun_fact_types, status_class=resolution.status_class,
                )
                self._log_record(request_id, result, "resolution_failed", started, resolve_attempts=resolution.attempts)
                return result

            entity_id = str(resolution.value)
            logger.info("request=%s resolved '%s' to entity %s", request_id, name, entity_id)

            # 2. Fan out, 3. fan in
            remaining = None
            if timeout is not None:
                remaining = max(0.0, timeout - (time.monotonic() - started))
            outcomes, latencies, timed_out = self._fetch_all(entity_id, cancel, remaining)

            result = EnrichmentResult.from_outcomes(name, entity_id, outcomes, self.fun_fact_types)
            self._log_record(
                request_id, result, "timed_out" if timed_out else "aggregated", started,
                outcomes=outcomes, latencies=latencies, resolve_attempts=resolution.attempts,
            )
            return result
        finally:
            if timer is not None:
                timer.cancel()

    def _resolve(self, name: str, cancel: threading.Event, timeout: Optional[float]) -> Optional[Outcome]:
        """Resolution under the call deadline. None means the deadline elapsed first."""
        def resolve() -> Outcome:
            return self.executor.execute(
                lambda: self.resolver.resolve(name), self.policy, cancel=cancel, label=f"resolve '{name}'",
            )

        if timeout is None:
            return resolve()

        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="resolve")
        try:
            future = pool.submit(resolve)
            try:
                return future.result(timeout=timeout)
            except FutureTimeout:
                cancel.set()
                return None
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    def _fetch_all(
        self, entity_id: str, cancel: threading.Event, timeout: Optional[float],
    ) -> Tuple[Dict[ContentType, Outcome], Dict[str, float], bool]:
        pool = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="slot")
        try:
            futures = {
                pool.submit(self._fetch_slot, entity_id, slot, cancel): slot
                for slot in self.slots
            }
            done, not_done = wait(futures, timeout=timeout)
        finally:
            # Stragglers are told to stop; nobody waits for them
            pool.shutdown(wait=False, cancel_futures=True)

        outcomes: Dict[ContentType, Outcome] = {}
        latencies: Dict[str, float] = {}
        for future in done:
            slot = futures[future]
            outcome, elapsed_ms = future.result()
            outcomes[slot] = outcome
            latencies[str(slot)] = elapsed_ms

        if not_done:
            cancel.set()
            for future in not_done:
                slot = futures[future]
                future.cancel()
                outcomes[slot] = Outcome.failure(ErrorKind.TIMEOUT, detail="enrichment deadline elapsed")
            logger.warning(
                "Enrichment deadline hit for entity %s: %s unfinished",
                entity_id, ", ".join(sorted(str(futures[f]) for f in not_done)),
            )

        return outcomes, latencies, bool(not_done)

    def _fetch_slot(self, entity_id: str, slot: ContentType, cancel: threading.Event) -> Tuple[Outcome, float]:
        started = time.monotonic()
        try:
            outcome = self._load_slot(entity_id, slot, cancel)
        except Exception as e:  # noqa: BLE001
            logger.error("Slot %s for entity %s crashed: %s", slot, entity_id, e)
            outcome = Outcome.failure(ErrorKind.UNKNOWN, detail=str(e))

        if outcome.from_cache:
            self._bump("cache_hits")
        if not outcome.ok:
            self._bump("slot_errors")
        return outcome, (time.monotonic() - started) * 1000

    def _load_slot(self, entity_id: str, slot: ContentType, cancel: threading.Event) -> Outcome:
        key = CacheKey(entity_id, slot)

        cached = self.cache.retrieve(key)
        if cached is not None:
            return Outcome.success(cached, attempts=0, from_cache=True)

        self._bump("network_fetches")
        outcome = self.executor.execute(
            lambda: self.fetcher.fetch(entity_id, slot), self.policy, cancel=cancel, label=f"fetch {key}",
        )
        if outcome.ok:
            self.cache.store(key, outcome.value, self.ttl_for(slot))
        return outcome

    def _bump(self, counter: str, amount: int = 1) -> None:
        with self._stats_lock:
            self._stats[counter] += amount

    def _log_record(
        self,
        request_id: str,
        result: EnrichmentResult,
        stage: str,
        started: float,
        outcomes: Optional[Mapping[ContentType, Outcome]] = None,
        latencies: Optional[Dict[str, float]] = None,
        resolve_attempts: int = 0,
    ) -> None:
        outcomes = outcomes or {}
        slot_errors = {}
        for slot in result.slots:
            _, error = result.outcome_for(slot)
            if error is not None:
                slot_errors[str(slot)] = error.value

        record = EnrichmentLogRecord(
            request_id=request_id,
            entity_name=result.entity_name,
            entity_id=result.entity_id,
            stage=stage,
            slots_total=len(result.slots),
            cache_hits=sum(1 for o in outcomes.values() if o.from_cache),
            network_fetches=sum(1 for o in outcomes.values() if not o.from_cache and o.attempts > 0),
            slot_errors=slot_errors,
            latency_ms_total=(time.monotonic() - started) * 1000,
            latency_ms_per_slot=latencies,
            resolve_attempts=resolve_attempts,
        )
        try:
            logger.info("enrichment %s", json.dumps(record.to_dict()))
        except ValueError as e:
            logger.warning("Dropping malformed enrichment log record: %s", e)
