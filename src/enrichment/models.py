"""Value types shared by the cache, retry executor and orchestrator."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Generic, Iterable, Mapping, Optional, Tuple, TypeVar

from .errors import ErrorKind, is_retryable

T = TypeVar("T")


class FunFactType(str, Enum):
    """Fun-fact categories served by the catalog."""
    LORE = "lore"
    BTS = "bts"
    ACTIVITY = "activity"
    SURPRISE = "surprise"


ALL_FUN_FACT_TYPES: Tuple[FunFactType, ...] = tuple(FunFactType)


@dataclass(frozen=True, order=True)
class ContentType:
    """One enrichment slot: the bio, or a single fun-fact subtype."""
    category: str
    subtype: Optional[FunFactType] = None

    BIO_CATEGORY = "bio"
    FUN_FACT_CATEGORY = "funfact"

    @classmethod
    def bio(cls) -> "ContentType":
        return cls(cls.BIO_CATEGORY)

    @classmethod
    def fun_fact(cls, subtype: FunFactType | str) -> "ContentType":
        return cls(cls.FUN_FACT_CATEGORY, FunFactType(subtype))

    def __post_init__(self) -> None:
        if self.category == self.BIO_CATEGORY and self.subtype is None:
            return
        if self.category == self.FUN_FACT_CATEGORY and isinstance(self.subtype, FunFactType):
            return
        raise ValueError(f"invalid content type: {self.category}/{self.subtype}")

    @property
    def is_bio(self) -> bool:
        return self.category == self.BIO_CATEGORY

    def __str__(self) -> str:
        if self.is_bio:
            return "bio"
        return f"funfact({self.subtype.value})"


BIO = ContentType.bio()


def slots_for(fun_fact_types: Iterable[FunFactType]) -> Tuple[ContentType, ...]:
    """Bio first, then one slot per fun-fact subtype."""
    return (BIO,) + tuple(ContentType.fun_fact(t) for t in fun_fact_types)


@dataclass(frozen=True, order=True)
class CacheKey:
    entity_id: str
    content_type: ContentType

    @property
    def storage_key(self) -> str:
        """Flat string form used by the storage substrates."""
        if self.content_type.is_bio:
            return f"bio_{self.entity_id}"
        return f"funfact_{self.content_type.subtype.value}_{self.entity_id}"

    def __str__(self) -> str:
        return f"{self.content_type} for entity {self.entity_id}"


@dataclass(frozen=True)
class CacheEntry:
    key: CacheKey
    payload: str
    stored_at: float
    ttl: float

    def is_expired(self, now: Optional[float] = None) -> bool:
        if now is None:
            now = time.time()
        return now - self.stored_at > self.ttl

    @property
    def expires_at(self) -> float:
        return self.stored_at + self.ttl


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt count and backoff shape. Delays are in seconds."""
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 8.0
    jitter_ratio: float = 0.25
    attempt_timeout: Optional[float] = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if not 0.0 <= self.jitter_ratio <= 1.0:
            raise ValueError("jitter_ratio must be within [0, 1]")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be non-negative")
        if self.attempt_timeout is not None and self.attempt_timeout <= 0:
            raise ValueError("attempt_timeout must be positive")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Either a value or a classified error, never both."""
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    status_class: Optional[int] = None
    detail: Optional[str] = None
    attempts: int = 0
    from_cache: bool = False

    def __post_init__(self) -> None:
        if (self.value is None) == (self.error is None):
            raise ValueError("Outcome needs exactly one of value or error")

    @classmethod
    def success(cls, value: T, attempts: int = 1, from_cache: bool = False) -> "Outcome[T]":
        return cls(value=value, attempts=attempts, from_cache=from_cache)

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        status_class: Optional[int] = None,
        detail: Optional[str] = None,
        attempts: int = 1,
    ) -> "Outcome[T]":
        return cls(error=kind, status_class=status_class, detail=detail, attempts=attempts)

    @property
    def ok(self) -> bool:
        return self.error is None

    def with_attempts(self, attempts: int) -> "Outcome[T]":
        return Outcome(
            value=self.value,
            error=self.error,
            status_class=self.status_class,
            detail=self.detail,
            attempts=attempts,
            from_cache=self.from_cache,
        )


@dataclass(frozen=True)
class EnrichmentResult:
    """
    Per-entity aggregate of slot payloads and slot errors.

    Every slot carries exactly one of a payload or an error. An errored
    slot may also carry the HTTP status class (e.g. 500 for a server
    error). The maps are read-only views so the result can be handed
    around as a snapshot.
    """
    entity_name: str
    bio: Optional[str] = None
    bio_error: Optional[ErrorKind] = None
    facts: Mapping[FunFactType, str] = field(default_factory=dict)
    fact_errors: Mapping[FunFactType, ErrorKind] = field(default_factory=dict)
    fun_fact_types: Tuple[FunFactType, ...] = ALL_FUN_FACT_TYPES
    entity_id: Optional[str] = None
    cached_slots: frozenset = frozenset()
    enriched_at: float = field(default_factory=time.time)
    bio_status_class: Optional[int] = None
    fact_status_classes: Mapping[FunFactType, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "facts", MappingProxyType(dict(self.facts)))
        object.__setattr__(self, "fact_errors", MappingProxyType(dict(self.fact_errors)))
        object.__setattr__(self, "fact_status_classes", MappingProxyType(dict(self.fact_status_classes)))
        object.__setattr__(self, "fun_fact_types", tuple(self.fun_fact_types))

        if self.bio_status_class is not None and self.bio_error is None:
            raise ValueError("bio status class without a bio error")
        if not set(self.fact_status_classes) <= set(self.fact_errors):
            raise ValueError("fun-fact status class without a matching error")

        if (self.bio is None) == (self.bio_error is None):
            raise ValueError("bio slot needs exactly one of payload or error")
        for fact_type in self.fun_fact_types:
            if (fact_type in self.facts) == (fact_type in self.fact_errors):
                raise ValueError(f"{fact_type.value} slot needs exactly one of payload or error")
        extra = (set(self.facts) | set(self.fact_errors)) - set(self.fun_fact_types)
        if extra:
            raise ValueError(f"unexpected fun-fact slots: {sorted(t.value for t in extra)}")

    @classmethod
    def failed(
        cls,
        entity_name: str,
        kind: ErrorKind,
        fun_fact_types: Iterable[FunFactType] = ALL_FUN_FACT_TYPES,
        entity_id: Optional[str] = None,
        status_class: Optional[int] = None,
    ) -> "EnrichmentResult":
        """Every slot errored with the same kind."""
        fun_fact_types = tuple(fun_fact_types)
        return cls(
            entity_name=entity_name,
            bio_error=kind,
            fact_errors={t: kind for t in fun_fact_types},
            fun_fact_types=fun_fact_types,
            entity_id=entity_id,
            bio_status_class=status_class,
            fact_status_classes={t: status_class for t in fun_fact_types} if status_class is not None else {},
        )

    @classmethod
    def from_outcomes(
        cls,
        entity_name: str,
        entity_id: str,
        outcomes: Mapping[ContentType, Outcome],
        fun_fact_types: Iterable[FunFactType],
    ) -> "EnrichmentResult":
        """Assemble by slot, independent of completion order."""
        bio_outcome = outcomes[BIO]
        facts: Dict[FunFactType, str] = {}
        fact_errors: Dict[FunFactType, ErrorKind] = {}
        fact_status_classes: Dict[FunFactType, int] = {}
        for slot, outcome in outcomes.items():
            if slot.is_bio:
                continue
            if outcome.ok:
                facts[slot.subtype] = outcome.value
            else:
                fact_errors[slot.subtype] = outcome.error
                if outcome.status_class is not None:
                    fact_status_classes[slot.subtype] = outcome.status_class

        return cls(
            entity_name=entity_name,
            entity_id=entity_id,
            bio=bio_outcome.value if bio_outcome.ok else None,
            bio_error=bio_outcome.error,
            bio_status_class=None if bio_outcome.ok else bio_outcome.status_class,
            facts=facts,
            fact_errors=fact_errors,
            fact_status_classes=fact_status_classes,
            fun_fact_types=tuple(fun_fact_types),
            cached_slots=frozenset(s for s, o in outcomes.items() if o.from_cache),
        )

    @property
    def slots(self) -> Tuple[ContentType, ...]:
        return slots_for(self.fun_fact_types)

    def outcome_for(self, slot: ContentType) -> Tuple[Optional[str], Optional[ErrorKind]]:
        """(payload, error) pair for one slot."""
        if slot.is_bio:
            return self.bio, self.bio_error
        return self.facts.get(slot.subtype), self.fact_errors.get(slot.subtype)

    def status_class_for(self, slot: ContentType) -> Optional[int]:
        if slot.is_bio:
            return self.bio_status_class
        return self.fact_status_classes.get(slot.subtype)

    def retryable_slots(self) -> Tuple[ContentType, ...]:
        retryable = []
        for slot in self.slots:
            _, error = self.outcome_for(slot)
            if error is not None and is_retryable(error):
                retryable.append(slot)
        return tuple(retryable)

    @property
    def has_errors(self) -> bool:
        return self.bio_error is not None or bool(self.fact_errors)

    @property
    def is_empty(self) -> bool:
        return self.bio is None and not self.facts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_name": self.entity_name,
            "entity_id": self.entity_id,
            "bio": self.bio,
            "bio_error": self.bio_error.value if self.bio_error else None,
            "bio_status_class": self.bio_status_class,
            "facts": {t.value: text for t, text in self.facts.items()},
            "fact_errors": {t.value: kind.value for t, kind in self.fact_errors.items()},
            "fact_status_classes": {t.value: sc for t, sc in self.fact_status_classes.items()},
            "cached_slots": sorted(str(s) for s in self.cached_slots),
            "enriched_at": self.enriched_at,
        }
