"""Enrichment log record schema enforcement."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from jsonschema import Draft7Validator

from .errors import ErrorKind

ENRICHMENT_LOG_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": [
        "request_id",
        "logged_at",
        "entity_name",
        "entity_id",
        "stage",
        "slots_total",
        "cache_hits",
        "network_fetches",
        "slot_errors",
        "latency_ms_total",
    ],
    "properties": {
        "request_id": {"type": "string"},
        "logged_at": {"type": "string", "format": "date-time"},
        "entity_name": {"type": "string"},
        "entity_id": {"type": ["string", "null"]},
        "stage": {"type": "string", "enum": ["rejected", "resolution_failed", "aggregated", "timed_out", "crashed"]},
        "slots_total": {"type": "integer", "minimum": 0},
        "cache_hits": {"type": "integer", "minimum": 0},
        "network_fetches": {"type": "integer", "minimum": 0},
        "slot_errors": {
            "type": "object",
            "additionalProperties": {"type": "string", "enum": [k.value for k in ErrorKind]},
        },
        "latency_ms_total": {"type": "number", "minimum": 0},
        "latency_ms_per_slot": {
            "type": "object",
            "additionalProperties": {"type": "number", "minimum": 0},
        },
        "resolve_attempts": {"type": "integer", "minimum": 0},
    },
}

_validator = Draft7Validator(ENRICHMENT_LOG_SCHEMA)


def validate_record(payload: Dict[str, Any]) -> None:
    errors = sorted(_validator.iter_errors(payload), key=lambda e: list(e.path))
    if errors:
        messages = ", ".join(error.message for error in errors)
        raise ValueError(f"enrichment log validation failed: {messages}")


@dataclass
class EnrichmentLogRecord:
    request_id: str
    entity_name: str
    entity_id: Optional[str]
    stage: str
    slots_total: int
    cache_hits: int = 0
    network_fetches: int = 0
    slot_errors: Dict[str, str] = field(default_factory=dict)
    latency_ms_total: float = 0.0
    latency_ms_per_slot: Optional[Dict[str, float]] = None
    resolve_attempts: int = 0
    logged_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "request_id": self.request_id,
            "logged_at": self.logged_at,
            "entity_name": self.entity_name,
            "entity_id": self.entity_id,
            "stage": self.stage,
            "slots_total": self.slots_total,
            "cache_hits": self.cache_hits,
            "network_fetches": self.network_fetches,
            "slot_errors": dict(self.slot_errors),
            "latency_ms_total": self.latency_ms_total,
            "latency_ms_per_slot": self.latency_ms_per_slot or {},
            "resolve_attempts": self.resolve_attempts,
        }
        validate_record(payload)
        return payload
