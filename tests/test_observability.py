import pytest

from enrichment.observability import EnrichmentLogRecord, validate_record


def test_enrichment_log_schema_roundtrip():
    record = EnrichmentLogRecord(
        request_id="req-1",
        entity_name="Queen",
        entity_id="42",
        stage="aggregated",
        slots_total=5,
        cache_hits=2,
        network_fetches=3,
        slot_errors={"funfact(bts)": "rate_limited"},
        latency_ms_total=12.3,
        latency_ms_per_slot={"bio": 4.0},
        resolve_attempts=1,
    )

    payload = record.to_dict()

    assert payload["stage"] == "aggregated"
    assert payload["slot_errors"] == {"funfact(bts)": "rate_limited"}
    assert payload["latency_ms_per_slot"] == {"bio": 4.0}


def test_unresolved_entity_id_is_allowed():
    record = EnrichmentLogRecord(
        request_id="req-2",
        entity_name="Nobody",
        entity_id=None,
        stage="resolution_failed",
        slots_total=5,
    )

    assert record.to_dict()["entity_id"] is None


def test_unknown_stage_rejected():
    record = EnrichmentLogRecord(
        request_id="req-3",
        entity_name="Queen",
        entity_id="42",
        stage="exploded",
        slots_total=5,
    )

    with pytest.raises(ValueError):
        record.to_dict()


def test_unknown_error_kind_rejected():
    with pytest.raises(ValueError):
        validate_record({
            "request_id": "req-4",
            "logged_at": "2024-01-01T00:00:00+00:00",
            "entity_name": "Queen",
            "entity_id": "42",
            "stage": "aggregated",
            "slots_total": 1,
            "cache_hits": 0,
            "network_fetches": 1,
            "slot_errors": {"bio": "gremlins"},
            "latency_ms_total": 1.0,
        })
