from bot.formatting import format_enrichment, split_message
from enrichment.errors import FALLBACK_MESSAGES, ErrorKind
from enrichment.models import EnrichmentResult, FunFactType


def test_partial_result_formatting():
    result = EnrichmentResult(
        entity_name="Queen",
        bio="British rock band...",
        facts={FunFactType.ACTIVITY: "Touring again."},
        fact_errors={
            FunFactType.LORE: ErrorKind.RATE_LIMITED,
            FunFactType.BTS: ErrorKind.NO_CONTENT_AVAILABLE,
        },
        fun_fact_types=(FunFactType.LORE, FunFactType.BTS, FunFactType.ACTIVITY),
    )

    text = format_enrichment(result)

    assert text.startswith("🎵 Queen")
    assert "British rock band..." in text
    assert "Touring again." in text
    assert f"⚠️ {FALLBACK_MESSAGES[ErrorKind.RATE_LIMITED]}" in text
    assert f"⚠️ {FALLBACK_MESSAGES[ErrorKind.NO_CONTENT_AVAILABLE]}" not in text
    assert FALLBACK_MESSAGES[ErrorKind.NO_CONTENT_AVAILABLE] in text
    assert "/artist Queen" in text
    assert text.index("Lore:") < text.index("Behind the scenes:") < text.index("Recent activity:")


def test_no_retry_hint_without_retryable_errors():
    result = EnrichmentResult.failed("Nobody", ErrorKind.ENTITY_NOT_FOUND)

    text = format_enrichment(result)

    assert FALLBACK_MESSAGES[ErrorKind.ENTITY_NOT_FOUND] in text
    assert "try again" not in text


def test_split_message():
    assert split_message("short") == ["short"]

    chunks = split_message("x" * 9000)
    assert [len(c) for c in chunks] == [4000, 4000, 1000]
