"""Plain-text rendering of enrichment results for chat replies."""

from typing import List

from enrichment.errors import fallback_message, is_retryable
from enrichment.models import EnrichmentResult

FACT_TITLES = {
    "lore": "Lore",
    "bts": "Behind the scenes",
    "activity": "Recent activity",
    "surprise": "Surprise",
}

TELEGRAM_CHUNK = 4000


def format_enrichment(result: EnrichmentResult) -> str:
    """
    Bio first, then each fun fact in configured order. Errored slots show
    the user-facing fallback text; retryable ones get a retry hint.
    """
    lines: List[str] = [f"🎵 {result.entity_name}"]

    lines.append("")
    lines.append("Bio:")
    if result.bio is not None:
        lines.append(result.bio)
    else:
        lines.append(_fallback_line(result.bio_error))

    for fact_type in result.fun_fact_types:
        lines.append("")
        lines.append(f"{FACT_TITLES.get(fact_type.value, fact_type.value.title())}:")
        text = result.facts.get(fact_type)
        if text is not None:
            lines.append(text)
        else:
            lines.append(_fallback_line(result.fact_errors[fact_type]))

    if result.retryable_slots():
        lines.append("")
        lines.append(f"Some content didn't load. Send /artist {result.entity_name} to try again.")

    return "\n".join(lines)


def _fallback_line(kind) -> str:
    message = fallback_message(kind)
    if is_retryable(kind):
        return f"⚠️ {message}"
    return message


def split_message(text: str, size: int = TELEGRAM_CHUNK) -> List[str]:
    """Telegram has a 4096 char limit per message."""
    if len(text) <= size:
        return [text]
    return [text[i:i + size] for i in range(0, len(text), size)]
