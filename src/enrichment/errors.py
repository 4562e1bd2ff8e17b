"""
Error taxonomy and classification for enrichment calls.

Transport adapters describe a failure with a RawFailure (status code,
timeout flag, connectivity flag, domain signals) and ErrorClassifier maps it
onto the closed ErrorKind set. Nothing here knows about HTTP libraries.

Retryable:     network_unavailable, timeout, rate_limited, server_error
Not retryable: entity_not_found, no_content_available, malformed_response,
               quota_exceeded, unknown
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Type

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    NETWORK_UNAVAILABLE = "network_unavailable"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    ENTITY_NOT_FOUND = "entity_not_found"
    NO_CONTENT_AVAILABLE = "no_content_available"
    MALFORMED_RESPONSE = "malformed_response"
    QUOTA_EXCEEDED = "quota_exceeded"
    UNKNOWN = "unknown"


RETRYABLE_KINDS = frozenset({
    ErrorKind.NETWORK_UNAVAILABLE,
    ErrorKind.TIMEOUT,
    ErrorKind.RATE_LIMITED,
    ErrorKind.SERVER_ERROR,
})


FALLBACK_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.NETWORK_UNAVAILABLE: "Unable to load content - check your internet connection",
    ErrorKind.TIMEOUT: "Content is taking too long to load - try again later",
    ErrorKind.RATE_LIMITED: "Too many requests - content temporarily unavailable, try again in a moment",
    ErrorKind.SERVER_ERROR: "Our music service is experiencing issues - try again later",
    ErrorKind.ENTITY_NOT_FOUND: "This artist isn't available in our music database yet",
    ErrorKind.NO_CONTENT_AVAILABLE: "Content is not available for this artist",
    ErrorKind.MALFORMED_RESPONSE: "Content is not available for this artist",
    ErrorKind.QUOTA_EXCEEDED: "Daily content limit reached - check back tomorrow",
    ErrorKind.UNKNOWN: "Content is not available right now",
}

RECOVERY_SUGGESTIONS: Dict[ErrorKind, str] = {
    ErrorKind.NETWORK_UNAVAILABLE: "Check your internet connection and try again.",
    ErrorKind.TIMEOUT: "Taking too long to load - try again later.",
    ErrorKind.RATE_LIMITED: "Too many requests - try again in a moment.",
    ErrorKind.SERVER_ERROR: "Our music service is experiencing issues - try again later.",
    ErrorKind.ENTITY_NOT_FOUND: "Try a different artist or check the spelling.",
    ErrorKind.NO_CONTENT_AVAILABLE: "Some artists may not have additional information available.",
    ErrorKind.MALFORMED_RESPONSE: "Some artists may not have additional information available.",
    ErrorKind.QUOTA_EXCEEDED: "Please try again tomorrow.",
    ErrorKind.UNKNOWN: "Please try again later.",
}


@dataclass(frozen=True)
class RawFailure:
    """Transport-neutral description of a failed call."""
    status_code: Optional[int] = None
    timed_out: bool = False
    connected: bool = True
    not_found: bool = False
    no_content: bool = False
    malformed: bool = False
    quota_exceeded: bool = False
    message: Optional[str] = None

    @property
    def status_class(self) -> Optional[int]:
        if self.status_code is None:
            return None
        return self.status_code // 100 * 100


def is_retryable(kind: ErrorKind) -> bool:
    return kind in RETRYABLE_KINDS


def fallback_message(kind: ErrorKind) -> str:
    return FALLBACK_MESSAGES[kind]


def recovery_suggestion(kind: ErrorKind) -> str:
    return RECOVERY_SUGGESTIONS[kind]


class ErrorClassifier:
    """
    Pure mapping from RawFailure (or an unexpected exception) to ErrorKind.

    exception_map lets a caller teach the classifier about exception types
    raised by its own operations; anything unmapped is UNKNOWN.
    """

    def __init__(self, exception_map: Optional[Dict[Type[BaseException], ErrorKind]] = None) -> None:
        self._exception_map = dict(exception_map or {})

    def classify(self, raw: RawFailure) -> ErrorKind:
        if not raw.connected:
            return ErrorKind.NETWORK_UNAVAILABLE
        if raw.timed_out:
            return ErrorKind.TIMEOUT
        if raw.not_found:
            return ErrorKind.ENTITY_NOT_FOUND
        if raw.no_content:
            return ErrorKind.NO_CONTENT_AVAILABLE
        if raw.quota_exceeded:
            return ErrorKind.QUOTA_EXCEEDED
        if raw.malformed:
            return ErrorKind.MALFORMED_RESPONSE
        return self._classify_status(raw.status_code)

    def _classify_status(self, status: Optional[int]) -> ErrorKind:
        if status is None:
            return ErrorKind.UNKNOWN
        if status == 429:
            return ErrorKind.RATE_LIMITED
        if status in (408, 504):
            return ErrorKind.TIMEOUT
        if status == 404:
            return ErrorKind.ENTITY_NOT_FOUND
        if status == 204:
            return ErrorKind.NO_CONTENT_AVAILABLE
        if status == 402:
            return ErrorKind.QUOTA_EXCEEDED
        if 500 <= status <= 599:
            return ErrorKind.SERVER_ERROR
        return ErrorKind.UNKNOWN

    def classify_exception(self, exc: BaseException) -> ErrorKind:
        for exc_type, kind in self._exception_map.items():
            if isinstance(exc, exc_type):
                return kind
        logger.debug("Unmapped exception %s classified as unknown", type(exc).__name__)
        return ErrorKind.UNKNOWN

    # Convenience wrappers so callers only need the classifier instance.

    def is_retryable(self, kind: ErrorKind) -> bool:
        return is_retryable(kind)

    def fallback_message(self, kind: ErrorKind) -> str:
        return fallback_message(kind)

    def recovery_suggestion(self, kind: ErrorKind) -> str:
        return recovery_suggestion(kind)
