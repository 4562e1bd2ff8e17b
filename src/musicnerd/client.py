#!/usr/bin/env python3
"""
MusicNerd API Client - artist catalog lookups for enrichment

Implements:
- search_artist(name) -> Outcome[MusicNerdArtist]
- get_artist_bio(artist_id) -> Outcome[str]
- get_fun_fact(artist_id, fact_type) -> Outcome[str]
- resolve(name) -> Outcome[str]          EntityResolver for the orchestrator
- fetch(entity_id, slot) -> Outcome[str] ContentFetcher for the orchestrator

Every failure comes back as a classified Outcome; nothing is raised.
"""

import json
import logging
import os
import threading
import requests
from dataclasses import dataclass, field, asdict
from typing import Optional, Dict, Any, List, Tuple

from jsonschema import Draft7Validator

from enrichment.errors import ErrorClassifier, RawFailure
from enrichment.models import ContentType, FunFactType, Outcome

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.musicnerd.xyz"

SEARCH_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["results"],
    "properties": {
        "results": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "id": {"type": ["string", "integer", "null"]},
                    "name": {"type": "string"},
                },
            },
        },
    },
}

BIO_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {"bio": {"type": ["string", "null"]}},
}

FUN_FACT_RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "funFact": {"type": ["string", "null"]},
        "text": {"type": ["string", "null"]},
    },
}

_search_validator = Draft7Validator(SEARCH_RESPONSE_SCHEMA)
_bio_validator = Draft7Validator(BIO_RESPONSE_SCHEMA)
_fun_fact_validator = Draft7Validator(FUN_FACT_RESPONSE_SCHEMA)


@dataclass
class MusicNerdArtist:
    """Artist record from the search endpoint."""
    id: str
    name: str
    spotify: Optional[str] = None
    instagram: Optional[str] = None
    youtube: Optional[str] = None
    bio: Optional[str] = None
    raw: Optional[Dict[str, Any]] = field(default=None, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MusicNerdArtist":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            spotify=data.get("spotify"),
            instagram=data.get("instagram"),
            youtube=data.get("youtube"),
            bio=data.get("bio"),
            raw=data,
        )

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d.pop("raw", None)
        return d


class MusicNerdClient:
    """
    HTTP client for the MusicNerd catalog.

    Design principles:
    - Base URL from constructor or MUSICNERD_BASE_URL (never hardcoded per call)
    - Graceful degradation: failures return classified Outcomes, not exceptions
    - Each request carries its own timeout
    - Transport failures are described as RawFailure and classified in one place
    """

    DEFAULT_TIMEOUT = 25  # seconds
    SEARCH_ENDPOINT = "/api/searchArtists"
    BIO_ENDPOINT = "/api/artistBio"
    FUN_FACTS_ENDPOINT = "/api/funFacts"

    def __init__(self, base_url: str = None, timeout: float = None, classifier: ErrorClassifier = None):
        self.base_url = (base_url or os.environ.get("MUSICNERD_BASE_URL", DEFAULT_BASE_URL)).rstrip("/")
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self.classifier = classifier or ErrorClassifier()

        self._stats_lock = threading.Lock()
        self._request_count = 0
        self._error_count = 0

        logger.info(f"MusicNerdClient initialized (base_url={self.base_url}, timeout={self.timeout}s)")

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _fail(self, raw: RawFailure) -> Outcome:
        with self._stats_lock:
            self._error_count += 1
        return Outcome.failure(
            self.classifier.classify(raw),
            status_class=raw.status_class,
            detail=raw.message,
        )

    def _request(self, method: str, endpoint: str, **kwargs) -> Tuple[Optional[Any], Optional[RawFailure]]:
        """
        Make a request and decode its JSON body.

        Returns (body, None) on HTTP 200 with a JSON body, (None, RawFailure)
        otherwise. All errors are logged, never raised.
        """
        url = f"{self.base_url}{endpoint}"
        with self._stats_lock:
            self._request_count += 1

        try:
            response = requests.request(
                method,
                url,
                headers=self._headers(),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.Timeout:
            logger.error(f"MusicNerd API timeout: {method} {endpoint} (>{self.timeout}s)")
            return None, RawFailure(timed_out=True, message="request timed out")
        except requests.ConnectionError as e:
            logger.error(f"MusicNerd API connection error: {method} {endpoint}")
            return None, RawFailure(connected=False, message=str(e))
        except requests.RequestException as e:
            logger.error(f"MusicNerd API unexpected error: {method} {endpoint}: {e}")
            return None, RawFailure(message=str(e))

        logger.debug(f"MusicNerd {method} {endpoint} -> {response.status_code}")

        if response.status_code != 200:
            message = self._error_message(response)
            logger.warning(f"MusicNerd API error: {method} {endpoint} -> {response.status_code} {message}")
            return None, RawFailure(status_code=response.status_code, message=message)

        try:
            return response.json(), None
        except ValueError as e:
            logger.error(f"MusicNerd API returned non-JSON body for {endpoint}: {e}")
            return None, RawFailure(status_code=200, malformed=True, message="response is not JSON")

    @staticmethod
    def _error_message(response) -> str:
        try:
            body = response.json()
            if isinstance(body, dict) and body.get("error"):
                return str(body["error"])
        except ValueError:
            pass
        return (response.text or "")[:200]

    @staticmethod
    def _schema_errors(validator: Draft7Validator, body: Any) -> Optional[str]:
        errors = list(validator.iter_errors(body))
        if not errors:
            return None
        return ", ".join(error.message for error in errors)

    def search_artist(self, name: str) -> Outcome:
        """
        Search the catalog by name and pick the first result.

        Returns:
            Outcome carrying a MusicNerdArtist, or ENTITY_NOT_FOUND when
            the search comes back empty.
        """
        logger.info(f"Searching for artist: '{name}'")
        body, failure = self._request("POST", self.SEARCH_ENDPOINT, json={"query": name})
        if failure:
            return self._fail(failure)

        problems = self._schema_errors(_search_validator, body)
        if problems:
            logger.error(f"Malformed search response: {problems}")
            return self._fail(RawFailure(malformed=True, message=problems))

        results: List[Dict[str, Any]] = body["results"]
        logger.info(f"Found {len(results)} artists for '{name}'")
        if not results:
            return self._fail(RawFailure(not_found=True, message=f"no artists match '{name}'"))

        first = results[0]
        if first.get("id") in (None, ""):
            return self._fail(RawFailure(malformed=True, message="search result has no id"))

        artist = MusicNerdArtist.from_dict(first)
        logger.info(f"Selected artist: '{artist.name}' (ID: {artist.id})")
        return Outcome.success(artist)

    def get_artist_bio(self, artist_id: str) -> Outcome:
        """Fetch the artist biography. Empty bios are NO_CONTENT_AVAILABLE."""
        body, failure = self._request("GET", f"{self.BIO_ENDPOINT}/{artist_id}")
        if failure:
            return self._fail(failure)

        problems = self._schema_errors(_bio_validator, body)
        if problems:
            return self._fail(RawFailure(malformed=True, message=problems))

        bio = (body.get("bio") or "").strip()
        if not bio:
            logger.info(f"No bio available for artist ID: {artist_id}")
            return self._fail(RawFailure(no_content=True, message="no bio available"))

        logger.info(f"Retrieved bio ({len(bio)} characters) for artist ID: {artist_id}")
        return Outcome.success(bio)

    def get_fun_fact(self, artist_id: str, fact_type: FunFactType) -> Outcome:
        """Fetch one fun fact; the text may arrive as `funFact` or `text`."""
        fact_type = FunFactType(fact_type)
        body, failure = self._request(
            "GET",
            f"{self.FUN_FACTS_ENDPOINT}/{fact_type.value}",
            params={"id": artist_id},
        )
        if failure:
            return self._fail(failure)

        problems = self._schema_errors(_fun_fact_validator, body)
        if problems:
            return self._fail(RawFailure(malformed=True, message=problems))

        fact = (body.get("funFact") or body.get("text") or "").strip()
        if not fact:
            logger.info(f"No {fact_type.value} fun fact available for artist ID: {artist_id}")
            return self._fail(RawFailure(no_content=True, message=f"no {fact_type.value} fun fact"))

        logger.info(f"Retrieved {fact_type.value} fun fact ({len(fact)} characters)")
        return Outcome.success(fact)

    # ── Orchestrator collaborators ──

    def resolve(self, name: str) -> Outcome:
        outcome = self.search_artist(name)
        if not outcome.ok:
            return outcome
        return Outcome.success(outcome.value.id)

    def fetch(self, entity_id: str, slot: ContentType) -> Outcome:
        if slot.is_bio:
            return self.get_artist_bio(entity_id)
        return self.get_fun_fact(entity_id, slot.subtype)

    def get_stats(self) -> Dict[str, Any]:
        """Get client-side statistics."""
        with self._stats_lock:
            requests_made, errors = self._request_count, self._error_count
        return {
            "base_url": self.base_url,
            "total_requests": requests_made,
            "total_errors": errors,
            "error_rate_percent": (
                round(errors / requests_made * 100, 1)
                if requests_made > 0 else 0
            ),
        }


if __name__ == "__main__":
    import sys

    logging.basicConfig(level=logging.INFO)

    client = MusicNerdClient()
    artist_name = " ".join(sys.argv[1:]) or "Queen"

    resolved = client.resolve(artist_name)
    if not resolved.ok:
        print(f"Could not resolve '{artist_name}': {resolved.error.value}")
        sys.exit(1)

    bio = client.get_artist_bio(resolved.value)
    print(f"\nBio: {bio.value if bio.ok else bio.error.value}")
    print(f"\nClient stats: {json.dumps(client.get_stats(), indent=2)}")
