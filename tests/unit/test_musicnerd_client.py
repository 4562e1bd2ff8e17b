#!/usr/bin/env python3
"""
Unit tests for the MusicNerd catalog client
Search, bio and fun-fact endpoints; failure classification
"""

import pytest
import threading
import sys
from pathlib import Path
from unittest.mock import patch, MagicMock

import requests

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from enrichment.errors import ErrorKind
from enrichment.models import BIO, ContentType, FunFactType
from musicnerd.client import MusicNerdClient, MusicNerdArtist


def json_response(status_code, body):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = body
    response.text = str(body)
    return response


class TestMusicNerdClientInit:

    def test_init_with_explicit_params(self):
        client = MusicNerdClient(base_url="https://catalog.example.com/", timeout=5)

        assert client.base_url == "https://catalog.example.com"
        assert client.timeout == 5

    def test_init_from_env_vars(self):
        with patch.dict("os.environ", {"MUSICNERD_BASE_URL": "https://env.example.com"}):
            client = MusicNerdClient()
            assert client.base_url == "https://env.example.com"
            assert client.timeout == MusicNerdClient.DEFAULT_TIMEOUT


class TestSearchArtist:

    @pytest.fixture
    def client(self):
        return MusicNerdClient(base_url="https://catalog.example.com")

    @patch("musicnerd.client.requests.request")
    def test_search_success(self, mock_request, client):
        mock_request.return_value = json_response(200, {
            "results": [
                {"id": 42, "name": "Queen", "spotify": "spotify:artist:1dfeR4HaWDbWqFHLkxsg1d"},
                {"id": 43, "name": "Queen Latifah"},
            ],
        })

        outcome = client.search_artist("Queen")

        assert outcome.ok
        assert isinstance(outcome.value, MusicNerdArtist)
        assert outcome.value.id == "42"
        assert outcome.value.spotify == "spotify:artist:1dfeR4HaWDbWqFHLkxsg1d"

        args, kwargs = mock_request.call_args
        assert args == ("POST", "https://catalog.example.com/api/searchArtists")
        assert kwargs["json"] == {"query": "Queen"}
        assert kwargs["timeout"] == client.timeout

    @patch("musicnerd.client.requests.request")
    def test_search_empty_is_not_found(self, mock_request, client):
        mock_request.return_value = json_response(200, {"results": []})

        outcome = client.search_artist("Nobody")

        assert outcome.error == ErrorKind.ENTITY_NOT_FOUND

    @patch("musicnerd.client.requests.request")
    def test_search_missing_id_is_malformed(self, mock_request, client):
        mock_request.return_value = json_response(200, {"results": [{"name": "Ghost"}]})

        assert client.search_artist("Ghost").error == ErrorKind.MALFORMED_RESPONSE

    @patch("musicnerd.client.requests.request")
    def test_search_wrong_shape_is_malformed(self, mock_request, client):
        mock_request.return_value = json_response(200, {"artists": "nope"})

        assert client.search_artist("Queen").error == ErrorKind.MALFORMED_RESPONSE

    @patch("musicnerd.client.requests.request")
    def test_resolve_returns_id(self, mock_request, client):
        mock_request.return_value = json_response(200, {"results": [{"id": "42", "name": "Queen"}]})

        outcome = client.resolve("Queen")

        assert outcome.value == "42"


class TestContentEndpoints:

    @pytest.fixture
    def client(self):
        return MusicNerdClient(base_url="https://catalog.example.com")

    @patch("musicnerd.client.requests.request")
    def test_bio_success(self, mock_request, client):
        mock_request.return_value = json_response(200, {"bio": "  British rock band...  "})

        outcome = client.fetch("42", BIO)

        assert outcome.value == "British rock band..."
        args, _ = mock_request.call_args
        assert args == ("GET", "https://catalog.example.com/api/artistBio/42")

    @patch("musicnerd.client.requests.request")
    def test_empty_bio_is_no_content(self, mock_request, client):
        mock_request.return_value = json_response(200, {"bio": ""})

        assert client.get_artist_bio("42").error == ErrorKind.NO_CONTENT_AVAILABLE

    @patch("musicnerd.client.requests.request")
    def test_fun_fact_success(self, mock_request, client):
        mock_request.return_value = json_response(200, {"funFact": "They recorded in a castle."})

        outcome = client.fetch("42", ContentType.fun_fact(FunFactType.LORE))

        assert outcome.value == "They recorded in a castle."
        args, kwargs = mock_request.call_args
        assert args == ("GET", "https://catalog.example.com/api/funFacts/lore")
        assert kwargs["params"] == {"id": "42"}

    @patch("musicnerd.client.requests.request")
    def test_fun_fact_text_field(self, mock_request, client):
        mock_request.return_value = json_response(200, {"text": "Surprise!"})

        assert client.get_fun_fact("42", "surprise").value == "Surprise!"


class TestFailureClassification:

    @pytest.fixture
    def client(self):
        return MusicNerdClient(base_url="https://catalog.example.com")

    @pytest.mark.parametrize("status, kind", [
        (429, ErrorKind.RATE_LIMITED),
        (500, ErrorKind.SERVER_ERROR),
        (503, ErrorKind.SERVER_ERROR),
        (404, ErrorKind.ENTITY_NOT_FOUND),
        (402, ErrorKind.QUOTA_EXCEEDED),
        (400, ErrorKind.UNKNOWN),
    ])
    @patch("musicnerd.client.requests.request")
    def test_http_status(self, mock_request, client, status, kind):
        mock_request.return_value = json_response(status, {"error": "nope"})

        outcome = client.get_artist_bio("42")

        assert outcome.error == kind
        assert outcome.status_class == status // 100 * 100
        assert outcome.detail == "nope"

    @patch("musicnerd.client.requests.request")
    def test_timeout(self, mock_request, client):
        mock_request.side_effect = requests.Timeout("read timed out")

        assert client.get_artist_bio("42").error == ErrorKind.TIMEOUT

    @patch("musicnerd.client.requests.request")
    def test_connection_error(self, mock_request, client):
        mock_request.side_effect = requests.ConnectionError("connection refused")

        assert client.get_artist_bio("42").error == ErrorKind.NETWORK_UNAVAILABLE

    @patch("musicnerd.client.requests.request")
    def test_other_request_error_is_unknown(self, mock_request, client):
        mock_request.side_effect = requests.TooManyRedirects("loop")

        assert client.get_artist_bio("42").error == ErrorKind.UNKNOWN

    @patch("musicnerd.client.requests.request")
    def test_non_json_body(self, mock_request, client):
        response = MagicMock()
        response.status_code = 200
        response.json.side_effect = ValueError("Expecting value")
        mock_request.return_value = response

        assert client.get_artist_bio("42").error == ErrorKind.MALFORMED_RESPONSE

    @patch("musicnerd.client.requests.request")
    def test_stats_track_errors(self, mock_request, client):
        mock_request.side_effect = [
            json_response(200, {"bio": "ok"}),
            json_response(500, {"error": "boom"}),
        ]

        client.get_artist_bio("1")
        client.get_artist_bio("2")
        stats = client.get_stats()

        assert stats["total_requests"] == 2
        assert stats["total_errors"] == 1
        assert stats["error_rate_percent"] == 50.0

    @patch("musicnerd.client.requests.request")
    def test_stats_exact_under_concurrent_slots(self, mock_request, client):
        mock_request.return_value = json_response(503, {"error": "busy"})

        def hammer():
            for _ in range(50):
                client.get_artist_bio("42")

        threads = [threading.Thread(target=hammer) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        stats = client.get_stats()
        assert stats["total_requests"] == 250
        assert stats["total_errors"] == 250


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
