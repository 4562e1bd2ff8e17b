"""Connectivity probe with cached snapshots."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional

import requests

logger = logging.getLogger(__name__)


@dataclass
class ConnectivitySnapshot:
    checked_at: float
    connected: bool
    error: Optional[str] = None


class ConnectivityMonitor:
    """
    Answers is_connected() for the retry executor's backoff loop.

    Any HTTP response from the probe URL counts as connected, even an error
    status; only transport failures mean the network is unavailable.
    Concurrent callers share one probe: whoever finds the snapshot stale
    refreshes it while the others wait for the result.
    """

    def __init__(self, probe_url: str, cache_ttl: float = 0.25, timeout: float = 2.0) -> None:
        self._probe_url = probe_url.rstrip("/")
        self._cache_ttl = cache_ttl
        self._timeout = timeout
        self._snapshot: Optional[ConnectivitySnapshot] = None
        self._lock = threading.Lock()

    def _probe(self) -> tuple[bool, Optional[str]]:
        try:
            requests.head(self._probe_url, timeout=self._timeout, allow_redirects=False)
            return True, None
        except requests.RequestException as exc:
            return False, str(exc)

    def refresh_snapshot(self) -> ConnectivitySnapshot:
        with self._lock:
            return self._refresh()

    def _refresh(self) -> ConnectivitySnapshot:
        connected, error = self._probe()
        previous = self._snapshot
        self._snapshot = ConnectivitySnapshot(checked_at=time.time(), connected=connected, error=error)
        if previous is not None and previous.connected != connected:
            if connected:
                logger.info("Network connection established (%s)", self._probe_url)
            else:
                logger.warning("Network connection lost: %s", error)
        return self._snapshot

    def get_snapshot(self) -> ConnectivitySnapshot:
        with self._lock:
            if self._snapshot is None:
                return self._refresh()
            if time.time() - self._snapshot.checked_at > self._cache_ttl:
                return self._refresh()
            return self._snapshot

    def is_connected(self) -> bool:
        return self.get_snapshot().connected
