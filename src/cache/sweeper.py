"""Background expiry sweep for TTLCache."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from .cache import TTLCache

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL = 3600


class CacheSweeper:
    """Runs cache.clear_expired() every `interval` seconds on a daemon thread."""

    def __init__(self, cache: TTLCache, interval: float = DEFAULT_SWEEP_INTERVAL) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._cache = cache
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            logger.debug("Cache sweeper already running")
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="cache-sweeper", daemon=True)
        self._thread.start()
        logger.info("Cache sweeper started (every %.0fs)", self.interval)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
            logger.info("Cache sweeper stopped")

    def run_once(self) -> int:
        try:
            removed = self._cache.clear_expired()
        except Exception as exc:  # noqa: BLE001
            logger.error("Cache sweep failed: %s", exc)
            removed = 0
        self.runs += 1
        return removed

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            self.run_once()
