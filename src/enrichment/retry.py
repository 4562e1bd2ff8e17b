"""
Retry executor with exponential backoff, symmetric jitter and
connectivity-aware waiting.

Usage::

    executor = RetryExecutor(ErrorClassifier(), connectivity=monitor)
    outcome = executor.execute(lambda: client.fetch(entity_id, slot), policy)
    if outcome.ok:
        ...

Operations return an Outcome. An operation that raises is classified with
ErrorClassifier.classify_exception (UNKNOWN unless mapped). The executor
keeps no state between calls, so one instance can serve many threads.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Any, Callable, Optional

from .errors import ErrorClassifier, ErrorKind
from .models import Outcome, RetryPolicy

logger = logging.getLogger(__name__)

MIN_DELAY_SECONDS = 0.1
DEFAULT_POLL_INTERVAL = 0.5


def compute_delay(policy: RetryPolicy, attempt: int, rng: Callable[[], float] = random.random) -> float:
    """Backoff before the attempt after `attempt` (1-based)."""
    delay = min(policy.base_delay * (2 ** (attempt - 1)), policy.max_delay)
    spread = delay * policy.jitter_ratio * (rng() * 2 - 1)
    return max(MIN_DELAY_SECONDS, delay + spread)


def run_with_timeout(op: Callable[[], Outcome], timeout: float) -> Outcome:
    """
    Race op against a timer. Whichever resolves first wins; if the timer
    wins, the attempt is abandoned and reported as TIMEOUT.
    """
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="attempt")
    future = pool.submit(op)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        future.cancel()
        return Outcome.failure(ErrorKind.TIMEOUT, detail=f"attempt exceeded {timeout:.1f}s")
    finally:
        pool.shutdown(wait=False)


class RetryExecutor:
    """Runs a fallible operation under a RetryPolicy."""

    def __init__(
        self,
        classifier: Optional[ErrorClassifier] = None,
        connectivity: Any = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self.classifier = classifier or ErrorClassifier()
        self.connectivity = connectivity
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._rng = rng

    def execute(
        self,
        op: Callable[[], Outcome],
        policy: RetryPolicy,
        cancel: Optional[threading.Event] = None,
        label: str = "operation",
    ) -> Outcome:
        outcome: Optional[Outcome] = None

        for attempt in range(1, policy.max_attempts + 1):
            if cancel is not None and cancel.is_set():
                logger.debug("%s cancelled before attempt %d", label, attempt)
                return Outcome.failure(ErrorKind.TIMEOUT, detail="cancelled", attempts=attempt - 1)

            outcome = self._attempt(op, policy)
            if outcome.ok:
                if attempt > 1:
                    logger.info("%s succeeded on attempt %d/%d", label, attempt, policy.max_attempts)
                return outcome.with_attempts(attempt)

            kind = outcome.error
            if not self.classifier.is_retryable(kind):
                logger.debug("%s failed with non-retryable %s", label, kind.value)
                return outcome.with_attempts(attempt)
            if attempt == policy.max_attempts:
                break

            delay = compute_delay(policy, attempt, self._rng)
            logger.warning(
                "%s attempt %d/%d failed (%s) - retrying in %.2fs",
                label, attempt, policy.max_attempts, kind.value, delay,
            )

            if kind == ErrorKind.NETWORK_UNAVAILABLE and self.connectivity is not None:
                completed = self._wait_for_connectivity(delay, cancel, label)
            else:
                completed = self._pause(delay, cancel)
            if not completed:
                logger.debug("%s cancelled during backoff", label)
                return Outcome.failure(ErrorKind.TIMEOUT, detail="cancelled", attempts=attempt)

        logger.warning("%s gave up after %d attempts (%s)", label, policy.max_attempts, outcome.error.value)
        return outcome.with_attempts(policy.max_attempts)

    def _attempt(self, op: Callable[[], Outcome], policy: RetryPolicy) -> Outcome:
        try:
            if policy.attempt_timeout is not None:
                result = run_with_timeout(op, policy.attempt_timeout)
            else:
                result = op()
        except Exception as exc:  # noqa: BLE001
            kind = self.classifier.classify_exception(exc)
            logger.error("Operation raised %s: %s (classified %s)", type(exc).__name__, exc, kind.value)
            return Outcome.failure(kind, detail=str(exc))

        if not isinstance(result, Outcome):
            logger.error("Operation returned %s instead of Outcome", type(result).__name__)
            return Outcome.failure(ErrorKind.UNKNOWN, detail="operation returned no outcome")
        return result

    def _pause(self, seconds: float, cancel: Optional[threading.Event]) -> bool:
        """Sleep; returns False if cancelled while waiting."""
        if cancel is not None:
            return not cancel.wait(seconds)
        self._sleep(seconds)
        return True

    def _wait_for_connectivity(self, delay: float, cancel: Optional[threading.Event], label: str) -> bool:
        """
        Poll connectivity for up to `delay`, returning as soon as it is back.
        Checks once before the first pause, then after every poll step.
        """
        if self.connectivity.is_connected():
            logger.info("%s: connectivity already restored, retrying now", label)
            return True

        waited = 0.0
        while waited < delay:
            step = min(self.poll_interval, delay - waited)
            if not self._pause(step, cancel):
                return False
            waited += step
            if self.connectivity.is_connected():
                logger.info("%s: connectivity restored after %.2fs", label, waited)
                return True
        return True
