"""
Circuit breaker and retry policy for calls to external services.
"""

from __future__ import annotations

import logging
import threading
import time
from enum import StrEnum
from typing import Callable, Optional, TypeVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from agency.errors import CircuitOpenError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BreakerState(StrEnum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitBreaker:
    """
    Fails fast after `threshold` consecutive failures.

    Once `reset_timeout` seconds have passed since the last failure, the next
    call is let through in HALF_OPEN state; its success closes the breaker
    and its failure opens it again.
    """

    def __init__(
        self,
        threshold: int = 5,
        reset_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.threshold = threshold
        self.reset_timeout = reset_timeout
        self._clock = clock
        self._state = BreakerState.CLOSED
        self._failure_count = 0
        self._last_failure_at: Optional[float] = None
        self._lock = threading.Lock()

    @property
    def state(self) -> BreakerState:
        return self._state

    def before_call(self) -> None:
        with self._lock:
            if self._state != BreakerState.OPEN:
                return
            elapsed = self._clock() - (self._last_failure_at or 0.0)
            if elapsed >= self.reset_timeout:
                self._state = BreakerState.HALF_OPEN
                logger.info("Circuit breaker half-open")
                return
        raise CircuitOpenError()

    def record_success(self) -> None:
        with self._lock:
            if self._state != BreakerState.CLOSED:
                logger.info("Circuit breaker closed")
            self._state = BreakerState.CLOSED
            self._failure_count = 0
            self._last_failure_at = None

    def record_failure(self) -> None:
        with self._lock:
            self._failure_count += 1
            self._last_failure_at = self._clock()
            if (
                self._state == BreakerState.HALF_OPEN
                or self._failure_count >= self.threshold
            ):
                if self._state != BreakerState.OPEN:
                    logger.warning(
                        "Circuit breaker opened after %d failures", self._failure_count
                    )
                self._state = BreakerState.OPEN

    def call(self, fn: Callable[[], T]) -> T:
        self.before_call()
        try:
            result = fn()
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result

    def force_close(self) -> None:
        self.record_success()

    def status(self) -> dict:
        with self._lock:
            return {
                "state": self._state.value,
                "failure_count": self._failure_count,
                "last_failure_at": self._last_failure_at,
                "is_open": self._state == BreakerState.OPEN,
            }


def retrying(
    *,
    max_attempts: int,
    base_delay: float,
    max_delay: float,
    should_retry: Callable[[BaseException], bool],
    jitter: float = 0.0,
) -> Retrying:
    """Builds the exponential-backoff policy shared by outbound clients."""
    wait = wait_exponential(multiplier=base_delay, min=base_delay, max=max_delay)
    if jitter:
        wait = wait + wait_random(0, jitter)
    return Retrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait,
        retry=retry_if_exception(should_retry),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
