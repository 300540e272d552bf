"""Circuit breaker for a single upstream data source."""

import logging
import os
import threading
import time
from collections.abc import Callable
from typing import Any

from market_mcp.models import CircuitState

logger = logging.getLogger(__name__)

FAILURE_THRESHOLD = int(os.environ.get("CIRCUIT_FAILURE_THRESHOLD", "3"))
SUCCESS_THRESHOLD = int(os.environ.get("CIRCUIT_SUCCESS_THRESHOLD", "2"))
RESET_SECONDS = float(os.environ.get("CIRCUIT_RESET_SECONDS", "30"))


class CircuitBreaker:
    """
    CLOSED -> OPEN after `failure_threshold` consecutive failures.
    OPEN -> HALF_OPEN once `reset_seconds` have passed since the last failure.
    HALF_OPEN admits one trial call at a time; `success_threshold` consecutive
    successes close the circuit, any failure reopens it.

    Counters are updated under a lock so the breaker may be shared by threads.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = FAILURE_THRESHOLD,
        success_threshold: int = SUCCESS_THRESHOLD,
        reset_seconds: float = RESET_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.success_threshold = success_threshold
        self.reset_seconds = reset_seconds
        self._clock = clock
        self._lock = threading.Lock()

        self.state = CircuitState.CLOSED
        self.failures = 0
        self.successes = 0
        self.last_failure_time: float | None = None
        self._trial_in_flight = False

    def allow_request(self) -> bool:
        """Return True if a call may go upstream now."""
        with self._lock:
            if self.state is CircuitState.CLOSED:
                return True

            if self.state is CircuitState.OPEN:
                elapsed = self._clock() - (self.last_failure_time or 0.0)
                if elapsed < self.reset_seconds:
                    return False
                logger.info(f"Circuit {self.name}: OPEN -> HALF_OPEN after {elapsed:.1f}s")
                self.state = CircuitState.HALF_OPEN
                self.successes = 0

            if self._trial_in_flight:
                return False
            self._trial_in_flight = True
            return True

    def record_success(self) -> None:
        with self._lock:
            self.failures = 0
            if self.state is CircuitState.HALF_OPEN:
                self._trial_in_flight = False
                self.successes += 1
                if self.successes >= self.success_threshold:
                    logger.info(f"Circuit {self.name}: HALF_OPEN -> CLOSED (recovered)")
                    self.state = CircuitState.CLOSED
                    self.successes = 0

    def record_failure(self) -> None:
        with self._lock:
            self.failures += 1
            self.successes = 0
            self.last_failure_time = self._clock()

            if self.state is CircuitState.HALF_OPEN:
                self._trial_in_flight = False
                logger.warning(f"Circuit {self.name}: trial call failed, reopening")
                self.state = CircuitState.OPEN
            elif self.state is CircuitState.CLOSED and self.failures >= self.failure_threshold:
                logger.warning(
                    f"Circuit {self.name}: OPEN after {self.failures} consecutive failures"
                )
                self.state = CircuitState.OPEN

    def release(self) -> None:
        """Give back a HALF_OPEN trial slot without recording an outcome."""
        with self._lock:
            self._trial_in_flight = False

    def reset(self) -> None:
        with self._lock:
            self.state = CircuitState.CLOSED
            self.failures = 0
            self.successes = 0
            self.last_failure_time = None
            self._trial_in_flight = False

    def get_status(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "failures": self.failures,
            "successes": self.successes,
            "last_failure_time": self.last_failure_time,
        }
