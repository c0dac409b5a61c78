"""
Quota circuit breaker.

States:
- CLOSED: calls flow; consecutive quota failures are counted
- OPEN: calls are refused until ``reset_timeout`` has elapsed
- HALF_OPEN: one trial call is admitted; success closes, failure re-opens

Only quota failures trip the breaker. Transient errors are the retry
loop's concern.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Small state machine guarding the Places API against quota storms."""

    def __init__(
        self,
        failure_threshold: int = 3,
        reset_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at: Optional[float] = None

    @property
    def state(self) -> CircuitState:
        if (
            self._state == CircuitState.OPEN
            and self._opened_at is not None
            and self._clock() - self._opened_at >= self.reset_timeout
        ):
            self._transition(CircuitState.HALF_OPEN)
        return self._state

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def allow_request(self) -> bool:
        """Whether a call may be issued now."""
        return self.state != CircuitState.OPEN

    def record_success(self) -> None:
        self._consecutive_failures = 0
        if self._state != CircuitState.CLOSED:
            self._transition(CircuitState.CLOSED)
            self._opened_at = None

    def record_quota_failure(self) -> None:
        self._consecutive_failures += 1
        if self.state == CircuitState.HALF_OPEN or (
            self._consecutive_failures >= self.failure_threshold
        ):
            self._opened_at = self._clock()
            if self._state != CircuitState.OPEN:
                self._transition(CircuitState.OPEN)

    def reset(self) -> None:
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at = None

    def _transition(self, new_state: CircuitState) -> None:
        logger.warning("Quota circuit %s -> %s", self._state.value, new_state.value)
        self._state = new_state

    def to_dict(self) -> Dict[str, object]:
        return {
            "state": self.state.value,
            "consecutive_failures": self._consecutive_failures,
            "failure_threshold": self.failure_threshold,
        }
