"""Circuit breaker guarding background refreshes of the collection index."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


def _epoch_ms() -> float:
    return time.time() * 1000


@dataclass
class _CircuitState:
    failures: int = 0
    last_failure_at: float = 0.0


class CircuitBreaker:
    """
    Consecutive-failure breaker with time-based recovery.

    Open means `failures >= threshold` and the last failure is younger than
    the cool-down. There is no stored "open" flag: once the cool-down has
    elapsed the breaker reads as closed again, without a probe, and the
    failure count is left as is until the next reset.
    """

    def __init__(
        self,
        *,
        failures_threshold: int = 5,
        cooldown_ms: float = 5 * 60 * 1000,
        time_fn: Callable[[], float] = _epoch_ms,
    ) -> None:
        self._failures_threshold = max(1, int(failures_threshold))
        self._cooldown_ms = max(0.0, float(cooldown_ms))
        self._time_fn = time_fn
        self._state = _CircuitState()

    @property
    def failure_count(self) -> int:
        return self._state.failures

    @property
    def last_failure_at(self) -> float:
        return self._state.last_failure_at

    def is_open(self) -> bool:
        """Return True while calls should be suppressed."""
        if self._state.failures < self._failures_threshold:
            return False
        elapsed = self._time_fn() - self._state.last_failure_at
        return elapsed < self._cooldown_ms

    def record_failure(self) -> None:
        self._state.failures += 1
        self._state.last_failure_at = self._time_fn()

        if self._state.failures >= self._failures_threshold:
            logger.warning(
                "Circuit breaker opened due to repeated failures failures=%d cooldown_ms=%d",
                self._state.failures,
                self._cooldown_ms,
            )

    def reset(self) -> None:
        self._state.failures = 0

