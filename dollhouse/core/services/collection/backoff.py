"""Retry delay policy for collection index fetches."""

from __future__ import annotations

import random
from typing import Optional

JITTER_FACTOR = 0.25


def base_retry_delay(attempt: int, *, base_delay_ms: float, max_delay_ms: float) -> float:
    """Unjittered delay: base * 2^(attempt-1), capped at max_delay_ms. `attempt` is 1 for the first retry."""
    safe_attempt = max(1, int(attempt))
    exponential = float(base_delay_ms) * (2 ** (safe_attempt - 1))
    return min(exponential, float(max_delay_ms))


def add_jitter(
    delay_ms: float,
    *,
    jitter_factor: float = JITTER_FACTOR,
    rng: Optional[random.Random] = None,
) -> float:
    """Spread `delay_ms` by a uniform offset of delay * factor * (rand - 0.5), floored at zero."""
    randomizer = rng.random if rng is not None else random.random
    jitter = delay_ms * jitter_factor * (randomizer() - 0.5)
    return max(0.0, delay_ms + jitter)


def compute_retry_delay(
    attempt: int,
    *,
    base_delay_ms: float,
    max_delay_ms: float,
    jitter_factor: float = JITTER_FACTOR,
    rng: Optional[random.Random] = None,
) -> float:
    """Compute exponential backoff with jitter, in milliseconds."""
    capped = base_retry_delay(attempt, base_delay_ms=base_delay_ms, max_delay_ms=max_delay_ms)
    return add_jitter(capped, jitter_factor=jitter_factor, rng=rng)
