from __future__ import annotations
import random


def calc_next_delay(attempts: int, base_seconds: int = 60, max_seconds: int = 1800) -> int:
    """
    Queue retry gate: first failure -> base, then doubles until max_seconds.
    attempts: attempts made so far (including the one that just failed)
    """
    attempts = max(1, attempts)
    delay = base_seconds * (2 ** (attempts - 1))
    return min(max_seconds, delay)


def http_retry_delay(attempt: int, cap: float = 60.0, jitter_ratio: float = 0.25) -> float:
    """HTTP retry sleep: 2**attempt seconds (capped) plus up to jitter_ratio of it at random."""
    base = min(2 ** attempt, cap)
    return base + random.uniform(0, jitter_ratio * base)
