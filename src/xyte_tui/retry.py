# src/xyte_tui/retry.py

"""Retry policy for remote loads: bounded attempts, exponential backoff with jitter."""

from __future__ import annotations

import random
from dataclasses import dataclass

from xyte_tui.connectivity import ErrorClass


@dataclass(frozen=True)
class RetryPolicy:
    """How many times a remote load is attempted and how long to wait in between.

    Attributes:
        max_attempts: Total attempts including the first (default 3)
        base_delay_ms: Delay before the first retry (default 250)
        max_delay_ms: Upper bound on the exponential part (default 5000)
        jitter_ratio: Fraction of the delay added as random jitter (default 0.2)

    Example:
        policy = RetryPolicy(max_attempts=5)
        policy.delay_ms(2)  # ~500-600ms
    """

    max_attempts: int = 3
    base_delay_ms: int = 250
    max_delay_ms: int = 5000
    jitter_ratio: float = 0.2

    def delay_ms(self, attempt: int, *, rand: float | None = None) -> int:
        """Compute the wait after a failed attempt.

        Formula: min(max, base * 2^(attempt-1)) + exp * jitter_ratio * random()

        Args:
            attempt: The attempt that just failed (1 for the first attempt)
            rand: Random factor in [0, 1); drawn from random.random() when omitted

        Returns:
            Delay in whole milliseconds
        """
        exp_delay = min(self.max_delay_ms, self.base_delay_ms * 2 ** max(0, attempt - 1))
        if rand is None:
            rand = random.random()
        return round(exp_delay + exp_delay * self.jitter_ratio * rand)

    def has_budget(self, attempt: int) -> bool:
        """Whether another attempt may follow attempt number ``attempt``."""
        return attempt < self.max_attempts


DEFAULT_RETRY_POLICY = RetryPolicy()


def is_retryable_class(error_class: ErrorClass | None) -> bool:
    """Return True if failures of this class are worth another attempt."""
    if error_class is None:
        return False
    return error_class not in (ErrorClass.AUTH, ErrorClass.MISSING_KEY, ErrorClass.VALIDATION)
