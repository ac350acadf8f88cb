"""
Randomized retry delays.

Spreads the retries of many concurrently failing records over a short window
so the store is not hit by all of them in the same instant.
"""

import random
from typing import Optional, Sequence, Union

from vault_import.config import RetryConfig


class BackoffScheduler:
    """
    Uniform random delay in ``[0, max_delay]`` for a retry round.

    ``max_delay`` is either a single bound or one bound per round; rounds past
    the end of the sequence reuse its last entry.

    Example:
        >>> backoff = BackoffScheduler(max_delay=3.0)
        >>> 0 <= backoff.delay(1) <= 3.0
        True
    """

    def __init__(
        self,
        max_delay: Union[float, Sequence[float]] = RetryConfig.BACKOFF_MAX_SECONDS,
        rng: Optional[random.Random] = None,
    ):
        bounds = [max_delay] if isinstance(max_delay, (int, float)) else list(max_delay)
        if not bounds or any(b < 0 for b in bounds):
            raise ValueError("Backoff bounds must be a non-empty set of non-negative numbers")

        self._bounds = [float(b) for b in bounds]
        self._rng = rng or random.Random()

    def max_for_round(self, round_number: int) -> float:
        """Upper bound of the delay applied after ``round_number`` fails."""
        if round_number < 1:
            raise ValueError(f"Round numbers start at 1, got {round_number}")
        return self._bounds[min(round_number, len(self._bounds)) - 1]

    def delay(self, round_number: int) -> float:
        """Seconds to wait before resubmitting a record that failed in ``round_number``."""
        return self._rng.uniform(0, self.max_for_round(round_number))

    def __repr__(self) -> str:
        return f"BackoffScheduler(bounds={self._bounds})"
