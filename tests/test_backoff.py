"""
Unit tests for the backoff scheduler.
"""

import random

import pytest

from vault_import.engine.backoff import BackoffScheduler


class TestBackoffScheduler:
    """Test BackoffScheduler delays."""

    def test_delay_within_bound(self):
        """Test delays stay in [0, max]."""
        backoff = BackoffScheduler(max_delay=3.0, rng=random.Random(42))

        delays = [backoff.delay(round_number) for round_number in (1, 2, 3) for _ in range(50)]

        assert all(0.0 <= d <= 3.0 for d in delays)
        assert len(set(delays)) > 1  # randomized, not constant

    def test_per_round_bounds(self):
        """Test a sequence of bounds applies per round and reuses the last."""
        backoff = BackoffScheduler(max_delay=[1.0, 30.0])

        assert backoff.max_for_round(1) == 1.0
        assert backoff.max_for_round(2) == 30.0
        assert backoff.max_for_round(3) == 30.0

        for _ in range(20):
            assert backoff.delay(1) <= 1.0

    def test_zero_bound_gives_no_delay(self):
        """Test a zero bound disables waiting."""
        backoff = BackoffScheduler(max_delay=0.0)
        assert backoff.delay(1) == 0.0

    def test_seeded_rng_is_deterministic(self):
        """Test the random source is injectable."""
        first = BackoffScheduler(3.0, rng=random.Random(7))
        second = BackoffScheduler(3.0, rng=random.Random(7))

        assert [first.delay(1) for _ in range(5)] == [second.delay(1) for _ in range(5)]

    def test_round_numbers_start_at_one(self):
        """Test round 0 is rejected."""
        backoff = BackoffScheduler(3.0)
        with pytest.raises(ValueError):
            backoff.delay(0)

    @pytest.mark.parametrize("bounds", [-1.0, [], [1.0, -0.5]])
    def test_invalid_bounds(self, bounds):
        """Test negative or empty bounds are rejected."""
        with pytest.raises(ValueError):
            BackoffScheduler(bounds)
