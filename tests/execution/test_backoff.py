"""Tests for the exponential backoff schedule."""

import random

import pytest

from resilient_fetch.execution.backoff import BackoffSchedule


class TestBaseDelay:
    """Tests for the deterministic part of the delay."""

    def test_default_configuration(self):
        """Defaults: 1000ms initial delay, 1000ms jitter ceiling."""
        schedule = BackoffSchedule()
        assert schedule.initial_delay_ms == 1000.0
        assert schedule.jitter_ms == 1000.0

    def test_doubles_per_attempt(self):
        """Base delay is initial * 2^(n-1)."""
        schedule = BackoffSchedule(initial_delay_ms=1000)
        assert schedule.base_delay_ms(1) == 1000.0
        assert schedule.base_delay_ms(2) == 2000.0
        assert schedule.base_delay_ms(3) == 4000.0
        assert schedule.base_delay_ms(4) == 8000.0

    def test_zero_initial_delay(self):
        """A zero initial delay leaves only jitter."""
        schedule = BackoffSchedule(initial_delay_ms=0, jitter_ms=0)
        assert schedule.next_delay_ms(5) == 0.0

    def test_attempt_is_one_based(self):
        """Attempt 0 is rejected."""
        with pytest.raises(ValueError, match="1-based"):
            BackoffSchedule().base_delay_ms(0)

    def test_negative_values_rejected(self):
        """Negative delay or jitter is rejected at construction."""
        with pytest.raises(ValueError):
            BackoffSchedule(initial_delay_ms=-1)
        with pytest.raises(ValueError):
            BackoffSchedule(jitter_ms=-1)


class TestJitter:
    """Tests for the random jitter term."""

    def test_no_jitter_is_exact(self):
        """jitter_ms=0 yields the base delay exactly."""
        schedule = BackoffSchedule(initial_delay_ms=250, jitter_ms=0)
        assert [schedule.next_delay_ms(n) for n in (1, 2, 3)] == [250.0, 500.0, 1000.0]

    def test_delay_within_window(self, seeded_rng):
        """Every delay falls in [base, base + jitter)."""
        schedule = BackoffSchedule(initial_delay_ms=1000, rng=seeded_rng)
        for attempt in range(1, 6):
            low, high = schedule.window(attempt)
            for _ in range(50):
                delay = schedule.next_delay_ms(attempt)
                assert low <= delay < high

    def test_jitter_varies(self, seeded_rng):
        """Jitter decorrelates consecutive draws."""
        schedule = BackoffSchedule(rng=seeded_rng)
        delays = {round(schedule.next_delay_ms(1), 3) for _ in range(10)}
        assert len(delays) > 1

    def test_upper_bound_is_exclusive(self):
        """A draw equal to the ceiling is pulled just below it."""

        class MaxRandom(random.Random):
            def uniform(self, a, b):
                return b

        schedule = BackoffSchedule(initial_delay_ms=1000, jitter_ms=1000, rng=MaxRandom())
        assert schedule.next_delay_ms(1) < 2000.0
        assert schedule.next_delay_ms(1) > 1999.0

    def test_seconds_conversion(self):
        """next_delay returns seconds."""
        schedule = BackoffSchedule(initial_delay_ms=1500, jitter_ms=0)
        assert schedule.next_delay(1) == 1.5


class TestWindows:
    """Tests for schedule inspection."""

    def test_windows_cover_every_wait(self):
        """A 3-attempt call waits twice."""
        schedule = BackoffSchedule(initial_delay_ms=1000, jitter_ms=1000)
        assert schedule.windows(3) == [(1, 1000.0, 2000.0), (2, 2000.0, 3000.0)]

    def test_single_attempt_has_no_windows(self):
        """max_attempts=1 never waits."""
        assert BackoffSchedule().windows(1) == []
