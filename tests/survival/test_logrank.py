"""Tests for logrank_test."""

import numpy as np
import pytest

from pysurvplan import ValidationError
from pysurvplan.survival import logrank_test


class TestLogrank:
    """Two-sample log-rank test."""

    def test_reference_case(self):
        """Worked example with one censored treatment subject."""
        r = logrank_test(
            [12, 18, 22, 28, 32], [1, 1, 1, 1, 1],
            [10, 15, 20, 25, 30], [1, 1, 0, 1, 1],
        )
        assert r.statistic == pytest.approx(0.0793, abs=1e-4)
        assert r.p_value == pytest.approx(0.778, abs=1e-3)
        assert r.observed == 4
        # 10, 12, 15, 18, 22, 25, 28, 30, 32 (20 is censored)
        assert r.n_event_times == 9

    def test_identical_arms(self):
        """Identical arms give chi2 = 0 and p = 1."""
        times = [3, 5, 5, 9, 12]
        events = [1, 1, 0, 1, 0]
        r = logrank_test(times, events, times, events)
        assert r.statistic == pytest.approx(0.0, abs=1e-12)
        assert r.p_value == pytest.approx(1.0)

    def test_empty_arms(self):
        """Empty input gives the null result."""
        r = logrank_test([], [], [], [])
        assert r.statistic == 0.0
        assert r.p_value == 1.0

    def test_no_events(self):
        """No events in either arm gives the null result."""
        r = logrank_test([1, 2, 3], [0, 0, 0], [4, 5], [0, 0])
        assert r.statistic == 0.0
        assert r.p_value == 1.0

    def test_one_arm_empty(self):
        """One empty arm has zero variance and p = 1."""
        r = logrank_test([1, 2, 3], [1, 1, 1], [], [])
        assert r.p_value == 1.0

    def test_symmetric_in_arms(self):
        """Swapping the arms leaves chi2 unchanged."""
        a = ([2, 4, 6, 8, 10], [1, 1, 0, 1, 1])
        b = ([1, 3, 3, 7], [1, 1, 1, 0])
        r1 = logrank_test(*a, *b)
        r2 = logrank_test(*b, *a)
        assert r1.statistic == pytest.approx(r2.statistic)
        assert r1.p_value == pytest.approx(r2.p_value)

    def test_strong_separation(self):
        """Very different hazards give a tiny p-value."""
        rng = np.random.default_rng(1)
        control = rng.exponential(5.0, size=200)
        treat = rng.exponential(20.0, size=200)
        r = logrank_test(control, np.ones(200), treat, np.ones(200))
        assert r.p_value < 1e-6

    def test_p_value_in_range(self):
        """p-value stays within [0, 1] on random data."""
        rng = np.random.default_rng(2)
        for _ in range(10):
            r = logrank_test(
                rng.exponential(1.0, 30), rng.integers(0, 2, 30),
                rng.exponential(1.0, 25), rng.integers(0, 2, 25),
            )
            assert 0.0 <= r.p_value <= 1.0

    def test_length_mismatch(self):
        """Mismatched time and event arrays are rejected."""
        with pytest.raises(ValidationError, match="same length"):
            logrank_test([1, 2], [1], [1], [1])

    def test_summary(self):
        """Summary text reports the chi-square statistic."""
        r = logrank_test([1, 2, 3], [1, 1, 1], [2, 4, 6], [1, 0, 1])
        assert "Chi-square" in r.summary()
