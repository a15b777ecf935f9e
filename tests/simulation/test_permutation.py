"""Tests for the exponential likelihood-ratio permutation test."""

import numpy as np
import pytest

from pysurvplan import ValidationError
from pysurvplan.simulation import (
    likelihood_ratio,
    permutation_test_p_value,
    random_permutation,
    samples_to_lambda,
)


class TestSamplesToLambda:
    """Exponential MLE rate."""

    def test_events_over_exposure(self):
        """Rate is events over total time."""
        assert samples_to_lambda(np.array([2.0, 3.0, 5.0]), np.array([1, 0, 1])) == 0.2

    def test_no_events(self):
        """No events gives a zero rate."""
        assert samples_to_lambda(np.array([2.0, 3.0]), np.array([0, 0])) == 0.0

    def test_negative_time(self):
        """Negative times are rejected."""
        with pytest.raises(ValidationError, match="No event times can be less than 0"):
            samples_to_lambda(np.array([1.0, -0.5]), np.array([1, 1]))

    def test_zero_total_time(self):
        """Zero total exposure is rejected."""
        with pytest.raises(ValidationError, match="Total time is 0"):
            samples_to_lambda(np.array([0.0, 0.0]), np.array([1, 0]))


class TestLikelihoodRatio:
    """Two-rate vs pooled-rate statistic."""

    def test_equal_rates_near_zero(self):
        """Equal arms give a statistic of zero."""
        t = np.array([1.0, 2.0, 3.0, 4.0])
        e = np.array([1, 0, 1, 1])
        assert likelihood_ratio(t, e, t, e) == pytest.approx(0.0, abs=1e-10)

    def test_non_negative(self):
        """Statistic is non-negative on random data."""
        rng = np.random.default_rng(0)
        for _ in range(20):
            stat = likelihood_ratio(
                rng.exponential(5, 20), rng.integers(0, 2, 20),
                rng.exponential(8, 15), rng.integers(0, 2, 15),
            )
            assert stat >= -1e-9

    def test_hand_computed(self):
        """Statistic matches the closed-form log-likelihoods."""
        # arm a: 2 events / 10, arm b: 4 events / 10, pooled 6 / 20
        a_t, a_e = np.array([4.0, 6.0]), np.array([1, 1])
        b_t, b_e = np.array([2.5, 2.5, 2.5, 2.5]), np.array([1, 1, 1, 1])
        expected = 2 * (
            (2 * np.log(0.2) - 2) + (4 * np.log(0.4) - 4) - (6 * np.log(0.3) - 6)
        )
        assert likelihood_ratio(a_t, a_e, b_t, b_e) == pytest.approx(expected)

    def test_arm_without_events_uses_floor_rate(self):
        """Zero-event arm is evaluated at the floor rate."""
        stat = likelihood_ratio(
            np.array([5.0, 5.0]), np.array([0, 0]),
            np.array([1.0, 1.0]), np.array([1, 1]),
        )
        assert np.isfinite(stat)
        assert stat > 0


class TestPermutation:
    """Permutation null distribution."""

    def test_random_permutation_preserves_sizes_and_pairs(self):
        """Shuffle keeps arm sizes and time/event pairs."""
        a_t, a_e = np.array([1.0, 2.0, 3.0]), np.array([1, 0, 1])
        b_t, b_e = np.array([10.0, 20.0]), np.array([0, 1])
        pa_t, pa_e, pb_t, pb_e = random_permutation(a_t, a_e, b_t, b_e, np.random.default_rng(0))
        assert pa_t.shape == (3,) and pb_t.shape == (2,)
        pooled = dict(zip(np.concatenate([a_t, b_t]), np.concatenate([a_e, b_e])))
        for t, e in zip(np.concatenate([pa_t, pb_t]), np.concatenate([pa_e, pb_e])):
            assert pooled[t] == e
        np.testing.assert_array_equal(
            np.sort(np.concatenate([pa_t, pb_t])), [1.0, 2.0, 3.0, 10.0, 20.0]
        )

    def test_p_value_in_unit_interval(self):
        """p-value lies in [0, 1]."""
        rng = np.random.default_rng(1)
        p = permutation_test_p_value(
            rng.exponential(5, 30), np.ones(30), rng.exponential(5, 30), np.ones(30),
            100, np.random.default_rng(2),
        )
        assert 0.0 <= p <= 1.0

    def test_identical_arms_large_p(self):
        """Identical arms give a large p-value."""
        t = np.array([1.0, 3.0, 4.0, 7.0, 9.0, 12.0])
        e = np.array([1, 1, 0, 1, 1, 0])
        p = permutation_test_p_value(t, e, t, e, 200, np.random.default_rng(3))
        assert p > 0.5

    def test_separated_arms_small_p(self):
        """Well separated arms give a small p-value."""
        rng = np.random.default_rng(4)
        p = permutation_test_p_value(
            rng.exponential(2, 60), np.ones(60), rng.exponential(20, 60), np.ones(60),
            200, np.random.default_rng(5),
        )
        assert p < 0.01

    def test_reproducible(self):
        """Same generator state gives the same p-value."""
        t1, t2 = np.linspace(1, 10, 12), np.linspace(2, 14, 12)
        e = np.ones(12)
        p1 = permutation_test_p_value(t1, e, t2, e, 50, np.random.default_rng(6))
        p2 = permutation_test_p_value(t1, e, t2, e, 50, np.random.default_rng(6))
        assert p1 == p2

    def test_count_must_be_positive(self):
        """permutation_count must be at least 1."""
        with pytest.raises(ValidationError, match="permutation_count"):
            permutation_test_p_value(
                np.ones(3), np.ones(3), np.ones(3), np.ones(3), 0, np.random.default_rng(0),
            )
