"""Tests for sample_km."""

import numpy as np
import pytest

from pysurvplan import ValidationError
from pysurvplan.simulation import sample_km
from pysurvplan.simulation import _sampling
from pysurvplan.survival import KaplanMeierCurve, evaluate_exponential, kaplan_meier


@pytest.fixture
def km_curve():
    return KaplanMeierCurve(
        time=[0, 10, 20, 30, 40, 50],
        probability=[1.0, 0.8, 0.6, 0.4, 0.2, 0.0],
    )


class _FixedDraws:
    """Stands in for a Generator so exact uniform values can be fed in."""

    def __init__(self, values):
        self.values = np.asarray(values, dtype=float)

    def random(self, count):
        return self.values[:count]


@pytest.fixture
def fixed_draws(monkeypatch):
    def _install(values):
        monkeypatch.setattr(
            _sampling.np.random, "default_rng", lambda seed=None: _FixedDraws(values)
        )
    return _install


# ---------------------------------------------------------------------------
# Basic behaviour
# ---------------------------------------------------------------------------

class TestSampleKM:
    """Shapes, seeding and bounds."""

    def test_shapes_and_dtypes(self, km_curve):
        """Outputs have the requested length and dtypes."""
        events, times = sample_km(km_curve, 100)
        assert events.shape == (100,) and times.shape == (100,)
        assert events.dtype == np.uint8
        assert times.dtype == np.float64

    def test_same_seed_identical(self, km_curve):
        """Same seed gives identical draws."""
        e1, t1 = sample_km(km_curve, 50, seed=42)
        e2, t2 = sample_km(km_curve, 50, seed=42)
        np.testing.assert_array_equal(e1, e2)
        np.testing.assert_array_equal(t1, t2)

    def test_different_seeds_differ(self, km_curve):
        """Different seeds give different draws."""
        for seed in range(20):
            _, t1 = sample_km(km_curve, 50, seed=seed)
            _, t2 = sample_km(km_curve, 50, seed=seed + 1000)
            assert not np.array_equal(t1, t2)

    def test_times_within_curve_range(self, km_curve):
        """Times stay within the curve's range."""
        events, times = sample_km(km_curve, 1000)
        assert set(np.unique(events)) <= {0, 1}
        assert times.min() >= 0 and times.max() <= 50

    def test_all_survive(self):
        """Curve flat at 1 censors everyone."""
        curve = KaplanMeierCurve(time=[0, 10, 20], probability=[1.0, 1.0, 1.0])
        events, times = sample_km(curve, 10)
        assert np.all(events == 0)
        assert np.all(times == 20)

    def test_all_immediate_events(self):
        """Curve at 0 gives an event for everyone."""
        curve = KaplanMeierCurve(time=[0, 10, 20], probability=[0.0, 0.0, 0.0])
        events, times = sample_km(curve, 10)
        assert np.all(events == 1)
        assert np.all(times == 0)

    def test_zero_count(self, km_curve):
        """Zero count gives empty arrays."""
        events, times = sample_km(km_curve, 0)
        assert events.size == 0 and times.size == 0

    def test_empty_curve(self):
        """Empty curve is rejected."""
        with pytest.raises(ValidationError, match="empty curve"):
            sample_km(KaplanMeierCurve(time=[], probability=[]), 5)

    def test_negative_count(self, km_curve):
        """Negative count is rejected."""
        with pytest.raises(ValidationError, match="count"):
            sample_km(km_curve, -1)


# ---------------------------------------------------------------------------
# Boundaries
# ---------------------------------------------------------------------------

class TestSampleKMBoundaries:
    """Exact uniform draws against curve probabilities."""

    def test_draw_equal_to_curve_value(self, km_curve, fixed_draws):
        """x == S(t_i) is an event at exactly t_i."""
        fixed_draws([0.6, 0.8])
        events, times = sample_km(km_curve, 2)
        np.testing.assert_array_equal(events, [1, 1])
        np.testing.assert_allclose(times, [20.0, 10.0])

    def test_draw_equal_to_last_value_is_censored(self, km_curve, fixed_draws):
        """Draw equal to the last probability is censored."""
        fixed_draws([0.0])
        events, times = sample_km(km_curve, 1)
        assert events[0] == 0 and times[0] == 50.0

    def test_draw_below_minimum_is_censored(self, fixed_draws):
        """Draws at or below the last probability are censored at the last time."""
        curve = KaplanMeierCurve(time=[0, 10, 20], probability=[1.0, 0.7, 0.4])
        fixed_draws([0.1, 0.39])
        events, times = sample_km(curve, 2)
        np.testing.assert_array_equal(events, [0, 0])
        np.testing.assert_array_equal(times, [20.0, 20.0])

    def test_draw_above_first_value(self, fixed_draws):
        """Draw above the first probability is an event at the first time."""
        curve = KaplanMeierCurve(time=[5, 10], probability=[0.8, 0.5])
        fixed_draws([0.95])
        events, times = sample_km(curve, 1)
        assert events[0] == 1 and times[0] == 5.0

    def test_first_bracket_is_interpolated(self, km_curve, fixed_draws):
        """First bracket is interpolated, not snapped."""
        fixed_draws([0.9])
        events, times = sample_km(km_curve, 1)
        assert events[0] == 1
        assert times[0] == pytest.approx(5.0)

    def test_interpolation_direction(self, km_curve, fixed_draws):
        """A draw near S(t_{i-1}) lands near t_{i-1}."""
        fixed_draws([0.05, 0.19])
        _, times = sample_km(km_curve, 2)
        np.testing.assert_allclose(times, [47.5, 40.5])


class TestSampleKMFidelity:
    """Refitting a large sample reproduces the source curve."""

    def test_median_recovered(self):
        """KM of the draws recovers the source median."""
        lam = 0.1
        grid = np.linspace(0, 80, 1601)
        reference = KaplanMeierCurve(time=grid, probability=evaluate_exponential(grid, lam))
        events, times = sample_km(reference, 4000, seed=11)
        refit = kaplan_meier(times, events)
        assert refit.median() == pytest.approx(reference.median(), rel=0.10)
