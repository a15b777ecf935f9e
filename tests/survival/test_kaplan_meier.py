"""Tests for kaplan_meier and KaplanMeierCurve."""

import numpy as np
import pytest

from pysurvplan import ValidationError
from pysurvplan.survival import KaplanMeierCurve, kaplan_meier


class TestKaplanMeier:
    """Product-limit estimation."""

    def test_known_case(self):
        """Textbook example with tied event and censoring times."""
        km = kaplan_meier([6, 6, 6, 7, 10], [1, 0, 1, 1, 0])
        np.testing.assert_array_equal(km.time, [0, 6, 7])
        np.testing.assert_allclose(km.probability, [1.0, 0.6, 0.3])
        np.testing.assert_array_equal(km.events_at_time, [0, 2, 1])
        np.testing.assert_array_equal(km.at_risk_at_time, [0, 5, 2])

    def test_starts_at_one_and_non_increasing(self):
        """Random samples always give a curve anchored at 1 and non-increasing."""
        rng = np.random.default_rng(7)
        for _ in range(20):
            n = rng.integers(1, 60)
            times = rng.exponential(10.0, size=n).round(1)
            events = rng.integers(0, 2, size=n)
            km = kaplan_meier(times, events)
            assert km.probability[0] == 1.0
            assert np.all(np.diff(km.probability) <= 0)

    def test_censor_only_times_are_not_steps(self):
        """Times with only censorings do not add steps."""
        km = kaplan_meier([1, 2, 3, 4], [0, 1, 0, 1])
        np.testing.assert_array_equal(km.time, [0, 2, 4])

    def test_ties_between_event_and_censoring(self):
        """Censored at t still counts as at risk at t."""
        km = kaplan_meier([5, 5, 8], [1, 0, 1])
        assert km.at_risk_at_time[1] == 3
        assert km.probability[1] == pytest.approx(2 / 3)

    def test_all_events_reach_zero(self):
        """Curve drops to 0 when every subject has an event."""
        km = kaplan_meier([1, 2, 3], [1, 1, 1])
        assert km.probability[-1] == 0.0

    def test_empty_input(self):
        """No observations gives the (0, 1) anchor only."""
        km = kaplan_meier([], [])
        np.testing.assert_array_equal(km.time, [0.0])
        np.testing.assert_array_equal(km.probability, [1.0])

    def test_no_events(self):
        """All-censored data gives a flat curve with no median."""
        km = kaplan_meier([3, 4, 5], [0, 0, 0])
        assert len(km) == 1
        assert km.median() is None

    def test_order_independent(self):
        """Input order does not change the estimate."""
        a = kaplan_meier([6, 6, 6, 7, 10], [1, 0, 1, 1, 0])
        b = kaplan_meier([10, 7, 6, 6, 6], [0, 1, 1, 0, 1])
        np.testing.assert_allclose(a.probability, b.probability)

    def test_interval_contains_estimate(self):
        """Greenwood band brackets the point estimate."""
        km = kaplan_meier([2, 3, 3, 5, 8, 9, 12], [1, 1, 0, 1, 1, 0, 1])
        assert km.interval.shape == (len(km), 2)
        assert np.all(km.interval[:, 0] <= km.probability + 1e-12)
        assert np.all(km.interval[:, 1] >= km.probability - 1e-12)
        assert np.all((km.interval >= 0) & (km.interval <= 1))

    def test_mismatched_lengths(self):
        """Times and events of different lengths are rejected."""
        with pytest.raises(ValidationError, match="same length"):
            kaplan_meier([1, 2, 3], [1, 0])

    def test_invalid_event_codes(self):
        """Event indicators other than 0 or 1 are rejected."""
        with pytest.raises(ValueError, match="only 0"):
            kaplan_meier([1, 2], [1, 2])


class TestKaplanMeierCurve:
    """Curve container behaviour."""

    def test_median(self):
        """Median is the first time with S(t) <= 0.5."""
        km = kaplan_meier([6, 6, 6, 7, 10], [1, 0, 1, 1, 0])
        assert km.median() == 7.0

    def test_dict_roundtrip_keeps_risk_table(self):
        """Dict payload round-trip keeps the risk table."""
        km = kaplan_meier([6, 6, 6, 7, 10], [1, 0, 1, 1, 0])
        back = KaplanMeierCurve.from_dict(km.to_dict())
        assert back.has_risk_table
        np.testing.assert_allclose(back.probability, km.probability)

    def test_with_probability_drops_risk_table(self):
        """Replacing probabilities discards the risk table."""
        km = kaplan_meier([1, 2, 3], [1, 1, 1])
        other = km.with_probability(np.ones(len(km)))
        assert not other.has_risk_table
        np.testing.assert_array_equal(other.time, km.time)

    def test_length_mismatch(self):
        """Time and probability arrays must match in length."""
        with pytest.raises(ValidationError, match="same length"):
            KaplanMeierCurve(time=[0, 1, 2], probability=[1.0, 0.5])

    def test_risk_table_length_mismatch(self):
        """Risk table arrays must match the time grid."""
        with pytest.raises(ValidationError, match="events_at_time"):
            KaplanMeierCurve(time=[0, 1], probability=[1.0, 0.5], events_at_time=[0])

    def test_summary(self):
        """Summary text names the estimator."""
        km = kaplan_meier([6, 6, 6, 7, 10], [1, 0, 1, 1, 0])
        text = km.summary()
        assert "Kaplan-Meier" in text
        assert "median" in text
