"""Tests for get_percentiles and the simulation result types."""

import numpy as np
import pytest

from pysurvplan import ValidationError
from pysurvplan.simulation import SimulationResult, SimulationSummary, get_percentiles


class TestGetPercentiles:
    """Linear interpolation between order statistics."""

    def test_known_values(self):
        """Rank p/100 * (n - 1) gives 1.9, 5.5 and 9.1 for 1..10."""
        result = get_percentiles(np.arange(1, 11, dtype=float), [10, 50, 90])
        np.testing.assert_allclose(result, [1.9, 5.5, 9.1], atol=1e-6)

    def test_unsorted_input(self):
        """Order of the input does not matter."""
        data = np.array([7, 3, 10, 1, 5, 9, 2, 8, 4, 6], dtype=float)
        np.testing.assert_allclose(get_percentiles(data, [10, 50]), [1.9, 5.5])

    def test_extremes(self):
        """0th and 100th percentiles are the extremes."""
        np.testing.assert_allclose(get_percentiles([4.0, 2.0, 9.0], [0, 100]), [2.0, 9.0])

    def test_exact_rank(self):
        """Integer rank returns the order statistic itself."""
        # rank 0.5 * 4 = 2
        assert get_percentiles([1, 2, 3, 4, 5], [50])[0] == 3.0

    def test_single_value(self):
        """A single value is every percentile."""
        np.testing.assert_allclose(get_percentiles([0.3], [2.5, 97.5]), [0.3, 0.3])

    def test_empty_data_is_nan(self):
        """Empty data gives nan for each percentile."""
        result = get_percentiles([], [80, 90])
        assert result.shape == (2,)
        assert np.all(np.isnan(result))

    def test_does_not_mutate_input(self):
        """Input array is left unsorted."""
        data = np.array([3.0, 1.0, 2.0])
        get_percentiles(data, [50])
        np.testing.assert_array_equal(data, [3.0, 1.0, 2.0])

    @pytest.mark.parametrize("bad", [[-1], [101], [50, 100.5]])
    def test_out_of_range(self, bad):
        """Percentiles outside [0, 100] are rejected."""
        with pytest.raises(ValidationError, match="between 0 and 100"):
            get_percentiles([1, 2, 3], bad)


class TestResultTypes:
    """SimulationResult and SimulationSummary."""

    def test_power(self):
        """Power is the share of p-values below alpha."""
        r = SimulationResult(
            sample_size=100,
            control_hazard_dist=np.full(4, 0.05),
            treat_hazard_dist=np.full(4, 0.03),
            p_value_dist=np.array([0.01, 0.2, 0.04, 0.5]),
        )
        assert r.n_replicates == 4
        assert r.power(0.05) == 0.5

    def test_summary_to_dict(self):
        """Payload uses the presentation key names."""
        s = SimulationSummary(
            sample_size=120,
            base_interval=(0.04, 0.06),
            treat_interval=(0.02, 0.04),
            pvalue_interval=(0.03, 0.08),
            rmst_pvalue_interval=(0.05, 0.1),
        )
        payload = s.to_dict()
        assert payload == {
            "sampleSize": 120,
            "baseInterval": [0.04, 0.06],
            "treatInterval": [0.02, 0.04],
            "pvalueInterval": [0.03, 0.08],
            "rmstPvalueInterval": [0.05, 0.1],
        }

    def test_summary_without_rmst(self):
        """RMST interval is omitted when not computed."""
        s = SimulationSummary(120, (0.04, 0.06), (0.02, 0.04), (0.03, 0.08))
        assert "rmstPvalueInterval" not in s.to_dict()
        assert "RMST" not in s.summary()
