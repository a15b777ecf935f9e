"""Tests for power_logrank."""

import pytest

from pysurvplan import ValidationError
from pysurvplan.power import SchoenfeldParameters, power_logrank, schoenfeld_derived


class TestPowerLogrank:
    """Tests for log-rank power calculation."""

    def test_solve_n(self):
        """Solve for n with the Schoenfeld formula."""
        r = power_logrank(hr=0.7, alpha=0.05, power=0.80)
        assert isinstance(r.n, int)
        assert r.n == 247

    def test_matches_event_count(self):
        """Without censoring n equals the Schoenfeld event count."""
        d = schoenfeld_derived(SchoenfeldParameters(alpha=0.05, beta=0.8, hazard_ratio=0.6))
        r = power_logrank(hr=0.6, alpha=0.05, power=0.80)
        assert abs(r.n - d.event_count) <= 1

    def test_solve_power(self):
        """Solve for power given n and hr."""
        r = power_logrank(n=200, hr=0.7, alpha=0.05)
        assert 0.0 < r.power < 1.0

    def test_solve_hr(self):
        """Solve for hr given n and power."""
        r = power_logrank(n=200, alpha=0.05, power=0.80)
        assert 0.0 < r.hazard_ratio < 1.0  # HR < 1 by convention

    def test_roundtrip(self):
        """Solve n, then verify power >= target."""
        r1 = power_logrank(hr=0.7, alpha=0.05, power=0.80)
        r2 = power_logrank(n=r1.n, hr=0.7, alpha=0.05)
        assert r2.power >= 0.80

    def test_censoring_increases_n(self):
        """Censoring (p_event < 1) increases required n."""
        r_full = power_logrank(hr=0.7, alpha=0.05, power=0.80, p_event=1.0)
        r_cens = power_logrank(hr=0.7, alpha=0.05, power=0.80, p_event=0.5)
        assert r_cens.n > r_full.n
        assert r_cens.events == pytest.approx(r_cens.n * 0.5)

    def test_unequal_allocation(self):
        """Unequal allocation increases required n."""
        r_equal = power_logrank(hr=0.7, alpha=0.05, power=0.80)
        r_unequal = power_logrank(hr=0.7, alpha=0.05, power=0.80, group1_proportion=1 / 3)
        assert r_unequal.n > r_equal.n

    def test_one_sided(self):
        """One-sided test requires fewer subjects."""
        r_two = power_logrank(hr=0.7, alpha=0.05, power=0.80, alternative="two.sided")
        r_one = power_logrank(hr=0.7, alpha=0.05, power=0.80, alternative="one.sided")
        assert r_one.n < r_two.n

    def test_hr_equals_1_error(self):
        """HR = 1 should raise."""
        with pytest.raises(ValidationError, match="hr must be != 1"):
            power_logrank(hr=1.0, alpha=0.05, power=0.80)

    def test_exactly_one_none(self):
        """Exactly one parameter must be None."""
        with pytest.raises(ValueError, match="Exactly one"):
            power_logrank(n=100, hr=0.7, alpha=0.05, power=0.8)

    def test_invalid_alternative(self):
        """Unknown alternative should raise."""
        with pytest.raises(ValidationError, match="alternative"):
            power_logrank(hr=0.7, power=0.8, alternative="greater")

    def test_invalid_p_event(self):
        """p_event outside (0, 1] should raise."""
        with pytest.raises(ValidationError, match="p_event"):
            power_logrank(hr=0.7, power=0.8, p_event=0.0)

    def test_summary(self):
        """Summary reports the method and n."""
        text = power_logrank(hr=0.7, alpha=0.05, power=0.80).summary()
        assert "Schoenfeld" in text
        assert "n = 247" in text
