"""Closed-form power for the log-rank test (Schoenfeld approximation).

Validates against: R gsDesign::nSurv(), TrialSize
"""

from __future__ import annotations

import math

from scipy.stats import norm

from pysurvplan._exceptions import ValidationError
from pysurvplan.power._common import (
    _VALID_ALTERNATIVES,
    PowerResult,
    _check_power_args,
    _solve_parameter,
    z_alpha,
)


def _logrank_power(
    n: float,
    hr: float,
    alpha: float,
    alternative: str,
    p_event: float,
    group1_proportion: float,
) -> float:
    """Schoenfeld (1981) formula rearranged for power.

        d = n * p_event
        z_beta = sqrt(d * p1 * p2) * |log(HR)| - z_alpha
        power = Phi(z_beta)
    """
    p1 = group1_proportion
    p2 = 1.0 - p1
    d = n * p_event
    z_beta = math.sqrt(d * p1 * p2) * abs(math.log(hr)) - z_alpha(alpha, alternative)
    return float(norm.cdf(z_beta))


def power_logrank(
    n: int | None = None,
    hr: float | None = None,
    alpha: float = 0.05,
    power: float | None = None,
    alternative: str = "two.sided",
    p_event: float = 1.0,
    group1_proportion: float = 0.5,
) -> PowerResult:
    """Power calculation for the log-rank test.

    Exactly one of ``n``, ``hr``, ``power`` must be ``None``.

    Parameters
    ----------
    n : int or None
        Total sample size (both groups combined).
    hr : float or None
        Hazard ratio under the alternative. Must be != 1.
    alpha : float
        Significance level (default 0.05).
    power : float or None
        Desired power.
    alternative : str
        ``'two.sided'`` or ``'one.sided'``.
    p_event : float
        Probability of observing an event (1.0 = no censoring). The
        ``overall_event_proportion`` of :func:`schoenfeld_from_km` is a
        natural choice.
    group1_proportion : float
        Share of subjects in the control arm. Default 1:1.

    Returns
    -------
    PowerResult

    Examples
    --------
    >>> r = power_logrank(hr=0.7, alpha=0.05, power=0.80)
    >>> r.n  # total N for both groups
    247
    """
    if not (0.0 < p_event <= 1.0):
        raise ValidationError(f"p_event must be in (0, 1], got {p_event}")
    if not (0.0 < group1_proportion < 1.0):
        raise ValidationError(
            f"group1_proportion must be in (0, 1), got {group1_proportion}"
        )
    if alternative not in _VALID_ALTERNATIVES:
        raise ValidationError(
            f"alternative must be one of {_VALID_ALTERNATIVES}, got {alternative!r}"
        )

    solve_for = _check_power_args(n=n, hr=hr, power=power, alpha=alpha)

    def _compute(n_val: float, hr_val: float) -> float:
        return _logrank_power(n_val, hr_val, alpha, alternative, p_event, group1_proportion)

    if solve_for == "power":
        result_n = n
        result_hr = hr
        result_power = _compute(float(n), hr)

    elif solve_for == "n":
        raw_n = _solve_parameter(
            func=lambda x: _compute(x, hr),
            target=power,
            bracket=(2.0, 1e7),
        )
        result_n = math.ceil(raw_n)
        result_hr = hr
        result_power = power

    else:  # solve_for == "hr"
        # HR can be < 1 or > 1; solve for the protective side by convention
        result_hr = _solve_parameter(
            func=lambda x: _compute(float(n), x),
            target=power,
            bracket=(0.01, 0.999),
        )
        result_n = n
        result_power = power

    return PowerResult(
        n=result_n,
        power=result_power,
        hazard_ratio=result_hr,
        alpha=alpha,
        alternative=alternative,
        method="Log-rank test power calculation (Schoenfeld)",
        events=result_n * p_event,
        note="n is total sample size (both groups combined)",
    )
