"""Two-sample log-rank test.

At each distinct event time t in the pooled sample:

    O_t = events in the treatment arm at t
    E_t = D_t * n_treat / N_t
    V_t = n_treat * n_control * D_t * (N_t - D_t) / (N_t^2 * (N_t - 1))

where N_t, n_treat, n_control count observations with time >= t and D_t
counts events exactly at t.  The statistic

    chi2 = (sum O - sum E)^2 / sum V

is referred to a chi-square distribution with one degree of freedom.
A zero total variance (no events, one arm empty) gives chi2 = 0, p = 1.

References
----------
Mantel, N. (1966). Evaluation of survival data and two new rank order
statistics arising in its consideration. *Cancer Chemotherapy Reports*,
50(3), 163-170.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from pysurvplan.survival._common import validate_observations


@dataclass(frozen=True)
class LogRankResult:
    """Result of the two-sample log-rank test."""

    statistic: float  # chi-square, 1 df
    p_value: float
    observed: float  # treatment-arm events
    expected: float  # treatment-arm events expected under H0
    variance: float
    n_event_times: int

    def summary(self) -> str:
        lines = [
            "Log-rank test (treatment vs control)",
            "=" * 38,
            f"Observed  : {self.observed:.4f}",
            f"Expected  : {self.expected:.4f}",
            f"Variance  : {self.variance:.4f}",
            f"Chi-square: {self.statistic:.4f} (df = 1)",
            f"p-value   : {self.p_value:.4g}",
        ]
        return "\n".join(lines)


def logrank_test(
    control_times: NDArray[np.floating],
    control_events: NDArray[np.integer],
    treat_times: NDArray[np.floating],
    treat_events: NDArray[np.integer],
) -> LogRankResult:
    """Compare two arms' event histories with the log-rank test.

    Parameters
    ----------
    control_times, control_events : arrays
        Observations of the control arm (events: 1 = event, 0 = censored).
    treat_times, treat_events : arrays
        Observations of the treatment arm.

    Returns
    -------
    LogRankResult

    Raises
    ------
    ValidationError
        If an arm's times and events differ in length.
    """
    control_times, control_events = validate_observations(control_times, control_events)
    treat_times, treat_events = validate_observations(treat_times, treat_events)

    time = np.concatenate([control_times, treat_times])
    event = np.concatenate([control_events, treat_events]) == 1
    is_treat = np.concatenate([
        np.zeros(control_times.shape[0], dtype=bool),
        np.ones(treat_times.shape[0], dtype=bool),
    ])

    order = np.argsort(time, kind="stable")
    time, event, is_treat = time[order], event[order], is_treat[order]

    unique_event_times = np.unique(time[event])

    sum_o = 0.0
    sum_e = 0.0
    sum_v = 0.0
    for t in unique_event_times:
        at_risk = time >= t
        n_all = np.count_nonzero(at_risk)
        n_treat = np.count_nonzero(at_risk & is_treat)
        n_control = n_all - n_treat

        at_t = (time == t) & event
        d_all = np.count_nonzero(at_t)
        d_treat = np.count_nonzero(at_t & is_treat)

        sum_o += d_treat
        if n_all > 0:
            sum_e += d_all * n_treat / n_all
        if n_all > 1:
            sum_v += (
                n_treat * n_control * d_all * (n_all - d_all)
                / (n_all ** 2 * (n_all - 1))
            )

    if sum_v > 0:
        chi2 = (sum_o - sum_e) ** 2 / sum_v
        p_value = float(stats.chi2.sf(chi2, df=1))
    else:
        chi2 = 0.0
        p_value = 1.0

    return LogRankResult(
        statistic=float(chi2),
        p_value=p_value,
        observed=float(sum_o),
        expected=float(sum_e),
        variance=float(sum_v),
        n_event_times=int(unique_event_times.shape[0]),
    )
