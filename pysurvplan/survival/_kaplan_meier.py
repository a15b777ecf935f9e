"""Kaplan-Meier product-limit estimator.

Product-limit estimate at each distinct event time t_j:

    S(t_j) = S(t_{j-1}) * (1 - d_j / n_j)

where d_j is the number of events at t_j and n_j the number of
observations with time >= t_j.  Censoring-only times are not curve steps.
The curve always starts with the anchor (0, 1).

Display intervals use Greenwood's formula with a plain (untransformed)
normal approximation, clipped to [0, 1].

References
----------
Kaplan, E. L., & Meier, P. (1958). Nonparametric estimation from
incomplete observations. *JASA*, 53(282), 457-481.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from pysurvplan._exceptions import ValidationError
from pysurvplan.survival._common import KaplanMeierCurve, validate_observations


def _greenwood_interval(
    survival: NDArray,
    n_events: NDArray,
    n_risk: NDArray,
    conf_level: float,
) -> NDArray:
    """Plain Greenwood confidence bounds, shape ``(n, 2)``."""
    # n == d makes the Greenwood term undefined; it contributes nothing
    denom = n_risk * (n_risk - n_events)
    denom = np.where(denom > 0, denom, np.inf)
    greenwood_sum = np.cumsum(n_events / denom)
    se = np.sqrt(survival ** 2 * greenwood_sum)

    z = stats.norm.ppf((1.0 + conf_level) / 2.0)
    lower = np.clip(survival - z * se, 0.0, 1.0)
    upper = np.clip(survival + z * se, 0.0, 1.0)
    return np.column_stack([lower, upper])


def kaplan_meier(
    times: NDArray[np.floating],
    events: NDArray[np.integer],
    conf_level: float = 0.95,
) -> KaplanMeierCurve:
    """Estimate a survival curve from right-censored observations.

    Parameters
    ----------
    times : array of float
        Observed time for each subject (event or censoring).
    events : array of {0, 1}
        1 if the event was observed at ``times[i]``, 0 if censored.
    conf_level : float
        Confidence level of the display interval (default 0.95).

    Returns
    -------
    KaplanMeierCurve
        With ``events_at_time`` and ``at_risk_at_time`` attached; both carry
        a leading 0 for the (0, 1) anchor.

    Raises
    ------
    ValidationError
        If ``times`` and ``events`` differ in length.

    Examples
    --------
    >>> km = kaplan_meier([6, 6, 6, 7, 10], [1, 0, 1, 1, 0])
    >>> km.time.tolist(), km.probability.round(2).tolist()
    ([0.0, 6.0, 7.0], [1.0, 0.6, 0.3])
    """
    if not (0.0 < conf_level < 1.0):
        raise ValidationError(f"conf_level must be in (0, 1), got {conf_level}")
    times, events = validate_observations(times, events)

    order = np.argsort(times, kind="stable")
    t_sorted = times[order]
    is_event = events[order] == 1

    unique_event_times = np.unique(t_sorted[is_event])
    m = unique_event_times.shape[0]

    out_time = np.zeros(m + 1, dtype=np.float64)
    out_prob = np.ones(m + 1, dtype=np.float64)
    out_events = np.zeros(m + 1, dtype=np.float64)
    out_risk = np.zeros(m + 1, dtype=np.float64)

    cumulative = 1.0
    for j, t_j in enumerate(unique_event_times, start=1):
        # Both counts re-scan the full observation list at each event time
        d_j = np.count_nonzero((t_sorted == t_j) & is_event)
        n_j = np.count_nonzero(t_sorted >= t_j)

        if n_j > 0:
            cumulative *= 1.0 - d_j / n_j

        out_time[j] = t_j
        out_prob[j] = cumulative
        out_events[j] = d_j
        out_risk[j] = n_j

    return KaplanMeierCurve(
        time=out_time,
        probability=out_prob,
        events_at_time=out_events,
        at_risk_at_time=out_risk,
        interval=_greenwood_interval(out_prob, out_events, out_risk, conf_level),
    )
