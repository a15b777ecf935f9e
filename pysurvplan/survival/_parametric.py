"""Parametric survival models for overlaying smooth curves on empirical data.

Exponential:  S(t) = exp(-lambda * t)
Weibull:      S(t) = exp(-(t / scale)^shape)
"""

from __future__ import annotations

import math
import warnings
from collections.abc import Iterable, Sequence

import numpy as np
from numpy.typing import NDArray

from pysurvplan._exceptions import ValidationError
from pysurvplan.survival._common import SurvivalPoint


def fit_exponential(points: Iterable[SurvivalPoint]) -> float:
    """Least-squares exponential rate through the origin.

    Fits the linearized model ``ln S = -lambda * t``:

        lambda = -sum(t * ln S) / sum(t^2)

    Points with ``surv_prob == 0`` give an infinite rate.  When every
    time is zero the ratio is undefined and ``nan`` is returned.

    Examples
    --------
    >>> pts = [SurvivalPoint(t, math.exp(-0.1 * t)) for t in (1, 2, 3)]
    >>> round(fit_exponential(pts), 10)
    0.1
    """
    pts = list(points)
    t = np.array([p.time for p in pts], dtype=np.float64)
    s = np.array([p.surv_prob for p in pts], dtype=np.float64)

    with np.errstate(divide="ignore", invalid="ignore"):
        numerator = -np.sum(t * np.log(s))
        denominator = np.sum(t ** 2)
        lam = numerator / denominator

    if denominator == 0:
        warnings.warn(
            "All survival times are 0; exponential rate is undefined",
            RuntimeWarning,
            stacklevel=2,
        )
        return float("nan")
    # Avoid returning -0.0 when nothing has happened yet
    return float(lam) + 0.0


def evaluate_exponential(
    times: Sequence[float] | NDArray[np.floating], lam: float
) -> NDArray[np.floating]:
    """Exponential survival ``exp(-lam * t)`` at each time."""
    t = np.asarray(times, dtype=np.float64)
    return np.exp(-lam * t)


def evaluate_weibull(
    times: Sequence[float] | NDArray[np.floating], scale: float, shape: float
) -> NDArray[np.floating]:
    """Weibull survival ``exp(-(t / scale)^shape)`` at each time."""
    if scale <= 0 or shape <= 0:
        raise ValidationError(
            f"scale and shape must be > 0, got scale={scale}, shape={shape}"
        )
    t = np.asarray(times, dtype=np.float64)
    return np.exp(-((t / scale) ** shape))


def generate_time_points(start: float, end: float, n_points: int) -> list[float]:
    """``n_points`` evenly spaced times from ``start`` to ``end`` inclusive.

    Returns ``[start]`` when fewer than two points are requested.
    """
    if n_points < 2:
        return [float(start)]
    return np.linspace(start, end, n_points).tolist()


def exponential_curve(
    time: Sequence[float] | NDArray[np.floating], n_points: int, lam: float
) -> list[SurvivalPoint]:
    """Exponential model on an even grid from 0 to ``max(time)``."""
    end = float(np.max(time)) if len(time) else 0.0
    grid = generate_time_points(0.0, end, n_points)
    surv = evaluate_exponential(grid, lam)
    return [SurvivalPoint(t, float(s)) for t, s in zip(grid, surv)]


# ---------------------------------------------------------------------------
# Median / rate conversions
# ---------------------------------------------------------------------------

def lambda_to_median(lam: float) -> float:
    """Median time-to-event of an exponential with rate ``lam``: ln2 / lam."""
    return math.log(2) / lam


def median_to_lambda(median: float) -> float:
    """Rate from a median time-to-event: 1 / (median * ln2)."""
    return 1.0 / (median * math.log(2))


def weibull_to_median(scale: float, shape: float) -> float:
    """Median of a Weibull: scale * ln(2)^(1 / shape)."""
    return scale * math.log(2) ** (1.0 / shape)


def baseline_to_treatment_survival(base_surv: float, hazard_ratio: float) -> float:
    """Survival under proportional hazards: exp(-hr * H0) with H0 = -ln S0."""
    if base_surv == 0:
        return 0.0
    cumulative_base_hazard = -math.log(base_surv)
    return math.exp(-cumulative_base_hazard * hazard_ratio)
