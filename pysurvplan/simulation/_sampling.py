"""Inverse-CDF sampling of event/censoring outcomes from a Kaplan-Meier curve."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from pysurvplan._exceptions import ValidationError
from pysurvplan.survival._common import KaplanMeierCurve


def sample_km(
    curve: KaplanMeierCurve,
    count: int,
    seed: int | np.random.SeedSequence | None = 123,
) -> tuple[NDArray[np.uint8], NDArray[np.floating]]:
    """Draw ``count`` outcomes from a survival curve.

    For each uniform draw ``x``:

    - ``x <= S(last)``: censored at the last curve time.
    - first index with ``x > S(t_i)`` is 0: event at the first curve time.
    - otherwise: event at a time interpolated between ``t_{i-1}`` and
      ``t_i``, weighted by where ``x`` falls between ``S(t_{i-1})`` and
      ``S(t_i)``.

    The interpolation weight on ``t_{i-1}`` grows as ``x`` approaches
    ``S(t_{i-1})``, so the mapping is a monotone inverse CDF; the opposite
    weighting would send such draws toward ``t_i`` instead.

    Because the curve is non-increasing, any ``x > S(last)`` has a
    bracketing index, so "no index found" only ever occurs for censored
    draws.

    Parameters
    ----------
    curve : KaplanMeierCurve
        Non-empty survival curve.
    count : int
        Number of outcomes.
    seed : int, SeedSequence or None
        Seed of the uniform stream; identical seeds give identical output.

    Returns
    -------
    events : uint8 array, shape ``(count,)``
        1 for an event, 0 for censored.
    times : float array, shape ``(count,)``
    """
    if len(curve) == 0:
        raise ValidationError("cannot sample from an empty curve")
    if count < 0:
        raise ValidationError(f"count must be >= 0, got {count}")

    rng = np.random.default_rng(seed)
    x = rng.random(count)

    prob = curve.probability
    time = curve.time

    above = x[:, None] > prob[None, :]
    gt_idx = np.argmax(above, axis=1)  # 0 when no index matches
    not_censored = x > prob[-1]

    events = np.zeros(count, dtype=np.uint8)
    times = np.full(count, time[-1], dtype=np.float64)

    early = not_censored & (gt_idx == 0)
    events[early] = 1
    times[early] = time[0]

    valid = not_censored & (gt_idx >= 1)
    idx = gt_idx[valid]
    xv = x[valid]
    dist_left = prob[idx - 1] - xv
    dist_right = xv - prob[idx]
    total = dist_left + dist_right

    # x close to S(t_{i-1}) maps close to t_{i-1}
    with np.errstate(invalid="ignore", divide="ignore"):
        w_prev = np.where(total == 0, 0.5, dist_right / total)
    w_next = 1.0 - w_prev

    events[valid] = 1
    times[valid] = w_prev * time[idx - 1] + w_next * time[idx]

    return events, times
