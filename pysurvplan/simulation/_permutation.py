"""Exponential likelihood-ratio statistic and its permutation null distribution.

Under an exponential model an arm with n events over total time T has
log-likelihood

    LL(n, T, lambda) = n * ln(lambda) - lambda * T,   lambda_hat = n / T.

The statistic is twice the log-likelihood ratio between separate rates
for the two arms and one pooled rate.  Its null distribution is estimated
by shuffling (time, event) pairs between the arms.
"""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray

from pysurvplan._exceptions import ValidationError

MIN_LAMBDA = 1e-6


def samples_to_lambda(times: NDArray[np.floating], events: NDArray[np.integer]) -> float:
    """Exponential MLE rate: number of events over total follow-up time.

    Raises
    ------
    ValidationError
        If any time is negative or the total time is 0.
    """
    times = np.asarray(times, dtype=np.float64)
    events = np.asarray(events)
    if np.any(times < 0):
        raise ValidationError("No event times can be less than 0")
    total = float(times.sum())
    if total == 0:
        raise ValidationError("Total time is 0")
    return float(events.sum()) / total


def _log_likelihood(n_events: float, total_time: float, lam: float) -> float:
    if lam == 0:
        lam = MIN_LAMBDA
    return n_events * math.log(lam) - lam * total_time


def _rate(n_events: float, total_time: float) -> float:
    # No follow-up time carries no information about the rate
    return n_events / total_time if total_time > 0 else 0.0


def likelihood_ratio(
    a_times: NDArray[np.floating],
    a_events: NDArray[np.integer],
    b_times: NDArray[np.floating],
    b_events: NDArray[np.integer],
) -> float:
    """Twice the log-likelihood ratio of a two-rate vs a pooled-rate model."""
    a_n = float(np.sum(a_events))
    a_t = float(np.sum(a_times))
    b_n = float(np.sum(b_events))
    b_t = float(np.sum(b_times))

    pooled_n = a_n + b_n
    pooled_t = a_t + b_t

    return 2.0 * (
        _log_likelihood(a_n, a_t, _rate(a_n, a_t))
        + _log_likelihood(b_n, b_t, _rate(b_n, b_t))
        - _log_likelihood(pooled_n, pooled_t, _rate(pooled_n, pooled_t))
    )


def random_permutation(
    a_times: NDArray[np.floating],
    a_events: NDArray[np.integer],
    b_times: NDArray[np.floating],
    b_events: NDArray[np.integer],
    rng: np.random.Generator,
) -> tuple[NDArray, NDArray, NDArray, NDArray]:
    """Shuffle pooled (time, event) pairs and split back into arm-sized chunks."""
    times = np.concatenate([a_times, b_times])
    events = np.concatenate([a_events, b_events])
    order = rng.permutation(times.shape[0])
    times, events = times[order], events[order]

    n_a = len(a_times)
    return times[:n_a], events[:n_a], times[n_a:], events[n_a:]


def permutation_test_p_value(
    control_times: NDArray[np.floating],
    control_events: NDArray[np.integer],
    treat_times: NDArray[np.floating],
    treat_events: NDArray[np.integer],
    permutation_count: int,
    rng: np.random.Generator,
) -> float:
    """One-sided permutation p-value of the likelihood-ratio statistic.

    Fraction of ``permutation_count`` relabelings whose statistic is at
    least the observed one.
    """
    if permutation_count < 1:
        raise ValidationError(f"permutation_count must be >= 1, got {permutation_count}")

    observed = likelihood_ratio(control_times, control_events, treat_times, treat_events)

    null_wins = 0
    for _ in range(permutation_count):
        perm = random_permutation(control_times, control_events, treat_times, treat_events, rng)
        if likelihood_ratio(*perm) >= observed:
            null_wins += 1

    return null_wins / permutation_count
