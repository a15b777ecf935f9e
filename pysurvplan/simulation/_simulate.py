"""Monte Carlo p-value and hazard distributions for one sample size.

Each replicate builds a two-arm trial (synthetic exponential arms or
bootstrap resamples of observed arms), fits an exponential rate per arm
and tests the arms against each other.  Replicates run sequentially on a
single seeded stream, so a given seed reproduces the whole distribution.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from numpy.typing import NDArray

from pysurvplan._exceptions import ValidationError
from pysurvplan.simulation._common import SimulationResult, SimulationSummary, get_percentiles
from pysurvplan.simulation._dataset import resample_dataset, sample_dataset
from pysurvplan.simulation._permutation import permutation_test_p_value, samples_to_lambda
from pysurvplan.survival._common import validate_observations
from pysurvplan.survival._kaplan_meier import kaplan_meier
from pysurvplan.survival._logrank import logrank_test
from pysurvplan.survival._rmst import compare_rmst

Seed = int | np.random.SeedSequence | None


def _replicate_statistics(
    control_times: NDArray,
    control_events: NDArray,
    treat_times: NDArray,
    treat_events: NDArray,
    permutation_count: int,
    rng: np.random.Generator,
    rmst_tau: float | None,
) -> tuple[float, float, float, float]:
    """(control lambda, treat lambda, p-value, RMST p-value or nan) for one trial."""
    control_lambda = samples_to_lambda(control_times, control_events)
    treat_lambda = samples_to_lambda(treat_times, treat_events)

    if permutation_count > 0:
        p_value = permutation_test_p_value(
            control_times, control_events, treat_times, treat_events,
            permutation_count, rng,
        )
    else:
        p_value = logrank_test(
            control_times, control_events, treat_times, treat_events,
        ).p_value

    rmst_p = np.nan
    if rmst_tau is not None:
        rmst_p = compare_rmst(
            kaplan_meier(control_times, control_events),
            kaplan_meier(treat_times, treat_events),
            rmst_tau,
        ).p_value

    return control_lambda, treat_lambda, p_value, rmst_p


def _collect(
    sample_size: int,
    control: tuple[NDArray, NDArray],
    treat: tuple[NDArray, NDArray],
    permutation_count: int,
    rng: np.random.Generator,
    rmst_tau: float | None,
) -> SimulationResult:
    sim_count = control[0].shape[0]
    stats = np.empty((sim_count, 4), dtype=np.float64)
    for i in range(sim_count):
        stats[i] = _replicate_statistics(
            control[0][i], control[1][i], treat[0][i], treat[1][i],
            permutation_count, rng, rmst_tau,
        )

    return SimulationResult(
        sample_size=sample_size,
        control_hazard_dist=stats[:, 0].copy(),
        treat_hazard_dist=stats[:, 1].copy(),
        p_value_dist=stats[:, 2].copy(),
        rmst_p_value_dist=stats[:, 3].copy() if rmst_tau is not None else None,
    )


def _check_common(sample_size: int, dataset_sim_count: int, permutation_count: int,
                  rmst_tau: float | None) -> None:
    if sample_size < 2:
        raise ValidationError(f"sample_size must be >= 2, got {sample_size}")
    if dataset_sim_count < 1:
        raise ValidationError(f"dataset_sim_count must be >= 1, got {dataset_sim_count}")
    if permutation_count < 0:
        raise ValidationError(f"permutation_count must be >= 0, got {permutation_count}")
    if rmst_tau is not None and rmst_tau < 0:
        raise ValidationError("tau must be a non-negative number.")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def sample_p_value_distribution(
    sample_size: int,
    control_proportion: float,
    treat_proportion: float,
    baseline_hazard: float,
    hazard_ratio: float,
    accrual: float,
    followup: float,
    permutation_count: int,
    dataset_sim_count: int,
    seed: Seed = 123,
    *,
    rmst_tau: float | None = None,
    backend: str = "cpu",
) -> SimulationResult:
    """Simulate trials from exponential arms.

    Parameters
    ----------
    sample_size : int
        Total subjects over both arms.
    control_proportion, treat_proportion : float
        Share of ``sample_size`` allocated to each arm.
    baseline_hazard : float
        Control-arm exponential rate.
    hazard_ratio : float
        Treatment rate / control rate.
    accrual, followup : float
        Enrollment window and follow-up after enrollment closes.
    permutation_count : int
        Permutations per replicate for the likelihood-ratio test;
        0 selects the log-rank test.
    dataset_sim_count : int
        Number of simulated trials.
    seed : int, SeedSequence or None
        Seed of the simulation stream.
    rmst_tau : float or None
        If given, also record the RMST comparison p-value at this horizon.
    backend : str
        Dataset generation backend, ``'cpu'``, ``'gpu'`` or ``'auto'``.

    Returns
    -------
    SimulationResult
    """
    _check_common(sample_size, dataset_sim_count, permutation_count, rmst_tau)
    if hazard_ratio <= 0:
        raise ValidationError(f"hazard_ratio must be > 0, got {hazard_ratio}")

    n_control = int(round(sample_size * control_proportion))
    n_treat = int(round(sample_size * treat_proportion))
    if n_control < 1 or n_treat < 1:
        raise ValidationError(
            f"each arm needs at least one subject, got {n_control} control "
            f"and {n_treat} treatment"
        )

    rng = np.random.default_rng(seed)
    control = sample_dataset(
        baseline_hazard, dataset_sim_count, n_control, accrual, followup, rng,
        backend=backend,
    )
    treat = sample_dataset(
        baseline_hazard * hazard_ratio, dataset_sim_count, n_treat, accrual, followup, rng,
        backend=backend,
    )
    return _collect(sample_size, control, treat, permutation_count, rng, rmst_tau)


def p_value_distribution_from_data(
    sample_size: int,
    control_times: NDArray[np.floating],
    control_events: NDArray[np.integer],
    treat_times: NDArray[np.floating],
    treat_events: NDArray[np.integer],
    accrual: float,
    followup: float,
    dataset_sim_count: int,
    seed: Seed = 123,
    *,
    permutation_count: int = 0,
    rmst_tau: float | None = None,
) -> SimulationResult:
    """Simulate trials by bootstrapping observed arms.

    Each arm is resampled to ``sample_size // 2`` subjects and re-censored
    under the accrual/follow-up design.

    Returns
    -------
    SimulationResult
    """
    _check_common(sample_size, dataset_sim_count, permutation_count, rmst_tau)
    control_times, control_events = validate_observations(control_times, control_events)
    treat_times, treat_events = validate_observations(treat_times, treat_events)
    if np.any(control_times < 0) or np.any(treat_times < 0):
        raise ValidationError("No event times can be less than 0")

    per_arm = sample_size // 2
    rng = np.random.default_rng(seed)
    control = resample_dataset(
        control_times, control_events, dataset_sim_count, per_arm, accrual, followup, rng,
    )
    treat = resample_dataset(
        treat_times, treat_events, dataset_sim_count, per_arm, accrual, followup, rng,
    )
    return _collect(sample_size, control, treat, permutation_count, rng, rmst_tau)


def summarize_simulation(
    result: SimulationResult,
    hazard_percentiles: Sequence[float] = (2.5, 97.5),
    pvalue_percentiles: Sequence[float] = (80, 90),
    alpha: float = 0.05,
) -> SimulationSummary:
    """Reduce per-replicate distributions to percentile intervals."""
    base = get_percentiles(result.control_hazard_dist, hazard_percentiles)
    treat = get_percentiles(result.treat_hazard_dist, hazard_percentiles)
    pvals = get_percentiles(result.p_value_dist, pvalue_percentiles)

    rmst_pvals = None
    if result.rmst_p_value_dist is not None:
        rmst_pvals = tuple(
            float(v) for v in get_percentiles(result.rmst_p_value_dist, pvalue_percentiles)
        )

    return SimulationSummary(
        sample_size=result.sample_size,
        base_interval=(float(base[0]), float(base[-1])),
        treat_interval=(float(treat[0]), float(treat[-1])),
        pvalue_interval=tuple(float(v) for v in pvals),
        rmst_pvalue_interval=rmst_pvals,
        power=result.power(alpha),
    )
