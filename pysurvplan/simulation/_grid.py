"""Sample-size grid coordinator.

Runs one independent simulation per candidate sample size on a
``concurrent.futures`` pool and collects the percentile summaries.  Every
task receives an immutable :class:`SimulationConfig` and its own seed
derived from ``config.seed`` and the sample size, so the grid is
reproducible regardless of scheduling order or executor type.
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import (
    FIRST_COMPLETED,
    Future,
    ProcessPoolExecutor,
    ThreadPoolExecutor,
    wait,
)
from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

from pysurvplan._exceptions import SimulationCancelled, SimulationGridError, ValidationError
from pysurvplan.simulation._common import SimulationSummary
from pysurvplan.simulation._simulate import (
    p_value_distribution_from_data,
    sample_p_value_distribution,
    summarize_simulation,
)
from pysurvplan.survival._common import TrialArm, validate_observations

logger = logging.getLogger(__name__)

_EXECUTORS = ("process", "thread", "serial")


# ---------------------------------------------------------------------------
# Configuration snapshot
# ---------------------------------------------------------------------------

def _frozen_array(values: Any, dtype: type) -> NDArray:
    arr = np.array(values, dtype=dtype)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class SimulationConfig:
    """Immutable inputs shared by every task of a grid run.

    Exactly one source of arms must be given: the synthetic exponential
    parameters (``baseline_hazard`` and ``hazard_ratio``) or observed data
    for both arms (``control_times``, ``control_events``, ``treat_times``,
    ``treat_events``).

    Parameters
    ----------
    accrual, followup : float
        Enrollment window and follow-up after enrollment closes.
    dataset_sim_count : int
        Replicates per sample size.
    permutation_count : int
        Permutations per replicate; 0 uses the log-rank test.
    seed : int
        Root seed of the grid.
    rmst_tau : float or None
        Horizon for the RMST comparison; None skips it.
    baseline_hazard, hazard_ratio : float or None
        Synthetic-mode control rate and treatment/control rate ratio.
    control_proportion, treat_proportion : float
        Synthetic-mode allocation shares.
    control_times, control_events, treat_times, treat_events : array or None
        Data-mode observations to bootstrap.
    backend : str
        Dataset generation backend for synthetic mode.
    hazard_percentiles, pvalue_percentiles : tuple of float
        Percentiles reported in each :class:`SimulationSummary`.
    alpha : float
        Significance level used for the empirical power.
    """

    accrual: float
    followup: float
    dataset_sim_count: int = 1000
    permutation_count: int = 0
    seed: int = 123
    rmst_tau: float | None = None
    baseline_hazard: float | None = None
    hazard_ratio: float | None = None
    control_proportion: float = 0.5
    treat_proportion: float = 0.5
    control_times: NDArray[np.floating] | None = None
    control_events: NDArray[np.uint8] | None = None
    treat_times: NDArray[np.floating] | None = None
    treat_events: NDArray[np.uint8] | None = None
    backend: str = "cpu"
    hazard_percentiles: tuple[float, ...] = (2.5, 97.5)
    pvalue_percentiles: tuple[float, ...] = (80, 90)
    alpha: float = 0.05

    def __post_init__(self) -> None:
        if self.accrual < 0 or self.followup < 0 or self.accrual + self.followup <= 0:
            raise ValidationError(
                f"accrual and followup must be >= 0 with a positive sum, "
                f"got {self.accrual} and {self.followup}"
            )
        if self.dataset_sim_count < 1:
            raise ValidationError(
                f"dataset_sim_count must be >= 1, got {self.dataset_sim_count}"
            )
        if self.permutation_count < 0:
            raise ValidationError(
                f"permutation_count must be >= 0, got {self.permutation_count}"
            )
        if self.rmst_tau is not None and self.rmst_tau < 0:
            raise ValidationError("tau must be a non-negative number.")
        if not 0 < self.alpha < 1:
            raise ValidationError(f"alpha must be in (0, 1), got {self.alpha}")

        data_fields = (self.control_times, self.control_events,
                       self.treat_times, self.treat_events)
        has_data = any(f is not None for f in data_fields)
        has_synthetic = self.baseline_hazard is not None or self.hazard_ratio is not None

        if has_data and has_synthetic:
            raise ValidationError(
                "give either synthetic hazard parameters or arm data, not both"
            )

        if has_data:
            if any(f is None for f in data_fields):
                raise ValidationError(
                    "data mode needs control_times, control_events, "
                    "treat_times and treat_events"
                )
            for prefix in ("control", "treat"):
                times, events = validate_observations(
                    getattr(self, f"{prefix}_times"), getattr(self, f"{prefix}_events")
                )
                if times.shape[0] == 0:
                    raise ValidationError(f"{prefix} arm has no observations")
                if np.any(times < 0):
                    raise ValidationError("No event times can be less than 0")
                object.__setattr__(self, f"{prefix}_times", _frozen_array(times, np.float64))
                object.__setattr__(self, f"{prefix}_events", _frozen_array(events, np.uint8))
        else:
            if self.baseline_hazard is None or self.hazard_ratio is None:
                raise ValidationError(
                    "synthetic mode needs baseline_hazard and hazard_ratio"
                )
            if self.baseline_hazard <= 0:
                raise ValidationError(
                    f"baseline_hazard must be > 0, got {self.baseline_hazard}"
                )
            if self.hazard_ratio <= 0:
                raise ValidationError(f"hazard_ratio must be > 0, got {self.hazard_ratio}")
            if self.control_proportion <= 0 or self.treat_proportion <= 0:
                raise ValidationError("arm proportions must be > 0")

        object.__setattr__(self, "hazard_percentiles", tuple(self.hazard_percentiles))
        object.__setattr__(self, "pvalue_percentiles", tuple(self.pvalue_percentiles))

    @property
    def mode(self) -> str:
        """``'data'`` when bootstrapping observed arms, else ``'synthetic'``."""
        return "data" if self.control_times is not None else "synthetic"

    @classmethod
    def from_trial(
        cls,
        trial_arms: Iterable[TrialArm | dict[str, Any]],
        control_arm: str,
        treat_arm: str,
        *,
        accrual: float,
        followup: float,
        **kwargs: Any,
    ) -> SimulationConfig:
        """Data-mode config from the arms of a trial.

        ``trial_arms`` may hold :class:`TrialArm` objects or their dict
        payloads (boolean ``events``).  Remaining keyword arguments are
        passed to the constructor.
        """
        arms = {}
        for arm in trial_arms:
            if isinstance(arm, dict):
                arm = TrialArm.from_dict(arm)
            arms[arm.arm_name] = arm

        missing = [name for name in (control_arm, treat_arm) if name not in arms]
        if missing:
            raise ValidationError(
                f"unknown arm(s) {missing}, expected some of {sorted(arms)}"
            )

        control, treat = arms[control_arm], arms[treat_arm]
        return cls(
            accrual=accrual,
            followup=followup,
            control_times=control.times,
            control_events=control.events,
            treat_times=treat.times,
            treat_events=treat.events,
            **kwargs,
        )


# ---------------------------------------------------------------------------
# Single task
# ---------------------------------------------------------------------------

def _task_seed(seed: int, sample_size: int) -> np.random.SeedSequence:
    return np.random.SeedSequence(entropy=seed, spawn_key=(sample_size,))


def run_simulation(
    config: SimulationConfig,
    sample_size: int,
    seed: int | np.random.SeedSequence | None = None,
) -> SimulationSummary:
    """Simulate and summarise one sample size.

    Module-level so process pools can pickle it.  ``seed`` defaults to the
    seed the grid would derive for ``sample_size``.
    """
    if seed is None:
        seed = _task_seed(config.seed, sample_size)

    logger.debug("Starting simulation for sample size %d (%s mode)", sample_size, config.mode)

    if config.mode == "data":
        result = p_value_distribution_from_data(
            sample_size,
            config.control_times,
            config.control_events,
            config.treat_times,
            config.treat_events,
            config.accrual,
            config.followup,
            config.dataset_sim_count,
            seed,
            permutation_count=config.permutation_count,
            rmst_tau=config.rmst_tau,
        )
    else:
        result = sample_p_value_distribution(
            sample_size,
            config.control_proportion,
            config.treat_proportion,
            config.baseline_hazard,
            config.hazard_ratio,
            config.accrual,
            config.followup,
            config.permutation_count,
            config.dataset_sim_count,
            seed,
            rmst_tau=config.rmst_tau,
            backend=config.backend,
        )

    summary = summarize_simulation(
        result,
        hazard_percentiles=config.hazard_percentiles,
        pvalue_percentiles=config.pvalue_percentiles,
        alpha=config.alpha,
    )
    logger.debug("Finished simulation for sample size %d", sample_size)
    return summary


# ---------------------------------------------------------------------------
# Grid
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GridProgress:
    """Progress report passed to the grid's ``progress`` callback."""

    done: int
    total: int
    sample_size: int

    @property
    def fraction(self) -> float:
        return self.done / self.total if self.total else 1.0

    def __str__(self) -> str:
        return f"{self.done} of {self.total} complete"


class _GridState:
    """Bookkeeping shared by the pooled and serial runners."""

    def __init__(self, total: int, progress: Callable[[GridProgress], None] | None):
        self.total = total
        self.progress = progress
        self.results: dict[int, SimulationSummary] = {}
        self.failures: dict[int, BaseException] = {}

    @property
    def done(self) -> int:
        return len(self.results) + len(self.failures)

    def record(self, sample_size: int, summary: SimulationSummary | None,
               error: BaseException | None) -> None:
        if error is not None:
            logger.warning("Simulation for sample size %d failed: %r", sample_size, error)
            self.failures[sample_size] = error
        else:
            self.results[sample_size] = summary

        report = GridProgress(self.done, self.total, sample_size)
        logger.info("%s", report)
        if self.progress is not None:
            self.progress(report)

    def ordered_results(self) -> list[SimulationSummary]:
        return [self.results[n] for n in sorted(self.results)]


def _check_sizes(sample_sizes: Iterable[int]) -> list[int]:
    sizes = sorted({int(n) for n in sample_sizes})
    if not sizes:
        raise ValidationError("sample_sizes must not be empty")
    if sizes[0] < 2:
        raise ValidationError(f"sample sizes must be >= 2, got {sizes[0]}")
    return sizes


def _run_serial(
    config: SimulationConfig,
    sizes: list[int],
    state: _GridState,
    cancel_event: threading.Event | None,
) -> None:
    for n in sizes:
        if cancel_event is not None and cancel_event.is_set():
            raise SimulationCancelled(
                f"grid cancelled after {state.done} of {state.total} sample sizes"
            )
        try:
            summary = run_simulation(config, n, _task_seed(config.seed, n))
        except Exception as exc:
            state.record(n, None, exc)
        else:
            state.record(n, summary, None)


def _run_pooled(
    config: SimulationConfig,
    sizes: list[int],
    state: _GridState,
    pool_cls: type,
    max_workers: int | None,
    cancel_event: threading.Event | None,
    poll_interval: float,
) -> None:
    cancelled = False
    with pool_cls(max_workers=max_workers) as pool:
        futures: dict[Future, int] = {
            pool.submit(run_simulation, config, n, _task_seed(config.seed, n)): n
            for n in sizes
        }
        pending = set(futures)
        while pending:
            if cancel_event is not None and cancel_event.is_set():
                # running tasks finish; queued ones never start
                pool.shutdown(wait=False, cancel_futures=True)
                cancelled = True
                break

            finished, pending = wait(pending, timeout=poll_interval, return_when=FIRST_COMPLETED)
            for fut in finished:
                error = fut.exception()
                state.record(futures[fut], None if error else fut.result(), error)

    if cancelled:
        raise SimulationCancelled(
            f"grid cancelled after {state.done} of {state.total} sample sizes"
        )


def run_sample_size_grid(
    config: SimulationConfig,
    sample_sizes: Iterable[int],
    *,
    max_workers: int | None = None,
    executor: str = "process",
    progress: Callable[[GridProgress], None] | None = None,
    cancel_event: threading.Event | None = None,
    poll_interval: float = 0.1,
) -> list[SimulationSummary]:
    """Simulate every sample size of a grid.

    Parameters
    ----------
    config : SimulationConfig
        Shared, immutable inputs.
    sample_sizes : iterable of int
        Candidate total sample sizes; duplicates are dropped.
    max_workers : int or None
        Pool size; None lets ``concurrent.futures`` choose.
    executor : str
        ``'process'`` (default), ``'thread'`` or ``'serial'``.
    progress : callable or None
        Called with a :class:`GridProgress` after each finished task.
    cancel_event : threading.Event or None
        Setting it stops the run; queued tasks are dropped and
        :class:`SimulationCancelled` is raised.
    poll_interval : float
        Seconds between cancellation checks while waiting on the pool.

    Returns
    -------
    list of SimulationSummary
        Sorted by sample size.

    Raises
    ------
    SimulationGridError
        If any task failed; successful summaries are on ``.results``.
    SimulationCancelled
        If ``cancel_event`` was set before all tasks finished.
    """
    if executor not in _EXECUTORS:
        raise ValidationError(f"executor must be one of {_EXECUTORS}, got {executor!r}")
    sizes = _check_sizes(sample_sizes)
    state = _GridState(len(sizes), progress)

    logger.info(
        "Running %s-mode simulation grid: %d sample sizes, %d replicates each",
        config.mode, len(sizes), config.dataset_sim_count,
    )

    if executor == "serial":
        _run_serial(config, sizes, state, cancel_event)
    else:
        pool_cls = ProcessPoolExecutor if executor == "process" else ThreadPoolExecutor
        _run_pooled(config, sizes, state, pool_cls, max_workers, cancel_event, poll_interval)

    if state.failures:
        raise SimulationGridError(
            f"{len(state.failures)} of {state.total} sample sizes failed: "
            f"{sorted(state.failures)}",
            failures=dict(sorted(state.failures.items())),
            results=state.ordered_results(),
        )
    return state.ordered_results()


# ---------------------------------------------------------------------------
# Grid helpers
# ---------------------------------------------------------------------------

def sample_size_grid(lower: int, upper: int, count: int) -> list[int]:
    """``count`` evenly spaced integer sample sizes from ``lower`` to ``upper``.

    Rounded, deduplicated and ascending, so fewer than ``count`` values
    come back when the range is narrow.
    """
    if lower < 2:
        raise ValidationError(f"lower must be >= 2, got {lower}")
    if upper < lower:
        raise ValidationError(f"upper must be >= lower, got {upper} < {lower}")
    if count < 1:
        raise ValidationError(f"count must be >= 1, got {count}")
    if count == 1:
        return [int(lower)]
    grid = np.rint(np.linspace(lower, upper, count)).astype(int)
    return [int(n) for n in np.unique(grid)]


def minimum_sample_size(
    summaries: Sequence[SimulationSummary],
    alpha: float = 0.05,
    index: int = 0,
    *,
    use_rmst: bool = False,
) -> int | None:
    """Smallest sample size whose p-value percentile reaches ``alpha``.

    Reads ``pvalue_interval[index]`` (or ``rmst_pvalue_interval[index]``)
    across the grid and interpolates linearly between the last grid point
    above ``alpha`` and the first at or below it.  With the default
    ``(80, 90)`` percentiles, ``index=0`` gives the size for 80% power.

    Returns
    -------
    int or None
        Interpolated size rounded up; the first grid size if it already
        reaches ``alpha``; None if no grid size does.
    """
    points = []
    for s in sorted(summaries, key=lambda s: s.sample_size):
        interval = s.rmst_pvalue_interval if use_rmst else s.pvalue_interval
        if interval is None:
            raise ValidationError("summary has no RMST p-value interval")
        value = interval[index]
        if not math.isnan(value):
            points.append((s.sample_size, value))

    for i, (n, p) in enumerate(points):
        if p > alpha:
            continue
        if i == 0:
            return int(n)
        n_prev, p_prev = points[i - 1]
        frac = (p_prev - alpha) / (p_prev - p)
        return int(math.ceil(n_prev + frac * (n - n_prev)))

    return None
