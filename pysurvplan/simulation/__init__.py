"""
Monte Carlo sample-size simulation for two-arm time-to-event trials.

Draws synthetic trials (exponential arms, bootstrap resamples of observed
arms, or inverse-CDF draws from a Kaplan-Meier curve), tests each replicate
with the log-rank, exponential likelihood-ratio permutation, or RMST test,
and reduces the per-replicate distributions to percentile summaries across
a grid of candidate sample sizes.
"""

from pysurvplan.simulation._common import (
    SimulationResult,
    SimulationSummary,
    get_percentiles,
)
from pysurvplan.simulation._sampling import sample_km
from pysurvplan.simulation._dataset import (
    censor,
    sample_dataset,
    resample,
    resample_dataset,
)
from pysurvplan.simulation._permutation import (
    samples_to_lambda,
    likelihood_ratio,
    random_permutation,
    permutation_test_p_value,
)
from pysurvplan.simulation._simulate import (
    sample_p_value_distribution,
    p_value_distribution_from_data,
    summarize_simulation,
)
from pysurvplan.simulation._grid import (
    SimulationConfig,
    GridProgress,
    run_simulation,
    run_sample_size_grid,
    sample_size_grid,
    minimum_sample_size,
)

__all__ = [
    "SimulationResult",
    "SimulationSummary",
    "get_percentiles",
    "sample_km",
    "censor",
    "sample_dataset",
    "resample",
    "resample_dataset",
    "samples_to_lambda",
    "likelihood_ratio",
    "random_permutation",
    "permutation_test_p_value",
    "sample_p_value_distribution",
    "p_value_distribution_from_data",
    "summarize_simulation",
    "SimulationConfig",
    "GridProgress",
    "run_simulation",
    "run_sample_size_grid",
    "sample_size_grid",
    "minimum_sample_size",
]
