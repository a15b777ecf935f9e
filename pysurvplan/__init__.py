"""
PySurvPlan: Survival analysis and sample-size simulation for oncology trials.

Estimates survival curves from censored event data, compares arms with the
log-rank and RMST tests, decomposes curves across prognostic subgroups, and
runs Monte Carlo simulations over a grid of sample sizes to find the size
that reaches a target power.

Usage:
    from pysurvplan import survival, simulation, power
"""

__version__ = "0.1.0"

from pysurvplan import survival
from pysurvplan import simulation
from pysurvplan import power
from pysurvplan._exceptions import (
    SurvPlanError,
    ValidationError,
    MissingDataError,
    ConvergenceError,
    SimulationCancelled,
    SimulationGridError,
)

__all__ = [
    "__version__",
    "survival",
    "simulation",
    "power",
    "SurvPlanError",
    "ValidationError",
    "MissingDataError",
    "ConvergenceError",
    "SimulationCancelled",
    "SimulationGridError",
]
