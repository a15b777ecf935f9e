"""
Exception hierarchy for pysurvplan.

All exceptions inherit from SurvPlanError so callers can catch any
library-specific error. Validation errors also inherit from ValueError.

Numerical degeneracies (zero variance, empty risk sets, zero rate
estimates) are handled by explicit policy in the algorithms and never
raise.
"""

from __future__ import annotations


class SurvPlanError(Exception):
    """Base exception for all pysurvplan errors."""
    pass


class ValidationError(SurvPlanError, ValueError):
    """
    Input validation failed.

    Raised for mismatched array lengths, out-of-range arguments and
    structurally invalid mixture models. Fatal to the single operation.
    """
    pass


class MissingDataError(ValidationError):
    """
    A computation needs data the input does not carry.

    Raised when RMST variance is requested from a curve without
    risk-set and event-count arrays.
    """
    pass


class ConvergenceError(SurvPlanError):
    """
    Iterative algorithm failed to converge.

    Attributes:
        iterations: Number of iterations completed
        final_change: Last value of the convergence criterion
        threshold: The threshold that was not met
    """

    def __init__(
        self,
        message: str,
        iterations: int,
        final_change: float | None = None,
        threshold: float | None = None,
    ):
        super().__init__(message)
        self.iterations = iterations
        self.final_change = final_change
        self.threshold = threshold


class SimulationCancelled(SurvPlanError):
    """A sample-size grid run was cancelled before all tasks finished."""
    pass


class SimulationGridError(SurvPlanError):
    """
    One or more sample-size tasks failed.

    Attributes:
        failures: Exception raised by each failed task, keyed by sample size
        results: Summaries of the tasks that succeeded, sorted by sample size
    """

    def __init__(self, message: str, failures: dict, results: list):
        super().__init__(message)
        self.failures = failures
        self.results = results
