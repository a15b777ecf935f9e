"""Decomposition of a survival curve over sub-populations with known hazard ratios.

An observed curve is modelled as a mixture of k subgroups sharing a
reference curve S_ref under proportional hazards:

    S_obs(t) = sum_i p_i * S_ref(t)^{r_i},    r_1 = 1

``fit_reference_survival`` recovers S_ref pointwise with a damped Newton
iteration; ``recompose_survival`` projects the mixture onto a new set of
subgroup proportions.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

from pysurvplan._exceptions import ConvergenceError, ValidationError
from pysurvplan.survival._common import KaplanMeierByArm, KaplanMeierCurve

logger = logging.getLogger(__name__)

TOLERANCE = 1e-3
MAX_ITERATIONS = 100
GRADIENT_SCALING = 0.1


@dataclass(frozen=True)
class AllocationChange:
    """Request to move subgroup allocation of one prognostic factor.

    Allocations are percentages, reference subgroup first.  ``hazard_ratios``
    are relative to the reference subgroup, so the first one is 1.
    """

    biomarker: str
    original: tuple[float, ...]
    target: tuple[float, ...]
    hazard_ratios: tuple[float, ...]

    @staticmethod
    def from_dict(payload: dict[str, Any]) -> AllocationChange:
        """Build from ``{biomarker, original: {reference, comparisons}, target, hazardRatios}``."""
        def _flatten(alloc: dict[str, Any]) -> tuple[float, ...]:
            return (float(alloc["reference"]), *map(float, alloc["comparisons"]))

        return AllocationChange(
            biomarker=payload["biomarker"],
            original=_flatten(payload["original"]),
            target=_flatten(payload["target"]),
            hazard_ratios=tuple(float(h) for h in payload["hazardRatios"]),
        )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _validate(proportions: Sequence[float], hazard_ratios: Sequence[float]) -> None:
    if len(proportions) <= 1:
        raise ValidationError("Must have more than one group")
    if len(proportions) != len(hazard_ratios):
        raise ValidationError("Proportions and hazard ratios must match")
    if hazard_ratios[0] != 1:
        raise ValidationError(
            "First hazard ratio must be 1 to represent the reference survival curve"
        )


def _mixture(
    probability: NDArray, proportions: Sequence[float], hazard_ratios: Sequence[float]
) -> NDArray:
    """sum_i p_i * S^{r_i}"""
    estimate = np.zeros_like(probability)
    for p_i, r_i in zip(proportions, hazard_ratios):
        estimate += p_i * probability ** r_i
    return estimate


def mixture_error(
    observed: KaplanMeierCurve,
    fitted: KaplanMeierCurve,
    proportions: Sequence[float],
    hazard_ratios: Sequence[float],
) -> NDArray[np.floating]:
    """Pointwise residual of the mixture model against the observed curve."""
    _validate(proportions, hazard_ratios)
    return _mixture(fitted.probability, proportions, hazard_ratios) - observed.probability


def mixture_derivative(
    fitted: KaplanMeierCurve,
    proportions: Sequence[float],
    hazard_ratios: Sequence[float],
) -> NDArray[np.floating]:
    """Pointwise derivative of the mixture with respect to the reference curve."""
    _validate(proportions, hazard_ratios)
    s = fitted.probability
    estimate = np.full_like(s, proportions[0])
    # S = 0 with r < 1 has an infinite slope; the update there is 0
    with np.errstate(divide="ignore"):
        for p_i, r_i in zip(proportions[1:], hazard_ratios[1:]):
            estimate += p_i * r_i * s ** (r_i - 1)
    return estimate


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def fit_reference_survival(
    curve: KaplanMeierCurve,
    proportions: Sequence[float],
    hazard_ratios: Sequence[float],
) -> KaplanMeierCurve:
    """Recover the reference-subgroup curve from an observed mixture curve.

    Starting from ``S_fit = S_obs`` each iteration applies

        S_fit <- S_fit - GRADIENT_SCALING * e / d

    with ``e`` the mixture residual and ``d`` its derivative, and stops once
    the mean absolute residual falls below ``TOLERANCE``.

    Parameters
    ----------
    curve : KaplanMeierCurve
        Observed (mixture) curve.
    proportions : sequence of float
        Subgroup weights, reference subgroup first.
    hazard_ratios : sequence of float
        Hazard ratio of each subgroup relative to the reference; the first
        must be 1.

    Returns
    -------
    KaplanMeierCurve
        Reference curve on the same time grid, probabilities in [0, 1].

    Raises
    ------
    ValidationError
        If fewer than two subgroups are given, lengths differ, or the first
        hazard ratio is not 1.
    ConvergenceError
        If the residual does not fall below tolerance in ``MAX_ITERATIONS``.
    """
    _validate(proportions, hazard_ratios)

    fitted = curve.with_probability(curve.probability.copy())
    avg_error = float("nan")
    for iteration in range(MAX_ITERATIONS):
        e = mixture_error(curve, fitted, proportions, hazard_ratios)
        d = mixture_derivative(fitted, proportions, hazard_ratios)

        avg_error = float(np.mean(np.abs(e))) if e.size else 0.0
        logger.debug("decomposition iteration %d: mean |error| = %.6f", iteration, avg_error)

        if avg_error < TOLERANCE:
            return fitted

        with np.errstate(invalid="ignore"):
            step = np.nan_to_num(e / d, nan=0.0, posinf=0.0, neginf=0.0)
        fitted = fitted.with_probability(
            np.clip(fitted.probability - GRADIENT_SCALING * step, 0.0, 1.0)
        )

    raise ConvergenceError(
        "Failed to converge",
        iterations=MAX_ITERATIONS,
        final_change=avg_error,
        threshold=TOLERANCE,
    )


def compose_survival(
    reference: KaplanMeierCurve,
    proportions: Sequence[float],
    hazard_ratios: Sequence[float],
) -> KaplanMeierCurve:
    """Mixture curve ``sum_i p_i * S_ref^{r_i}`` from a reference curve."""
    _validate(proportions, hazard_ratios)
    return reference.with_probability(
        _mixture(reference.probability, proportions, hazard_ratios)
    )


def recompose_survival(
    curve: KaplanMeierCurve,
    original_proportions: Sequence[float],
    target_proportions: Sequence[float],
    hazard_ratios: Sequence[float],
) -> KaplanMeierCurve:
    """Project an observed curve onto a new subgroup allocation.

    Fits the reference curve under ``original_proportions`` and recomposes
    the mixture under ``target_proportions``.
    """
    if len(target_proportions) != len(original_proportions):
        raise ValidationError(
            f"original and target proportions must have the same length, "
            f"got {len(original_proportions)} and {len(target_proportions)}"
        )
    reference = fit_reference_survival(curve, original_proportions, hazard_ratios)
    return compose_survival(reference, target_proportions, hazard_ratios)


def apply_hazard_ratio(curve: KaplanMeierCurve, hazard_ratio: float) -> KaplanMeierCurve:
    """Proportional-hazards transform ``S(t)^hazard_ratio``."""
    if hazard_ratio <= 0:
        raise ValidationError(f"hazard_ratio must be > 0, got {hazard_ratio}")
    return curve.with_probability(curve.probability ** hazard_ratio)


# ---------------------------------------------------------------------------
# Per-arm payloads
# ---------------------------------------------------------------------------

def recompose_by_arm(
    data: KaplanMeierByArm, change: AllocationChange
) -> dict[str, KaplanMeierCurve]:
    """Apply an allocation change to every arm, keyed ``recomposed_<arm>``."""
    original = [v / 100 for v in change.original]
    target = [v / 100 for v in change.target]
    return {
        f"recomposed_{arm}": recompose_survival(curve, original, target, change.hazard_ratios)
        for arm, curve in zip(data.arm_names, data.curves)
    }


def decompose_by_arm(
    data: KaplanMeierByArm,
    proportions: Sequence[float],
    hazard_ratios: Sequence[float],
) -> dict[str, KaplanMeierCurve]:
    """Reference curve of every arm, keyed ``decomposed_<arm>``."""
    return {
        f"decomposed_{arm}": fit_reference_survival(curve, proportions, hazard_ratios)
        for arm, curve in zip(data.arm_names, data.curves)
    }


def adjust_by_arm(
    data: KaplanMeierByArm, hazard_ratio: float
) -> dict[str, KaplanMeierCurve]:
    """Hazard-ratio-adjusted curve of every arm, keyed ``adjusted_<arm>``."""
    return {
        f"adjusted_{arm}": apply_hazard_ratio(curve, hazard_ratio)
        for arm, curve in zip(data.arm_names, data.curves)
    }
