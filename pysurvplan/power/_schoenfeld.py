"""Schoenfeld event count and sample size for a log-rank powered trial.

Required events (two-sided level alpha, power beta, allocation p1/p2):

    D = (z_{1-alpha/2} + z_beta)^2 / (ln(HR)^2 * p1 * p2)

The probability that a subject has an event by the end of the study comes
from Simpson's rule over the accrual window, with uniform enrollment:

    d = 1 - (S(f) + 4 S(f + a/2) + S(f + a)) / 6

evaluated on the control curve and on the proportional-hazards treatment
curve ``S(t)^HR``.  The sample size is ``ceil(D / (p1 d_c + p2 d_t))``.

References
----------
Schoenfeld D. (1983). Sample-size formula for the proportional-hazards
regression model. Biometrics 39(2), 499-503.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

import numpy as np
from scipy.stats import norm

from pysurvplan._exceptions import ValidationError
from pysurvplan.survival._common import KaplanMeierCurve
from pysurvplan.survival._parametric import baseline_to_treatment_survival


@dataclass(frozen=True)
class SchoenfeldParameters:
    """Design inputs.

    ``beta`` is the target power (e.g. 0.8).  The Simpson anchors are the
    control-arm survival at ``followup_time``, ``followup_time + accrual/2``
    and ``followup_time + accrual``; without them only the event count can
    be derived.
    """

    alpha: float
    beta: float
    hazard_ratio: float
    group1_proportion: float = 0.5
    group2_proportion: float | None = None
    accrual: float = 0.0
    followup_time: float = 0.0
    simpson_start_surv: float | None = None
    simpson_mid_surv: float | None = None
    simpson_end_surv: float | None = None

    def __post_init__(self) -> None:
        if self.group2_proportion is None:
            object.__setattr__(self, "group2_proportion", 1.0 - self.group1_proportion)

    @property
    def has_simpson_anchors(self) -> bool:
        return None not in (self.simpson_start_surv, self.simpson_mid_surv, self.simpson_end_surv)


@dataclass(frozen=True)
class SchoenfeldDerived:
    """Quantities derived from :class:`SchoenfeldParameters`."""

    alpha_deviate: float
    beta_deviate: float
    numerator: float
    denominator: float
    event_count: int
    base_event_proportion: float | None = None
    treatment_event_proportion: float | None = None
    overall_event_proportion: float | None = None
    sample_size: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Payload in the presentation layer's key convention."""
        return {
            "alphaDeviate": self.alpha_deviate,
            "betaDeviate": self.beta_deviate,
            "numerator": self.numerator,
            "denominator": self.denominator,
            "eventCount": self.event_count,
            "baseEventProportion": self.base_event_proportion,
            "treatmentEventProportion": self.treatment_event_proportion,
            "overallEventProportion": self.overall_event_proportion,
            "sampleSize": self.sample_size,
        }

    def summary(self) -> str:
        lines = ["Schoenfeld sample size", ""]
        lines.append(f"    z (alpha)   = {self.alpha_deviate:.4f}")
        lines.append(f"    z (power)   = {self.beta_deviate:.4f}")
        lines.append(f"    events      = {self.event_count}")
        if self.overall_event_proportion is not None:
            lines.append(f"    P(event)    = {self.overall_event_proportion:.4f}"
                         f" (control {self.base_event_proportion:.4f},"
                         f" treatment {self.treatment_event_proportion:.4f})")
        if self.sample_size is not None:
            lines.append(f"    sample size = {self.sample_size}")
        return "\n".join(lines)


def validate_schoenfeld_parameters(params: SchoenfeldParameters) -> tuple[bool, str]:
    """Range check of the design inputs.

    Returns
    -------
    (is_valid, message)
        ``message`` is empty when valid.
    """
    if params.alpha <= 0.0 or params.alpha >= 0.5:
        return False, "Alpha must be between (0.0, 0.5)"
    if params.beta <= 0.5 or params.beta >= 1.0:
        return False, "Beta must be between (0.5, 1.0)"
    if params.group1_proportion < 0.1 or params.group1_proportion > 0.9:
        return False, "Proportion must be between 0.1 and 0.9"
    if params.hazard_ratio < 0.01 or params.hazard_ratio > 5.0:
        return False, "Relative Hazard Ratio must be between 0.01 and 5"
    return True, ""


def _simpson_event_proportion(start: float, mid: float, end: float) -> float:
    return 1.0 - (start + 4.0 * mid + end) / 6.0


def schoenfeld_derived(params: SchoenfeldParameters) -> SchoenfeldDerived:
    """Event count and, when Simpson anchors are given, the sample size.

    Raises
    ------
    ValidationError
        If :func:`validate_schoenfeld_parameters` rejects the inputs, or
        the hazard ratio is exactly 1.
    """
    is_valid, message = validate_schoenfeld_parameters(params)
    if not is_valid:
        raise ValidationError(message)
    if params.hazard_ratio == 1.0:
        raise ValidationError("hazard_ratio must be != 1.0 (no effect)")

    p1 = params.group1_proportion
    p2 = params.group2_proportion

    alpha_deviate = float(norm.ppf(1.0 - params.alpha / 2.0))
    beta_deviate = float(norm.ppf(params.beta))
    numerator = (alpha_deviate + beta_deviate) ** 2
    denominator = math.log(params.hazard_ratio) ** 2 * (p1 * p2)
    event_count = int(round(numerator / denominator))

    if not params.has_simpson_anchors:
        return SchoenfeldDerived(
            alpha_deviate=alpha_deviate,
            beta_deviate=beta_deviate,
            numerator=numerator,
            denominator=denominator,
            event_count=event_count,
        )

    anchors = (params.simpson_start_surv, params.simpson_mid_surv, params.simpson_end_surv)
    base = _simpson_event_proportion(*anchors)
    treatment = _simpson_event_proportion(
        *(baseline_to_treatment_survival(s, params.hazard_ratio) for s in anchors)
    )
    overall = p1 * base + p2 * treatment

    if overall <= 0.0:
        raise ValidationError(
            "no events expected by the end of follow-up; sample size is unbounded"
        )

    return SchoenfeldDerived(
        alpha_deviate=alpha_deviate,
        beta_deviate=beta_deviate,
        numerator=numerator,
        denominator=denominator,
        event_count=event_count,
        base_event_proportion=base,
        treatment_event_proportion=treatment,
        overall_event_proportion=overall,
        sample_size=int(math.ceil(event_count / overall)),
    )


def survival_at_point(curve: KaplanMeierCurve, t: float) -> float:
    """Step lookup of S(t) on a curve.

    Takes the first curve time at or after ``t``: 1 if that is the first
    point, the probability there otherwise, and 0 when ``t`` is beyond the
    last point.
    """
    i = int(np.searchsorted(curve.time, t, side="left"))
    if i == len(curve):
        return 0.0
    if i == 0:
        return 1.0
    return float(curve.probability[i])


def schoenfeld_from_km(
    curve: KaplanMeierCurve,
    hazard_ratio: float,
    accrual: float,
    followup: float,
    alpha: float = 0.05,
    beta: float = 0.8,
    *,
    group1_proportion: float = 0.5,
) -> SchoenfeldDerived:
    """Schoenfeld sample size with event proportions read off a control curve.

    Parameters
    ----------
    curve : KaplanMeierCurve
        Control-arm survival.
    hazard_ratio : float
        Treatment / control hazard ratio.
    accrual, followup : float
        Enrollment window and minimum follow-up.
    alpha : float
        Two-sided significance level.
    beta : float
        Target power.
    group1_proportion : float
        Share allocated to the control arm.

    Returns
    -------
    SchoenfeldDerived
        ``sample_size`` holds the total number of subjects.
    """
    if accrual < 0 or followup < 0:
        raise ValidationError(
            f"accrual and followup must be >= 0, got {accrual} and {followup}"
        )
    params = SchoenfeldParameters(
        alpha=alpha,
        beta=beta,
        hazard_ratio=hazard_ratio,
        group1_proportion=group1_proportion,
        accrual=accrual,
        followup_time=followup,
        simpson_start_surv=survival_at_point(curve, followup),
        simpson_mid_surv=survival_at_point(curve, followup + 0.5 * accrual),
        simpson_end_surv=survival_at_point(curve, followup + accrual),
    )
    return schoenfeld_derived(params)
