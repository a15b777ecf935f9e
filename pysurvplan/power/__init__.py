"""
Closed-form sample size and power for log-rank powered trials.

Schoenfeld's event-count formula, with event probabilities read off a
control survival curve by Simpson's rule, and a solve-for-one-parameter
log-rank power function.

Validates against: R packages gsDesign (nSurv), TrialSize.
"""

from pysurvplan.power._common import PowerResult
from pysurvplan.power._logrank import power_logrank
from pysurvplan.power._schoenfeld import (
    SchoenfeldParameters,
    SchoenfeldDerived,
    schoenfeld_derived,
    validate_schoenfeld_parameters,
    survival_at_point,
    schoenfeld_from_km,
)

__all__ = [
    "PowerResult",
    "power_logrank",
    "SchoenfeldParameters",
    "SchoenfeldDerived",
    "schoenfeld_derived",
    "validate_schoenfeld_parameters",
    "survival_at_point",
    "schoenfeld_from_km",
]
