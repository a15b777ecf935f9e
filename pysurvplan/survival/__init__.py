"""
Survival curves and two-arm comparisons for time-to-event endpoints.

Kaplan-Meier estimation, the log-rank test, restricted mean survival time
(RMST) with Greenwood-type variance, exponential/Weibull model evaluation,
and decomposition of a curve over prognostic subgroups with known hazard
ratios.

Validates against: R packages survival (survfit, survdiff), survRM2.
"""

from pysurvplan.survival._common import (
    KaplanMeierCurve,
    KaplanMeierByArm,
    SurvivalPoint,
    TrialArm,
)
from pysurvplan.survival._kaplan_meier import kaplan_meier
from pysurvplan.survival._logrank import logrank_test, LogRankResult
from pysurvplan.survival._rmst import (
    rmst,
    rmst_variance,
    compare_rmst,
    RMSTComparisonResult,
)
from pysurvplan.survival._parametric import (
    fit_exponential,
    evaluate_exponential,
    evaluate_weibull,
    exponential_curve,
    generate_time_points,
    lambda_to_median,
    median_to_lambda,
    weibull_to_median,
    baseline_to_treatment_survival,
)
from pysurvplan.survival._decomposition import (
    AllocationChange,
    fit_reference_survival,
    compose_survival,
    recompose_survival,
    apply_hazard_ratio,
    recompose_by_arm,
    decompose_by_arm,
    adjust_by_arm,
)

__all__ = [
    "KaplanMeierCurve",
    "KaplanMeierByArm",
    "SurvivalPoint",
    "TrialArm",
    "kaplan_meier",
    "logrank_test",
    "LogRankResult",
    "rmst",
    "rmst_variance",
    "compare_rmst",
    "RMSTComparisonResult",
    "fit_exponential",
    "evaluate_exponential",
    "evaluate_weibull",
    "exponential_curve",
    "generate_time_points",
    "lambda_to_median",
    "median_to_lambda",
    "weibull_to_median",
    "baseline_to_treatment_survival",
    "AllocationChange",
    "fit_reference_survival",
    "compose_survival",
    "recompose_survival",
    "apply_hazard_ratio",
    "recompose_by_arm",
    "decompose_by_arm",
    "adjust_by_arm",
]
