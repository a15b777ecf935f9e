"""Shared result type and helpers for closed-form sample size calculations."""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass

from scipy.optimize import brentq
from scipy.stats import norm

from pysurvplan._exceptions import ValidationError

_VALID_ALTERNATIVES = ("two.sided", "one.sided")


@dataclass(frozen=True)
class PowerResult:
    """Result of a power/sample size calculation.

    Exactly one of n, power, or hazard_ratio was solved for (the argument
    passed as None); the others echo the inputs.
    """

    n: int | None
    power: float | None
    hazard_ratio: float | None
    alpha: float
    alternative: str
    method: str
    events: float | None = None
    note: str = ""

    def summary(self) -> str:
        """Human-readable summary, similar to R's print.power.htest."""
        lines = [self.method, ""]
        if self.n is not None:
            lines.append(f"              n = {self.n}")
        if self.events is not None:
            lines.append(f"         events = {self.events:.1f}")
        if self.hazard_ratio is not None:
            lines.append(f"   hazard ratio = {self.hazard_ratio:.6f}")
        lines.append(f"          alpha = {self.alpha}")
        if self.power is not None:
            lines.append(f"          power = {self.power:.6f}")
        lines.append(f"    alternative = {self.alternative}")
        if self.note:
            lines.append("")
            lines.append(f"NOTE: {self.note}")
        return "\n".join(lines)


def z_alpha(alpha: float, alternative: str = "two.sided") -> float:
    """Critical z-value for the given alpha and sidedness."""
    if alternative not in _VALID_ALTERNATIVES:
        raise ValidationError(
            f"alternative must be one of {_VALID_ALTERNATIVES}, got {alternative!r}"
        )
    if alternative == "two.sided":
        return float(norm.ppf(1.0 - alpha / 2.0))
    return float(norm.ppf(1.0 - alpha))


# ---------------------------------------------------------------------------
# Shared validation
# ---------------------------------------------------------------------------

def _check_power_args(
    *,
    n: int | float | None,
    hr: float | None,
    power: float | None,
    alpha: float,
) -> str:
    """Validate power-analysis inputs. Return the name of the parameter to solve for.

    Rules
    -----
    - Exactly one of *n*, *hr*, *power* must be ``None``.
    - *alpha* must be in (0, 1).
    - If provided, *n* must be >= 2.
    - If provided, *power* must be in (0, 1).
    - If provided, *hr* must be finite, positive and != 1.

    Returns
    -------
    str
        ``'n'``, ``'hr'``, or ``'power'``.

    Raises
    ------
    ValidationError
        On any validation failure.
    """
    none_count = sum(x is None for x in (n, hr, power))
    if none_count != 1:
        raise ValidationError(
            f"Exactly one of n, hr, power must be None (got {none_count} None values)"
        )

    if not (0.0 < alpha < 1.0):
        raise ValidationError(f"alpha must be in (0, 1), got {alpha}")

    if n is not None and n < 2:
        raise ValidationError(f"n must be >= 2, got {n}")

    if power is not None and not (0.0 < power < 1.0):
        raise ValidationError(f"power must be in (0, 1), got {power}")

    if hr is not None:
        if not math.isfinite(hr) or hr <= 0.0:
            raise ValidationError(f"hr must be finite and > 0, got {hr}")
        if hr == 1.0:
            raise ValidationError("hr must be != 1.0 (no effect)")

    if n is None:
        return "n"
    if hr is None:
        return "hr"
    return "power"


# ---------------------------------------------------------------------------
# Shared root-finding
# ---------------------------------------------------------------------------

def _solve_parameter(
    func: Callable[[float], float],
    target: float,
    bracket: tuple[float, float],
    *,
    xtol: float = 1e-10,
    maxiter: int = 1000,
) -> float:
    """Solve ``func(x) == target`` via Brent's method.

    ``func(lower) - target`` and ``func(upper) - target`` must have
    opposite signs.

    Raises
    ------
    ValidationError
        If the bracket does not straddle the target.
    """
    lo, hi = bracket
    f_lo = func(lo) - target
    f_hi = func(hi) - target

    if f_lo * f_hi > 0:
        raise ValidationError(
            f"Cannot solve: target {target:.6f} is outside achievable range "
            f"[{func(lo):.6f}, {func(hi):.6f}] for the given parameters. "
            f"Try different input values."
        )

    return brentq(lambda x: func(x) - target, lo, hi, xtol=xtol, maxiter=maxiter)
