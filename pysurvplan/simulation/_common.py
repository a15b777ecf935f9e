"""Shared result types and percentile helpers for power simulations."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

from pysurvplan._exceptions import ValidationError


@dataclass(frozen=True)
class SimulationResult:
    """Per-replicate distributions for one sample size.

    Each array has length ``dataset_sim_count``.
    """

    sample_size: int
    control_hazard_dist: NDArray[np.floating]
    treat_hazard_dist: NDArray[np.floating]
    p_value_dist: NDArray[np.floating]
    rmst_p_value_dist: NDArray[np.floating] | None = None

    @property
    def n_replicates(self) -> int:
        return int(self.p_value_dist.shape[0])

    def power(self, alpha: float = 0.05) -> float:
        """Fraction of replicates rejecting at ``alpha``."""
        return float(np.mean(self.p_value_dist < alpha))


@dataclass(frozen=True)
class SimulationSummary:
    """Percentile summary of a :class:`SimulationResult`."""

    sample_size: int
    base_interval: tuple[float, float]
    treat_interval: tuple[float, float]
    pvalue_interval: tuple[float, ...]
    rmst_pvalue_interval: tuple[float, ...] | None = None
    power: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Payload in the presentation layer's key convention."""
        payload: dict[str, Any] = {
            "sampleSize": self.sample_size,
            "baseInterval": list(self.base_interval),
            "treatInterval": list(self.treat_interval),
            "pvalueInterval": list(self.pvalue_interval),
        }
        if self.rmst_pvalue_interval is not None:
            payload["rmstPvalueInterval"] = list(self.rmst_pvalue_interval)
        return payload

    def summary(self) -> str:
        lines = [f"Simulation summary (n = {self.sample_size})", ""]
        lines.append(
            f"  control hazard   = [{self.base_interval[0]:.4g}, {self.base_interval[1]:.4g}]"
        )
        lines.append(
            f"  treat hazard     = [{self.treat_interval[0]:.4g}, {self.treat_interval[1]:.4g}]"
        )
        lines.append(
            "  p-value pct      = " + ", ".join(f"{p:.4g}" for p in self.pvalue_interval)
        )
        if self.rmst_pvalue_interval is not None:
            lines.append(
                "  RMST p-value pct = "
                + ", ".join(f"{p:.4g}" for p in self.rmst_pvalue_interval)
            )
        if self.power is not None:
            lines.append(f"  power            = {self.power:.4f}")
        return "\n".join(lines)


def get_percentiles(
    data: Sequence[float] | NDArray[np.floating], percentiles: Sequence[float]
) -> NDArray[np.floating]:
    """Percentiles by linear interpolation between order statistics.

    The rank of percentile ``p`` is ``p / 100 * (n - 1)``; fractional ranks
    interpolate between the two neighbouring sorted values.  Empty data
    gives ``nan`` for every percentile.

    Raises
    ------
    ValidationError
        If any percentile is outside [0, 100].

    Examples
    --------
    >>> get_percentiles(range(1, 11), [10, 50, 90]).tolist()
    [1.9, 5.5, 9.1]
    """
    pct = np.asarray(percentiles, dtype=np.float64)
    if np.any((pct < 0) | (pct > 100)):
        raise ValidationError("Percentile values must be between 0 and 100.")

    values = np.asarray(data, dtype=np.float64)
    if values.size == 0:
        return np.full(pct.shape, np.nan)
    return np.percentile(values, pct, method="linear")
