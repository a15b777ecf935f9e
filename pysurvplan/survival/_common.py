"""Shared data types for survival curves and trial-arm payloads."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

from pysurvplan._exceptions import ValidationError


@dataclass(frozen=True)
class SurvivalPoint:
    """A single (time, survival probability) pair."""

    time: float
    surv_prob: float


@dataclass(frozen=True)
class KaplanMeierCurve:
    """Step-function survival curve.

    ``time`` and ``probability`` are aligned.  ``events_at_time`` and
    ``at_risk_at_time`` are only present on curves estimated from raw
    observations and are required for variance calculations.
    ``interval`` is an ``(n, 2)`` array of display-only confidence bounds.
    """

    time: NDArray[np.floating]
    probability: NDArray[np.floating]
    events_at_time: NDArray[np.floating] | None = None
    at_risk_at_time: NDArray[np.floating] | None = None
    interval: NDArray[np.floating] | None = None

    def __post_init__(self) -> None:
        time = np.asarray(self.time, dtype=np.float64)
        probability = np.asarray(self.probability, dtype=np.float64)
        if time.ndim != 1 or probability.ndim != 1:
            raise ValidationError("time and probability must be 1-D arrays")
        if time.shape[0] != probability.shape[0]:
            raise ValidationError(
                f"time and probability must have the same length, "
                f"got {time.shape[0]} and {probability.shape[0]}"
            )
        object.__setattr__(self, "time", time)
        object.__setattr__(self, "probability", probability)

        for name in ("events_at_time", "at_risk_at_time"):
            value = getattr(self, name)
            if value is None:
                continue
            arr = np.asarray(value, dtype=np.float64)
            if arr.shape != time.shape:
                raise ValidationError(
                    f"{name} must have the same length as time, "
                    f"got {arr.shape[0] if arr.ndim else 0} and {time.shape[0]}"
                )
            object.__setattr__(self, name, arr)

        if self.interval is not None:
            interval = np.asarray(self.interval, dtype=np.float64)
            if interval.shape != (time.shape[0], 2):
                raise ValidationError(
                    f"interval must have shape ({time.shape[0]}, 2), got {interval.shape}"
                )
            object.__setattr__(self, "interval", interval)

    def __len__(self) -> int:
        return int(self.time.shape[0])

    @property
    def has_risk_table(self) -> bool:
        """True if event and at-risk counts are attached."""
        return self.events_at_time is not None and self.at_risk_at_time is not None

    def with_probability(self, probability: NDArray[np.floating]) -> KaplanMeierCurve:
        """New curve on the same time grid with different probabilities.

        Risk-table counts are dropped: they describe the observed sample,
        not a synthesized curve.
        """
        return KaplanMeierCurve(time=self.time.copy(), probability=probability)

    def points(self) -> list[SurvivalPoint]:
        """Curve as a list of :class:`SurvivalPoint`."""
        return [
            SurvivalPoint(float(t), float(p))
            for t, p in zip(self.time, self.probability)
        ]

    def median(self) -> float | None:
        """First time at which the curve reaches 0.5 or below, if any."""
        below = np.nonzero(self.probability <= 0.5)[0]
        if below.size == 0:
            return None
        return float(self.time[below[0]])

    def to_dict(self) -> dict[str, Any]:
        """Plain-list payload for the presentation layer."""
        payload: dict[str, Any] = {
            "time": self.time.tolist(),
            "probability": self.probability.tolist(),
        }
        if self.events_at_time is not None:
            payload["events_at_time"] = self.events_at_time.tolist()
        if self.at_risk_at_time is not None:
            payload["at_risk_at_time"] = self.at_risk_at_time.tolist()
        if self.interval is not None:
            payload["interval"] = self.interval.tolist()
        return payload

    @staticmethod
    def from_dict(payload: dict[str, Any]) -> KaplanMeierCurve:
        """Build from a payload produced by :meth:`to_dict` or a JSON file."""
        return KaplanMeierCurve(
            time=payload["time"],
            probability=payload["probability"],
            events_at_time=payload.get("events_at_time"),
            at_risk_at_time=payload.get("at_risk_at_time"),
            interval=payload.get("interval"),
        )

    def summary(self) -> str:
        """Human-readable curve summary."""
        lines = ["Kaplan-Meier curve", ""]
        lines.append(f"  points        = {len(self)}")
        if len(self):
            lines.append(f"  time range    = [{self.time[0]:.4g}, {self.time[-1]:.4g}]")
            lines.append(f"  final S(t)    = {self.probability[-1]:.4f}")
        median = self.median()
        lines.append(
            f"  median        = {median:.4g}" if median is not None
            else "  median        = not reached"
        )
        if self.has_risk_table:
            lines.append(f"  total events  = {int(self.events_at_time.sum())}")
        return "\n".join(lines)


@dataclass(frozen=True)
class TrialArm:
    """Raw observations for one trial arm.

    ``events`` holds 1 for an observed event and 0 for right-censoring.
    """

    arm_name: str
    times: NDArray[np.floating]
    events: NDArray[np.uint8]

    def __post_init__(self) -> None:
        times, events = validate_observations(self.times, self.events)
        object.__setattr__(self, "times", times)
        object.__setattr__(self, "events", events)

    @staticmethod
    def from_dict(payload: dict[str, Any]) -> TrialArm:
        """Build from ``{arm_name, time, events}`` with boolean events."""
        times = payload.get("time", payload.get("times"))
        if times is None:
            raise ValidationError("trial arm payload needs a 'time' array")
        return TrialArm(
            arm_name=payload["arm_name"],
            times=np.asarray(times, dtype=np.float64),
            events=np.asarray(payload["events"], dtype=bool).astype(np.uint8),
        )


@dataclass(frozen=True)
class KaplanMeierByArm:
    """Precomputed curves for every arm of a trial."""

    arm_names: tuple[str, ...]
    curves: tuple[KaplanMeierCurve, ...]
    time_scale: str = "months"

    def __post_init__(self) -> None:
        if len(self.arm_names) != len(self.curves):
            raise ValidationError(
                f"arm_names and curves must have the same length, "
                f"got {len(self.arm_names)} and {len(self.curves)}"
            )
        object.__setattr__(self, "arm_names", tuple(self.arm_names))
        object.__setattr__(self, "curves", tuple(self.curves))

    def curve_for(self, arm_name: str) -> KaplanMeierCurve:
        """Curve of the named arm."""
        try:
            return self.curves[self.arm_names.index(arm_name)]
        except ValueError:
            raise ValidationError(
                f"unknown arm {arm_name!r}, expected one of {list(self.arm_names)}"
            ) from None

    @staticmethod
    def from_dict(payload: dict[str, Any]) -> KaplanMeierByArm:
        """Build from ``{arm_names, curves, time_scale}``."""
        return KaplanMeierByArm(
            arm_names=tuple(payload["arm_names"]),
            curves=tuple(KaplanMeierCurve.from_dict(c) for c in payload["curves"]),
            time_scale=payload.get("time_scale", "months"),
        )


# ---------------------------------------------------------------------------
# Shared validation
# ---------------------------------------------------------------------------

def validate_observations(
    times: NDArray, events: NDArray
) -> tuple[NDArray[np.floating], NDArray[np.uint8]]:
    """Coerce a (times, events) pair and check it is well formed."""
    times = np.asarray(times, dtype=np.float64)
    events = np.asarray(events)

    if times.ndim != 1 or events.ndim != 1:
        raise ValidationError("times and events must be 1-D arrays")
    if times.shape[0] != events.shape[0]:
        raise ValidationError(
            f"times and events must have the same length, "
            f"got {times.shape[0]} and {events.shape[0]}"
        )
    if events.size and not np.all((events == 0) | (events == 1)):
        raise ValidationError("events must contain only 0 (censored) and 1 (event)")

    return times, events.astype(np.uint8)
