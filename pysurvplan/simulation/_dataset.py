"""Synthetic trial datasets with uniform enrollment and administrative censoring.

Each subject enrolls at ``U(0, accrual)`` and the study closes at
``accrual + followup``.  A subject whose enrollment-adjusted time passes
the close date is censored there; reported times are measured from
enrollment.

Bulk exponential generation has a CPU path (numpy) and a GPU path
(PyTorch).  The GPU path pays off when ``sim_count * sample_size`` is in
the millions.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from pysurvplan._exceptions import ValidationError

_VALID_BACKENDS = ("cpu", "gpu", "auto")


def censor(
    samples: NDArray[np.floating], max_time: float
) -> tuple[NDArray[np.floating], NDArray[np.uint8]]:
    """Administrative censoring at ``max_time``.

    Returns the censored times and event indicators (1 if ``sample < max_time``).
    """
    samples = np.asarray(samples, dtype=np.float64)
    events = (samples < max_time).astype(np.uint8)
    return np.minimum(samples, max_time), events


def _check_design(sample_size: int, sim_count: int, accrual: float, followup: float) -> None:
    if sample_size < 1:
        raise ValidationError(f"sample_size must be >= 1, got {sample_size}")
    if sim_count < 1:
        raise ValidationError(f"sim_count must be >= 1, got {sim_count}")
    if accrual < 0 or followup < 0:
        raise ValidationError(
            f"accrual and followup must be >= 0, got {accrual} and {followup}"
        )
    if accrual + followup <= 0:
        raise ValidationError("accrual + followup must be > 0")


# ---------------------------------------------------------------------------
# CPU path
# ---------------------------------------------------------------------------

def _sample_dataset_cpu(
    hazard: float,
    sim_count: int,
    sample_size: int,
    accrual: float,
    followup: float,
    rng: np.random.Generator,
) -> tuple[NDArray[np.floating], NDArray[np.uint8]]:
    shape = (sim_count, sample_size)
    samples = rng.exponential(1.0 / hazard, size=shape)
    enrollment = rng.uniform(0.0, accrual, size=shape)

    censored, events = censor(samples + enrollment, accrual + followup)
    return censored - enrollment, events


# ---------------------------------------------------------------------------
# GPU path
# ---------------------------------------------------------------------------

def _sample_dataset_gpu(
    hazard: float,
    sim_count: int,
    sample_size: int,
    accrual: float,
    followup: float,
    rng: np.random.Generator,
) -> tuple[NDArray[np.floating], NDArray[np.uint8]]:
    """Same draw as the CPU path on a PyTorch device.

    The torch generator is seeded from ``rng`` so results stay reproducible
    for a given seed, though they differ from the CPU stream.
    """
    import torch

    if torch.cuda.is_available():
        device = torch.device("cuda")
    elif hasattr(torch.backends, "mps") and torch.backends.mps.is_available():
        device = torch.device("mps")
    else:
        device = torch.device("cpu")

    # MPS uses float32, others float64
    dtype = torch.float32 if device.type == "mps" else torch.float64

    gen = torch.Generator(device=device)
    gen.manual_seed(int(rng.integers(0, 2**62)))

    shape = (sim_count, sample_size)
    samples = torch.empty(shape, device=device, dtype=dtype).exponential_(hazard, generator=gen)
    enrollment = torch.rand(shape, device=device, dtype=dtype, generator=gen) * accrual

    shifted = samples + enrollment
    max_time = accrual + followup
    events = (shifted < max_time).to(torch.uint8)
    times = torch.clamp(shifted, max=max_time) - enrollment

    return (
        times.cpu().numpy().astype(np.float64),
        events.cpu().numpy(),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def sample_dataset(
    hazard: float,
    sim_count: int,
    sample_size: int,
    accrual: float,
    followup: float,
    rng: np.random.Generator,
    *,
    backend: str = "cpu",
) -> tuple[NDArray[np.floating], NDArray[np.uint8]]:
    """Draw ``sim_count`` exponential datasets of ``sample_size`` subjects.

    Parameters
    ----------
    hazard : float
        Exponential event rate (> 0).
    sim_count : int
        Number of datasets (rows).
    sample_size : int
        Subjects per dataset (columns).
    accrual, followup : float
        Enrollment window and post-enrollment follow-up.
    rng : numpy.random.Generator
        Random stream.
    backend : str
        ``'cpu'``, ``'gpu'``, or ``'auto'``.

    Returns
    -------
    times : float array, shape ``(sim_count, sample_size)``
        Time from enrollment to event or censoring.
    events : uint8 array, same shape
    """
    if hazard <= 0:
        raise ValidationError(f"hazard must be > 0, got {hazard}")
    _check_design(sample_size, sim_count, accrual, followup)
    if backend not in _VALID_BACKENDS:
        raise ValidationError(f"backend must be one of {_VALID_BACKENDS}, got {backend!r}")

    if backend == "cpu":
        return _sample_dataset_cpu(hazard, sim_count, sample_size, accrual, followup, rng)

    if backend == "gpu":
        return _sample_dataset_gpu(hazard, sim_count, sample_size, accrual, followup, rng)

    # auto: try GPU, fall back to CPU
    try:
        import torch

        has_gpu = torch.cuda.is_available() or (
            hasattr(torch.backends, "mps") and torch.backends.mps.is_available()
        )
        if has_gpu:
            return _sample_dataset_gpu(hazard, sim_count, sample_size, accrual, followup, rng)
    except ImportError:
        pass

    return _sample_dataset_cpu(hazard, sim_count, sample_size, accrual, followup, rng)


def resample(
    times: NDArray[np.floating],
    events: NDArray[np.integer],
    size: int,
    rng: np.random.Generator,
) -> tuple[NDArray[np.floating], NDArray[np.uint8]]:
    """Bootstrap ``size`` (time, event) pairs with replacement."""
    times = np.asarray(times, dtype=np.float64)
    events = np.asarray(events, dtype=np.uint8)
    if times.shape[0] == 0:
        raise ValidationError("cannot resample from an empty arm")
    if times.shape != events.shape:
        raise ValidationError(
            f"times and events must have the same length, "
            f"got {times.shape[0]} and {events.shape[0]}"
        )
    idx = rng.integers(0, times.shape[0], size=size)
    return times[idx], events[idx]


def resample_dataset(
    times: NDArray[np.floating],
    events: NDArray[np.integer],
    sim_count: int,
    sample_size: int,
    accrual: float,
    followup: float,
    rng: np.random.Generator,
) -> tuple[NDArray[np.floating], NDArray[np.uint8]]:
    """Bootstrap datasets from an observed arm, re-censored by the study design.

    An observation that was censored in the source data stays censored;
    enrollment censoring can only turn events into censorings.

    Returns
    -------
    times : float array, shape ``(sim_count, sample_size)``
    events : uint8 array, same shape
    """
    _check_design(sample_size, sim_count, accrual, followup)

    out_times = np.empty((sim_count, sample_size), dtype=np.float64)
    out_events = np.empty((sim_count, sample_size), dtype=np.uint8)
    for i in range(sim_count):
        r_times, r_events = resample(times, events, sample_size, rng)
        enrollment = rng.uniform(0.0, accrual, size=sample_size)

        censored, admin_events = censor(r_times + enrollment, accrual + followup)
        out_times[i] = censored - enrollment
        out_events[i] = np.where(admin_events == 0, 0, r_events)

    return out_times, out_events
