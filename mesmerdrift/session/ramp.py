"""
Linear parameter ramps.

A ramp holds ``start_value`` until ``start_minute``, moves linearly to
``end_value`` by ``end_minute`` and holds ``end_value`` afterwards. The scalar
form is evaluated by the controller every tick; the vectorized form feeds
timeline previews.
"""

from __future__ import annotations

import numpy as np


def _clamp01(t: float) -> float:
    if t < 0.0:
        return 0.0
    if t > 1.0:
        return 1.0
    return t


def ramp(
    elapsed: float,
    start_minute: float,
    end_minute: float,
    start_value: float,
    end_value: float,
) -> float:
    """
    Interpolate a parameter at *elapsed* minutes.

    Args:
        elapsed: Session time in minutes
        start_minute: Ramp window start
        end_minute: Ramp window end (must be > start_minute)
        start_value: Value at and before ``start_minute``
        end_value: Value at and after ``end_minute``

    Returns:
        ``start_value`` before the window, exactly ``end_value`` at or after
        the end, linear in between.

    Raises:
        ValueError: If the window is empty or reversed
    """
    if end_minute <= start_minute:
        raise ValueError(f"Ramp window must be increasing, got [{start_minute}, {end_minute}]")
    if elapsed >= end_minute:
        return float(end_value)
    if elapsed <= start_minute:
        return float(start_value)
    t = _clamp01((elapsed - start_minute) / (end_minute - start_minute))
    return start_value + (end_value - start_value) * t


def ramp_curve(
    minutes: np.ndarray,
    start_minute: float,
    end_minute: float,
    start_value: float,
    end_value: float,
) -> np.ndarray:
    """Vectorized :func:`ramp` over an array of session minutes."""
    if end_minute <= start_minute:
        raise ValueError(f"Ramp window must be increasing, got [{start_minute}, {end_minute}]")
    minutes = np.asarray(minutes, dtype=float)
    t = np.clip((minutes - start_minute) / (end_minute - start_minute), 0.0, 1.0)
    values = start_value + (end_value - start_value) * t
    # Pin the tail so the end value is exact, matching the scalar form.
    return np.where(minutes >= end_minute, float(end_value), values)
