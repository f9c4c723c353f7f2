"""Power-to-decibel conversion and cutoff clamping."""

import math
from typing import Optional

import numpy as np

POWER_FLOOR = 1e-20


def to_decibels(power: np.ndarray, min_decibels: float, max_decibels: float) -> np.ndarray:
    """``10 * log10(power)`` with a power floor, clamped to the dB range."""
    decibels = 10.0 * np.log10(np.maximum(power, POWER_FLOOR))
    return np.clip(decibels, min_decibels, max_decibels).astype(np.float32)


def cutoff_bin(cutoff_hz: float, sample_rate_hz: float, bins: int) -> Optional[int]:
    """
    Bin index of a cutoff frequency, by linear mapping of ``[0, Nyquist]``
    onto ``[0, bins - 1]``. None when the sample rate is unusable.
    """
    nyquist = sample_rate_hz / 2.0
    if nyquist <= 0:
        return None
    normalized = min(1.0, max(0.0, cutoff_hz / nyquist))
    hinted = int(math.floor((bins - 1) * normalized + 0.5))
    return min(max(0, hinted), bins - 1)


def apply_cutoff(decibels: np.ndarray, bin_index: int, floor_decibels: float) -> np.ndarray:
    """Force every bin above ``bin_index`` in every column to the floor (in place)."""
    if 0 <= bin_index < decibels.shape[1] - 1:
        decibels[:, bin_index + 1:] = floor_decibels
    return decibels


def calibrate(
    power: np.ndarray,
    sample_rate_hz: float,
    min_decibels: float,
    max_decibels: float,
    cutoff_hz: Optional[float] = None,
) -> np.ndarray:
    """
    Build the clamped ``columns x bins`` decibel matrix.

    Args:
        power: Averaged power, shape ``(columns, bins)``.
        sample_rate_hz: Sample rate the power was computed at.
        min_decibels: Floor; also the value written above the cutoff.
        max_decibels: Ceiling.
        cutoff_hz: Optional lossy-codec cutoff hint.

    Returns:
        float32 matrix, marked read-only.
    """
    decibels = to_decibels(power, min_decibels, max_decibels)
    if cutoff_hz is not None:
        index = cutoff_bin(cutoff_hz, sample_rate_hz, decibels.shape[1])
        if index is not None:
            apply_cutoff(decibels, index, min_decibels)
    decibels.setflags(write=False)
    return decibels
