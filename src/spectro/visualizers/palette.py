"""
Spectrogram colour palette.

A piecewise-linear ramp from black through indigo, magenta, red and
orange to near-white. The lookup table is built once per process and
shared read-only.
"""

from functools import lru_cache
from typing import Tuple

import numpy as np

RGB = Tuple[int, int, int]

LUT_SIZE = 1024

PALETTE_STOPS: Tuple[Tuple[float, RGB], ...] = (
    (0.00, (0, 0, 0)),
    (0.12, (0, 0, 38)),
    (0.28, (10, 0, 96)),
    (0.46, (84, 0, 138)),
    (0.62, (205, 0, 72)),
    (0.76, (255, 26, 0)),
    (0.88, (255, 148, 0)),
    (0.96, (255, 225, 58)),
    (1.00, (255, 255, 245)),
)


def _lerp_channel(a: int, b: int, t: float) -> int:
    value = int(np.floor(a + (b - a) * t + 0.5))
    return min(255, max(0, value))


def palette_color(value: float) -> RGB:
    """
    Exact palette colour at a normalised position.

    Args:
        value: Position in [0, 1]; out-of-range values are clamped.

    Returns:
        (r, g, b) with 8-bit channels.
    """
    value = min(1.0, max(0.0, float(value)))

    for upper_index, (position, color) in enumerate(PALETTE_STOPS):
        if value <= position:
            break
    else:
        return PALETTE_STOPS[-1][1]

    if upper_index == 0:
        return PALETTE_STOPS[0][1]

    lower_pos, lower_color = PALETTE_STOPS[upper_index - 1]
    upper_pos, upper_color = PALETTE_STOPS[upper_index]
    span = max(0.0001, upper_pos - lower_pos)
    t = (value - lower_pos) / span
    return (
        _lerp_channel(lower_color[0], upper_color[0], t),
        _lerp_channel(lower_color[1], upper_color[1], t),
        _lerp_channel(lower_color[2], upper_color[2], t),
    )


@lru_cache(maxsize=1)
def palette_lut() -> np.ndarray:
    """``(LUT_SIZE, 3)`` uint8 table; entry i is the colour at i / (LUT_SIZE - 1)."""
    table = np.array(
        [palette_color(i / (LUT_SIZE - 1)) for i in range(LUT_SIZE)], dtype=np.uint8
    )
    table.setflags(write=False)
    return table


def lookup(normalized: np.ndarray) -> np.ndarray:
    """Vectorised LUT lookup for values in [0, 1]; returns ``(..., 3)`` uint8."""
    lut = palette_lut()
    indices = np.floor(np.clip(normalized, 0.0, 1.0) * (LUT_SIZE - 1) + 0.5).astype(np.intp)
    return lut[indices]
