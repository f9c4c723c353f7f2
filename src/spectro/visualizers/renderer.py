"""
Rasterise a decibel matrix into an RGBA bitmap.

Axis mapping: column x of the image is time column x; row 0 is
``max_frequency`` and the last row is ``min_frequency``, linear in Hz.
Each row samples the spectrum at a fractional bin, interpolating between
the two neighbouring bins.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image

from spectro.errors import RenderingFailed
from spectro.visualizers.palette import lookup

BYTES_PER_PIXEL = 4


@dataclass(frozen=True)
class RenderedImage:
    """RGBA8 pixels shaped ``(height, width, 4)``, row 0 at the top."""

    pixels: np.ndarray

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def bytes_per_row(self) -> int:
        return self.width * BYTES_PER_PIXEL

    def pixel(self, x: int, y: int) -> tuple:
        """(r, g, b, a) at column x, row y."""
        return tuple(int(v) for v in self.pixels[y, x])

    def to_bytes(self) -> bytes:
        return self.pixels.tobytes()

    def to_pil(self) -> Image.Image:
        return Image.fromarray(self.pixels.copy())

    def save(self, path: Union[str, Path]) -> None:
        self.to_pil().save(str(path), "PNG")


def row_bin_positions(
    height: int,
    bins: int,
    sample_rate_hz: float,
    min_frequency_hz: float,
    max_frequency_hz: float,
) -> np.ndarray:
    """Fractional spectral bin sampled by each pixel row, top row first."""
    min_hz = max(0.0, min_frequency_hz)
    max_hz = max(max_frequency_hz, min_hz + 1.0)
    rows = np.arange(height, dtype=np.float64)
    normalized_y = (height - 1 - rows) / max(1, height - 1)
    frequency = min_hz + normalized_y * (max_hz - min_hz)
    positions = frequency * ((bins - 1) * 2) / sample_rate_hz
    return np.clip(positions, 0.0, bins - 1)


def render_spectrogram(
    decibels: np.ndarray,
    sample_rate_hz: float,
    min_frequency_hz: float,
    max_frequency_hz: float,
    min_decibels: float,
    max_decibels: float,
    image_height: int,
) -> RenderedImage:
    """
    Map a ``(columns, bins)`` decibel matrix to an opaque RGBA image.

    Args:
        decibels: Calibrated decibels, one row per time column.
        sample_rate_hz: Sample rate of the analysed signal.
        min_frequency_hz: Frequency shown on the bottom row.
        max_frequency_hz: Frequency shown on the top row.
        min_decibels: Value mapped to the first palette colour.
        max_decibels: Value mapped to the last palette colour.
        image_height: Output height in pixels.

    Returns:
        RenderedImage ``columns`` wide and ``image_height`` tall.

    Raises:
        RenderingFailed: Empty geometry, bad sample rate, or allocation failure.
    """
    if decibels.ndim != 2:
        raise RenderingFailed(detail=f"expected a 2-D matrix, got shape {decibels.shape}")
    columns, bins = decibels.shape
    if columns <= 0 or bins <= 1 or image_height <= 0 or sample_rate_hz <= 0:
        raise RenderingFailed(
            detail=(
                f"columns={columns}, bins={bins}, height={image_height}, "
                f"sample_rate={sample_rate_hz}"
            )
        )

    positions = row_bin_positions(
        image_height, bins, sample_rate_hz, min_frequency_hz, max_frequency_hz
    )
    lower = positions.astype(np.intp)
    upper = np.minimum(bins - 1, lower + 1)
    mix = (positions - lower).astype(np.float32)[:, np.newaxis]

    db_span = max(0.001, max_decibels - min_decibels)
    try:
        # (height, columns): row y samples every column at one fractional bin
        low = decibels[:, lower].T
        high = decibels[:, upper].T
        values = low + (high - low) * mix
        normalized = np.clip((values - min_decibels) / db_span, 0.0, 1.0)

        pixels = np.empty((image_height, columns, BYTES_PER_PIXEL), dtype=np.uint8)
        pixels[..., :3] = lookup(normalized)
        pixels[..., 3] = 255
    except MemoryError as exc:
        raise RenderingFailed(detail=f"{image_height}x{columns} bitmap: {exc}") from exc

    pixels.setflags(write=False)
    return RenderedImage(pixels)
