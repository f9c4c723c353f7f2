"""
Fold a stream of per-frame power spectra into a bounded set of columns.

Memory is ``max_columns * bins`` sums regardless of how many frames
arrive. Frames map to columns monotonically, so each column averages a
contiguous run of frames.
"""

import logging
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)


def column_for_frame(index: int, columns: int, frames_per_column: float) -> int:
    """Column of the ``index``-th processed frame."""
    return min(columns - 1, int(index / frames_per_column))


class ColumnAggregator:
    """
    Running per-column power sums.

    Parameters
    ----------
    bins:
        Spectral bins per frame.
    max_columns:
        Upper bound on output columns.
    expected_frames:
        Planned number of processed frames. ``columns`` becomes
        ``min(max_columns, expected_frames)``. When None (length unknown),
        columns start at one frame each and adjacent pairs are merged
        whenever ``max_columns`` would be exceeded.
    """

    def __init__(self, bins: int, max_columns: int, expected_frames: Optional[int] = None):
        self.bins = bins
        self.max_columns = max(1, max_columns)
        self.expected_frames = expected_frames
        self.frames_seen = 0

        if expected_frames is not None and expected_frames > 0:
            self.columns = min(self.max_columns, expected_frames)
            self.frames_per_column = expected_frames / self.columns
            self._growable = False
        else:
            self.columns = self.max_columns
            self.frames_per_column = 1
            self._growable = True

        self._sums = np.zeros((self.columns, bins), dtype=np.float64)
        self._counts = np.zeros(self.columns, dtype=np.int64)
        self._last_column = -1

    def add(self, power: np.ndarray) -> int:
        """Accumulate the next processed frame; returns its column."""
        if self._growable:
            column = self.frames_seen // self.frames_per_column
            if column >= self.columns:
                self._merge_pairs()
                column = self.frames_seen // self.frames_per_column
        else:
            column = column_for_frame(self.frames_seen, self.columns, self.frames_per_column)

        self._sums[column] += power
        self._counts[column] += 1
        self._last_column = column
        self.frames_seen += 1
        return column

    def _merge_pairs(self) -> None:
        """Halve time resolution: column j absorbs columns 2j and 2j+1."""
        used = self._last_column + 1
        pairs = (used + 1) // 2
        merged_sums = np.zeros_like(self._sums)
        merged_counts = np.zeros_like(self._counts)
        for j in range(pairs):
            merged_sums[j] = self._sums[2 * j:2 * j + 2].sum(axis=0)
            merged_counts[j] = self._counts[2 * j:2 * j + 2].sum()
        self._sums = merged_sums
        self._counts = merged_counts
        self._last_column = pairs - 1
        self.frames_per_column *= 2
        logger.debug(
            "Merged columns after %d frames; now %d frames per column",
            self.frames_seen,
            self.frames_per_column,
        )

    def finalize(self) -> np.ndarray:
        """
        Average power per bin per column.

        Returns:
            ``(used_columns, bins)`` float64 matrix. Columns after the last
            one that received a frame are dropped.
        """
        used = max(1, self._last_column + 1)
        counts = np.maximum(self._counts[:used], 1)
        if not self._growable and used < self.columns:
            logger.debug(
                "Planned %d columns but only %d received frames", self.columns, used
            )
        return self._sums[:used] / counts[:, np.newaxis]
