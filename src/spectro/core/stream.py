"""
Streaming frame extraction for offline spectrogram analysis.

Architecture Overview
---------------------
::

    Decoder chunk (interleaved PCM)
        │
        ▼  mix_to_mono()
    MonoFifo.append(mono)              (trailing window, compacted lazily)
        │
        ▼  while available >= fft_size
    FrameScheduler                      (candidate frames, hop_size apart)
        │
        ├─► candidate % stride != 0  → skipped, never computed
        │
        └─► SpectralFrameComputer.compute(view)
                 └─► ColumnAggregator.add(power)

Design Goals
------------
* **Bounded memory**: only samples not yet consumed by a frame are kept;
  the consumed prefix is dropped once it dominates the buffer.
* **Bounded work**: the stride is chosen up front so roughly
  ``max_columns * target_frames_per_column`` frames are computed, however
  long the recording. Frames between sampled ones are discarded; this is
  a deliberate approximation.
* **Cancellable**: the scheduler polls its token every
  ``CANCEL_CHECK_INTERVAL`` candidates.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

import numpy as np

from spectro.core.aggregator import ColumnAggregator
from spectro.core.cancellation import CancellationToken
from spectro.core.spectrum import SpectralFrameComputer

logger = logging.getLogger(__name__)

COMPACTION_THRESHOLD = 65536
CANCEL_CHECK_INTERVAL = 64


def candidate_frame_count(n_samples: int, fft_size: int, hop_size: int) -> int:
    """
    Number of candidate frames a signal of ``n_samples`` yields.

    Counts full frames plus one zero-padded frame for a tail that extends
    past the last full frame.
    """
    if n_samples <= 0:
        return 0
    if n_samples <= fft_size:
        return 1
    return int(math.ceil((n_samples - fft_size) / hop_size)) + 1


def frame_stride(candidates: int, max_columns: int, target_frames_per_column: int) -> int:
    """Decimation stride so about ``max_columns * target`` frames get computed."""
    budget = max(1, max_columns * target_frames_per_column)
    return max(1, candidates // budget)


def processed_frame_count(candidates: int, stride: int) -> int:
    """Frames whose candidate index is a multiple of ``stride``."""
    if candidates <= 0:
        return 0
    return (candidates + stride - 1) // stride


class MonoFifo:
    """
    Growable FIFO of mono float32 samples with a logical read cursor.

    Parameters
    ----------
    initial_capacity:
        Starting allocation in samples; grows geometrically.
    compaction_threshold:
        The consumed prefix is only dropped once the cursor is past this
        many samples and past half of the buffered data, which keeps the
        amortised cost per sample constant.
    """

    def __init__(
        self,
        initial_capacity: int = 1 << 17,
        compaction_threshold: int = COMPACTION_THRESHOLD,
    ):
        self._data = np.zeros(max(1, initial_capacity), dtype=np.float32)
        self._length = 0
        self.cursor = 0
        self.compaction_threshold = compaction_threshold
        self.total_appended = 0

    @property
    def capacity(self) -> int:
        return len(self._data)

    @property
    def buffered(self) -> int:
        """Samples held, consumed or not."""
        return self._length

    @property
    def available(self) -> int:
        """Samples at or after the cursor."""
        return self._length - self.cursor

    def append(self, samples: np.ndarray) -> None:
        n = len(samples)
        if n == 0:
            return
        needed = self._length + n
        if needed > len(self._data):
            new_capacity = max(needed, 2 * len(self._data))
            grown = np.zeros(new_capacity, dtype=np.float32)
            grown[:self._length] = self._data[:self._length]
            self._data = grown
        self._data[self._length:needed] = samples
        self._length = needed
        self.total_appended += n

    def peek(self, n: int) -> np.ndarray:
        """View of the next ``n`` samples; valid until the next append."""
        if n > self.available:
            raise ValueError(f"requested {n} samples, only {self.available} available")
        return self._data[self.cursor:self.cursor + n]

    def advance(self, n: int) -> None:
        self.cursor = min(self._length, self.cursor + n)
        if self.cursor > self.compaction_threshold and self.cursor > self._length // 2:
            self._compact()

    def _compact(self) -> None:
        remaining = self._length - self.cursor
        self._data[:remaining] = self._data[self.cursor:self._length]
        self._length = remaining
        self.cursor = 0

    def remainder(self) -> np.ndarray:
        """Copy of every unconsumed sample."""
        return self._data[self.cursor:self._length].copy()


class FrameScheduler:
    """
    Drives frame extraction from a :class:`MonoFifo`.

    Every ``hop_size`` samples a candidate frame becomes available; only
    candidates whose index is a multiple of ``stride`` are computed and
    forwarded to the aggregator. The stride is fixed for the whole run.
    """

    def __init__(
        self,
        computer: SpectralFrameComputer,
        aggregator: ColumnAggregator,
        hop_size: int,
        stride: int = 1,
        token: Optional[CancellationToken] = None,
        fifo: Optional[MonoFifo] = None,
    ):
        self.computer = computer
        self.aggregator = aggregator
        self.fft_size = computer.fft_size
        self.hop_size = hop_size
        self.stride = max(1, stride)
        self.token = token
        self.fifo = fifo if fifo is not None else MonoFifo()

        self.candidates = 0
        self.processed = 0
        self._full_frames = 0
        self._finished = False

    def _offer(self, frame: np.ndarray) -> None:
        if self.candidates % CANCEL_CHECK_INTERVAL == 0 and self.token is not None:
            self.token.raise_if_cancelled()
        if self.candidates % self.stride == 0:
            self.aggregator.add(self.computer.compute(frame))
            self.processed += 1
        self.candidates += 1

    def push(self, mono: np.ndarray) -> None:
        """Append mono samples and consume every complete candidate frame."""
        if self._finished:
            raise RuntimeError("push() after finish()")
        self.fifo.append(mono)
        while self.fifo.available >= self.fft_size:
            self._offer(self.fifo.peek(self.fft_size))
            self._full_frames += 1
            self.fifo.advance(self.hop_size)

    def finish(self) -> None:
        """
        Flush the tail at end of stream.

        A tail that reaches past the last full frame (or any tail when no
        full frame fit) is zero-padded into one final candidate.
        """
        if self._finished:
            return
        self._finished = True

        tail = self.fifo.remainder()
        overlap = self.fft_size - self.hop_size
        if len(tail) == 0:
            return
        if self._full_frames > 0 and len(tail) <= overlap:
            return

        padded = np.zeros(self.fft_size, dtype=np.float32)
        padded[:len(tail)] = tail
        self._offer(padded)
        self.fifo.advance(len(tail))
        logger.debug(
            "Flushed %d-sample tail as padded frame %d", len(tail), self.candidates - 1
        )
