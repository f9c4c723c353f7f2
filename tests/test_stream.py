"""Tests for the mono FIFO and the frame scheduler."""

import numpy as np
import pytest

from spectro.core.aggregator import ColumnAggregator
from spectro.core.cancellation import CancellationToken
from spectro.core.spectrum import SpectralFrameComputer
from spectro.core.stream import (
    FrameScheduler,
    MonoFifo,
    candidate_frame_count,
    frame_stride,
    processed_frame_count,
)
from spectro.errors import Cancelled


class RecordingComputer:
    """Stands in for SpectralFrameComputer and keeps a copy of every frame."""

    def __init__(self, fft_size):
        self.fft_size = fft_size
        self.bins = fft_size // 2 + 1
        self.frames = []

    def compute(self, frame):
        self.frames.append(np.array(frame, copy=True))
        return np.zeros(self.bins)


def _scheduler(fft_size, hop_size, stride=1, expected=None, token=None):
    computer = RecordingComputer(fft_size)
    aggregator = ColumnAggregator(computer.bins, max_columns=64, expected_frames=expected)
    return FrameScheduler(computer, aggregator, hop_size, stride=stride, token=token), computer


# ---------------------------------------------------------------------------
# MonoFifo
# ---------------------------------------------------------------------------

class TestMonoFifo:
    def test_append_and_peek(self):
        fifo = MonoFifo(initial_capacity=8)
        fifo.append(np.arange(5, dtype=np.float32))
        assert fifo.available == 5
        np.testing.assert_array_equal(fifo.peek(3), [0, 1, 2])

    def test_peek_is_a_view(self):
        fifo = MonoFifo(initial_capacity=8)
        fifo.append(np.arange(6, dtype=np.float32))
        view = fifo.peek(4)
        assert np.shares_memory(view, fifo._data)

    def test_peek_past_end_raises(self):
        fifo = MonoFifo(initial_capacity=8)
        fifo.append(np.ones(3, dtype=np.float32))
        with pytest.raises(ValueError):
            fifo.peek(4)

    def test_growth_preserves_data(self):
        fifo = MonoFifo(initial_capacity=4)
        fifo.append(np.arange(3, dtype=np.float32))
        fifo.append(np.arange(3, 10, dtype=np.float32))
        assert fifo.capacity >= 10
        np.testing.assert_array_equal(fifo.peek(10), np.arange(10))

    def test_compaction_drops_consumed_prefix(self):
        fifo = MonoFifo(initial_capacity=32, compaction_threshold=8)
        data = np.arange(20, dtype=np.float32)
        fifo.append(data)
        fifo.advance(12)
        # cursor passed both the threshold and half the buffer
        assert fifo.cursor == 0
        assert fifo.buffered == 8
        np.testing.assert_array_equal(fifo.remainder(), data[12:])

    def test_no_compaction_below_half(self):
        fifo = MonoFifo(initial_capacity=64, compaction_threshold=8)
        fifo.append(np.arange(40, dtype=np.float32))
        fifo.advance(10)
        assert fifo.cursor == 10
        assert fifo.buffered == 40

    def test_no_compaction_below_threshold(self):
        fifo = MonoFifo(initial_capacity=64, compaction_threshold=100)
        fifo.append(np.arange(40, dtype=np.float32))
        fifo.advance(30)
        assert fifo.cursor == 30

    def test_unconsumed_never_negative(self):
        fifo = MonoFifo(initial_capacity=8)
        fifo.append(np.ones(4, dtype=np.float32))
        fifo.advance(10)
        assert fifo.available == 0

    def test_memory_bounded_on_long_stream(self):
        fifo = MonoFifo(initial_capacity=1024)
        chunk = np.ones(4096, dtype=np.float32)
        for _ in range(200):
            fifo.append(chunk)
            while fifo.available >= 2048:
                fifo.advance(512)
        assert fifo.total_appended == 200 * 4096
        assert fifo.capacity < 4 * 65536


# ---------------------------------------------------------------------------
# Planning helpers
# ---------------------------------------------------------------------------

class TestPlanning:
    @pytest.mark.parametrize(
        "n_samples, expected",
        [(0, 0), (1, 1), (100, 1), (256, 1), (256 + 64, 2), (256 + 65, 3), (1000, 13)],
    )
    def test_candidate_frame_count(self, n_samples, expected):
        assert candidate_frame_count(n_samples, 256, 64) == expected

    def test_stride_is_at_least_one(self):
        assert frame_stride(101, 1400, 2) == 1
        assert frame_stride(0, 1400, 2) == 1

    def test_stride_targets_budget(self):
        stride = frame_stride(10_000, 100, 2)
        assert stride == 50
        assert processed_frame_count(10_000, stride) == 200

    def test_processed_frame_count_rounds_up(self):
        assert processed_frame_count(10, 3) == 4
        assert processed_frame_count(9, 3) == 3
        assert processed_frame_count(0, 3) == 0


# ---------------------------------------------------------------------------
# FrameScheduler
# ---------------------------------------------------------------------------

class TestFrameScheduler:
    def test_frames_slide_by_hop(self):
        scheduler, computer = _scheduler(fft_size=8, hop_size=4)
        data = np.arange(16, dtype=np.float32)
        scheduler.push(data)
        scheduler.finish()
        np.testing.assert_array_equal(computer.frames[0], data[0:8])
        np.testing.assert_array_equal(computer.frames[1], data[4:12])
        np.testing.assert_array_equal(computer.frames[2], data[8:16])
        assert scheduler.candidates == candidate_frame_count(16, 8, 4) == 3

    def test_tail_past_last_frame_is_zero_padded(self):
        scheduler, computer = _scheduler(fft_size=8, hop_size=4)
        data = np.arange(1, 11, dtype=np.float32)
        scheduler.push(data)
        scheduler.finish()
        assert scheduler.candidates == candidate_frame_count(10, 8, 4) == 2
        np.testing.assert_array_equal(
            computer.frames[-1], np.concatenate([data[4:], np.zeros(2)])
        )

    def test_tail_inside_last_frame_is_not_repeated(self):
        scheduler, computer = _scheduler(fft_size=8, hop_size=4)
        scheduler.push(np.ones(12, dtype=np.float32))
        scheduler.finish()
        assert scheduler.candidates == candidate_frame_count(12, 8, 4) == 2

    def test_short_signal_yields_one_padded_frame(self):
        scheduler, computer = _scheduler(fft_size=8, hop_size=4)
        scheduler.push(np.full(3, 2.0, dtype=np.float32))
        scheduler.finish()
        assert scheduler.candidates == 1
        np.testing.assert_array_equal(computer.frames[0], [2, 2, 2, 0, 0, 0, 0, 0])

    @pytest.mark.parametrize("n_samples", [1, 7, 8, 9, 12, 13, 100, 1001])
    def test_candidate_count_matches_plan(self, n_samples):
        scheduler, _ = _scheduler(fft_size=8, hop_size=3)
        scheduler.push(np.ones(n_samples, dtype=np.float32))
        scheduler.finish()
        assert scheduler.candidates == candidate_frame_count(n_samples, 8, 3)

    def test_stride_skips_candidates(self):
        scheduler, computer = _scheduler(fft_size=8, hop_size=4, stride=2)
        data = np.arange(28, dtype=np.float32)
        scheduler.push(data)
        scheduler.finish()
        # candidates start at 0, 4, 8, 12, 16, 20; every second is computed
        assert scheduler.candidates == 6
        assert scheduler.processed == 3
        starts = [int(frame[0]) for frame in computer.frames]
        assert starts == [0, 8, 16]

    def test_chunking_does_not_change_frames(self):
        rng = np.random.default_rng(0)
        data = rng.standard_normal(5000).astype(np.float32)

        whole, whole_computer = _scheduler(fft_size=64, hop_size=16)
        whole.push(data)
        whole.finish()

        pieces, piece_computer = _scheduler(fft_size=64, hop_size=16)
        for chunk in np.array_split(data, [7, 100, 101, 2048, 4000]):
            pieces.push(chunk)
        pieces.finish()

        assert len(whole_computer.frames) == len(piece_computer.frames)
        for a, b in zip(whole_computer.frames, piece_computer.frames):
            np.testing.assert_array_equal(a, b)

    def test_compaction_does_not_change_frames(self):
        rng = np.random.default_rng(11)
        data = rng.standard_normal(3000).astype(np.float32)

        plain, plain_computer = _scheduler(fft_size=64, hop_size=16)
        for chunk in np.array_split(data, 30):
            plain.push(chunk)
        plain.finish()

        computer = RecordingComputer(64)
        aggregator = ColumnAggregator(computer.bins, max_columns=64)
        fifo = MonoFifo(initial_capacity=16, compaction_threshold=8)
        compacting = FrameScheduler(computer, aggregator, hop_size=16, fifo=fifo)
        for chunk in np.array_split(data, 30):
            compacting.push(chunk)
        compacting.finish()

        assert fifo.total_appended == len(data)
        assert fifo.capacity < len(data)
        assert len(computer.frames) == len(plain_computer.frames)
        for a, b in zip(plain_computer.frames, computer.frames):
            np.testing.assert_array_equal(a, b)

    def test_real_computer_feeds_aggregator(self):
        computer = SpectralFrameComputer(32)
        aggregator = ColumnAggregator(computer.bins, max_columns=4, expected_frames=9)
        scheduler = FrameScheduler(computer, aggregator, hop_size=8)
        scheduler.push(np.ones(96, dtype=np.float32))
        scheduler.finish()
        assert scheduler.processed == 9
        assert aggregator.finalize().shape == (4, computer.bins)

    def test_cancelled_token_stops_push(self):
        token = CancellationToken()
        token.cancel()
        scheduler, _ = _scheduler(fft_size=8, hop_size=4, token=token)
        with pytest.raises(Cancelled):
            scheduler.push(np.ones(64, dtype=np.float32))

    def test_push_after_finish_rejected(self):
        scheduler, _ = _scheduler(fft_size=8, hop_size=4)
        scheduler.finish()
        with pytest.raises(RuntimeError):
            scheduler.push(np.ones(8, dtype=np.float32))
