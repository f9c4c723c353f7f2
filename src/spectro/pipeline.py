"""
End-to-end spectrogram pipeline.

decode → mono mixdown → FIFO/scheduler → frame spectra → column
aggregation → cutoff hint → decibel calibration → RGBA render.

:func:`analyze` runs synchronously on the calling thread and is
cancellable through a :class:`~spectro.core.cancellation.CancellationToken`.
:class:`AnalysisSession` runs analyses on one background worker, with a
new submission superseding the one in flight.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np

from spectro.core.aggregator import ColumnAggregator
from spectro.core.calibration import calibrate
from spectro.core.cancellation import CancellationToken
from spectro.core.config import DEFAULT_CONFIG, AnalysisConfig
from spectro.core.cutoff import effective_bit_rate, estimate_cutoff
from spectro.core.decoder import (
    PcmSource,
    Source,
    StreamInfo,
    default_backends,
    mix_to_mono,
)
from spectro.core.spectrum import SpectralFrameComputer
from spectro.core.stream import (
    FrameScheduler,
    candidate_frame_count,
    frame_stride,
    processed_frame_count,
)
from spectro.errors import (
    Cancelled,
    DecodeError,
    DecodeFailed,
    EmptySignal,
    NoAudioTrack,
)
from spectro.visualizers.renderer import RenderedImage, render_spectrogram

logger = logging.getLogger(__name__)

# Primary decoder plus exactly one fallback.
MAX_DECODE_ATTEMPTS = 2


@dataclass(frozen=True)
class SpectrogramResult:
    """Terminal output of one analysis run."""

    image: RenderedImage
    decibels: np.ndarray  # (columns, bins), read-only
    columns: int
    rows: int
    bins: int
    duration_seconds: float
    sample_rate_hz: float
    source_channel_count: int
    source_container_format: str
    source_codec: str
    source_bit_rate_bps: Optional[float]
    min_frequency_hz: float
    max_frequency_hz: float
    min_decibels: float
    max_decibels: float
    fft_size: int
    hop_size: int
    file_name: str = ""
    decoder_backend: str = ""
    cutoff_hint_hz: Optional[float] = None
    processed_frames: int = 0
    frame_stride: int = 1


@dataclass
class _Accumulated:
    """Everything one successful decode attempt produced."""

    info: StreamInfo
    backend: str
    power: np.ndarray
    total_samples: int
    sample_rate_hz: float
    channel_count: int
    stride: int
    processed: int


def _describe(source: Source) -> str:
    if isinstance(source, PcmSource):
        return source.name
    return str(source)


def _accumulate(
    backend,
    source: Source,
    config: AnalysisConfig,
    computer: SpectralFrameComputer,
    token: CancellationToken,
) -> _Accumulated:
    """Stream one backend through fresh scheduler/aggregator state."""
    with backend.open(source) as stream:
        info = stream.info

        # Stride is planned once from the estimate and never re-derived.
        if info.frames:
            candidates = candidate_frame_count(info.frames, config.fft_size, config.hop_size)
            stride = frame_stride(
                candidates, config.max_columns, config.target_frames_per_column
            )
            expected = processed_frame_count(candidates, stride)
        else:
            candidates, stride, expected = None, 1, None
        logger.debug(
            "%s: estimated %s candidate frames, stride %d, %s planned frames",
            backend.name,
            candidates,
            stride,
            expected,
        )

        aggregator = ColumnAggregator(config.bins, config.max_columns, expected)
        scheduler = FrameScheduler(
            computer, aggregator, hop_size=config.hop_size, stride=stride, token=token
        )

        sample_rate = info.sample_rate_hz
        channel_count = info.channel_count
        for chunk in stream:
            token.raise_if_cancelled()
            if chunk.sample_rate_hz > 0 and chunk.sample_rate_hz != sample_rate:
                logger.info(
                    "%s: sample rate changed mid-stream %.1f -> %.1f Hz",
                    backend.name,
                    sample_rate,
                    chunk.sample_rate_hz,
                )
                sample_rate = chunk.sample_rate_hz
            if chunk.channel_count > 0:
                channel_count = chunk.channel_count
            scheduler.push(mix_to_mono(chunk))

        token.raise_if_cancelled()
        total_samples = scheduler.fifo.total_appended
        if total_samples == 0:
            raise EmptySignal(detail=f"{backend.name} decoded 0 samples")
        scheduler.finish()

        return _Accumulated(
            info=info,
            backend=backend.name,
            power=aggregator.finalize(),
            total_samples=total_samples,
            sample_rate_hz=sample_rate,
            channel_count=channel_count,
            stride=stride,
            processed=scheduler.processed,
        )


def _decode_failure(failures: List[DecodeError]) -> Exception:
    if not failures:
        return DecodeError("No decoder backend available.")
    if len(failures) == 1 or all(isinstance(f, NoAudioTrack) for f in failures):
        return failures[0]
    return DecodeFailed(failures[0], failures[1])


def analyze(
    source: Source,
    config: AnalysisConfig = DEFAULT_CONFIG,
    token: Optional[CancellationToken] = None,
    backends: Optional[Sequence] = None,
) -> SpectrogramResult:
    """
    Analyse an audio source into a calibrated spectrogram.

    Args:
        source: Path to an audio file, or a :class:`PcmSource`.
        config: Analysis profile; validated before any work starts.
        token: Cancellation token polled per chunk and every few frames.
        backends: Decoder backends in priority order. Defaults to
            soundfile then librosa for paths.

    Returns:
        SpectrogramResult.

    Raises:
        InvalidConfig, InvalidFFTSize, TransformInitFailed: before decoding.
        DecodeFailed: primary and fallback decoders both failed.
        NoAudioTrack: no decoder found an audio channel.
        EmptySignal: decoding produced no samples.
        RenderingFailed: bitmap could not be produced.
        Cancelled: the token was cancelled; no partial result exists.
    """
    config.validate()
    token = token if token is not None else CancellationToken()
    token.raise_if_cancelled()

    computer = SpectralFrameComputer(config.fft_size)
    backend_list = list(backends) if backends is not None else default_backends(source)

    failures: List[DecodeError] = []
    accumulated: Optional[_Accumulated] = None
    for backend in backend_list[:MAX_DECODE_ATTEMPTS]:
        try:
            accumulated = _accumulate(backend, source, config, computer, token)
            break
        except DecodeError as exc:
            if exc.backend is None:
                exc.backend = backend.name
            logger.warning(
                "Decoder %s failed on %s: %s", backend.name, _describe(source), exc
            )
            failures.append(exc)

    if accumulated is None:
        raise _decode_failure(failures)
    if failures:
        logger.info("Decoded %s with fallback %s", _describe(source), accumulated.backend)

    token.raise_if_cancelled()

    info = accumulated.info
    sample_rate = accumulated.sample_rate_hz
    duration = accumulated.total_samples / sample_rate if sample_rate > 0 else 0.0
    channel_count = max(1, info.channel_count, accumulated.channel_count)

    cutoff_hz = estimate_cutoff(
        info.codec,
        info.bit_rate_bps,
        channel_count,
        sample_rate,
        file_size_bytes=info.file_size_bytes,
        duration_seconds=duration,
    )
    if cutoff_hz is not None:
        logger.debug("Applying %s cutoff hint at %.0f Hz", info.codec, cutoff_hz)

    decibels = calibrate(
        accumulated.power,
        sample_rate,
        config.min_decibels,
        config.max_decibels,
        cutoff_hz=cutoff_hz,
    )
    token.raise_if_cancelled()

    max_frequency = sample_rate / 2.0
    image = render_spectrogram(
        decibels,
        sample_rate_hz=sample_rate,
        min_frequency_hz=config.min_frequency_hz,
        max_frequency_hz=max_frequency,
        min_decibels=config.min_decibels,
        max_decibels=config.max_decibels,
        image_height=config.image_height,
    )

    columns, bins = decibels.shape
    logger.info(
        "Analysed %s: %.2fs @ %.0f Hz, %d frames (stride %d) -> %dx%d",
        _describe(source),
        duration,
        sample_rate,
        accumulated.processed,
        accumulated.stride,
        columns,
        config.image_height,
    )

    return SpectrogramResult(
        image=image,
        decibels=decibels,
        columns=columns,
        rows=image.height,
        bins=bins,
        duration_seconds=duration,
        sample_rate_hz=sample_rate,
        source_channel_count=channel_count,
        source_container_format=info.container_format,
        source_codec=info.codec,
        source_bit_rate_bps=effective_bit_rate(
            info.bit_rate_bps, info.file_size_bytes, duration
        ),
        min_frequency_hz=config.min_frequency_hz,
        max_frequency_hz=max_frequency,
        min_decibels=config.min_decibels,
        max_decibels=config.max_decibels,
        fft_size=config.fft_size,
        hop_size=config.hop_size,
        file_name=info.file_name or Path(_describe(source)).name,
        decoder_backend=accumulated.backend,
        cutoff_hint_hz=cutoff_hz,
        processed_frames=accumulated.processed,
        frame_stride=accumulated.stride,
    )


class AnalysisSession:
    """
    At most one active analysis per caller, on one background worker.

    Submitting a new source cancels the run in flight; its future then
    resolves to None instead of raising. Other failures propagate through
    the future as :class:`~spectro.errors.AnalyzerError`.
    """

    def __init__(
        self,
        config: AnalysisConfig = DEFAULT_CONFIG,
        backends: Optional[Sequence] = None,
    ):
        self.config = config
        self.backends = backends
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="spectro-analysis"
        )
        self._lock = threading.Lock()
        self._token: Optional[CancellationToken] = None
        self._future: Optional[Future] = None

    def submit(self, source: Source, config: Optional[AnalysisConfig] = None) -> Future:
        with self._lock:
            if self._token is not None:
                self._token.cancel()
            token = CancellationToken()
            self._token = token
            self._future = self._executor.submit(
                self._run, source, config or self.config, token, self.backends
            )
            return self._future

    @staticmethod
    def _run(
        source: Source,
        config: AnalysisConfig,
        token: CancellationToken,
        backends: Optional[Sequence],
    ) -> Optional[SpectrogramResult]:
        try:
            return analyze(source, config, token=token, backends=backends)
        except Cancelled:
            logger.info("Analysis of %s cancelled", _describe(source))
            return None

    @property
    def active(self) -> bool:
        with self._lock:
            return self._future is not None and not self._future.done()

    def cancel(self) -> None:
        with self._lock:
            if self._token is not None:
                self._token.cancel()

    def shutdown(self, wait: bool = True) -> None:
        self.cancel()
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "AnalysisSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
