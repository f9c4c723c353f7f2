"""
Streaming PCM decoders.

Each backend opens a source and yields interleaved float32 chunks together
with up-front stream metadata. Container/codec decoding itself is left to
the audio libraries:

* :class:`SoundFileDecoder` streams blocks through libsndfile (primary).
* :class:`LibrosaDecoder` reads the whole track through librosa, which
  falls back to audioread/ffmpeg for formats libsndfile rejects.
* :class:`ArrayDecoder` serves in-memory signals.

Vendor exceptions are wrapped into :class:`~spectro.errors.DecodeError`
so the pipeline can aggregate them across backends.
"""

import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Union

import audioread
import librosa
import numpy as np
import soundfile as sf

from spectro.core.cutoff import codec_from_extension, describe_codec
from spectro.errors import DecodeError, NoAudioTrack

DEFAULT_BLOCK_FRAMES = 65536

_VENDOR_ERRORS = (
    RuntimeError,
    OSError,
    ValueError,
    TypeError,
    EOFError,
    audioread.exceptions.DecodeError,
)


@dataclass
class PcmChunk:
    """One block of decoded audio, channels interleaved frame by frame."""

    samples: np.ndarray
    frame_count: int
    channel_count: int
    sample_rate_hz: float


@dataclass
class StreamInfo:
    """What a decoder knows about its source before streaming starts."""

    sample_rate_hz: float
    channel_count: int
    frames: Optional[int]
    container_format: str
    codec: str
    bit_rate_bps: Optional[float] = None
    file_size_bytes: Optional[int] = None
    file_name: str = ""

    @property
    def estimated_duration(self) -> Optional[float]:
        if self.frames is None or self.sample_rate_hz <= 0:
            return None
        return self.frames / self.sample_rate_hz


@dataclass
class PcmSource:
    """
    In-memory audio.

    ``samples`` is shaped ``(n_frames,)`` for mono or
    ``(n_frames, n_channels)``, the same layout soundfile returns.
    """

    samples: np.ndarray
    sample_rate_hz: float
    name: str = "<memory>"

    @property
    def channel_count(self) -> int:
        return 1 if self.samples.ndim == 1 else int(self.samples.shape[1])


Source = Union[str, Path, PcmSource]


def mix_to_mono(chunk: PcmChunk) -> np.ndarray:
    """
    Average all channels of an interleaved chunk into one mono signal.

    Mono input is copied so the caller may keep the result after the
    decoder reuses its buffers.
    """
    channels = max(1, chunk.channel_count)
    usable = chunk.frame_count * channels
    samples = np.asarray(chunk.samples[:usable], dtype=np.float32)
    if channels == 1:
        return samples.copy()
    frames = samples.reshape(chunk.frame_count, channels)
    if channels == 2:
        return (frames[:, 0] + frames[:, 1]) * np.float32(0.5)
    # float64 sum so N identical channels average back to the exact sample
    return frames.mean(axis=1, dtype=np.float64).astype(np.float32)


class DecodedStream:
    """An open source: metadata plus a one-shot iterator of chunks."""

    def __init__(
        self,
        info: StreamInfo,
        chunks: Iterator[PcmChunk],
        closer: Optional[Callable[[], None]] = None,
    ):
        self.info = info
        self._chunks = chunks
        self._closer = closer

    def __iter__(self) -> Iterator[PcmChunk]:
        return self._chunks

    def close(self) -> None:
        if self._closer is not None:
            self._closer()
            self._closer = None

    def __enter__(self) -> "DecodedStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _file_size(path: Path) -> Optional[int]:
    try:
        return path.stat().st_size
    except OSError:
        return None


class SoundFileDecoder:
    """Primary backend: block-wise streaming through libsndfile."""

    name = "soundfile"

    def __init__(self, block_frames: int = DEFAULT_BLOCK_FRAMES):
        self.block_frames = block_frames

    def open(self, source: Source) -> DecodedStream:
        path = Path(source)
        try:
            handle = sf.SoundFile(str(path))
        except _VENDOR_ERRORS as exc:
            raise DecodeError.wrap(exc, self.name) from exc

        if handle.channels < 1:
            handle.close()
            raise NoAudioTrack(domain=self.name, code=0, backend=self.name)

        info = StreamInfo(
            sample_rate_hz=float(handle.samplerate),
            channel_count=int(handle.channels),
            frames=int(handle.frames) if handle.frames > 0 else None,
            container_format=handle.format,
            codec=describe_codec(handle.format, handle.subtype),
            file_size_bytes=_file_size(path),
            file_name=path.name,
        )
        return DecodedStream(info, self._chunks(handle, info), closer=handle.close)

    def _chunks(self, handle: sf.SoundFile, info: StreamInfo) -> Iterator[PcmChunk]:
        try:
            for block in handle.blocks(
                blocksize=self.block_frames, dtype="float32", always_2d=True
            ):
                if block.shape[0] == 0:
                    continue
                yield PcmChunk(
                    samples=block.reshape(-1),
                    frame_count=int(block.shape[0]),
                    channel_count=int(block.shape[1]),
                    sample_rate_hz=info.sample_rate_hz,
                )
        except _VENDOR_ERRORS as exc:
            raise DecodeError.wrap(exc, self.name) from exc


def _slice_frames(
    frames: np.ndarray, sample_rate_hz: float, block_frames: int
) -> Iterator[PcmChunk]:
    """Yield an ``(n, channels)`` array as interleaved chunks."""
    channel_count = frames.shape[1]
    for start in range(0, frames.shape[0], block_frames):
        block = np.ascontiguousarray(frames[start:start + block_frames], dtype=np.float32)
        yield PcmChunk(
            samples=block.reshape(-1),
            frame_count=int(block.shape[0]),
            channel_count=channel_count,
            sample_rate_hz=sample_rate_hz,
        )


class LibrosaDecoder:
    """
    Fallback backend: decode the whole track with librosa, then slice it.

    Handles containers libsndfile cannot open (AAC/M4A, some MP3 variants)
    via audioread, at the cost of holding the decoded track in memory.
    """

    name = "librosa"

    def __init__(self, block_frames: int = DEFAULT_BLOCK_FRAMES):
        self.block_frames = block_frames

    def open(self, source: Source) -> DecodedStream:
        path = Path(source)
        try:
            with warnings.catch_warnings():
                # librosa announces its soundfile -> audioread fallback as a warning
                warnings.simplefilter("ignore", UserWarning)
                warnings.simplefilter("ignore", FutureWarning)
                y, sr = librosa.load(str(path), sr=None, mono=False)
        except _VENDOR_ERRORS as exc:
            raise DecodeError.wrap(exc, self.name) from exc

        frames = y[:, np.newaxis] if y.ndim == 1 else y.T
        if frames.shape[1] < 1:
            raise NoAudioTrack(domain=self.name, code=0, backend=self.name)

        info = StreamInfo(
            sample_rate_hz=float(sr),
            channel_count=int(frames.shape[1]),
            frames=int(frames.shape[0]),
            container_format=path.suffix.lstrip(".").upper() or "UNKNOWN",
            codec=codec_from_extension(path),
            file_size_bytes=_file_size(path),
            file_name=path.name,
        )
        return DecodedStream(info, _slice_frames(frames, info.sample_rate_hz, self.block_frames))


class ArrayDecoder:
    """Backend for :class:`PcmSource` inputs."""

    name = "array"

    def __init__(self, block_frames: int = DEFAULT_BLOCK_FRAMES):
        self.block_frames = block_frames

    def open(self, source: PcmSource) -> DecodedStream:
        if not isinstance(source, PcmSource):
            raise DecodeError(
                f"Unsupported source type: {type(source).__name__}",
                domain=self.name,
                code=-1,
                backend=self.name,
            )
        samples = np.asarray(source.samples, dtype=np.float32)
        frames = samples[:, np.newaxis] if samples.ndim == 1 else samples
        if frames.ndim != 2 or frames.shape[1] < 1:
            raise NoAudioTrack(domain=self.name, code=0, backend=self.name)

        info = StreamInfo(
            sample_rate_hz=float(source.sample_rate_hz),
            channel_count=int(frames.shape[1]),
            frames=int(frames.shape[0]),
            container_format="memory",
            codec="pcm",
            file_name=source.name,
        )
        return DecodedStream(info, _slice_frames(frames, info.sample_rate_hz, self.block_frames))


def default_backends(source: Source) -> List:
    """Ordered backend list for a source: primary first, fallback second."""
    if isinstance(source, PcmSource):
        return [ArrayDecoder()]
    return [SoundFileDecoder(), LibrosaDecoder()]
