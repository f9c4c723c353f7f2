"""
Bandwidth cutoff heuristic for lossy-compressed sources.

Lossy encoders low-pass the signal according to their bitrate; above that
frequency a spectrogram only shows encoder noise. This module guesses the
cutoff from source metadata alone. It is an approximation tuned on typical
LAME/AAC/Opus encoder defaults, not a measurement of the decoded signal.
"""

from pathlib import Path
from typing import Optional, Union

LOSSY_CODECS = frozenset(
    {"mp3", "aac", "he-aac", "he-aac-v2", "aac-ld", "aac-eld", "opus", "vorbis"}
)

# (upper bound of per-channel bitrate in bps, cutoff in Hz); at or above the
# last bound the encoder keeps the full band.
CUTOFF_TABLE = (
    (48_000, 12_000.0),
    (64_000, 14_000.0),
    (80_000, 15_500.0),
    (96_000, 17_000.0),
    (112_000, 18_500.0),
)

_SUBTYPE_CODECS = {
    "MPEG_LAYER_III": "mp3",
    "MPEG_LAYER_II": "mp2",
    "MPEG_LAYER_I": "mp1",
    "VORBIS": "vorbis",
    "OPUS": "opus",
    "ALAC_16": "alac",
    "ALAC_20": "alac",
    "ALAC_24": "alac",
    "ALAC_32": "alac",
}

_EXTENSION_CODECS = {
    ".mp3": "mp3",
    ".aac": "aac",
    ".m4a": "aac",
    ".mp4": "aac",
    ".opus": "opus",
    ".ogg": "vorbis",
    ".oga": "vorbis",
    ".flac": "flac",
    ".wav": "pcm",
    ".aif": "pcm",
    ".aiff": "pcm",
    ".caf": "pcm",
    ".amr": "amr",
}


def describe_codec(container_format: str, subtype: str) -> str:
    """Normalise a libsndfile (format, subtype) pair to a codec name."""
    subtype = (subtype or "").upper()
    if subtype in _SUBTYPE_CODECS:
        return _SUBTYPE_CODECS[subtype]
    if (container_format or "").upper() == "FLAC":
        return "flac"
    if subtype.startswith(("PCM_", "FLOAT", "DOUBLE", "ULAW", "ALAW")):
        return "pcm"
    return subtype.lower() or "unknown"


def codec_from_extension(path: Union[str, Path]) -> str:
    """Best-effort codec name from a file extension."""
    return _EXTENSION_CODECS.get(Path(path).suffix.lower(), "unknown")


def effective_bit_rate(
    bit_rate_bps: Optional[float],
    file_size_bytes: Optional[int] = None,
    duration_seconds: Optional[float] = None,
) -> Optional[float]:
    """Track-reported bitrate, else the average derived from file size."""
    if bit_rate_bps is not None and bit_rate_bps > 0:
        return float(bit_rate_bps)
    if file_size_bytes and duration_seconds and duration_seconds > 0:
        return file_size_bytes * 8.0 / duration_seconds
    return None


def estimate_cutoff(
    codec: str,
    bit_rate_bps: Optional[float],
    channel_count: int,
    sample_rate_hz: float,
    file_size_bytes: Optional[int] = None,
    duration_seconds: Optional[float] = None,
) -> Optional[float]:
    """
    Estimate the highest frequency a lossy encoder kept.

    Args:
        codec: Normalised codec name (see :func:`describe_codec`).
        bit_rate_bps: Track-reported bitrate, or None.
        channel_count: Source channel count.
        sample_rate_hz: Decoded sample rate.
        file_size_bytes: Used with ``duration_seconds`` when no bitrate
            was reported.
        duration_seconds: Decoded duration.

    Returns:
        Cutoff in Hz capped at Nyquist, or None for lossless sources,
        unknown bitrates and bitrates high enough to keep the full band.
    """
    if codec not in LOSSY_CODECS:
        return None

    bit_rate = effective_bit_rate(bit_rate_bps, file_size_bytes, duration_seconds)
    if bit_rate is None:
        return None

    per_channel = bit_rate / max(1, channel_count)
    for upper_bound, cutoff_hz in CUTOFF_TABLE:
        if per_channel < upper_bound:
            return min(cutoff_hz, sample_rate_hz / 2.0)
    return None
