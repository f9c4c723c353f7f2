"""Streaming audio spectrogram analysis and rendering."""

from spectro.core.config import DEFAULT_CONFIG, AnalysisConfig
from spectro.core.cancellation import CancellationToken
from spectro.core.decoder import PcmSource
from spectro.io.exporter import ResultExporter
from spectro.pipeline import AnalysisSession, SpectrogramResult, analyze

__version__ = "0.1.0"
__all__ = [
    "AnalysisConfig",
    "DEFAULT_CONFIG",
    "CancellationToken",
    "PcmSource",
    "ResultExporter",
    "AnalysisSession",
    "SpectrogramResult",
    "analyze",
]
