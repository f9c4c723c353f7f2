"""Core analysis modules."""

from spectro.core.aggregator import ColumnAggregator
from spectro.core.config import AnalysisConfig
from spectro.core.spectrum import SpectralFrameComputer
from spectro.core.stream import FrameScheduler, MonoFifo

__all__ = [
    "AnalysisConfig",
    "ColumnAggregator",
    "FrameScheduler",
    "MonoFifo",
    "SpectralFrameComputer",
]
