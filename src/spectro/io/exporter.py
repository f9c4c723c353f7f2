"""
Result serialization module.

Writes the rendered bitmap as PNG and a JSON sidecar describing the axis
mapping and source metadata, so other tools can label the image.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

import numpy as np

from spectro.pipeline import SpectrogramResult


@dataclass
class ExportMetadata:
    """Header fields for the JSON sidecar."""

    generator: str = "spectro"
    schema_version: str = "1.0"


class ResultExporter:
    """
    Exports a :class:`SpectrogramResult` to PNG and JSON.

    The JSON mirrors the result fields (minus pixel data) plus the axis
    convention: row 0 is ``max_frequency_hz``, the last row
    ``min_frequency_hz``; column i covers ``duration / columns`` seconds.
    """

    def __init__(self, precision: int = 4):
        """
        Initialize the exporter.

        Args:
            precision: Decimal places for floating point values.
        """
        self.precision = precision
        self.metadata = ExportMetadata()

    def _round(self, value: Optional[float]) -> Optional[float]:
        """Round to configured precision, mapping None/NaN/inf to None."""
        if value is None:
            return None
        f = float(value)
        if np.isnan(f) or np.isinf(f):
            return None
        return round(f, self.precision)

    def to_dict(self, result: SpectrogramResult) -> dict[str, Any]:
        """JSON-safe description of a result."""
        seconds_per_column = (
            result.duration_seconds / result.columns if result.columns else 0.0
        )
        return {
            "metadata": {
                "generator": self.metadata.generator,
                "schema_version": self.metadata.schema_version,
                "file_name": result.file_name,
                "decoder_backend": result.decoder_backend,
            },
            "source": {
                "container_format": result.source_container_format,
                "codec": result.source_codec,
                "bit_rate_bps": self._round(result.source_bit_rate_bps),
                "channel_count": result.source_channel_count,
                "sample_rate_hz": self._round(result.sample_rate_hz),
                "duration_seconds": self._round(result.duration_seconds),
            },
            "analysis": {
                "fft_size": result.fft_size,
                "hop_size": result.hop_size,
                "bins": result.bins,
                "processed_frames": result.processed_frames,
                "frame_stride": result.frame_stride,
                "cutoff_hint_hz": self._round(result.cutoff_hint_hz),
            },
            "image": {
                "width": result.columns,
                "height": result.rows,
                "pixel_format": "RGBA8",
                "min_frequency_hz": self._round(result.min_frequency_hz),
                "max_frequency_hz": self._round(result.max_frequency_hz),
                "min_decibels": self._round(result.min_decibels),
                "max_decibels": self._round(result.max_decibels),
                "seconds_per_column": self._round(seconds_per_column),
                "top_row": "max_frequency_hz",
            },
        }

    def export_json(
        self,
        result: SpectrogramResult,
        output_path: Union[str, Path],
        indent: Optional[int] = 2,
    ) -> Path:
        """
        Write the JSON sidecar.

        Args:
            result: Analysis result.
            output_path: Destination file.
            indent: JSON indentation (None for compact).

        Returns:
            Path to the written file.
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(result), f, indent=indent)
        return output_path

    def export_png(self, result: SpectrogramResult, output_path: Union[str, Path]) -> Path:
        """Write the bitmap as an RGBA PNG."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        result.image.save(output_path)
        return output_path

    def export(
        self,
        result: SpectrogramResult,
        png_path: Union[str, Path],
        with_json: bool = True,
    ) -> tuple[Path, Optional[Path]]:
        """PNG plus an optional ``.json`` sidecar next to it."""
        png = self.export_png(result, png_path)
        sidecar = self.export_json(result, png.with_suffix(".json")) if with_json else None
        return png, sidecar
