"""
Spectrogram rendering script.

Analyzes an audio file with the default profile and writes the
spectrogram as a PNG, optionally with a JSON sidecar describing its axes.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from spectro.errors import AnalyzerError, Cancelled
from spectro.io.exporter import ResultExporter
from spectro.pipeline import SpectrogramResult, analyze

logger = logging.getLogger(__name__)


def _format_bit_rate(bit_rate: Optional[float]) -> str:
    if not bit_rate or bit_rate <= 0:
        return "n/a"
    return f"{bit_rate / 1000:.0f} kbps"


def summary_line(result: SpectrogramResult) -> str:
    """One-line description of a result, for terminal output."""
    parts = [
        f"Format: {result.source_container_format}",
        f"Codec: {result.source_codec}",
        f"Bitrate: {_format_bit_rate(result.source_bit_rate_bps)}",
        f"Sample rate: {result.sample_rate_hz:.0f} Hz",
        f"Channels: {result.source_channel_count}",
        f"Duration: {result.duration_seconds:.2f}s",
        f"Image: {result.columns}x{result.rows}",
    ]
    if result.cutoff_hint_hz is not None:
        parts.append(f"Cutoff: {result.cutoff_hint_hz / 1000:.1f} kHz")
    return "  ".join(parts)


def render_image(
    audio_path: Path,
    output_path: Path,
    with_json: bool = False,
) -> SpectrogramResult:
    """
    Analyze ``audio_path`` and write the spectrogram PNG.

    Args:
        audio_path: Input audio file (wav, flac, mp3, ogg, m4a, ...).
        output_path: Destination PNG.
        with_json: Also write ``<output>.json`` with axis metadata.

    Returns:
        The analysis result.
    """
    result = analyze(audio_path)
    exporter = ResultExporter()
    png, sidecar = exporter.export(result, output_path, with_json=with_json)
    logger.info("Wrote %s", png)
    if sidecar is not None:
        logger.info("Wrote %s", sidecar)
    return result


def main(argv=None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Render a spectrogram image from an audio file"
    )

    parser.add_argument(
        "audio",
        type=Path,
        help="Input audio file (wav, flac, mp3, ogg, m4a)",
    )

    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output PNG file (default: <audio>_spectrogram.png)",
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Also write a JSON sidecar with axis and source metadata",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if not args.audio.exists():
        print(f"Error: Audio file not found: {args.audio}", file=sys.stderr)
        return 1

    output = args.output
    if output is None:
        output = args.audio.with_name(f"{args.audio.stem}_spectrogram.png")

    try:
        result = render_image(args.audio, output, with_json=args.json)
    except Cancelled:
        return 130
    except AnalyzerError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        if exc.detail:
            print(f"  {exc.detail}", file=sys.stderr)
        return 1

    print(summary_line(result))
    print(f"Saved: {output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
