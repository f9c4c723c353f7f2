"""
Spectrogram pipeline benchmark + chunking parity validation.

Usage:
    python scripts/benchmark.py [--quick]

Modes:
    default  — 10 s / 1 min / 10 min signals, 1 warm-up + 3 timed runs each
    --quick  — 5 s / 30 s signals, 1 warm-up + 2 timed runs (CI-friendly)

Output: timing table + parity report printed to stdout.

Parity check: analyses the same signal with tiny and large decoder blocks.
Frame scheduling must not depend on chunk boundaries, so both decibel
matrices must be bit-identical.
"""

import argparse
import sys
import time
from typing import List

import numpy as np

from spectro import DEFAULT_CONFIG, PcmSource, analyze
from spectro.core.decoder import ArrayDecoder

SAMPLE_RATE = 44100

_SEP = "─" * 72


def _hdr(title: str) -> None:
    print(f"\n{_SEP}")
    print(f"  {title}")
    print(_SEP)


def _timeit(fn, *args, warmup: int = 1, runs: int = 3, **kwargs) -> List[float]:
    """Run fn(*args, **kwargs), discard warmup iterations, return timed samples."""
    for _ in range(warmup):
        fn(*args, **kwargs)
    times = []
    for _ in range(runs):
        t0 = time.perf_counter()
        fn(*args, **kwargs)
        times.append(time.perf_counter() - t0)
    return times


def _stats(times: List[float]) -> str:
    arr = np.array(times)
    return f"mean={arr.mean()*1000:.1f} ms  min={arr.min()*1000:.1f} ms  max={arr.max()*1000:.1f} ms"


def _chirp(seconds: float, channels: int = 2) -> PcmSource:
    """Log sweep 40 Hz → 18 kHz with a little noise, duplicated per channel."""
    n = int(seconds * SAMPLE_RATE)
    t = np.arange(n) / SAMPLE_RATE
    f0, f1 = 40.0, 18_000.0
    k = np.log(f1 / f0) / max(seconds, 1e-9)
    phase = 2 * np.pi * f0 * (np.exp(k * t) - 1) / k
    rng = np.random.RandomState(0)
    y = (0.5 * np.sin(phase) + 0.01 * rng.randn(n)).astype(np.float32)
    if channels > 1:
        y = np.repeat(y[:, np.newaxis], channels, axis=1)
    return PcmSource(y, SAMPLE_RATE, name=f"chirp_{seconds:g}s")


# ---------------------------------------------------------------------------
# Parity helpers
# ---------------------------------------------------------------------------

def _parity_chunking(seconds: float) -> dict:
    source = _chirp(seconds, channels=1)
    small = analyze(source, backends=[ArrayDecoder(block_frames=997)])
    large = analyze(source, backends=[ArrayDecoder(block_frames=1 << 20)])
    diff = np.abs(small.decibels.astype(np.float64) - large.decibels.astype(np.float64))
    return {
        "max_diff": float(diff.max()),
        "same_shape": small.decibels.shape == large.decibels.shape,
        "pixels_equal": bool(np.array_equal(small.image.pixels, large.image.pixels)),
    }


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> None:
    parser = argparse.ArgumentParser(description="Spectrogram pipeline benchmark")
    parser.add_argument(
        "--quick",
        action="store_true",
        help="Use short signals for fast CI runs",
    )
    args = parser.parse_args()

    if args.quick:
        durations = [5.0, 30.0]
        WARMUP, RUNS = 1, 2
        label = "quick mode"
    else:
        durations = [10.0, 60.0, 600.0]
        WARMUP, RUNS = 1, 3
        label = "full mode"

    print(f"\nSpectrogram Pipeline Benchmark  —  {label}")
    print(f"FFT size: {DEFAULT_CONFIG.fft_size}  hop: {DEFAULT_CONFIG.hop_size}  "
          f"max columns: {DEFAULT_CONFIG.max_columns}")
    print(f"Warm-up runs: {WARMUP}  |  Timed runs: {RUNS}")

    results = {}

    for index, seconds in enumerate(durations, start=1):
        _hdr(f"{index}. analyze, {seconds:g} s stereo chirp")
        source = _chirp(seconds)
        t = _timeit(analyze, source, warmup=WARMUP, runs=RUNS)
        result = analyze(source)
        results[f"analyze_{seconds:g}s"] = t
        print(f"  {_stats(t)}")
        print(f"  columns={result.columns}  frames={result.processed_frames}  "
              f"stride={result.frame_stride}  "
              f"realtime x{seconds / np.mean(t):.0f}")

    # ------------------------------------------------------------------
    # Parity validation
    # ------------------------------------------------------------------
    _hdr("Parity validation (small vs large decoder blocks)")
    r = _parity_chunking(durations[0])
    ok = r["same_shape"] and r["max_diff"] == 0.0 and r["pixels_equal"]
    print(f"  max_diff={r['max_diff']:.3g}  same_shape={r['same_shape']}  "
          f"pixels_equal={r['pixels_equal']}  [{'PASS' if ok else 'FAIL'}]")
    if not ok:
        print("\n  !! PARITY FAILURE — frame scheduling depends on chunk boundaries !!")
        sys.exit(1)

    # ------------------------------------------------------------------
    # Summary table
    # ------------------------------------------------------------------
    _hdr("Summary")
    rows = [(name, f"{np.mean(times)*1000:.1f}") for name, times in results.items()]

    name_w = max(len(row[0]) for row in rows) + 2
    print(f"  {'Function':<{name_w}} Time (ms, mean)")
    print(f"  {'-'*name_w} ---------------")
    for name, val in rows:
        print(f"  {name:<{name_w}} {val}")

    print(f"\n{_SEP}\n")


if __name__ == "__main__":
    main()
