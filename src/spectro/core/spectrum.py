"""
Windowed power spectrum of a single analysis frame.

Numeric contract (kept stable so images stay comparable across versions):

1. Remove the frame mean (DC offset).
2. Apply a periodic Hann window of length ``fft_size``.
3. Real FFT, packed into ``fft_size // 2`` real/imaginary slots with DC in
   ``real[0]`` and Nyquist in ``imag[0]``.
4. Normalise by the window's coherent gain:
   ``edge = 1 / (fft_size**2 * gain**2)``, ``interior = 4 * edge``.
   Interior bins carry the folded negative-frequency half, hence the 4.

With this scaling a full-scale sine centred on a bin reads 0 dB.
"""

from typing import Tuple

import numpy as np
from scipy import fft as scipy_fft
from scipy import signal as scipy_signal

from spectro.errors import TransformInitFailed

MIN_COHERENT_GAIN = 1e-6


def periodic_hann(length: int) -> np.ndarray:
    """Periodic (DFT-even) Hann window."""
    return scipy_signal.get_window("hann", length, fftbins=True)


def packed_rfft(frame: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Real FFT in packed layout.

    Returns ``(real, imag)``, each ``len(frame) // 2`` long. Slot 0 holds
    the DC value in ``real`` and the Nyquist value in ``imag``; both are
    purely real.
    """
    half = len(frame) // 2
    spectrum = scipy_fft.rfft(frame)
    real = spectrum.real[:half].copy()
    imag = spectrum.imag[:half].copy()
    imag[0] = spectrum.real[half]
    return real, imag


class SpectralFrameComputer:
    """
    Turns one ``fft_size``-sample frame into ``fft_size // 2 + 1`` powers.

    The window and scale factors are built once per run; construction fails
    with :class:`TransformInitFailed` rather than on every frame.
    """

    def __init__(self, fft_size: int):
        self.fft_size = fft_size
        self.bins = fft_size // 2 + 1
        try:
            self.window = periodic_hann(fft_size)
            # Probe the transform so plan/backend failures surface here.
            packed_rfft(np.zeros(fft_size, dtype=np.float64))
        except (ValueError, TypeError, MemoryError) as exc:
            raise TransformInitFailed(detail=f"{type(exc).__name__}: {exc}") from exc

        self.coherent_gain = max(float(self.window.sum()) / fft_size, MIN_COHERENT_GAIN)
        self.edge_scale = 1.0 / (float(fft_size) ** 2 * self.coherent_gain ** 2)
        self.interior_scale = 4.0 * self.edge_scale

    def compute(self, frame: np.ndarray) -> np.ndarray:
        """
        Power spectrum of one frame.

        Args:
            frame: ``fft_size`` mono samples. May be a view into a larger
                buffer; it is not modified.

        Returns:
            float64 array of ``bins`` non-negative power values.
        """
        samples = np.asarray(frame, dtype=np.float64)
        centered = samples - samples.mean()
        real, imag = packed_rfft(centered * self.window)

        power = np.empty(self.bins, dtype=np.float64)
        power[0] = real[0] * real[0] * self.edge_scale
        power[1:-1] = (real[1:] ** 2 + imag[1:] ** 2) * self.interior_scale
        power[-1] = imag[0] * imag[0] * self.edge_scale
        return power
