"""Analysis configuration profile."""

from dataclasses import dataclass

from spectro.errors import InvalidConfig, InvalidFFTSize


def is_power_of_two(value: int) -> bool:
    return value > 0 and (value & (value - 1)) == 0


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Parameters for one analysis run.

    The defaults are the production profile; use ``dataclasses.replace``
    to derive variants.
    """

    fft_size: int = 2048
    hop_size: int = 512
    min_frequency_hz: float = 0.0
    min_decibels: float = -120.0
    max_decibels: float = 0.0
    max_columns: int = 1400
    target_frames_per_column: int = 2
    image_height: int = 760

    @property
    def bins(self) -> int:
        """Number of spectral bins per frame."""
        return self.fft_size // 2 + 1

    def validate(self) -> "AnalysisConfig":
        """
        Check internal consistency.

        Raises:
            InvalidFFTSize: fft_size is not a power of two >= 2.
            InvalidConfig: any other parameter is out of range.

        Returns:
            self, so calls can be chained.
        """
        if not is_power_of_two(self.fft_size) or self.fft_size < 2:
            raise InvalidFFTSize(detail=f"fft_size={self.fft_size}")
        if not 0 < self.hop_size < self.fft_size:
            raise InvalidConfig(
                "Hop size must be positive and smaller than the FFT size.",
                detail=f"hop_size={self.hop_size}, fft_size={self.fft_size}",
            )
        if self.min_decibels >= self.max_decibels:
            raise InvalidConfig(
                "Decibel floor must be below the ceiling.",
                detail=f"min_decibels={self.min_decibels}, max_decibels={self.max_decibels}",
            )
        if self.min_frequency_hz < 0:
            raise InvalidConfig(
                "Minimum frequency must not be negative.",
                detail=f"min_frequency_hz={self.min_frequency_hz}",
            )
        if self.max_columns < 1 or self.target_frames_per_column < 1 or self.image_height < 1:
            raise InvalidConfig(
                "Column count, frames per column and image height must be at least 1.",
                detail=(
                    f"max_columns={self.max_columns}, "
                    f"target_frames_per_column={self.target_frames_per_column}, "
                    f"image_height={self.image_height}"
                ),
            )
        return self


DEFAULT_CONFIG = AnalysisConfig()
