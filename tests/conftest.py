"""Shared fixtures: synthetic signals and small analysis profiles."""

import numpy as np
import pytest
import soundfile as sf

from spectro.core.config import AnalysisConfig

TEST_SR = 44100


def make_sine(frequency=1000.0, duration=1.2, sr=TEST_SR, amplitude=0.5):
    n = int(round(sr * duration))
    t = np.arange(n) / sr
    return (amplitude * np.sin(2 * np.pi * frequency * t)).astype(np.float32)


@pytest.fixture
def pure_sine():
    """1.2 s of a 1 kHz sine at half amplitude, 44.1 kHz mono."""
    return make_sine(), TEST_SR


@pytest.fixture
def noise_signal():
    """Two seconds of reproducible white noise."""
    rng = np.random.default_rng(1234)
    y = rng.uniform(-0.8, 0.8, size=2 * TEST_SR).astype(np.float32)
    return y, TEST_SR


@pytest.fixture
def sine_wav(tmp_path, pure_sine):
    """The pure sine written as a 32-bit float mono WAV."""
    y, sr = pure_sine
    path = tmp_path / "sine_1k.wav"
    sf.write(str(path), y, sr, subtype="FLOAT")
    return path


@pytest.fixture
def stereo_wav(tmp_path, pure_sine):
    """The pure sine duplicated into both channels of a float WAV."""
    y, sr = pure_sine
    path = tmp_path / "sine_1k_stereo.wav"
    sf.write(str(path), np.stack([y, y], axis=1), sr, subtype="FLOAT")
    return path


@pytest.fixture
def garbage_file(tmp_path):
    """Bytes that no decoder accepts, behind an audio extension."""
    path = tmp_path / "not_audio.mp3"
    path.write_bytes(b"this is definitely not an mpeg stream" * 16)
    return path


@pytest.fixture
def small_config():
    """Cheap profile for pipeline tests."""
    return AnalysisConfig(
        fft_size=256,
        hop_size=64,
        max_columns=32,
        target_frames_per_column=2,
        image_height=64,
    )
