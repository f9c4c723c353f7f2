"""Tests for the palette and the RGBA renderer."""

import numpy as np
import pytest
from PIL import Image

from spectro.errors import RenderingFailed
from spectro.visualizers.palette import (
    LUT_SIZE,
    PALETTE_STOPS,
    lookup,
    palette_color,
    palette_lut,
)
from spectro.visualizers.renderer import render_spectrogram, row_bin_positions


def _render(decibels, sample_rate=4.0, height=3, max_hz=None):
    return render_spectrogram(
        np.asarray(decibels, dtype=np.float32),
        sample_rate_hz=sample_rate,
        min_frequency_hz=0.0,
        max_frequency_hz=sample_rate / 2 if max_hz is None else max_hz,
        min_decibels=-120.0,
        max_decibels=0.0,
        image_height=height,
    )


class TestPalette:
    def test_endpoints(self):
        assert palette_color(0.0) == (0, 0, 0)
        assert palette_color(1.0) == (255, 255, 245)

    def test_stops_are_exact(self):
        for position, color in PALETTE_STOPS:
            assert palette_color(position) == color

    def test_out_of_range_is_clamped(self):
        assert palette_color(-3.0) == (0, 0, 0)
        assert palette_color(7.0) == (255, 255, 245)

    def test_interpolates_between_stops(self):
        # halfway between (0.62, (205, 0, 72)) and (0.76, (255, 26, 0))
        assert palette_color(0.69) == (230, 13, 36)

    def test_lut_is_shared_and_read_only(self):
        lut = palette_lut()
        assert lut is palette_lut()
        assert lut.shape == (LUT_SIZE, 3)
        with pytest.raises(ValueError):
            lut[0, 0] = 1

    def test_lookup_matches_table(self):
        values = np.array([0.0, 0.5, 1.0])
        colors = lookup(values)
        assert tuple(colors[0]) == (0, 0, 0)
        assert tuple(colors[2]) == (255, 255, 245)
        assert tuple(colors[1]) == tuple(palette_lut()[512])


class TestRowMapping:
    def test_top_row_is_max_frequency(self):
        positions = row_bin_positions(3, 3, 4.0, 0.0, 2.0)
        np.testing.assert_allclose(positions, [2.0, 1.0, 0.0])

    def test_single_row_shows_min_frequency(self):
        positions = row_bin_positions(1, 5, 8.0, 0.0, 4.0)
        np.testing.assert_allclose(positions, [0.0])

    def test_positions_are_clamped(self):
        positions = row_bin_positions(4, 3, 4.0, 0.0, 10.0)
        assert positions.max() == 2.0
        assert positions.min() == 0.0


class TestRenderSpectrogram:
    def test_dimensions(self):
        image = _render(np.full((2, 3), -60.0))
        assert (image.width, image.height) == (2, 3)
        assert image.bytes_per_row == 8
        assert len(image.to_bytes()) == 2 * 3 * 4

    def test_rows_run_from_high_to_low_frequency(self):
        image = _render([[-120.0, -60.0, 0.0], [-120.0, -60.0, 0.0]])
        for x in range(2):
            assert image.pixel(x, 0) == (255, 255, 245, 255)
            assert image.pixel(x, 2) == (0, 0, 0, 255)
            assert image.pixel(x, 1)[:3] == tuple(int(c) for c in lookup(np.array(0.5)))

    @pytest.mark.parametrize(
        "level, color",
        [(-120.0, (0, 0, 0, 255)), (0.0, (255, 255, 245, 255))],
    )
    def test_uniform_matrix_gives_uniform_image(self, level, color):
        image = _render(np.full((2, 3), level), height=9)
        expected = np.broadcast_to(np.array(color, dtype=np.uint8), image.pixels.shape)
        np.testing.assert_array_equal(image.pixels, expected)

    def test_columns_are_independent(self):
        image = _render([[0.0, 0.0, 0.0], [-120.0, -120.0, -120.0]])
        assert image.pixel(0, 1) == (255, 255, 245, 255)
        assert image.pixel(1, 1) == (0, 0, 0, 255)

    def test_interpolates_between_bins(self):
        # 5 rows over bins 0..2: row 3 sits halfway between bin 0 and bin 1
        image = _render([[-120.0, 0.0, 0.0]], height=5)
        assert image.pixel(0, 3)[:3] == tuple(int(c) for c in lookup(np.array(0.5)))

    def test_fully_opaque(self):
        rng = np.random.default_rng(2)
        image = _render(rng.uniform(-120, 0, size=(7, 9)), sample_rate=16.0, height=11)
        assert np.all(image.pixels[..., 3] == 255)

    def test_pixels_are_read_only(self):
        image = _render(np.zeros((1, 3)))
        with pytest.raises(ValueError):
            image.pixels[0, 0, 0] = 1

    @pytest.mark.parametrize(
        "decibels, height, sample_rate",
        [
            (np.zeros((2, 3)), 0, 4.0),
            (np.zeros((2, 1)), 3, 4.0),
            (np.zeros((0, 3)), 3, 4.0),
            (np.zeros((2, 3)), 3, 0.0),
            (np.zeros(3), 3, 4.0),
        ],
    )
    def test_bad_geometry_raises(self, decibels, height, sample_rate):
        with pytest.raises(RenderingFailed):
            _render(decibels, sample_rate=sample_rate, height=height, max_hz=2.0)


class TestImageOutput:
    def test_to_pil(self):
        image = _render(np.full((4, 3), -30.0))
        pil = image.to_pil()
        assert pil.mode == "RGBA"
        assert pil.size == (4, 3)

    def test_save_png(self, tmp_path):
        image = _render([[-120.0, -60.0, 0.0]])
        path = tmp_path / "out.png"
        image.save(path)
        with Image.open(path) as reopened:
            assert reopened.size == (1, 3)
            assert np.array_equal(np.asarray(reopened.convert("RGBA")), image.pixels)
