"""Palette and bitmap rendering."""

from spectro.visualizers.renderer import RenderedImage, render_spectrogram

__all__ = ["RenderedImage", "render_spectrogram"]
