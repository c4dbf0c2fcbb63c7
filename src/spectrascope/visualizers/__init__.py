"""Renderers that draw FFT stage snapshots."""

from spectrascope.visualizers.base import BaseRenderer, Renderer
from spectrascope.visualizers.butterfly import LAYOUTS, ButterflyRenderer
from spectrascope.visualizers.colors import COLOR_STRATEGIES, ColorContext
from spectrascope.visualizers.config import VIZ_PRESETS, ButterflyConfig, ColorMode, Layout

__all__ = [
    "BaseRenderer",
    "Renderer",
    "ButterflyRenderer",
    "LAYOUTS",
    "COLOR_STRATEGIES",
    "ColorContext",
    "VIZ_PRESETS",
    "ButterflyConfig",
    "ColorMode",
    "Layout",
]
