"""
Node color strategies, selected by ColorMode through a lookup table.
"""

import colorsys
import math
from dataclasses import dataclass
from typing import Callable

from spectrascope.visualizers.config import ButterflyConfig, ColorMode

RGB = tuple[int, int, int]


@dataclass(frozen=True)
class ColorContext:
    """Everything a strategy may use to color one node."""

    value: complex
    magnitude: float
    envelope_value: float  # smoothed value, also drives the node size
    index: int  # node index within the stage
    total: int  # nodes per stage (N)
    stage_index: int


def _hsv(hue_deg: float, sat_pct: float, bri_pct: float) -> RGB:
    """HSV in degrees / percent to an 8-bit RGB tuple."""
    r, g, b = colorsys.hsv_to_rgb(
        (hue_deg % 360.0) / 360.0,
        min(max(sat_pct, 0.0), 100.0) / 100.0,
        min(max(bri_pct, 0.0), 100.0) / 100.0,
    )
    return (int(r * 255), int(g * 255), int(b * 255))


def brightness_map(ctx: ColorContext, cfg: ButterflyConfig) -> RGB:
    green = min(255.0, ctx.envelope_value * cfg.brightness_g_scale)
    return (int(cfg.brightness_r), int(green), int(cfg.brightness_b))


def phase_hue(ctx: ColorContext, cfg: ButterflyConfig) -> RGB:
    """Phase angle around the color wheel, envelope value as brightness."""
    phase = math.degrees(math.atan2(ctx.value.imag, ctx.value.real))  # -180..180
    hue = phase * cfg.hue_range_ratio + cfg.hue_offset
    bri = min(100.0, ctx.envelope_value * cfg.hue_brightness_scale)
    return _hsv(hue, cfg.hue_saturation, bri)


def freq_gradient(ctx: ColorContext, cfg: ButterflyConfig) -> RGB:
    """
    Bin index on a cool-to-warm gradient, phase as brightness.

    The envelope value is ignored for color; quiet nodes are hidden by
    their size instead.
    """
    t = ctx.index / (ctx.total - 1) if ctx.total > 1 else 0.0
    hue = cfg.freq_hue_start + (cfg.freq_hue_end - cfg.freq_hue_start) * t

    phase = math.atan2(ctx.value.imag, ctx.value.real)
    norm_phase = (phase + math.pi) / (2 * math.pi)  # 0..1
    return _hsv(hue, cfg.hue_saturation, norm_phase * 100.0)


COLOR_STRATEGIES: dict[ColorMode, Callable[[ColorContext, ButterflyConfig], RGB]] = {
    ColorMode.BRIGHTNESS_MAP: brightness_map,
    ColorMode.PHASE_HUE: phase_hue,
    ColorMode.FREQ_GRADIENT: freq_gradient,
}
