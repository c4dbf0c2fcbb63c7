"""
Visual configuration for the butterfly renderer.

The config is a plain value: ``snapshot`` turns it into a JSON-ready
dict and ``restore`` builds a new config from one, which is how the
CLI saves and loads visual settings.
"""

import enum
import logging
from dataclasses import asdict, dataclass, fields
from typing import Any

from spectrascope.errors import ConfigurationError

logger = logging.getLogger(__name__)


class ColorMode(enum.Enum):
    """How node colors are derived."""

    BRIGHTNESS_MAP = "BrightnessMap"  # envelope value -> green channel
    PHASE_HUE = "PhaseHue"  # phase -> hue, envelope -> brightness
    FREQ_GRADIENT = "FreqGradient_PhaseBrightness"  # bin -> hue, phase -> brightness


class Layout(enum.Enum):
    """Which stages are drawn."""

    ALL_STAGES = "all"
    SINGLE_STAGE = "single"


@dataclass(frozen=True)
class ButterflyConfig:
    """Configuration for the butterfly diagram renderer."""

    name: str = "Default (Blue-ish)"
    width: int = 1280
    height: int = 720
    margin: int = 50

    # Node size = clamp(min_size + value * size_scale, max_size)
    min_size: float = 2.0
    max_size: float = 20.0
    size_scale: float = 5.0

    color_mode: ColorMode = ColorMode.BRIGHTNESS_MAP

    # BrightnessMap
    brightness_r: int = 100
    brightness_b: int = 255
    brightness_g_scale: float = 50.0  # magnitude multiplier for the green channel

    # PhaseHue
    hue_offset: float = 0.0  # 0-360
    hue_range_ratio: float = 1.0  # -1.0 to 1.0, stretches the phase -> hue mapping
    hue_saturation: float = 80.0  # 0-100, shared with FreqGradient
    hue_brightness_scale: float = 100.0

    # FreqGradient_PhaseBrightness
    freq_hue_start: float = 240.0
    freq_hue_end: float = 0.0

    # View
    selected_stage_index: int = -1  # -1 for all stages
    rotation: int = 0  # 0 or 90 degrees
    background_color: tuple[int, int, int] = (20, 20, 20)
    line_color: tuple[int, int, int] = (100, 150, 255)
    line_alpha: int = 100  # 0-255, blended against the background

    def __post_init__(self):
        try:
            object.__setattr__(self, "color_mode", ColorMode(self.color_mode))
        except ValueError as exc:
            raise ConfigurationError(f"Unknown color mode: {self.color_mode!r}") from exc

        if self.rotation not in (0, 90):
            raise ConfigurationError(f"rotation must be 0 or 90, got {self.rotation}")
        if self.width < 1 or self.height < 1:
            raise ConfigurationError(f"Invalid surface size {self.width}x{self.height}")
        if self.min_size > self.max_size:
            raise ConfigurationError("min_size must not exceed max_size")

        object.__setattr__(self, "background_color", tuple(self.background_color))
        object.__setattr__(self, "line_color", tuple(self.line_color))

    @property
    def layout(self) -> Layout:
        if self.selected_stage_index < 0:
            return Layout.ALL_STAGES
        return Layout.SINGLE_STAGE

    def snapshot(self) -> dict[str, Any]:
        """Return the config as a JSON-ready dict."""
        settings = asdict(self)
        settings["color_mode"] = self.color_mode.value
        settings["background_color"] = list(self.background_color)
        settings["line_color"] = list(self.line_color)
        return settings

    @classmethod
    def restore(cls, settings: dict[str, Any]) -> "ButterflyConfig":
        """
        Build a config from a settings dict.

        Missing keys keep their defaults; unknown keys are ignored.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(settings) - known
        if unknown:
            logger.debug("Ignoring unknown visual settings: %s", sorted(unknown))

        try:
            return cls(**{k: v for k, v in settings.items() if k in known})
        except TypeError as exc:
            raise ConfigurationError(f"Invalid visual settings: {exc}") from exc


VIZ_PRESETS: dict[str, ButterflyConfig] = {
    "Default (Blue-ish)": ButterflyConfig(),
    "Phase -> Hue": ButterflyConfig(
        name="Phase -> Hue",
        color_mode=ColorMode.PHASE_HUE,
        hue_saturation=80.0,
        hue_brightness_scale=80.0,
    ),
    "Freq -> Cool/Warm, Phase -> Bri": ButterflyConfig(
        name="Freq -> Cool/Warm, Phase -> Bri",
        color_mode=ColorMode.FREQ_GRADIENT,
        brightness_r=0,
        brightness_b=0,
        brightness_g_scale=0.0,
        hue_saturation=90.0,
        hue_brightness_scale=0.0,
        freq_hue_start=240.0,  # Blue
        freq_hue_end=360.0,  # Red (via Magenta)
    ),
}
