"""Tests for butterfly visual configuration and color strategies."""

import json

import pytest

from spectrascope.errors import ConfigurationError
from spectrascope.visualizers.colors import (
    COLOR_STRATEGIES,
    ColorContext,
    brightness_map,
    freq_gradient,
    phase_hue,
)
from spectrascope.visualizers.config import VIZ_PRESETS, ButterflyConfig, ColorMode, Layout


def _ctx(value=1 + 0j, envelope_value=1.0, index=0, total=8):
    return ColorContext(
        value=value,
        magnitude=abs(value),
        envelope_value=envelope_value,
        index=index,
        total=total,
        stage_index=0,
    )


class TestButterflyConfig:
    def test_defaults(self):
        config = ButterflyConfig()
        assert config.color_mode is ColorMode.BRIGHTNESS_MAP
        assert config.layout is Layout.ALL_STAGES

    def test_color_mode_from_string(self):
        config = ButterflyConfig(color_mode="PhaseHue")
        assert config.color_mode is ColorMode.PHASE_HUE

    def test_unknown_color_mode(self):
        with pytest.raises(ConfigurationError):
            ButterflyConfig(color_mode="Rainbow")

    def test_rotation_must_be_0_or_90(self):
        with pytest.raises(ConfigurationError):
            ButterflyConfig(rotation=45)

    def test_size_bounds(self):
        with pytest.raises(ConfigurationError):
            ButterflyConfig(min_size=30.0, max_size=20.0)
        with pytest.raises(ConfigurationError):
            ButterflyConfig(width=0)

    def test_single_stage_layout(self):
        assert ButterflyConfig(selected_stage_index=2).layout is Layout.SINGLE_STAGE

    def test_snapshot_is_json_ready(self):
        """snapshot() should survive a JSON round trip and restore equal."""
        config = VIZ_PRESETS["Freq -> Cool/Warm, Phase -> Bri"]
        settings = json.loads(json.dumps(config.snapshot()))

        assert settings["color_mode"] == "FreqGradient_PhaseBrightness"
        assert ButterflyConfig.restore(settings) == config

    def test_restore_ignores_unknown_keys(self):
        config = ButterflyConfig.restore({"width": 320, "height": 240, "sparkle": True})
        assert (config.width, config.height) == (320, 240)

    def test_restore_rejects_bad_values(self):
        with pytest.raises(ConfigurationError):
            ButterflyConfig.restore({"width": "wide"})

    def test_presets(self):
        assert list(VIZ_PRESETS) == [
            "Default (Blue-ish)",
            "Phase -> Hue",
            "Freq -> Cool/Warm, Phase -> Bri",
        ]
        assert VIZ_PRESETS["Phase -> Hue"].color_mode is ColorMode.PHASE_HUE


class TestColorStrategies:
    def test_every_mode_has_a_strategy(self):
        assert set(COLOR_STRATEGIES) == set(ColorMode)

    def test_brightness_map(self):
        config = ButterflyConfig()
        assert brightness_map(_ctx(envelope_value=2.0), config) == (100, 100, 255)
        # Green saturates at 255
        assert brightness_map(_ctx(envelope_value=100.0), config) == (100, 255, 255)

    def test_phase_hue_zero_phase_is_red(self):
        config = ButterflyConfig(color_mode=ColorMode.PHASE_HUE)
        r, g, b = phase_hue(_ctx(value=1 + 0j), config)
        assert r == 255
        assert g == b
        assert g < r

    def test_phase_hue_silent_node_is_black(self):
        config = ButterflyConfig(color_mode=ColorMode.PHASE_HUE)
        assert phase_hue(_ctx(envelope_value=0.0), config) == (0, 0, 0)

    def test_freq_gradient_ends(self):
        """First bin should be blue, last bin red (hue 240 -> 360)."""
        config = VIZ_PRESETS["Freq -> Cool/Warm, Phase -> Bri"]
        # Phase pi -> full brightness
        first = freq_gradient(_ctx(value=-1 + 1e-12j, index=0), config)
        last = freq_gradient(_ctx(value=-1 + 1e-12j, index=7), config)

        assert first[2] == max(first)
        assert last[0] == max(last)

    def test_freq_gradient_single_node(self):
        config = ButterflyConfig(color_mode=ColorMode.FREQ_GRADIENT)
        assert len(freq_gradient(_ctx(index=0, total=1), config)) == 3
