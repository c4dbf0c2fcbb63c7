"""Tests for the pygame butterfly renderer."""

import numpy as np
import pygame
import pytest

from spectrascope.core.envelope import PRESETS, EnvelopeConfig, EnvelopeFollower
from spectrascope.core.fft import FFTEngine
from spectrascope.visualizers.butterfly import LAYOUTS, ButterflyRenderer
from spectrascope.visualizers.config import ButterflyConfig, ColorMode, Layout

WIDTH, HEIGHT = 160, 120


@pytest.fixture
def config():
    return ButterflyConfig(width=WIDTH, height=HEIGHT, margin=10)


@pytest.fixture
def snapshot():
    x = np.cos(2 * np.pi * np.arange(16) / 16)
    return FFTEngine(16).compute(x)


class TestButterflyRenderer:
    def test_frame_shape(self, config, snapshot):
        renderer = ButterflyRenderer(config)
        surface = renderer.draw(snapshot)
        frame = renderer.to_array()

        assert surface.get_size() == (WIDTH, HEIGHT)
        assert frame.shape == (HEIGHT, WIDTH, 3)
        assert frame.dtype == np.uint8
        assert frame.flags["C_CONTIGUOUS"]

    def test_blank_before_first_draw(self, config):
        frame = ButterflyRenderer(config).to_array()
        assert np.all(frame == np.array(config.background_color, dtype=np.uint8))

    def test_draw_paints_nodes(self, config, snapshot):
        renderer = ButterflyRenderer(config)
        renderer.draw(snapshot)
        frame = renderer.to_array()

        assert not np.all(frame == np.array(config.background_color, dtype=np.uint8))

    def test_draw_advances_follower(self, config, snapshot):
        renderer = ButterflyRenderer(config, EnvelopeFollower(PRESETS["Instant (Raw)"]))
        renderer.draw(snapshot)

        assert renderer.follower.shape == (5, 16)
        assert np.allclose(renderer.follower.state, snapshot.magnitudes())

        renderer.reset()
        assert renderer.follower.state is None

    @pytest.mark.parametrize("mode", list(ColorMode))
    @pytest.mark.parametrize("rotation", [0, 90])
    def test_all_modes_render(self, snapshot, mode, rotation):
        config = ButterflyConfig(width=WIDTH, height=HEIGHT, color_mode=mode, rotation=rotation)
        renderer = ButterflyRenderer(config)
        renderer.draw(snapshot)
        assert renderer.to_array().shape == (HEIGHT, WIDTH, 3)

    def test_single_stage(self, snapshot):
        config = ButterflyConfig(width=WIDTH, height=HEIGHT, selected_stage_index=2)
        renderer = ButterflyRenderer(config)
        renderer.draw(snapshot)
        assert renderer.to_array().shape == (HEIGHT, WIDTH, 3)

    def test_set_config_resizes(self, config, snapshot):
        renderer = ButterflyRenderer(config)
        renderer.set_config(ButterflyConfig(width=64, height=32))
        renderer.draw(snapshot)

        assert renderer.to_array().shape == (32, 64, 3)

    def test_set_envelope_config(self, config):
        renderer = ButterflyRenderer(config)
        custom = EnvelopeConfig(0.2, 0.5, 1.5)
        renderer.set_envelope_config(custom)
        assert renderer.follower.config is custom

    def test_stage_labels_with_fonts(self, config, snapshot):
        pygame.font.init()
        try:
            renderer = ButterflyRenderer(config)
            renderer.draw(snapshot)
            assert renderer.to_array().shape == (HEIGHT, WIDTH, 3)
        finally:
            pygame.font.quit()


class TestLayouts:
    def test_all_stages_columns(self, config):
        positions = LAYOUTS[Layout.ALL_STAGES](5, 16, config)

        assert sorted(positions) == [0, 1, 2, 3, 4]
        xs0, ys0 = positions[0]
        xs4, _ = positions[4]
        assert np.all(xs0 == config.margin)
        assert np.all(xs4 == WIDTH - config.margin)
        assert ys0[0] == config.margin
        assert ys0[-1] == pytest.approx(HEIGHT - config.margin)

    def test_rotation_swaps_axes(self):
        config = ButterflyConfig(width=WIDTH, height=HEIGHT, margin=10, rotation=90)
        xs, ys = LAYOUTS[Layout.ALL_STAGES](5, 16, config)[0]

        assert np.all(ys == 10)
        assert xs[0] == 10
        assert xs[-1] == pytest.approx(WIDTH - 10)

    def test_single_stage_clamps_index(self):
        config = ButterflyConfig(width=WIDTH, height=HEIGHT, selected_stage_index=99)
        positions = LAYOUTS[Layout.SINGLE_STAGE](5, 16, config)

        assert list(positions) == [4]
        xs, _ = positions[4]
        assert np.all(xs == WIDTH / 2)
