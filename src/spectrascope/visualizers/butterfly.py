"""
Butterfly diagram renderer.

Lays the FFT stages out as columns of nodes and draws the butterfly
connections between consecutive stages:
- Node size → smoothed magnitude (envelope follower)
- Node color → ColorMode strategy (magnitude, phase or bin index)
- Lines → which nodes of stage s feed each node of stage s+1
"""

import logging
from typing import Callable

import numpy as np
import pygame

from spectrascope.core.envelope import EnvelopeFollower
from spectrascope.core.fft import FFTSnapshot
from spectrascope.visualizers.base import BaseRenderer
from spectrascope.visualizers.colors import COLOR_STRATEGIES, ColorContext
from spectrascope.visualizers.config import ButterflyConfig, Layout

logger = logging.getLogger(__name__)

# stage index -> (xs, ys) node centers
NodePositions = dict[int, tuple[np.ndarray, np.ndarray]]


def _axis_positions(count: int, length: float, margin: float) -> np.ndarray:
    """Evenly spread ``count`` points over [margin, length - margin]."""
    if count <= 1:
        return np.array([length / 2.0])
    stride = (length - 2 * margin) / (count - 1)
    return margin + np.arange(count) * stride


def _orient(
    stage_pos: np.ndarray,
    node_pos: np.ndarray,
    cfg: ButterflyConfig,
) -> tuple[np.ndarray, np.ndarray]:
    """Map (stage axis, node axis) to screen (x, y) for the configured rotation."""
    if cfg.rotation == 90:
        return node_pos, stage_pos
    return stage_pos, node_pos


def _axis_lengths(cfg: ButterflyConfig) -> tuple[int, int]:
    """(stage axis length, node axis length) in pixels."""
    if cfg.rotation == 90:
        return cfg.height, cfg.width
    return cfg.width, cfg.height


def layout_all_stages(stage_count: int, size: int, cfg: ButterflyConfig) -> NodePositions:
    """Every stage as its own column, stage 0 first."""
    stage_len, node_len = _axis_lengths(cfg)
    stage_axis = _axis_positions(stage_count, stage_len, cfg.margin)
    node_axis = _axis_positions(size, node_len, cfg.margin)

    positions = {}
    for s in range(stage_count):
        stage_pos = np.full(size, stage_axis[s])
        positions[s] = _orient(stage_pos, node_axis, cfg)
    return positions


def layout_single_stage(stage_count: int, size: int, cfg: ButterflyConfig) -> NodePositions:
    """Only the selected stage, centered. Out-of-range selections pick the last stage."""
    stage_len, node_len = _axis_lengths(cfg)
    stage = min(cfg.selected_stage_index, stage_count - 1)
    node_axis = _axis_positions(size, node_len, cfg.margin)
    stage_pos = np.full(size, stage_len / 2.0)
    return {stage: _orient(stage_pos, node_axis, cfg)}


LAYOUTS: dict[Layout, Callable[[int, int, ButterflyConfig], NodePositions]] = {
    Layout.ALL_STAGES: layout_all_stages,
    Layout.SINGLE_STAGE: layout_single_stage,
}


class ButterflyRenderer(BaseRenderer):
    """
    Renders FFT stage snapshots as a butterfly diagram on a pygame Surface.

    The surface is off-screen; realtime hosts blit it to the display and
    the export driver reads its pixels with ``to_array``.
    """

    def __init__(
        self,
        config: ButterflyConfig | None = None,
        follower: EnvelopeFollower | None = None,
    ):
        """
        Initialize the renderer.

        Args:
            config: Visual configuration. Uses defaults if None.
            follower: Envelope follower. A default Neon follower if None.
        """
        super().__init__(follower)
        self.config = config or ButterflyConfig()
        self.surface = pygame.Surface((self.config.width, self.config.height))
        self.surface.fill(self.config.background_color)
        self._font: pygame.font.Font | None = None

    def set_config(self, config: ButterflyConfig):
        """Swap visual settings; the surface is rebuilt if its size changed."""
        if (config.width, config.height) != (self.config.width, self.config.height):
            logger.debug("Resizing surface to %dx%d", config.width, config.height)
            self.surface = pygame.Surface((config.width, config.height))
            self.surface.fill(config.background_color)
        self.config = config

    def _line_color(self) -> tuple[int, int, int]:
        cfg = self.config
        alpha = min(max(cfg.line_alpha, 0), 255) / 255.0
        return tuple(
            int(bg + (fg - bg) * alpha)
            for fg, bg in zip(cfg.line_color, cfg.background_color)
        )

    def _draw_connections(self, positions: NodePositions, stage_count: int, size: int):
        """Butterfly wiring between stage s and s+1."""
        color = self._line_color()

        for s in range(stage_count - 1):
            if s not in positions or s + 1 not in positions:
                continue
            x1s, y1s = positions[s]
            x2s, y2s = positions[s + 1]

            butterfly = 1 << (s + 1)
            half = butterfly >> 1

            for group in range(0, size, butterfly):
                for j in range(half):
                    k = group + j  # even
                    m = k + half  # odd

                    # Both outputs depend on both inputs
                    for src in (k, m):
                        for dst in (k, m):
                            pygame.draw.line(
                                self.surface,
                                color,
                                (x1s[src], y1s[src]),
                                (x2s[dst], y2s[dst]),
                            )

    def _draw_labels(self, positions: NodePositions):
        """Stage labels (S0, S1, ...), only when pygame fonts are available."""
        if not pygame.font.get_init():
            return
        if self._font is None:
            self._font = pygame.font.Font(None, 18)

        cfg = self.config
        for s, (xs, ys) in positions.items():
            text = self._font.render(f"S{s}", True, (255, 255, 255))
            # Centered in the margin after the last node
            if cfg.rotation == 90:
                pos = (
                    cfg.width - (cfg.margin + text.get_width()) / 2,
                    ys[0] - text.get_height() / 2,
                )
            else:
                pos = (
                    xs[0] - text.get_width() / 2,
                    cfg.height - (cfg.margin + text.get_height()) / 2,
                )
            self.surface.blit(text, pos)

    def draw(self, snapshot: FFTSnapshot) -> pygame.Surface:
        """
        Render a single frame.

        Args:
            snapshot: FFT snapshot for this frame.

        Returns:
            The renderer's surface.
        """
        cfg = self.config
        values = self.follower.update(snapshot)
        stage_count, size = values.shape

        positions = LAYOUTS[cfg.layout](stage_count, size, cfg)
        strategy = COLOR_STRATEGIES[cfg.color_mode]

        self.surface.fill(cfg.background_color)

        if cfg.layout is Layout.ALL_STAGES:
            self._draw_connections(positions, stage_count, size)

        for s, (xs, ys) in positions.items():
            stage = snapshot.stages[s]
            magnitudes = np.abs(stage)
            for i in range(size):
                current = float(values[s, i])
                diameter = min(cfg.max_size, cfg.min_size + current * cfg.size_scale)

                color = strategy(
                    ColorContext(
                        value=complex(stage[i]),
                        magnitude=float(magnitudes[i]),
                        envelope_value=current,
                        index=i,
                        total=size,
                        stage_index=s,
                    ),
                    cfg,
                )
                pygame.draw.circle(
                    self.surface,
                    color,
                    (float(xs[i]), float(ys[i])),
                    max(1.0, diameter / 2.0),
                )

        self._draw_labels(positions)
        return self.surface

    def to_array(self) -> np.ndarray:
        """Convert the surface to a (H, W, 3) uint8 array for video encoding."""
        # pygame uses (width, height) but numpy expects (height, width)
        arr = pygame.surfarray.array3d(self.surface)
        return np.ascontiguousarray(np.transpose(arr, (1, 0, 2)))
