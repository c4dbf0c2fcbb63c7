"""
Renderer contract used by the loop drivers.
"""

import abc
from typing import Protocol, runtime_checkable

import numpy as np

from spectrascope.core.envelope import EnvelopeConfig, EnvelopeFollower
from spectrascope.core.fft import FFTSnapshot


@runtime_checkable
class Renderer(Protocol):
    """What the loop drivers need from a renderer."""

    follower: EnvelopeFollower

    def draw(self, snapshot: FFTSnapshot): ...

    def to_array(self) -> np.ndarray: ...

    def reset(self) -> None: ...


class BaseRenderer(abc.ABC):
    """
    Draws one FFTSnapshot per frame onto an off-screen surface.

    The renderer owns the envelope follower and advances it as part of
    drawing, so the follower sees exactly one update per rendered frame.
    """

    def __init__(self, follower: EnvelopeFollower | None = None):
        self.follower = follower or EnvelopeFollower()

    def set_envelope_config(self, config: EnvelopeConfig):
        self.follower.set_config(config)

    def reset(self):
        """Forget the smoothing state (start of a reproducible export)."""
        self.follower.reset()

    @abc.abstractmethod
    def draw(self, snapshot: FFTSnapshot):
        """Advance the follower and render the snapshot."""

    @abc.abstractmethod
    def to_array(self) -> np.ndarray:
        """Current frame as a (H, W, 3) uint8 array."""
