"""
Per-node attack/release smoothing of FFT stage magnitudes.

Raw magnitudes flicker from frame to frame. The follower keeps one
smoothed value per (stage, node) that rises quickly and falls with a
configurable curve, giving the "LED" look of the butterfly diagram.
"""

import enum
import logging
from dataclasses import asdict, dataclass
from typing import Any

import numpy as np

from spectrascope.core.fft import FFTSnapshot
from spectrascope.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Release differences at or below this snap to the target
SNAP_EPSILON = 1e-6

MAX_ATTACK = 0.99
MAX_RELEASE = 0.999
MIN_CURVE_SHAPE = 0.1


@dataclass(frozen=True)
class EnvelopeConfig:
    """Attack/Release response of the follower."""

    attack_time: float = 0.1  # 0.0 - 1.0 (smaller = faster attack)
    release_time: float = 0.95  # 0.0 - 1.0 (larger = slower release)
    curve_shape: float = 2.0  # 1.0 = linear, >1.0 = exponential, <1.0 = sticky
    name: str | None = None

    def snapshot(self) -> dict[str, Any]:
        """Return the config as a JSON-ready dict."""
        return asdict(self)

    @classmethod
    def restore(cls, settings: dict[str, Any]) -> "EnvelopeConfig":
        """Build a config from a dict produced by ``snapshot``."""
        try:
            return cls(
                attack_time=float(settings["attack_time"]),
                release_time=float(settings["release_time"]),
                curve_shape=float(settings["curve_shape"]),
                name=settings.get("name"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid envelope settings: {exc}") from exc


PRESETS: dict[str, EnvelopeConfig] = {
    "Digital (Linear)": EnvelopeConfig(0.1, 0.9, 1.0, name="Digital (Linear)"),
    "Neon (Exponential)": EnvelopeConfig(0.1, 0.95, 2.0, name="Neon (Exponential)"),
    # Careful with low shape, see envelope_step
    "Viscous (Sticky)": EnvelopeConfig(0.4, 0.92, 0.5, name="Viscous (Sticky)"),
    "Instant (Raw)": EnvelopeConfig(0.0, 0.0, 1.0, name="Instant (Raw)"),
}

DEFAULT_ENVELOPE = PRESETS["Neon (Exponential)"]


class Normalization(enum.Enum):
    """How raw magnitudes are mapped to follower targets."""

    NONE = "none"
    LOG = "log"


def envelope_step(current, target, config: EnvelopeConfig) -> np.ndarray:
    """
    Advance smoothed values one frame towards their targets.

    Attack (target > current) moves a fixed fraction of the gap.
    Release subtracts ``release_base * diff ** (shape - 1)``, never more
    than the gap itself:

    - shape 1: constant decrement per frame (linear fall)
    - shape 2: decrement proportional to the gap (exponential fall)
    - shape < 1: decrement *grows* as the gap shrinks. Tiny gaps can push
      the power to infinity; such factors are treated as 0, which leaves
      the value hanging until the gap drops under SNAP_EPSILON or the
      power becomes finite again. This sticky behaviour is intended but
      fragile.

    attack_time 0 and release_time 0 both land on the target in one step.
    Works element-wise on arrays; plain floats are accepted too.

    Returns:
        Array of new values (0-d for scalar input).
    """
    c = np.asarray(current, dtype=np.float64)
    m = np.asarray(target, dtype=np.float64)

    attack_factor = 1.0 - min(MAX_ATTACK, config.attack_time)
    if attack_factor >= 1.0:
        attacked = m
    else:
        attacked = c + (m - c) * attack_factor

    diff = c - m
    shape = max(MIN_CURVE_SHAPE, config.curve_shape)
    release_base = 1.0 - min(MAX_RELEASE, config.release_time)

    with np.errstate(over="ignore", divide="ignore", invalid="ignore"):
        factor = np.power(np.maximum(diff, 0.0), shape - 1.0)
    factor = np.where(np.isfinite(factor), factor, 0.0)

    decay = release_base * factor
    released = np.where(decay >= diff, m, c - decay)
    if release_base >= 1.0:
        # release_time 0 releases in a single step, mirroring attack_time 0
        released = m
    released = np.where(diff <= SNAP_EPSILON, m, released)

    return np.where(m > c, attacked, released)


class EnvelopeFollower:
    """
    Keeps the (stage_count, N) matrix of smoothed node values.

    The matrix is the visual memory of the diagram: it persists across
    frames and is only reallocated when the snapshot shape changes.
    """

    def __init__(
        self,
        config: EnvelopeConfig | None = None,
        normalization: Normalization = Normalization.NONE,
        log_base: float = 10.0,
    ):
        """
        Initialize the follower.

        Args:
            config: Attack/release response (default: Neon preset).
            normalization: Magnitude mapping applied before smoothing.
            log_base: Logarithm base for Normalization.LOG. Must be > 1.
        """
        if log_base <= 1.0:
            raise ConfigurationError(f"log_base must be greater than 1, got {log_base}")

        self.config = config or DEFAULT_ENVELOPE
        self.normalization = Normalization(normalization)
        self.log_base = float(log_base)
        self._state: np.ndarray | None = None

    @property
    def state(self) -> np.ndarray | None:
        """Current smoothed values, or None before the first update."""
        if self._state is None:
            return None
        view = self._state.view()
        view.setflags(write=False)
        return view

    @property
    def shape(self) -> tuple[int, int] | None:
        return None if self._state is None else self._state.shape

    def set_config(self, config: EnvelopeConfig):
        """Swap the response curve; takes effect on the next update."""
        self.config = config

    def reset(self):
        """Drop the state matrix; it is reallocated on the next update."""
        self._state = None

    def normalize(self, magnitudes: np.ndarray) -> np.ndarray:
        """Map raw magnitudes to targets according to the normalization mode."""
        mags = np.asarray(magnitudes, dtype=np.float64)

        if self.normalization is Normalization.LOG:
            with np.errstate(invalid="ignore", divide="ignore"):
                logged = np.log1p(np.maximum(mags, 0.0)) / np.log(self.log_base)
            mags = np.where(mags > 0.0, logged, 0.0)

        return np.nan_to_num(mags, nan=0.0, posinf=0.0, neginf=0.0)

    def targets(self, snapshot: FFTSnapshot) -> np.ndarray:
        """Normalized magnitude of every node in the snapshot."""
        return self.normalize(snapshot.magnitudes())

    def _ensure_state(self, shape: tuple[int, int]) -> np.ndarray:
        if self._state is None or self._state.shape != shape:
            logger.debug("Allocating envelope state %s", shape)
            self._state = np.zeros(shape, dtype=np.float64)
        return self._state

    def update(self, snapshot: FFTSnapshot) -> np.ndarray:
        """
        Advance every node one frame towards the snapshot magnitudes.

        Args:
            snapshot: Latest FFT snapshot.

        Returns:
            Read-only (stage_count, N) array of smoothed values.
        """
        targets = self.targets(snapshot)
        current = self._ensure_state(targets.shape)

        updated = envelope_step(current, targets, self.config)
        updated = np.nan_to_num(updated, nan=0.0, posinf=0.0, neginf=0.0)
        self._state = np.maximum(updated, 0.0)

        return self.state
