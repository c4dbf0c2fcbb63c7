"""
Radix-2 decimation-in-time FFT that keeps every butterfly stage.

A regular FFT only hands back the final spectrum. The butterfly
visualization needs the data *between* stages as well, so the engine
records the bit-reversed input and the output of each butterfly pass
as separate, read-only arrays.
"""

import logging
from dataclasses import dataclass

import numpy as np

from spectrascope.errors import ConfigurationError

logger = logging.getLogger(__name__)


def is_power_of_two(value) -> bool:
    """True for positive integer powers of two (1, 2, 4, ...)."""
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        return False
    return value > 0 and (value & (value - 1)) == 0


def bit_reversal_indices(size: int) -> np.ndarray:
    """
    Build the bit-reversal permutation for a power-of-two size.

    Each index has its low ``log2(size)`` bits reversed. The mapping is
    its own inverse.

    Args:
        size: Transform length, a power of two.

    Returns:
        int64 array of length ``size``.
    """
    if not is_power_of_two(size):
        raise ConfigurationError(f"FFT size must be a power of 2, got {size!r}")

    levels = int(size).bit_length() - 1
    remaining = np.arange(size, dtype=np.int64)
    reversed_idx = np.zeros(size, dtype=np.int64)
    for _ in range(levels):
        reversed_idx = (reversed_idx << 1) | (remaining & 1)
        remaining >>= 1
    return reversed_idx


def _read_only(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


@dataclass(frozen=True)
class FFTSnapshot:
    """
    Full history of one FFT computation.

    stages[0] is the bit-reversed input (imaginary parts zero).
    stages[-1] is the final frequency-domain spectrum.
    """

    input_buffer: np.ndarray  # Shape: (N,), real
    stages: tuple[np.ndarray, ...]  # log2(N) + 1 arrays of shape (N,), complex
    bit_reversal: np.ndarray  # Shape: (N,), permutation of range(N)

    @property
    def size(self) -> int:
        return len(self.input_buffer)

    @property
    def stage_count(self) -> int:
        return len(self.stages)

    @property
    def spectrum(self) -> np.ndarray:
        """Final stage, i.e. the DFT of the input."""
        return self.stages[-1]

    def magnitudes(self) -> np.ndarray:
        """Magnitude of every node as a (stage_count, N) float array."""
        return np.abs(np.stack(self.stages))


class FFTEngine:
    """
    Cooley-Tukey FFT for a fixed power-of-two size.

    The permutation and twiddle tables are computed once at construction
    and never written afterwards, so ``compute`` is a pure function of
    its input.
    """

    def __init__(self, size: int, dtype=np.complex128):
        """
        Initialize the engine.

        Args:
            size: Transform length N. Must be a power of two.
            dtype: complex128 (double) or complex64 (single) precision.
        """
        if not is_power_of_two(size):
            raise ConfigurationError(f"FFT size must be a power of 2, got {size!r}")

        dtype = np.dtype(dtype)
        if dtype.kind != "c":
            raise ConfigurationError(f"FFT dtype must be complex, got {dtype}")

        self.size = int(size)
        self.dtype = dtype
        self.real_dtype = np.zeros(1, dtype=dtype).real.dtype
        self.n_stages = self.size.bit_length() - 1

        self.bit_reversal = _read_only(bit_reversal_indices(self.size))
        self._twiddles = [
            _read_only(self._stage_twiddles(stage))
            for stage in range(1, self.n_stages + 1)
        ]

        logger.debug(
            "FFTEngine ready: size=%d stages=%d dtype=%s",
            self.size, self.n_stages + 1, self.dtype,
        )

    @property
    def stage_count(self) -> int:
        """Number of stages in every snapshot, log2(N) + 1."""
        return self.n_stages + 1

    def _stage_twiddles(self, stage: int) -> np.ndarray:
        """
        Twiddle factors u_j for one butterfly stage.

        u_0 = 1 and u_{j+1} = u_j * W, with W = exp(-2*pi*i / butterfly).
        The factors come from repeated multiplication rather than a
        cos/sin per j, so rotation error accumulates along the stage.
        """
        butterfly = 1 << stage
        half = butterfly >> 1
        theta = -2.0 * np.pi / butterfly

        steps = np.empty(half, dtype=self.dtype)
        steps[0] = 1.0
        steps[1:] = complex(np.cos(theta), np.sin(theta))
        return np.cumprod(steps)

    def compute(self, samples) -> FFTSnapshot:
        """
        Run the transform and record every stage.

        Args:
            samples: Real time-domain buffer of length N.

        Returns:
            A new FFTSnapshot. Nothing in it is shared with other calls
            except the read-only permutation table.
        """
        data = np.array(samples, dtype=self.real_dtype, copy=True)
        if data.ndim != 1:
            raise ConfigurationError(
                f"FFT input must be one-dimensional, got shape {data.shape}"
            )
        if data.shape[0] != self.size:
            raise ConfigurationError(
                f"Input size {data.shape[0]} does not match FFT size {self.size}"
            )

        # Stage 0: bit-reversed copy of the input
        current = data[self.bit_reversal].astype(self.dtype)
        stages = [_read_only(current)]

        for stage in range(1, self.n_stages + 1):
            butterfly = 1 << stage
            half = butterfly >> 1

            groups = current.reshape(-1, butterfly)
            even = groups[:, :half]
            odd = groups[:, half:]
            t = odd * self._twiddles[stage - 1]

            nxt = np.empty_like(groups)
            nxt[:, :half] = even + t
            nxt[:, half:] = even - t

            current = nxt.reshape(self.size)
            stages.append(_read_only(current))

        return FFTSnapshot(
            input_buffer=_read_only(data),
            stages=tuple(stages),
            bit_reversal=self.bit_reversal,
        )
