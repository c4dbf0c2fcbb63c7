"""
Spectral tilt correction (pre-emphasis) for continuous sample streams.
"""

import logging

import numpy as np

logger = logging.getLogger(__name__)

# Coefficient reached at amount=1.0 (+6dB/oct pre-emphasis)
MAX_COEFFICIENT = 0.95


class SpectralWhitener:
    """
    First-order pre-emphasis filter: y[n] = x[n] - a * x[n-1].

    Music is bass heavy, so raw spectra are dominated by the low bins.
    Pre-emphasis flattens that tilt so the upper bins stay visible.
    The filter remembers the last input sample between calls; call
    ``reset`` whenever the stream is discontinuous.
    """

    def __init__(self, amount: float = 0.0):
        """
        Initialize the whitener.

        Args:
            amount: Tilt correction from 0.0 (flat) to 1.0 (full pre-emphasis).
        """
        self.amount = 0.0
        self.coefficient = 0.0
        self.last_sample = 0.0
        self.set_amount(amount)

    def set_amount(self, amount: float):
        """Set the correction amount, clamped to [0, 1]."""
        self.amount = float(np.clip(amount, 0.0, 1.0))
        self.coefficient = MAX_COEFFICIENT * self.amount

    def whiten(self, samples) -> np.ndarray:
        """
        Filter one buffer of the stream.

        Args:
            samples: Time-domain buffer. Not modified.

        Returns:
            New float64 array of the same length.
        """
        x = np.asarray(samples, dtype=np.float64)
        if x.size == 0:
            return np.zeros(0, dtype=np.float64)

        # Previous *input* sample for each position
        previous = np.empty_like(x)
        previous[0] = self.last_sample
        previous[1:] = x[:-1]

        output = x - self.coefficient * previous
        self.last_sample = float(x[-1])
        return output

    def reset(self):
        """Forget the filter memory (source change, seek, restart)."""
        logger.debug("Whitener state reset")
        self.last_sample = 0.0
