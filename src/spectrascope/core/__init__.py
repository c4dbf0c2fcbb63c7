"""Numeric core: FFT engine, spectral whitener and envelope follower."""

from spectrascope.core.envelope import (
    DEFAULT_ENVELOPE,
    PRESETS,
    EnvelopeConfig,
    EnvelopeFollower,
    Normalization,
    envelope_step,
)
from spectrascope.core.fft import FFTEngine, FFTSnapshot, bit_reversal_indices
from spectrascope.core.whitener import SpectralWhitener

__all__ = [
    "DEFAULT_ENVELOPE",
    "PRESETS",
    "EnvelopeConfig",
    "EnvelopeFollower",
    "Normalization",
    "envelope_step",
    "FFTEngine",
    "FFTSnapshot",
    "bit_reversal_indices",
    "SpectralWhitener",
]
