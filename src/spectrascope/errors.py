"""
Exception hierarchy for the spectrascope pipeline.

Construction-time problems are raised immediately. Per-frame numeric
anomalies are never raised; the envelope follower clamps them to zero.
"""


class SpectrascopeError(Exception):
    """Base class for all spectrascope errors."""


class ConfigurationError(SpectrascopeError, ValueError):
    """
    Invalid configuration or capability mismatch.

    Raised for non-power-of-two FFT sizes, input length mismatches, and
    export requests against sources that cannot seek or have no finite
    duration.
    """


class ResourceError(SpectrascopeError, OSError):
    """An audio source or encoder could not acquire its resources."""
