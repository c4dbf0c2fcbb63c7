"""FFT butterfly-stage visualizer: stage-recording FFT, whitening, envelope smoothing."""

from spectrascope.core.envelope import PRESETS, EnvelopeConfig, EnvelopeFollower
from spectrascope.core.fft import FFTEngine, FFTSnapshot
from spectrascope.core.whitener import SpectralWhitener
from spectrascope.errors import ConfigurationError, ResourceError, SpectrascopeError
from spectrascope.loop import LoopState, OfflineExportLoop, RealtimeLoop
from spectrascope.session import VisualizerSession

__version__ = "0.1.0"
__all__ = [
    "PRESETS",
    "EnvelopeConfig",
    "EnvelopeFollower",
    "FFTEngine",
    "FFTSnapshot",
    "SpectralWhitener",
    "ConfigurationError",
    "ResourceError",
    "SpectrascopeError",
    "LoopState",
    "OfflineExportLoop",
    "RealtimeLoop",
    "VisualizerSession",
]
