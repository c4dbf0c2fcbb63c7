"""
Session object owning the processing chain and the active driver.

There is no global engine: every host (CLI, tests, an embedding app)
builds a VisualizerSession and drives it. At most one loop driver is
active per session, so the shared whitener and envelope state only ever
see one flow of frames.
"""

import logging
from typing import Any, Callable

import numpy as np

from spectrascope.core.envelope import PRESETS, EnvelopeConfig
from spectrascope.core.fft import FFTEngine, FFTSnapshot
from spectrascope.core.whitener import SpectralWhitener
from spectrascope.errors import ConfigurationError
from spectrascope.io.encoder import VideoSink
from spectrascope.io.sources import AudioSource, FileAudioSource
from spectrascope.loop import OfflineExportLoop, RealtimeLoop, RenderLoop
from spectrascope.visualizers.base import Renderer
from spectrascope.visualizers.butterfly import ButterflyRenderer
from spectrascope.visualizers.config import ButterflyConfig

logger = logging.getLogger(__name__)


class VisualizerSession:
    """
    FFT engine, whitener, renderer, current source and active driver.

    Starting any driver stops the previous one first.
    """

    def __init__(
        self,
        fft_size: int = 128,
        whitening: float = 0.6,
        renderer: Renderer | None = None,
        dtype=np.complex128,
    ):
        """
        Initialize the session.

        Args:
            fft_size: Transform length N (power of two). Sources must
                deliver buffers of this size.
            whitening: Initial pre-emphasis amount (0.0 - 1.0).
            renderer: Renderer to draw with. A default ButterflyRenderer
                if None.
            dtype: Complex precision of the FFT.
        """
        self.engine = FFTEngine(fft_size, dtype=dtype)
        self.whitener = SpectralWhitener(whitening)
        self.renderer = renderer or ButterflyRenderer()
        self.source: AudioSource | None = None
        self.driver: RenderLoop | None = None

    @property
    def fft_size(self) -> int:
        return self.engine.size

    def _require_source(self) -> AudioSource:
        if self.source is None:
            raise ConfigurationError("No audio source selected")
        return self.source

    def _stop_driver(self):
        if self.driver is not None:
            self.driver.stop()
            self.driver = None

    # Sources

    def switch_source(self, source: AudioSource):
        """
        Make ``source`` the current source.

        Stops the active driver, disconnects the previous source and
        initializes the new one. On ResourceError the session is left
        without a source and the error propagates.
        """
        if source.buffer_size != self.engine.size:
            raise ConfigurationError(
                f"Source buffer size {source.buffer_size} does not match "
                f"FFT size {self.engine.size}"
            )

        self._stop_driver()
        if self.source is not None and self.source is not source:
            self.source.disconnect()
        self.source = None

        source.initialize()
        self.source = source
        self.whitener.reset()
        logger.info("Switched source to %s", type(source).__name__)

    def play(self):
        if isinstance(self.source, FileAudioSource):
            self.source.play()

    def pause(self):
        if isinstance(self.source, FileAudioSource):
            self.source.pause()

    def toggle_playback(self):
        if isinstance(self.source, FileAudioSource):
            if self.source.is_playing:
                self.source.pause()
            else:
                self.source.play()

    def seek(self, timestamp: float):
        """Move the file playhead; the whitener forgets the old position."""
        if isinstance(self.source, FileAudioSource):
            self.source.seek(timestamp)
            self.whitener.reset()

    def skip(self, delta: float):
        if isinstance(self.source, FileAudioSource):
            self.seek(self.source.current_time() + delta)

    # Drivers

    def start_realtime(
        self,
        refresh_rate: float = 60.0,
        on_frame: Callable[[FFTSnapshot], Any] | None = None,
        loop=None,
    ) -> RealtimeLoop:
        """Stop the active driver and start a realtime loop on the current source."""
        source = self._require_source()
        driver = RealtimeLoop(
            source,
            self.engine,
            self.whitener,
            self.renderer,
            refresh_rate=refresh_rate,
            on_frame=on_frame,
            loop=loop,
        )

        self._stop_driver()
        driver.start()
        self.driver = driver
        return driver

    def start_export(
        self,
        sink: VideoSink,
        frame_rate: float = 60,
        yield_every: int = 30,
        on_progress: Callable[[float], Any] | None = None,
        on_frame: Callable[[int, FFTSnapshot], Any] | None = None,
        on_complete: Callable[[Any], Any] | None = None,
        reset_state: bool = True,
        max_duration: float | None = None,
    ) -> OfflineExportLoop:
        """
        Stop the active driver and export the current source into ``sink``.

        The export is validated before anything is stopped, so a
        non-seekable source leaves the running driver untouched. Must be
        called from a running event loop; await ``driver.task`` for the
        artifact.
        """
        source = self._require_source()
        driver = OfflineExportLoop(
            source,
            self.engine,
            self.whitener,
            self.renderer,
            sink,
            frame_rate=frame_rate,
            yield_every=yield_every,
            on_progress=on_progress,
            on_frame=on_frame,
            on_complete=on_complete,
            reset_state=reset_state,
            max_duration=max_duration,
        )

        self._stop_driver()
        driver.start()
        self.driver = driver
        return driver

    def stop(self):
        """Stop the active driver, if any."""
        self._stop_driver()

    # Settings

    def set_whitening(self, amount: float):
        self.whitener.set_amount(amount)

    def set_envelope(self, config: EnvelopeConfig | str):
        """Set the envelope response from a config or a preset name."""
        if isinstance(config, str):
            try:
                config = PRESETS[config]
            except KeyError as exc:
                raise ConfigurationError(f"Unknown envelope preset: {config!r}") from exc
        self.renderer.follower.set_config(config)

    def set_visual_config(self, config: ButterflyConfig):
        if not hasattr(self.renderer, "set_config"):
            raise ConfigurationError(
                f"{type(self.renderer).__name__} has no visual configuration"
            )
        self.renderer.set_config(config)

    def close(self):
        """Stop everything and release the source."""
        self._stop_driver()
        if self.source is not None:
            self.source.disconnect()
            self.source = None
