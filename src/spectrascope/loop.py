"""
Loop drivers: who decides when a frame is produced.

Both drivers run the same per-frame pipeline (whiten, FFT, draw) and
differ only in where the samples come from and what paces them:

- RealtimeLoop: latest live buffer, paced by the event loop clock.
- OfflineExportLoop: buffer at t = i / frame_rate, as fast as the
  renderer and sink allow, frames handed to a VideoSink.
"""

import abc
import asyncio
import enum
import inspect
import logging
import math
from typing import Any, Callable

import numpy as np

from spectrascope.core.fft import FFTEngine, FFTSnapshot
from spectrascope.core.whitener import SpectralWhitener
from spectrascope.errors import ConfigurationError
from spectrascope.io.encoder import VideoSink
from spectrascope.io.sources import AudioSource, SeekableSource
from spectrascope.visualizers.base import Renderer

logger = logging.getLogger(__name__)


class LoopState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class RenderLoop(abc.ABC):
    """
    Shared lifecycle for the drivers.

    IDLE -> RUNNING -> STOPPED. A stopped loop is finished; build a new
    one to run again.
    """

    def __init__(
        self,
        source: AudioSource,
        engine: FFTEngine,
        whitener: SpectralWhitener,
        renderer: Renderer,
    ):
        if source.buffer_size != engine.size:
            raise ConfigurationError(
                f"Source buffer size {source.buffer_size} does not match "
                f"FFT size {engine.size}"
            )
        self.source = source
        self.engine = engine
        self.whitener = whitener
        self.renderer = renderer
        self.state = LoopState.IDLE
        self.frame_count = 0

    @property
    def is_running(self) -> bool:
        return self.state is LoopState.RUNNING

    def _begin(self):
        if self.state is not LoopState.IDLE:
            raise RuntimeError(f"Cannot start a loop that is {self.state.value}")
        self.state = LoopState.RUNNING

    def process(self, buffer: np.ndarray) -> FFTSnapshot:
        """Whiten, transform and draw one buffer."""
        snapshot = self.engine.compute(self.whitener.whiten(buffer))
        self.renderer.draw(snapshot)
        self.frame_count += 1
        return snapshot

    @abc.abstractmethod
    def start(self):
        """Begin producing frames."""

    @abc.abstractmethod
    def stop(self):
        """Stop producing frames. Safe to call more than once."""


class RealtimeLoop(RenderLoop):
    """
    Renders the live buffer at a fixed refresh rate.

    Exactly one tick is pending on the event loop while running; ``stop``
    cancels it, so no frame is produced afterwards.
    """

    def __init__(
        self,
        source: AudioSource,
        engine: FFTEngine,
        whitener: SpectralWhitener,
        renderer: Renderer,
        refresh_rate: float = 60.0,
        on_frame: Callable[[FFTSnapshot], Any] | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ):
        """
        Initialize the driver.

        Args:
            refresh_rate: Ticks per second.
            on_frame: Called with each snapshot after drawing; hosts use it
                to present the renderer's surface.
            loop: Event loop to schedule on. Defaults to the running loop
                at ``start``.
        """
        super().__init__(source, engine, whitener, renderer)
        if refresh_rate <= 0:
            raise ConfigurationError(f"refresh_rate must be positive, got {refresh_rate}")

        self.refresh_rate = float(refresh_rate)
        self.on_frame = on_frame
        self._loop = loop
        self._handle: asyncio.Handle | None = None
        self._finished: asyncio.Future | None = None

    @property
    def interval(self) -> float:
        return 1.0 / self.refresh_rate

    @property
    def pending(self) -> bool:
        """True while a tick is scheduled."""
        return self._handle is not None

    def start(self):
        loop = self._loop or asyncio.get_running_loop()
        self._begin()
        self._loop = loop
        self._finished = loop.create_future()
        self._handle = loop.call_soon(self._tick)
        logger.debug("Realtime loop started at %.1f Hz", self.refresh_rate)

    def stop(self):
        if self.state is LoopState.STOPPED:
            return
        self.state = LoopState.STOPPED
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self._finished is not None and not self._finished.done():
            self._finished.set_result(self.frame_count)
        logger.debug("Realtime loop stopped after %d frames", self.frame_count)

    async def wait(self) -> int:
        """Block until the loop stops; returns the number of frames drawn."""
        if self._finished is None:
            raise RuntimeError("Realtime loop was never started")
        return await self._finished

    def _tick(self):
        self._handle = None
        if self.state is not LoopState.RUNNING:
            return

        try:
            snapshot = self.process(self.source.get_next_buffer())
            if self.on_frame is not None:
                self.on_frame(snapshot)
        except Exception as exc:
            self.state = LoopState.STOPPED
            logger.exception("Realtime frame %d failed", self.frame_count)
            if self._finished is not None and not self._finished.done():
                self._finished.set_exception(exc)
            raise

        # on_frame may have stopped us
        if self.state is LoopState.RUNNING:
            self._handle = self._loop.call_later(self.interval, self._tick)


class OfflineExportLoop(RenderLoop):
    """
    Renders a seekable source frame by frame into a VideoSink.

    Frame i shows the buffer starting at i / frame_rate seconds, so the
    output is independent of how long each frame takes to render.
    Stopping early aborts the sink and discards the partial output.
    """

    def __init__(
        self,
        source: AudioSource,
        engine: FFTEngine,
        whitener: SpectralWhitener,
        renderer: Renderer,
        sink: VideoSink,
        frame_rate: float = 60,
        yield_every: int = 30,
        on_progress: Callable[[float], Any] | None = None,
        on_frame: Callable[[int, FFTSnapshot], Any] | None = None,
        on_complete: Callable[[Any], Any] | None = None,
        reset_state: bool = True,
        max_duration: float | None = None,
    ):
        """
        Initialize the export.

        Args:
            sink: Receives one (H, W, 3) frame per step.
            frame_rate: Output frames per second.
            yield_every: Report progress and yield to the event loop every
                N frames.
            on_progress: Called with the completed fraction (0.0 - 1.0).
            on_frame: Called with (frame index, snapshot) after each frame.
            on_complete: Called once with the sink's artifact.
            reset_state: Clear whitener and envelope memory first, so
                repeated exports of the same source are identical.
            max_duration: Optional limit in seconds.
        """
        super().__init__(source, engine, whitener, renderer)

        if not isinstance(source, SeekableSource):
            raise ConfigurationError(
                f"{type(source).__name__} cannot be exported: it is not seekable"
            )
        if frame_rate <= 0:
            raise ConfigurationError(f"frame_rate must be positive, got {frame_rate}")
        if yield_every < 1:
            raise ConfigurationError(f"yield_every must be at least 1, got {yield_every}")

        duration = source.get_meta_info().duration
        if duration is None or not math.isfinite(duration) or duration <= 0:
            raise ConfigurationError(f"Export needs a finite positive duration, got {duration}")
        if max_duration is not None:
            if max_duration <= 0:
                raise ConfigurationError(f"max_duration must be positive, got {max_duration}")
            duration = min(duration, max_duration)

        self.sink = sink
        self.frame_rate = frame_rate
        self.yield_every = int(yield_every)
        self.on_progress = on_progress
        self.on_frame = on_frame
        self.on_complete = on_complete
        self.reset_state = reset_state

        self.duration = duration
        self.total_frames = math.ceil(duration * frame_rate)
        self.task: asyncio.Task | None = None
        self.artifact: Any = None

    def start(self) -> asyncio.Task:
        """Schedule the export on the running event loop."""
        self._begin()
        self.task = asyncio.get_running_loop().create_task(self._export())
        return self.task

    async def run(self) -> Any:
        """Run the export to completion in the caller's task."""
        self._begin()
        return await self._export()

    def stop(self):
        """Request cancellation; takes effect before the next frame."""
        if self.state is LoopState.STOPPED:
            return
        self.state = LoopState.STOPPED
        logger.info("Export stop requested at frame %d/%d", self.frame_count, self.total_frames)

    def _report(self, fraction: float):
        if self.on_progress is not None:
            self.on_progress(fraction)

    async def _export(self) -> Any:
        if self.reset_state:
            self.whitener.reset()
            self.renderer.reset()

        logger.info(
            "Exporting %d frames (%.2fs at %s fps)",
            self.total_frames, self.duration, self.frame_rate,
        )

        try:
            for i in range(self.total_frames):
                if self.state is not LoopState.RUNNING:
                    break

                t = i / self.frame_rate
                snapshot = self.process(self.source.get_buffer_at_time(t))
                self.sink.add_frame(self.renderer.to_array())

                if self.on_frame is not None:
                    self.on_frame(i, snapshot)

                if i % self.yield_every == 0:
                    self._report(i / self.total_frames)
                    # Let the event loop run (UI, stop requests)
                    await asyncio.sleep(0)
        except BaseException:
            self.state = LoopState.STOPPED
            self.sink.abort()
            raise

        if self.state is not LoopState.RUNNING:
            self.sink.abort()
            logger.info("Export cancelled after %d frames, output discarded", self.frame_count)
            return None

        try:
            artifact = self.sink.complete()
            if inspect.isawaitable(artifact):
                artifact = await artifact
        finally:
            self.state = LoopState.STOPPED

        self.artifact = artifact
        self._report(1.0)
        if self.on_complete is not None:
            self.on_complete(artifact)
        logger.info("Export complete: %d frames", self.frame_count)
        return artifact
