"""
Audio sources feeding the visualization loop.

Two capabilities are distinguished explicitly:

- StreamingSource: only exposes the latest live buffer (microphone,
  synthetic signal).
- SeekableSource: can also be sampled at an absolute timestamp, which
  offline export requires.
"""

import abc
import logging
import math
import time
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np

from spectrascope.errors import ConfigurationError, ResourceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AudioSourceMetadata:
    """Basic facts about a source."""

    sample_rate: int
    duration: float | None = None  # None for unbounded streams


class AudioSource(abc.ABC):
    """Base contract for everything the loop can pull samples from."""

    def __init__(self, buffer_size: int = 128):
        if buffer_size < 1:
            raise ConfigurationError(f"buffer_size must be positive, got {buffer_size}")
        self.buffer_size = int(buffer_size)

    def _silence(self) -> np.ndarray:
        return np.zeros(self.buffer_size, dtype=np.float32)

    def initialize(self):
        """Acquire resources. Raises ResourceError on failure."""

    @abc.abstractmethod
    def get_next_buffer(self) -> np.ndarray:
        """Latest ``buffer_size`` samples. Never blocks; silence if no data."""

    @abc.abstractmethod
    def get_meta_info(self) -> AudioSourceMetadata:
        """Sample rate and, when known, duration in seconds."""

    def disconnect(self):
        """Release resources. Safe to call more than once."""


class StreamingSource(AudioSource):
    """A live source with no notion of absolute position."""


class SeekableSource(AudioSource):
    """A source that can be sampled at any timestamp."""

    @abc.abstractmethod
    def get_buffer_at_time(self, timestamp: float) -> np.ndarray:
        """``buffer_size`` samples starting at ``timestamp`` seconds."""


class TestSignalSource(StreamingSource):
    """
    Synthetic drifting sine for demos and tests.

    A fundamental of ``frequency`` cycles per buffer plus a weaker
    harmonic at 3.5x, both sliding in phase every call so the diagram
    keeps moving.
    """

    __test__ = False  # not a pytest class

    def __init__(
        self,
        buffer_size: int = 128,
        sample_rate: int = 44100,
        frequency: float = 2.0,
        drift_speed: float = 0.1,
    ):
        super().__init__(buffer_size)
        self.sample_rate = sample_rate
        self.frequency = frequency
        self.drift_speed = drift_speed
        self.phase = 0.0

    def get_next_buffer(self) -> np.ndarray:
        self.phase += self.drift_speed

        t = np.arange(self.buffer_size) / self.buffer_size
        fundamental = np.sin(2 * np.pi * self.frequency * t + self.phase)
        harmonic = 0.3 * np.sin(2 * np.pi * self.frequency * 3.5 * t - self.phase * 2)
        return (fundamental + harmonic).astype(np.float32)

    def get_meta_info(self) -> AudioSourceMetadata:
        return AudioSourceMetadata(sample_rate=self.sample_rate)


class FileAudioSource(SeekableSource):
    """
    Decoded audio file held in memory.

    Offline export reads it with ``get_buffer_at_time``. For realtime use,
    ``play`` starts a looping playhead driven by a monotonic clock and
    ``get_next_buffer`` returns the samples under it.
    """

    def __init__(
        self,
        audio_path: Union[str, Path, None] = None,
        buffer_size: int = 128,
        sr: int | None = None,
        clock=time.monotonic,
    ):
        """
        Initialize the source. Nothing is loaded until ``initialize``.

        Args:
            audio_path: Path to audio file (wav, mp3, flac).
            buffer_size: Samples per returned buffer (the FFT size).
            sr: Target sample rate. None preserves the file's rate.
            clock: Seconds counter used for realtime playback.
        """
        super().__init__(buffer_size)
        self.audio_path = Path(audio_path) if audio_path is not None else None
        self.target_sr = sr
        self._clock = clock

        self.samples: np.ndarray | None = None
        self.sample_rate: int = sr or 44100

        self.is_playing = False
        self._play_offset = 0.0  # playhead position when play() was called
        self._play_started = 0.0

    @classmethod
    def from_array(
        cls,
        samples: np.ndarray,
        sample_rate: int,
        buffer_size: int = 128,
        clock=time.monotonic,
    ) -> "FileAudioSource":
        """Wrap samples that are already decoded (mono)."""
        source = cls(None, buffer_size=buffer_size, clock=clock)
        source._load_samples(samples, sample_rate)
        return source

    def _load_samples(self, samples: np.ndarray, sample_rate: int):
        data = np.asarray(samples, dtype=np.float32)
        if data.ndim > 1:
            data = data.mean(axis=0)
        self.samples = data
        self.sample_rate = int(sample_rate)

    def initialize(self):
        """Load and decode the audio file."""
        if self.samples is not None:
            return
        if self.audio_path is None:
            raise ResourceError("FileAudioSource has no audio path and no samples")

        import librosa

        try:
            y, sr_out = librosa.load(self.audio_path, sr=self.target_sr, mono=True)
        except Exception as exc:
            raise ResourceError(f"Could not load audio {self.audio_path}: {exc}") from exc

        self._load_samples(y, sr_out)
        logger.info(
            "Loaded %s: %.2fs at %d Hz",
            self.audio_path, self.duration or 0.0, self.sample_rate,
        )

    @property
    def duration(self) -> float | None:
        if self.samples is None:
            return None
        return len(self.samples) / self.sample_rate

    def get_meta_info(self) -> AudioSourceMetadata:
        return AudioSourceMetadata(sample_rate=self.sample_rate, duration=self.duration)

    def get_buffer_at_time(self, timestamp: float) -> np.ndarray:
        output = self._silence()
        if self.samples is None or timestamp < 0:
            return output

        start = int(math.floor(timestamp * self.sample_rate))
        if start >= len(self.samples):
            return output

        chunk = self.samples[start:start + self.buffer_size]
        output[:len(chunk)] = chunk
        return output

    # Playback

    def play(self):
        if self.samples is None:
            return
        self._play_started = self._clock()
        self.is_playing = True

    def pause(self):
        if self.is_playing:
            self._play_offset = self.current_time()
        self.is_playing = False

    def seek(self, timestamp: float):
        self._play_offset = max(0.0, float(timestamp))
        self._play_started = self._clock()

    def current_time(self) -> float:
        """Playhead position in seconds, wrapped to the file length."""
        position = self._play_offset
        if self.is_playing:
            position += self._clock() - self._play_started
        duration = self.duration
        if duration:
            position %= duration
        return position

    def get_next_buffer(self) -> np.ndarray:
        if not self.is_playing:
            return self._silence()
        return self.get_buffer_at_time(self.current_time())

    def disconnect(self):
        self.is_playing = False


class MicrophoneSource(StreamingSource):
    """
    Live input through sounddevice.

    The PortAudio callback appends into a bounded deque; the loop reads
    the most recent ``buffer_size`` samples without blocking.
    """

    def __init__(
        self,
        buffer_size: int = 128,
        sample_rate: int = 44100,
        device: int | str | None = None,
    ):
        super().__init__(buffer_size)
        self.sample_rate = sample_rate
        self.device = device
        self.stream = None
        self._ring: deque = deque(maxlen=self.buffer_size)

    def _callback(self, indata, frames, time_info, status):
        """Copy one block of captured audio into the ring."""
        if status:
            logger.warning("Audio input status: %s", status)
        self._ring.extend(indata[:, 0])

    def initialize(self):
        """Open and start the input stream."""
        if self.stream is not None:
            return

        try:
            import sounddevice as sd
        except OSError as exc:
            # PortAudio shared library missing
            raise ResourceError(f"Audio input unavailable: {exc}") from exc

        try:
            stream = sd.InputStream(
                device=self.device,
                channels=1,
                samplerate=self.sample_rate,
                dtype="float32",
                callback=self._callback,
            )
            stream.start()
        except (sd.PortAudioError, ValueError) as exc:
            raise ResourceError(f"Could not open microphone: {exc}") from exc

        self.stream = stream
        logger.info("Microphone stream started at %d Hz", self.sample_rate)

    def get_next_buffer(self) -> np.ndarray:
        output = self._silence()
        # deque.copy() is atomic with respect to the capture thread
        latest = np.array(self._ring.copy(), dtype=np.float32)
        if latest.size:
            output[-latest.size:] = latest
        return output

    def get_meta_info(self) -> AudioSourceMetadata:
        return AudioSourceMetadata(sample_rate=self.sample_rate)

    def disconnect(self):
        if self.stream is None:
            return
        self.stream.stop()
        self.stream.close()
        self.stream = None
        self._ring.clear()
        logger.info("Microphone stream closed")
