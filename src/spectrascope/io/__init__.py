"""Audio sources and video sinks."""

from spectrascope.io.encoder import QUALITY_PRESETS, FFmpegVideoSink, VideoSink
from spectrascope.io.sources import (
    AudioSource,
    AudioSourceMetadata,
    FileAudioSource,
    MicrophoneSource,
    SeekableSource,
    StreamingSource,
    TestSignalSource,
)

__all__ = [
    "QUALITY_PRESETS",
    "FFmpegVideoSink",
    "VideoSink",
    "AudioSource",
    "AudioSourceMetadata",
    "FileAudioSource",
    "MicrophoneSource",
    "SeekableSource",
    "StreamingSource",
    "TestSignalSource",
]
