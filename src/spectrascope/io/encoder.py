"""
FFmpeg video sink.

Raw RGB frames are piped to ffmpeg via stdin and optionally muxed with
the original audio. No intermediate files: frames go straight from
numpy arrays to the encoder.
"""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Any, Protocol

import numpy as np

from spectrascope.errors import ConfigurationError, ResourceError

logger = logging.getLogger(__name__)


# Quality presets: (preset, crf, pix_fmt)
QUALITY_PRESETS = {
    "high": ("slow", "18", "yuv444p"),
    "medium": ("medium", "23", "yuv420p"),
    "fast": ("ultrafast", "28", "yuv420p"),
}


class VideoSink(Protocol):
    """Accumulates rendered frames and packages them on completion."""

    def add_frame(self, frame: np.ndarray) -> None: ...

    def complete(self) -> Any: ...

    def abort(self) -> None: ...


class FFmpegVideoSink:
    """
    Streams (H, W, 3) uint8 frames into an MP4 file.

    ffmpeg is started lazily on the first frame. ``complete`` finalizes
    the file and returns its path; ``abort`` kills the encoder and
    removes the partial output.
    """

    def __init__(
        self,
        output_path: str | Path,
        width: int = 1920,
        height: int = 1080,
        fps: int = 60,
        quality: str = "high",
        audio_path: str | Path | None = None,
        duration: float | None = None,
        ffmpeg_binary: str = "ffmpeg",
    ):
        """
        Initialize the sink.

        Args:
            output_path: Output MP4 path.
            width: Frame width.
            height: Frame height.
            fps: Frames per second.
            quality: "high", "medium", or "fast".
            audio_path: Optional audio file to mux in.
            duration: Optional output duration limit in seconds.
            ffmpeg_binary: ffmpeg executable name or path.
        """
        self.output_path = Path(output_path)
        self.width = width
        self.height = height
        self.fps = fps
        self.quality = quality
        self.audio_path = Path(audio_path) if audio_path is not None else None
        self.duration = duration
        self.ffmpeg_binary = ffmpeg_binary

        self.frame_count = 0
        self._proc: subprocess.Popen | None = None

    def build_command(self) -> list[str]:
        """ffmpeg command line for the configured output."""
        preset, crf, pix_fmt = QUALITY_PRESETS.get(self.quality, QUALITY_PRESETS["high"])

        cmd = [
            self.ffmpeg_binary, "-y",
            "-loglevel", "error",
            # Raw video input from pipe
            "-f", "rawvideo",
            "-pix_fmt", "rgb24",
            "-s", f"{self.width}x{self.height}",
            "-r", str(self.fps),
            "-i", "pipe:0",
        ]

        if self.audio_path is not None:
            cmd += ["-i", str(self.audio_path)]

        cmd += [
            # Video encoding
            "-c:v", "libx264",
            "-preset", preset,
            "-crf", crf,
            "-pix_fmt", pix_fmt,
        ]

        if self.audio_path is not None:
            cmd += [
                "-c:a", "aac",
                "-b:a", "192k",
                # Trim to shortest stream
                "-shortest",
            ]

        if self.duration is not None:
            cmd += ["-t", str(self.duration)]

        cmd.append(str(self.output_path))
        return cmd

    def _start(self):
        if shutil.which(self.ffmpeg_binary) is None:
            raise ResourceError(f"ffmpeg executable not found: {self.ffmpeg_binary}")

        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        cmd = self.build_command()
        logger.debug("Starting encoder: %s", " ".join(cmd))

        self._proc = subprocess.Popen(
            cmd,
            stdin=subprocess.PIPE,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
        )

    def add_frame(self, frame: np.ndarray):
        """Write one RGB frame to the encoder."""
        if frame.shape != (self.height, self.width, 3):
            raise ConfigurationError(
                f"Frame shape {frame.shape} does not match "
                f"({self.height}, {self.width}, 3)"
            )
        if self._proc is None:
            self._start()

        # Ensure contiguous C-order bytes
        raw = np.ascontiguousarray(frame, dtype=np.uint8).tobytes()
        try:
            self._proc.stdin.write(raw)
        except BrokenPipeError:
            # ffmpeg died; the reason is reported by complete()
            logger.warning("Encoder pipe closed after %d frames", self.frame_count)
            return
        self.frame_count += 1

    def complete(self) -> Path:
        """Finish encoding and return the output path."""
        if self._proc is None:
            raise RuntimeError("No frames were written to the encoder")

        proc = self._proc
        self._proc = None
        if proc.stdin:
            try:
                proc.stdin.close()
            except BrokenPipeError:
                pass

        stderr = proc.stderr.read().decode("utf-8", errors="replace")
        proc.wait()

        if proc.returncode != 0:
            # Filter out common non-error ffmpeg messages
            error_lines = [
                line for line in stderr.split("\n")
                if "error" in line.lower() or "invalid" in line.lower()
            ]
            error_msg = "\n".join(error_lines[-5:]) if error_lines else stderr[-500:]
            raise RuntimeError(
                f"ffmpeg exited with code {proc.returncode}: {error_msg}"
            )

        logger.info("Encoded %d frames to %s", self.frame_count, self.output_path)
        return self.output_path

    def abort(self):
        """Stop the encoder and delete the partial file."""
        proc = self._proc
        self._proc = None
        if proc is not None:
            proc.kill()
            proc.wait()
            if proc.stdin:
                try:
                    proc.stdin.close()
                except BrokenPipeError:
                    pass
            if proc.stderr:
                proc.stderr.close()
        self.output_path.unlink(missing_ok=True)
        logger.info("Encoding aborted after %d frames", self.frame_count)
