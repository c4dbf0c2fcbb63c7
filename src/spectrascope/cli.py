"""
CLI entry points.

Usage:
    spectrascope-render <audio_file> [options]   # offline export to MP4
    spectrascope-live [--source test|mic|file] [audio_file] [options]
"""

import argparse
import asyncio
import dataclasses
import json
import logging
import os
import sys
import time
from pathlib import Path

from spectrascope.core.envelope import (
    DEFAULT_ENVELOPE,
    PRESETS,
    EnvelopeConfig,
    EnvelopeFollower,
    Normalization,
)
from spectrascope.errors import ConfigurationError, SpectrascopeError
from spectrascope.io.encoder import FFmpegVideoSink
from spectrascope.io.sources import FileAudioSource, MicrophoneSource, TestSignalSource
from spectrascope.session import VisualizerSession
from spectrascope.visualizers.butterfly import ButterflyRenderer
from spectrascope.visualizers.config import VIZ_PRESETS, ButterflyConfig

# Map profile to defaults
PROFILES = {
    "low": {"width": 1280, "height": 720, "fps": 30, "quality": "fast"},
    "medium": {"width": 1920, "height": 1080, "fps": 60, "quality": "medium"},
    "high": {"width": 3840, "height": 2160, "fps": 60, "quality": "high"},
}

SKIP_SECONDS = 5.0


def _progress_bar(current: int, total: int, width: int = 35):
    """Print a progress bar to stdout."""
    pct = current / max(total, 1) * 100
    filled = int(width * current / max(total, 1))
    bar = "#" * filled + "-" * (width - filled)
    if sys.stdout.isatty():
        sys.stdout.write(f"\r[{bar}] {pct:5.1f}%  frame {current}/{total}")
        sys.stdout.flush()
        if current >= total:
            sys.stdout.write("\n")
    else:
        if current % max(1, total // 20) == 0 or current >= total:
            print(f"{pct:5.1f}%  frame {current}/{total}", flush=True)


def _setup_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def load_settings(path: Path) -> dict:
    """
    Read a settings file written by ``save_settings``.

    Keys: "visual" (ButterflyConfig snapshot), optionally "envelope"
    (EnvelopeConfig snapshot) and "whitening" (float).
    """
    try:
        with open(path) as f:
            settings = json.load(f)
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"Could not read settings {path}: {exc}") from exc
    if not isinstance(settings, dict):
        raise ConfigurationError(f"Settings file {path} does not contain an object")
    return settings


def save_settings(
    path: Path,
    visual: ButterflyConfig,
    envelope: EnvelopeConfig,
    whitening: float,
):
    settings = {
        "visual": visual.snapshot(),
        "envelope": envelope.snapshot(),
        "whitening": whitening,
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(settings, f, indent=2)


def _add_shared_arguments(parser: argparse.ArgumentParser):
    """Options common to both commands."""
    parser.add_argument(
        "-n", "--fft-size", type=int, default=128,
        help="FFT size, a power of 2 (default: 128)",
    )
    parser.add_argument(
        "-w", "--whitening", type=float, default=None,
        help="Spectral tilt correction 0.0-1.0 (default: 0.6)",
    )
    parser.add_argument(
        "-e", "--envelope", type=str, default=None,
        choices=list(PRESETS),
        help=f"Envelope preset (default: {DEFAULT_ENVELOPE.name})",
    )
    parser.add_argument(
        "--log-scale", action="store_true",
        help="Log-normalize magnitudes before smoothing",
    )
    parser.add_argument(
        "--viz-preset", type=str, default="Default (Blue-ish)",
        choices=list(VIZ_PRESETS),
        help="Visual preset (default: Default (Blue-ish))",
    )
    parser.add_argument(
        "--stage", type=int, default=None,
        help="Draw only this stage (default: all stages)",
    )
    parser.add_argument(
        "--rotate", action="store_true",
        help="Rotate the diagram by 90 degrees",
    )
    parser.add_argument(
        "--config", type=Path, default=None,
        help="Load visual/envelope settings from a JSON file",
    )
    parser.add_argument(
        "--save-config", type=Path, default=None,
        help="Write the effective settings to a JSON file",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")


def _build_session(args, width: int, height: int) -> VisualizerSession:
    """Resolve presets, settings file and flags into a session."""
    settings = load_settings(args.config) if args.config else {}

    visual = VIZ_PRESETS[args.viz_preset]
    if "visual" in settings:
        visual = ButterflyConfig.restore({**visual.snapshot(), **settings["visual"]})

    overrides = {"width": width, "height": height}
    if args.stage is not None:
        overrides["selected_stage_index"] = args.stage
    if args.rotate:
        overrides["rotation"] = 90
    visual = dataclasses.replace(visual, **overrides)

    envelope = DEFAULT_ENVELOPE
    if "envelope" in settings:
        envelope = EnvelopeConfig.restore(settings["envelope"])
    if args.envelope is not None:
        envelope = PRESETS[args.envelope]

    whitening = settings.get("whitening", 0.6)
    if args.whitening is not None:
        whitening = args.whitening

    if args.save_config:
        save_settings(args.save_config, visual, envelope, whitening)
        print(f"Settings saved to {args.save_config}")

    normalization = Normalization.LOG if args.log_scale else Normalization.NONE
    renderer = ButterflyRenderer(visual, EnvelopeFollower(envelope, normalization))
    return VisualizerSession(fft_size=args.fft_size, whitening=whitening, renderer=renderer)


async def _run_export(session: VisualizerSession, sink: FFmpegVideoSink, fps: int, max_duration):
    export = None

    def on_frame(index, snapshot):
        _progress_bar(index + 1, export.total_frames)

    export = session.start_export(
        sink,
        frame_rate=fps,
        on_frame=on_frame,
        max_duration=max_duration,
    )
    print(f"\nRendering {export.total_frames} frames ({export.duration:.1f}s)")
    return await export.task


def render_main():
    parser = argparse.ArgumentParser(
        prog="spectrascope-render",
        description="Render an FFT butterfly diagram video from an audio file",
    )

    parser.add_argument(
        "audio",
        type=Path,
        help="Input audio file (wav, mp3, flac)",
    )
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output MP4 path (default: <audio>_butterfly.mp4)",
    )

    # Resolution & Profile
    parser.add_argument(
        "-p", "--profile", type=str, default="medium",
        choices=list(PROFILES),
        help="Target profile (low: 720p 30fps, medium: 1080p 60fps, high: 4k 60fps)",
    )
    parser.add_argument("--width", type=int, default=None, help="Video width (overrides profile)")
    parser.add_argument("--height", type=int, default=None, help="Video height (overrides profile)")
    parser.add_argument("-f", "--fps", type=int, default=None, help="Frames per second (overrides profile)")

    # Limits
    parser.add_argument(
        "--max-duration", type=float, default=None,
        help="Limit output to N seconds",
    )

    # Quality
    parser.add_argument(
        "-q", "--quality", type=str, default=None,
        choices=["high", "medium", "fast"],
        help="Encoding quality (defaults to profile quality)",
    )

    _add_shared_arguments(parser)
    args = parser.parse_args()
    _setup_logging(args.verbose)

    if not args.audio.exists():
        print(f"Error: Audio file not found: {args.audio}", file=sys.stderr)
        sys.exit(1)

    p_cfg = PROFILES[args.profile]
    width = args.width or p_cfg["width"]
    height = args.height or p_cfg["height"]
    fps = args.fps or p_cfg["fps"]
    quality = args.quality or p_cfg["quality"]

    output = args.output
    if output is None:
        output = args.audio.with_name(f"{args.audio.stem}_butterfly.mp4")

    # Headless rendering; fonts still work for stage labels
    os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
    import pygame

    pygame.init()

    try:
        session = _build_session(args, width, height)

        print(f"Loading audio: {args.audio}")
        session.switch_source(FileAudioSource(args.audio, buffer_size=args.fft_size))
        meta = session.source.get_meta_info()
        print(f"  Duration: {meta.duration:.1f}s")
        print(f"  Sample rate: {meta.sample_rate} Hz")
        print(f"  Profile: {args.profile}, {width}x{height} @ {fps}fps, Quality: {quality}")

        sink = FFmpegVideoSink(
            output_path=output,
            width=width,
            height=height,
            fps=fps,
            quality=quality,
            audio_path=args.audio,
            duration=args.max_duration or meta.duration,
        )

        t0 = time.time()
        asyncio.run(_run_export(session, sink, fps, args.max_duration))
        elapsed = time.time() - t0
    except (SpectrascopeError, RuntimeError) as exc:
        print(f"\nError: {exc}", file=sys.stderr)
        sys.exit(1)
    finally:
        pygame.quit()

    total_frames = sink.frame_count
    file_size_mb = output.stat().st_size / 1024 / 1024

    print(f"\nDone! {file_size_mb:.1f} MB")
    print(f"  Render+encode took {elapsed:.1f}s ({total_frames / max(elapsed, 0.01):.1f} fps)")
    print(f"  Output: {output}")


async def _run_live(session: VisualizerSession, screen, refresh_rate: float) -> int:
    import pygame

    def present(snapshot):
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                session.stop()
                return
            if event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    session.stop()
                    return
                if event.key == pygame.K_SPACE:
                    session.toggle_playback()
                elif event.key == pygame.K_LEFT:
                    session.skip(-SKIP_SECONDS)
                elif event.key == pygame.K_RIGHT:
                    session.skip(SKIP_SECONDS)

        screen.blit(session.renderer.surface, (0, 0))
        pygame.display.flip()

    live = session.start_realtime(refresh_rate=refresh_rate, on_frame=present)
    return await live.wait()


def live_main():
    parser = argparse.ArgumentParser(
        prog="spectrascope-live",
        description="Live FFT butterfly diagram in a window",
    )

    parser.add_argument(
        "audio",
        type=Path,
        nargs="?",
        default=None,
        help="Audio file for --source file",
    )
    parser.add_argument(
        "-s", "--source", type=str, default="test",
        choices=["test", "mic", "file"],
        help="Audio source (default: test)",
    )
    parser.add_argument("--device", type=str, default=None, help="Input device for --source mic")
    parser.add_argument("--width", type=int, default=1280, help="Window width (default: 1280)")
    parser.add_argument("--height", type=int, default=720, help="Window height (default: 720)")
    parser.add_argument(
        "-r", "--refresh-rate", type=float, default=60.0,
        help="Frames per second (default: 60)",
    )

    _add_shared_arguments(parser)
    args = parser.parse_args()
    _setup_logging(args.verbose)

    if args.source == "file":
        if args.audio is None:
            print("Error: --source file needs an audio file", file=sys.stderr)
            sys.exit(1)
        if not args.audio.exists():
            print(f"Error: Audio file not found: {args.audio}", file=sys.stderr)
            sys.exit(1)

    if args.source == "mic":
        device = int(args.device) if args.device and args.device.isdigit() else args.device
        source = MicrophoneSource(buffer_size=args.fft_size, device=device)
    elif args.source == "file":
        source = FileAudioSource(args.audio, buffer_size=args.fft_size)
    else:
        source = TestSignalSource(buffer_size=args.fft_size)

    import pygame

    pygame.init()
    session = None
    try:
        session = _build_session(args, args.width, args.height)
        session.switch_source(source)

        screen = pygame.display.set_mode((args.width, args.height))
        pygame.display.set_caption(f"spectrascope - {args.source} (N={args.fft_size})")
        print("Esc: quit   Space: play/pause   Left/Right: skip")

        session.play()
        frames = asyncio.run(_run_live(session, screen, args.refresh_rate))
        print(f"Stopped after {frames} frames")
    except SpectrascopeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    finally:
        if session is not None:
            session.close()
        pygame.quit()


if __name__ == "__main__":
    render_main()
