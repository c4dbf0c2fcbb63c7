"""Tests for the command line entry points."""

import argparse
import shutil
import sys

import pytest

from spectrascope import cli
from spectrascope.core.envelope import PRESETS, Normalization
from spectrascope.errors import ConfigurationError
from spectrascope.visualizers.config import VIZ_PRESETS, ColorMode


def _parse(*argv):
    parser = argparse.ArgumentParser()
    cli._add_shared_arguments(parser)
    return parser.parse_args(list(argv))


class TestSettingsFile:
    def test_save_and_load(self, tmp_path):
        path = tmp_path / "cfg" / "settings.json"
        cli.save_settings(path, VIZ_PRESETS["Phase -> Hue"], PRESETS["Digital (Linear)"], 0.3)

        settings = cli.load_settings(path)

        assert settings["visual"]["color_mode"] == "PhaseHue"
        assert settings["envelope"]["name"] == "Digital (Linear)"
        assert settings["whitening"] == 0.3

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError):
            cli.load_settings(path)

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")
        with pytest.raises(ConfigurationError):
            cli.load_settings(path)


class TestBuildSession:
    def test_flags(self):
        args = _parse(
            "-n", "32", "-w", "0.2", "-e", "Instant (Raw)",
            "--viz-preset", "Phase -> Hue", "--stage", "1", "--rotate", "--log-scale",
        )
        session = cli._build_session(args, 320, 240)

        config = session.renderer.config
        assert session.fft_size == 32
        assert session.whitener.amount == pytest.approx(0.2)
        assert session.renderer.follower.config is PRESETS["Instant (Raw)"]
        assert session.renderer.follower.normalization is Normalization.LOG
        assert config.color_mode is ColorMode.PHASE_HUE
        assert (config.width, config.height) == (320, 240)
        assert config.selected_stage_index == 1
        assert config.rotation == 90

    def test_config_file_round_trip(self, tmp_path):
        path = tmp_path / "settings.json"
        first = cli._build_session(
            _parse("--viz-preset", "Phase -> Hue", "-e", "Viscous (Sticky)", "-w", "0.9",
                   "--save-config", str(path)),
            64, 48,
        )
        second = cli._build_session(_parse("--config", str(path)), 64, 48)

        assert second.renderer.config == first.renderer.config
        assert second.renderer.follower.config == PRESETS["Viscous (Sticky)"]
        assert second.whitener.amount == pytest.approx(0.9)


class TestProgressBar:
    def test_non_tty_output(self, capsys):
        for i in range(1, 21):
            cli._progress_bar(i, 20)

        out = capsys.readouterr().out
        assert "100.0%  frame 20/20" in out


class TestRenderMain:
    def test_missing_audio(self, tmp_path, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["spectrascope-render", str(tmp_path / "nope.wav")])
        with pytest.raises(SystemExit) as exc:
            cli.render_main()
        assert exc.value.code == 1

    @pytest.mark.skipif(shutil.which("ffmpeg") is None, reason="ffmpeg not installed")
    def test_renders_video(self, temp_audio_file, tmp_path, monkeypatch):
        output = tmp_path / "out.mp4"
        monkeypatch.setattr(sys, "argv", [
            "spectrascope-render", str(temp_audio_file),
            "-o", str(output),
            "--width", "64", "--height", "48",
            "-f", "10", "-q", "fast",
            "--max-duration", "0.5",
            "-n", "64",
        ])

        cli.render_main()

        assert output.exists()
        assert output.stat().st_size > 0
