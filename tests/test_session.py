"""Tests for VisualizerSession."""

import asyncio

import numpy as np
import pytest

from spectrascope.core.envelope import PRESETS
from spectrascope.errors import ConfigurationError, ResourceError
from spectrascope.io.sources import FileAudioSource, TestSignalSource
from spectrascope.loop import LoopState
from spectrascope.session import VisualizerSession
from spectrascope.visualizers.butterfly import ButterflyRenderer
from spectrascope.visualizers.config import ButterflyConfig

N = 8


class TrackingSource(TestSignalSource):
    """Test signal that records lifecycle calls."""

    def __init__(self, buffer_size=N, fail=False):
        super().__init__(buffer_size)
        self.fail = fail
        self.initialized = 0
        self.disconnected = 0

    def initialize(self):
        if self.fail:
            raise ResourceError("device busy")
        self.initialized += 1

    def disconnect(self):
        self.disconnected += 1


@pytest.fixture
def session():
    renderer = ButterflyRenderer(ButterflyConfig(width=160, height=120))
    return VisualizerSession(fft_size=N, whitening=0.6, renderer=renderer)


@pytest.fixture
def file_source():
    samples = np.sin(np.linspace(0, 40 * np.pi, 1000))
    return FileAudioSource.from_array(samples, 1000, buffer_size=N)


class TestSwitchSource:
    def test_initializes_and_resets_whitener(self, session):
        session.whitener.last_sample = 0.8
        source = TrackingSource()

        session.switch_source(source)

        assert session.source is source
        assert source.initialized == 1
        assert session.whitener.last_sample == 0.0

    def test_disconnects_previous(self, session):
        old, new = TrackingSource(), TrackingSource()
        session.switch_source(old)
        session.switch_source(new)

        assert old.disconnected == 1
        assert new.disconnected == 0
        assert session.source is new

    def test_failed_initialize(self, session):
        old = TrackingSource()
        session.switch_source(old)

        with pytest.raises(ResourceError):
            session.switch_source(TrackingSource(fail=True))

        assert session.source is None
        assert old.disconnected == 1

    def test_buffer_size_mismatch_keeps_current(self, session):
        old = TrackingSource()
        session.switch_source(old)

        with pytest.raises(ConfigurationError):
            session.switch_source(TrackingSource(buffer_size=N * 2))

        assert session.source is old
        assert old.disconnected == 0

    def test_seek_resets_whitener(self, session, file_source):
        session.switch_source(file_source)
        session.whitener.last_sample = 0.5

        session.seek(0.25)

        assert file_source.current_time() == pytest.approx(0.25)
        assert session.whitener.last_sample == 0.0


class TestDrivers:
    """Only one driver may be active at a time."""

    def test_requires_source(self, session):
        with pytest.raises(ConfigurationError):
            asyncio.run(_start_realtime(session))

    def test_export_stops_realtime(self, session, file_source, recording_sink):
        session.switch_source(file_source)

        async def main():
            live = session.start_realtime(refresh_rate=1000)
            await asyncio.sleep(0.01)
            export = session.start_export(recording_sink, frame_rate=20)
            assert live.state is LoopState.STOPPED
            assert not live.pending
            assert session.driver is export
            return await export.task

        result = asyncio.run(main())

        assert result == {"frames": 20}
        assert recording_sink.frames[0].shape == (120, 160, 3)

    def test_invalid_export_keeps_realtime(self, session, recording_sink):
        session.switch_source(TrackingSource())

        async def main():
            live = session.start_realtime(refresh_rate=1000)
            with pytest.raises(ConfigurationError):
                session.start_export(recording_sink)
            running = live.is_running
            session.stop()
            return live, running

        live, running = asyncio.run(main())

        assert running
        assert live.state is LoopState.STOPPED
        assert session.driver is None

    def test_switch_source_stops_driver(self, session):
        session.switch_source(TrackingSource())

        async def main():
            live = session.start_realtime(refresh_rate=1000)
            session.switch_source(TrackingSource())
            return live

        live = asyncio.run(main())
        assert live.state is LoopState.STOPPED


class TestSettings:
    def test_set_whitening(self, session):
        session.set_whitening(2.0)
        assert session.whitener.amount == 1.0

    def test_set_envelope_by_name(self, session):
        session.set_envelope("Instant (Raw)")
        assert session.renderer.follower.config is PRESETS["Instant (Raw)"]

    def test_set_envelope_unknown(self, session):
        with pytest.raises(ConfigurationError):
            session.set_envelope("Nope")

    def test_set_visual_config_resizes(self, session):
        session.set_visual_config(ButterflyConfig(width=200, height=100))
        assert session.renderer.surface.get_size() == (200, 100)

    def test_close(self, session):
        source = TrackingSource()
        session.switch_source(source)
        session.close()

        assert source.disconnected == 1
        assert session.source is None


async def _start_realtime(session):
    session.start_realtime()
