"""Unit tests for audio output backends and the sink adapter."""

from unittest import mock

import numpy as np
import pytest

from tonearm.audio import SinkAdapter, create_audio_output
from tonearm.audio.mock_output import MockAudioOutput
from tonearm.buffer import FrameBuffer
from tonearm.config import OutputConfig
from tonearm.dispatcher import EventDispatcher
from tonearm.errors import OutputError
from tonearm.events import PlayerEvent, PlayerEventType
from tonearm.state import Phase, StateMachine

RATE = 1000


def make_session(
    duration: float | None = 10.0,
    capacity: float = 1.0,
    watermark: float = 0.1,
) -> tuple[MockAudioOutput, FrameBuffer, StateMachine, SinkAdapter, list[PlayerEvent]]:
    events: list[PlayerEvent] = []
    dispatcher = EventDispatcher()
    dispatcher.set_listener(events.append)
    state = StateMachine(dispatcher)
    buffer = FrameBuffer(capacity_seconds=capacity, watermark_seconds=watermark)
    buffer.configure(RATE, 1)
    output = MockAudioOutput(blocksize=100)
    sink = SinkAdapter(output, buffer, state)
    sink.open(RATE, 1)

    state.begin_load()
    state.set_metadata(RATE, duration)
    state.data_buffered()
    return output, buffer, state, sink, events


def fill(buffer: FrameBuffer, n: int, value: float = 0.5) -> None:
    buffer.push_blocking(np.full((n, 1), value, dtype=np.float32))


class TestMockAudioOutput:
    """Tests for MockAudioOutput."""

    def test_pump_requires_open(self) -> None:
        """Test nothing renders while closed."""
        output = MockAudioOutput()
        assert output.is_open is False
        assert output.pump() is None

    def test_pump_calls_render(self) -> None:
        """Test pump drives the render callback and records output."""
        output = MockAudioOutput(blocksize=4)

        def render(out: np.ndarray) -> None:
            out.fill(0.25)

        output.open(44100, 2, render)
        block = output.pump()
        assert block is not None
        assert block.shape == (4, 2)
        assert output.rendered.shape == (4, 2)
        assert output.frames_pumped == 4
        assert output.sample_rate == 44100
        np.testing.assert_allclose(block, 0.25)

    def test_close(self) -> None:
        """Test close() stops rendering."""
        output = MockAudioOutput()
        output.open(8000, 1, lambda out: None)
        output.close()
        assert output.is_open is False
        assert output.pump() is None


class TestCreateAudioOutput:
    """Tests for the output factory."""

    def test_mock_flag(self) -> None:
        """Test use_mock returns the mock output."""
        assert isinstance(create_audio_output(use_mock=True), MockAudioOutput)

    def test_mock_backend(self) -> None:
        """Test the mock backend can be selected by config."""
        output = create_audio_output(OutputConfig(backend="mock", blocksize=256))
        assert isinstance(output, MockAudioOutput)

    def test_unknown_backend(self) -> None:
        """Test unknown backends are rejected."""
        with pytest.raises(RuntimeError):
            create_audio_output(OutputConfig(backend="jack"))

    def test_pyaudio_unavailable(self) -> None:
        """Test a missing PyAudio is reported as RuntimeError."""
        with mock.patch("tonearm.audio.backends.pyaudio_output.PYAUDIO_AVAILABLE", False):
            with pytest.raises(RuntimeError, match="PyAudio"):
                create_audio_output(OutputConfig(backend="pyaudio"))


class TestSinkAdapter:
    """Tests for SinkAdapter."""

    def test_silence_unless_playing(self) -> None:
        """Test a READY session renders silence and keeps its frames."""
        output, buffer, state, _sink, _events = make_session()
        fill(buffer, 200)

        block = output.pump()
        assert block is not None
        assert not block.any()
        assert buffer.fill_level == 200
        assert state.snapshot.position == 0.0

    def test_renders_when_playing(self) -> None:
        """Test PLAYING drains the buffer and advances the position."""
        output, buffer, state, _sink, _events = make_session()
        fill(buffer, 200)
        state.play()

        block = output.pump()
        np.testing.assert_allclose(block, 0.5)
        assert buffer.fill_level == 100
        assert state.snapshot.position == pytest.approx(0.1)

    def test_applies_volume(self) -> None:
        """Test output is scaled by the volume."""
        output, buffer, state, _sink, _events = make_session()
        fill(buffer, 200, value=0.8)
        state.set_volume(0.5)
        state.play()

        np.testing.assert_allclose(output.pump(), 0.4)

    def test_underrun_enters_waiting(self) -> None:
        """Test a short read moves the session to WAITING."""
        output, buffer, state, _sink, events = make_session()
        fill(buffer, 50)
        state.play()

        block = output.pump()
        assert block is not None
        assert block[50:].sum() == 0.0
        assert state.phase is Phase.WAITING
        assert events[-1].type is PlayerEventType.WAITING

    def test_recovers_from_waiting(self) -> None:
        """Test WAITING resumes once the buffer reaches the watermark."""
        output, buffer, state, _sink, events = make_session(watermark=0.1)
        state.play()
        output.pump()
        assert state.phase is Phase.WAITING

        fill(buffer, 100)
        block = output.pump()
        assert state.phase is Phase.PLAYING
        np.testing.assert_allclose(block, 0.5)
        assert events[-1].type is PlayerEventType.PLAYING

    def test_ends_after_completion(self) -> None:
        """Test the final underrun after completion ends playback."""
        output, buffer, state, _sink, events = make_session(duration=0.15)
        fill(buffer, 150)
        state.loader_completed(0)
        state.play()

        output.pump()
        output.pump()
        assert state.phase is Phase.ENDED
        assert state.snapshot.position == pytest.approx(0.15)
        assert events[-1].type is PlayerEventType.ENDED

    def test_closed_sink_is_silent(self) -> None:
        """Test a closed sink stops the output and ignores reopen."""
        output, buffer, state, sink, _events = make_session()
        sink.close()
        assert output.is_open is False

        sink.open(RATE, 1)
        assert output.is_open is False
        assert sink.is_open is False

    def test_render_after_close(self) -> None:
        """Test render() fills silence once closed."""
        _output, buffer, state, sink, _events = make_session()
        fill(buffer, 200)
        state.play()
        sink.close()

        out = np.ones((10, 1), dtype=np.float32)
        sink.render(out)
        assert not out.any()

    def test_open_failure(self) -> None:
        """Test backend failures become OutputError."""
        output = mock.Mock()
        output.open.side_effect = RuntimeError("no device")
        dispatcher = EventDispatcher()
        sink = SinkAdapter(output, FrameBuffer(), StateMachine(dispatcher))
        with pytest.raises(OutputError):
            sink.open(44100, 2)

    def test_poisoned_state_renders_silence(self) -> None:
        """Test the real-time path survives a poisoned state machine."""
        output, buffer, state, _sink, _events = make_session()
        fill(buffer, 200)
        state.play()
        with mock.patch.object(state, "_poisoned", True):
            block = output.pump()
        assert block is not None
        assert not block.any()
