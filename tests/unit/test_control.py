"""Unit tests for the control handle."""

from unittest import mock

import pytest

from tonearm.control import ControlHandle
from tonearm.dispatcher import EventDispatcher
from tonearm.errors import SeekError
from tonearm.player import Session
from tonearm.state import Phase, StateMachine


def make_session(duration: float | None = 10.0) -> Session:
    state = StateMachine(EventDispatcher())
    state.begin_load()
    state.set_metadata(1000, duration)
    state.data_buffered()
    return Session(state=state, loader=mock.Mock())


class TestControlHandle:
    """Tests for ControlHandle."""

    def test_transport_commands(self) -> None:
        """Test play/pause go to the current state machine."""
        session = make_session()
        handle = ControlHandle(lambda: session)

        handle.play()
        assert session.state.phase is Phase.PLAYING
        assert handle.paused() is False

        handle.pause()
        assert session.state.phase is Phase.PAUSED
        assert handle.paused() is True

    def test_reads(self) -> None:
        """Test reads mirror the state snapshot."""
        session = make_session(duration=7.5)
        handle = ControlHandle(lambda: session)
        handle.set_volume(0.3)

        assert handle.duration() == 7.5
        assert handle.position() == 0.0
        assert handle.volume() == 0.3
        assert handle.state() is session.state.snapshot

    def test_seek_forwards_to_loader(self) -> None:
        """Test an accepted seek is handed to the loader with its serial."""
        session = make_session()
        handle = ControlHandle(lambda: session)

        handle.seek(2.5)
        assert session.state.phase is Phase.SEEKING
        session.loader.request_seek.assert_called_once_with(1, 2.5)

    def test_rejected_seek_not_forwarded(self) -> None:
        """Test a rejected seek never reaches the loader."""
        session = make_session(duration=None)
        handle = ControlHandle(lambda: session)

        with pytest.raises(SeekError):
            handle.seek(1.0)
        session.loader.request_seek.assert_not_called()

    def test_follows_current_session(self) -> None:
        """Test the handle re-binds on every call."""
        sessions = [make_session(duration=1.0)]
        handle = ControlHandle(lambda: sessions[-1])
        assert handle.duration() == 1.0

        sessions.append(make_session(duration=2.0))
        assert handle.duration() == 2.0

    def test_volume_follows_session_swapped_mid_call(self) -> None:
        """Test a reload between resolve and apply still gets the new volume."""
        old, new = make_session(), make_session()
        old.state.retire()
        handle = ControlHandle(mock.Mock(side_effect=[old, new]))

        handle.set_volume(0.25)
        assert old.state.snapshot.volume == 0.25
        assert new.state.snapshot.volume == 0.25
