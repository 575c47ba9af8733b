"""Playback control handle.

The handle is the write path for transport commands. It holds no state
of its own: every call resolves the player's current session, so one
handle stays valid across reloads.
"""

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

from .state import PlayerState

if TYPE_CHECKING:
    from .player import Session


class PlaybackControl(Protocol):
    """Transport commands and lock-free state reads."""

    def play(self) -> None:
        """Start or resume playback."""
        ...

    def pause(self) -> None:
        """Pause playback."""
        ...

    def seek(self, position: float) -> None:
        """Seek to position seconds.

        Raises:
            SeekError: If the duration is unknown or position is out of range
        """
        ...

    def set_volume(self, volume: float) -> None:
        """Set volume, clamped to [0, 1]."""
        ...

    def paused(self) -> bool:
        """Return True unless playback is requested."""
        ...

    def position(self) -> float:
        """Current position in seconds."""
        ...

    def duration(self) -> float | None:
        """Duration in seconds, or None if unknown."""
        ...

    def volume(self) -> float:
        """Current volume in [0, 1]."""
        ...


class ControlHandle:
    """Thread-safe control of a player's current session.

    Implements the PlaybackControl protocol.
    """

    def __init__(self, resolve: "Callable[[], Session]") -> None:
        """Initialize handle.

        Args:
            resolve: Returns the player's current session
        """
        self._resolve = resolve

    def play(self) -> None:
        self._resolve().state.play()

    def pause(self) -> None:
        self._resolve().state.pause()

    def seek(self, position: float) -> None:
        """Seek to position seconds.

        The state machine enters SEEKING immediately; the loader
        repositions the source and completes the seek asynchronously.

        Raises:
            SeekError: If the seek is rejected (no transition happens)
        """
        session = self._resolve()
        serial = session.state.begin_seek(position)
        if session.loader is not None:
            session.loader.request_seek(serial, position)

    def set_volume(self, volume: float) -> None:
        """Set volume, clamped to [0, 1].

        If a reload replaced the session while the volume was being set,
        the value is applied to the new session as well.
        """
        session = self._resolve()
        session.state.set_volume(volume)
        current = self._resolve()
        if current is not session:
            current.state.set_volume(volume)

    def state(self) -> PlayerState:
        """Snapshot of the current session state."""
        return self._resolve().state.snapshot

    def paused(self) -> bool:
        return self.state().paused

    def position(self) -> float:
        return self.state().position

    def duration(self) -> float | None:
        return self.state().duration

    def volume(self) -> float:
        return self.state().volume


__all__ = ["ControlHandle", "PlaybackControl"]
