"""Playback state machine.

Owns the phase, position, duration, volume and paused flag of one
session. Every transition runs under a short-lived re-entrant lock and
publishes a frozen PlayerState snapshot before its events are delivered,
so listeners (and any other thread) read the post-transition state
without taking the lock.

If an unexpected exception escapes a transition (a failing listener, for
instance) the machine is poisoned: the next operation moves it to
ERRORED, emits ERROR once and raises LockError.
"""

import logging
import math
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum

from .dispatcher import EventDispatcher
from .errors import ErrorInfo, LockError, SeekError, TonearmError
from .events import PlayerEvent, PlayerEventType

logger = logging.getLogger(__name__)


class Phase(Enum):
    """Playback lifecycle phases."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    WAITING = "waiting"  # Playing, but the buffer ran dry
    SEEKING = "seeking"
    ENDED = "ended"
    ERRORED = "errored"


@dataclass(frozen=True)
class PlayerState:
    """Immutable snapshot of playback state.

    Attributes:
        phase: Current lifecycle phase
        position: Playback position in seconds
        duration: Total duration in seconds, None if unknown
        volume: Output gain in [0, 1]
        paused: True unless playback is requested
        error: Failure that caused ERRORED, if any
    """

    phase: Phase = Phase.IDLE
    position: float = 0.0
    duration: float | None = None
    volume: float = 1.0
    paused: bool = True
    error: ErrorInfo | None = None


class StateMachine:
    """Transition logic for one playback session.

    Callers are the control handle (play/pause/seek/volume), the loader
    (metadata, buffering, seek completion, failures) and the sink
    (rendered frames, underruns). Once retired the machine never emits
    again and ignores every call except set_volume().
    """

    def __init__(self, dispatcher: EventDispatcher, volume: float = 1.0) -> None:
        """Initialize an IDLE machine.

        Args:
            dispatcher: Event dispatcher for player events
            volume: Initial volume, carried over from a previous session
        """
        self._dispatcher = dispatcher
        self._lock = threading.RLock()

        self._phase = Phase.IDLE
        self._duration: float | None = None
        self._volume = _clamp_volume(volume, 1.0)
        self._paused = True
        self._error: ErrorInfo | None = None
        self._sample_rate = 0

        self._position_base = 0.0
        self._frames_rendered = 0
        self._play_requested = False
        self._loaded_data = False
        self._loader_complete = False
        self._resume_phase = Phase.IDLE
        self._seek_serial = 0

        self._retired = False
        self._poisoned = False
        self._poison_reported = False
        self._pending: list[PlayerEvent] = []
        self._snapshot = PlayerState(volume=self._volume)

    # ------------------------------------------------------------------
    # Reads (lock-free)
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> PlayerState:
        """Most recently published state."""
        return self._snapshot

    @property
    def phase(self) -> Phase:
        return self._snapshot.phase

    @property
    def ended(self) -> bool:
        """Return True if playback reached the end of the source."""
        return self._snapshot.phase is Phase.ENDED

    @property
    def retired(self) -> bool:
        return self._retired

    @property
    def poisoned(self) -> bool:
        return self._poisoned

    @property
    def seek_serial(self) -> int:
        """Serial of the latest accepted seek (0 before any seek)."""
        return self._seek_serial

    # ------------------------------------------------------------------
    # Transition plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _transition(self) -> Iterator[bool]:
        """Run a transition under the lock.

        Yields False if the machine is retired, in which case the caller
        must change nothing but the volume. On success the snapshot is published
        and queued events are delivered before the lock is released.

        Raises:
            LockError: If the machine was poisoned by an earlier failure
        """
        with self._lock:
            if self._retired:
                yield False
                return
            self._check_poison()
            try:
                yield True
            except TonearmError:
                self._pending.clear()
                raise
            except Exception:
                self._poison()
                raise
            self._commit()

    def _commit(self) -> None:
        """Publish the snapshot, then deliver queued events."""
        self._publish()
        try:
            while self._pending:
                self._dispatcher.emit(self._pending.pop(0))
        except Exception:
            self._poison()
            raise

    def _poison(self) -> None:
        self._pending.clear()
        if not self._poisoned:
            logger.warning("State machine poisoned by an exception inside a transition")
        self._poisoned = True

    def _check_poison(self) -> None:
        if not self._poisoned:
            return
        if not self._poison_reported:
            self._poison_reported = True
            self._error = ErrorInfo("LockError", "Player state was left inconsistent")
            self._enter_errored()
            self._emit(PlayerEvent.error(self._error.message))
            self._publish()
            while self._pending:
                self._dispatcher.emit(self._pending.pop(0))
        raise LockError("Player state was left inconsistent by an earlier failure")

    def _emit(self, event: PlayerEventType | PlayerEvent) -> None:
        if isinstance(event, PlayerEventType):
            event = PlayerEvent(event)
        self._pending.append(event)

    def _set_phase(self, phase: Phase) -> None:
        if phase is not self._phase:
            logger.debug(f"Phase {self._phase.value} -> {phase.value}")
            self._phase = phase

    def _position(self) -> float:
        position = self._position_base
        if self._sample_rate > 0:
            position += self._frames_rendered / self._sample_rate
        if self._duration is not None:
            position = min(position, self._duration)
        return position

    def _publish(self) -> None:
        self._snapshot = PlayerState(
            phase=self._phase,
            position=self._position(),
            duration=self._duration,
            volume=self._volume,
            paused=self._paused,
            error=self._error,
        )

    def _enter_errored(self) -> None:
        self._set_phase(Phase.ERRORED)
        self._play_requested = False
        self._paused = True

    def _enter_ended(self) -> None:
        self._set_phase(Phase.ENDED)
        self._paused = True
        if self._duration is not None:
            self._position_base = self._duration
            self._frames_rendered = 0
        self._emit(PlayerEventType.ENDED)

    # ------------------------------------------------------------------
    # Loader-driven transitions
    # ------------------------------------------------------------------

    def begin_load(self) -> None:
        """IDLE -> LOADING."""
        with self._transition() as active:
            if not active or self._phase is not Phase.IDLE:
                return
            self._set_phase(Phase.LOADING)
            self._emit(PlayerEventType.LOAD_START)

    def set_metadata(self, sample_rate: int, duration: float | None) -> None:
        """Record stream metadata.

        Moves LOADING -> READY, unless play was requested, in which case
        the machine stays LOADING until data is buffered.

        Args:
            sample_rate: Frames per second
            duration: Duration in seconds, None if unknown
        """
        with self._transition() as active:
            if not active or self._phase is not Phase.LOADING:
                return
            self._sample_rate = sample_rate
            self._duration = duration
            if not self._play_requested:
                self._set_phase(Phase.READY)
            self._emit(PlayerEventType.LOADED_METADATA)
            if duration is not None:
                self._emit(PlayerEventType.DURATION_CHANGE)

    def data_buffered(self) -> bool:
        """Report that enough frames are buffered to start playback.

        Returns:
            True once LOADED_DATA has been delivered; False if the machine
            is not in a phase that can accept the report yet
        """
        with self._transition() as active:
            if not active:
                return False
            if self._phase not in (Phase.LOADING, Phase.READY):
                return self._loaded_data
            if not self._loaded_data:
                self._loaded_data = True
                self._emit(PlayerEventType.LOADED_DATA)
            if self._play_requested:
                self._play_requested = False
                self._set_phase(Phase.PLAYING)
                self._emit(PlayerEventType.PLAYING)
            else:
                self._set_phase(Phase.READY)
            return True

    def loader_completed(self, serial: int) -> None:
        """Record that the loader reached the end of the source.

        Args:
            serial: Seek serial the loader was serving; stale reports are ignored
        """
        with self._transition() as active:
            if not active or serial != self._seek_serial:
                return
            self._loader_complete = True

    def complete_seek(self, serial: int) -> None:
        """SEEKING -> phase held before the seek.

        Args:
            serial: Serial returned by begin_seek(); only the latest completes
        """
        with self._transition() as active:
            if not active or self._phase is not Phase.SEEKING or serial != self._seek_serial:
                return
            self._set_phase(self._resume_phase)
            self._emit(PlayerEventType.SEEKED)

    def fail(self, exc: BaseException) -> None:
        """Any phase -> ERRORED, emitting ERROR with the failure message."""
        with self._lock:
            if self._retired or self._phase is Phase.ERRORED:
                return
            self._error = ErrorInfo.from_exception(exc)
            logger.debug(f"Playback failed: {self._error.kind}: {self._error.message}")
            self._enter_errored()
            self._emit(PlayerEvent.error(self._error.message))
            self._commit()

    # ------------------------------------------------------------------
    # Sink-driven transitions
    # ------------------------------------------------------------------

    def on_frames_rendered(self, frames: int) -> None:
        """Advance the position by frames delivered to the output."""
        with self._transition() as active:
            if not active or self._phase is not Phase.PLAYING or frames <= 0:
                return
            self._frames_rendered += frames

    def on_underrun(self) -> None:
        """PLAYING -> WAITING, or ENDED if the loader already completed."""
        with self._transition() as active:
            if not active or self._phase is not Phase.PLAYING:
                return
            if self._loader_complete:
                self._enter_ended()
            else:
                self._set_phase(Phase.WAITING)
                self._emit(PlayerEventType.WAITING)

    def on_buffer_status(self, sufficient: bool, empty: bool) -> Phase:
        """Re-evaluate a WAITING machine against the buffer fill level.

        Args:
            sufficient: Fill level reached the watermark
            empty: Buffer holds no frames

        Returns:
            Phase after the check
        """
        with self._transition() as active:
            if not active or self._phase is not Phase.WAITING:
                return self._phase
            if sufficient or (self._loader_complete and not empty):
                self._set_phase(Phase.PLAYING)
                self._emit(PlayerEventType.PLAYING)
            elif self._loader_complete:
                self._enter_ended()
            return self._phase

    # ------------------------------------------------------------------
    # Control-driven transitions
    # ------------------------------------------------------------------

    def play(self) -> None:
        """Request playback. Idempotent."""
        with self._transition() as active:
            if not active:
                return
            seeking = self._phase is Phase.SEEKING
            phase = self._resume_phase if seeking else self._phase

            if phase is Phase.PAUSED or (phase is Phase.READY and self._loaded_data):
                target = Phase.PLAYING
            elif phase in (Phase.LOADING, Phase.READY) and not self._play_requested:
                # Start once data is buffered
                target = phase
                self._play_requested = True
            else:
                return

            self._paused = False
            if seeking:
                self._resume_phase = target
            else:
                self._set_phase(target)
            self._emit(PlayerEventType.PLAY)

    def pause(self) -> None:
        """Pause playback. Idempotent."""
        with self._transition() as active:
            if not active:
                return
            seeking = self._phase is Phase.SEEKING
            phase = self._resume_phase if seeking else self._phase

            if phase in (Phase.PLAYING, Phase.WAITING):
                target = Phase.PAUSED
            elif phase in (Phase.LOADING, Phase.READY) and self._play_requested:
                target = phase
                self._play_requested = False
            else:
                return

            self._paused = True
            if seeking:
                self._resume_phase = target
            else:
                self._set_phase(target)
            self._emit(PlayerEventType.PAUSE)

    def set_volume(self, volume: float) -> None:
        """Set volume, clamped to [0, 1]. NaN is ignored.

        A retired machine still records the volume, without emitting, so
        the player can hand it to the session that replaced this one.
        """
        with self._transition() as active:
            clamped = _clamp_volume(volume, self._volume)
            if clamped == self._volume:
                return
            self._volume = clamped
            if not active:
                self._publish()
                return
            self._emit(PlayerEventType.VOLUME_CHANGE)

    def begin_seek(self, position: float) -> int:
        """Enter SEEKING towards position.

        Args:
            position: Target in seconds, within [0, duration]

        Returns:
            Serial identifying this seek

        Raises:
            SeekError: If the target or phase rejects the seek
        """
        with self._transition() as active:
            if not active:
                raise SeekError("Player session was replaced")
            if self._phase in (Phase.IDLE, Phase.ERRORED):
                raise SeekError(f"Cannot seek while {self._phase.value}")
            if self._duration is None:
                raise SeekError("Cannot seek: duration is unknown")
            if math.isnan(position) or position < 0 or position > self._duration:
                raise SeekError(f"Seek target {position} outside [0, {self._duration}]")

            if self._phase is not Phase.SEEKING:
                self._resume_phase = _resume_phase_for(self._phase)
            self._seek_serial += 1
            self._position_base = float(position)
            self._frames_rendered = 0
            self._loader_complete = False
            self._set_phase(Phase.SEEKING)
            self._emit(PlayerEventType.SEEKING)
            return self._seek_serial

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def stop(self) -> None:
        """Any phase -> IDLE, emitting EMPTIED, then retire."""
        with self._lock:
            if self._retired:
                return
            self._set_phase(Phase.IDLE)
            self._duration = None
            self._paused = True
            self._error = None
            self._sample_rate = 0
            self._position_base = 0.0
            self._frames_rendered = 0
            self._play_requested = False
            self._loader_complete = False
            self._poisoned = False
            self._pending.clear()
            self._emit(PlayerEventType.EMPTIED)
            try:
                self._commit()
            finally:
                self._retired = True

    def retire(self) -> None:
        """Silence the machine without emitting."""
        with self._lock:
            self._retired = True
            self._pending.clear()


def _clamp_volume(volume: float, fallback: float) -> float:
    if math.isnan(volume):
        return fallback
    return min(1.0, max(0.0, float(volume)))


def _resume_phase_for(phase: Phase) -> Phase:
    if phase is Phase.WAITING:
        return Phase.PLAYING
    if phase is Phase.ENDED:
        return Phase.PAUSED
    return phase


__all__ = ["Phase", "PlayerState", "StateMachine"]
