"""Sink adapter between the frame buffer and the audio output.

render() runs on the output's real-time thread. It never blocks on the
loader: it drains what the buffer holds, applies the volume, and reports
rendered frames and underruns to the state machine.
"""

import logging
import threading

import numpy as np

from ..buffer import FrameBuffer
from ..errors import LockError, OutputError
from ..state import Phase, StateMachine
from .output import AudioOutput

logger = logging.getLogger(__name__)


class SinkAdapter:
    """Feeds one session's buffer to the audio output."""

    def __init__(self, output: AudioOutput, buffer: FrameBuffer, state: StateMachine) -> None:
        """Initialize sink.

        Args:
            output: Audio output device
            buffer: Buffer filled by the loader
            state: Session state machine
        """
        self._output = output
        self._buffer = buffer
        self._state = state
        self._lock = threading.Lock()
        self._opened = False
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._opened and not self._closed

    def open(self, sample_rate: int, channels: int) -> None:
        """Open the output for the session's stream format.

        Ignored once the sink was closed.

        Raises:
            OutputError: If the output device cannot be opened
        """
        with self._lock:
            if self._closed:
                return
            try:
                self._output.open(sample_rate, channels, self.render)
            except (RuntimeError, OSError) as e:
                raise OutputError(f"Cannot open audio output: {e}") from e
            self._opened = True

    def close(self) -> None:
        """Close the output if this sink opened it."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if self._opened:
                self._output.close()

    def render(self, out: np.ndarray) -> None:
        """Fill one output block in place."""
        if self._closed:
            out.fill(0)
            return

        state = self._state
        try:
            phase = state.phase
            if phase is Phase.WAITING:
                phase = state.on_buffer_status(self._buffer.above_watermark, self._buffer.is_empty)
            if phase is not Phase.PLAYING:
                out.fill(0)
                return

            written = self._buffer.pop_into(out)
            state.on_frames_rendered(written)
            if written < out.shape[0]:
                state.on_underrun()
        except LockError:
            out.fill(0)
            return

        volume = state.snapshot.volume
        if volume != 1.0:
            np.multiply(out, volume, out=out)


__all__ = ["SinkAdapter"]
