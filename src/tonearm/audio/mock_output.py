"""Mock audio output for testing.

Provides a mock implementation of AudioOutput that renders on demand
instead of on a hardware clock.
"""

import threading

import numpy as np

from .output import RenderCallback


class MockAudioOutput:
    """Mock audio output for testing.

    Nothing is rendered until pump() is called, which drives the render
    callback synchronously on the calling thread and records the result.
    Implements the AudioOutput protocol.
    """

    def __init__(self, blocksize: int = 1024, record: bool = True) -> None:
        """Initialize mock output.

        Args:
            blocksize: Default frames per pump() call
            record: Keep rendered blocks for later verification
        """
        self._blocksize = blocksize
        self._record = record
        self._lock = threading.Lock()
        self._render: RenderCallback | None = None
        self._sample_rate = 0
        self._channels = 0
        self._open_count = 0
        self._rendered: list[np.ndarray] = []
        self._frames_pumped = 0

    def open(self, sample_rate: int, channels: int, render: RenderCallback) -> None:
        """Record the stream format and keep render for pump()."""
        with self._lock:
            self._sample_rate = sample_rate
            self._channels = channels
            self._render = render
            self._open_count += 1

    def close(self) -> None:
        """Forget the render callback."""
        with self._lock:
            self._render = None

    @property
    def is_open(self) -> bool:
        """Return True while a render callback is installed."""
        return self._render is not None

    @property
    def sample_rate(self) -> int:
        """Sample rate of the most recent open()."""
        return self._sample_rate

    @property
    def channels(self) -> int:
        """Channel count of the most recent open()."""
        return self._channels

    @property
    def open_count(self) -> int:
        """Number of times open() was called."""
        return self._open_count

    @property
    def frames_pumped(self) -> int:
        """Total frames requested through pump()."""
        return self._frames_pumped

    def pump(self, frames: int | None = None) -> np.ndarray | None:
        """Render one block as the hardware callback would.

        Args:
            frames: Block size (defaults to the configured blocksize)

        Returns:
            Rendered block, or None if the output is closed
        """
        with self._lock:
            render = self._render
            channels = self._channels
        if render is None:
            return None

        block = np.zeros((frames or self._blocksize, channels), dtype=np.float32)
        render(block)
        self._frames_pumped += block.shape[0]
        if self._record:
            self._rendered.append(block)
        return block

    @property
    def rendered(self) -> np.ndarray:
        """All recorded blocks concatenated."""
        if not self._rendered:
            return np.zeros((0, max(1, self._channels)), dtype=np.float32)
        return np.concatenate(self._rendered)

    def clear(self) -> None:
        """Clear recorded audio."""
        self._rendered.clear()
        self._frames_pumped = 0


__all__ = ["MockAudioOutput"]
