"""Bounded frame buffer between the loader and the audio sink.

The loader pushes decoded frames and suspends while the buffer is full.
The sink pops frames from its real-time callback and never blocks: a
short read is zero-padded and counted as an underrun.
"""

import logging
import threading
from collections import deque
from collections.abc import Callable

import numpy as np

logger = logging.getLogger(__name__)

# Maximum time a blocked producer sleeps before re-checking its interrupt
PUSH_POLL_SECONDS: float = 0.05


class FrameBuffer:
    """Thread-safe queue of float32 frame blocks with a fill watermark.

    Capacity and watermark are given in seconds and converted to frames
    once the stream format is known via configure().
    """

    def __init__(self, capacity_seconds: float = 2.0, watermark_seconds: float = 0.25) -> None:
        """Initialize an unconfigured buffer.

        Args:
            capacity_seconds: Maximum buffered audio in seconds
            watermark_seconds: Fill level considered sufficient to play
        """
        if capacity_seconds <= 0:
            raise ValueError("capacity_seconds must be positive")
        self._capacity_seconds = capacity_seconds
        self._watermark_seconds = min(max(0.0, watermark_seconds), capacity_seconds)

        self.channels = 0
        self.sample_rate = 0
        self.capacity_frames = 0
        self.watermark_frames = 0

        self._blocks: deque[np.ndarray] = deque()
        self._frames = 0
        self._underruns = 0
        self._overruns = 0
        self._closed = False
        self._lock = threading.Lock()
        self._not_full = threading.Condition(self._lock)

    def configure(self, sample_rate: int, channels: int) -> None:
        """Set the stream format. Clears any buffered frames.

        Args:
            sample_rate: Frames per second
            channels: Samples per frame
        """
        if sample_rate <= 0 or channels <= 0:
            raise ValueError(f"Invalid stream format: {sample_rate} Hz, {channels} channels")
        with self._not_full:
            self.sample_rate = sample_rate
            self.channels = channels
            self.capacity_frames = max(1, int(self._capacity_seconds * sample_rate))
            self.watermark_frames = max(1, int(self._watermark_seconds * sample_rate))
            self._blocks.clear()
            self._frames = 0
            self._not_full.notify_all()

    @property
    def is_configured(self) -> bool:
        """Return True once the stream format is known."""
        return self.capacity_frames > 0

    @property
    def fill_level(self) -> int:
        """Number of frames currently buffered."""
        with self._lock:
            return self._frames

    @property
    def is_empty(self) -> bool:
        """Return True if no frames are buffered."""
        return self.fill_level == 0

    @property
    def above_watermark(self) -> bool:
        """Return True if the fill level reached the watermark."""
        with self._lock:
            return self.capacity_frames > 0 and self._frames >= self.watermark_frames

    @property
    def underrun_count(self) -> int:
        """Number of pops that could not be fully satisfied."""
        with self._lock:
            return self._underruns

    @property
    def overrun_count(self) -> int:
        """Number of times a producer found the buffer full."""
        with self._lock:
            return self._overruns

    def clear(self) -> None:
        """Drop all buffered frames and wake blocked producers."""
        with self._not_full:
            self._blocks.clear()
            self._frames = 0
            self._not_full.notify_all()

    def wake(self) -> None:
        """Wake blocked producers so they re-check their interrupt."""
        with self._not_full:
            self._not_full.notify_all()

    def close(self) -> None:
        """Close the buffer. Pending and future pushes return immediately."""
        with self._not_full:
            self._closed = True
            self._blocks.clear()
            self._frames = 0
            self._not_full.notify_all()

    def push_blocking(
        self,
        frames: np.ndarray,
        interrupt: Callable[[], bool] | None = None,
    ) -> bool:
        """Append frames, suspending while the buffer is full.

        Args:
            frames: Array shaped (n, channels)
            interrupt: Checked while suspended; a True result abandons the push

        Returns:
            True if every frame was queued, False if interrupted or closed

        Raises:
            ValueError: If the buffer is unconfigured or frames have the wrong shape
        """
        if not self.is_configured:
            raise ValueError("Buffer format not configured")
        if frames.ndim != 2 or frames.shape[1] != self.channels:
            raise ValueError(f"frames must be (n,{self.channels}), got {frames.shape}")
        if frames.dtype != np.float32:
            frames = frames.astype(np.float32, copy=False)

        offset = 0
        total = frames.shape[0]
        blocked = False
        with self._not_full:
            while offset < total:
                if self._closed or (interrupt is not None and interrupt()):
                    return False
                space = self.capacity_frames - self._frames
                if space <= 0:
                    if not blocked:
                        self._overruns += 1
                        blocked = True
                    self._not_full.wait(timeout=PUSH_POLL_SECONDS)
                    continue
                take = min(space, total - offset)
                self._blocks.append(frames[offset : offset + take])
                self._frames += take
                offset += take
        return True

    def pop_into(self, out: np.ndarray) -> int:
        """Fill out with buffered frames without blocking.

        Frames that cannot be supplied are zero-filled.

        Args:
            out: Float32 array shaped (n, channels)

        Returns:
            Number of real frames written
        """
        n = out.shape[0]
        if n <= 0:
            return 0

        idx = 0
        with self._not_full:
            if self.channels and out.shape[1] == self.channels:
                while idx < n and self._blocks:
                    block = self._blocks[0]
                    take = min(n - idx, block.shape[0])
                    out[idx : idx + take] = block[:take]
                    idx += take
                    if take == block.shape[0]:
                        self._blocks.popleft()
                    else:
                        self._blocks[0] = block[take:]
                    self._frames -= take
                if idx:
                    self._not_full.notify_all()
            if idx < n:
                self._underruns += 1

        if idx < n:
            out[idx:n].fill(0)
        return idx


__all__ = ["FrameBuffer"]
