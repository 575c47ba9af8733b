"""Audio output protocol.

Defines the interface for the real-time output device that drives the
sink. The device owns the callback thread and asks for frames at its own
cadence through the render callback.
"""

from collections.abc import Callable
from typing import Protocol

import numpy as np

# Fills a float32 array shaped (frames, channels) in place
RenderCallback = Callable[[np.ndarray], None]


class AudioOutput(Protocol):
    """Interface for a callback-driven audio output device."""

    def open(self, sample_rate: int, channels: int, render: RenderCallback) -> None:
        """Open the device and start calling render.

        render must not block: it runs on the device's real-time thread.
        Opening an already open output replaces the stream.

        Args:
            sample_rate: Frames per second
            channels: Samples per frame
            render: Callback filling each output block

        Raises:
            RuntimeError: If the device cannot be opened
        """
        ...

    def close(self) -> None:
        """Stop calling render and release the device.

        Safe to call when not open.
        """
        ...

    @property
    def is_open(self) -> bool:
        """Return True while the device is open."""
        ...


__all__ = ["AudioOutput", "RenderCallback"]
