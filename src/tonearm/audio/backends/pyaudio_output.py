"""PortAudio output backend using PyAudio.

Opens a float32 callback stream; PortAudio's callback thread asks the
render callback for each block.
"""

import logging
import threading
from typing import Any

import numpy as np

from ..output import RenderCallback

# PyAudio import with fallback for type hints
try:
    import pyaudio

    PYAUDIO_AVAILABLE = True
except ImportError:
    PYAUDIO_AVAILABLE = False
    pyaudio = None

logger = logging.getLogger(__name__)


class PyAudioOutput:
    """Callback-driven output using PyAudio.

    Implements the AudioOutput protocol.
    """

    def __init__(self, device_name: str = "default", blocksize: int = 1024) -> None:
        """Initialize PyAudio output.

        Args:
            device_name: Output device name (substring match) or "default"
            blocksize: Frames per callback

        Raises:
            RuntimeError: If PyAudio is not available
        """
        if not PYAUDIO_AVAILABLE:
            raise RuntimeError("PyAudio not available. Install with: pip install pyaudio")

        self._device_name = device_name
        self._blocksize = blocksize
        self._channels = 0
        self._render: RenderCallback | None = None
        self._lock = threading.Lock()

        self._pa: Any = None
        self._stream: Any = None

    def _get_device_index(self) -> int | None:
        """Get device index for configured device name."""
        if self._device_name == "default" or self._pa is None:
            return None

        for i in range(self._pa.get_device_count()):
            info = self._pa.get_device_info_by_index(i)
            if self._device_name.lower() in info["name"].lower() and info["maxOutputChannels"] > 0:
                return i

        logger.warning(f"Output device '{self._device_name}' not found, using default")
        return None

    def _callback(self, in_data: Any, frame_count: int, time_info: Any, status: Any) -> tuple[bytes, int]:
        block = np.zeros((frame_count, self._channels), dtype=np.float32)
        render = self._render
        if render is not None:
            render(block)
        return block.tobytes(), pyaudio.paContinue

    def open(self, sample_rate: int, channels: int, render: RenderCallback) -> None:
        """Open a float32 callback stream."""
        with self._lock:
            self._close_locked()
            self._channels = channels
            self._render = render
            self._pa = pyaudio.PyAudio()
            try:
                self._stream = self._pa.open(
                    format=pyaudio.paFloat32,
                    channels=channels,
                    rate=sample_rate,
                    output=True,
                    output_device_index=self._get_device_index(),
                    frames_per_buffer=self._blocksize,
                    stream_callback=self._callback,
                )
            except (OSError, ValueError) as e:
                self._close_locked()
                raise RuntimeError(f"Failed to open output stream: {e}") from e
            self._stream.start_stream()
            logger.debug(f"Output stream open: {sample_rate} Hz, {channels} ch, blocksize {self._blocksize}")

    def close(self) -> None:
        """Stop and close the stream."""
        with self._lock:
            self._close_locked()

    def _close_locked(self) -> None:
        self._render = None
        if self._stream is not None:
            try:
                self._stream.stop_stream()
                self._stream.close()
            except OSError as e:
                logger.debug(f"Error closing output stream: {e}")
            self._stream = None
        if self._pa is not None:
            self._pa.terminate()
            self._pa = None

    @property
    def is_open(self) -> bool:
        """Return True while the stream is open."""
        return self._stream is not None


__all__ = ["PYAUDIO_AVAILABLE", "PyAudioOutput"]
