"""WAV decoder using the standard library wave module.

Supports integer PCM at 8, 16, 24 and 32 bits. Frames are converted to
float32 in [-1, 1).
"""

import logging
import wave
from typing import BinaryIO

import numpy as np

from ..errors import DecodeError, SeekError

logger = logging.getLogger(__name__)


def pcm_to_float32(data: bytes, sample_width: int, channels: int) -> np.ndarray:
    """Convert interleaved little-endian PCM bytes to float32 frames.

    Args:
        data: Raw PCM bytes
        sample_width: Bytes per sample (1-4)
        channels: Samples per frame

    Returns:
        Array shaped (n, channels)

    Raises:
        DecodeError: If sample_width is unsupported
    """
    frame_bytes = sample_width * channels
    usable = len(data) - (len(data) % frame_bytes)
    raw = np.frombuffer(data[:usable], dtype=np.uint8)

    if sample_width == 1:
        samples = (raw.astype(np.float32) - 128.0) / 128.0
    elif sample_width == 2:
        samples = raw.view("<i2").astype(np.float32) / 32768.0
    elif sample_width == 3:
        triplets = raw.reshape(-1, 3).astype(np.int32)
        ints = triplets[:, 0] | (triplets[:, 1] << 8) | (triplets[:, 2] << 16)
        ints = np.where(ints & 0x800000, ints - 0x1000000, ints)
        samples = ints.astype(np.float32) / 8388608.0
    elif sample_width == 4:
        samples = raw.view("<i4").astype(np.float32) / 2147483648.0
    else:
        raise DecodeError(f"Unsupported sample width: {sample_width} bytes")

    return samples.reshape(-1, channels)


class WavSource:
    """Frame source reading from an open wave file."""

    def __init__(self, stream: BinaryIO) -> None:
        """Parse the WAV header.

        Args:
            stream: Binary stream positioned at the RIFF header

        Raises:
            DecodeError: If the header is malformed or unsupported
        """
        self._stream = stream
        try:
            self._wav = wave.open(stream, "rb")
        except (wave.Error, EOFError) as e:
            raise DecodeError(f"Invalid WAV data: {e}") from e

        self._channels = self._wav.getnchannels()
        self._sample_width = self._wav.getsampwidth()
        self._sample_rate = self._wav.getframerate()
        self._total_frames = self._wav.getnframes()

        if self._sample_width not in (1, 2, 3, 4):
            raise DecodeError(f"Unsupported sample width: {self._sample_width} bytes")
        if self._sample_rate <= 0 or self._channels <= 0:
            raise DecodeError("WAV header has no sample rate or channels")

        logger.debug(
            f"WAV: {self._sample_rate} Hz, {self._channels} ch, "
            f"{self._sample_width * 8}-bit, {self._total_frames} frames"
        )

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channels(self) -> int:
        return self._channels

    @property
    def duration(self) -> float | None:
        return self._total_frames / self._sample_rate

    def read(self, max_frames: int) -> np.ndarray | None:
        try:
            data = self._wav.readframes(max_frames)
        except (wave.Error, EOFError) as e:
            raise DecodeError(f"Corrupt WAV data: {e}") from e
        if not data:
            return None
        return pcm_to_float32(data, self._sample_width, self._channels)

    def seek(self, position: float) -> None:
        frame = min(int(round(position * self._sample_rate)), self._total_frames)
        try:
            self._wav.setpos(max(0, frame))
        except (wave.Error, OSError) as e:
            raise SeekError(f"Cannot seek WAV stream: {e}") from e

    def close(self) -> None:
        self._wav.close()


class WavDecoder:
    """Decoder for RIFF/WAVE streams."""

    name = "wav"

    def accepts(self, header: bytes, hint: str | None) -> bool:
        """Return True for RIFF/WAVE headers or a wav hint."""
        if header[:4] == b"RIFF" and header[8:12] == b"WAVE":
            return True
        return not header and hint in ("wav", "wave")

    def open(self, stream: BinaryIO, hint: str | None = None) -> WavSource:
        """Open a WAV stream as a frame source."""
        return WavSource(stream)


__all__ = ["WavDecoder", "WavSource", "pcm_to_float32"]
