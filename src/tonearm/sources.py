"""Load requests and the frame source protocol.

A load request is one of four immutable variants. Byte-oriented requests
(file, URL, reader) go through a decoder; a SourceRequest supplies frames
directly.
"""

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Protocol

import numpy as np

from .errors import SeekError


class FrameSource(Protocol):
    """Interface for anything that produces decoded PCM frames.

    Decoders return implementations of this protocol; callers may also
    hand one to Player.load_source().
    """

    @property
    def sample_rate(self) -> int:
        """Frames per second."""
        ...

    @property
    def channels(self) -> int:
        """Samples per frame."""
        ...

    @property
    def duration(self) -> float | None:
        """Total duration in seconds, or None if unknown (live/unseekable)."""
        ...

    def read(self, max_frames: int) -> np.ndarray | None:
        """Read up to max_frames frames.

        Returns:
            Float32 array shaped (n, channels), or None/empty at end of source
        """
        ...

    def seek(self, position: float) -> None:
        """Reposition so the next read starts at position seconds.

        Raises:
            SeekError: If the source cannot seek
        """
        ...

    def close(self) -> None:
        """Release underlying resources."""
        ...


@dataclass(frozen=True)
class FileRequest:
    """Load a local audio file."""

    path: Path

    @property
    def hint(self) -> str | None:
        """Format hint taken from the file extension."""
        return self.path.suffix.lstrip(".").lower() or None


@dataclass(frozen=True)
class UrlRequest:
    """Load audio over HTTP(S)."""

    url: str
    headers: tuple[tuple[str, str], ...] = ()

    @property
    def hint(self) -> str | None:
        """Format hint taken from the URL path extension."""
        path = self.url.split("?", 1)[0].split("#", 1)[0]
        name = path.rsplit("/", 1)[-1]
        if "." not in name:
            return None
        return name.rsplit(".", 1)[-1].lower() or None


@dataclass(frozen=True)
class ReaderRequest:
    """Load audio from a caller-supplied binary stream."""

    reader: BinaryIO
    hint: str | None = None


@dataclass(frozen=True)
class SourceRequest:
    """Play a pre-built frame source."""

    source: FrameSource


LoadRequest = FileRequest | UrlRequest | ReaderRequest | SourceRequest


def describe_request(request: LoadRequest) -> str:
    """Short description of a load request for logging."""
    if isinstance(request, FileRequest):
        return f"file {request.path}"
    if isinstance(request, UrlRequest):
        return f"url {request.url}"
    if isinstance(request, ReaderRequest):
        return f"reader {type(request.reader).__name__}"
    return f"source {type(request.source).__name__}"


@dataclass
class ArraySource:
    """Frame source backed by an in-memory array.

    Useful for generated audio and tests. Seekable, with a known duration.
    """

    samples: np.ndarray
    rate: int
    _position: int = field(default=0, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _closed: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        samples = np.asarray(self.samples, dtype=np.float32)
        if samples.ndim == 1:
            samples = samples.reshape(-1, 1)
        if samples.ndim != 2:
            raise ValueError(f"samples must be 1-D or 2-D, got shape {samples.shape}")
        if self.rate <= 0:
            raise ValueError("rate must be positive")
        self.samples = samples

    @classmethod
    def silence(cls, seconds: float, sample_rate: int = 8000, channels: int = 1) -> "ArraySource":
        """Create a silent source of the given length."""
        frames = int(round(seconds * sample_rate))
        return cls(np.zeros((frames, channels), dtype=np.float32), sample_rate)

    @classmethod
    def tone(
        cls,
        seconds: float,
        frequency: float = 440.0,
        sample_rate: int = 8000,
        channels: int = 1,
        amplitude: float = 0.5,
    ) -> "ArraySource":
        """Create a sine tone source."""
        frames = int(round(seconds * sample_rate))
        t = np.arange(frames, dtype=np.float32) / sample_rate
        wave = (amplitude * np.sin(2 * np.pi * frequency * t)).astype(np.float32)
        return cls(np.repeat(wave[:, None], channels, axis=1), sample_rate)

    @property
    def sample_rate(self) -> int:
        """Frames per second."""
        return self.rate

    @property
    def channels(self) -> int:
        """Samples per frame."""
        return int(self.samples.shape[1])

    @property
    def duration(self) -> float | None:
        """Total duration in seconds."""
        return self.samples.shape[0] / self.rate

    @property
    def frames_remaining(self) -> int:
        """Frames not yet read."""
        with self._lock:
            return self.samples.shape[0] - self._position

    @property
    def closed(self) -> bool:
        """Return True once close() was called."""
        return self._closed

    def read(self, max_frames: int) -> np.ndarray | None:
        """Read up to max_frames frames."""
        with self._lock:
            if self._closed or self._position >= self.samples.shape[0]:
                return None
            end = min(self._position + max_frames, self.samples.shape[0])
            block = self.samples[self._position : end]
            self._position = end
            return block

    def seek(self, position: float) -> None:
        """Reposition to position seconds."""
        if position < 0:
            raise SeekError(f"Negative seek target: {position}")
        with self._lock:
            self._position = min(int(round(position * self.rate)), self.samples.shape[0])

    def close(self) -> None:
        """Mark the source closed."""
        self._closed = True


__all__ = [
    "ArraySource",
    "FileRequest",
    "FrameSource",
    "LoadRequest",
    "ReaderRequest",
    "SourceRequest",
    "UrlRequest",
    "describe_request",
]
