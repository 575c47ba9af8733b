"""Decoding capability: byte streams in, frame sources out.

Usage:
    decoders = DecoderRegistry.from_config(config.decoder)
    source = decoders.open(stream, hint="wav")

Decoders are tried in order; the first whose accepts() returns True for
the stream header and format hint opens the stream.
"""

import logging
from typing import TYPE_CHECKING, BinaryIO, Protocol

from ..errors import DecodeError
from ..sources import FrameSource
from .ffmpeg import FFmpegDecoder
from .wav import WavDecoder

if TYPE_CHECKING:
    from ..config import DecoderConfig

logger = logging.getLogger(__name__)

HEADER_BYTES = 12


class Decoder(Protocol):
    """Interface for a format decoder."""

    name: str

    def accepts(self, header: bytes, hint: str | None) -> bool:
        """Return True if this decoder can handle the stream.

        Args:
            header: First bytes of the stream (empty if it cannot be peeked)
            hint: Format hint such as a file extension
        """
        ...

    def open(self, stream: BinaryIO, hint: str | None = None) -> FrameSource:
        """Open stream as a frame source.

        Raises:
            DecodeError: If the data is malformed or unsupported
        """
        ...


def sniff_header(stream: BinaryIO, size: int = HEADER_BYTES) -> bytes:
    """Peek at the first bytes of a seekable stream.

    Returns:
        Header bytes, or b"" for non-seekable streams
    """
    seekable = getattr(stream, "seekable", None)
    if seekable is None or not seekable():
        return b""
    position = stream.tell()
    header = stream.read(size) or b""
    stream.seek(position)
    return header


class DecoderRegistry:
    """Ordered set of decoders with format detection."""

    def __init__(self, decoders: list[Decoder] | None = None) -> None:
        """Initialize registry.

        Args:
            decoders: Decoders in priority order (defaults to WAV, then ffmpeg)
        """
        if decoders is None:
            decoders = [WavDecoder(), FFmpegDecoder()]
        self._decoders = list(decoders)

    @classmethod
    def from_config(cls, config: "DecoderConfig | None" = None) -> "DecoderRegistry":
        """Build the default registry from decoder configuration."""
        if config is None:
            return cls()
        ffmpeg = FFmpegDecoder(
            ffmpeg_path=config.ffmpeg_path,
            ffprobe_path=config.ffprobe_path,
            sample_rate=config.sample_rate,
            channels=config.channels,
        )
        decoders: list[Decoder] = [WavDecoder()]
        if config.ffmpeg_enabled:
            decoders.append(ffmpeg)
        return cls(decoders)

    @property
    def names(self) -> list[str]:
        """Names of registered decoders in priority order."""
        return [decoder.name for decoder in self._decoders]

    def open(self, stream: BinaryIO, hint: str | None = None) -> FrameSource:
        """Detect the format of stream and open it.

        Raises:
            DecodeError: If no decoder accepts the stream
        """
        try:
            header = sniff_header(stream)
        except OSError as e:
            raise DecodeError(f"Cannot read stream header: {e}") from e

        if header == b"" and getattr(stream, "seekable", lambda: False)():
            raise DecodeError("Stream is empty")

        for decoder in self._decoders:
            if decoder.accepts(header, hint):
                logger.debug(f"Decoding with {decoder.name} (hint={hint})")
                return decoder.open(stream, hint)

        raise DecodeError(f"Unsupported audio format (hint={hint})")


__all__ = [
    "Decoder",
    "DecoderRegistry",
    "FFmpegDecoder",
    "WavDecoder",
    "sniff_header",
]
