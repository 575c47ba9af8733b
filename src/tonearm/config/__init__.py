"""Configuration module for tonearm.

This module provides the typed configuration dataclasses; YAML loading
lives in tonearm.config.loader.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol


@dataclass
class BufferConfig:
    """Frame buffer sizing."""

    capacity_seconds: float = 2.0
    watermark_seconds: float = 0.25
    chunk_frames: int = 4096  # Frames requested from a source per read


@dataclass
class OutputConfig:
    """Audio output configuration."""

    backend: str = "pyaudio"  # pyaudio | mock
    device: str = "default"
    blocksize: int = 1024


@dataclass
class HttpConfig:
    """HTTP fetch configuration."""

    chunk_size: int = 64 * 1024
    timeout: float | None = None  # No timeout: a stalled fetch stalls the load
    follow_redirects: bool = True
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class DecoderConfig:
    """Decoder configuration."""

    ffmpeg_enabled: bool = True
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"  # duration of local files
    sample_rate: int = 44100  # ffmpeg output format
    channels: int = 2


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"


@dataclass
class TonearmConfig:
    """Main tonearm configuration."""

    buffer: BufferConfig = field(default_factory=BufferConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    decoder: DecoderConfig = field(default_factory=DecoderConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


class ConfigLoader(Protocol):
    """Protocol for configuration loading."""

    def load(self, path: Path) -> TonearmConfig:
        """Load configuration from file path."""
        ...

    def load_profile(self, profile: str) -> TonearmConfig:
        """Load configuration by profile name (default, dev)."""
        ...

    def get_config_dir(self) -> Path:
        """Get the configuration directory path."""
        ...


__all__ = [
    "BufferConfig",
    "ConfigLoader",
    "DecoderConfig",
    "HttpConfig",
    "LoggingConfig",
    "OutputConfig",
    "TonearmConfig",
]
