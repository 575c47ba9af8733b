"""Audio output for tonearm.

Usage:
    # Get the configured output backend
    output = create_audio_output(config.output)

    # For testing, use the mock implementation
    from tonearm.audio.mock_output import MockAudioOutput
"""

from typing import TYPE_CHECKING

from .output import AudioOutput, RenderCallback
from .sink import SinkAdapter

if TYPE_CHECKING:
    from ..config import OutputConfig


def create_audio_output(
    config: "OutputConfig | None" = None,
    use_mock: bool = False,
) -> AudioOutput:
    """Create an audio output instance.

    Args:
        config: Output configuration (uses defaults if None)
        use_mock: If True, return mock implementation for testing

    Returns:
        AudioOutput implementation for the configured backend

    Raises:
        RuntimeError: If the backend is unknown or unavailable
    """
    # Default configuration values
    backend = "pyaudio"
    device_name = "default"
    blocksize = 1024

    if config is not None:
        backend = config.backend
        device_name = config.device
        blocksize = config.blocksize

    if use_mock or backend == "mock":
        from .mock_output import MockAudioOutput

        return MockAudioOutput(blocksize=blocksize)

    if backend == "pyaudio":
        from .backends.pyaudio_output import PyAudioOutput

        return PyAudioOutput(device_name=device_name, blocksize=blocksize)

    raise RuntimeError(f"Unknown audio output backend: {backend}")


__all__ = [
    "AudioOutput",
    "RenderCallback",
    "SinkAdapter",
    "create_audio_output",
]
