"""tonearm - audio playback control core.

tonearm plays one audio source at a time (local file, HTTP stream,
binary reader or in-memory frame source) and reports its lifecycle with
HTML media element style events:
- loadstart, loadedmetadata, durationchange, loadeddata
- play, playing, waiting, pause, seeking, seeked
- volumechange, ended, emptied, error

Usage:
    python -m tonearm song.wav
    python -m tonearm https://example.com/stream.mp3 --volume 0.5
"""

__version__ = "0.1.0"

from .config import TonearmConfig
from .config.loader import load_config
from .control import ControlHandle, PlaybackControl
from .errors import (
    DecodeError,
    ErrorInfo,
    FetchError,
    LoadError,
    LockError,
    OutputError,
    SeekError,
    TonearmError,
)
from .events import LoaderEvent, PlayerEvent, PlayerEventType
from .player import Player
from .sources import ArraySource, FrameSource
from .state import Phase, PlayerState

__all__ = [
    "ArraySource",
    "ControlHandle",
    "DecodeError",
    "ErrorInfo",
    "FetchError",
    "FrameSource",
    "LoadError",
    "LoaderEvent",
    "LockError",
    "OutputError",
    "Phase",
    "PlaybackControl",
    "Player",
    "PlayerEvent",
    "PlayerEventType",
    "PlayerState",
    "SeekError",
    "TonearmConfig",
    "TonearmError",
    "__version__",
    "load_config",
]
