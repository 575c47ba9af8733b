"""Player and loader event types.

Event names mirror the HTML media element (loadstart, loadedmetadata,
durationchange, loadeddata, play, playing, waiting, pause, seeking,
seeked, volumechange, ended, emptied, error).
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum


class PlayerEventType(Enum):
    """Kinds of playback lifecycle events."""

    PLAY = "play"  # Playback requested or resumed
    PAUSE = "pause"
    PLAYING = "playing"  # Enough data buffered, audio is flowing
    WAITING = "waiting"  # Buffer ran dry while playing
    ENDED = "ended"
    EMPTIED = "emptied"  # Source and metadata were cleared
    DURATION_CHANGE = "durationchange"
    VOLUME_CHANGE = "volumechange"
    SEEKING = "seeking"
    SEEKED = "seeked"
    LOAD_START = "loadstart"
    LOADED_DATA = "loadeddata"
    LOADED_METADATA = "loadedmetadata"
    ERROR = "error"


@dataclass(frozen=True)
class PlayerEvent:
    """A playback lifecycle event.

    Attributes:
        type: Event kind
        message: Failure description, set only for ERROR events
    """

    type: PlayerEventType
    message: str | None = None

    @classmethod
    def error(cls, message: str) -> "PlayerEvent":
        """Create an ERROR event carrying a message."""
        return cls(PlayerEventType.ERROR, message)

    @property
    def is_error(self) -> bool:
        """Return True for ERROR events."""
        return self.type is PlayerEventType.ERROR

    def __str__(self) -> str:
        if self.message is not None:
            return f"{self.type.value}: {self.message}"
        return self.type.value


class LoaderEvent(Enum):
    """Outcome of a loader task. Exactly one is emitted per load."""

    COMPLETED = "completed"
    ABORTED = "aborted"


PlayerListener = Callable[[PlayerEvent], None]
LoaderListener = Callable[[LoaderEvent], None]


__all__ = [
    "LoaderEvent",
    "LoaderListener",
    "PlayerEvent",
    "PlayerEventType",
    "PlayerListener",
]
