"""Error types for the playback core.

Load failures are terminal for the current source and are reported as
an ERROR event; seek failures are returned to the caller; a lock error
means the player instance can no longer be trusted.
"""

from dataclasses import dataclass


class TonearmError(Exception):
    """Base exception for playback-related errors."""

    pass


class LoadError(TonearmError):
    """Raised when a source cannot be opened, fetched, or decoded."""

    pass


class DecodeError(LoadError):
    """Raised when audio data is malformed or in an unsupported format."""

    pass


class FetchError(LoadError):
    """Raised when an HTTP fetch fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialize fetch error.

        Args:
            message: Error message.
            status_code: HTTP status code if available.
        """
        super().__init__(message)
        self.status_code = status_code


class OutputError(TonearmError):
    """Raised when the audio output device cannot be opened."""

    pass


class SeekError(TonearmError):
    """Raised when a seek target is rejected.

    The player phase is left unchanged.
    """

    pass


class LockError(TonearmError):
    """Raised when player state was left inconsistent by an earlier failure."""

    pass


@dataclass(frozen=True)
class ErrorInfo:
    """Description of the failure that moved the player to ERRORED.

    Attributes:
        kind: Exception class name (e.g. "DecodeError")
        message: Human-readable message
    """

    kind: str
    message: str

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ErrorInfo":
        """Build error info from an exception."""
        return cls(kind=type(exc).__name__, message=str(exc) or type(exc).__name__)


__all__ = [
    "DecodeError",
    "ErrorInfo",
    "FetchError",
    "LoadError",
    "LockError",
    "OutputError",
    "SeekError",
    "TonearmError",
]
