"""Single-slot event dispatcher.

Holds at most one playback listener and one loader listener. Setting a
listener replaces the previous one. Events are delivered synchronously on
the thread that produced them; listener exceptions propagate to that
thread.
"""

import logging
import threading

from .events import LoaderEvent, LoaderListener, PlayerEvent, PlayerListener

logger = logging.getLogger(__name__)


class EventDispatcher:
    """Delivers player and loader events to the registered listeners."""

    def __init__(self) -> None:
        """Initialize dispatcher with empty listener slots."""
        self._lock = threading.Lock()
        self._listener: PlayerListener | None = None
        self._loader_listener: LoaderListener | None = None

    def set_listener(self, listener: PlayerListener | None) -> None:
        """Register the playback listener, replacing any previous one.

        Args:
            listener: Callable receiving PlayerEvent, or None to clear
        """
        with self._lock:
            self._listener = listener

    def set_loader_listener(self, listener: LoaderListener | None) -> None:
        """Register the loader listener, replacing any previous one.

        Args:
            listener: Callable receiving LoaderEvent, or None to clear
        """
        with self._lock:
            self._loader_listener = listener

    @property
    def has_listener(self) -> bool:
        """Return True if a playback listener is registered."""
        return self._listener is not None

    def emit(self, event: PlayerEvent) -> None:
        """Deliver a playback event to the current listener."""
        listener = self._listener
        logger.debug(f"Player event: {event}")
        if listener is not None:
            listener(event)

    def emit_loader(self, event: LoaderEvent) -> None:
        """Deliver a loader event to the current loader listener."""
        listener = self._loader_listener
        logger.debug(f"Loader event: {event.value}")
        if listener is not None:
            listener(event)


__all__ = ["EventDispatcher"]
