"""Cooperative cancellation and task scheduling for loader work."""

import logging
import threading
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cancellation signal observed by loader tasks at suspension points.

    Callbacks registered with on_cancel() run once, on the thread that
    calls cancel(), and are used to wake blocked readers or close
    transports.
    """

    def __init__(self) -> None:
        """Initialize an uncancelled token."""
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    @property
    def is_cancelled(self) -> bool:
        """Return True once cancel() was called."""
        return self._event.is_set()

    def cancel(self) -> None:
        """Signal cancellation and run registered callbacks.

        Idempotent: callbacks only run on the first call.
        """
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = self._callbacks
            self._callbacks = []

        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.warning(f"Cancellation callback failed: {e}")

    def on_cancel(self, callback: Callable[[], None]) -> None:
        """Register a callback to run on cancellation.

        Runs immediately if the token is already cancelled.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or timeout. Returns True if cancelled."""
        return self._event.wait(timeout)


class TaskRunner(Protocol):
    """Interface for the scheduler that runs loader tasks."""

    def spawn(self, target: Callable[[], None], name: str) -> threading.Thread:
        """Start target on a background task and return its handle."""
        ...


class ThreadTaskRunner:
    """Runs each task on its own daemon thread."""

    def spawn(self, target: Callable[[], None], name: str) -> threading.Thread:
        """Start target on a new daemon thread."""
        thread = threading.Thread(target=target, name=name, daemon=True)
        thread.start()
        return thread


__all__ = ["CancellationToken", "TaskRunner", "ThreadTaskRunner"]
