"""Growable byte store and a blocking, seekable reader over it.

The HTTP fetcher appends downloaded chunks to an AppendableBytes store
while the decoder reads from a BlockingReader. Reads past the downloaded
region suspend until more bytes arrive, the download completes, fails,
or the load is cancelled.
"""

import io
import threading

from ..errors import FetchError
from .cancel import CancellationToken


class AppendableBytes:
    """Thread-safe byte store filled by a producer."""

    def __init__(self) -> None:
        """Initialize an empty store."""
        self._data = bytearray()
        self._completed = False
        self._closed = False
        self._error: FetchError | None = None
        self._lock = threading.Lock()
        self._changed = threading.Condition(self._lock)

    @property
    def size(self) -> int:
        """Number of bytes received so far."""
        with self._lock:
            return len(self._data)

    @property
    def completed(self) -> bool:
        """Return True once the producer finished successfully."""
        return self._completed

    def append(self, chunk: bytes) -> None:
        """Append a chunk and wake waiting readers.

        Ignored after complete(), fail() or close().
        """
        if not chunk:
            return
        with self._changed:
            if self._completed or self._closed or self._error is not None:
                return
            self._data.extend(chunk)
            self._changed.notify_all()

    def complete(self) -> None:
        """Mark the store complete. Readers reaching the end get EOF."""
        with self._changed:
            self._completed = True
            self._changed.notify_all()

    def fail(self, error: FetchError) -> None:
        """Mark the store failed. Readers waiting for bytes get the error."""
        with self._changed:
            self._error = error
            self._changed.notify_all()

    def close(self) -> None:
        """Release waiting readers without completing."""
        with self._changed:
            self._closed = True
            self._changed.notify_all()

    def read_at(self, position: int, size: int, token: CancellationToken | None = None) -> bytes:
        """Read up to size bytes at position, waiting for data if needed.

        Returns:
            Bytes read; empty at end of a completed store, on close, or on cancellation

        Raises:
            FetchError: If the producer failed before position was reached
        """
        with self._changed:
            while position >= len(self._data):
                if self._completed or self._closed:
                    return b""
                if token is not None and token.is_cancelled:
                    return b""
                if self._error is not None:
                    raise self._error
                self._changed.wait(timeout=0.1)
            return bytes(self._data[position : position + size])


class BlockingReader(io.RawIOBase):
    """Seekable binary reader over an AppendableBytes store.

    SEEK_END is only supported once the store is complete.
    """

    def __init__(self, store: AppendableBytes, token: CancellationToken | None = None) -> None:
        """Initialize reader at position 0.

        Args:
            store: Byte store to read from
            token: Cancellation token; a cancelled read returns EOF
        """
        super().__init__()
        self._store = store
        self._token = token
        self._pos = 0

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def readinto(self, b) -> int:  # type: ignore[override]
        view = memoryview(b).cast("B")
        data = self._store.read_at(self._pos, len(view), self._token)
        n = len(data)
        view[:n] = data
        self._pos += n
        return n

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if whence == io.SEEK_SET:
            new_pos = offset
        elif whence == io.SEEK_CUR:
            new_pos = self._pos + offset
        elif whence == io.SEEK_END:
            if not self._store.completed:
                raise io.UnsupportedOperation("SEEK_END requires a completed download")
            new_pos = self._store.size + offset
        else:
            raise ValueError(f"Invalid whence: {whence}")
        if new_pos < 0:
            raise ValueError(f"Negative seek position: {new_pos}")
        self._pos = new_pos
        return self._pos

    def tell(self) -> int:
        return self._pos


__all__ = ["AppendableBytes", "BlockingReader"]
