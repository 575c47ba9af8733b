"""Loader task: opens a load request and fills the frame buffer.

One Loader serves one session. It runs on the task runner, reports
metadata to the state machine before the first frame, pushes frames with
backpressure, serves seek requests at its suspension points, and reports
exactly one outcome (COMPLETED or ABORTED) to the loader listener.
"""

import io
import logging
import threading
from typing import TYPE_CHECKING, BinaryIO

import httpx
import numpy as np

from ..audio.sink import SinkAdapter
from ..buffer import FrameBuffer
from ..decoding import DecoderRegistry
from ..dispatcher import EventDispatcher
from ..errors import DecodeError, LoadError, LockError, OutputError, SeekError
from ..events import LoaderEvent
from ..sources import (
    FileRequest,
    FrameSource,
    LoadRequest,
    ReaderRequest,
    SourceRequest,
    UrlRequest,
    describe_request,
)
from ..state import StateMachine
from .cancel import CancellationToken, TaskRunner, ThreadTaskRunner
from .fetch import HttpFetcher
from .stream import AppendableBytes, BlockingReader

if TYPE_CHECKING:
    from ..config import BufferConfig, HttpConfig

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_FRAMES = 4096


class Loader:
    """Produces decoded frames for one session."""

    def __init__(
        self,
        request: LoadRequest,
        buffer: FrameBuffer,
        state: StateMachine,
        sink: SinkAdapter,
        dispatcher: EventDispatcher,
        decoders: DecoderRegistry | None = None,
        runner: TaskRunner | None = None,
        buffer_config: "BufferConfig | None" = None,
        http_config: "HttpConfig | None" = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize loader.

        Args:
            request: What to load
            buffer: Session buffer to fill
            state: Session state machine
            sink: Session sink, opened once the stream format is known
            dispatcher: Receives the loader outcome event
            decoders: Decoder registry for byte-oriented requests
            runner: Task runner (defaults to daemon threads)
            buffer_config: Read chunk size
            http_config: Fetch settings for URL requests
            transport: Optional httpx transport for URL requests
        """
        self._request = request
        self._buffer = buffer
        self._state = state
        self._sink = sink
        self._dispatcher = dispatcher
        self._decoders = decoders or DecoderRegistry()
        self._runner = runner or ThreadTaskRunner()
        self._chunk_frames = buffer_config.chunk_frames if buffer_config else DEFAULT_CHUNK_FRAMES
        self._http_config = http_config
        self._transport = transport

        self._token = CancellationToken()
        self._wakeup = threading.Event()
        self._seek_lock = threading.Lock()
        self._pending_seek: tuple[int, float] | None = None
        self._outcome_lock = threading.Lock()
        self._outcome: LoaderEvent | None = None
        self._fetcher: HttpFetcher | None = None
        self._file: BinaryIO | None = None
        self._thread: threading.Thread | None = None

    @property
    def cancelled(self) -> bool:
        return self._token.is_cancelled

    @property
    def outcome(self) -> LoaderEvent | None:
        """Reported outcome, or None while still loading."""
        return self._outcome

    @property
    def fetcher(self) -> HttpFetcher | None:
        """HTTP fetcher of a URL request, once created."""
        return self._fetcher

    def start(self) -> None:
        """Start the loader on the task runner."""
        if self._thread is not None:
            raise RuntimeError("Loader already started")
        logger.debug(f"Loading {describe_request(self._request)}")
        self._thread = self._runner.spawn(self._run, name="tonearm-loader")

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the loader task to finish.

        Returns:
            True if the task has finished
        """
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def cancel(self) -> None:
        """Cancel the load.

        Reports ABORTED on the calling thread unless the load already
        completed. The task releases its source at its next suspension point.
        """
        self._token.cancel()
        self._wakeup.set()
        self._buffer.wake()
        self._report(LoaderEvent.ABORTED)

    def request_seek(self, serial: int, position: float) -> None:
        """Ask the loader to reposition the source.

        Only the request with the highest serial is kept.

        Args:
            serial: Serial from StateMachine.begin_seek()
            position: Target in seconds
        """
        with self._seek_lock:
            if self._pending_seek is None or serial > self._pending_seek[0]:
                self._pending_seek = (serial, position)
        self._wakeup.set()
        self._buffer.wake()

    def _report(self, event: LoaderEvent) -> None:
        with self._outcome_lock:
            if self._outcome is not None:
                return
            self._outcome = event
        logger.debug(f"Loader {event.value}: {describe_request(self._request)}")
        self._dispatcher.emit_loader(event)

    def _take_seek(self) -> tuple[int, float] | None:
        with self._seek_lock:
            pending, self._pending_seek = self._pending_seek, None
            return pending

    def _interrupted(self) -> bool:
        return self._token.is_cancelled or self._pending_seek is not None

    def _run(self) -> None:
        source: FrameSource | None = None
        try:
            source = self._open_source()
            if self._token.is_cancelled:
                return
            self._announce(source)
            self._pump(source)
        except (LoadError, OutputError, OSError) as e:
            if self._token.is_cancelled:
                logger.debug(f"Ignoring failure after cancellation: {e}")
                return
            logger.warning(f"Failed to load {describe_request(self._request)}: {e}")
            self._report(LoaderEvent.ABORTED)
            self._state.fail(e)
        except LockError as e:
            logger.warning(f"Loader stopped: {e}")
            self._report(LoaderEvent.ABORTED)
        except Exception:
            self._report(LoaderEvent.ABORTED)
            raise
        finally:
            if source is not None:
                source.close()
            if self._file is not None:
                self._file.close()
            if self._fetcher is not None:
                self._fetcher.abort()

    def _open_source(self) -> FrameSource:
        request = self._request
        if isinstance(request, SourceRequest):
            return request.source
        if isinstance(request, FileRequest):
            try:
                stream: BinaryIO = open(request.path, "rb")
            except OSError as e:
                raise LoadError(f"Cannot open {request.path}: {e}") from e
            self._file = stream
            return self._decoders.open(stream, request.hint)
        if isinstance(request, UrlRequest):
            return self._open_url(request)
        if isinstance(request, ReaderRequest):
            return self._decoders.open(request.reader, request.hint)
        raise LoadError(f"Unsupported load request: {request!r}")

    def _open_url(self, request: UrlRequest) -> FrameSource:
        http = self._http_config
        store = AppendableBytes()
        fetcher = HttpFetcher(
            store,
            chunk_size=http.chunk_size if http else 64 * 1024,
            timeout=http.timeout if http else None,
            follow_redirects=http.follow_redirects if http else True,
            transport=self._transport,
        )
        self._fetcher = fetcher
        self._token.on_cancel(fetcher.abort)

        headers = dict(http.headers) if http else {}
        headers.update(request.headers)
        fetcher.download(request.url, headers)
        self._runner.spawn(lambda: fetcher.stream(self._token), name="tonearm-fetch")
        reader = io.BufferedReader(BlockingReader(store, self._token))
        return self._decoders.open(reader, request.hint)

    def _announce(self, source: FrameSource) -> None:
        sample_rate = source.sample_rate
        channels = source.channels
        if sample_rate <= 0 or channels <= 0:
            raise DecodeError(f"Invalid stream format: {sample_rate} Hz, {channels} channels")

        self._buffer.configure(sample_rate, channels)
        self._sink.open(sample_rate, channels)
        if self._token.is_cancelled:
            return
        self._state.set_metadata(sample_rate, source.duration)

    def _pump(self, source: FrameSource) -> None:
        serial = 0
        unfinished_seek: int | None = None
        exhausted = False
        data_announced = False

        while not self._token.is_cancelled:
            pending = self._take_seek()
            if pending is not None:
                serial, position = pending
                try:
                    source.seek(position)
                except SeekError as e:
                    raise LoadError(f"Cannot seek source: {e}") from e
                self._buffer.clear()
                exhausted = False
                unfinished_seek = serial
                logger.debug(f"Source repositioned to {position:.3f}s (seek {serial})")
                continue

            if exhausted:
                self._wakeup.wait()
                self._wakeup.clear()
                continue

            frames = source.read(self._chunk_frames)
            if frames is None or len(frames) == 0:
                exhausted = True
                if unfinished_seek is not None:
                    self._state.complete_seek(unfinished_seek)
                    unfinished_seek = None
                self._state.loader_completed(serial)
                if not data_announced:
                    data_announced = self._state.data_buffered()
                self._report(LoaderEvent.COMPLETED)
                continue

            frames = self._validate(frames)
            if not self._buffer.push_blocking(frames, interrupt=self._interrupted):
                continue

            if unfinished_seek is not None:
                self._state.complete_seek(unfinished_seek)
                unfinished_seek = None
            if not data_announced and self._buffer.above_watermark:
                data_announced = self._state.data_buffered()

    def _validate(self, frames: np.ndarray) -> np.ndarray:
        frames = np.asarray(frames, dtype=np.float32)
        if frames.ndim == 1 and self._buffer.channels == 1:
            frames = frames.reshape(-1, 1)
        if frames.ndim != 2 or frames.shape[1] != self._buffer.channels:
            raise DecodeError(f"Source produced frames shaped {frames.shape}, expected (n, {self._buffer.channels})")
        return frames


__all__ = ["DEFAULT_CHUNK_FRAMES", "Loader"]
