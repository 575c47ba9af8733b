"""HTTP fetch capability built on httpx.

download() sends the request and validates the response headers on the
calling thread; stream() then copies the body into an AppendableBytes
store and is meant to run on its own task.
"""

import logging
import threading
from enum import Enum

import httpx

from ..errors import FetchError
from .cancel import CancellationToken
from .stream import AppendableBytes

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


class DownloadStatus(Enum):
    """Lifecycle of a single download."""

    NOT_STARTED = "not_started"
    DOWNLOADING = "downloading"
    COMPLETED = "completed"
    ABORTED = "aborted"


class HttpFetcher:
    """Streams one HTTP response body into a byte store.

    Usage:
        fetcher = HttpFetcher(store)
        fetcher.download(url)          # raises FetchError on failure
        runner.spawn(lambda: fetcher.stream(token), name="fetch")
    """

    def __init__(
        self,
        store: AppendableBytes,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        timeout: float | None = None,
        follow_redirects: bool = True,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize fetcher.

        Args:
            store: Destination for downloaded bytes
            chunk_size: Bytes per streamed chunk
            timeout: Request timeout in seconds (None waits indefinitely)
            follow_redirects: Follow HTTP redirects
            transport: Optional httpx transport (e.g. httpx.MockTransport)
        """
        self._store = store
        self._chunk_size = chunk_size
        self._timeout = timeout
        self._follow_redirects = follow_redirects
        self._transport = transport

        self._lock = threading.Lock()
        self._status = DownloadStatus.NOT_STARTED
        self._download_called = False
        self._total_bytes = 0
        self._downloaded_bytes = 0
        self._client: httpx.Client | None = None
        self._response: httpx.Response | None = None

    @property
    def status(self) -> DownloadStatus:
        """Current download status."""
        return self._status

    @property
    def total_bytes(self) -> int:
        """Content-Length of the response, or 0 if unknown."""
        return self._total_bytes

    @property
    def downloaded_bytes(self) -> int:
        """Bytes received so far."""
        return self._downloaded_bytes

    def download(self, url: str, headers: dict[str, str] | None = None) -> None:
        """Send the request and wait for response headers.

        Args:
            url: Resource URL
            headers: Optional extra request headers

        Raises:
            RuntimeError: If called more than once
            FetchError: If the request fails or returns an error status
        """
        with self._lock:
            if self._download_called:
                raise RuntimeError("download() can only be called once")
            self._download_called = True
            if self._status is DownloadStatus.ABORTED:
                raise FetchError(f"Download of {url} aborted")
            self._status = DownloadStatus.DOWNLOADING

        client = httpx.Client(
            timeout=self._timeout,
            follow_redirects=self._follow_redirects,
            transport=self._transport,
        )
        with self._lock:
            # abort() closes the client to interrupt a pending request
            self._client = client
        try:
            request = client.build_request("GET", url, headers=headers)
            response = client.send(request, stream=True)
        except (httpx.HTTPError, RuntimeError) as e:
            self._mark_aborted()
            self._release()
            raise FetchError(f"Request to {url} failed: {e}") from e

        if response.is_error:
            status_code = response.status_code
            response.close()
            self._mark_aborted()
            self._release()
            raise FetchError(f"HTTP {status_code} fetching {url}", status_code=status_code)

        try:
            self._total_bytes = int(response.headers.get("content-length", 0))
        except ValueError:
            self._total_bytes = 0

        with self._lock:
            aborted = self._status is DownloadStatus.ABORTED
            if not aborted:
                self._response = response
        if aborted:
            response.close()
            self._release()
            raise FetchError(f"Download of {url} aborted")
        logger.debug(f"Fetching {url} ({self._total_bytes or 'unknown'} bytes)")

    def stream(self, token: CancellationToken | None = None) -> None:
        """Copy the response body into the store until done or cancelled.

        Failures are recorded on the store (readers see FetchError) rather
        than raised, since this runs on a background task.
        """
        response = self._response
        if response is None:
            if self._status is DownloadStatus.ABORTED:
                return
            raise RuntimeError("download() must succeed before stream()")

        try:
            for chunk in response.iter_bytes(self._chunk_size):
                if token is not None and token.is_cancelled:
                    self._mark_aborted()
                    self._store.close()
                    logger.debug("Fetch cancelled")
                    return
                self._store.append(chunk)
                self._downloaded_bytes += len(chunk)
        except (httpx.HTTPError, httpx.StreamError) as e:
            self._mark_aborted()
            if token is not None and token.is_cancelled:
                self._store.close()
                return
            logger.warning(f"Fetch interrupted after {self._downloaded_bytes} bytes: {e}")
            self._store.fail(FetchError(f"Download interrupted: {e}"))
            return
        finally:
            self._release()

        self._store.complete()
        with self._lock:
            if self._status is DownloadStatus.DOWNLOADING:
                self._status = DownloadStatus.COMPLETED
        logger.debug(f"Fetch completed ({self._downloaded_bytes} bytes)")

    def abort(self) -> None:
        """Abort an in-flight download. Safe to call at any time."""
        self._mark_aborted()
        self._store.close()
        self._release()

    def _mark_aborted(self) -> None:
        with self._lock:
            if self._status is not DownloadStatus.COMPLETED:
                self._status = DownloadStatus.ABORTED

    def _release(self) -> None:
        with self._lock:
            response, self._response = self._response, None
            client, self._client = self._client, None
        if response is not None:
            response.close()
        if client is not None:
            client.close()


__all__ = ["DEFAULT_CHUNK_SIZE", "DownloadStatus", "HttpFetcher"]
