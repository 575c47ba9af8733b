"""Loader: turns a load request into buffered frames.

Usage:
    loader = Loader(request, buffer, state, sink, dispatcher)
    loader.start()
    ...
    loader.cancel()  # reports ABORTED unless already completed
"""

from .cancel import CancellationToken, TaskRunner, ThreadTaskRunner
from .fetch import DownloadStatus, HttpFetcher
from .stream import AppendableBytes, BlockingReader
from .task import Loader

__all__ = [
    "AppendableBytes",
    "BlockingReader",
    "CancellationToken",
    "DownloadStatus",
    "HttpFetcher",
    "Loader",
    "TaskRunner",
    "ThreadTaskRunner",
]
