"""Unit tests for cancellation and the appendable byte stream."""

import io
import threading
import time

import pytest

from tonearm.errors import FetchError
from tonearm.loader.cancel import CancellationToken, ThreadTaskRunner
from tonearm.loader.stream import AppendableBytes, BlockingReader


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_initially_not_cancelled(self) -> None:
        """Test a fresh token is not cancelled."""
        assert CancellationToken().is_cancelled is False

    def test_callbacks_run_once(self) -> None:
        """Test callbacks run on the first cancel only."""
        token = CancellationToken()
        calls: list[int] = []
        token.on_cancel(lambda: calls.append(1))
        token.cancel()
        token.cancel()
        assert token.is_cancelled is True
        assert calls == [1]

    def test_late_registration_runs_immediately(self) -> None:
        """Test registering after cancellation runs the callback at once."""
        token = CancellationToken()
        token.cancel()
        calls: list[int] = []
        token.on_cancel(lambda: calls.append(1))
        assert calls == [1]

    def test_failing_callback_does_not_block_others(self) -> None:
        """Test one failing callback doesn't stop the rest."""
        token = CancellationToken()
        calls: list[str] = []

        def broken() -> None:
            raise RuntimeError("boom")

        token.on_cancel(broken)
        token.on_cancel(lambda: calls.append("ran"))
        token.cancel()
        assert calls == ["ran"]

    def test_wait(self) -> None:
        """Test wait() returns once cancelled."""
        token = CancellationToken()
        assert token.wait(0.01) is False
        threading.Timer(0.05, token.cancel).start()
        assert token.wait(5.0) is True


class TestThreadTaskRunner:
    """Tests for ThreadTaskRunner."""

    def test_spawn(self) -> None:
        """Test tasks run on named daemon threads."""
        seen: list[str] = []
        thread = ThreadTaskRunner().spawn(lambda: seen.append(threading.current_thread().name), name="task-1")
        thread.join(timeout=5.0)
        assert thread.daemon is True
        assert seen == ["task-1"]


class TestAppendableBytes:
    """Tests for AppendableBytes."""

    def test_read_available(self) -> None:
        """Test reads return what has been appended."""
        store = AppendableBytes()
        store.append(b"hello world")
        assert store.read_at(0, 5) == b"hello"
        assert store.read_at(6, 100) == b"world"
        assert store.size == 11

    def test_read_waits_for_data(self) -> None:
        """Test a read past the end waits for the producer."""
        store = AppendableBytes()
        threading.Timer(0.05, lambda: store.append(b"late")).start()
        assert store.read_at(0, 4) == b"late"

    def test_eof_after_complete(self) -> None:
        """Test reads at the end of a completed store return b''."""
        store = AppendableBytes()
        store.append(b"abc")
        store.complete()
        assert store.completed is True
        assert store.read_at(3, 10) == b""

    def test_failure_raises(self) -> None:
        """Test readers waiting for bytes see the fetch error."""
        store = AppendableBytes()
        store.append(b"abc")
        store.fail(FetchError("connection reset"))
        assert store.read_at(0, 3) == b"abc"
        with pytest.raises(FetchError):
            store.read_at(3, 10)

    def test_cancelled_read_returns_eof(self) -> None:
        """Test cancellation releases a waiting reader."""
        store = AppendableBytes()
        token = CancellationToken()
        threading.Timer(0.05, token.cancel).start()
        assert store.read_at(0, 10, token) == b""

    def test_close_releases_reader(self) -> None:
        """Test close() releases a waiting reader."""
        store = AppendableBytes()
        threading.Timer(0.05, store.close).start()
        assert store.read_at(0, 10) == b""

    def test_append_ignored_after_complete(self) -> None:
        """Test late chunks are dropped."""
        store = AppendableBytes()
        store.complete()
        store.append(b"xyz")
        assert store.size == 0


class TestBlockingReader:
    """Tests for BlockingReader."""

    def test_read_and_seek(self) -> None:
        """Test reading, tell and absolute seeks."""
        store = AppendableBytes()
        store.append(b"0123456789")
        reader = BlockingReader(store)
        assert reader.read(4) == b"0123"
        assert reader.tell() == 4
        reader.seek(8)
        assert reader.read(10) == b"89"
        reader.seek(-3, io.SEEK_CUR)
        assert reader.read(1) == b"7"

    def test_seek_end_requires_completion(self) -> None:
        """Test SEEK_END is refused while downloading."""
        store = AppendableBytes()
        store.append(b"abc")
        reader = BlockingReader(store)
        with pytest.raises(io.UnsupportedOperation):
            reader.seek(0, io.SEEK_END)

        store.complete()
        assert reader.seek(-1, io.SEEK_END) == 2

    def test_negative_position(self) -> None:
        """Test seeking before the start is rejected."""
        reader = BlockingReader(AppendableBytes())
        with pytest.raises(ValueError):
            reader.seek(-1)

    def test_buffered_read_spans_chunks(self) -> None:
        """Test a buffered reader assembles chunks arriving over time."""
        store = AppendableBytes()
        reader = io.BufferedReader(BlockingReader(store))

        def produce() -> None:
            for chunk in (b"ab", b"cd", b"ef"):
                time.sleep(0.02)
                store.append(chunk)
            store.complete()

        threading.Thread(target=produce, daemon=True).start()
        assert reader.read(6) == b"abcdef"
        assert reader.read(1) == b""
