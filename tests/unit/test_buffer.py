"""Unit tests for the frame buffer."""

import threading
import time

import numpy as np
import pytest

from tonearm.buffer import FrameBuffer


def frames(n: int, channels: int = 1, value: float = 0.5) -> np.ndarray:
    return np.full((n, channels), value, dtype=np.float32)


def make_buffer(capacity: float = 1.0, watermark: float = 0.25, rate: int = 100, channels: int = 1) -> FrameBuffer:
    buffer = FrameBuffer(capacity_seconds=capacity, watermark_seconds=watermark)
    buffer.configure(rate, channels)
    return buffer


class TestConfigure:
    """Tests for buffer sizing."""

    def test_unconfigured(self) -> None:
        """Test a new buffer has no capacity until configured."""
        buffer = FrameBuffer()
        assert buffer.is_configured is False
        with pytest.raises(ValueError):
            buffer.push_blocking(frames(1))

    def test_sizes_in_frames(self) -> None:
        """Test seconds convert to frames at the stream rate."""
        buffer = make_buffer(capacity=2.0, watermark=0.25, rate=8000)
        assert buffer.capacity_frames == 16000
        assert buffer.watermark_frames == 2000

    def test_watermark_capped_at_capacity(self) -> None:
        """Test the watermark never exceeds capacity."""
        buffer = make_buffer(capacity=1.0, watermark=5.0, rate=100)
        assert buffer.watermark_frames == buffer.capacity_frames

    def test_invalid_format(self) -> None:
        """Test non-positive formats are rejected."""
        with pytest.raises(ValueError):
            FrameBuffer().configure(0, 2)

    def test_invalid_capacity(self) -> None:
        """Test capacity must be positive."""
        with pytest.raises(ValueError):
            FrameBuffer(capacity_seconds=0)


class TestPushPop:
    """Tests for moving frames through the buffer."""

    def test_push_then_pop(self) -> None:
        """Test frames come out in order."""
        buffer = make_buffer()
        data = np.arange(10, dtype=np.float32).reshape(-1, 1)
        assert buffer.push_blocking(data) is True
        assert buffer.fill_level == 10

        out = np.empty((10, 1), dtype=np.float32)
        assert buffer.pop_into(out) == 10
        np.testing.assert_array_equal(out, data)
        assert buffer.is_empty

    def test_pop_across_blocks(self) -> None:
        """Test one pop can span several pushed blocks."""
        buffer = make_buffer()
        buffer.push_blocking(frames(3, value=1.0))
        buffer.push_blocking(frames(3, value=2.0))

        out = np.empty((4, 1), dtype=np.float32)
        buffer.pop_into(out)
        assert out[:, 0].tolist() == [1.0, 1.0, 1.0, 2.0]
        assert buffer.fill_level == 2

    def test_short_pop_zero_fills(self) -> None:
        """Test an underrun pads with silence and is counted."""
        buffer = make_buffer()
        buffer.push_blocking(frames(4))

        out = np.ones((10, 1), dtype=np.float32)
        assert buffer.pop_into(out) == 4
        assert out[4:].sum() == 0.0
        assert buffer.underrun_count == 1

    def test_pop_empty(self) -> None:
        """Test popping an empty buffer never blocks."""
        buffer = make_buffer()
        out = np.ones((8, 1), dtype=np.float32)
        assert buffer.pop_into(out) == 0
        assert not out.any()

    def test_wrong_channel_count(self) -> None:
        """Test pushes must match the configured channel count."""
        buffer = make_buffer(channels=2)
        with pytest.raises(ValueError):
            buffer.push_blocking(frames(4, channels=1))

    def test_watermark(self) -> None:
        """Test above_watermark tracks the fill level."""
        buffer = make_buffer(capacity=1.0, watermark=0.25, rate=100)
        buffer.push_blocking(frames(24))
        assert buffer.above_watermark is False
        buffer.push_blocking(frames(1))
        assert buffer.above_watermark is True

    def test_clear(self) -> None:
        """Test clear() drops buffered frames."""
        buffer = make_buffer()
        buffer.push_blocking(frames(20))
        buffer.clear()
        assert buffer.fill_level == 0


class TestBackpressure:
    """Tests for producer suspension at capacity."""

    def test_push_blocks_until_consumed(self) -> None:
        """Test a full buffer suspends the producer until space frees up."""
        buffer = make_buffer(capacity=1.0, rate=100)  # 100 frames
        buffer.push_blocking(frames(100))
        done = threading.Event()

        def producer() -> None:
            buffer.push_blocking(frames(50))
            done.set()

        thread = threading.Thread(target=producer, daemon=True)
        thread.start()
        assert not done.wait(0.2)
        assert buffer.overrun_count == 1

        buffer.pop_into(np.empty((60, 1), dtype=np.float32))
        assert done.wait(5.0)
        assert buffer.fill_level == 90

    def test_interrupt_abandons_push(self) -> None:
        """Test the interrupt callback releases a blocked producer."""
        buffer = make_buffer(capacity=1.0, rate=100)
        buffer.push_blocking(frames(100))
        cancelled = threading.Event()
        result: list[bool] = []

        thread = threading.Thread(
            target=lambda: result.append(buffer.push_blocking(frames(10), interrupt=cancelled.is_set)),
            daemon=True,
        )
        thread.start()
        time.sleep(0.1)
        cancelled.set()
        buffer.wake()
        thread.join(timeout=5.0)
        assert result == [False]

    def test_close_releases_producer(self) -> None:
        """Test close() makes pending pushes return False."""
        buffer = make_buffer(capacity=1.0, rate=100)
        buffer.push_blocking(frames(100))
        result: list[bool] = []

        thread = threading.Thread(target=lambda: result.append(buffer.push_blocking(frames(10))), daemon=True)
        thread.start()
        time.sleep(0.1)
        buffer.close()
        thread.join(timeout=5.0)
        assert result == [False]
        assert buffer.push_blocking(frames(1)) is False
