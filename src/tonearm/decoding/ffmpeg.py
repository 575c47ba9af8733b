"""Fallback decoder running an ffmpeg subprocess.

Handles any format ffmpeg understands (MP3, FLAC, Ogg, AAC...). Output is
float32 at a fixed rate and channel count.

Streams backed by a file on disk are decoded from the path: the duration
comes from ffprobe and seeking restarts ffmpeg with -ss. Other streams are
piped through stdin, so their duration is unknown and they cannot seek.
"""

import json
import logging
import math
import os
import shutil
import subprocess
import threading
from typing import BinaryIO

import numpy as np

from ..errors import DecodeError, LoadError, SeekError

logger = logging.getLogger(__name__)

FEED_CHUNK_BYTES = 64 * 1024
FFPROBE_TIMEOUT_SECONDS = 10.0


def make_ffmpeg_cmd(
    ffmpeg_path: str,
    sample_rate: int,
    channels: int,
    source: str = "pipe:0",
    start_sec: float = 0.0,
) -> list[str]:
    """Build the ffmpeg command decoding source to raw float32 on stdout.

    Args:
        ffmpeg_path: ffmpeg executable
        sample_rate: Output sample rate in Hz
        channels: Output channel count
        source: Input path, or pipe:0 for stdin
        start_sec: Input seek position in seconds
    """
    cmd = [ffmpeg_path, "-hide_banner", "-loglevel", "error"]
    if start_sec > 0:
        cmd += ["-ss", str(start_sec)]
    cmd += [
        "-i",
        source,
        "-vn",
        "-f",
        "f32le",
        "-acodec",
        "pcm_f32le",
        "-ac",
        str(channels),
        "-ar",
        str(sample_rate),
        "pipe:1",
    ]
    return cmd


def read_duration(path: str, ffprobe_path: str = "ffprobe") -> float | None:
    """Read the container duration of a local file with ffprobe.

    Returns:
        Duration in seconds, or None if ffprobe is missing or reports none
    """
    if shutil.which(ffprobe_path) is None:
        return None

    cmd = [
        ffprobe_path,
        "-v",
        "error",
        "-print_format",
        "json",
        "-show_entries",
        "format=duration",
        path,
    ]
    try:
        p = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            check=False,
            timeout=FFPROBE_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug(f"ffprobe failed for {path}: {e}")
        return None
    if p.returncode != 0:
        return None

    try:
        data = json.loads(p.stdout or "{}")
        duration = float((data.get("format") or {}).get("duration"))
    except (ValueError, TypeError, AttributeError):
        return None
    if not math.isfinite(duration) or duration <= 0:
        return None
    return duration


def file_path_of(stream: BinaryIO) -> str | None:
    """Return the path of a stream opened from a regular file, else None."""
    name = getattr(stream, "name", None)
    if isinstance(name, str) and os.path.isfile(name):
        return name
    return None


class FFmpegSource:
    """Frame source reading decoded PCM from an ffmpeg process."""

    def __init__(
        self,
        stream: BinaryIO | None = None,
        ffmpeg_path: str = "ffmpeg",
        sample_rate: int = 44100,
        channels: int = 2,
        path: str | None = None,
        duration: float | None = None,
    ) -> None:
        """Start ffmpeg on a path, or on a stream fed through stdin.

        Args:
            stream: Input piped to ffmpeg by a feeder thread
            ffmpeg_path: ffmpeg executable
            sample_rate: Output sample rate in Hz
            channels: Output channel count
            path: Input file, decoded directly and seekable
            duration: Known duration of path in seconds

        Raises:
            ValueError: Unless exactly one of stream and path is given
            DecodeError: If ffmpeg cannot be started
        """
        if (stream is None) == (path is None):
            raise ValueError("Exactly one of stream or path is required")

        self._stream = stream
        self._path = path
        self._ffmpeg_path = ffmpeg_path
        self._sample_rate = sample_rate
        self._channels = channels
        self._duration = duration if path is not None else None
        self._frame_bytes = channels * 4
        self._byte_buffer = bytearray()
        self._frames_out = 0
        self._closed = False
        self._input_error: LoadError | None = None
        self._feeder: threading.Thread | None = None

        self._start(0.0)

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channels(self) -> int:
        return self._channels

    @property
    def duration(self) -> float | None:
        return self._duration

    @property
    def seekable(self) -> bool:
        """Return True when decoding from a path."""
        return self._path is not None

    def _start(self, start_sec: float) -> None:
        piped = self._stream is not None
        cmd = make_ffmpeg_cmd(
            self._ffmpeg_path,
            self._sample_rate,
            self._channels,
            source="pipe:0" if piped else self._path,
            start_sec=start_sec,
        )
        try:
            self._proc = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE if piped else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise DecodeError(f"Failed to start ffmpeg: {e}") from e

        self._byte_buffer.clear()
        self._frames_out = 0
        if piped:
            self._feeder = threading.Thread(target=self._feed, name="tonearm-ffmpeg-feed", daemon=True)
            self._feeder.start()

    def _feed(self) -> None:
        stdin = self._proc.stdin
        if stdin is None:
            return
        try:
            while not self._closed:
                chunk = self._stream.read(FEED_CHUNK_BYTES)
                if not chunk:
                    break
                stdin.write(chunk)
        except BrokenPipeError:
            logger.debug("ffmpeg closed its input")
        except Exception as e:
            if self._closed:
                logger.debug(f"ffmpeg feeder stopped after close: {e}")
            else:
                # Recorded before stdin closes, so read() sees it ahead of EOF
                logger.warning(f"ffmpeg input failed: {e}")
                self._input_error = e if isinstance(e, LoadError) else DecodeError(f"Cannot read input: {e}")
        finally:
            try:
                stdin.close()
            except OSError:
                pass

    def read(self, max_frames: int) -> np.ndarray | None:
        """Read up to max_frames frames.

        Raises:
            LoadError: If the input failed, even after frames were produced
            DecodeError: If ffmpeg failed without producing audio
        """
        if self._input_error is not None:
            raise self._input_error
        stdout = self._proc.stdout
        if self._closed or stdout is None:
            return None

        want = max(1, max_frames) * self._frame_bytes
        while len(self._byte_buffer) < want:
            chunk = stdout.read(want - len(self._byte_buffer))
            if not chunk:
                break
            self._byte_buffer.extend(chunk)

        usable = len(self._byte_buffer) - (len(self._byte_buffer) % self._frame_bytes)
        if usable == 0:
            self._check_exit()
            return None

        data = bytes(self._byte_buffer[:usable])
        del self._byte_buffer[:usable]
        frames = np.frombuffer(data, dtype="<f4").reshape(-1, self._channels)
        self._frames_out += frames.shape[0]
        return frames

    def _check_exit(self) -> None:
        """Raise if decoding stopped because of a failure rather than end of input."""
        returncode = self._proc.wait()
        if self._feeder is not None:
            self._feeder.join(timeout=1.0)
        if self._input_error is not None:
            raise self._input_error
        if returncode != 0 and self._frames_out == 0 and not self._closed:
            stderr = b""
            if self._proc.stderr is not None:
                stderr = self._proc.stderr.read() or b""
            message = stderr.decode("utf-8", errors="ignore").strip().splitlines()
            detail = message[-1] if message else f"exit code {returncode}"
            raise DecodeError(f"ffmpeg could not decode input: {detail}")

    def seek(self, position: float) -> None:
        """Restart ffmpeg at position seconds.

        Raises:
            SeekError: For piped input, or if ffmpeg cannot be restarted
        """
        if self._path is None:
            raise SeekError("Piped ffmpeg input cannot seek")
        if position < 0:
            raise SeekError(f"Negative seek target: {position}")

        self._stop_process()
        logger.debug(f"Restarting ffmpeg at {position:.3f}s")
        try:
            self._start(position)
        except DecodeError as e:
            raise SeekError(str(e)) from e

    def _stop_process(self) -> None:
        try:
            if self._proc.poll() is None:
                self._proc.terminate()
                self._proc.wait(timeout=2.0)
        except subprocess.TimeoutExpired:
            self._proc.kill()
            self._proc.wait()
        for pipe in (self._proc.stdout, self._proc.stderr):
            if pipe is not None:
                pipe.close()

    def close(self) -> None:
        self._closed = True
        self._stop_process()


class FFmpegDecoder:
    """Decoder for any format supported by an installed ffmpeg binary."""

    name = "ffmpeg"

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        sample_rate: int = 44100,
        channels: int = 2,
        ffprobe_path: str = "ffprobe",
    ) -> None:
        """Initialize decoder.

        Args:
            ffmpeg_path: ffmpeg executable name or path
            sample_rate: Output sample rate in Hz
            channels: Output channel count
            ffprobe_path: ffprobe executable used for local file durations
        """
        self._ffmpeg_path = ffmpeg_path
        self._sample_rate = sample_rate
        self._channels = channels
        self._ffprobe_path = ffprobe_path

    @property
    def is_available(self) -> bool:
        """Return True if the ffmpeg executable can be found."""
        return shutil.which(self._ffmpeg_path) is not None

    def accepts(self, header: bytes, hint: str | None) -> bool:
        """Accept anything when ffmpeg is installed."""
        return self.is_available

    def open(self, stream: BinaryIO, hint: str | None = None) -> FFmpegSource:
        """Start decoding stream through ffmpeg."""
        path = file_path_of(stream)
        if path is not None:
            return FFmpegSource(
                ffmpeg_path=self._ffmpeg_path,
                sample_rate=self._sample_rate,
                channels=self._channels,
                path=path,
                duration=read_duration(path, self._ffprobe_path),
            )
        return FFmpegSource(stream, self._ffmpeg_path, self._sample_rate, self._channels)


__all__ = [
    "FFmpegDecoder",
    "FFmpegSource",
    "file_path_of",
    "make_ffmpeg_cmd",
    "read_duration",
]
