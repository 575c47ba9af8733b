"""Player façade.

A Player plays one source at a time. Each load_* call builds a new
session (state machine, buffer, sink, loader) and shuts down the
previous one: its loader is cancelled (ABORTED), its buffer closed, and
its state machine emits EMPTIED and is retired.

Listener callbacks run on whichever thread caused the event (the caller,
the loader, or the audio output thread). They may read state and issue
transport commands, but must not call load_*, stop() or close().

Usage:
    player = Player(config)
    player.set_callback(lambda event: print(event))
    player.load_file("song.wav")
    player.play()
"""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

import httpx

from .audio import AudioOutput, SinkAdapter, create_audio_output
from .buffer import FrameBuffer
from .config import TonearmConfig
from .control import ControlHandle
from .decoding import DecoderRegistry
from .dispatcher import EventDispatcher
from .events import LoaderListener, PlayerListener
from .loader import Loader, TaskRunner, ThreadTaskRunner
from .sources import (
    FileRequest,
    FrameSource,
    LoadRequest,
    ReaderRequest,
    SourceRequest,
    UrlRequest,
    describe_request,
)
from .state import Phase, PlayerState, StateMachine

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """Components serving one load request."""

    state: StateMachine
    buffer: FrameBuffer | None = None
    sink: SinkAdapter | None = None
    loader: Loader | None = None

    def shutdown(self, emit_emptied: bool) -> None:
        """Cancel the loader and release session resources.

        Args:
            emit_emptied: Emit EMPTIED even if the session is IDLE
        """
        if self.loader is not None:
            self.loader.cancel()
        if self.buffer is not None:
            self.buffer.close()
        if self.sink is not None:
            self.sink.close()
        if emit_emptied or self.state.phase is not Phase.IDLE:
            self.state.stop()
        else:
            self.state.retire()


class Player:
    """Audio player with HTML media element style events.

    Implements the PlaybackControl protocol by delegating to its
    ControlHandle.
    """

    def __init__(
        self,
        config: TonearmConfig | None = None,
        output: AudioOutput | None = None,
        decoders: DecoderRegistry | None = None,
        runner: TaskRunner | None = None,
        http_transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize an idle player.

        Args:
            config: Player configuration (uses defaults if None)
            output: Audio output (created from config.output if None)
            decoders: Decoder registry (built from config.decoder if None)
            runner: Task runner for loader work (daemon threads if None)
            http_transport: Optional httpx transport for URL loads
        """
        self._config = config or TonearmConfig()
        self._output = output if output is not None else create_audio_output(self._config.output)
        self._decoders = decoders or DecoderRegistry.from_config(self._config.decoder)
        self._runner = runner or ThreadTaskRunner()
        self._transport = http_transport

        self._dispatcher = EventDispatcher()
        self._session_lock = threading.Lock()
        self._session = Session(state=StateMachine(self._dispatcher))
        self._control = ControlHandle(self._current_session)
        self._closed = False

    def _current_session(self) -> Session:
        return self._session

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_file(self, path: str | Path) -> None:
        """Load a local audio file. Returns immediately."""
        self._load(FileRequest(Path(path)))

    def load_url(self, url: str, headers: dict[str, str] | None = None) -> None:
        """Load audio over HTTP(S). Returns immediately.

        Args:
            url: Resource URL
            headers: Optional extra request headers
        """
        self._load(UrlRequest(url, tuple((headers or {}).items())))

    def load_reader(self, reader: BinaryIO, hint: str | None = None) -> None:
        """Load audio from a binary stream. Returns immediately.

        Args:
            reader: Readable binary stream
            hint: Format hint such as "wav" or "mp3"
        """
        self._load(ReaderRequest(reader, hint))

    def load_source(self, source: FrameSource) -> None:
        """Play frames from a pre-built source. Returns immediately."""
        self._load(SourceRequest(source))

    def _load(self, request: LoadRequest) -> None:
        with self._session_lock:
            if self._closed:
                raise RuntimeError("Player is closed")

            previous = self._session
            previous.shutdown(emit_emptied=False)

            buffer_config = self._config.buffer
            state = StateMachine(self._dispatcher, volume=previous.state.snapshot.volume)
            buffer = FrameBuffer(buffer_config.capacity_seconds, buffer_config.watermark_seconds)
            sink = SinkAdapter(self._output, buffer, state)
            loader = Loader(
                request,
                buffer,
                state,
                sink,
                self._dispatcher,
                decoders=self._decoders,
                runner=self._runner,
                buffer_config=buffer_config,
                http_config=self._config.http,
                transport=self._transport,
            )
            self._session = Session(state=state, buffer=buffer, sink=sink, loader=loader)
            _carry_volume(previous.state, state)

            logger.info(f"Loading {describe_request(request)}")
            state.begin_load()
            loader.start()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def stop(self) -> None:
        """Cancel any load and return to IDLE, emitting EMPTIED."""
        with self._session_lock:
            previous = self._session
            previous.shutdown(emit_emptied=True)
            self._session = Session(
                state=StateMachine(self._dispatcher, volume=previous.state.snapshot.volume)
            )
            _carry_volume(previous.state, self._session.state)

    def close(self) -> None:
        """Stop playback and release the audio output."""
        with self._session_lock:
            if self._closed:
                return
            self._closed = True
            self._session.shutdown(emit_emptied=False)
            self._output.close()

    def __enter__(self) -> "Player":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Listeners and state
    # ------------------------------------------------------------------

    def set_callback(self, listener: PlayerListener | None) -> None:
        """Register the playback event listener, replacing any previous one."""
        self._dispatcher.set_listener(listener)

    def set_loader_callback(self, listener: LoaderListener | None) -> None:
        """Register the loader outcome listener, replacing any previous one."""
        self._dispatcher.set_loader_listener(listener)

    def control(self) -> ControlHandle:
        """Handle for transport commands, valid across reloads."""
        return self._control

    def state(self) -> PlayerState:
        """Snapshot of the current session state."""
        return self._session.state.snapshot

    def ended(self) -> bool:
        """Return True if the current source played to its end."""
        return self._session.state.ended

    @property
    def output(self) -> AudioOutput:
        return self._output

    @property
    def loader(self) -> Loader | None:
        """Loader of the current session, if any."""
        return self._session.loader

    # ------------------------------------------------------------------
    # PlaybackControl
    # ------------------------------------------------------------------

    def play(self) -> None:
        self._control.play()

    def pause(self) -> None:
        self._control.pause()

    def seek(self, position: float) -> None:
        self._control.seek(position)

    def set_volume(self, volume: float) -> None:
        self._control.set_volume(volume)

    def paused(self) -> bool:
        return self._control.paused()

    def position(self) -> float:
        return self._control.position()

    def duration(self) -> float | None:
        return self._control.duration()

    def volume(self) -> float:
        return self._control.volume()


def _carry_volume(previous: StateMachine, current: StateMachine) -> None:
    """Apply a volume that reached the retired machine after the new one was seeded."""
    volume = previous.snapshot.volume
    if volume != current.snapshot.volume:
        current.set_volume(volume)


__all__ = ["Player", "Session"]
