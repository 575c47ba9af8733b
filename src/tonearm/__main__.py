"""tonearm entry point.

Usage:
    python -m tonearm SOURCE [OPTIONS]

Options:
    --config PATH        Path to YAML config file
    --volume V           Initial volume (0.0 - 1.0)
    --seek T             Start position in seconds
    --mock-audio         Render to a mock output instead of the sound card
    --log-level LEVEL    Override the configured log level
    --help               Show this help message
    --version            Show version
"""

# Load .env file before anything else
try:
    from pathlib import Path as _Path

    from dotenv import load_dotenv

    # Try to find .env in project root (parent of src/)
    _project_root = _Path(__file__).parent.parent.parent
    _env_file = _project_root / ".env"
    if _env_file.exists():
        load_dotenv(_env_file)
    else:
        load_dotenv()  # Fall back to current directory
except ImportError:
    pass  # python-dotenv not installed, skip

import argparse
import logging
import signal
import sys
import threading
import time
from pathlib import Path

from . import __version__
from .audio import create_audio_output
from .audio.mock_output import MockAudioOutput
from .config.loader import load_config
from .errors import SeekError
from .events import LoaderEvent, PlayerEvent, PlayerEventType
from .player import Player


def setup_logging(level: str) -> None:
    """Configure logging based on config."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="tonearm",
        description="tonearm - play an audio file or URL",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m tonearm song.wav                  # Play a local file
  python -m tonearm https://host/a.mp3        # Stream over HTTP (needs ffmpeg)
  python -m tonearm song.wav --seek 30        # Start 30 seconds in
  python -m tonearm song.wav --mock-audio     # Run without a sound card

Environment:
  TONEARM_CONFIG    Path to a YAML config file
""",
    )

    parser.add_argument("source", help="File path or http(s) URL")

    parser.add_argument(
        "--config",
        type=Path,
        help="Path to YAML config file",
        metavar="PATH",
    )

    parser.add_argument(
        "--volume",
        type=float,
        help="Initial volume (0.0 - 1.0)",
    )

    parser.add_argument(
        "--seek",
        type=float,
        metavar="SECONDS",
        help="Start position in seconds",
    )

    parser.add_argument(
        "--mock-audio",
        action="store_true",
        help="Use mock audio output (for testing without hardware)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override the configured log level",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"tonearm v{__version__}",
    )

    return parser.parse_args(argv)


def is_url(source: str) -> bool:
    """Return True if source looks like an HTTP(S) URL."""
    return source.startswith(("http://", "https://"))


def main(argv: list[str] | None = None) -> int:
    """Main entry point for tonearm.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    args = parse_args(argv)

    # Load configuration
    try:
        config = load_config(path=args.config)
    except FileNotFoundError as e:
        print(f"Error: Config file not found: {e}", file=sys.stderr)
        return 1
    except (OSError, ValueError, TypeError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    # Setup logging
    setup_logging(args.log_level or config.logging.level)
    logger = logging.getLogger("tonearm")
    logger.info(f"tonearm v{__version__}")

    try:
        output = create_audio_output(config.output, use_mock=args.mock_audio)
    except RuntimeError as e:
        logger.error(f"Failed to create audio output: {e}")
        print(f"\nError: {e}", file=sys.stderr)
        print("Use --mock-audio to run without a sound card.", file=sys.stderr)
        return 1

    metadata_ready = threading.Event()
    finished = threading.Event()
    failed = threading.Event()

    def on_event(event: PlayerEvent) -> None:
        print(f"  [{event}]")
        if event.type is PlayerEventType.LOADED_METADATA:
            metadata_ready.set()
        elif event.type is PlayerEventType.ENDED:
            finished.set()
        elif event.is_error:
            failed.set()
            finished.set()

    def on_loader_event(event: LoaderEvent) -> None:
        logger.debug(f"Loader {event.value}")

    player = Player(config, output=output)
    player.set_callback(on_event)
    player.set_loader_callback(on_loader_event)

    def signal_handler(_signum: int, _frame: object) -> None:
        logger.info("Shutdown requested, stopping playback...")
        finished.set()

    previous_handlers = {sig: signal.signal(sig, signal_handler) for sig in (signal.SIGINT, signal.SIGTERM)}

    print(f"\nPlaying {args.source}")
    print("Press Ctrl+C to stop.\n")

    try:
        if args.volume is not None:
            player.set_volume(args.volume)
        if is_url(args.source):
            player.load_url(args.source)
        else:
            player.load_file(args.source)

        if args.seek is not None:
            while not metadata_ready.wait(0.05):
                if finished.is_set():
                    break
            if metadata_ready.is_set():
                try:
                    player.seek(args.seek)
                except SeekError as e:
                    logger.warning(f"Cannot seek: {e}")

        player.play()

        while not finished.is_set():
            if isinstance(output, MockAudioOutput) and output.is_open:
                # Stand in for the hardware clock
                output.pump()
                time.sleep(config.output.blocksize / max(1, output.sample_rate))
            else:
                finished.wait(0.1)

    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    finally:
        state = player.state()
        player.close()
        for sig, handler in previous_handlers.items():
            signal.signal(sig, handler)
        logger.info(f"Stopped at {state.position:.2f}s ({state.phase.value})")

    return 1 if failed.is_set() else 0


if __name__ == "__main__":
    sys.exit(main())
