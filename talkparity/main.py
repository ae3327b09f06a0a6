"""Main application entry point for TalkParity."""

import sys
import time
import asyncio
import argparse
import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table

from talkparity import __version__
from talkparity.errors import TalkParityError
from talkparity.models.events import RequestEvent
from talkparity.models.stats import SpeakerStatsResult
from talkparity.services import DiarizationService

from .config import TalkParityConfig

logger = logging.getLogger(__name__)


def format_duration(ms: float) -> str:
    """Format milliseconds as M:SS."""
    total_seconds = int(ms // 1000)
    return f"{total_seconds // 60}:{total_seconds % 60:02d}"


class RequestLogger:
    """Telemetry observer that writes request events to the log."""

    def on_request_event(self, event: RequestEvent) -> None:
        if event.error:
            logger.warning(f"{event.method} {event.url} -> {event.status} error: {event.error}")
        elif event.status is not None:
            logger.info(f"{event.method} {event.url} -> {event.status} ({event.latency_ms:.0f}ms)")
        else:
            logger.debug(f"{event.method} {event.url} issued")


class App:

    def __init__(self, config_path: Optional[str], log_level: str):
        self.config = TalkParityConfig(config_path)
        setup_logging(self.config, log_level or self.config.get('logging.level', 'INFO'))
        self.console = Console()
        self.service = DiarizationService(self.config)
        self.request_logger = RequestLogger()
        self.service.register_observer(self.request_logger.on_request_event)

    def record(self, duration: int):
        self.service.start_capture()
        self.console.print(f"Recording for {duration}s...")
        try:
            time.sleep(duration)
        finally:
            audio = self.service.stop_capture()
        return audio

    def run(self, file_path: Optional[str], duration: int) -> SpeakerStatsResult:
        if file_path:
            audio = self.service.load_audio_file(file_path)
            hint = Path(file_path).name
        else:
            audio = self.record(duration)
            hint = audio.file_name

        with self.console.status("Transcribing with speaker diarization..."):
            result = asyncio.run(self.service.run_diarization(audio, file_name_hint=hint))

        stats = self.service.aggregate(result.segments, result.total_duration_ms)
        self.print_stats(stats)
        return stats

    def print_stats(self, stats: SpeakerStatsResult) -> None:
        table = Table(title="Speaking time")
        table.add_column("Speaker")
        table.add_column("Time", justify="right")
        table.add_column("Share", justify="right")
        table.add_column("Examples")

        for speaker in stats.speakers:
            table.add_row(
                speaker.label,
                format_duration(speaker.speaking_time_ms),
                f"{speaker.percentage:.1f}%",
                "\n".join(f'"{example}"' for example in speaker.speech_examples),
            )

        self.console.print(table)
        self.console.print(f"Total duration: {format_duration(stats.total_duration_ms)}  "
                           f"Silence: {format_duration(stats.silence_ms)} "
                           f"({stats.silence_percentage:.1f}%)")

    def cleanup(self):
        self.service.shutdown()


def setup_logging(config, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/talkparity.log')
    console_output = config.get('logging.console_output', True)

    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console handler - only if enabled in config
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logging.getLogger(__name__).info(f"TalkParity {__version__} starting, log file: {log_file_path}, level: {level}")


def main() -> None:
    """Main entry point for TalkParity."""
    parser = argparse.ArgumentParser(
        description="TalkParity - who talked how much, from a recording"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: built-in defaults and ASSEMBLYAI_API_KEY)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: logging.level from config, else INFO)"
    )

    parser.add_argument(
        "--file",
        type=str,
        help="Analyze an existing audio file (WAV, MP3 or M4A) instead of recording"
    )

    parser.add_argument(
        "--duration",
        type=int,
        default=30,
        help="Seconds to record from the microphone when no file is given (default: 30)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"TalkParity v{__version__}"
    )

    args = parser.parse_args()

    app = App(args.config, args.log_level)
    try:
        app.run(args.file, args.duration)
    except KeyboardInterrupt:
        print("\nInterrupted")
    except TalkParityError as e:
        print(f"Error: {e}")
        logging.error(f"Application error: {e}")
        sys.exit(1)
    finally:
        app.cleanup()


if __name__ == "__main__":
    main()
