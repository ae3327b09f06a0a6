"""Diarization service: the surface the UI layer talks to."""

import asyncio
import logging
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from ..audio import AudioCapture, WavEncoder, load_audio_file
from ..config import ClientSettings, TalkParityConfig
from ..errors import EmptyRecordingError
from ..models.audio import EncodedAudio
from ..models.events import RequestEvent
from ..models.stats import SpeakerStatsResult
from ..models.transcription import DiarizationResult, JobTrace, Segment
from ..transcription import (
    RequestEventPublisher,
    SegmentParser,
    StatisticsAggregator,
    TranscriptionClient,
)

logger = logging.getLogger(__name__)


class DiarizationService:
    """Wires capture, encoding, the remote client, parsing and aggregation."""

    def __init__(self, config: TalkParityConfig,
                 settings: Optional[ClientSettings] = None,
                 capture: Optional[AudioCapture] = None,
                 session=None):
        """Initialize diarization service.

        Args:
            config: Application configuration
            settings: Client settings; derived from ``config`` when omitted
            capture: Capture session to use; built from the audio config when omitted
            session: aiohttp session shared by all runs (one per run if omitted)
        """
        self.config = config
        self.settings = settings or ClientSettings.from_config(config)
        self.capture = capture or AudioCapture(config.get_capture_constraints())
        self.encoder = WavEncoder()
        self.parser = SegmentParser()
        self.aggregator = StatisticsAggregator()
        self.publisher = RequestEventPublisher()
        self.client = TranscriptionClient(
            self.settings,
            event_callback=self.publisher.get_callback(),
            session=session,
        )

    def register_observer(self, listener: Callable[[RequestEvent], None]) -> None:
        """Register the single request/response telemetry observer."""
        self.publisher.register_observer(listener)

    def start_capture(self) -> None:
        """Start recording from the microphone."""
        self.capture.start()

    def stop_capture(self) -> EncodedAudio:
        """Stop recording and encode the capture into a WAV container.

        The device is released before encoding starts, so an encoding
        failure never leaves the microphone open.
        """
        buffer = self.capture.stop()
        logger.info(f"Captured {buffer.duration_seconds:.1f}s of audio, encoding")
        return self.encoder.encode(buffer, file_name="recording.wav")

    def load_audio_file(self, path: Union[str, Path]) -> EncodedAudio:
        """Load an uploaded audio file for diarization."""
        return load_audio_file(path, encoder=self.encoder)

    async def run_diarization(self, audio: EncodedAudio,
                              file_name_hint: Optional[str] = None,
                              cancel_event: Optional[asyncio.Event] = None) -> DiarizationResult:
        """Transcribe audio with speaker labels and parse the result into segments."""
        trace = JobTrace()
        completed = await self.client.transcribe(
            audio, file_name_hint=file_name_hint, cancel_event=cancel_event, trace=trace)
        parsed = self.parser.parse(completed.payload)
        return DiarizationResult(
            segments=parsed.segments,
            total_duration_ms=parsed.total_duration_ms,
            job=completed.job,
            trace=completed.trace,
        )

    def aggregate(self, segments: Iterable[Segment],
                  total_duration_ms: Optional[float] = None) -> SpeakerStatsResult:
        """Reduce segments into per-speaker statistics."""
        return self.aggregator.aggregate(segments, total_duration_ms)

    def shutdown(self) -> None:
        """Release the capture device and drop the telemetry observer."""
        if self.capture.is_active():
            try:
                self.capture.stop()
            except EmptyRecordingError:
                logger.debug("Capture stopped during shutdown without audio")
        self.publisher.unregister_observer()
