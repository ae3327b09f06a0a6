"""Data models for the TalkParity application."""

from .audio import AudioStats, AudioBuffer, CaptureConstraints, EncodedAudio, WavHeader
from .events import RequestEvent
from .payload import TranscriptPayload, ProviderUtterance, ProviderWord
from .stats import SpeakerStat, SpeakerStatsResult
from .transcription import (
    ClientState,
    DiarizationResult,
    JobStatus,
    JobTrace,
    ParsedTranscript,
    Segment,
    TranscriptJob,
)

__all__ = [
    "AudioStats",
    "AudioBuffer",
    "CaptureConstraints",
    "EncodedAudio",
    "WavHeader",
    "RequestEvent",
    "TranscriptPayload",
    "ProviderUtterance",
    "ProviderWord",
    "SpeakerStat",
    "SpeakerStatsResult",
    "ClientState",
    "DiarizationResult",
    "JobStatus",
    "JobTrace",
    "ParsedTranscript",
    "Segment",
    "TranscriptJob",
]
