"""Transcription job and segment data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class JobStatus(str, Enum):
    """Provider-side status of a transcript job."""
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.ERROR)


class ClientState(str, Enum):
    """Lifecycle state of one diarization run."""
    IDLE = "idle"
    UPLOADING = "uploading"
    SUBMITTING = "submitting"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass
class TranscriptJob:
    """A submitted transcript job. Only poll responses update its status."""
    id: str
    status: JobStatus = JobStatus.QUEUED


@dataclass(frozen=True)
class Segment:
    """A contiguous span of speech attributed to one speaker (times in seconds)."""
    speaker: str
    start: float
    end: float
    text: str = ""

    def __post_init__(self):
        if self.start < 0:
            raise ValueError(f"Segment start must be non-negative (got {self.start})")
        if self.end < self.start:
            raise ValueError(f"Segment end {self.end} precedes start {self.start}")

    @property
    def duration_ms(self) -> float:
        return (self.end - self.start) * 1000


@dataclass
class ParsedTranscript:
    """Canonical parser output."""
    segments: List[Segment]
    total_duration_ms: float


@dataclass
class JobTrace:
    """Structured trace of one diarization run, returned alongside the result."""
    upload_request_url: Optional[str] = None
    upload_url: Optional[str] = None
    upload_size: int = 0
    upload_time_ms: Optional[float] = None
    transcript_request_url: Optional[str] = None
    poll_request_url: Optional[str] = None
    transcript_id: Optional[str] = None
    transcript_status: Optional[str] = None
    poll_attempts: int = 0
    total_processing_time_ms: Optional[float] = None
    state: ClientState = ClientState.IDLE


@dataclass
class DiarizationResult:
    """Segments and duration produced by a completed diarization run."""
    segments: List[Segment]
    total_duration_ms: float
    job: TranscriptJob
    trace: JobTrace = field(default_factory=JobTrace)
