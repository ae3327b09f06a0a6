"""Pydantic models for the provider's transcript payload.

Times in utterances and words are milliseconds; ``audio_duration`` is seconds.
"""

from dataclasses import dataclass
from typing import List, Optional, Union

from pydantic import BaseModel, field_validator


class ProviderWord(BaseModel):
    """A single recognized word."""
    speaker: Optional[str] = None
    start: float = 0
    end: float = 0
    text: str = ""

    @field_validator("speaker", mode="before")
    @classmethod
    def _speaker_as_text(cls, value):
        if value is None:
            return None
        return str(value)

    @field_validator("start", "end", mode="before")
    @classmethod
    def _missing_time_is_zero(cls, value):
        return 0 if value is None else value

    @field_validator("text", mode="before")
    @classmethod
    def _missing_text_is_empty(cls, value):
        return "" if value is None else value


class ProviderUtterance(ProviderWord):
    """A contiguous speech span attributed to one speaker."""


class TranscriptPayload(BaseModel):
    """Body of ``GET /transcript/{id}``."""
    id: Optional[str] = None
    status: str
    utterances: Optional[List[ProviderUtterance]] = None
    words: Optional[List[ProviderWord]] = None
    audio_duration: Optional[float] = None
    error: Optional[str] = None
    status_text: Optional[str] = None


@dataclass(frozen=True)
class Utterances:
    """Payload carries utterance-level diarization."""
    items: List[ProviderUtterance]


@dataclass(frozen=True)
class Words:
    """Payload carries only word-level diarization."""
    items: List[ProviderWord]


@dataclass(frozen=True)
class Empty:
    """Payload carries no speech at all."""


TranscriptContent = Union[Utterances, Words, Empty]


def classify_payload(payload: TranscriptPayload) -> TranscriptContent:
    """Resolve which form of diarization data a completed payload carries."""
    if payload.utterances:
        return Utterances(list(payload.utterances))
    if payload.words:
        return Words(list(payload.words))
    return Empty()
