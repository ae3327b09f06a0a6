"""Speaker statistics models."""

from dataclasses import dataclass, field
from typing import List


@dataclass
class SpeakerStat:
    """Aggregated speaking statistics for one speaker."""
    id: str
    label: str
    speaking_time_ms: float
    percentage: float
    speech_examples: List[str] = field(default_factory=list)
    all_phrases: List[str] = field(default_factory=list)


@dataclass
class SpeakerStatsResult:
    """Aggregation output: speakers sorted by speaking time, plus total duration."""
    speakers: List[SpeakerStat]
    total_duration_ms: float

    @property
    def total_speaking_ms(self) -> float:
        return sum(speaker.speaking_time_ms for speaker in self.speakers)

    @property
    def silence_ms(self) -> float:
        return max(0.0, self.total_duration_ms - self.total_speaking_ms)

    @property
    def silence_percentage(self) -> float:
        if self.total_duration_ms <= 0:
            return 0.0
        return self.silence_ms / self.total_duration_ms * 100
