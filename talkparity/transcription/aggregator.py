"""Per-speaker speaking-time aggregation.

Segments are reduced into speaking time, share of the total duration and a
few representative phrases per speaker. Input order does not matter: segments
are put into chronological order before grouping.
"""

import logging
from typing import Dict, Iterable, List, Optional

from ..models.stats import SpeakerStat, SpeakerStatsResult
from ..models.transcription import Segment

logger = logging.getLogger(__name__)

MIN_PHRASE_LENGTH = 10
MAX_SPEECH_EXAMPLES = 3


def extract_speech_examples(texts: List[str]) -> List[str]:
    """Pick up to three representative phrases: first, middle and last."""
    if not texts:
        return []

    examples = [texts[0]]
    if len(texts) >= 3:
        examples.append(texts[len(texts) // 2])
    if len(texts) >= 2:
        examples.append(texts[-1])

    return examples[:MAX_SPEECH_EXAMPLES]


def _chronological_key(segment: Segment):
    return (segment.start, segment.end, segment.speaker, segment.text or "")


class StatisticsAggregator:
    """Reduces diarization segments into speaker statistics."""

    def aggregate(self, segments: Iterable[Segment],
                  total_duration_ms: Optional[float] = None) -> SpeakerStatsResult:
        """Aggregate segments into speaker statistics.

        Args:
            segments: Diarization segments in any order
            total_duration_ms: Audio duration; when not given, the latest segment
                end is used, then the summed speaking time

        Returns:
            SpeakerStatsResult sorted by speaking time, longest first
        """
        ordered = sorted(segments, key=_chronological_key)

        speaking_time: Dict[str, float] = {}
        phrases: Dict[str, List[str]] = {}

        for segment in ordered:
            if segment.speaker not in speaking_time:
                speaking_time[segment.speaker] = 0.0
                phrases[segment.speaker] = []

            speaking_time[segment.speaker] += segment.duration_ms

            # Short interjections count towards time but are not sampled
            text = (segment.text or "").strip()
            if len(text) >= MIN_PHRASE_LENGTH:
                phrases[segment.speaker].append(text)

        total_speaking_ms = sum(speaking_time.values())

        resolved_duration = total_duration_ms or 0
        if not resolved_duration and ordered:
            resolved_duration = max(segment.end for segment in ordered) * 1000
        if not resolved_duration:
            resolved_duration = total_speaking_ms

        speakers = []
        for index, (label, time_ms) in enumerate(speaking_time.items()):
            percentage = time_ms / resolved_duration * 100 if resolved_duration > 0 else 0.0
            speakers.append(SpeakerStat(
                id=f"speaker-{index}",
                label=label,
                speaking_time_ms=time_ms,
                percentage=min(100.0, percentage),
                speech_examples=extract_speech_examples(phrases[label]),
                all_phrases=phrases[label],
            ))

        # sorted() is stable, so ties keep first-spoken order
        speakers = sorted(speakers, key=lambda speaker: speaker.speaking_time_ms, reverse=True)

        logger.debug(f"Aggregated {len(ordered)} segments into {len(speakers)} speakers, "
                     f"total duration {resolved_duration:.0f}ms, speaking {total_speaking_ms:.0f}ms")
        return SpeakerStatsResult(speakers=speakers, total_duration_ms=resolved_duration)
