"""Convert a completed transcript payload into canonical speech segments."""

import logging
from typing import Any, List, Mapping, Optional, Sequence, Union

from ..errors import NoSpeechDetectedError
from ..models.payload import (
    Empty,
    ProviderUtterance,
    ProviderWord,
    TranscriptPayload,
    Utterances,
    Words,
    classify_payload,
)
from ..models.transcription import ParsedTranscript, Segment

logger = logging.getLogger(__name__)


def group_words_by_speaker(words: Sequence[Union[ProviderWord, Mapping[str, Any]]]) -> List[ProviderUtterance]:
    """Rebuild utterances from word-level results.

    Consecutive words with the same speaker form one utterance; a speaker
    change starts a new one. Words without a speaker are dropped.
    """
    utterances: List[ProviderUtterance] = []
    current = None

    for raw_word in words:
        word = raw_word if isinstance(raw_word, ProviderWord) else ProviderWord.model_validate(raw_word)
        if not word.speaker:
            continue

        if current is None or current.speaker != word.speaker:
            if current is not None:
                utterances.append(current)
            current = ProviderUtterance(speaker=word.speaker, start=word.start, end=word.end, text=word.text)
        else:
            current.end = word.end
            current.text = f"{current.text} {word.text}" if current.text else word.text

    if current is not None:
        utterances.append(current)

    return utterances


def _to_segment(utterance: ProviderUtterance, duration: Optional[float] = None) -> Segment:
    label = f"Speaker {utterance.speaker}" if utterance.speaker is not None else "Speaker Unknown"
    start = max(0.0, utterance.start / 1000)
    end = max(start, utterance.end / 1000)
    if duration:
        # Times stay within [0, audio_duration]
        start = min(start, duration)
        end = min(end, duration)
    return Segment(speaker=label, start=start, end=end, text=utterance.text or "")


class SegmentParser:
    """Parses provider payloads into ordered segments and a total duration."""

    def parse(self, payload: Union[TranscriptPayload, Mapping[str, Any]]) -> ParsedTranscript:
        """Parse a completed transcript payload.

        Args:
            payload: Validated payload, or the raw JSON mapping

        Returns:
            ParsedTranscript with segments in provider order and duration in ms

        Raises:
            NoSpeechDetectedError: If neither utterances nor speaker-tagged words exist
        """
        if not isinstance(payload, TranscriptPayload):
            payload = TranscriptPayload.model_validate(payload)

        content = classify_payload(payload)

        if isinstance(content, Utterances):
            utterances = content.items
        elif isinstance(content, Words):
            logger.info(f"No utterances in payload, grouping {len(content.items)} words by speaker")
            utterances = group_words_by_speaker(content.items)
        else:
            utterances = []

        if isinstance(content, Empty) or not utterances:
            logger.error(f"No utterances found: utterances={len(payload.utterances or [])}, "
                         f"words={len(payload.words or [])}")
            raise NoSpeechDetectedError(
                "Transcription completed but no speech was detected. "
                "Please ensure the audio contains clear speech.")

        segments = [_to_segment(utterance, payload.audio_duration) for utterance in utterances]

        if payload.audio_duration:
            total_duration_ms = payload.audio_duration * 1000
        else:
            total_duration_ms = max(segment.end for segment in segments) * 1000

        logger.debug(f"Parsed {len(segments)} segments, total duration {total_duration_ms:.0f}ms")
        return ParsedTranscript(segments=segments, total_duration_ms=total_duration_ms)
