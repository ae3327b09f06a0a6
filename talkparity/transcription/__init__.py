"""Transcription module for TalkParity."""

from .aggregator import StatisticsAggregator, extract_speech_examples
from .client import TranscriptionClient, CompletedJob
from .parser import SegmentParser, group_words_by_speaker
from .publisher import RequestEventPublisher, REQUEST_TOPIC

__all__ = [
    "StatisticsAggregator",
    "extract_speech_examples",
    "TranscriptionClient",
    "CompletedJob",
    "SegmentParser",
    "group_words_by_speaker",
    "RequestEventPublisher",
    "REQUEST_TOPIC",
]
