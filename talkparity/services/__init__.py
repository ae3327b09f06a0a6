"""Services layer for TalkParity."""

from .diarization_service import DiarizationService

__all__ = [
    "DiarizationService",
]
