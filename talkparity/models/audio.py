"""Audio-related data models."""

from dataclasses import dataclass
from typing import Optional


SAMPLE_FORMAT_FLOAT32 = "float32"
SAMPLE_FORMAT_INT16 = "int16"


@dataclass
class AudioStats:
    """Audio recording statistics."""
    is_recording: bool
    duration_seconds: float
    sample_rate: int
    chunk_size: int
    total_chunks: int
    captured_bytes: int


@dataclass
class CaptureConstraints:
    """Fixed constraints requested when opening the capture stream."""
    sample_rate: int = 44100
    channels: int = 1
    chunk_size: int = 1024
    echo_cancellation: bool = True
    noise_suppression: bool = True


@dataclass
class AudioBuffer:
    """Raw interleaved sample frames as captured or decoded."""
    data: bytes
    channels: int
    sample_rate: int
    sample_format: str = SAMPLE_FORMAT_FLOAT32

    @property
    def bytes_per_sample(self) -> int:
        return 4 if self.sample_format == SAMPLE_FORMAT_FLOAT32 else 2

    @property
    def frame_count(self) -> int:
        return len(self.data) // (self.bytes_per_sample * self.channels)

    @property
    def duration_seconds(self) -> float:
        if not self.sample_rate:
            return 0.0
        return self.frame_count / self.sample_rate


@dataclass(frozen=True)
class EncodedAudio:
    """Encoded audio container ready for upload. Never mutated."""
    data: bytes
    mime_type: str = "audio/wav"
    file_name: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class WavHeader:
    """Fields read back from a canonical 44-byte WAV header."""
    riff_size: int
    audio_format: int
    channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_size: int
