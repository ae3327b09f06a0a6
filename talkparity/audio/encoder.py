"""PCM quantization and canonical WAV container encoding.

The container is the classic 44-byte RIFF/WAVE header followed by
channel-interleaved 16-bit little-endian samples. Quantization is asymmetric
(negative samples scale by 32768, positive by 32767) and rounds half up, so
output is bit-identical to the browser-side encoder the provider was tested
against.
"""

import io
import logging
import struct
import wave
from typing import Optional

import numpy as np

from ..errors import EncodingError
from ..models.audio import (
    AudioBuffer,
    EncodedAudio,
    WavHeader,
    SAMPLE_FORMAT_FLOAT32,
    SAMPLE_FORMAT_INT16,
)

logger = logging.getLogger(__name__)

WAV_MAGIC = b"RIFF"
WAV_FORMAT_MARKER = b"WAVE"
WAV_HEADER_SIZE = 44
PCM_FORMAT_TAG = 1
BITS_PER_SAMPLE = 16
BYTES_PER_SAMPLE = BITS_PER_SAMPLE // 8

_HEADER_STRUCT = struct.Struct("<4sI4s4sIHHIIHH4sI")


def quantize(samples) -> np.ndarray:
    """Convert float samples to int16 using the asymmetric half-up rule."""
    values = np.nan_to_num(np.asarray(samples, dtype=np.float64), nan=0.0)
    clipped = np.clip(values, -1.0, 1.0)
    negative = np.maximum(-32768, np.floor(clipped * 32768 + 0.5))
    positive = np.minimum(32767, np.floor(clipped * 32767 + 0.5))
    return np.where(clipped < 0, negative, positive).astype(np.int16)


def dequantize(samples) -> np.ndarray:
    """Inverse of quantize: map int16 samples back into [-1, 1]."""
    values = np.asarray(samples, dtype=np.float64)
    return np.where(values < 0, values / 32768.0, values / 32767.0)


def decode_frames(buffer: AudioBuffer) -> np.ndarray:
    """Decode raw buffer bytes into a (frames, channels) float array.

    A trailing partial frame is dropped.
    """
    if buffer.channels < 1:
        raise EncodingError(f"Invalid channel count: {buffer.channels}")

    usable = buffer.frame_count * buffer.channels * buffer.bytes_per_sample
    raw = buffer.data[:usable]

    if buffer.sample_format == SAMPLE_FORMAT_FLOAT32:
        samples = np.frombuffer(raw, dtype="<f4").astype(np.float64)
    elif buffer.sample_format == SAMPLE_FORMAT_INT16:
        samples = dequantize(np.frombuffer(raw, dtype="<i2"))
    else:
        raise EncodingError(f"Unsupported sample format: {buffer.sample_format}")

    return samples.reshape(-1, buffer.channels)


def parse_wav_header(data: bytes) -> WavHeader:
    """Read the fields of a canonical 44-byte WAV header."""
    if len(data) < WAV_HEADER_SIZE:
        raise EncodingError(f"Container too short for a WAV header: {len(data)} bytes")

    (magic, riff_size, marker, fmt_id, _fmt_size, audio_format, channels,
     sample_rate, byte_rate, block_align, bits, data_id, data_size) = _HEADER_STRUCT.unpack_from(data)

    if magic != WAV_MAGIC or marker != WAV_FORMAT_MARKER:
        raise EncodingError(f"Not a RIFF/WAVE container (header {data[:12]!r})")
    if fmt_id != b"fmt " or data_id != b"data":
        raise EncodingError("WAV header is not in canonical fmt/data layout")

    return WavHeader(
        riff_size=riff_size,
        audio_format=audio_format,
        channels=channels,
        sample_rate=sample_rate,
        byte_rate=byte_rate,
        block_align=block_align,
        bits_per_sample=bits,
        data_size=data_size,
    )


def verify_container(data: bytes) -> None:
    """Check the magic and format markers sit at their fixed offsets."""
    if len(data) < WAV_HEADER_SIZE:
        raise EncodingError(f"Encoded container is only {len(data)} bytes")
    if data[0:4] != WAV_MAGIC:
        raise EncodingError(f"Invalid WAV header generated: magic is {data[0:4]!r}")
    if data[8:12] != WAV_FORMAT_MARKER:
        raise EncodingError(f"Invalid WAV file structure generated: marker is {data[8:12]!r}")


class WavEncoder:
    """Encodes captured or decoded audio into the canonical WAV container."""

    def encode(self, buffer: AudioBuffer, file_name: Optional[str] = None) -> EncodedAudio:
        """Encode a raw capture buffer.

        Args:
            buffer: Raw interleaved frames with their channel count and rate
            file_name: Optional file name carried with the encoded audio

        Returns:
            EncodedAudio tagged as audio/wav

        Raises:
            EncodingError: If the buffer cannot be decoded or the container is malformed
        """
        frames = decode_frames(buffer)
        return self.encode_frames(frames, buffer.sample_rate, file_name=file_name)

    def encode_frames(self, frames: np.ndarray, sample_rate: int,
                      file_name: Optional[str] = None) -> EncodedAudio:
        """Encode a (frames, channels) float array sampled at ``sample_rate``."""
        if frames.ndim == 1:
            frames = frames.reshape(-1, 1)
        channels = frames.shape[1]
        if channels < 1:
            raise EncodingError("Cannot encode audio with zero channels")
        if sample_rate <= 0:
            raise EncodingError(f"Invalid sample rate: {sample_rate}")

        pcm = quantize(frames).astype("<i2")

        output = io.BytesIO()
        with wave.open(output, "wb") as wf:
            wf.setnchannels(channels)
            wf.setsampwidth(BYTES_PER_SAMPLE)
            wf.setframerate(sample_rate)
            wf.writeframes(pcm.tobytes())
        data = output.getvalue()

        verify_container(data)
        logger.debug(f"Encoded {frames.shape[0]} frames ({channels} ch @ {sample_rate}Hz) "
                     f"into {len(data)} byte WAV container")

        return EncodedAudio(data=data, mime_type="audio/wav", file_name=file_name or "recording.wav")
