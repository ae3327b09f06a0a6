"""Audio file format sniffing and loading of uploaded files."""

import logging
from pathlib import Path
from typing import Optional, Union

import numpy as np
from scipy.io import wavfile

from ..errors import EncodingError, ValidationError
from ..models.audio import EncodedAudio
from .encoder import WavEncoder, dequantize

logger = logging.getLogger(__name__)

FORMAT_WAV = "wav"
FORMAT_MP3 = "mp3"
FORMAT_M4A = "m4a"

_EXTENSION_MIME_TYPES = {
    "wav": "audio/wav",
    "mp3": "audio/mpeg",
    "m4a": "audio/mp4",
    "mp4": "audio/mp4",
    "ogg": "audio/ogg",
    "webm": "audio/webm",
}


def detect_audio_format(header: bytes) -> Optional[str]:
    """Identify a container from its first 12 bytes.

    Returns:
        "wav", "mp3", "m4a" or None when the header matches none of them
    """
    if len(header) < 12:
        return None
    if header[0:4] == b"RIFF" and b"WAVE" in header[:12]:
        return FORMAT_WAV
    if header[0] == 0xFF and (header[1] & 0xE0) == 0xE0:
        return FORMAT_MP3
    if header[0:3] == b"ID3":
        return FORMAT_MP3
    if header[4:8] == b"ftyp":
        return FORMAT_M4A
    return None


def infer_mime_type(file_name: Optional[str]) -> str:
    """Map a file name's extension to a MIME type, defaulting to audio/wav."""
    if not file_name or "." not in file_name:
        return "audio/wav"
    extension = file_name.lower().rsplit(".", 1)[-1]
    return _EXTENSION_MIME_TYPES.get(extension, "audio/wav")


def infer_file_name(mime_type: Optional[str]) -> str:
    """Pick a default file name for audio of the given MIME type."""
    mime_type = mime_type or ""
    if "mp3" in mime_type or "mpeg" in mime_type:
        return "recording.mp3"
    if "mp4" in mime_type or "m4a" in mime_type:
        return "recording.m4a"
    if "ogg" in mime_type:
        return "recording.ogg"
    # WebM captures are converted to WAV before upload
    return "recording.wav"


def _to_float_frames(samples: np.ndarray) -> np.ndarray:
    """Normalize scipy's wavfile sample arrays into float frames in [-1, 1]."""
    if samples.ndim == 1:
        samples = samples.reshape(-1, 1)
    if np.issubdtype(samples.dtype, np.floating):
        return samples.astype(np.float64)
    if samples.dtype == np.int16:
        return dequantize(samples)
    if samples.dtype == np.int32:
        return samples.astype(np.float64) / 2147483648.0
    if samples.dtype == np.uint8:
        return (samples.astype(np.float64) - 128.0) / 128.0
    raise EncodingError(f"Unsupported WAV sample type: {samples.dtype}")


def load_audio_file(path: Union[str, Path], encoder: Optional[WavEncoder] = None) -> EncodedAudio:
    """Load an uploaded audio file for diarization.

    WAV files are decoded and re-encoded into the canonical 16-bit container.
    MP3 and M4A files are passed through unchanged with their MIME type.

    Args:
        path: Path to the audio file
        encoder: Encoder used for WAV files (a default one if omitted)

    Returns:
        EncodedAudio ready for upload

    Raises:
        ValidationError: If the file is missing or empty
        EncodingError: If a WAV file cannot be decoded
    """
    path = Path(path)
    if not path.exists():
        raise ValidationError(f"Audio file not found: {path}")

    data = path.read_bytes()
    if not data:
        raise ValidationError(f"Audio file is empty: {path}")

    detected = detect_audio_format(data[:12])
    logger.info(f"Loading audio file {path.name}: {len(data)} bytes, detected format={detected}")

    if detected == FORMAT_WAV:
        try:
            sample_rate, samples = wavfile.read(str(path))
        except ValueError as e:
            raise EncodingError(f"Failed to decode WAV file {path.name}: {e}") from e
        frames = _to_float_frames(samples)
        return (encoder or WavEncoder()).encode_frames(frames, sample_rate, file_name=path.name)

    if detected is None:
        logger.warning(f"File header of {path.name} does not match common audio formats: "
                       f"{' '.join(f'0x{b:02x}' for b in data[:12])}")

    return EncodedAudio(data=data, mime_type=infer_mime_type(path.name), file_name=path.name)
