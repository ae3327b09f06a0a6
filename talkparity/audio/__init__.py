"""Audio capture and encoding module."""

from .capture import AudioCapture
from .encoder import WavEncoder, quantize, dequantize, parse_wav_header, verify_container
from .formats import detect_audio_format, infer_file_name, infer_mime_type, load_audio_file

__all__ = [
    'AudioCapture',
    'WavEncoder',
    'quantize',
    'dequantize',
    'parse_wav_header',
    'verify_container',
    'detect_audio_format',
    'infer_file_name',
    'infer_mime_type',
    'load_audio_file',
]
