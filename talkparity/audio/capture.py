"""Microphone capture session built on PyAudio."""

import logging
import threading
from datetime import datetime
from threading import Thread, Event
from typing import List, Optional

import pyaudio

from ..errors import DeviceError, EmptyRecordingError
from ..models.audio import AudioBuffer, AudioStats, CaptureConstraints, SAMPLE_FORMAT_FLOAT32

logger = logging.getLogger(__name__)


class AudioCapture:
    """Records float32 frames on a background thread until stopped."""

    def __init__(self, constraints: Optional[CaptureConstraints] = None):
        """Initialize audio capture.

        Args:
            constraints: Fixed stream constraints (sample rate, channels, chunk
                size, echo cancellation, noise suppression)
        """
        self.constraints = constraints or CaptureConstraints()
        self.sample_rate = self.constraints.sample_rate
        self.chunk_size = self.constraints.chunk_size
        self.channels = self.constraints.channels
        self.format = pyaudio.paFloat32

        # Recording thread management
        self.recording_thread: Optional[Thread] = None
        self.stop_event = Event()
        self.is_recording = False

        # Captured frames, appended by the recording thread
        self.frames: List[bytes] = []
        self.frames_lock = threading.Lock()

        # Statistics tracking
        self.start_time: Optional[datetime] = None
        self.total_chunks = 0

        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream = None
        self._release_lock = threading.Lock()

    def start(self) -> None:
        """Open the input stream and start recording in a background thread.

        Raises:
            DeviceError: If the microphone is unavailable or access is denied
        """
        if self.is_recording:
            logger.warning("Recording already in progress")
            return

        logger.info("Starting audio capture")
        self.stop_event.clear()
        self.frames = []
        self.total_chunks = 0

        try:
            self.stream = self.__open_audio_stream()
        except OSError as e:
            self._release()
            logger.error(f"Failed to open capture stream: {e}")
            raise DeviceError(f"Failed to access microphone. Please check permissions. ({e})") from e

        self.start_time = datetime.now()
        self.recording_thread = Thread(target=self._record_continuously, daemon=True)
        self.recording_thread.name = "AudioCaptureThread"
        self.recording_thread.start()
        self.is_recording = True

    def stop(self) -> AudioBuffer:
        """Stop recording, release the device and return the captured frames.

        Raises:
            EmptyRecordingError: If no recording is active or nothing was captured
        """
        if not self.is_recording:
            raise EmptyRecordingError("No active recording")

        logger.info("Stopping audio capture")
        self.stop_event.set()

        try:
            if self.recording_thread and self.recording_thread.is_alive():
                self.recording_thread.join(timeout=2.0)
                if self.recording_thread.is_alive():
                    logger.warning("Recording thread did not stop cleanly")
        finally:
            self._release()
            self.is_recording = False

        with self.frames_lock:
            data = b"".join(self.frames)
            self.frames = []

        logger.info(f"Capture stopped. Total chunks: {self.total_chunks}, bytes: {len(data)}")

        if not data:
            raise EmptyRecordingError("Recording is empty. Please record some audio.")

        return AudioBuffer(
            data=data,
            channels=self.channels,
            sample_rate=self.sample_rate,
            sample_format=SAMPLE_FORMAT_FLOAT32,
        )

    def is_active(self) -> bool:
        """Whether a capture session is currently running."""
        return self.is_recording

    def __open_audio_stream(self):
        self.pyaudio_instance = pyaudio.PyAudio()
        stream = self.pyaudio_instance.open(
            format=self.format,
            channels=self.channels,
            rate=self.sample_rate,
            input=True,
            frames_per_buffer=self.chunk_size,
            stream_callback=None
        )
        # PyAudio has no switch for these; they are applied by the host audio stack
        logger.info(f"Audio stream opened: {self.sample_rate}Hz, {self.channels} ch, "
                    f"{self.chunk_size} frames/chunk, "
                    f"echo_cancellation={self.constraints.echo_cancellation}, "
                    f"noise_suppression={self.constraints.noise_suppression}")
        return stream

    def _record_continuously(self) -> None:
        """Internal method: continuous recording loop in background thread."""
        stream = self.stream
        try:
            while not self.stop_event.is_set():
                chunk = stream.read(self.chunk_size, exception_on_overflow=False)
                self.total_chunks += 1
                with self.frames_lock:
                    self.frames.append(chunk)
        except OSError as e:
            # Stream closed underneath us, or the device went away
            logger.error(f"Capture stream read failed: {e}")
        finally:
            self._release()

    def _release(self) -> None:
        """Stop the stream and free the device. Safe to call more than once."""
        with self._release_lock:
            if self.stream is not None:
                try:
                    self.stream.stop_stream()
                    self.stream.close()
                finally:
                    self.stream = None
            if self.pyaudio_instance is not None:
                self.pyaudio_instance.terminate()
                self.pyaudio_instance = None

    def get_recording_stats(self) -> AudioStats:
        """Get current recording statistics."""
        duration = 0.0
        if self.start_time and self.is_recording:
            duration = (datetime.now() - self.start_time).total_seconds()

        with self.frames_lock:
            captured = sum(len(chunk) for chunk in self.frames)

        return AudioStats(
            is_recording=self.is_recording,
            duration_seconds=duration,
            sample_rate=self.sample_rate,
            chunk_size=self.chunk_size,
            total_chunks=self.total_chunks,
            captured_bytes=captured,
        )

    def __del__(self):
        """Ensure the device is released on deletion."""
        if self.is_recording:
            self.stop_event.set()
            self._release()
