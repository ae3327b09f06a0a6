"""Pytest configuration and fixtures for TalkParity tests."""

import json
import pytest
import tempfile
import time
import logging
from unittest.mock import Mock, patch
import numpy as np

from talkparity.audio.encoder import WavEncoder
from talkparity.config import ClientSettings


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

TEST_BASE_URL = "https://api.test.local/v2"
TEST_UPLOAD_URL = "https://cdn.test.local/upload/abc123"


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast isolated tests")
    config.addinivalue_line("markers", "integration: tests spanning several components")


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def float_audio_chunk():
    """1024 frames of a 440Hz mono sine wave as float32 bytes."""
    t = np.linspace(0, 1024 / 16000, 1024, False)
    return (0.5 * np.sin(2 * np.pi * 440 * t)).astype(np.float32).tobytes()


@pytest.fixture
def mock_pyaudio(float_audio_chunk):
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        def read_chunk(*args, **kwargs):
            # Pace reads like a real device would
            time.sleep(0.005)
            return float_audio_chunk

        mock_stream.read.side_effect = read_chunk
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None

        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


@pytest.fixture
def encoded_audio():
    """One second of 16kHz mono speech-like audio in the canonical WAV container."""
    t = np.linspace(0, 1.0, 16000, False)
    frames = 0.3 * np.sin(2 * np.pi * 220 * t)
    return WavEncoder().encode_frames(frames, 16000)


@pytest.fixture
def client_settings():
    """Client settings with a test key and no delay between polls."""
    return ClientSettings(
        api_key="test-key",
        base_url=TEST_BASE_URL,
        poll_interval_seconds=0,
        max_poll_attempts=60,
        min_upload_bytes=1000,
    )


class FakeResponse:
    """Minimal stand-in for aiohttp.ClientResponse."""

    def __init__(self, status, body):
        self.status = status
        if isinstance(body, bytes):
            self._body = body
        else:
            self._body = (body if isinstance(body, str) else json.dumps(body)).encode("utf-8")

    async def read(self):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeProviderSession:
    """Scripted stand-in for aiohttp.ClientSession talking to the provider.

    Each response is a (status, body) tuple, or an exception to raise.
    """

    def __init__(self, upload=None, submit=None, polls=None):
        self.upload_response = upload or (200, {"upload_url": TEST_UPLOAD_URL})
        self.submit_response = submit or (200, {"id": "tx-1", "status": "queued"})
        self.poll_responses = list(polls or [])
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if method == "POST" and url.endswith("/upload"):
            response = self.upload_response
        elif method == "POST" and url.endswith("/transcript"):
            response = self.submit_response
        elif method == "GET":
            if not self.poll_responses:
                raise AssertionError("Unexpected extra poll request")
            response = self.poll_responses.pop(0)
        else:
            raise AssertionError(f"Unexpected request {method} {url}")

        if isinstance(response, BaseException):
            raise response
        return FakeResponse(*response)

    def calls_for(self, method):
        return [call for call in self.calls if call[0] == method]


def completed_payload(**overrides):
    payload = {
        "id": "tx-1",
        "status": "completed",
        "audio_duration": 12.5,
        "utterances": [
            {"speaker": "A", "start": 0, "end": 4000, "text": "Good morning everyone, let's begin."},
            {"speaker": "B", "start": 4500, "end": 7000, "text": "Thanks, I have two updates."},
            {"speaker": "A", "start": 7200, "end": 9000, "text": "Go ahead."},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def fake_session_factory():
    """Build a FakeProviderSession with the given scripted responses."""
    return FakeProviderSession


@pytest.fixture
def make_completed_payload():
    """Build a completed transcript payload, with optional field overrides."""
    return completed_payload
