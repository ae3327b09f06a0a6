"""AssemblyAI transcription client: upload, submit and poll.

One call to ``transcribe`` walks a single job through
IDLE -> UPLOADING -> SUBMITTING -> POLLING -> COMPLETED / FAILED / TIMED_OUT / CANCELLED.
Every request is reported to the optional event callback as a RequestEvent;
the callback only observes and never changes control flow.
"""

import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

import aiohttp
import pydantic

from ..config import ClientSettings
from ..errors import (
    ConfigurationError,
    PollCancelledError,
    ProviderError,
    SubmitError,
    TalkParityError,
    TranscriptionTimeoutError,
    TransportError,
    UploadError,
    ValidationError,
)
from ..models.audio import EncodedAudio
from ..models.events import RequestEvent, PHASE_REQUEST, PHASE_RESPONSE, PHASE_ERROR
from ..models.payload import TranscriptPayload
from ..models.transcription import ClientState, JobStatus, JobTrace, TranscriptJob

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 200


@dataclass
class CompletedJob:
    """A job that reached ``completed``, with its raw payload and trace."""
    job: TranscriptJob
    payload: TranscriptPayload
    trace: JobTrace


def _is_success(status: int) -> bool:
    return 200 <= status < 300


def _decode_body(text: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None


def _provider_message(body: Any, text: str) -> str:
    """Extract the provider's error text: JSON ``error``, else the JSON body, else raw text."""
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    if body is not None:
        return json.dumps(body)
    return text


def _parse_status(value: Optional[str]) -> Optional[JobStatus]:
    try:
        return JobStatus(value)
    except ValueError:
        return None


class TranscriptionClient:
    """Drives upload, submit and poll against the AssemblyAI v2 API."""

    def __init__(self,
                 settings: ClientSettings,
                 event_callback: Optional[Callable[[RequestEvent], None]] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        """Initialize the client.

        Args:
            settings: Explicit client configuration (credential, endpoints, poll budget)
            event_callback: Receives a RequestEvent for every request lifecycle step
            session: Session to issue requests on; one is created per run if omitted
        """
        self.settings = settings
        self.event_callback = event_callback
        self._session = session
        self._last_trace: Optional[JobTrace] = None

    @property
    def state(self) -> ClientState:
        """State of the most recent run, IDLE before the first one."""
        if self._last_trace is None:
            return ClientState.IDLE
        return self._last_trace.state

    async def transcribe(self,
                         audio: EncodedAudio,
                         file_name_hint: Optional[str] = None,
                         cancel_event: Optional[asyncio.Event] = None,
                         trace: Optional[JobTrace] = None) -> CompletedJob:
        """Upload audio, create a diarization job and wait for it to complete.

        Args:
            audio: Encoded audio to upload
            file_name_hint: Name used in logs and traces for the uploaded audio
            cancel_event: Setting this event stops polling with PollCancelledError
            trace: Trace object to fill in; a fresh one is created if omitted

        Returns:
            CompletedJob with the job, its completed payload and the run trace

        Raises:
            ConfigurationError: If no API key is configured
            ValidationError: If the audio is empty or too short
            UploadError, SubmitError, ProviderError, TransportError,
            TranscriptionTimeoutError, PollCancelledError: On remote failures
        """
        trace = trace if trace is not None else JobTrace()
        self._last_trace = trace
        try:
            self._check_configured()
            self._validate(audio)
        except TalkParityError:
            trace.state = ClientState.FAILED
            raise

        file_name = file_name_hint or audio.file_name or "recording.wav"
        trace.upload_size = audio.size
        started = time.monotonic()
        logger.info(f"Starting diarization for {file_name} "
                    f"({audio.size / 1024 / 1024:.2f} MB, {audio.mime_type})")

        try:
            async with self._session_scope() as session:
                trace.state = ClientState.UPLOADING
                upload_url = await self.upload(session, audio, trace)

                trace.state = ClientState.SUBMITTING
                job = await self.submit(session, upload_url, trace)

                trace.state = ClientState.POLLING
                payload = await self.poll(session, job, trace, cancel_event)
        except TranscriptionTimeoutError:
            trace.state = ClientState.TIMED_OUT
            raise
        except (PollCancelledError, asyncio.CancelledError):
            trace.state = ClientState.CANCELLED
            raise
        except TalkParityError:
            trace.state = ClientState.FAILED
            raise
        finally:
            trace.total_processing_time_ms = (time.monotonic() - started) * 1000

        trace.state = ClientState.COMPLETED
        logger.info(f"Transcript {job.id} completed after {trace.poll_attempts} poll(s) "
                    f"in {trace.total_processing_time_ms:.0f}ms")
        return CompletedJob(job=job, payload=payload, trace=trace)

    async def upload(self, session: aiohttp.ClientSession, audio: EncodedAudio, trace: JobTrace) -> str:
        """Send the raw bytes to the upload endpoint and return the upload reference."""
        url = f"{self.settings.base_url}/upload"
        trace.upload_request_url = url

        headers = self._auth_headers()
        # Raw binary body, not a multipart form
        headers["Content-Type"] = "application/octet-stream"

        status, body, text, latency_ms = await self._request(
            session, "POST", url, "upload", headers=headers, data=audio.data)
        trace.upload_time_ms = latency_ms

        if not _is_success(status):
            message = _provider_message(body, text)
            logger.error(f"Upload failed ({status}): {message}")
            raise UploadError(f"Upload failed ({status}): {message}",
                              status=status, provider_message=message)

        upload_url = body.get("upload_url") if isinstance(body, dict) else None
        if not upload_url:
            raise UploadError("Failed to get upload URL from API response", status=status)

        trace.upload_url = upload_url
        return upload_url

    async def submit(self, session: aiohttp.ClientSession, upload_url: str, trace: JobTrace) -> TranscriptJob:
        """Create a transcript job with speaker labels and language detection."""
        url = f"{self.settings.base_url}/transcript"
        trace.transcript_request_url = url

        request_body = {
            "audio_url": upload_url,
            "speaker_labels": True,
            "language_detection": True,
        }
        status, body, text, _ = await self._request(
            session, "POST", url, "submit", headers=self._auth_headers(), json=request_body)

        if not _is_success(status):
            message = _provider_message(body, text)
            logger.error(f"Failed to start transcription ({status}): {message}")
            raise SubmitError(f"Failed to start transcription: {message}",
                              status=status, provider_message=message)

        transcript_id = body.get("id") if isinstance(body, dict) else None
        if not transcript_id:
            raise SubmitError("Failed to get transcript ID from API response", status=status)

        job = TranscriptJob(id=str(transcript_id))
        trace.transcript_id = job.id
        trace.transcript_status = job.status.value
        logger.info(f"Transcript job {job.id} created")
        return job

    async def poll(self,
                   session: aiohttp.ClientSession,
                   job: TranscriptJob,
                   trace: JobTrace,
                   cancel_event: Optional[asyncio.Event] = None) -> TranscriptPayload:
        """Poll the job until it completes, fails, or the attempt budget runs out."""
        url = f"{self.settings.base_url}/transcript/{job.id}"
        trace.poll_request_url = url
        max_attempts = self.settings.max_poll_attempts

        for attempt in range(1, max_attempts + 1):
            if cancel_event is not None and cancel_event.is_set():
                raise PollCancelledError(f"Polling of transcript {job.id} was cancelled")

            status, body, text, _ = await self._request(
                session, "GET", url, "poll", headers=self._auth_headers())
            trace.poll_attempts = attempt

            if not _is_success(status):
                message = _provider_message(body, text)
                logger.error(f"Failed to check transcription status ({status}): {message}")
                raise ProviderError(f"Failed to check transcription status ({status}): {message}",
                                    status=status, provider_message=message)

            payload = self._validate_payload(body, status)
            trace.transcript_status = payload.status

            job_status = _parse_status(payload.status)
            if job_status is None:
                logger.warning(f"Unrecognized transcript status '{payload.status}', continuing to poll")
            else:
                job.status = job_status

            if job_status is JobStatus.COMPLETED:
                return payload

            if job_status is JobStatus.ERROR:
                message = payload.error or payload.status_text or "Unknown error occurred"
                logger.error(f"Transcript {job.id} failed: {message}")
                raise ProviderError(f"Transcription failed: {message}",
                                    status=status, provider_message=message)

            if attempt % 10 == 1:
                logger.info(f"Transcription in progress... (attempt {attempt}/{max_attempts})")

            if attempt < max_attempts:
                await self._wait_before_next_poll(cancel_event, job.id)

        raise TranscriptionTimeoutError(
            "Transcription timeout - the audio file may be too long or the service "
            "is taking longer than expected.",
            transcript_id=job.id,
            attempts=max_attempts,
        )

    async def _wait_before_next_poll(self, cancel_event: Optional[asyncio.Event], transcript_id: str) -> None:
        interval = self.settings.poll_interval_seconds
        if cancel_event is None:
            await asyncio.sleep(interval)
            return
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            return
        raise PollCancelledError(f"Polling of transcript {transcript_id} was cancelled")

    async def _request(self, session, method: str, url: str, stage: str,
                       **kwargs) -> Tuple[int, Any, str, float]:
        """Issue one request, reporting its lifecycle to the event callback.

        Returns:
            (status, decoded JSON body or None, raw text, latency in ms)

        Raises:
            TransportError: If no HTTP response was received
        """
        self._emit(RequestEvent(method=method, url=url, phase=PHASE_REQUEST))
        started = time.monotonic()

        try:
            async with session.request(method, url, **kwargs) as response:
                status = response.status
                raw = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            latency_ms = (time.monotonic() - started) * 1000
            error = str(e) or type(e).__name__
            self._emit(RequestEvent(method=method, url=url, phase=PHASE_ERROR,
                                    latency_ms=latency_ms, error=error))
            logger.error(f"{method} {url} failed during {stage}: {error}")
            raise TransportError(f"{stage.capitalize()} request failed: {error}", stage=stage) from e

        latency_ms = (time.monotonic() - started) * 1000
        # Error bodies from proxies are not always UTF-8
        text = raw.decode("utf-8", errors="replace")
        body = _decode_body(text)

        if _is_success(status):
            self._emit(RequestEvent(method=method, url=url, phase=PHASE_RESPONSE, status=status,
                                    latency_ms=latency_ms, response_preview=text[:PREVIEW_LENGTH]))
        else:
            self._emit(RequestEvent(method=method, url=url, phase=PHASE_ERROR, status=status,
                                    latency_ms=latency_ms, error=_provider_message(body, text),
                                    response_preview=text[:PREVIEW_LENGTH]))

        logger.debug(f"{method} {url} -> {status} in {latency_ms:.0f}ms")
        return status, body, text, latency_ms

    def _validate_payload(self, body: Any, status: int) -> TranscriptPayload:
        try:
            return TranscriptPayload.model_validate(body)
        except pydantic.ValidationError as e:
            raise ProviderError(f"Malformed transcript payload: {e}", status=status) from e

    def _emit(self, event: RequestEvent) -> None:
        if self.event_callback is None:
            return
        try:
            self.event_callback(event)
        except Exception as e:
            logger.warning(f"Request event observer failed: {e}")

    def _auth_headers(self) -> Dict[str, str]:
        return {"authorization": self.settings.api_key}

    def _check_configured(self) -> None:
        if not self.settings.api_key:
            raise ConfigurationError(
                "API key not set. Please configure your AssemblyAI API key before transcribing.")

    def _validate(self, audio: Optional[EncodedAudio]) -> None:
        if audio is None or not audio.data:
            raise ValidationError("Audio file is empty. Please record some audio first.")
        if audio.size < self.settings.min_upload_bytes:
            raise ValidationError(
                f"Audio file is too small ({audio.size} bytes). "
                f"Please record at least a few seconds of audio.")

    @asynccontextmanager
    async def _session_scope(self):
        if self._session is not None:
            yield self._session
            return
        timeout = aiohttp.ClientTimeout(total=self.settings.request_timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            yield session
