"""Unit tests for the upload/submit/poll transcription client."""

import asyncio
import dataclasses

import aiohttp
import pytest

from talkparity.errors import (
    ConfigurationError,
    PollCancelledError,
    ProviderError,
    SubmitError,
    TranscriptionTimeoutError,
    TransportError,
    UploadError,
    ValidationError,
)
from talkparity.models.audio import EncodedAudio
from talkparity.models.events import PHASE_ERROR, PHASE_REQUEST, PHASE_RESPONSE
from talkparity.models.transcription import ClientState, JobStatus, JobTrace
from talkparity.transcription.client import TranscriptionClient


def run(coro):
    return asyncio.run(coro)


@pytest.mark.unit
class TestClientValidation:
    """Requests are rejected locally before any network call."""

    def test_missing_api_key_raises_configuration_error(self, client_settings, encoded_audio,
                                                        fake_session_factory):
        session = fake_session_factory()
        settings = dataclasses.replace(client_settings, api_key=None)
        client = TranscriptionClient(settings, session=session)

        with pytest.raises(ConfigurationError):
            run(client.transcribe(encoded_audio))

        assert session.calls == []
        assert client.state is ClientState.FAILED

    def test_zero_byte_audio_raises_validation_error(self, client_settings, fake_session_factory):
        session = fake_session_factory()
        client = TranscriptionClient(client_settings, session=session)

        with pytest.raises(ValidationError, match="empty"):
            run(client.transcribe(EncodedAudio(data=b"")))

        assert session.calls == []

    def test_audio_below_minimum_size_rejected(self, client_settings, fake_session_factory):
        session = fake_session_factory()
        client = TranscriptionClient(client_settings, session=session)
        trace = JobTrace()

        with pytest.raises(ValidationError, match="too small"):
            run(client.transcribe(EncodedAudio(data=b"RIFF" + b"\x00" * 500), trace=trace))

        assert session.calls == []
        assert trace.state is ClientState.FAILED


@pytest.mark.unit
class TestClientHappyPath:
    """Upload, submit and poll against a scripted provider."""

    def test_endpoint_urls_with_trailing_slash_base(self, client_settings, encoded_audio,
                                                    fake_session_factory, make_completed_payload):
        session = fake_session_factory(polls=[(200, make_completed_payload())])
        settings = dataclasses.replace(client_settings, base_url=client_settings.base_url + "/")
        client = TranscriptionClient(settings, session=session)

        run(client.transcribe(encoded_audio))

        assert [call[1] for call in session.calls] == [
            f"{client_settings.base_url}/upload",
            f"{client_settings.base_url}/transcript",
            f"{client_settings.base_url}/transcript/tx-1",
        ]

    def test_queued_processing_completed_makes_three_polls(self, client_settings, encoded_audio,
                                                           fake_session_factory, make_completed_payload):
        session = fake_session_factory(polls=[
            (200, {"id": "tx-1", "status": "queued"}),
            (200, {"id": "tx-1", "status": "processing"}),
            (200, make_completed_payload()),
        ])
        client = TranscriptionClient(client_settings, session=session)
        assert client.state is ClientState.IDLE

        completed = run(client.transcribe(encoded_audio))

        assert client.state is ClientState.COMPLETED
        assert len(session.calls_for("GET")) == 3
        assert completed.job.id == "tx-1"
        assert completed.job.status is JobStatus.COMPLETED
        assert len(completed.payload.utterances) == 3
        assert completed.trace.poll_attempts == 3
        assert completed.trace.state is ClientState.COMPLETED
        assert completed.trace.transcript_status == "completed"

    def test_upload_sends_raw_bytes_with_binary_content_type(self, client_settings, encoded_audio,
                                                             fake_session_factory, make_completed_payload):
        session = fake_session_factory(polls=[(200, make_completed_payload())])
        client = TranscriptionClient(client_settings, session=session)

        run(client.transcribe(encoded_audio))

        method, url, kwargs = session.calls[0]
        assert method == "POST"
        assert url == f"{client_settings.base_url}/upload"
        assert kwargs["data"] == encoded_audio.data
        assert kwargs["headers"]["Content-Type"] == "application/octet-stream"
        assert kwargs["headers"]["authorization"] == "test-key"

    def test_submit_requests_speaker_labels_and_language_detection(
            self, client_settings, encoded_audio, fake_session_factory, make_completed_payload):
        session = fake_session_factory(polls=[(200, make_completed_payload())])
        client = TranscriptionClient(client_settings, session=session)

        run(client.transcribe(encoded_audio))

        method, url, kwargs = session.calls[1]
        assert (method, url) == ("POST", f"{client_settings.base_url}/transcript")
        assert kwargs["json"] == {
            "audio_url": "https://cdn.test.local/upload/abc123",
            "speaker_labels": True,
            "language_detection": True,
        }
        assert session.calls[2][1] == f"{client_settings.base_url}/transcript/tx-1"

    def test_trace_records_upload_and_job(self, client_settings, encoded_audio,
                                          fake_session_factory, make_completed_payload):
        session = fake_session_factory(polls=[(200, make_completed_payload())])
        client = TranscriptionClient(client_settings, session=session)
        trace = JobTrace()

        run(client.transcribe(encoded_audio, file_name_hint="standup.wav", trace=trace))

        assert trace.upload_size == encoded_audio.size
        assert trace.upload_url == "https://cdn.test.local/upload/abc123"
        assert trace.upload_time_ms is not None
        assert trace.transcript_id == "tx-1"
        assert trace.total_processing_time_ms is not None

    def test_telemetry_events_for_every_request(self, client_settings, encoded_audio,
                                                fake_session_factory, make_completed_payload):
        session = fake_session_factory(polls=[
            (200, {"status": "processing"}),
            (200, make_completed_payload()),
        ])
        events = []
        client = TranscriptionClient(client_settings, event_callback=events.append, session=session)

        run(client.transcribe(encoded_audio))

        phases = [(event.method, event.phase) for event in events]
        assert phases == [
            ("POST", PHASE_REQUEST), ("POST", PHASE_RESPONSE),
            ("POST", PHASE_REQUEST), ("POST", PHASE_RESPONSE),
            ("GET", PHASE_REQUEST), ("GET", PHASE_RESPONSE),
            ("GET", PHASE_REQUEST), ("GET", PHASE_RESPONSE),
        ]
        responses = [event for event in events if event.phase == PHASE_RESPONSE]
        assert all(event.status == 200 for event in responses)
        assert all(event.latency_ms is not None for event in responses)
        assert "upload_url" in responses[0].response_preview

    def test_failing_observer_does_not_affect_run(self, client_settings, encoded_audio,
                                                  fake_session_factory, make_completed_payload):
        session = fake_session_factory(polls=[(200, make_completed_payload())])

        def broken_observer(event):
            raise RuntimeError("observer bug")

        client = TranscriptionClient(client_settings, event_callback=broken_observer, session=session)

        completed = run(client.transcribe(encoded_audio))
        assert completed.job.status is JobStatus.COMPLETED


@pytest.mark.unit
class TestClientFailures:
    """Remote failures map onto the error taxonomy."""

    def test_upload_rejected(self, client_settings, encoded_audio, fake_session_factory):
        session = fake_session_factory(upload=(401, {"error": "Invalid API key"}))
        events = []
        client = TranscriptionClient(client_settings, event_callback=events.append, session=session)
        trace = JobTrace()

        with pytest.raises(UploadError) as excinfo:
            run(client.transcribe(encoded_audio, trace=trace))

        assert excinfo.value.status == 401
        assert excinfo.value.provider_message == "Invalid API key"
        assert len(session.calls) == 1
        assert trace.state is ClientState.FAILED
        assert events[-1].phase == PHASE_ERROR
        assert events[-1].error == "Invalid API key"

    def test_upload_error_with_plain_text_body(self, client_settings, encoded_audio, fake_session_factory):
        session = fake_session_factory(upload=(502, "Bad Gateway"))
        client = TranscriptionClient(client_settings, session=session)

        with pytest.raises(UploadError) as excinfo:
            run(client.transcribe(encoded_audio))

        assert excinfo.value.provider_message == "Bad Gateway"

    def test_upload_error_with_undecodable_body(self, client_settings, encoded_audio, fake_session_factory):
        session = fake_session_factory(upload=(500, b"\xff\xfe bad"))
        events = []
        client = TranscriptionClient(client_settings, event_callback=events.append, session=session)
        trace = JobTrace()

        with pytest.raises(UploadError) as excinfo:
            run(client.transcribe(encoded_audio, trace=trace))

        assert excinfo.value.status == 500
        assert "bad" in excinfo.value.provider_message
        assert trace.state is ClientState.FAILED
        assert events[-1].phase == PHASE_ERROR
        assert events[-1].status == 500

    def test_upload_without_reference(self, client_settings, encoded_audio, fake_session_factory):
        session = fake_session_factory(upload=(200, {}))
        client = TranscriptionClient(client_settings, session=session)

        with pytest.raises(UploadError, match="upload URL"):
            run(client.transcribe(encoded_audio))

    def test_submit_rejected(self, client_settings, encoded_audio, fake_session_factory):
        session = fake_session_factory(submit=(400, {"error": "audio_url is unreachable"}))
        client = TranscriptionClient(client_settings, session=session)

        with pytest.raises(SubmitError) as excinfo:
            run(client.transcribe(encoded_audio))

        assert excinfo.value.status == 400
        assert excinfo.value.provider_message == "audio_url is unreachable"
        assert session.calls_for("GET") == []

    def test_submit_without_job_id(self, client_settings, encoded_audio, fake_session_factory):
        session = fake_session_factory(submit=(200, {"status": "queued"}))
        client = TranscriptionClient(client_settings, session=session)

        with pytest.raises(SubmitError, match="transcript ID"):
            run(client.transcribe(encoded_audio))

    def test_provider_error_status(self, client_settings, encoded_audio, fake_session_factory):
        session = fake_session_factory(polls=[
            (200, {"status": "processing"}),
            (200, {"status": "error", "error": "Audio duration is too short."}),
        ])
        client = TranscriptionClient(client_settings, session=session)
        trace = JobTrace()

        with pytest.raises(ProviderError) as excinfo:
            run(client.transcribe(encoded_audio, trace=trace))

        assert excinfo.value.provider_message == "Audio duration is too short."
        assert trace.state is ClientState.FAILED
        assert trace.poll_attempts == 2

    def test_provider_error_without_message(self, client_settings, encoded_audio, fake_session_factory):
        session = fake_session_factory(polls=[(200, {"status": "error"})])
        client = TranscriptionClient(client_settings, session=session)

        with pytest.raises(ProviderError) as excinfo:
            run(client.transcribe(encoded_audio))

        assert excinfo.value.provider_message == "Unknown error occurred"

    def test_poll_http_error(self, client_settings, encoded_audio, fake_session_factory):
        session = fake_session_factory(polls=[(404, {"error": "Transcript not found"})])
        client = TranscriptionClient(client_settings, session=session)

        with pytest.raises(ProviderError) as excinfo:
            run(client.transcribe(encoded_audio))

        assert excinfo.value.status == 404

    def test_malformed_poll_payload(self, client_settings, encoded_audio, fake_session_factory):
        session = fake_session_factory(polls=[(200, {"utterances": []})])
        client = TranscriptionClient(client_settings, session=session)

        with pytest.raises(ProviderError, match="Malformed"):
            run(client.transcribe(encoded_audio))

    def test_transport_failure_during_poll_propagates_immediately(
            self, client_settings, encoded_audio, fake_session_factory):
        session = fake_session_factory(polls=[
            (200, {"status": "queued"}),
            aiohttp.ClientConnectionError("Connection reset by peer"),
            (200, {"status": "completed"}),
        ])
        events = []
        client = TranscriptionClient(client_settings, event_callback=events.append, session=session)

        with pytest.raises(TransportError) as excinfo:
            run(client.transcribe(encoded_audio))

        assert excinfo.value.stage == "poll"
        assert not isinstance(excinfo.value, ProviderError)
        assert isinstance(excinfo.value.__cause__, aiohttp.ClientConnectionError)
        assert len(session.calls_for("GET")) == 2
        assert events[-1].phase == PHASE_ERROR

    def test_transport_failure_during_upload(self, client_settings, encoded_audio, fake_session_factory):
        session = fake_session_factory(upload=asyncio.TimeoutError())
        client = TranscriptionClient(client_settings, session=session)

        with pytest.raises(TransportError) as excinfo:
            run(client.transcribe(encoded_audio))

        assert excinfo.value.stage == "upload"

    def test_poll_budget_exhausted(self, client_settings, encoded_audio, fake_session_factory):
        settings = dataclasses.replace(client_settings, max_poll_attempts=4)
        session = fake_session_factory(polls=[(200, {"status": "processing"})] * 4)
        client = TranscriptionClient(settings, session=session)
        trace = JobTrace()

        with pytest.raises(TranscriptionTimeoutError) as excinfo:
            run(client.transcribe(encoded_audio, trace=trace))

        assert excinfo.value.attempts == 4
        assert excinfo.value.transcript_id == "tx-1"
        assert not isinstance(excinfo.value, ProviderError)
        assert len(session.calls_for("GET")) == 4
        assert trace.state is ClientState.TIMED_OUT

    def test_unrecognized_status_keeps_polling(self, client_settings, encoded_audio,
                                               fake_session_factory, make_completed_payload):
        session = fake_session_factory(polls=[
            (200, {"status": "uploading"}),
            (200, make_completed_payload()),
        ])
        client = TranscriptionClient(client_settings, session=session)

        completed = run(client.transcribe(encoded_audio))

        assert completed.trace.poll_attempts == 2


@pytest.mark.unit
class TestClientCancellation:
    """The cancel token stops polling."""

    def test_cancel_before_polling(self, client_settings, encoded_audio, fake_session_factory):
        session = fake_session_factory(polls=[(200, {"status": "processing"})])
        client = TranscriptionClient(client_settings, session=session)
        trace = JobTrace()

        async def scenario():
            cancel_event = asyncio.Event()
            cancel_event.set()
            await client.transcribe(encoded_audio, cancel_event=cancel_event, trace=trace)

        with pytest.raises(PollCancelledError):
            run(scenario())

        assert session.calls_for("GET") == []
        assert trace.state is ClientState.CANCELLED

    def test_cancel_during_poll_delay(self, client_settings, encoded_audio, fake_session_factory):
        settings = dataclasses.replace(client_settings, poll_interval_seconds=30)
        session = fake_session_factory(polls=[(200, {"status": "processing"})] * 3)
        client = TranscriptionClient(settings, session=session)

        async def scenario():
            cancel_event = asyncio.Event()
            task = asyncio.ensure_future(client.transcribe(encoded_audio, cancel_event=cancel_event))
            await asyncio.sleep(0.05)
            cancel_event.set()
            return await asyncio.wait_for(task, timeout=5)

        with pytest.raises(PollCancelledError):
            run(scenario())

        assert len(session.calls_for("GET")) == 1
