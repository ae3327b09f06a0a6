"""Exception hierarchy for the TalkParity pipeline."""

from typing import Optional


class TalkParityError(Exception):
    """Base class for all pipeline errors."""


class ValidationError(TalkParityError):
    """Input rejected before any network call was attempted."""


class ConfigurationError(TalkParityError):
    """Required configuration (e.g. the API key) is missing or invalid."""


class DeviceError(TalkParityError):
    """Microphone permission was denied or no capture device is available."""


class EmptyRecordingError(TalkParityError):
    """A capture session ended without producing any audio bytes."""


class EncodingError(TalkParityError):
    """The encoder produced a malformed audio container."""


class RemoteError(TalkParityError):
    """A request to the remote engine failed.

    Attributes:
        status: HTTP status code, when a response was received
        provider_message: Error text returned by the provider, verbatim
    """

    def __init__(self, message: str, status: Optional[int] = None,
                 provider_message: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.provider_message = provider_message


class UploadError(RemoteError):
    """The audio upload was rejected or returned no upload reference."""


class SubmitError(RemoteError):
    """The transcript job could not be created."""


class ProviderError(RemoteError):
    """The provider reported the transcript job as failed."""


class TransportError(RemoteError):
    """The request never produced an HTTP response (network failure).

    Attributes:
        stage: Pipeline stage the failure happened in ("upload", "submit", "poll")
    """

    def __init__(self, message: str, stage: str):
        super().__init__(message)
        self.stage = stage


class TranscriptionTimeoutError(TalkParityError, TimeoutError):
    """The poll budget was exhausted before the job reached a terminal state.

    The job may still complete on the provider side.
    """

    def __init__(self, message: str, transcript_id: str, attempts: int):
        super().__init__(message)
        self.transcript_id = transcript_id
        self.attempts = attempts


class PollCancelledError(TalkParityError):
    """Polling was stopped through the caller's cancel token."""


class NoSpeechDetectedError(TalkParityError):
    """The job completed but the result contains no attributable speech."""
