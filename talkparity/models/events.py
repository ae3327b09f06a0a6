"""Telemetry event models for the request/response channel."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


PHASE_REQUEST = "request"
PHASE_RESPONSE = "response"
PHASE_ERROR = "error"


@dataclass
class RequestEvent:
    """One lifecycle step of a request to the remote engine."""
    method: str
    url: str
    phase: str  # "request", "response" or "error"
    status: Optional[int] = None
    latency_ms: Optional[float] = None
    error: Optional[str] = None
    response_preview: Optional[Any] = None
    timestamp: datetime = field(default_factory=datetime.now)
