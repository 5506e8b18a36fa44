"""Failure taxonomy for inference calls and the gateway's error type."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Optional

import openai

RATE_LIMIT_MARKERS = ("429", "rate limit", "quota", "RESOURCE_EXHAUSTED")
NETWORK_MARKERS = ("SSL", "ECONNRESET", "ETIMEDOUT", "ENOTFOUND", "handshake failed", "net_error")

CANCELED_MESSAGE = "Processing was canceled by the user."


class ErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    NETWORK_TRANSIENT = "network_transient"
    AUTH_MISSING = "auth_missing"
    MALFORMED_RESPONSE = "malformed_response"
    CANCELED = "canceled"
    UNKNOWN = "unknown"


class MissingCredentialError(RuntimeError):
    """Raised when no provider API key is configured."""


class EmptyResponseError(RuntimeError):
    """Raised when a model answered with no usable text."""


class GatewayError(Exception):
    """The single failure type raised by `InferenceGateway.execute`."""

    def __init__(self, kind: ErrorKind, message: str, *, model: Optional[str] = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.model = model

    @property
    def canceled(self) -> bool:
        return self.kind is ErrorKind.CANCELED


def classify_error(exc: BaseException) -> ErrorKind:
    """Map an exception raised by a provider call to an `ErrorKind`."""
    if isinstance(exc, GatewayError):
        return exc.kind
    if isinstance(exc, asyncio.CancelledError):
        return ErrorKind.CANCELED
    if isinstance(exc, (MissingCredentialError, openai.AuthenticationError)):
        return ErrorKind.AUTH_MISSING
    if isinstance(exc, openai.RateLimitError):
        return ErrorKind.RATE_LIMITED
    if isinstance(exc, openai.APIStatusError) and exc.status_code == 429:
        return ErrorKind.RATE_LIMITED
    if isinstance(exc, (openai.APIConnectionError, asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return ErrorKind.NETWORK_TRANSIENT

    text = str(exc)
    lowered = text.lower()
    if any(marker.lower() in lowered for marker in RATE_LIMIT_MARKERS):
        return ErrorKind.RATE_LIMITED
    if any(marker in text for marker in NETWORK_MARKERS):
        return ErrorKind.NETWORK_TRANSIENT
    return ErrorKind.UNKNOWN


def user_message(kind: ErrorKind, exc: Optional[BaseException] = None) -> str:
    """Return the message shown to the user for a terminal failure."""
    if kind is ErrorKind.RATE_LIMITED:
        return "All models are rate limited or out of quota. Please wait a moment and try again."
    if kind is ErrorKind.NETWORK_TRANSIENT:
        return "Network error. Please check your connection and try again."
    if kind is ErrorKind.AUTH_MISSING:
        return "OpenAI API key not found. Please set OPENAI_API_KEY in your .env file."
    if kind is ErrorKind.CANCELED:
        return CANCELED_MESSAGE
    if kind is ErrorKind.MALFORMED_RESPONSE:
        return "The model returned a response that could not be understood. Please try again."
    detail = str(exc) if exc is not None else ""
    return detail or "An unexpected error occurred."
