# core/exceptions.py
"""Error taxonomy for generation calls.

Every failure a generation call can surface is a subclass of
``GenerationError`` so callers can catch the whole family at once while
still telling a user-initiated stop (``GenerationCancelled``) apart from a
broken request. Running out of continuation rounds is not an error; see
``orchestration.continuation.ContinuationState.EXHAUSTED``.
"""

from __future__ import annotations


class GenerationError(Exception):
    """Base class for all generation failures."""


class ConfigError(GenerationError):
    """Missing or malformed credentials, model name or endpoint URL."""


class TransportError(GenerationError):
    """Network failure while sending the request or reading the stream."""


class UpstreamError(GenerationError):
    """The API answered with a non-success HTTP status."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"API error {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class GenerationCancelled(GenerationError):
    """The user asked to stop the running generation."""

    def __init__(self, detail: str = "Generation was cancelled by the user"):
        super().__init__(detail)


class ResponseFormatError(GenerationError):
    """The model answered, but not in the structure that was requested."""
