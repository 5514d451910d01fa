"""
Error taxonomy for translation and recognition calls.

- Configuration errors are raised before any I/O happens
- Transport errors wrap connection, timeout and TLS failures
- Upstream errors carry the HTTP status of a failed exchange
- Per-line stream parse errors never surface; the parser skips them
"""

from __future__ import annotations


class TranslationError(Exception):
    """Base error with request context."""

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        model: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.endpoint = endpoint
        self.model = model
        self.status_code = status_code


class ConfigurationError(TranslationError, ValueError):
    """A required setting (base URL, API key, model) is blank."""

    def __init__(self, field: str, message: str | None = None):
        super().__init__(message or f"{field} is not configured")
        self.field = field


class TransportError(TranslationError):
    """The request could not be completed at the network level."""
    pass


class UpstreamError(TranslationError):
    """The endpoint answered with a non-success status and no usable text."""

    def __init__(
        self,
        message: str,
        status_code: int,
        body_excerpt: str = "",
        **kwargs,
    ):
        super().__init__(message, status_code=status_code, **kwargs)
        self.body_excerpt = body_excerpt
