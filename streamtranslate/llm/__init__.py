"""
OpenAI-compatible streaming chat integration.

This package provides:
- Endpoint normalization and request builders
- SSE delta parsing with ordered accumulation
- A streaming client for text translation and image/audio recognition
"""

from __future__ import annotations

from streamtranslate.exceptions import (
    ConfigurationError,
    TransportError,
    TranslationError,
    UpstreamError,
)

from .client import (
    StreamingChatClient,
    stream_recognize_audio,
    stream_recognize_image,
    stream_text,
)
from .models import (
    ChatRequest,
    EndpointConfig,
    LLMMessage,
    MessageRole,
    Modality,
    build_chat_completions_url,
)

__all__ = [
    "ChatRequest",
    # Exceptions
    "ConfigurationError",
    "EndpointConfig",
    "LLMMessage",
    "MessageRole",
    "Modality",
    # Client
    "StreamingChatClient",
    "TransportError",
    "TranslationError",
    "UpstreamError",
    "build_chat_completions_url",
    "stream_recognize_audio",
    "stream_recognize_image",
    "stream_text",
]
