"""
Request dataclasses for OpenAI-compatible chat completion calls.

This module provides:
- Endpoint configuration with fail-fast validation
- Base URL normalization to the chat completions endpoint
- Message and payload builders for text, image and audio requests
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from streamtranslate.exceptions import ConfigurationError

from .prompts import (
    AUDIO_RECOGNITION_PROMPT,
    IMAGE_RECOGNITION_PROMPT,
    build_translation_prompt,
)

CHAT_COMPLETIONS_PATH = "/chat/completions"
API_VERSION_PATH = "/v1"


class MessageRole(Enum):
    """OpenAI-compatible message roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Modality(Enum):
    """What a streaming call sends to the model."""
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"


def build_chat_completions_url(base_url: str) -> str:
    """Normalize a user-supplied base URL to the chat completions endpoint."""
    trimmed = base_url.strip().rstrip("/")
    if trimmed.endswith(CHAT_COMPLETIONS_PATH):
        return trimmed
    if trimmed.endswith(API_VERSION_PATH):
        return trimmed + CHAT_COMPLETIONS_PATH
    return trimmed + API_VERSION_PATH + CHAT_COMPLETIONS_PATH


@dataclass(frozen=True)
class EndpointConfig:
    """Where to send a request and how to authenticate it."""
    base_url: str
    api_key: str
    model: str

    def validate(self) -> None:
        """Raise ConfigurationError for the first blank required field."""
        if not self.base_url.strip():
            raise ConfigurationError("base_url", "Custom AI base URL is not configured")
        if not self.api_key.strip():
            raise ConfigurationError("api_key", "Custom AI API key is not configured")
        if not self.model.strip():
            raise ConfigurationError("model", "Custom AI model is not configured")

    @property
    def chat_completions_url(self) -> str:
        return build_chat_completions_url(self.base_url)


@dataclass(frozen=True)
class LLMMessage:
    """OpenAI-compatible message structure."""
    role: MessageRole
    content: str | list[dict[str, Any]]

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role.value, "content": self.content}


@dataclass
class ChatRequest:
    """A streaming chat completion request."""
    model: str
    modality: Modality
    messages: list[LLMMessage] = field(default_factory=list)
    stream: bool = True

    def to_payload(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "stream": self.stream,
            "messages": [message.to_dict() for message in self.messages],
        }


def text_translation_request(
    model: str, target_language_name: str, source_text: str
) -> ChatRequest:
    return ChatRequest(
        model=model,
        modality=Modality.TEXT,
        messages=[
            LLMMessage(MessageRole.SYSTEM, build_translation_prompt(target_language_name)),
            LLMMessage(MessageRole.USER, source_text),
        ],
    )


def image_recognition_request(
    model: str, image_b64: str, image_media_type: str
) -> ChatRequest:
    """Image goes in as a data URL next to the recognition instruction."""
    data_url = f"data:{image_media_type};base64,{image_b64}"
    content = [
        {"type": "text", "text": IMAGE_RECOGNITION_PROMPT},
        {"type": "image_url", "image_url": {"url": data_url}},
    ]
    return ChatRequest(
        model=model,
        modality=Modality.IMAGE,
        messages=[LLMMessage(MessageRole.USER, content)],
    )


def audio_recognition_request(
    model: str, audio_b64: str, audio_format: str
) -> ChatRequest:
    """Audio goes in as a typed ``input_audio`` object."""
    content = [
        {"type": "input_text", "text": AUDIO_RECOGNITION_PROMPT},
        {
            "type": "input_audio",
            "audio": {"data": audio_b64, "format": audio_format},
        },
    ]
    return ChatRequest(
        model=model,
        modality=Modality.AUDIO,
        messages=[LLMMessage(MessageRole.USER, content)],
    )
