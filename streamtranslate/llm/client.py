"""
Streaming chat client for OpenAI-compatible endpoints.

One request per call, one sequential line-reading loop. Text translation,
image recognition and audio recognition share the same control flow and
differ only in the messages they send.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import httpx

from streamtranslate import __version__
from streamtranslate.exceptions import TransportError, UpstreamError
from streamtranslate.logging_utils import operation_context

from .models import (
    ChatRequest,
    EndpointConfig,
    audio_recognition_request,
    image_recognition_request,
    text_translation_request,
)
from .streaming.parser import DeltaCallback, StreamingParser

DEFAULT_USER_AGENT = f"streamtranslate/{__version__}"
DEFAULT_STREAM_TIMEOUT = httpx.Timeout(60.0, connect=15.0)

# Upper bound on error body kept for UpstreamError
MAX_ERROR_EXCERPT = 500


async def _capture_lines(
    lines: AsyncIterator[str], sink: list[str]
) -> AsyncIterator[str]:
    """Pass lines through while keeping the start of the body for errors."""
    kept = 0
    async for line in lines:
        if kept < MAX_ERROR_EXCERPT:
            sink.append(line)
            kept += len(line)
        yield line


class StreamingChatClient:
    """HTTP client for streaming chat completions with delta callbacks."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        timeout: httpx.Timeout | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._owns_client = http_client is None
        self.client: httpx.AsyncClient = http_client or httpx.AsyncClient(
            timeout=timeout or DEFAULT_STREAM_TIMEOUT
        )
        self.user_agent = user_agent
        self.parser = StreamingParser()

    async def stream_text(
        self,
        endpoint_base: str,
        credential: str,
        model: str,
        target_language_name: str,
        source_text: str,
        on_delta: DeltaCallback | None = None,
    ) -> str:
        """Translate ``source_text`` into ``target_language_name``."""
        endpoint = EndpointConfig(endpoint_base, credential, model)
        endpoint.validate()
        request = text_translation_request(model, target_language_name, source_text)
        return await self._stream(endpoint, request, on_delta)

    async def stream_recognize_image(
        self,
        endpoint_base: str,
        credential: str,
        model: str,
        image_b64: str,
        image_media_type: str,
        on_delta: DeltaCallback | None = None,
    ) -> str:
        """Recognize the text in a base64-encoded image."""
        endpoint = EndpointConfig(endpoint_base, credential, model)
        endpoint.validate()
        request = image_recognition_request(model, image_b64, image_media_type)
        return await self._stream(endpoint, request, on_delta)

    async def stream_recognize_audio(
        self,
        endpoint_base: str,
        credential: str,
        model: str,
        audio_b64: str,
        audio_format: str,
        on_delta: DeltaCallback | None = None,
    ) -> str:
        """Transcribe base64-encoded audio."""
        endpoint = EndpointConfig(endpoint_base, credential, model)
        endpoint.validate()
        request = audio_recognition_request(model, audio_b64, audio_format)
        return await self._stream(endpoint, request, on_delta)

    def _headers(self, api_key: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
            "User-Agent": self.user_agent,
        }

    async def _stream(
        self,
        endpoint: EndpointConfig,
        request: ChatRequest,
        on_delta: DeltaCallback | None,
    ) -> str:
        url = endpoint.chat_completions_url
        log_context = {
            "endpoint": url,
            "model": request.model,
            "modality": request.modality.value,
        }

        async with operation_context("chat_stream", context=log_context) as op_logger:
            try:
                async with self.client.stream(
                    "POST",
                    url,
                    json=request.to_payload(),
                    headers=self._headers(endpoint.api_key),
                ) as response:
                    lines: AsyncIterator[str] = response.aiter_lines()
                    excerpt: list[str] = []
                    if not response.is_success:
                        lines = _capture_lines(lines, excerpt)

                    text, stats = await self.parser.consume_with_stats(lines, on_delta)
                    status_code = response.status_code

            except httpx.HTTPError as e:
                raise TransportError(
                    f"HTTP error during streaming: {e!s}",
                    endpoint=url,
                    model=request.model,
                ) from e

            op_logger.info(
                "Stream finished",
                status_code=status_code,
                deltas=stats.delta_lines,
                malformed_lines=stats.error_lines,
                completed=stats.completed,
                result_length=len(text),
            )

            if not httpx.codes.is_success(status_code):
                if not text:
                    raise UpstreamError(
                        f"Chat endpoint returned HTTP {status_code}",
                        status_code=status_code,
                        body_excerpt="\n".join(excerpt)[:MAX_ERROR_EXCERPT],
                        endpoint=url,
                        model=request.model,
                    )
                op_logger.warning(
                    "Non-success status with streamed content",
                    status_code=status_code,
                )

            return text

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> StreamingChatClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


async def stream_text(
    endpoint_base: str,
    credential: str,
    model: str,
    target_language_name: str,
    source_text: str,
    on_delta: DeltaCallback | None = None,
    *,
    timeout: httpx.Timeout | None = None,
) -> str:
    """One-shot :meth:`StreamingChatClient.stream_text` with its own client."""
    EndpointConfig(endpoint_base, credential, model).validate()
    async with StreamingChatClient(timeout=timeout) as client:
        return await client.stream_text(
            endpoint_base, credential, model, target_language_name, source_text, on_delta
        )


async def stream_recognize_image(
    endpoint_base: str,
    credential: str,
    model: str,
    image_b64: str,
    image_media_type: str,
    on_delta: DeltaCallback | None = None,
    *,
    timeout: httpx.Timeout | None = None,
) -> str:
    EndpointConfig(endpoint_base, credential, model).validate()
    async with StreamingChatClient(timeout=timeout) as client:
        return await client.stream_recognize_image(
            endpoint_base, credential, model, image_b64, image_media_type, on_delta
        )


async def stream_recognize_audio(
    endpoint_base: str,
    credential: str,
    model: str,
    audio_b64: str,
    audio_format: str,
    on_delta: DeltaCallback | None = None,
    *,
    timeout: httpx.Timeout | None = None,
) -> str:
    EndpointConfig(endpoint_base, credential, model).validate()
    async with StreamingChatClient(timeout=timeout) as client:
        return await client.stream_recognize_audio(
            endpoint_base, credential, model, audio_b64, audio_format, on_delta
        )
