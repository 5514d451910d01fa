"""
Built-in OCR and ASR endpoints.

Both endpoints take a multipart upload with a single ``file`` field and
answer with a JSON object. The recognized text can sit in several places
depending on the engine, so the body is searched in a fixed order.
"""

from __future__ import annotations

import json
from typing import Any

import httpx

from streamtranslate.exceptions import TransportError
from streamtranslate.logging_utils import log_operation

DEFAULT_OCR_URL = "https://api.pearktrue.cn/api/ocr/"
DEFAULT_ASR_URL = "https://api.pearktrue.cn/api/audiocr/"
DEFAULT_RECOGNITION_TIMEOUT = httpx.Timeout(60.0, connect=15.0)
SUCCESS_CODE = "200"


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _parsed_text(container: dict[str, Any]) -> str:
    value = container.get("ParsedText")
    if isinstance(value, str):
        return normalize_newlines(value).strip()
    return ""


def _text_lines(container: dict[str, Any]) -> str:
    lines = container.get("TextLine")
    if not isinstance(lines, list):
        return ""
    return "\n".join(
        normalize_newlines(line) if isinstance(line, str) else ""
        for line in lines
    ).strip()


def _plain_field(container: dict[str, Any], key: str) -> str:
    value = container.get(key)
    if isinstance(value, str):
        return normalize_newlines(value).strip()
    return ""


def parse_recognition_text(body: str) -> str:
    """
    Extract the recognized text from an OCR/ASR response body.

    Search order: ``data.ParsedText``, ``data.TextLine``, ``ParsedText``,
    ``TextLine``, ``text``, ``result``. When none of them holds text and
    ``code`` is not the success code, ``msg`` is returned. Otherwise, and for
    bodies that are not JSON objects, the raw body comes back.
    """
    try:
        root = json.loads(body)
    except json.JSONDecodeError:
        return body
    if not isinstance(root, dict):
        return body

    data = root.get("data")
    if isinstance(data, dict):
        from_data = _parsed_text(data) or _text_lines(data)
        if from_data:
            return from_data

    for extract in (
        _parsed_text,
        _text_lines,
        lambda obj: _plain_field(obj, "text"),
        lambda obj: _plain_field(obj, "result"),
    ):
        text = extract(root)
        if text:
            return text

    code = root.get("code")
    msg = root.get("msg")
    if (
        code is not None
        and str(code) != SUCCESS_CODE
        and isinstance(msg, str)
        and msg.strip()
    ):
        return msg.strip()

    return body


class RecognitionService:
    """Image OCR and audio ASR through the bundled upload endpoints."""

    def __init__(
        self,
        ocr_url: str = DEFAULT_OCR_URL,
        asr_url: str = DEFAULT_ASR_URL,
        http_client: httpx.AsyncClient | None = None,
        *,
        timeout: httpx.Timeout | None = None,
    ) -> None:
        self.ocr_url = ocr_url
        self.asr_url = asr_url
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(
            timeout=timeout or DEFAULT_RECOGNITION_TIMEOUT
        )

    @log_operation("builtin_ocr")
    async def recognize_image(
        self, image_bytes: bytes, filename: str = "image.jpg"
    ) -> str:
        return await self._upload(self.ocr_url, image_bytes, filename)

    @log_operation("builtin_asr")
    async def recognize_audio(
        self, audio_bytes: bytes, filename: str = "audio.m4a"
    ) -> str:
        return await self._upload(self.asr_url, audio_bytes, filename)

    async def _upload(self, url: str, content: bytes, filename: str) -> str:
        try:
            response = await self.client.post(
                url, files={"file": (filename, content)}
            )
        except httpx.HTTPError as e:
            raise TransportError(
                f"HTTP error during recognition upload: {e!s}", endpoint=url
            ) from e

        return parse_recognition_text(response.text.strip())

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> RecognitionService:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
