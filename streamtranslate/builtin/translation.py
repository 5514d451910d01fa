"""Built-in, non-streaming translation endpoint."""

from __future__ import annotations

import json

import httpx

from streamtranslate.exceptions import TransportError
from streamtranslate.llm.prompts import build_translation_prompt
from streamtranslate.logging_utils import log_operation

DEFAULT_TRANSLATION_URL = "https://api.jkyai.top/API/depsek3.1.php"
DEFAULT_TRANSLATION_TIMEOUT = httpx.Timeout(20.0, connect=10.0)


def parse_translation_body(body: str) -> str:
    """
    Reduce a response body to the translated text.

    JSON object bodies yield ``result``, then ``text``; anything else,
    including JSON that fails to parse, is returned as-is.
    """
    body = body.strip()
    if not (body.startswith("{") and body.endswith("}")):
        return body

    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        return body

    if not isinstance(data, dict):
        return body
    for key in ("result", "text"):
        value = data.get(key)
        if isinstance(value, str):
            return value
    return body


class BuiltInTranslationService:
    """Translation through the bundled GET endpoint, no credentials required."""

    def __init__(
        self,
        url: str = DEFAULT_TRANSLATION_URL,
        http_client: httpx.AsyncClient | None = None,
        *,
        timeout: httpx.Timeout | None = None,
    ) -> None:
        self.url = url
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(
            timeout=timeout or DEFAULT_TRANSLATION_TIMEOUT
        )

    @log_operation("builtin_translate")
    async def translate(self, question: str, target_language_name: str) -> str:
        params = {
            "question": question,
            "type": "text",
            "system": build_translation_prompt(target_language_name),
        }
        try:
            response = await self.client.get(
                self.url, params=params, headers={"Accept": "text/plain"}
            )
        except httpx.HTTPError as e:
            raise TransportError(
                f"HTTP error during translation: {e!s}", endpoint=self.url
            ) from e

        return parse_translation_body(response.text)

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> BuiltInTranslationService:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
