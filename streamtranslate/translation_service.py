"""
Translation Service for streamtranslate

This module holds the application state and the operations that change it:
- Text translation through the built-in endpoint or a custom streaming one
- Image/audio recognition through the built-in uploads or multimodal streaming
- History, language and AI settings management

State lives in an explicit ``AppState`` object. Every change to a persisted
field is written through the ``AppDataStore`` as a whole document.
"""

from __future__ import annotations

import base64
import inspect
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from streamtranslate import __version__
from streamtranslate.exceptions import ConfigurationError
from streamtranslate.history.models import (
    DEFAULT_LANGUAGE,
    PREDEFINED_LANGUAGES,
    AiConfig,
    CustomLanguage,
    SelectedLanguage,
    TranslationAppData,
    TranslationBackup,
    TranslationHistoryItem,
)
from streamtranslate.llm.models import EndpointConfig

logger = structlog.get_logger(__name__)

HISTORY_TIMESTAMP_FORMAT = "%Y/%m/%d %H:%M:%S"
DEFAULT_IMAGE_MIME = "image/jpeg"
DEFAULT_AUDIO_MIME = "audio/mpeg"
DEFAULT_IMAGE_FILENAME = "image.jpg"
DEFAULT_AUDIO_FILENAME = "audio.mp3"
DEFAULT_AUDIO_FORMAT = "mpeg"

DeltaListener = Callable[[str], Awaitable[None] | None]


def _now_millis() -> int:
    return int(time.time() * 1000)


def audio_format_from_mime(mime_type: str) -> str:
    """``audio/wav`` -> ``wav``; no subtype falls back to ``mpeg``."""
    _, sep, subtype = mime_type.partition("/")
    return subtype if sep else DEFAULT_AUDIO_FORMAT


@dataclass
class AppState:
    """Everything the front end renders, persisted or not."""
    translation_history: list[TranslationHistoryItem] = field(default_factory=list)
    custom_languages: list[CustomLanguage] = field(default_factory=list)
    selected_language: SelectedLanguage = field(
        default_factory=lambda: DEFAULT_LANGUAGE.model_copy()
    )
    ai_config_enabled: bool = False
    ai_config: AiConfig = field(default_factory=AiConfig)
    multi_modal_enabled: bool = False

    is_translating: bool = False
    translation_result: str = ""
    is_recognizing: bool = False
    recognition_result: str = ""

    def apply(self, data: TranslationAppData) -> None:
        """Replace the persisted fields with ``data``."""
        self.translation_history = list(data.translation_history)
        self.custom_languages = list(data.custom_languages)
        self.selected_language = data.selected_language
        self.ai_config_enabled = data.ai_config_enabled
        self.ai_config = data.ai_config
        self.multi_modal_enabled = data.multi_modal_enabled

    def to_document(self) -> TranslationAppData:
        return TranslationAppData(
            translation_history=list(self.translation_history),
            custom_languages=list(self.custom_languages),
            selected_language=self.selected_language,
            ai_config_enabled=self.ai_config_enabled,
            ai_config=self.ai_config,
            multi_modal_enabled=self.multi_modal_enabled,
        )


class TranslationService:
    """
    Application orchestrator:
    1. Picks the built-in or the custom endpoint from the current settings
    2. Streams the result into ``state`` as it arrives
    3. Records translations in the persisted history
    """

    class TranslationServiceConfig(BaseModel):
        model_config = ConfigDict(arbitrary_types_allowed=True)

        store: Any  # AppDataStore
        chat_client: Any  # StreamingChatClient
        builtin_translator: Any  # BuiltInTranslationService
        recognizer: Any  # RecognitionService
        ai_overrides: dict[str, str] = Field(default_factory=dict)

    def __init__(self, service_config: TranslationService.TranslationServiceConfig):
        self.store = service_config.store
        self.chat_client = service_config.chat_client
        self.builtin_translator = service_config.builtin_translator
        self.recognizer = service_config.recognizer
        self.ai_overrides = service_config.ai_overrides
        self.state = AppState()

    async def initialize(self) -> None:
        """Load the persisted document into state."""
        self.state.apply(await self.store.load())

    # ------------------------------------------------------------------ #
    # Translation                                                        #
    # ------------------------------------------------------------------ #

    def effective_ai_config(self) -> AiConfig:
        """Stored AI settings with environment overrides applied."""
        if not self.ai_overrides:
            return self.state.ai_config
        return self.state.ai_config.model_copy(update=self.ai_overrides)

    async def translate(
        self, source_text: str, on_delta: DeltaListener | None = None
    ) -> str:
        """
        Translate ``source_text`` into the selected language.

        Uses the custom streaming endpoint when AI settings are enabled,
        otherwise the built-in endpoint. On success the pair is added to the
        front of the history.
        """
        target = self.state.selected_language.name
        self.state.is_translating = True
        try:
            if self.state.ai_config_enabled:
                translated = await self._custom_api_translate(source_text, target, on_delta)
            else:
                translated = await self.builtin_translator.translate(source_text, target)
            self.state.translation_result = translated
            await self._add_to_history(source_text, translated, target)
            return translated
        except Exception as e:
            self.state.translation_result = f"Translation failed: {e}"
            logger.error(
                "Translation failed",
                error_type=type(e).__name__,
                error_message=str(e),
                custom_endpoint=self.state.ai_config_enabled,
            )
            raise
        finally:
            self.state.is_translating = False

    async def _custom_api_translate(
        self, source_text: str, target: str, on_delta: DeltaListener | None
    ) -> str:
        cfg = self.effective_ai_config()
        endpoint = EndpointConfig(cfg.base_url, cfg.api_key, cfg.model)
        endpoint.validate()

        self.state.translation_result = ""

        async def append(delta: str) -> None:
            self.state.translation_result += delta
            await _notify(on_delta, delta)

        return await self.chat_client.stream_text(
            endpoint.base_url,
            endpoint.api_key,
            endpoint.model,
            target,
            source_text,
            on_delta=append,
        )

    async def _add_to_history(
        self, source_text: str, translated_text: str, target_language: str
    ) -> None:
        item = TranslationHistoryItem(
            id=_now_millis(),
            source_text=source_text,
            translated_text=translated_text,
            target_language=target_language,
            timestamp=datetime.now().strftime(HISTORY_TIMESTAMP_FORMAT),
        )
        self.state.translation_history = [item, *self.state.translation_history]
        await self.store.update(
            lambda app: app.model_copy(
                update={"translation_history": [item, *app.translation_history]}
            )
        )

    # ------------------------------------------------------------------ #
    # Recognition                                                        #
    # ------------------------------------------------------------------ #

    def _multimodal_endpoint(self) -> EndpointConfig:
        cfg = self.effective_ai_config()
        if not cfg.multi_modal_model.strip():
            raise ConfigurationError(
                "multi_modal_model", "Custom AI multimodal model is not configured"
            )
        endpoint = EndpointConfig(cfg.base_url, cfg.api_key, cfg.multi_modal_model)
        endpoint.validate()
        return endpoint

    @property
    def uses_multimodal(self) -> bool:
        return self.state.ai_config_enabled and self.state.multi_modal_enabled

    async def recognize_image(
        self,
        image_bytes: bytes,
        mime_type: str | None = None,
        filename: str | None = None,
        on_delta: DeltaListener | None = None,
    ) -> str:
        """OCR through multimodal streaming when enabled, else the built-in upload."""
        mime = mime_type or DEFAULT_IMAGE_MIME

        async def stream(endpoint: EndpointConfig, append: DeltaListener) -> str:
            return await self.chat_client.stream_recognize_image(
                endpoint.base_url,
                endpoint.api_key,
                endpoint.model,
                base64.b64encode(image_bytes).decode("ascii"),
                mime,
                on_delta=append,
            )

        return await self._recognize(
            stream,
            lambda: self.recognizer.recognize_image(
                image_bytes, filename or DEFAULT_IMAGE_FILENAME
            ),
            on_delta,
        )

    async def recognize_audio(
        self,
        audio_bytes: bytes,
        mime_type: str | None = None,
        filename: str | None = None,
        on_delta: DeltaListener | None = None,
    ) -> str:
        """ASR through multimodal streaming when enabled, else the built-in upload."""
        audio_format = audio_format_from_mime(mime_type or DEFAULT_AUDIO_MIME)

        async def stream(endpoint: EndpointConfig, append: DeltaListener) -> str:
            return await self.chat_client.stream_recognize_audio(
                endpoint.base_url,
                endpoint.api_key,
                endpoint.model,
                base64.b64encode(audio_bytes).decode("ascii"),
                audio_format,
                on_delta=append,
            )

        return await self._recognize(
            stream,
            lambda: self.recognizer.recognize_audio(
                audio_bytes, filename or DEFAULT_AUDIO_FILENAME
            ),
            on_delta,
        )

    async def _recognize(
        self,
        stream: Callable[[EndpointConfig, DeltaListener], Awaitable[str]],
        upload: Callable[[], Awaitable[str]],
        on_delta: DeltaListener | None,
    ) -> str:
        self.state.recognition_result = ""
        self.state.is_recognizing = True
        try:
            if self.uses_multimodal:
                endpoint = self._multimodal_endpoint()

                async def append(delta: str) -> None:
                    self.state.recognition_result += delta
                    await _notify(on_delta, delta)

                return await stream(endpoint, append)

            result = await upload()
            self.state.recognition_result = result
            return result
        except Exception as e:
            self.state.recognition_result = f"Recognition failed: {e}"
            logger.error(
                "Recognition failed",
                error_type=type(e).__name__,
                error_message=str(e),
                multimodal=self.uses_multimodal,
            )
            raise
        finally:
            self.state.is_recognizing = False

    # ------------------------------------------------------------------ #
    # Settings, languages and history                                    #
    # ------------------------------------------------------------------ #

    def available_languages(self) -> list[SelectedLanguage]:
        """Predefined languages followed by the user's custom ones."""
        custom = [
            SelectedLanguage(code=language.code, name=language.name)
            for language in self.state.custom_languages
        ]
        return [*PREDEFINED_LANGUAGES, *custom]

    async def select_language(self, language: SelectedLanguage) -> None:
        self.state.selected_language = language
        await self.store.update(
            lambda app: app.model_copy(update={"selected_language": language})
        )

    async def add_custom_language(self, language_name: str) -> CustomLanguage:
        name = language_name.strip()
        if not name:
            raise ValueError("Language name must not be blank")

        language = CustomLanguage(code=f"custom_{_now_millis()}", name=name)
        self.state.custom_languages = [*self.state.custom_languages, language]
        await self.store.update(
            lambda app: app.model_copy(
                update={"custom_languages": [*app.custom_languages, language]}
            )
        )
        return language

    async def delete_custom_language(self, language_code: str) -> None:
        def without(languages: list[CustomLanguage]) -> list[CustomLanguage]:
            return [language for language in languages if language.code != language_code]

        self.state.custom_languages = without(self.state.custom_languages)
        await self.store.update(
            lambda app: app.model_copy(
                update={"custom_languages": without(app.custom_languages)}
            )
        )

    async def edit_custom_language(self, language_code: str, new_name: str) -> None:
        def renamed(languages: list[CustomLanguage]) -> list[CustomLanguage]:
            return [
                language.model_copy(update={"name": new_name})
                if language.code == language_code
                else language
                for language in languages
            ]

        self.state.custom_languages = renamed(self.state.custom_languages)
        await self.store.update(
            lambda app: app.model_copy(
                update={"custom_languages": renamed(app.custom_languages)}
            )
        )

    async def update_multimodal_enabled(self, enabled: bool) -> None:
        self.state.multi_modal_enabled = enabled
        await self.store.update(
            lambda app: app.model_copy(update={"multi_modal_enabled": enabled})
        )

    async def update_ai_config_enabled(self, enabled: bool) -> None:
        """Turning custom AI off also turns multimodal recognition off."""
        self.state.ai_config_enabled = enabled
        if not enabled:
            self.state.multi_modal_enabled = False

        def apply(app: TranslationAppData) -> TranslationAppData:
            return app.model_copy(
                update={
                    "ai_config_enabled": enabled,
                    "multi_modal_enabled": app.multi_modal_enabled if enabled else False,
                }
            )

        await self.store.update(apply)

    async def update_ai_config(self, config: AiConfig) -> None:
        self.state.ai_config = config
        await self.store.update(lambda app: app.model_copy(update={"ai_config": config}))

    async def delete_history_item(self, item_id: int) -> None:
        self.state.translation_history = [
            item for item in self.state.translation_history if item.id != item_id
        ]
        await self.store.update(
            lambda app: app.model_copy(
                update={
                    "translation_history": [
                        item for item in app.translation_history if item.id != item_id
                    ]
                }
            )
        )

    def clear_translation_result(self) -> None:
        self.state.translation_result = ""

    def clear_recognition_result(self) -> None:
        self.state.recognition_result = ""

    # ------------------------------------------------------------------ #
    # Backup                                                             #
    # ------------------------------------------------------------------ #

    def export_backup(self) -> TranslationBackup:
        return TranslationBackup(
            version=__version__,
            timestamp=datetime.now(UTC).isoformat(),
            data=self.state.to_document(),
        )

    async def import_backup(self, backup: TranslationBackup) -> None:
        """Replace the whole persisted document with the backup's data."""
        await self.store.save(backup.data)
        self.state.apply(backup.data)

    async def close(self) -> None:
        """Close the HTTP clients owned by the collaborators."""
        for collaborator in (self.chat_client, self.builtin_translator, self.recognizer):
            await collaborator.close()


async def _notify(listener: DeltaListener | None, delta: str) -> None:
    if listener is None:
        return
    result = listener(delta)
    if inspect.isawaitable(result):
        await result
