#!/usr/bin/env python3
"""
Tests for TranslationService state handling with fake collaborators.
"""

import base64

import pytest

from streamtranslate import __version__
from streamtranslate.exceptions import ConfigurationError, TransportError
from streamtranslate.history import (
    AiConfig,
    InMemoryStore,
    SelectedLanguage,
    TranslationAppData,
    TranslationBackup,
    TranslationHistoryItem,
)
from streamtranslate.translation_service import (
    TranslationService,
    audio_format_from_mime,
)

AI_CONFIG = AiConfig(
    base_url="https://api.example.com",
    model="chat-model",
    api_key="sk-test",
    multi_modal_model="vision-model",
)


class FakeChatClient:
    """Streams fixed deltas and records each call."""

    def __init__(self, deltas=("Bon", "jour"), error=None):
        self.deltas = deltas
        self.error = error
        self.calls = []
        self.closed = False

    async def _emit(self, on_delta):
        if self.error is not None:
            raise self.error
        for delta in self.deltas:
            await on_delta(delta)
        return "".join(self.deltas)

    async def stream_text(self, base_url, api_key, model, target, text, on_delta=None):
        self.calls.append(("text", base_url, api_key, model, target, text))
        return await self._emit(on_delta)

    async def stream_recognize_image(self, base_url, api_key, model, b64, mime, on_delta=None):
        self.calls.append(("image", model, b64, mime))
        return await self._emit(on_delta)

    async def stream_recognize_audio(self, base_url, api_key, model, b64, fmt, on_delta=None):
        self.calls.append(("audio", model, b64, fmt))
        return await self._emit(on_delta)

    async def close(self):
        self.closed = True


class FakeTranslator:
    def __init__(self, result="Hola", error=None):
        self.result = result
        self.error = error
        self.calls = []
        self.closed = False

    async def translate(self, question, target_language_name):
        self.calls.append((question, target_language_name))
        if self.error is not None:
            raise self.error
        return self.result

    async def close(self):
        self.closed = True


class FakeRecognizer:
    def __init__(self, result="recognized"):
        self.result = result
        self.calls = []
        self.closed = False

    async def recognize_image(self, image_bytes, filename="image.jpg"):
        self.calls.append(("image", image_bytes, filename))
        return self.result

    async def recognize_audio(self, audio_bytes, filename="audio.m4a"):
        self.calls.append(("audio", audio_bytes, filename))
        return self.result

    async def close(self):
        self.closed = True


async def make_service(data=None, *, chat=None, translator=None, recognizer=None, overrides=None):
    store = InMemoryStore(data)
    service = TranslationService(
        TranslationService.TranslationServiceConfig(
            store=store,
            chat_client=chat or FakeChatClient(),
            builtin_translator=translator or FakeTranslator(),
            recognizer=recognizer or FakeRecognizer(),
            ai_overrides=overrides or {},
        )
    )
    await service.initialize()
    return service, store


def ai_data(**updates):
    return TranslationAppData(ai_config_enabled=True, ai_config=AI_CONFIG).model_copy(
        update=updates
    )


class TestTranslate:
    """Test endpoint selection and history recording."""

    @pytest.mark.asyncio
    async def test_builtin_translation_when_ai_disabled(self):
        translator = FakeTranslator(result="Hola")
        chat = FakeChatClient()
        service, store = await make_service(
            TranslationAppData(
                selected_language=SelectedLanguage(code="es", name="Spanish")
            ),
            chat=chat,
            translator=translator,
        )

        result = await service.translate("Hello")

        assert result == "Hola"
        assert translator.calls == [("Hello", "Spanish")]
        assert chat.calls == []
        assert service.state.translation_result == "Hola"
        assert service.state.is_translating is False

        history = (await store.load()).translation_history
        assert len(history) == 1
        assert history[0].source_text == "Hello"
        assert history[0].translated_text == "Hola"
        assert history[0].target_language == "Spanish"

    @pytest.mark.asyncio
    async def test_streaming_translation_when_ai_enabled(self):
        chat = FakeChatClient(deltas=("Bon", "jour"))
        service, _ = await make_service(
            ai_data(selected_language=SelectedLanguage(code="fr", name="French")),
            chat=chat,
        )
        seen = []

        def on_delta(delta):
            seen.append((delta, service.state.translation_result))

        result = await service.translate("Hello", on_delta=on_delta)

        assert result == "Bonjour"
        assert seen == [("Bon", "Bon"), ("jour", "Bonjour")]
        assert chat.calls == [
            ("text", "https://api.example.com", "sk-test", "chat-model", "French", "Hello")
        ]

    @pytest.mark.asyncio
    async def test_new_history_items_go_first(self):
        service, store = await make_service()

        await service.translate("first")
        await service.translate("second")

        sources = [item.source_text for item in (await store.load()).translation_history]
        assert sources == ["second", "first"]
        assert [item.source_text for item in service.state.translation_history] == sources

    @pytest.mark.asyncio
    async def test_missing_model_sets_failure_message(self):
        chat = FakeChatClient()
        service, store = await make_service(
            ai_data(ai_config=AI_CONFIG.model_copy(update={"model": ""})), chat=chat
        )

        with pytest.raises(ConfigurationError):
            await service.translate("Hello")

        assert chat.calls == []
        assert service.state.translation_result.startswith("Translation failed:")
        assert "model" in service.state.translation_result
        assert service.state.is_translating is False
        assert (await store.load()).translation_history == []

    @pytest.mark.asyncio
    async def test_transport_failure_is_not_recorded(self):
        translator = FakeTranslator(error=TransportError("connection refused"))
        service, store = await make_service(translator=translator)

        with pytest.raises(TransportError):
            await service.translate("Hello")

        assert service.state.translation_result == "Translation failed: connection refused"
        assert (await store.load()).translation_history == []

    @pytest.mark.asyncio
    async def test_environment_overrides_apply(self):
        chat = FakeChatClient()
        service, _ = await make_service(
            ai_data(), chat=chat, overrides={"model": "override-model"}
        )

        await service.translate("Hello")

        assert chat.calls[0][3] == "override-model"
        assert service.state.ai_config.model == "chat-model"


class TestRecognition:
    """Test OCR/ASR routing between multimodal streaming and built-in uploads."""

    @pytest.mark.asyncio
    async def test_builtin_ocr_by_default(self):
        recognizer = FakeRecognizer(result="menu text")
        service, _ = await make_service(ai_data(), recognizer=recognizer)

        result = await service.recognize_image(b"img", "image/png", "menu.png")

        assert result == "menu text"
        assert recognizer.calls == [("image", b"img", "menu.png")]
        assert service.state.recognition_result == "menu text"
        assert service.state.is_recognizing is False

    @pytest.mark.asyncio
    async def test_multimodal_image(self):
        chat = FakeChatClient(deltas=("Me", "nu"))
        recognizer = FakeRecognizer()
        service, _ = await make_service(
            ai_data(multi_modal_enabled=True), chat=chat, recognizer=recognizer
        )

        result = await service.recognize_image(b"img", "image/png")

        assert result == "Menu"
        assert service.state.recognition_result == "Menu"
        assert chat.calls == [
            ("image", "vision-model", base64.b64encode(b"img").decode(), "image/png")
        ]
        assert recognizer.calls == []

    @pytest.mark.asyncio
    async def test_multimodal_audio_format_from_mime(self):
        chat = FakeChatClient(deltas=("hi",))
        service, _ = await make_service(ai_data(multi_modal_enabled=True), chat=chat)

        await service.recognize_audio(b"wav", "audio/wav")
        await service.recognize_audio(b"mp3")

        assert chat.calls[0][3] == "wav"
        assert chat.calls[1][3] == "mpeg"

    @pytest.mark.asyncio
    async def test_multimodal_requires_ai_enabled(self):
        chat = FakeChatClient()
        recognizer = FakeRecognizer(result="upload")
        service, _ = await make_service(
            TranslationAppData(ai_config=AI_CONFIG, multi_modal_enabled=True),
            chat=chat,
            recognizer=recognizer,
        )

        assert await service.recognize_audio(b"a", "audio/mp4") == "upload"
        assert chat.calls == []

    @pytest.mark.asyncio
    async def test_missing_multimodal_model(self):
        config = AI_CONFIG.model_copy(update={"multi_modal_model": " "})
        service, _ = await make_service(
            ai_data(ai_config=config, multi_modal_enabled=True)
        )

        with pytest.raises(ConfigurationError, match="multimodal model"):
            await service.recognize_image(b"img")

        assert service.state.recognition_result.startswith("Recognition failed:")
        assert service.state.is_recognizing is False

    def test_audio_format_from_mime(self):
        assert audio_format_from_mime("audio/wav") == "wav"
        assert audio_format_from_mime("audio/mp4") == "mp4"
        assert audio_format_from_mime("garbage") == "mpeg"


class TestSettings:
    """Test language, AI settings and history operations."""

    @pytest.mark.asyncio
    async def test_disabling_ai_disables_multimodal(self):
        service, store = await make_service(ai_data(multi_modal_enabled=True))

        await service.update_ai_config_enabled(False)

        stored = await store.load()
        assert stored.ai_config_enabled is False
        assert stored.multi_modal_enabled is False
        assert service.state.multi_modal_enabled is False
        assert service.uses_multimodal is False

    @pytest.mark.asyncio
    async def test_enabling_ai_keeps_multimodal_setting(self):
        service, store = await make_service(TranslationAppData(multi_modal_enabled=True))

        await service.update_ai_config_enabled(True)

        assert (await store.load()).multi_modal_enabled is True

    @pytest.mark.asyncio
    async def test_custom_language_lifecycle(self):
        service, store = await make_service()

        language = await service.add_custom_language("  Klingon ")
        assert language.name == "Klingon"
        assert language.code.startswith("custom_")
        assert service.available_languages()[-1].code == language.code

        await service.edit_custom_language(language.code, "tlhIngan Hol")
        assert (await store.load()).custom_languages[0].name == "tlhIngan Hol"

        await service.delete_custom_language(language.code)
        assert (await store.load()).custom_languages == []
        assert len(service.available_languages()) == 10

    @pytest.mark.asyncio
    async def test_blank_custom_language_rejected(self):
        service, store = await make_service()

        with pytest.raises(ValueError):
            await service.add_custom_language("   ")

        assert store.save_count == 0

    @pytest.mark.asyncio
    async def test_select_language_persists(self):
        service, store = await make_service()
        japanese = SelectedLanguage(code="ja", name="Japanese")

        await service.select_language(japanese)

        assert (await store.load()).selected_language == japanese
        assert service.state.selected_language == japanese

    @pytest.mark.asyncio
    async def test_update_ai_config(self):
        service, store = await make_service()

        await service.update_ai_config(AI_CONFIG)

        assert (await store.load()).ai_config == AI_CONFIG

    @pytest.mark.asyncio
    async def test_delete_history_item(self):
        history = [
            TranslationHistoryItem(
                id=item_id,
                source_text=text,
                translated_text=text.upper(),
                target_language="English",
                timestamp="2024/01/02 03:04:05",
            )
            for item_id, text in ((2, "drop"), (1, "keep"))
        ]
        service, store = await make_service(TranslationAppData(translation_history=history))

        await service.delete_history_item(2)

        assert [item.source_text for item in (await store.load()).translation_history] == ["keep"]
        assert [item.id for item in service.state.translation_history] == [1]

    @pytest.mark.asyncio
    async def test_clear_results(self):
        service, _ = await make_service()
        await service.translate("Hello")
        service.clear_translation_result()
        assert service.state.translation_result == ""

        await service.recognize_image(b"x")
        service.clear_recognition_result()
        assert service.state.recognition_result == ""


class TestBackup:
    """Test export and import of the whole document."""

    @pytest.mark.asyncio
    async def test_export_contains_state(self):
        service, _ = await make_service(ai_data())
        await service.translate("Hello")

        backup = service.export_backup()

        assert backup.version == __version__
        assert backup.data.ai_config == AI_CONFIG
        assert backup.data.translation_history[0].source_text == "Hello"
        assert "data" in backup.model_dump(by_alias=True)

    @pytest.mark.asyncio
    async def test_import_replaces_document(self):
        service, store = await make_service(ai_data())
        imported = TranslationAppData(
            selected_language=SelectedLanguage(code="ko", name="Korean")
        )

        await service.import_backup(
            TranslationBackup(version="1.0.0", timestamp="2024-01-01T00:00:00", data=imported)
        )

        assert await store.load() == imported
        assert service.state.ai_config_enabled is False
        assert service.state.selected_language.name == "Korean"

    @pytest.mark.asyncio
    async def test_close_closes_collaborators(self):
        chat, translator, recognizer = FakeChatClient(), FakeTranslator(), FakeRecognizer()
        service, _ = await make_service(chat=chat, translator=translator, recognizer=recognizer)

        await service.close()

        assert chat.closed and translator.closed and recognizer.closed
