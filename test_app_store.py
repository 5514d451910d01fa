#!/usr/bin/env python3
"""
Tests for the application document stores.
"""

import asyncio
import json
import tempfile
from pathlib import Path

import pytest
from filelock import FileLock

from streamtranslate.history import (
    AiConfig,
    CustomLanguage,
    InMemoryStore,
    JsonFileStore,
    SelectedLanguage,
    TranslationAppData,
    TranslationHistoryItem,
)
from streamtranslate.history.store import async_file_lock


def history_item(item_id, text="Hello"):
    return TranslationHistoryItem(
        id=item_id,
        source_text=text,
        translated_text=f"{text}!",
        target_language="French",
        timestamp="2024/01/02 03:04:05",
    )


@pytest.fixture
def store_path():
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir) / "nested" / "translation_app_data.json"


class TestJsonFileStore:
    """Test the file-backed document store."""

    @pytest.mark.asyncio
    async def test_missing_file_loads_defaults(self, store_path):
        data = await JsonFileStore(str(store_path)).load()

        assert data == TranslationAppData()
        assert data.selected_language.code == "en"
        assert data.ai_config_enabled is False

    @pytest.mark.asyncio
    async def test_blank_and_corrupt_files_load_defaults(self, store_path):
        store_path.parent.mkdir(parents=True)
        store = JsonFileStore(str(store_path))

        store_path.write_text("   ")
        assert await store.load() == TranslationAppData()

        store_path.write_text('{"translationHistory": "not a list"}')
        assert await store.load() == TranslationAppData()

    @pytest.mark.asyncio
    async def test_undecodable_file_loads_defaults(self, store_path):
        store_path.parent.mkdir(parents=True)
        store_path.write_bytes(b"\xff\xfe\x00garbage")

        assert await JsonFileStore(str(store_path)).load() == TranslationAppData()

    @pytest.mark.asyncio
    async def test_undecodable_file_is_replaced_on_update(self, store_path):
        store_path.parent.mkdir(parents=True)
        store_path.write_bytes(b"\xff\xfe\x00garbage")
        store = JsonFileStore(str(store_path), fsync_enabled=False)

        await store.update(
            lambda app: app.model_copy(update={"ai_config_enabled": True})
        )

        assert (await store.load()).ai_config_enabled is True

    @pytest.mark.asyncio
    async def test_save_then_load(self, store_path):
        store = JsonFileStore(str(store_path), fsync_enabled=False)
        data = TranslationAppData(
            translation_history=[history_item(2), history_item(1)],
            custom_languages=[CustomLanguage(code="custom_1", name="Klingon")],
            selected_language=SelectedLanguage(code="custom_1", name="Klingon"),
            ai_config_enabled=True,
            ai_config=AiConfig(base_url="https://api.example.com", model="m"),
            multi_modal_enabled=True,
        )

        await store.save(data)

        assert await JsonFileStore(str(store_path)).load() == data
        assert not Path(f"{store_path}.tmp").exists()

    @pytest.mark.asyncio
    async def test_file_uses_camel_case_keys(self, store_path):
        store = JsonFileStore(str(store_path))
        await store.save(
            TranslationAppData(
                translation_history=[history_item(7)],
                ai_config=AiConfig(multi_modal_model="vision"),
            )
        )

        raw = json.loads(store_path.read_text(encoding="utf-8"))
        assert set(raw) == {
            "translationHistory",
            "customLanguages",
            "selectedLanguage",
            "aiConfigEnabled",
            "aiConfig",
            "multiModalEnabled",
        }
        assert raw["translationHistory"][0]["sourceText"] == "Hello"
        assert raw["aiConfig"]["multiModalModel"] == "vision"

    @pytest.mark.asyncio
    async def test_unknown_and_missing_keys(self, store_path):
        store_path.parent.mkdir(parents=True)
        store_path.write_text(
            json.dumps({"aiConfigEnabled": True, "themeColor": "blue"}),
            encoding="utf-8",
        )

        data = await JsonFileStore(str(store_path)).load()

        assert data.ai_config_enabled is True
        assert data.translation_history == []
        assert data.selected_language == SelectedLanguage(code="en", name="English")

    @pytest.mark.asyncio
    async def test_concurrent_updates_are_serialized(self, store_path):
        store = JsonFileStore(str(store_path), fsync_enabled=False)

        async def add(item_id):
            await store.update(
                lambda app: app.model_copy(
                    update={
                        "translation_history": [
                            history_item(item_id),
                            *app.translation_history,
                        ]
                    }
                )
            )

        await asyncio.gather(*(add(i) for i in range(10)))

        data = await store.load()
        assert sorted(item.id for item in data.translation_history) == list(range(10))

    @pytest.mark.asyncio
    async def test_lock_timeout(self, store_path):
        store_path.parent.mkdir(parents=True)
        holder = FileLock(f"{store_path}.lock", thread_local=False)
        store = JsonFileStore(str(store_path), lock_timeout=0.1)

        with holder:
            with pytest.raises(TimeoutError):
                await store.load()


class TestAsyncFileLock:
    """Test the executor-backed file lock helper."""

    @pytest.mark.asyncio
    async def test_acquire_and_release(self, store_path):
        store_path.parent.mkdir(parents=True)
        file_lock = FileLock(f"{store_path}.lock", timeout=1, thread_local=False)

        async with async_file_lock(file_lock):
            assert file_lock.is_locked

        assert not file_lock.is_locked


class TestInMemoryStore:
    """Test the in-memory store used for tests and dry runs."""

    @pytest.mark.asyncio
    async def test_returns_copies(self):
        store = InMemoryStore()
        loaded = await store.load()
        loaded.translation_history.append(history_item(1))

        assert (await store.load()).translation_history == []

    @pytest.mark.asyncio
    async def test_update_counts_writes(self):
        store = InMemoryStore()
        updated = await store.update(
            lambda app: app.model_copy(update={"multi_modal_enabled": True})
        )

        assert updated.multi_modal_enabled is True
        assert (await store.load()).multi_modal_enabled is True
        assert store.save_count == 1
