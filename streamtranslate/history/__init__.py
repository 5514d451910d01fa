"""Persisted application document and its stores."""

from __future__ import annotations

from .models import (
    PREDEFINED_LANGUAGES,
    AiConfig,
    CustomLanguage,
    SelectedLanguage,
    TranslationAppData,
    TranslationBackup,
    TranslationHistoryItem,
)
from .store import AppDataStore, InMemoryStore, JsonFileStore

__all__ = [
    "PREDEFINED_LANGUAGES",
    "AiConfig",
    "AppDataStore",
    "CustomLanguage",
    "InMemoryStore",
    "JsonFileStore",
    "SelectedLanguage",
    "TranslationAppData",
    "TranslationBackup",
    "TranslationHistoryItem",
]
