# streamtranslate/history/models.py
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class DocumentModel(BaseModel):
    """Stored with camelCase keys; unknown keys are ignored on read."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class TranslationHistoryItem(DocumentModel):
    id: int
    source_text: str
    translated_text: str
    target_language: str
    timestamp: str


class CustomLanguage(DocumentModel):
    code: str
    name: str


class SelectedLanguage(DocumentModel):
    code: str
    name: str


class AiConfig(DocumentModel):
    """User-supplied OpenAI-compatible endpoint settings."""
    base_url: str = ""
    model: str = ""
    api_key: str = ""
    multi_modal_model: str = ""


DEFAULT_LANGUAGE = SelectedLanguage(code="en", name="English")

PREDEFINED_LANGUAGES: list[SelectedLanguage] = [
    SelectedLanguage(code="zh", name="Chinese"),
    SelectedLanguage(code="en", name="English"),
    SelectedLanguage(code="ja", name="Japanese"),
    SelectedLanguage(code="ko", name="Korean"),
    SelectedLanguage(code="fr", name="French"),
    SelectedLanguage(code="de", name="German"),
    SelectedLanguage(code="es", name="Spanish"),
    SelectedLanguage(code="ru", name="Russian"),
    SelectedLanguage(code="ar", name="Arabic"),
    SelectedLanguage(code="pt", name="Portuguese"),
]


class TranslationAppData(DocumentModel):
    """
    The whole persisted document. It is read and written as one unit.
    """
    translation_history: list[TranslationHistoryItem] = Field(default_factory=list)
    custom_languages: list[CustomLanguage] = Field(default_factory=list)
    selected_language: SelectedLanguage = Field(
        default_factory=lambda: DEFAULT_LANGUAGE.model_copy()
    )
    ai_config_enabled: bool = False
    ai_config: AiConfig = Field(default_factory=AiConfig)
    multi_modal_enabled: bool = False


class TranslationBackup(DocumentModel):
    """Export envelope around a full document."""
    version: str
    timestamp: str
    data: TranslationAppData
