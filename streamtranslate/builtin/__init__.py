"""Bundled endpoints used when no custom AI endpoint is configured."""

from __future__ import annotations

from .recognition import RecognitionService, parse_recognition_text
from .translation import BuiltInTranslationService, parse_translation_body

__all__ = [
    "BuiltInTranslationService",
    "RecognitionService",
    "parse_recognition_text",
    "parse_translation_body",
]
