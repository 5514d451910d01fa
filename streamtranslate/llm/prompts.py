"""Fixed instructions sent with translation and recognition requests."""

from __future__ import annotations

IMAGE_RECOGNITION_PROMPT = (
    "Recognize the text in this image. Return only the recognized text, "
    "without any explanation."
)

AUDIO_RECOGNITION_PROMPT = (
    "Recognize the spoken content of this audio file. Return only the "
    "recognized text, without any explanation."
)


def build_translation_prompt(language_name: str) -> str:
    """System instruction for translating user text into ``language_name``."""
    return (
        "You are a professional translation assistant. Translate the user's "
        f"text into {language_name}. Requirements:\n"
        "1. Preserve the tone and style of the original text\n"
        "2. Make the translation accurate, natural and fluent\n"
        "3. Translate technical terms with their accurate equivalents\n"
        "4. Return only the translation, without any explanation or notes\n"
        "5. If the text is already in the target language, return it unchanged"
    )
