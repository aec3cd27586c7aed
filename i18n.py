"""
Multilingual field helpers.

Records store localized text as {"en": ..., "ar": ...}. These helpers
pick the right language out of whatever shape a field happens to have.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

LANGUAGES = ("en", "ar")
DEFAULT_LANGUAGE = "en"


def extract_string(value: Any, lang: Optional[str] = None) -> str:
    if not value:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        if value.get("text"):
            return str(value["text"])
        if lang and value.get(lang):
            return str(value[lang])
        if value.get("en"):
            return str(value["en"])
        if value.get("ar"):
            return str(value["ar"])
    return str(value)


def get_translation(translations: Any, path: str, lang: str, fallback: str = "") -> str:
    value = translations
    for key in path.split("."):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return fallback
    return extract_string(value, lang) or fallback


def is_localized(value: Any) -> bool:
    return isinstance(value, dict) and bool(value) and set(value).issubset(LANGUAGES)


def localize(value: Any, lang: str) -> Any:
    """Collapse every {en, ar} mapping in a document to the text for lang."""
    if is_localized(value):
        picked = value.get(lang)
        if picked in (None, "", []):
            picked = value.get(DEFAULT_LANGUAGE)
        return picked
    if isinstance(value, dict):
        return {k: localize(v, lang) for k, v in value.items()}
    if isinstance(value, list):
        return [localize(v, lang) for v in value]
    return value


def normalize_language(lang: Optional[str]) -> str:
    if lang in LANGUAGES:
        return lang
    return DEFAULT_LANGUAGE


class LocalizedText(BaseModel):
    en: str = Field(..., min_length=1)
    ar: str = Field(..., min_length=1)

    @field_validator("en", "ar", mode="before")
    @classmethod
    def strip(cls, v):
        return v.strip() if isinstance(v, str) else v


class OptionalLocalizedText(BaseModel):
    en: Optional[str] = None
    ar: Optional[str] = None

    @field_validator("en", "ar", mode="before")
    @classmethod
    def strip(cls, v):
        return v.strip() if isinstance(v, str) else v
