"""Internationalization for cart notifications"""

import json
import os
from pathlib import Path
from typing import Any

from cartsync.logging import get_logger

logger = get_logger(__name__)

SUPPORTED_LANGUAGES = {
    "en": "English",
    "es": "Español",
}

DEFAULT_LANGUAGE = os.environ.get("CART_LANGUAGE", "en")

_translations: dict[str, dict[str, Any]] = {}

_LOCALES_PATH = Path(__file__).parent.parent / "locales"


def _load_translations(lang: str) -> dict[str, Any]:
    """Load translations for a language"""
    if lang in _translations:
        return _translations[lang]

    file_path = _LOCALES_PATH / f"{lang}.json"

    if not file_path.exists():
        if lang != "en":
            return _load_translations("en")
        return {}

    try:
        with open(file_path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Failed to load locale {lang}: {e}")
        return {}

    if not isinstance(data, dict):
        return {}
    _translations[lang] = data
    return data


def _lookup(translations: dict[str, Any], key: str) -> Any:
    current: Any = translations
    try:
        for part in key.split("."):
            current = current[part]
    except (KeyError, TypeError):
        return None
    return current


def detect_language(language_code: str | None) -> str:
    """Normalize a language code ("es-AR" -> "es") to a supported one."""
    if not language_code:
        return DEFAULT_LANGUAGE
    lang = language_code.split("-")[0].lower()
    return lang if lang in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE


def get_text(key: str, lang: str = DEFAULT_LANGUAGE, default: str | None = None, **kwargs) -> str:
    """
    Get translated text by key.

    Args:
        key: Translation key with dot notation (e.g., "cart.added")
        lang: Language code (e.g., "en", "es")
        default: Value returned if key not found (instead of the key)
        **kwargs: Variables to format into the string

    Returns:
        Translated string or key/default if not found
    """
    lang = detect_language(lang)

    text = _lookup(_load_translations(lang), key)
    if text is None and lang != "en":
        text = _lookup(_load_translations("en"), key)

    if not isinstance(text, str):
        return default if default is not None else key

    if kwargs:
        try:
            return text.format(**kwargs)
        except (KeyError, ValueError, AttributeError):
            return text

    return text


def reload_translations() -> None:
    """Clear translation cache"""
    _translations.clear()
