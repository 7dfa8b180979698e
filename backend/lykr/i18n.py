"""Message catalogues and the per-request translator.

Catalogues live in `lykr/messages/{locale}.json`. Actions receive a
`Translator` through dependency injection instead of reading locale
state themselves.
"""

import functools
import json
from pathlib import Path
from typing import Any

from fastapi import Request

from lykr.config import settings

MESSAGES_DIR = Path(__file__).parent / "messages"


def supported_locales() -> list[str]:
    return [loc.strip() for loc in settings.supported_locales.split(",") if loc.strip()]


@functools.lru_cache(maxsize=None)
def load_catalogue(locale: str) -> dict:
    with open(MESSAGES_DIR / f"{locale}.json", encoding="utf-8") as fh:
        return json.load(fh)


class Translator:
    """Dotted-key lookup into one locale's catalogue.

    Unknown keys fall back to the key itself so a missing translation
    never breaks a response.
    """

    def __init__(self, locale: str, catalogue: dict):
        self.locale = locale
        self._catalogue = catalogue

    def lookup(self, key: str) -> Any:
        node: Any = self._catalogue
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node

    def __call__(self, key: str, **params) -> str:
        value = self.lookup(key)
        if not isinstance(value, str):
            return key
        return value.format(**params) if params else value

    def translate_errors(
        self, errors: dict[str, list[str]], section: str = "validation"
    ) -> dict[str, list[str]]:
        """Map message keys to text, leaving unknown keys untouched."""
        translated: dict[str, list[str]] = {}
        for field, keys in errors.items():
            translated[field] = [
                self(f"{section}.{k}") if self.lookup(f"{section}.{k}") else k
                for k in keys
            ]
        return translated


def get_translator_for(locale: str | None) -> Translator:
    if locale not in supported_locales():
        locale = settings.default_locale
    return Translator(locale, load_catalogue(locale))


def _locale_from_accept_language(header: str) -> str | None:
    for part in header.split(","):
        tag = part.split(";")[0].strip().lower()
        primary = tag.split("-")[0]
        if primary in supported_locales():
            return primary
    return None


async def get_translator(request: Request) -> Translator:
    """FastAPI dependency: locale cookie, then Accept-Language, then default."""
    locale = request.cookies.get(settings.locale_cookie_name)
    if locale not in supported_locales():
        locale = _locale_from_accept_language(request.headers.get("accept-language", ""))
    return get_translator_for(locale)
