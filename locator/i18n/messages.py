"""User-facing message templates for search outcomes and ranked results."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from locator.logging import logger

DEFAULT_LANGUAGE = "en"
BUNDLED_LOCALES = Path(__file__).with_name("locales")

_TABLE_ADAPTER = TypeAdapter(dict[str, str])


class MessageCatalogError(ValueError):
    """A message table exists but cannot be used."""


class MessageCatalog:
    """Message templates for one language, merged over the English table.

    A regional tag such as ``es-MX`` layers ``es-mx.json`` over ``es.json``
    over ``en.json``, so a partial translation still covers every outcome.
    """

    def __init__(
        self,
        language: str = DEFAULT_LANGUAGE,
        *,
        locales_path: str | Path | None = None,
    ) -> None:
        self.language = language.strip().lower() or DEFAULT_LANGUAGE
        self._path = Path(locales_path) if locales_path is not None else BUNDLED_LOCALES
        self._templates: dict[str, str] = {}
        for tag in _fallback_chain(self.language):
            self._templates.update(self._read(tag))

    def format(self, key: str, **values: Any) -> str:
        template = self._templates.get(key)
        if template is None:
            logger.warning("message_missing", key=key, language=self.language)
            return key
        return template.format(**values)

    def __contains__(self, key: object) -> bool:
        return key in self._templates

    def _read(self, tag: str) -> dict[str, str]:
        path = self._path / f"{tag}.json"
        try:
            with path.open("r", encoding="utf-8") as fp:
                payload = json.load(fp)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            raise MessageCatalogError(f"Message table {path} is not valid JSON: {exc}") from exc
        try:
            return _TABLE_ADAPTER.validate_python(payload)
        except ValidationError as exc:
            raise MessageCatalogError(
                f"Message table {path} must map keys to strings: {exc.errors()[0]['msg']}"
            ) from exc


def _fallback_chain(language: str) -> list[str]:
    chain = [DEFAULT_LANGUAGE]
    base = language.split("-", 1)[0]
    for tag in (base, language):
        if tag not in chain:
            chain.append(tag)
    return chain


__all__ = ["DEFAULT_LANGUAGE", "MessageCatalog", "MessageCatalogError"]
