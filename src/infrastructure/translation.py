"""Dictionary-backed message catalog."""

from collections.abc import Mapping


class CatalogTranslator:
    """Translate messages by exact lookup in a static catalog.

    Args:
        catalog: Message to translated text.
    """

    def __init__(self, catalog: Mapping[str, str] | None = None) -> None:
        self._catalog = dict(catalog or {})

    def has(self, key: str) -> bool:
        return key in self._catalog

    def translate(self, key: str) -> str:
        """Translated text for ``key``; the key itself when unknown."""
        return self._catalog.get(key, key)
