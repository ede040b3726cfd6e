from __future__ import annotations

import logging
from typing import Literal, Protocol

logger = logging.getLogger(__name__)

Theme = Literal["light", "dark"]

THEME_KEY = "themePreference"
THEMES: tuple[str, ...] = ("light", "dark")


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryKeyValueStore:
    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class ThemePreference:
    """Light/dark preference persisted under a single key."""

    def __init__(self, store: KeyValueStore, system_prefers_dark: bool | None = None):
        self.store = store
        self.system_prefers_dark = system_prefers_dark
        self.current: Theme = self.initial()

    def initial(self) -> Theme:
        saved = self.store.get(THEME_KEY)
        if saved in THEMES:
            return saved  # type: ignore[return-value]
        if saved is not None:
            logger.warning("Ignoring unknown saved theme %r", saved)
        if self.system_prefers_dark:
            return "dark"
        return "light"

    def toggle(self) -> Theme:
        self.current = "light" if self.current == "dark" else "dark"
        self.store.set(THEME_KEY, self.current)
        return self.current

    @property
    def toggle_label(self) -> str:
        return "☀️ LIGHT MODE" if self.current == "dark" else "🌙 DARK MODE"
