"""User preference flags: theme choice and premium subscription."""

from __future__ import annotations

import logging
from enum import StrEnum

from sakina.storage import KeyValueStore

logger = logging.getLogger(__name__)

THEME_KEY = "theme_mode"
PREMIUM_KEY = "is_premium"


class ThemeMode(StrEnum):
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


class Preferences:
    """Scalar flags stored one per key."""

    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv

    @property
    def theme_mode(self) -> ThemeMode:
        raw = self._kv.get(THEME_KEY)
        try:
            return ThemeMode(raw) if raw else ThemeMode.SYSTEM
        except ValueError:
            logger.warning("Unknown theme %r in storage, using system", raw)
            return ThemeMode.SYSTEM

    @theme_mode.setter
    def theme_mode(self, mode: ThemeMode) -> None:
        self._kv.set(THEME_KEY, ThemeMode(mode).value)

    def is_dark(self, system_prefers_dark: bool = False) -> bool:
        """Resolve the effective theme against the OS preference."""
        mode = self.theme_mode
        if mode is ThemeMode.SYSTEM:
            return system_prefers_dark
        return mode is ThemeMode.DARK

    def toggle_theme(self) -> ThemeMode:
        """Switch dark to light; light and system both switch to dark."""
        mode = ThemeMode.LIGHT if self.theme_mode is ThemeMode.DARK else ThemeMode.DARK
        self.theme_mode = mode
        return mode

    @property
    def is_premium(self) -> bool:
        return self._kv.get(PREMIUM_KEY) == "true"

    def purchase_premium(self) -> None:
        self._kv.set(PREMIUM_KEY, "true")
        logger.info("Premium subscription activated")
