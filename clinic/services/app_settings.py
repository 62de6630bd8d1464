from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, List

from pydantic import ValidationError

from clinic.models.settings import AppSettings
from clinic.storage.json_store import JsonStore

from . import currency

logger = logging.getLogger(__name__)

SETTINGS_KEY = "app_settings"
IMPORT_ERROR = "Format de fichier de paramètres invalide"

THEME_OPTIONS = [
    {"value": "light", "label": "Clair", "description": "Interface claire en permanence"},
    {"value": "dark", "label": "Sombre", "description": "Interface sombre en permanence"},
    {"value": "system", "label": "Système", "description": "Suit les préférences du système"},
]

FONT_SIZE_OPTIONS = [
    {"value": "small", "label": "Petite", "description": "Texte plus compact"},
    {"value": "medium", "label": "Normale", "description": "Taille par défaut"},
    {"value": "large", "label": "Grande", "description": "Texte plus lisible"},
]

LANGUAGE_OPTIONS = [
    {"value": "fr", "label": "Français"},
    {"value": "en", "label": "English"},
    {"value": "nl", "label": "Nederlands"},
]

CURRENCY_OPTIONS = [
    {"value": "DH", "label": "Dirham marocain (DH)", "symbol": "DH"},
    {"value": "EUR", "label": "Euro (€)", "symbol": "€"},
    {"value": "USD", "label": "Dollar américain ($)", "symbol": "$"},
    {"value": "GBP", "label": "Livre sterling (£)", "symbol": "£"},
    {"value": "CAD", "label": "Dollar canadien (C$)", "symbol": "C$"},
    {"value": "CHF", "label": "Franc suisse (CHF)", "symbol": "CHF"},
]


class AppSettingsService:
    """
    Préférences persistées dans le JsonStore.
    Les valeurs stockées sont fusionnées sur les valeurs par défaut ; une
    entrée illisible est ignorée. Le symbole monétaire est branché sur
    les fonctions de `currency`.
    """

    def __init__(self, store: JsonStore):
        self.store = store
        self._listeners: List[Callable[[AppSettings], None]] = []
        self._settings = self._load()
        currency.use_symbol_provider(self.get_current_currency_symbol)

    def _load(self) -> AppSettings:
        stored = self.store.get(SETTINGS_KEY)
        if isinstance(stored, dict):
            try:
                return self._merge(AppSettings(), stored)
            except ValidationError as e:
                logger.warning("Préférences illisibles, valeurs par défaut (%s)", e.errors()[:1])
        return AppSettings()

    @staticmethod
    def _merge(base: AppSettings, partial: Dict[str, Any]) -> AppSettings:
        data = base.model_dump(by_alias=True)
        data.update({k: v for k, v in partial.items() if v is not None})
        return AppSettings.model_validate(data)

    def _save(self) -> AppSettings:
        self.store.set(SETTINGS_KEY, self._settings.model_dump(by_alias=True))
        for listener in list(self._listeners):
            listener(self._settings)
        return self.get_settings()

    def on_change(self, listener: Callable[[AppSettings], None]) -> None:
        self._listeners.append(listener)

    # ---------- API ----------

    def get_settings(self) -> AppSettings:
        return self._settings.model_copy(deep=True)

    def update_settings(self, partial: Dict[str, Any]) -> AppSettings:
        """`partial` en clés camelCase ou en noms d'attributs."""
        fields = AppSettings.model_fields
        normalized = {
            (fields[k].alias or k) if k in fields else k: v
            for k, v in partial.items()
        }
        self._settings = self._merge(self._settings, normalized)
        return self._save()

    def reset_to_defaults(self) -> AppSettings:
        self._settings = AppSettings()
        return self._save()

    def export_settings(self) -> str:
        return json.dumps(self._settings.model_dump(by_alias=True), ensure_ascii=False, indent=2)

    def import_settings(self, settings_json: str) -> AppSettings:
        try:
            data = json.loads(settings_json)
        except ValueError as e:
            raise ValueError(IMPORT_ERROR) from e
        if not isinstance(data, dict):
            raise ValueError(IMPORT_ERROR)
        try:
            self._settings = self._merge(AppSettings(), data)
        except ValidationError as e:
            raise ValueError(IMPORT_ERROR) from e
        return self._save()

    def get_current_currency_symbol(self) -> str:
        code = self._settings.currency
        for opt in CURRENCY_OPTIONS:
            if opt["value"] == code:
                return opt["symbol"]
        return code

    @staticmethod
    def get_theme_options() -> List[Dict[str, str]]:
        return THEME_OPTIONS

    @staticmethod
    def get_font_size_options() -> List[Dict[str, str]]:
        return FONT_SIZE_OPTIONS

    @staticmethod
    def get_language_options() -> List[Dict[str, str]]:
        return LANGUAGE_OPTIONS

    @staticmethod
    def get_currency_options() -> List[Dict[str, str]]:
        return CURRENCY_OPTIONS

