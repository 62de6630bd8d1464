from __future__ import annotations

import logging
from typing import Any, Dict, List

from clinic.errors import ApiError
from clinic.models.settings import OptionLists

logger = logging.getLogger(__name__)

DEFAULT_OPTIONS = OptionLists(
    bank_names=[
        "Attijariwafa bank",
        "BMCE Bank of Africa",
        "CIH Bank",
        "Banque Populaire",
        "Société Générale",
        "Crédit du Maroc",
        "BMCI",
        "Bank Al-Maghrib",
    ],
    appointment_types=[
        "Consultation Biohacking",
        "Thérapie IV",
        "Séance de Cryothérapie",
        "Analyse du Bilan Sanguin",
        "Consultation Bien-être",
        "Suivi Post-Traitement",
        "Thérapie par Ondes de Choc",
        "Consultation Nutritionnelle",
        "Examen Médical Complet",
        "Thérapie par la Lumière",
        "Consultation Hormonale",
        "Séance de Récupération",
    ],
    soin_types=[
        "Consultation",
        "Diagnostic",
        "Préventif",
        "Thérapeutique",
        "Chirurgie",
        "Rééducation",
        "Urgence",
        "Suivi",
    ],
)

# clé JSON -> attribut
_LISTS = {"bankNames": "bank_names", "appointmentTypes": "appointment_types", "soinTypes": "soin_types"}


class OptionsService:
    """Listes de choix paramétrables (banques, types de rendez-vous, types de soin)."""

    def __init__(self, api):
        self.api = api

    def get_all(self) -> OptionLists:
        data = self.api.get("options")
        if not isinstance(data, dict):
            data = {}
        values: Dict[str, List[str]] = {}
        for key, attr in _LISTS.items():
            raw = data.get(key)
            if isinstance(raw, list):
                values[attr] = [str(v) for v in raw]
            else:
                logger.debug("options.%s absent, valeurs par défaut", key)
                values[attr] = list(getattr(DEFAULT_OPTIONS, attr))
        return OptionLists(**values)

    def get_appointment_types(self) -> List[str]:
        return self.get_all().appointment_types

    def get_bank_names(self) -> List[str]:
        return self.get_all().bank_names

    def get_soin_types(self) -> List[str]:
        return self.get_all().soin_types

    def update(self, partial: Dict[str, Any]) -> OptionLists:
        """`partial` en clés JSON (bankNames, ...) ou en noms d'attributs."""
        payload = {}
        for key, attr in _LISTS.items():
            if key in partial:
                payload[key] = list(partial[key])
            elif attr in partial:
                payload[key] = list(partial[attr])
        try:
            data = self.api.put("options", payload)
        except ApiError as e:
            logger.error("Sauvegarde des options échouée: %s", e.message)
            raise ApiError("Impossible de sauvegarder les options", e.status_code, e.path) from e
        return OptionLists.model_validate(data if isinstance(data, dict) else payload)
