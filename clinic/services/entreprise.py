from __future__ import annotations

import logging
from typing import List, Optional

from clinic.errors import ApiError, ValidationFailed
from clinic.models.common import now_iso
from clinic.models.settings import Entreprise, EntrepriseForm

from .base import response_id
from .validation import blank

logger = logging.getLogger(__name__)

_NUMBERS = [
    ("ice", "L'ICE"),
    ("cnss", "Le CNSS"),
    ("rc", "Le RC"),
    ("if_number", "L'IF"),
    ("rib", "Le RIB"),
    ("patente", "La patente"),
]


def to_int(value) -> Optional[int]:
    """Comme parseInt : chiffres de tête, sinon None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value or "").strip()
    digits = ""
    for i, ch in enumerate(text):
        if ch.isdigit() or (i == 0 and ch in "+-"):
            digits += ch
        else:
            break
    try:
        return int(digits)
    except ValueError:
        return None


def validate_entreprise_data(data: EntrepriseForm) -> List[str]:
    errors: List[str] = []
    for attr, label in _NUMBERS:
        n = to_int(getattr(data, attr))
        if n is None or n <= 0:
            errors.append(f"{label} est obligatoire et doit être un nombre valide")
    if blank(data.adresse):
        errors.append("L'adresse est obligatoire")
    return errors


def _payload(data: EntrepriseForm) -> dict:
    out = {
        "ICE": to_int(data.ice),
        "CNSS": to_int(data.cnss),
        "RC": to_int(data.rc),
        "IF": to_int(data.if_number),
        "RIB": to_int(data.rib),
        "patente": to_int(data.patente),
        "adresse": data.adresse.strip(),
    }
    if data.email:
        out["email"] = data.email
    if data.numero_telephone:
        out["numero_telephone"] = data.numero_telephone
    return out


class EntrepriseService:
    """Fiche légale du cabinet (un seul enregistrement)."""

    def __init__(self, api):
        self.api = api
        self.current: Optional[Entreprise] = None

    def get(self) -> Optional[Entreprise]:
        data = self.api.get("entreprise")
        if not data or not isinstance(data, dict):
            return None
        self.current = Entreprise.model_validate(data)
        return self.current

    def create(self, data: EntrepriseForm) -> Entreprise:
        errors = validate_entreprise_data(data)
        if errors:
            raise ValidationFailed(errors)
        payload = _payload(data)
        res = self.api.post("entreprise", payload)
        self.current = Entreprise.model_validate({**payload, "id": response_id(res), "created_at": now_iso()})
        logger.info("Entreprise créée (id=%s)", self.current.id)
        return self.current

    def update(self, data: EntrepriseForm) -> Entreprise:
        if self.current is None or self.current.id is None:
            raise ApiError("Aucune entreprise enregistrée", path="entreprise")
        errors = validate_entreprise_data(data)
        if errors:
            raise ValidationFailed(errors)
        payload = _payload(data)
        self.api.patch(f"entreprise/{self.current.id}", payload)
        self.current = Entreprise.model_validate({**self.current.model_dump(by_alias=True), **payload})
        return self.current

    def save(self, data: EntrepriseForm) -> Entreprise:
        if self.current is None:
            self.get()
        return self.update(data) if self.current is not None else self.create(data)
