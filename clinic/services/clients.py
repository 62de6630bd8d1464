from __future__ import annotations

from typing import List, Optional

from clinic.errors import ValidationFailed
from clinic.models.client import Client
from clinic.models.common import now_iso, sort_newest_first
from clinic.storage.cache import EntityCache

from .base import ApiService, parse_rows, response_id
from .validation import (
    PHONE_FORMAT_MSG, age_in_years, blank, check_identity, exact_age, is_valid_email, is_valid_phone,
)

BLOOD_GROUPS = ["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"]
ALL = "tous"


def validate_client_data(data: Client) -> List[str]:
    errors: List[str] = []
    check_identity(data.cin, data.nom, data.prenom, errors)

    # date, téléphone et email facultatifs, vérifiés s'ils sont saisis
    if data.date_naissance:
        age = age_in_years(data.date_naissance)
        if age is None or age < 0 or age > 120:
            errors.append("La date de naissance n'est pas valide")
    if data.numero_telephone.strip() and not is_valid_phone(data.numero_telephone):
        errors.append(PHONE_FORMAT_MSG)
    if data.email.strip() and not is_valid_email(data.email):
        errors.append("L'email n'est pas valide")

    if blank(data.cree_par):
        errors.append("Le créateur est obligatoire")
    return errors


def get_blood_groups() -> List[str]:
    return list(BLOOD_GROUPS)


def calculate_age(birth_date: str) -> Optional[int]:
    return exact_age(birth_date)


class ClientsService(ApiService):
    def __init__(self, api, session=None, activities=None):
        super().__init__(api, session, activities)
        self.cache: EntityCache[Client] = EntityCache("patient")

    def _payload(self, data: Client) -> dict:
        return {
            "CIN": data.cin,
            "nom": data.nom,
            "prenom": data.prenom,
            "date_naissance": data.date_naissance or None,
            "adresse": data.adresse,
            "numero_telephone": data.numero_telephone,
            "groupe_sanguin": data.groupe_sanguin,
            "email": data.email,
            "commentaire": data.commentaire,
            "allergies": data.allergies,
            "antecedents": data.antecedents,
            "Cree_par": self._cin(),
        }

    def get_all(self) -> List[Client]:
        rows = sort_newest_first(parse_rows(Client, self.api.get("client"), "client"))
        self.cache.replace_all(rows)
        return rows

    def _ensure_loaded(self) -> None:
        if self.cache.is_empty():
            self.get_all()

    def get_by_id(self, client_id: int) -> Optional[Client]:
        self._ensure_loaded()
        return self.cache.get(client_id)

    def get_by_cin(self, cin: str) -> Optional[Client]:
        self._ensure_loaded()
        return self.cache.find_one(lambda c: c.cin == cin)

    def create(self, data: Client) -> Client:
        errors = validate_client_data(data)
        if errors:
            raise ValidationFailed(errors)
        res = self.api.post("client", self._payload(data))
        created_at = res.get("created_at") if isinstance(res, dict) else None
        client = data.model_copy(update={
            "id": response_id(res),
            "created_at": created_at or now_iso(),
            "cree_par": self._cin() or data.cree_par,
        })
        self.cache.add(client)
        self._log("patient", "created", client.id, client.full_name)
        return client

    def update(self, client_id: int, data: Client) -> Optional[Client]:
        current = self.cache.get(client_id)
        if current is None:
            return None
        errors = validate_client_data(data)
        if errors:
            raise ValidationFailed(errors)
        self.api.patch(f"client/{client_id}", self._payload(data))
        updated = data.model_copy(update={"id": client_id, "created_at": current.created_at})
        self.cache.update(updated)
        self._log("patient", "updated", client_id, updated.full_name)
        return updated

    def delete(self, client_id: int) -> bool:
        self.api.delete(f"client/{client_id}")
        current = self.cache.get(client_id)
        if current is None:
            return False
        self.cache.delete(client_id)
        self._log("patient", "deleted", client_id, current.full_name)
        return True

    def search(self, query: str) -> List[Client]:
        q = (query or "").lower()
        return self.cache.find(
            lambda c: q in c.nom.lower()
            or q in c.prenom.lower()
            or q in c.cin.lower()
            or q in c.email.lower()
            or (query or "") in c.numero_telephone
        )

    def filter(self, groupe_sanguin: Optional[str] = None, creator: Optional[str] = None) -> List[Client]:
        def keep(c: Client) -> bool:
            if groupe_sanguin and groupe_sanguin != ALL and c.groupe_sanguin != groupe_sanguin:
                return False
            if creator and creator != ALL and c.cree_par != creator:
                return False
            return True

        return self.cache.find(keep)
