from __future__ import annotations

from typing import Optional

from pydantic import Field

from .common import ApiModel


class Client(ApiModel):
    """Patient de la clinique, identifié par son CIN."""

    id: Optional[int] = None
    cin: str = Field("", alias="CIN")
    nom: str = ""
    prenom: str = ""
    date_naissance: Optional[str] = None
    adresse: str = ""
    numero_telephone: str = ""
    email: str = ""
    groupe_sanguin: str = ""
    antecedents: str = ""
    allergies: str = ""
    commentaire: str = ""
    created_at: Optional[str] = None
    cree_par: str = Field("", alias="Cree_par")

    @property
    def full_name(self) -> str:
        return f"{self.prenom} {self.nom}".strip()
