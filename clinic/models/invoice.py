from __future__ import annotations

import unicodedata
from enum import Enum
from typing import Any, List, Optional

from pydantic import Field, field_validator

from .common import ApiModel

TVA_RATE = 20


def _fold(text: str) -> str:
    # minuscules sans accents
    norm = unicodedata.normalize("NFKD", str(text or ""))
    return "".join(c for c in norm if not unicodedata.combining(c)).strip().lower()


class FactureStatut(str, Enum):
    BROUILLON = "Brouillon"
    ENVOYEE = "Envoyée"
    PAYEE = "Payée"
    ANNULEE = "Annulée"
    EN_RETARD = "En retard"

    @classmethod
    def parse(cls, value: Any) -> "FactureStatut":
        """Statut reçu du backend -> énumération (statut inconnu = En retard)."""
        if isinstance(value, cls):
            return value
        folded = _fold(value)
        for st in cls:
            if _fold(st.value) == folded:
                return st
        return cls.EN_RETARD


class TypeBien(str, Enum):
    PRODUIT = "produit"
    SOIN = "soin"

    @property
    def affects_stock(self) -> bool:
        return self is TypeBien.PRODUIT

    @classmethod
    def parse(cls, value: Any) -> "TypeBien":
        """Seul le tag "produit" désigne un produit ; tout autre tag est un soin."""
        if isinstance(value, cls):
            return value
        if _fold(value) == cls.PRODUIT.value:
            return cls.PRODUIT
        return cls.SOIN


PAYMENT_METHODS = ["En Espece", "Paiment Bancaire", "Par chéque"]
CHEQUE_METHOD = "Par chéque"


class FactureItem(ApiModel):
    """Ligne saisie dans l'éditeur de facture."""

    id_bien: int = 0
    type_bien: TypeBien = TypeBien.PRODUIT
    quantite: int = 1
    prix_unitaire: float = 0.0
    nom_bien: str = ""

    @field_validator("type_bien", mode="before")
    @classmethod
    def _parse_type(cls, v: Any) -> TypeBien:
        return TypeBien.parse(v)

    @property
    def total(self) -> float:
        return self.quantite * self.prix_unitaire


class FactureBien(FactureItem):
    """Ligne de facture telle que stockée (table facture-bien)."""

    id: Optional[int] = None
    id_facture: Optional[int] = None
    type_bien: TypeBien = TypeBien.SOIN  # sans tag : hors stock
    prix_unitaire: float = Field(0.0, alias="prix")
    cree_par: str = Field("", alias="Cree_par")
    movement_type: Optional[str] = Field(None, alias="movementType")

    def to_item(self) -> FactureItem:
        return FactureItem(
            id_bien=self.id_bien, type_bien=self.type_bien, quantite=self.quantite,
            prix_unitaire=self.prix_unitaire, nom_bien=self.nom_bien,
        )


class _FactureBase(ApiModel):
    cin: str = Field("", alias="CIN")
    date: str = ""
    statut: FactureStatut = FactureStatut.BROUILLON
    notes: str = ""
    cree_par: str = Field("", alias="Cree_par")

    # paiement
    date_paiement: Optional[str] = None
    methode_paiement: Optional[str] = None
    cheque_numero: Optional[str] = None
    cheque_banque: Optional[str] = None
    cheque_date_tirage: Optional[str] = None

    @field_validator("statut", mode="before")
    @classmethod
    def _parse_statut(cls, v: Any) -> FactureStatut:
        return FactureStatut.parse(v)

    @property
    def is_paid(self) -> bool:
        return self.statut is FactureStatut.PAYEE


class FactureForm(_FactureBase):
    """Données de l'éditeur : en-tête + lignes."""

    items: List[FactureItem] = Field(default_factory=list)


class Facture(_FactureBase):
    id: Optional[int] = None
    prix_ht: float = 0.0
    tva_amount: float = 0.0
    tva_rate: float = TVA_RATE
    prix_total: float = 0.0
    created_at: Optional[str] = None
    items: List[FactureBien] = Field(default_factory=list)

    def to_form(self) -> FactureForm:
        return FactureForm(
            cin=self.cin, date=self.date, statut=self.statut, notes=self.notes, cree_par=self.cree_par,
            date_paiement=self.date_paiement, methode_paiement=self.methode_paiement,
            cheque_numero=self.cheque_numero, cheque_banque=self.cheque_banque,
            cheque_date_tirage=self.cheque_date_tirage,
            items=[it.to_item() for it in self.items],
        )


class FactureWithDetails(Facture):
    patient_name: str = ""
