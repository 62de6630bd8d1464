from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field

from .common import ApiModel

MovementType = Literal["IN", "OUT"]


class InventoryMovement(ApiModel):
    """Entrée ou sortie de stock d'un produit (manuelle ou liée à une facture payée)."""

    id: Optional[int] = None
    id_facture: Optional[int] = None
    id_bien: int
    nom_bien: str = ""
    quantite: int = 0
    prix: float = 0.0
    movement_type: MovementType = Field("IN", alias="movementType")
    date: str = ""
    cree_par: str = Field("", alias="Cree_par")
    created_at: Optional[str] = None

    @property
    def total(self) -> float:
        return self.prix * self.quantite


class InventoryForm(ApiModel):
    id_bien: int = 0
    quantite: int = 0
    prix: float = 0.0
    date: Optional[str] = None
    movement_type: MovementType = Field("IN", alias="movementType")
