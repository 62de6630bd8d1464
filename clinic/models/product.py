from __future__ import annotations

from typing import Optional

from pydantic import Field

from .common import ApiModel


class Product(ApiModel):
    id: Optional[int] = None
    nom: str = Field("", alias="Nom")
    prix: float = 0.0
    stock: int = 0
    cree_par: str = Field("", alias="Cree_par")
    created_at: Optional[str] = None
