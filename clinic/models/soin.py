from __future__ import annotations

from typing import Optional

from pydantic import Field

from .common import ApiModel


class Soin(ApiModel):
    """Prestation facturable, sans stock."""

    id: Optional[int] = None
    nom: str = Field("", alias="Nom")
    type: str = Field("", alias="Type")
    prix: float = 0.0
    cree_par: str = Field("", alias="Cree_par")
    created_at: Optional[str] = None
    cabinet: str = ""
    therapeute: Optional[str] = None
