from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import Field

from .appointment import RendezVous
from .client import Client
from .common import ApiModel
from .invoice import Facture

WorkflowStatus = Literal["En cours", "Terminé"]


class Workflow(ApiModel):
    """Parcours patient : rendez-vous, puis facture."""

    id: Optional[int] = None
    client_cin: str = Field("", alias="client_CIN")
    rendez_vous_id: int = 0
    facture_id: Optional[int] = None
    status: WorkflowStatus = "En cours"
    created_at: Optional[str] = None
    cree_par: str = Field("", alias="Cree_par")

    @property
    def reference(self) -> str:
        return f"Flux-{self.id or 0:03d}"


class WorkflowForm(ApiModel):
    client_cin: str = Field("", alias="client_CIN")
    rendez_vous_id: int = 0
    facture_id: Optional[int] = None
    cree_par: str = Field("", alias="Cree_par")


class WorkflowWithDetails(Workflow):
    client: Optional[Client] = None
    appointment: Optional[RendezVous] = None
    invoice: Optional[Facture] = None
    patient_name: Optional[str] = None
    appointment_date: Optional[str] = None
    appointment_status: Optional[str] = None
    total_amount: Optional[float] = None
    payment_method: Optional[str] = None
    invoice_status: Optional[str] = None
    payment_date: Optional[str] = None
    soins: List[str] = Field(default_factory=list)
    products: List[str] = Field(default_factory=list)
