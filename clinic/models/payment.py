from __future__ import annotations

from typing import Optional

from pydantic import Field

from .common import ApiModel


class Payment(ApiModel):
    id: int = 0
    id_facture: int = 0
    date: str = ""
    montant_totale: float = 0.0
    cree_par: str = Field("", alias="Cree_par")


class PaymentWithInvoiceDetails(Payment):
    facture_number: str = ""
    patient_cin: str = "N/A"
    facture_notes: Optional[str] = None
    facture_date: str = ""
