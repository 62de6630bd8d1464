from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from .common import ApiModel

AppointmentStatus = Literal["programmé", "confirmé", "terminé", "annulé"]
APPOINTMENT_STATUSES = ["programmé", "confirmé", "terminé", "annulé"]


class RendezVous(ApiModel):
    id: Optional[int] = None
    cin: str = Field("", alias="CIN")
    sujet: str = ""
    date_rendez_vous: str = ""
    created_at: Optional[str] = None
    cree_par: str = Field("", alias="Cree_par")
    status: AppointmentStatus = "programmé"
    patient_nom: str = ""
    email: str = ""
    client_id: Optional[int] = None
    cabinet: str = ""
    soin_id: Optional[int] = None
    soin_nom: Optional[str] = None

    @property
    def reference(self) -> str:
        return f"RV-{self.id or 0:03d}"


class AppointmentForm(ApiModel):
    client_id: int = 0
    cin: str = Field("", alias="CIN")
    sujet: str = ""
    date_rendez_vous: str = ""
    cree_par: str = Field("", alias="Cree_par")
    status: AppointmentStatus = "programmé"
    cabinet: str = ""
    soin_id: int = 0


class TimeSlot(BaseModel):
    datetime: str
    time: str
    available: bool = True
