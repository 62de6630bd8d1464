from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from clinic.errors import ValidationFailed
from clinic.models.appointment import AppointmentForm, RendezVous, TimeSlot
from clinic.models.common import now_iso, parse_dt, sort_newest_first
from clinic.storage.cache import EntityCache

from .base import ApiService, parse_rows, response_id
from .validation import blank

ALL = "tous"

WORKING_HOURS = {
    "start": 10,
    "end": 19,
    "appointment_duration": 60,
    "slot_interval": 30,
}

APPOINTMENT_TYPES = [
    "Consultation Biohacking",
    "Thérapie IV",
    "Séance de Cryothérapie",
    "Analyse du Bilan Sanguin",
    "Consultation Bien-être",
    "Suivi Post-Traitement",
    "Thérapie par Ondes de Choc",
    "Consultation Nutritionnelle",
    "Examen Médical Complet",
    "Thérapie par la Lumière",
    "Consultation Hormonale",
    "Séance de Récupération",
]


def get_appointment_types() -> List[str]:
    return list(APPOINTMENT_TYPES)


def validate_appointment_data(data: AppointmentForm, now: Optional[datetime] = None) -> List[str]:
    errors: List[str] = []
    if not data.client_id or data.client_id <= 0:
        errors.append("Veuillez sélectionner un patient")
    if blank(data.sujet):
        errors.append("Le sujet du rendez-vous est obligatoire")
    if not data.date_rendez_vous:
        errors.append("La date et l'heure sont obligatoires")
    else:
        when = parse_dt(data.date_rendez_vous)
        if when is None:
            errors.append("La date et l'heure sont obligatoires")
        elif when < (now or datetime.now()):
            errors.append("La date du rendez-vous ne peut pas être dans le passé")
    if blank(data.cree_par):
        errors.append("Le créateur est obligatoire")
    if blank(data.cabinet):
        errors.append("Le cabinet est obligatoire")
    if not data.soin_id or data.soin_id <= 0:
        errors.append("Veuillez sélectionner un soin")
    return errors


# ---------- Créneaux ----------
def generate_time_slots_for_date(day: date) -> List[TimeSlot]:
    """Créneaux de 30 minutes entre 10h et 19h, tous disponibles."""
    slots: List[TimeSlot] = []
    start = WORKING_HOURS["start"] * 60
    end = WORKING_HOURS["end"] * 60
    for minutes in range(start, end, WORKING_HOURS["slot_interval"]):
        h, m = divmod(minutes, 60)
        slot = datetime(day.year, day.month, day.day, h, m)
        slots.append(TimeSlot(datetime=slot.strftime("%Y-%m-%dT%H:%M"), time=slot.strftime("%H:%M")))
    return slots


def get_available_dates(start: Optional[date] = None, days_ahead: int = 30) -> List[Tuple[date, bool]]:
    """Jours ouvrés des days_ahead prochains jours (samedi et dimanche exclus)."""
    start = start or date.today()
    out: List[Tuple[date, bool]] = []
    for i in range(days_ahead):
        d = start + timedelta(days=i)
        if d.weekday() >= 5:
            continue
        out.append((d, True))
    return out


def is_time_slot_available(value: str) -> bool:
    when = parse_dt(value)
    if when is None:
        return False
    within = WORKING_HOURS["start"] <= when.hour < WORKING_HOURS["end"]
    return within and when.minute % WORKING_HOURS["slot_interval"] == 0


def _row_to_appointment(row: Dict[str, Any]) -> Dict[str, Any]:
    client = row.get("client") if isinstance(row.get("client"), dict) else {}
    soin = row.get("soin") if isinstance(row.get("soin"), dict) else {}
    return {
        **row,
        "patient_nom": f"{client.get('prenom', '')} {client.get('nom', '')}".strip() or row.get("patient_nom"),
        "client_id": client.get("id", row.get("client_id")),
        "email": client.get("email", row.get("email")),
        "soin_nom": soin.get("Nom") or row.get("soin_nom"),
    }


class AppointmentsService(ApiService):
    def __init__(self, api, clients, soins, session=None, activities=None):
        super().__init__(api, session, activities)
        self.clients = clients
        self.soins = soins
        self.cache: EntityCache[RendezVous] = EntityCache("rendez-vous")

    def get_all(self) -> List[RendezVous]:
        raw = self.api.get("rendez-vous") or []
        rows = parse_rows(RendezVous, [_row_to_appointment(r) for r in raw if isinstance(r, dict)], "rendez-vous")
        rows = sort_newest_first(rows)
        self.cache.replace_all(rows)
        return rows

    def get_by_id(self, appointment_id: int) -> Optional[RendezVous]:
        return self.cache.get(appointment_id)

    def _payload(self, data: AppointmentForm, cin: str) -> Dict[str, Any]:
        when = parse_dt(data.date_rendez_vous)
        return {
            "CIN": cin,
            "sujet": data.sujet,
            "date_rendez_vous": when.isoformat() if when else data.date_rendez_vous,
            "status": data.status,
            "cabinet": data.cabinet,
            "Cree_par": self._cin(),
            "soin_id": data.soin_id,
        }

    def _resolve(self, data: AppointmentForm):
        client = self.clients.get_by_id(data.client_id)
        if client is None:
            raise ValidationFailed(["Client non trouvé"])
        soin = self.soins.get_by_id(data.soin_id) if data.soin_id else None
        return client, (soin.nom if soin else None)

    def create(self, data: AppointmentForm) -> RendezVous:
        errors = validate_appointment_data(data)
        if errors:
            raise ValidationFailed(errors)
        client, soin_nom = self._resolve(data)
        res = self.api.post("rendez-vous", self._payload(data, client.cin))
        rv = RendezVous(
            id=response_id(res), cin=client.cin, patient_nom=client.full_name, sujet=data.sujet,
            date_rendez_vous=data.date_rendez_vous, cree_par=data.cree_par, status=data.status,
            client_id=data.client_id, created_at=now_iso(), cabinet=data.cabinet,
            soin_id=data.soin_id, soin_nom=soin_nom, email=client.email,
        )
        self.cache.add(rv)
        self._log("appointment", "created", rv.id, rv.reference,
                  {"patientName": rv.patient_nom, "appointmentType": data.sujet})
        return rv

    def update(self, appointment_id: int, data: AppointmentForm) -> Optional[RendezVous]:
        current = self.cache.get(appointment_id)
        if current is None:
            return None
        client, soin_nom = self._resolve(data)
        self.api.patch(f"rendez-vous/{appointment_id}", self._payload(data, client.cin))
        updated = current.model_copy(update={
            "cin": client.cin, "patient_nom": client.full_name, "sujet": data.sujet,
            "date_rendez_vous": data.date_rendez_vous, "cree_par": data.cree_par, "status": data.status,
            "client_id": data.client_id, "cabinet": data.cabinet, "soin_id": data.soin_id, "soin_nom": soin_nom,
        })
        self.cache.update(updated)
        action = {"annulé": "cancelled", "terminé": "completed"}.get(data.status, "updated")
        self._log("appointment", action, appointment_id, updated.reference,
                  {"patientName": updated.patient_nom, "appointmentType": data.sujet})
        return updated

    def delete(self, appointment_id: int) -> bool:
        self.api.delete(f"rendez-vous/{appointment_id}")
        current = self.cache.get(appointment_id)
        if current is None:
            return False
        self.cache.delete(appointment_id)
        self._log("appointment", "deleted", appointment_id, current.reference,
                  {"patientName": current.patient_nom, "appointmentType": current.sujet})
        return True

    def search(self, query: str) -> List[RendezVous]:
        q = (query or "").lower()
        return self.cache.find(
            lambda a: q in a.patient_nom.lower() or q in a.cin.lower() or q in a.sujet.lower()
        )

    def filter(self, status: Optional[str] = None, creator: Optional[str] = None) -> List[RendezVous]:
        def keep(a: RendezVous) -> bool:
            if status and status != ALL and a.status != status:
                return False
            if creator and creator != ALL and a.cree_par != creator:
                return False
            return True

        return self.cache.find(keep)
