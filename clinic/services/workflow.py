from __future__ import annotations

from typing import Any, Dict, List, Optional

from clinic.errors import ValidationFailed
from clinic.models.common import now_iso, sort_newest_first
from clinic.models.invoice import TypeBien
from clinic.models.workflow import Workflow, WorkflowForm, WorkflowWithDetails
from clinic.storage.cache import EntityCache

from .base import ApiService, parse_rows, response_id
from .validation import blank

ALL = "tous"
IN_PROGRESS = "En cours"
DONE = "Terminé"


def validate_workflow_data(data: WorkflowForm) -> List[str]:
    errors: List[str] = []
    if blank(data.client_cin):
        errors.append("Le CIN du patient est obligatoire")
    if not data.rendez_vous_id or data.rendez_vous_id <= 0:
        errors.append("Le rendez-vous est obligatoire")
    if blank(data.cree_par):
        errors.append("Le créateur est obligatoire")
    return errors


class WorkflowService(ApiService):
    """
    Enchaînement rendez-vous -> facture pour un patient.
    Le détail joint le patient (CIN), le rendez-vous et la facture ; le flux
    n'est Terminé que si la facture liée est payée.
    """

    def __init__(self, api, clients, appointments, invoices, session=None, activities=None):
        super().__init__(api, session, activities)
        self.clients = clients
        self.appointments = appointments
        self.invoices = invoices
        self.cache: EntityCache[Workflow] = EntityCache("flux")

    def get_all(self) -> List[Workflow]:
        raw = self.api.get("workflow") or []
        rows = [
            {**r, "status": DONE if r.get("facture_id") else IN_PROGRESS}
            for r in raw if isinstance(r, dict)
        ]
        workflows = sort_newest_first(parse_rows(Workflow, rows, "workflow"))
        self.cache.replace_all(workflows)
        return workflows

    def get_by_id(self, workflow_id: int) -> Optional[WorkflowWithDetails]:
        wf = self.cache.get(workflow_id)
        return self.enrich(wf) if wf else None

    def get_all_with_details(self) -> List[WorkflowWithDetails]:
        workflows = self.get_all()
        self.appointments.get_all()
        self.invoices.get_all()
        return [self.enrich(w) for w in workflows]

    def enrich(self, wf: Workflow) -> WorkflowWithDetails:
        details: Dict[str, Any] = {}

        client = self.clients.get_by_cin(wf.client_cin)
        if client:
            details.update(client=client, patient_name=client.full_name)

        rv = self.appointments.get_by_id(wf.rendez_vous_id)
        if rv:
            details.update(appointment=rv, appointment_date=rv.date_rendez_vous, appointment_status=rv.status)

        if wf.facture_id:
            invoice = self.invoices.get_by_id(wf.facture_id)
            if invoice:
                details.update(
                    invoice=invoice,
                    total_amount=invoice.prix_total,
                    payment_method=invoice.methode_paiement,
                    invoice_status=invoice.statut.value,
                    payment_date=invoice.date_paiement,
                    soins=[it.nom_bien for it in invoice.items if it.type_bien is TypeBien.SOIN],
                    products=[it.nom_bien for it in invoice.items if it.type_bien is TypeBien.PRODUIT],
                    status=DONE if invoice.is_paid else IN_PROGRESS,
                )
        return WorkflowWithDetails.model_validate({**wf.model_dump(), **details})

    def _payload(self, data: WorkflowForm) -> dict:
        return {
            "client_CIN": data.client_cin,
            "rendez_vous_id": data.rendez_vous_id,
            "facture_id": data.facture_id or None,
            "Cree_par": self._cin(),
        }

    def _meta(self, data) -> dict:
        return {"patientCIN": data.client_cin, "appointmentId": data.rendez_vous_id, "invoiceId": data.facture_id}

    def create(self, data: WorkflowForm) -> Workflow:
        errors = validate_workflow_data(data)
        if errors:
            raise ValidationFailed(errors)
        res = self.api.post("workflow", self._payload(data))
        wf = Workflow(
            id=response_id(res), client_cin=data.client_cin, rendez_vous_id=data.rendez_vous_id,
            facture_id=data.facture_id, status=DONE if data.facture_id else IN_PROGRESS,
            created_at=now_iso(), cree_par=self._cin() or data.cree_par,
        )
        self.cache.add(wf)
        self._log("workflow", "created", wf.id, wf.reference, self._meta(data))
        return wf

    def update(self, workflow_id: int, data: WorkflowForm) -> Optional[Workflow]:
        current = self.cache.get(workflow_id)
        if current is None:
            return None
        errors = validate_workflow_data(data)
        if errors:
            raise ValidationFailed(errors)
        self.api.patch(f"workflow/{workflow_id}", self._payload(data))
        updated = self.cache.update(current.model_copy(update={
            "client_cin": data.client_cin, "rendez_vous_id": data.rendez_vous_id,
            "facture_id": data.facture_id, "status": DONE if data.facture_id else IN_PROGRESS,
        }))
        self._log("workflow", "updated", workflow_id, updated.reference, self._meta(data))
        return updated

    def delete(self, workflow_id: int) -> bool:
        current = self.cache.get(workflow_id)
        if current is None:
            return False
        self.api.delete(f"workflow/{workflow_id}")
        self.cache.delete(workflow_id)
        self._log("workflow", "deleted", workflow_id, current.reference, self._meta(current))
        return True

    def search(self, query: str) -> List[Workflow]:
        q = (query or "").lower()
        return self.cache.find(lambda w: q in w.client_cin.lower() or q in w.cree_par.lower())

    def filter(self, status: Optional[str] = None, creator: Optional[str] = None) -> List[Workflow]:
        def keep(w: Workflow) -> bool:
            if status and status != ALL and w.status != status:
                return False
            if creator and creator != ALL and w.cree_par != creator:
                return False
            return True

        return self.cache.find(keep)

    def get_by_client_cin(self, cin: str) -> List[Workflow]:
        return self.cache.find(lambda w: w.client_cin == cin)

    def get_by_status(self, status: str) -> List[Workflow]:
        return self.cache.find(lambda w: w.status == status)
