from datetime import datetime

import pytest

from clinic.errors import ValidationFailed
from clinic.models.invoice import FactureForm, FactureItem, FactureStatut, TypeBien
from clinic.models.payment import Payment
from clinic.models.workflow import WorkflowForm
from clinic.services.payments import get_payment_statistics, validate_payment_data
from clinic.services.workflow import validate_workflow_data


def _invoice(ctx, cin, statut, items, date="2024-03-05T10:00", paid_at=None):
    return ctx.invoices.create(FactureForm(
        cin=cin, date=date, statut=statut, cree_par="AB12345", date_paiement=paid_at,
        methode_paiement="Paiment Bancaire" if paid_at else None, items=items,
    ))


@pytest.fixture
def appointment(backend, patient, products):
    _, _, s = products
    return backend.seed("rendez-vous", CIN=patient["CIN"], sujet="Thérapie IV", date_rendez_vous="2024-03-05T09:00:00",
                        status="confirmé", cabinet="Biohacking", Cree_par="AB12345", soin_id=s["id"],
                        client={"id": patient["id"], "nom": "Bennani", "prenom": "Youssef", "email": "y@b.ma"},
                        soin={"Nom": "Thérapie IV"})


def test_validate_workflow_data():
    assert validate_workflow_data(WorkflowForm()) == [
        "Le CIN du patient est obligatoire",
        "Le rendez-vous est obligatoire",
        "Le créateur est obligatoire",
    ]


def test_workflow_status_follows_invoice_payment(ctx, backend, products, patient, appointment):
    a, _, s = products
    items = [
        FactureItem(id_bien=s["id"], type_bien=TypeBien.SOIN, quantite=1, prix_unitaire=400.0, nom_bien="Thérapie IV"),
        FactureItem(id_bien=a["id"], type_bien=TypeBien.PRODUIT, quantite=1, prix_unitaire=100.0,
                    nom_bien="Sérum vitamine C"),
    ]
    draft = _invoice(ctx, patient["CIN"], FactureStatut.ENVOYEE, items)
    backend.seed("workflow", client_CIN=patient["CIN"], rendez_vous_id=appointment["id"], facture_id=draft.id,
                 Cree_par="AB12345")
    backend.seed("workflow", client_CIN=patient["CIN"], rendez_vous_id=appointment["id"], Cree_par="AB12345")

    details = {w.facture_id: w for w in ctx.workflow.get_all_with_details()}

    linked = details[draft.id]
    assert linked.status == "En cours"
    assert linked.patient_name == "Youssef Bennani"
    assert linked.appointment_status == "confirmé"
    assert linked.total_amount == 600.0
    assert linked.invoice_status == "Envoyée"
    assert linked.soins == ["Thérapie IV"]
    assert linked.products == ["Sérum vitamine C"]
    assert details[None].status == "En cours"
    assert details[None].invoice is None

    ctx.invoices.update_status(draft.id, FactureStatut.PAYEE, date_paiement="2024-03-06T12:00")
    [paid] = [w for w in ctx.workflow.get_all_with_details() if w.facture_id == draft.id]
    assert paid.status == "Terminé"
    assert paid.payment_date == "2024-03-06T12:00:00"


def test_workflow_crud_logs_activity(ctx, backend, patient, appointment):
    wf = ctx.workflow.create(WorkflowForm(client_cin=patient["CIN"], rendez_vous_id=appointment["id"],
                                          cree_par="AB12345"))
    assert wf.status == "En cours"
    assert wf.reference == f"Flux-{wf.id:03d}"
    assert backend.row("workflow", wf.id)["client_CIN"] == patient["CIN"]

    updated = ctx.workflow.update(wf.id, WorkflowForm(client_cin=patient["CIN"], rendez_vous_id=appointment["id"],
                                                      facture_id=7, cree_par="AB12345"))
    assert updated.status == "Terminé"
    assert ctx.workflow.get_by_status("Terminé") == [updated]
    assert ctx.workflow.filter(status="tous") == [updated]

    assert ctx.workflow.delete(wf.id) is True
    assert [a.action for a in ctx.activities.get_by_type("workflow")] == ["deleted", "updated", "created"]
    latest = ctx.activities.get_recent_activities(1)[0]
    assert latest.metadata == {"patientCIN": patient["CIN"], "appointmentId": appointment["id"], "invoiceId": 7}


def test_workflow_create_rejects_incomplete_form(ctx, backend):
    with pytest.raises(ValidationFailed) as exc:
        ctx.workflow.create(WorkflowForm(client_cin="BK1", cree_par="AB12345"))
    assert exc.value.errors == ["Le rendez-vous est obligatoire"]
    assert backend.calls == []


# ---------- Paiements ----------
def test_payments_are_derived_from_paid_invoices(ctx, products, patient):
    a, _, _ = products
    item = FactureItem(id_bien=a["id"], type_bien=TypeBien.PRODUIT, quantite=1, prix_unitaire=100.0)
    first = _invoice(ctx, patient["CIN"], FactureStatut.PAYEE, [item], paid_at="2024-03-10T10:00")
    _invoice(ctx, patient["CIN"], FactureStatut.BROUILLON, [item])
    second = _invoice(ctx, patient["CIN"], FactureStatut.PAYEE, [item], date="2024-04-02T09:00",
                      paid_at="2024-04-02T09:30")

    payments = ctx.payments.generate_from_paid_invoices()

    assert [p.id_facture for p in payments] == [second.id, first.id]
    assert [p.id for p in payments] == [2, 1]
    assert payments[0].montant_totale == 120.0

    again = ctx.payments.generate_from_paid_invoices()
    assert [(p.id, p.id_facture) for p in again] == [(p.id, p.id_facture) for p in payments]

    details = ctx.payments.get_all_with_details()
    assert details[1].facture_number == f"#{first.id:04d}"
    assert details[1].patient_cin == patient["CIN"]


def test_payment_queries(ctx, products, patient):
    a, _, _ = products
    item = FactureItem(id_bien=a["id"], type_bien=TypeBien.PRODUIT, quantite=2, prix_unitaire=100.0)
    inv = _invoice(ctx, patient["CIN"], FactureStatut.PAYEE, [item], paid_at="2024-03-10T10:00")
    ctx.payments.generate_from_paid_invoices()

    assert ctx.payments.get_available_doctors() == ["AB12345"]
    assert ctx.payments.get_by_doctor("AB12345")[0].id_facture == inv.id
    assert ctx.payments.get_by_date_range("2024-03-01", "2024-03-31T23:59")[0].montant_totale == 240.0
    assert ctx.payments.get_by_date_range("2024-04-01", "2024-04-30") == []
    assert ctx.payments.search(str(inv.id))


def test_payment_details_feed_statistics(ctx, products, patient):
    a, _, _ = products
    item = FactureItem(id_bien=a["id"], type_bien=TypeBien.PRODUIT, quantite=1, prix_unitaire=100.0)
    _invoice(ctx, patient["CIN"], FactureStatut.PAYEE, [item], paid_at="2024-03-10T10:00")
    _invoice(ctx, patient["CIN"], FactureStatut.BROUILLON, [item])

    ctx.payments.generate_from_paid_invoices()
    details = ctx.payments.get_all_with_details()
    stats = get_payment_statistics(details, now=datetime(2024, 3, 20))

    assert [d.patient_cin for d in details] == [patient["CIN"]]
    assert stats["total_payments"] == 1
    assert stats["total_revenue"] == 120.0
    assert stats["current_month_revenue"] == 120.0


def test_create_payment_from_unknown_invoice(ctx):
    with pytest.raises(ValidationFailed) as exc:
        ctx.payments.create_from_invoice(404)
    assert exc.value.errors == ["Facture introuvable"]


def test_validate_payment_data():
    assert validate_payment_data(Payment()) == [
        "L'ID de la facture est obligatoire",
        "La date du paiement est obligatoire",
        "Le montant doit être supérieur à 0",
        "Le créateur est obligatoire",
    ]


def test_payment_statistics():
    payments = [
        Payment(id=1, id_facture=1, date="2024-05-03T10:00:00", montant_totale=120.0, cree_par="AB12345"),
        Payment(id=2, id_facture=2, date="2024-05-20T10:00:00", montant_totale=80.0, cree_par="CD67890"),
        Payment(id=3, id_facture=3, date="2024-04-11T10:00:00", montant_totale=300.0, cree_par="CD67890"),
    ]
    stats = get_payment_statistics(payments, now=datetime(2024, 5, 25))

    assert stats["total_payments"] == 3
    assert stats["total_revenue"] == 500.0
    assert stats["current_month_revenue"] == 200.0
    assert stats["previous_month_revenue"] == 300.0
    assert stats["monthly_trend"] == -100.0
    assert stats["top_doctor"] == "CD67890"
    assert stats["doctor_stats"]["AB12345"] == {"count": 1, "revenue": 120.0}


def test_payment_statistics_empty():
    stats = get_payment_statistics([])
    assert stats["average_payment"] == 0
    assert stats["top_doctor"] == "N/A"
