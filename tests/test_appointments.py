from datetime import date, datetime

import pytest

from clinic.errors import ValidationFailed
from clinic.models.appointment import AppointmentForm
from clinic.services.appointments import (
    generate_time_slots_for_date, get_appointment_types, get_available_dates, is_time_slot_available,
    validate_appointment_data,
)

FUTURE = "2099-06-15T10:30"


def _form(patient, soin, **overrides):
    values = dict(client_id=patient["id"], sujet="Thérapie IV", date_rendez_vous=FUTURE, cree_par="AB12345",
                  cabinet="Biohacking", soin_id=soin["id"])
    values.update(overrides)
    return AppointmentForm(**values)


def test_time_slots():
    slots = generate_time_slots_for_date(date(2024, 6, 10))
    assert len(slots) == 18
    assert (slots[0].time, slots[-1].time) == ("10:00", "18:30")
    assert slots[1].datetime == "2024-06-10T10:30"
    assert all(s.available for s in slots)


def test_available_dates_skip_weekends():
    days = get_available_dates(start=date(2024, 6, 7), days_ahead=4)  # vendredi -> lundi
    assert [d for d, _ in days] == [date(2024, 6, 7), date(2024, 6, 10)]


@pytest.mark.parametrize("value, ok", [("2024-06-10T10:00", True), ("2024-06-10T18:30", True),
                                       ("2024-06-10T19:00", False), ("2024-06-10T11:15", False), ("", False)])
def test_slot_availability(value, ok):
    assert is_time_slot_available(value) is ok


def test_appointment_types():
    assert get_appointment_types()[0] == "Consultation Biohacking"
    assert len(get_appointment_types()) == 12


def test_validation_rejects_past_dates():
    form = AppointmentForm(client_id=1, sujet="Bilan", date_rendez_vous="2024-01-01T10:00", cree_par="AB12345",
                           cabinet="Biohacking", soin_id=2)
    assert validate_appointment_data(form, now=datetime(2024, 6, 1)) == [
        "La date du rendez-vous ne peut pas être dans le passé"
    ]
    assert validate_appointment_data(AppointmentForm()) == [
        "Veuillez sélectionner un patient",
        "Le sujet du rendez-vous est obligatoire",
        "La date et l'heure sont obligatoires",
        "Le créateur est obligatoire",
        "Le cabinet est obligatoire",
        "Veuillez sélectionner un soin",
    ]


def test_create_appointment(ctx, backend, patient, products):
    _, _, soin = products
    ctx.soins.get_all()
    rv = ctx.appointments.create(_form(patient, soin))

    assert rv.patient_nom == "Youssef Bennani"
    assert rv.soin_nom == "Thérapie IV"
    assert rv.reference == f"RV-{rv.id:03d}"
    row = backend.row("rendez-vous", rv.id)
    assert row["CIN"] == patient["CIN"]
    assert row["date_rendez_vous"] == "2099-06-15T10:30:00"
    assert row["status"] == "programmé"

    [activity] = ctx.activities.get_by_type("appointment")
    assert activity.title == "Nouveau rendez-vous programmé"
    assert activity.description == "Youssef Bennani - Thérapie IV"


def test_unknown_patient_is_rejected(ctx, backend, products):
    _, _, soin = products
    with pytest.raises(ValidationFailed) as exc:
        ctx.appointments.create(_form({"id": 77}, soin))
    assert exc.value.errors == ["Client non trouvé"]
    assert backend.count("POST", "rendez-vous") == 0


@pytest.mark.parametrize("status, action", [("annulé", "cancelled"), ("terminé", "completed"),
                                            ("confirmé", "updated")])
def test_update_logs_by_status(ctx, patient, products, status, action):
    _, _, soin = products
    rv = ctx.appointments.create(_form(patient, soin))
    updated = ctx.appointments.update(rv.id, _form(patient, soin, status=status))

    assert updated.status == status
    assert ctx.activities.get_recent_activities(1)[0].action == action


def test_get_all_reads_nested_client_and_soin(ctx, backend, patient, products):
    _, _, soin = products
    backend.seed("rendez-vous", CIN=patient["CIN"], sujet="Bilan", date_rendez_vous="2099-01-02T10:00:00",
                 status="confirmé", cabinet="Biohacking", Cree_par="AB12345", soin_id=soin["id"],
                 client={"id": patient["id"], "nom": "Bennani", "prenom": "Youssef", "email": "y@b.ma"},
                 soin={"Nom": "Thérapie IV"})

    [rv] = ctx.appointments.get_all()
    assert rv.patient_nom == "Youssef Bennani"
    assert rv.client_id == patient["id"]
    assert rv.email == "y@b.ma"
    assert rv.soin_nom == "Thérapie IV"
    assert ctx.appointments.filter(status="confirmé") == [rv]
    assert ctx.appointments.filter(status="annulé") == []
    assert ctx.appointments.search("bilan") == [rv]


def test_delete_appointment(ctx, backend, patient, products):
    _, _, soin = products
    rv = ctx.appointments.create(_form(patient, soin))
    assert ctx.appointments.delete(rv.id) is True
    assert backend.row("rendez-vous", rv.id) is None
    assert ctx.appointments.get_by_id(rv.id) is None
