import pytest

from clinic.errors import ValidationFailed
from clinic.models.document import (
    Document, DocumentField, DocumentSection, DocumentTemplate, ScannedDocumentForm, SectionsJson,
)
from clinic.services.document_templates import create_empty_template, get_field_types, validate_template_data
from clinic.services.documents import compute_field_key, get_field_value, set_field_value, validate_document_data
from clinic.services.scanned_documents import validate_scanned_doc


def _template(**overrides):
    values = dict(
        name="Bilan initial",
        cree_par="AB12345",
        sections_json=SectionsJson(sections=[
            DocumentSection(title="Mesures", fields=[
                DocumentField(name="Poids", type="number", required=True),
                DocumentField(name="Objectif", type="select", options=["Forme", "Sommeil"]),
            ]),
        ]),
    )
    values.update(overrides)
    return DocumentTemplate(**values)


# ---------- Modèles ----------
def test_validate_template():
    assert validate_template_data(_template()) == []

    broken = _template(name="", sections_json=SectionsJson(sections=[
        DocumentSection(title="", fields=[]),
        DocumentSection(title="Notes", fields=[DocumentField(name="", type="select")]),
    ]))
    assert validate_template_data(broken) == [
        "Le nom du modèle est obligatoire",
        "Le titre de la section 1 est obligatoire",
        'La section "" doit contenir au moins un champ',
        'Le nom du champ 1 dans "Notes" est obligatoire',
        'Le champ "" de type "select" doit avoir des options',
    ]
    assert validate_template_data(_template(sections_json=SectionsJson())) == ["Au moins une section est requise"]


def test_empty_template_and_field_types():
    tpl = create_empty_template("AB12345")
    assert tpl.cree_par == "AB12345"
    assert tpl.sections_json.sections[0].fields[0].type == "text"
    assert [t["value"] for t in get_field_types()][:2] == ["text", "number"]


def test_template_crud(ctx, backend):
    tpl = ctx.templates.create(_template())
    row = backend.row("document-templates", tpl.id)
    assert row["sections_json"]["sections"][0]["fields"][1]["options"] == ["Forme", "Sommeil"]
    assert "options" not in row["sections_json"]["sections"][0]["fields"][0]

    ctx.templates.update(tpl.id, _template(name="Bilan complet"))
    assert ctx.templates.search("complet")[0].id == tpl.id
    assert ctx.templates.delete(tpl.id) is True
    actions = [a.action for a in ctx.activities.get_by_type("document_template")]
    assert actions == ["deleted", "updated", "created"]


# ---------- Documents patient ----------
def test_field_keys():
    key = compute_field_key(3, 0, 1)
    assert key == "fld:3:0:1"
    data = {"Poids": 72}
    assert get_field_value(data, key, "Poids") == 72
    data = set_field_value(data, key, 70, "Poids")
    assert data == {key: 70}
    assert get_field_value(data, "absent") == ""


def test_validate_document():
    assert validate_document_data(Document()) == [
        "Le modèle de document est obligatoire",
        "Le CIN du patient est obligatoire",
        "Le créateur est obligatoire",
        "Les données du document sont obligatoires",
    ]


def test_document_crud_uses_template_name(ctx, backend, patient):
    tpl = ctx.templates.create(_template())
    doc = ctx.documents.create(Document(template_id=tpl.id, cin=patient["CIN"], cree_par="AB12345",
                                        data_json={compute_field_key(tpl.id, 0, 0): 72}))

    assert backend.row("document", doc.id)["data_json"] == {f"fld:{tpl.id}:0:0": 72}
    [activity] = ctx.activities.get_by_type("document")
    assert activity.entity_name == "Bilan initial"
    assert activity.description == f"Bilan initial pour {patient['CIN']}"

    assert [d.id for d in ctx.documents.get_by_patient_cin(patient["CIN"])] == [doc.id]
    assert ctx.documents.get_by_template_id(tpl.id)[0].id == doc.id
    assert ctx.documents.search("72", cin=patient["CIN"])

    ctx.documents.update(doc.id, doc.model_copy(update={"data_json": {"note": "revu"}}))
    assert backend.row("document", doc.id)["data_json"] == {"note": "revu"}
    assert ctx.documents.delete(doc.id) is True


# ---------- Documents scannés ----------
def test_validate_scanned_doc(tmp_path):
    assert validate_scanned_doc(ScannedDocumentForm()) == [
        "Le titre est obligatoire",
        "Le CIN du patient est obligatoire",
        "Le fichier PDF est obligatoire",
    ]
    missing = tmp_path / "absent.pdf"
    errors = validate_scanned_doc(ScannedDocumentForm(title="Radio", cin="BK1", file_path=missing))
    assert errors == [f"Fichier introuvable : {missing}"]
    assert validate_scanned_doc(ScannedDocumentForm(title="Radio", cin="BK1"), require_file=False) == []


def test_scanned_document_upload(ctx, backend, tmp_path, patient):
    pdf = tmp_path / "radio.pdf"
    pdf.write_bytes(b"%PDF-1.4 test")

    doc = ctx.scanned_documents.create(ScannedDocumentForm(title="Radio thorax", cin=patient["CIN"], file_path=pdf))
    assert doc.filename == "radio.pdf"
    assert doc.cree_par == "AB12345"
    assert doc.file_url == f"http://clinic.test/api/scanned-document/{doc.id}/preview"

    [(method, path, body)] = [b for b in backend.bodies if b[1] == "scanned-document"]
    assert method == "POST"
    assert b"%PDF-1.4 test" in body
    assert b"Radio thorax" in body
    assert ctx.scanned_documents.get_by_id(doc.id).filename == "scan.pdf"


def test_scanned_document_update_without_file(ctx, backend, tmp_path, patient):
    pdf = tmp_path / "scan.pdf"
    pdf.write_bytes(b"%PDF")
    doc = ctx.scanned_documents.create(ScannedDocumentForm(title="Scan", cin=patient["CIN"], file_path=pdf))

    updated = ctx.scanned_documents.update(doc.id, ScannedDocumentForm(title="Scan annoté", cin=patient["CIN"],
                                                                       description="Annoté"))
    assert updated.title == "Scan annoté"
    assert updated.filename == "scan.pdf"
    assert ctx.scanned_documents.search("annoté")[0].id == doc.id

    with pytest.raises(ValidationFailed):
        ctx.scanned_documents.update(doc.id, ScannedDocumentForm(title="", cin=patient["CIN"]))
    assert ctx.scanned_documents.delete(doc.id) is True
