from __future__ import annotations

from typing import Dict, List, Optional

from clinic.errors import ValidationFailed
from clinic.models.common import now_iso, sort_newest_first
from clinic.models.document import DocumentField, DocumentSection, DocumentTemplate, SectionsJson
from clinic.storage.cache import EntityCache

from .base import ApiService, parse_rows, response_id
from .validation import blank

FIELD_TYPES: List[Dict[str, str]] = [
    {"value": "text", "label": "Texte"},
    {"value": "number", "label": "Nombre"},
    {"value": "textarea", "label": "Zone de texte"},
    {"value": "date", "label": "Date"},
    {"value": "select", "label": "Liste déroulante"},
    {"value": "checkbox", "label": "Case à cocher"},
]


def get_field_types() -> List[Dict[str, str]]:
    return [dict(t) for t in FIELD_TYPES]


def validate_template_data(data: DocumentTemplate) -> List[str]:
    errors: List[str] = []
    if blank(data.name):
        errors.append("Le nom du modèle est obligatoire")
    if blank(data.cree_par):
        errors.append("Le créateur est obligatoire")

    sections = data.sections_json.sections
    if not sections:
        errors.append("Au moins une section est requise")
    for si, section in enumerate(sections, start=1):
        if blank(section.title):
            errors.append(f"Le titre de la section {si} est obligatoire")
        if not section.fields:
            errors.append(f'La section "{section.title}" doit contenir au moins un champ')
            continue
        for fi, f in enumerate(section.fields, start=1):
            if blank(f.name):
                errors.append(f'Le nom du champ {fi} dans "{section.title}" est obligatoire')
            if not f.type:
                errors.append(f'Le type du champ "{f.name}" dans "{section.title}" est obligatoire')
            if f.type == "select" and not f.options:
                errors.append(f'Le champ "{f.name}" de type "select" doit avoir des options')
    return errors


def create_empty_field() -> DocumentField:
    return DocumentField(name="", type="text", required=False)


def create_empty_section() -> DocumentSection:
    return DocumentSection(title="", fields=[create_empty_field()])


def create_empty_template(cin: str = "") -> DocumentTemplate:
    return DocumentTemplate(name="", sections_json=SectionsJson(sections=[create_empty_section()]), cree_par=cin)


class DocumentTemplatesService(ApiService):
    def __init__(self, api, session=None, activities=None):
        super().__init__(api, session, activities)
        self.cache: EntityCache[DocumentTemplate] = EntityCache("modèle")

    def _payload(self, data: DocumentTemplate) -> dict:
        return {
            "name": data.name,
            "sections_json": data.sections_json.model_dump(exclude_none=True),
            "Cree_par": self._cin(),
        }

    def get_all(self) -> List[DocumentTemplate]:
        rows = sort_newest_first(parse_rows(DocumentTemplate, self.api.get("document-templates"), "document-templates"))
        self.cache.replace_all(rows)
        return rows

    def get_by_id(self, template_id: int) -> Optional[DocumentTemplate]:
        return self.cache.get(template_id)

    def create(self, data: DocumentTemplate) -> DocumentTemplate:
        errors = validate_template_data(data)
        if errors:
            raise ValidationFailed(errors)
        res = self.api.post("document-templates", self._payload(data))
        created_at = res.get("created_at") if isinstance(res, dict) else None
        template = data.model_copy(update={"id": response_id(res), "created_at": created_at or now_iso()})
        self.cache.add(template)
        self._log("document_template", "created", template.id, template.name)
        return template

    def update(self, template_id: int, data: DocumentTemplate) -> Optional[DocumentTemplate]:
        current = self.cache.get(template_id)
        if current is None:
            return None
        errors = validate_template_data(data)
        if errors:
            raise ValidationFailed(errors)
        self.api.patch(f"document-templates/{template_id}", self._payload(data))
        updated = data.model_copy(update={"id": template_id, "created_at": current.created_at})
        self.cache.update(updated)
        self._log("document_template", "updated", template_id, updated.name)
        return updated

    def delete(self, template_id: int) -> bool:
        self.api.delete(f"document-templates/{template_id}")
        current = self.cache.get(template_id)
        if current is None:
            return False
        self.cache.delete(template_id)
        self._log("document_template", "deleted", template_id, current.name)
        return True

    def search(self, query: str) -> List[DocumentTemplate]:
        q = (query or "").lower()
        return self.cache.find(lambda t: q in t.name.lower() or q in t.cree_par.lower())
