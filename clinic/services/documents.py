from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Tuple

from clinic.errors import ValidationFailed
from clinic.models.common import now_iso
from clinic.models.document import Document
from clinic.storage.cache import EntityCache

from .base import ApiService, parse_rows, response_id
from .validation import blank


def compute_field_key(template_id: int, section_index: int, field_index: int) -> str:
    """Clé stable d'un champ, d'après sa position dans le modèle."""
    return f"fld:{template_id}:{section_index}:{field_index}"


def get_field_value(data: Dict[str, Any], key_or_name: str, fallback_name: Optional[str] = None) -> Any:
    if key_or_name in data:
        return data[key_or_name]
    if fallback_name and fallback_name in data:
        return data[fallback_name]
    return ""


def set_field_value(data: Dict[str, Any], key_or_name: str, value: Any,
                    fallback_name: Optional[str] = None) -> Dict[str, Any]:
    """Nouvelle copie des données ; l'ancienne clé par nom est retirée."""
    out = {**data, key_or_name: value}
    if fallback_name and fallback_name != key_or_name:
        out.pop(fallback_name, None)
    return out


def format_document_data(data: Dict[str, Any]) -> List[Tuple[str, Any]]:
    return list(data.items())


def validate_document_data(data: Document) -> List[str]:
    errors: List[str] = []
    if not data.template_id:
        errors.append("Le modèle de document est obligatoire")
    if blank(data.cin):
        errors.append("Le CIN du patient est obligatoire")
    if blank(data.cree_par):
        errors.append("Le créateur est obligatoire")
    if not data.data_json:
        errors.append("Les données du document sont obligatoires")
    return errors


class DocumentsService(ApiService):
    def __init__(self, api, session=None, activities=None, templates=None):
        super().__init__(api, session, activities)
        self.templates = templates
        self.cache: EntityCache[Document] = EntityCache("document")

    def _payload(self, data: Document) -> dict:
        return {
            "template_id": data.template_id,
            "CIN": data.cin,
            "data_json": data.data_json,
            "Cree_par": self._cin(),
        }

    def _template_name(self, template_id: int) -> str:
        tpl = self.templates.get_by_id(template_id) if self.templates is not None else None
        return tpl.name if tpl else "Document"

    def get_all(self) -> List[Document]:
        rows = parse_rows(Document, self.api.get("document"), "document")
        self.cache.replace_all(rows)
        return rows

    def get_by_patient_cin(self, cin: str) -> List[Document]:
        self.get_all()
        return self.cache.find(lambda d: d.cin == cin)

    def get_by_id(self, document_id: int) -> Optional[Document]:
        self.get_all()
        return self.cache.get(document_id)

    def get_by_template_id(self, template_id: int) -> List[Document]:
        return self.cache.find(lambda d: d.template_id == template_id)

    def create(self, data: Document) -> Document:
        errors = validate_document_data(data)
        if errors:
            raise ValidationFailed(errors)
        res = self.api.post("document", self._payload(data))
        doc = data.model_copy(update={"id": response_id(res), "created_at": now_iso()})
        self.cache.add(doc)
        self._log("document", "created", doc.id, self._template_name(doc.template_id),
                  {"patientName": doc.cin, "documentType": self._template_name(doc.template_id)})
        return doc

    def update(self, document_id: int, data: Document) -> Optional[Document]:
        current = self.cache.get(document_id)
        if current is None:
            return None
        errors = validate_document_data(data)
        if errors:
            raise ValidationFailed(errors)
        self.api.patch(f"document/{document_id}", self._payload(data))
        updated = data.model_copy(update={"id": document_id, "created_at": current.created_at})
        self.cache.update(updated)
        self._log("document", "updated", document_id, self._template_name(updated.template_id),
                  {"patientName": updated.cin, "documentType": self._template_name(updated.template_id)})
        return updated

    def delete(self, document_id: int) -> bool:
        self.api.delete(f"document/{document_id}")
        current = self.cache.get(document_id)
        if current is None:
            return False
        self.cache.delete(document_id)
        self._log("document", "deleted", document_id, self._template_name(current.template_id),
                  {"patientName": current.cin, "documentType": self._template_name(current.template_id)})
        return True

    def search(self, query: str, cin: Optional[str] = None) -> List[Document]:
        q = (query or "").lower()
        docs = self.cache.find(lambda d: not cin or d.cin == cin)
        return [
            d for d in docs
            if q in d.cree_par.lower() or q in json.dumps(d.data_json, ensure_ascii=False).lower()
        ]
