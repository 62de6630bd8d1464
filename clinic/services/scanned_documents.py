from __future__ import annotations

import logging
from contextlib import ExitStack
from pathlib import Path
from typing import Any, Dict, List, Optional

from clinic.errors import ValidationFailed
from clinic.models.common import now_iso
from clinic.models.document import ScannedDocument, ScannedDocumentForm
from clinic.storage.cache import EntityCache

from .base import ApiService, parse_rows, response_id
from .validation import blank

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "fichier.pdf"


def validate_scanned_doc(data: ScannedDocumentForm, require_file: bool = True) -> List[str]:
    errors: List[str] = []
    if blank(data.title):
        errors.append("Le titre est obligatoire")
    if blank(data.cin):
        errors.append("Le CIN du patient est obligatoire")
    if require_file and not data.file_path:
        errors.append("Le fichier PDF est obligatoire")
    elif data.file_path and not Path(data.file_path).is_file():
        errors.append(f"Fichier introuvable : {data.file_path}")
    return errors


class ScannedDocumentsService(ApiService):
    """Documents scannés (PDF) rattachés à un patient, envoyés en multipart."""

    def __init__(self, api, session=None, activities=None):
        super().__init__(api, session, activities)
        self.cache: EntityCache[ScannedDocument] = EntityCache("document scanné")

    def preview_url(self, doc_id: int) -> str:
        return f"{self.api.base_url}/scanned-document/{doc_id}/preview"

    def download_url(self, doc_id: int) -> str:
        return f"{self.api.base_url}/scanned-document/{doc_id}/download"

    def _from_row(self, row: Dict[str, Any]) -> Dict[str, Any]:
        return {
            **row,
            "filename": row.get("filePath") or row.get("filename") or "",
            "file_url": self.preview_url(row.get("id")),
            "file_download_url": self.download_url(row.get("id")),
        }

    def get_all(self) -> List[ScannedDocument]:
        raw = self.api.get("scanned-document") or []
        rows = parse_rows(ScannedDocument, [self._from_row(r) for r in raw if isinstance(r, dict)], "scanned-document")
        self.cache.replace_all(rows)
        return rows

    def get_by_id(self, doc_id: int) -> Optional[ScannedDocument]:
        self.get_all()
        return self.cache.get(doc_id)

    def get_by_patient_cin(self, cin: str) -> List[ScannedDocument]:
        self.get_all()
        return self.cache.find(lambda d: d.cin == cin)

    def _send(self, method: str, path: str, fields: Dict[str, str], file_path: Optional[Path]) -> Any:
        with ExitStack() as stack:
            files = None
            if file_path:
                fh = stack.enter_context(Path(file_path).open("rb"))
                files = {"file": (Path(file_path).name, fh, "application/pdf")}
            send = self.api.post if method == "POST" else self.api.patch
            return send(path, data=fields, files=files)

    def create(self, data: ScannedDocumentForm) -> ScannedDocument:
        errors = validate_scanned_doc(data)
        if errors:
            raise ValidationFailed(errors)
        creator = self._cin() or data.cree_par
        fields = {"title": data.title, "CIN": data.cin, "Cree_par": creator}
        if data.description:
            fields["description"] = data.description
        res = self._send("POST", "scanned-document", fields, data.file_path)
        doc_id = response_id(res)
        doc = ScannedDocument(
            id=doc_id, title=data.title, description=data.description or None,
            filename=Path(data.file_path).name if data.file_path else DEFAULT_FILENAME,
            created_at=now_iso(), cin=data.cin, cree_par=creator,
            file_url=self.preview_url(doc_id) if doc_id else None,
            file_download_url=self.download_url(doc_id) if doc_id else None,
        )
        self.cache.add(doc)
        logger.info("Document scanné %s ajouté pour %s", doc.filename, doc.cin)
        return doc

    def update(self, doc_id: int, data: ScannedDocumentForm) -> Optional[ScannedDocument]:
        current = self.cache.get(doc_id)
        if current is None:
            return None
        errors = validate_scanned_doc(data, require_file=False)
        if errors:
            raise ValidationFailed(errors)
        fields = {"title": data.title, "CIN": data.cin}
        if data.description:
            fields["description"] = data.description
        self._send("PATCH", f"scanned-document/{doc_id}", fields, data.file_path)

        changes: Dict[str, Any] = {
            "title": data.title or current.title,
            "description": data.description or current.description,
            "cin": data.cin or current.cin,
        }
        if data.file_path:
            changes["filename"] = Path(data.file_path).name
            changes["file_url"] = self.preview_url(doc_id)
        return self.cache.update(current.model_copy(update=changes))

    def delete(self, doc_id: int) -> bool:
        self.api.delete(f"scanned-document/{doc_id}")
        return self.cache.delete(doc_id)

    def search(self, query: str, cin: Optional[str] = None) -> List[ScannedDocument]:
        q = (query or "").lower()

        def match(d: ScannedDocument) -> bool:
            if cin and d.cin != cin:
                return False
            return any(q in (v or "").lower() for v in (d.title, d.description, d.filename, d.cin, d.cree_par))

        return self.cache.find(match)
