from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .common import ApiModel

FieldType = Literal["text", "number", "textarea", "date", "select", "checkbox"]


class DocumentField(BaseModel):
    name: str = ""
    type: Optional[FieldType] = "text"
    required: bool = False
    options: Optional[List[str]] = None


class DocumentSection(BaseModel):
    title: str = ""
    fields: List[DocumentField] = Field(default_factory=list)


class SectionsJson(BaseModel):
    sections: List[DocumentSection] = Field(default_factory=list)


class DocumentTemplate(ApiModel):
    """Modèle de document : sections de champs à remplir pour un patient."""

    id: Optional[int] = None
    name: str = ""
    sections_json: SectionsJson = Field(default_factory=SectionsJson)
    cree_par: str = Field("", alias="Cree_par")
    created_at: Optional[str] = None


class Document(ApiModel):
    id: Optional[int] = None
    template_id: int = 0
    cin: str = Field("", alias="CIN")
    data_json: Dict[str, Any] = Field(default_factory=dict)
    cree_par: str = Field("", alias="Cree_par")
    created_at: Optional[str] = None


class ScannedDocument(ApiModel):
    id: Optional[int] = None
    title: str = ""
    description: Optional[str] = None
    filename: str = ""
    created_at: Optional[str] = Field(None, alias="createdAt")
    cin: str = Field("", alias="CIN")
    cree_par: str = Field("", alias="Cree_par")
    file_url: Optional[str] = None
    file_download_url: Optional[str] = None


class ScannedDocumentForm(BaseModel):
    title: str = ""
    description: str = ""
    file_path: Optional[Path] = None
    cin: str = ""
    cree_par: str = ""
