from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from clinic.api.client import ApiClient
from clinic.errors import ApiError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def parse_rows(model: Type[M], data: Any, path: str = "") -> List[M]:
    """Liste JSON -> modèles ; les lignes invalides sont ignorées (avec un warning)."""
    if data is None:
        return []
    if not isinstance(data, list):
        raise ApiError("Réponse inattendue (liste attendue)", path=path)
    out: List[M] = []
    for row in data:
        try:
            out.append(model.model_validate(row))
        except ValidationError as e:
            logger.warning("%s: ligne ignorée (%s)", path or model.__name__, e.errors()[:1])
    return out


def response_id(data: Any) -> Optional[int]:
    if isinstance(data, dict) and data.get("id") is not None:
        return int(data["id"])
    return None


class ApiService:
    """Socle commun : client REST, utilisateur courant, journal d'activité."""

    def __init__(self, api: ApiClient, session=None, activities=None):
        self.api = api
        self.session = session
        self.activities = activities

    def _cin(self) -> str:
        return self.session.current_cin() if self.session is not None else ""

    def _log(self, type_: str, action: str, entity_id: Optional[int], entity_name: str,
             metadata: Optional[Dict[str, Any]] = None) -> None:
        if self.activities is not None:
            self.activities.log_activity(type_, action, entity_id, entity_name, self._cin(), metadata)
