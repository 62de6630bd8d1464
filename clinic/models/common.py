from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, model_validator

T = TypeVar("T")


class ApiModel(BaseModel):
    """Base des entités renvoyées par l'API (clés françaises, champs null tolérés)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # null côté API -> valeur par défaut du modèle
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_dt(value: Any) -> Optional[datetime]:
    """ISO (avec ou sans 'Z', avec ou sans secondes) -> datetime naïf en UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        s = str(value).strip().replace("Z", "+00:00")
        try:
            dt = datetime.fromisoformat(s)
        except ValueError:
            return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def sort_newest_first(items: Iterable[T], attr: str = "created_at") -> List[T]:
    return sorted(items, key=lambda it: parse_dt(getattr(it, attr, None)) or datetime.min, reverse=True)
