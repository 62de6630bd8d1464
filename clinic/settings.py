from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

ROOT_DIR = Path(__file__).resolve().parents[1]
DEFAULT_API_URL = "http://localhost:3000/api"
DEFAULT_TIMEOUT = 15.0


def data_dir() -> Path:
    env = os.environ.get("CLINIC_DATA_DIR")
    return Path(env) if env else ROOT_DIR / "data"


def _load_json(path: Path) -> Any:
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Lecture impossible de %s (%s)", path, e)
        return None


class Settings(BaseModel):
    api_url: str = DEFAULT_API_URL
    api_timeout: float = DEFAULT_TIMEOUT
    data_dir: Path


def load_settings(base: Optional[Path] = None) -> Settings:
    """
    Ordre de priorité :
      - variables d'env (CLINIC_API_URL, CLINIC_API_TIMEOUT)
      - data/settings.json -> api.base_url / api.timeout
      - valeurs par défaut
    """
    base = Path(base) if base else data_dir()
    raw = _load_json(base / "settings.json") or {}
    api_conf = raw.get("api", {}) if isinstance(raw, dict) and isinstance(raw.get("api"), dict) else {}

    url = os.environ.get("CLINIC_API_URL") or api_conf.get("base_url") or DEFAULT_API_URL
    timeout = os.environ.get("CLINIC_API_TIMEOUT") or api_conf.get("timeout") or DEFAULT_TIMEOUT
    try:
        return Settings(api_url=str(url).rstrip("/"), api_timeout=float(timeout), data_dir=base)
    except (ValidationError, ValueError):
        logger.warning("Paramètres API invalides, valeurs par défaut utilisées")
        return Settings(data_dir=base)
