from __future__ import annotations

import json
import logging
import shutil
import threading
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)


def _json_default(o: Any) -> Any:
    if isinstance(o, (date, datetime)):
        return o.isoformat()
    return str(o)


class JsonStore:
    """
    Document JSON clé/valeur persistant (session, préférences).
    - Fichier corrompu : copie en .corrupt.json puis repart d'un document vide
    - N'écrit pas si le contenu ne change pas
    """

    def __init__(self, filepath: Union[str, Path]) -> None:
        self.filepath = Path(filepath)
        self._lock = threading.Lock()
        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        if not self.filepath.exists():
            self._write_raw({})

    # ---------------- I/O bas niveau ---------------- #

    def _read_raw(self) -> Dict[str, Any]:
        try:
            with self.filepath.open("r", encoding="utf-8") as f:
                data = json.load(f)
            return data if isinstance(data, dict) else {}
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError:
            backup = self.filepath.with_suffix(".corrupt.json")
            try:
                shutil.copy2(self.filepath, backup)
            except OSError as e:
                logger.warning("Sauvegarde de %s impossible: %s", self.filepath, e)
            logger.warning("%s illisible, copie dans %s", self.filepath, backup)
            return {}

    def _write_raw(self, data: Dict[str, Any]) -> None:
        with self._lock:
            new_dump = json.dumps(data, ensure_ascii=False, indent=2, default=_json_default)
            if self.filepath.exists():
                try:
                    unchanged = self.filepath.read_text(encoding="utf-8") == new_dump
                except OSError as e:
                    logger.debug("Relecture de %s impossible: %s", self.filepath, e)
                    unchanged = False
                if unchanged:
                    return
            with self.filepath.open("w", encoding="utf-8") as f:
                f.write(new_dump)

    # ---------------- API ---------------- #

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        return self._read_raw().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._read_raw()
        data[key] = value
        self._write_raw(data)

    def remove(self, key: str) -> None:
        data = self._read_raw()
        if key in data:
            del data[key]
            self._write_raw(data)

    def clear(self) -> None:
        self._write_raw({})
