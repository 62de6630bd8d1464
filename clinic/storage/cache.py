from __future__ import annotations

import threading
from typing import Any, Callable, Generic, Iterable, List, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)


class EntityCache(Generic[T]):
    """
    Copie locale d'une collection distante.
    Remplie par get_all(), modifiée après chaque réponse API réussie.
    """

    def __init__(self, entity_name: str = "entity", key: str = "id"):
        self.entity_name = entity_name
        self.key = key
        self._lock = threading.Lock()
        self.data: List[T] = []

    def _key_of(self, item: T) -> Any:
        return getattr(item, self.key, None)

    def _index_of_key(self, key_value: Any) -> int:
        for i, d in enumerate(self.data):
            if self._key_of(d) == key_value:
                return i
        return -1

    def replace_all(self, items: Iterable[T]) -> None:
        with self._lock:
            self.data = list(items)

    def clear(self) -> None:
        with self._lock:
            self.data = []

    def is_empty(self) -> bool:
        return not self.data

    def list_all(self) -> List[T]:
        return list(self.data)

    def get(self, key_value: Any) -> Optional[T]:
        idx = self._index_of_key(key_value)
        return self.data[idx] if idx >= 0 else None

    def find(self, pred: Callable[[T], bool]) -> List[T]:
        return [d for d in self.data if pred(d)]

    def find_one(self, pred: Callable[[T], bool]) -> Optional[T]:
        for d in self.data:
            if pred(d):
                return d
        return None

    def add(self, item: T) -> T:
        with self._lock:
            self.data.append(item)
        return item

    def update(self, item: T) -> T:
        with self._lock:
            idx = self._index_of_key(self._key_of(item))
            if idx < 0:
                raise KeyError(f"{self.entity_name} {self._key_of(item)} introuvable")
            self.data[idx] = item
        return item

    def upsert(self, item: T) -> T:
        """Met à jour si l'élément existe (même clé), sinon l'ajoute."""
        with self._lock:
            idx = self._index_of_key(self._key_of(item))
            if idx < 0:
                self.data.append(item)
            else:
                self.data[idx] = item
        return item

    def delete(self, key_value: Any) -> bool:
        with self._lock:
            idx = self._index_of_key(key_value)
            if idx < 0:
                return False
            self.data.pop(idx)
        return True

    def remove_where(self, pred: Callable[[T], bool]) -> int:
        with self._lock:
            before = len(self.data)
            self.data = [d for d in self.data if not pred(d)]
            return before - len(self.data)
