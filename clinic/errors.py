from __future__ import annotations

from typing import Iterable, List, Optional


class ApiError(RuntimeError):
    """Échec d'un appel REST (réseau ou statut non 2xx)."""

    def __init__(self, message: str, status_code: Optional[int] = None, path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.path = path


class ValidationFailed(ValueError):
    """Données de formulaire refusées avant tout appel réseau."""

    def __init__(self, errors: Iterable[str]):
        self.errors: List[str] = list(errors)
        super().__init__("\n".join(self.errors))
