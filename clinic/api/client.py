from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

import httpx

from clinic.errors import ApiError

logger = logging.getLogger(__name__)

DEFAULT_ERROR = "Une erreur est survenue lors de la communication avec le serveur"


def _error_message(response: httpx.Response) -> str:
    """Extrait le message d'erreur du backend sans présumer de la forme du corps."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        msg = body.get("message") or body.get("error") or body.get("detail")
        if isinstance(msg, list):
            msg = ", ".join(str(m) for m in msg)
        if msg:
            return str(msg)
    text = (response.text or "").strip()
    return text[:300] if text else f"{DEFAULT_ERROR} (HTTP {response.status_code})"


class ApiClient:
    """Client REST du backend de la clinique (JSON, jeton bearer)."""

    def __init__(
        self,
        base_url: str,
        *,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider
        self._http = httpx.Client(base_url=self.base_url + "/", timeout=timeout, transport=transport)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        token = self.token_provider() if self.token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def request(self, method: str, path: str, **kwargs: Any) -> Any:
        path = path.lstrip("/")
        try:
            response = self._http.request(method, path, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            logger.error("%s %s: échec réseau (%s)", method, path, e)
            raise ApiError(f"{DEFAULT_ERROR}: {e}", path=path) from e

        if response.status_code >= 400:
            message = _error_message(response)
            logger.error("%s %s -> %s: %s", method, path, response.status_code, message)
            raise ApiError(message, status_code=response.status_code, path=path)

        logger.debug("%s %s -> %s", method, path, response.status_code)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, json: Any = None, *, data: Any = None, files: Any = None) -> Any:
        if files is not None or data is not None:
            return self.request("POST", path, data=data, files=files)
        return self.request("POST", path, json=json)

    def patch(self, path: str, json: Any = None, *, data: Any = None, files: Any = None) -> Any:
        if files is not None or data is not None:
            return self.request("PATCH", path, data=data, files=files)
        return self.request("PATCH", path, json=json)

    def put(self, path: str, json: Any = None) -> Any:
        return self.request("PUT", path, json=json)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)
