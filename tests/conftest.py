"""Shared pytest fixtures: in-memory REST backend behind httpx.MockTransport."""

from __future__ import annotations

import json
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

from clinic.api.client import ApiClient
from clinic.app_context import AppContext
from clinic.models.user import AuthUser
from clinic.services import currency
from clinic.services.auth import generate_token
from clinic.settings import Settings

BASE_URL = "http://clinic.test/api"

CURRENT_USER = {
    "id": 1,
    "CIN": "AB12345",
    "nom": "Alaoui",
    "prenom": "Sara",
    "date_naissance": "1985-04-02",
    "adresse": "12 rue des Orangers, Rabat",
    "numero_telephone": "0612345678",
    "email": "sara@clinic.ma",
    "role": "admin",
    "created_at": "2024-01-01T08:00:00Z",
}


class FakeBackend:
    """
    Backend REST minimal : une liste de lignes par collection, ids auto-incrémentés.
    Les routes spéciales de facture-bien, auth, options et entreprise sont reproduites.
    """

    def __init__(self) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self._ids: Dict[str, int] = defaultdict(int)
        self.calls: List[Tuple[str, str]] = []
        self.bodies: List[Tuple[str, str, Any]] = []
        self.failures: Dict[Tuple[str, str], Tuple[int, str]] = {}
        self.passwords: Dict[str, str] = {}
        self.options: Optional[Dict[str, Any]] = None
        self.entreprise: Optional[Dict[str, Any]] = None

    # ---------- Données ----------
    def seed(self, table: str, **row: Any) -> Dict[str, Any]:
        if "id" not in row:
            self._ids[table] += 1
            row["id"] = self._ids[table]
        else:
            self._ids[table] = max(self._ids[table], row["id"])
        row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        self.tables[table].append(row)
        return row

    def row(self, table: str, row_id: int) -> Optional[Dict[str, Any]]:
        for r in self.tables[table]:
            if r.get("id") == row_id:
                return r
        return None

    def stock_of(self, product_id: int) -> int:
        return self.row("bien", product_id)["stock"]

    def fail(self, method: str, path: str, status: int = 500, message: str = "Erreur serveur") -> None:
        self.failures[(method, path)] = (status, message)

    def count(self, method: str, path_prefix: str) -> int:
        return sum(1 for m, p in self.calls if m == method and p.startswith(path_prefix))

    # ---------- Transport ----------
    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.split("/api/", 1)[1].strip("/")
        method = request.method
        self.calls.append((method, path))

        if (method, path) in self.failures:
            status, message = self.failures[(method, path)]
            return httpx.Response(status, json={"message": message})

        body: Any = None
        ctype = request.headers.get("content-type", "")
        if request.content and ctype.startswith("application/json"):
            body = json.loads(request.content)
        # formulaires et multipart : corps brut conservé, non décodé
        self.bodies.append((method, path, body if body is not None else request.content))

        parts = path.split("/")
        root = parts[0]
        if root == "auth":
            return self._auth(method, parts, body)
        if root == "options":
            return self._options(method, body)
        if root == "entreprise":
            return self._entreprise(method, parts, body)
        if root == "facture-bien":
            return self._facture_bien(method, parts, body)
        if root == "bien" and method == "GET" and len(parts) == 1:
            kind = request.url.params.get("type")
            rows = [r for r in self.tables["bien"] if not kind or r.get("bien_type") == kind]
            return httpx.Response(200, json=rows)
        if root == "utilisateur" and method == "GET":
            rows = [{k: v for k, v in r.items() if k != "password"} for r in self.tables["utilisateur"]]
            return httpx.Response(200, json=rows)
        return self._collection(method, root, parts, body)

    def _collection(self, method: str, table: str, parts: List[str], body: Any) -> httpx.Response:
        if method == "GET" and len(parts) == 1:
            return httpx.Response(200, json=self.tables[table])
        if method == "POST" and len(parts) == 1:
            if isinstance(body, dict):
                row = self.seed(table, **body)
            else:
                row = self.seed(table, filePath="scan.pdf")
            return httpx.Response(201, json=row)
        row = self.row(table, int(parts[1])) if len(parts) > 1 and parts[1].isdigit() else None
        if row is None:
            return httpx.Response(404, json={"message": f"{table} introuvable"})
        if method == "GET":
            return httpx.Response(200, json=row)
        if method == "PATCH":
            if isinstance(body, dict):
                row.update(body)
            return httpx.Response(200, json=row)
        if method == "DELETE":
            self.tables[table].remove(row)
            return httpx.Response(200)
        return httpx.Response(405)

    def _facture_bien(self, method: str, parts: List[str], body: Any) -> httpx.Response:
        rows = self.tables["facture-bien"]
        if method == "GET":
            out = []
            for r in rows:
                bien = self.row("bien", r.get("id_bien")) or {}
                out.append({**r, "bien": {"Nom": bien.get("Nom", "")}})
            return httpx.Response(200, json=out)
        if method == "DELETE" and len(parts) == 3 and parts[1] == "IN":
            # suppression d'un mouvement par son id
            self.tables["facture-bien"] = [r for r in rows if r.get("id") != int(parts[2])]
            return httpx.Response(200)
        if method == "DELETE" and len(parts) == 2:
            # suppression des lignes d'une facture
            self.tables["facture-bien"] = [r for r in rows if r.get("id_facture") != int(parts[1])]
            return httpx.Response(200)
        return self._collection(method, "facture-bien", parts, body)

    def _auth(self, method: str, parts: List[str], body: Any) -> httpx.Response:
        action = parts[1] if len(parts) > 1 else ""
        if action == "login":
            for u in self.tables["utilisateur"]:
                if u.get("email") == body.get("email") and self.passwords.get(u["email"]) == body.get("password"):
                    user = {k: v for k, v in u.items() if k != "password"}
                    return httpx.Response(200, json={"token": generate_token(AuthUser.model_validate(user)), "user": user})
            return httpx.Response(401, json={"message": "Unauthorized"})
        if action == "register":
            data = {k: v for k, v in body.items() if k not in ("password", "confirmPassword")}
            row = self.seed("utilisateur", **data)
            self.passwords[row["email"]] = body.get("password")
            return httpx.Response(201, json={"token": generate_token(AuthUser.model_validate(row)), "user": row})
        if action == "update-password":
            user = self.row("utilisateur", int(parts[2]))
            if user is None or self.passwords.get(user["email"]) != body.get("oldPassword"):
                return httpx.Response(400, json={"message": "Mot de passe actuel incorrect"})
            self.passwords[user["email"]] = body["newPassword"]
            return httpx.Response(200, json={"ok": True})
        return httpx.Response(404)

    def _options(self, method: str, body: Any) -> httpx.Response:
        if method == "PUT":
            self.options = {**(self.options or {}), **body}
        return httpx.Response(200, json=self.options or {})

    def _entreprise(self, method: str, parts: List[str], body: Any) -> httpx.Response:
        if method == "GET":
            return httpx.Response(200, json=self.entreprise) if self.entreprise else httpx.Response(200)
        if method == "POST":
            self.entreprise = {**body, "id": 1, "created_at": "2024-01-01T00:00:00Z"}
            return httpx.Response(201, json=self.entreprise)
        if method == "PATCH" and self.entreprise and int(parts[1]) == self.entreprise["id"]:
            self.entreprise.update(body)
            return httpx.Response(200, json=self.entreprise)
        return httpx.Response(404, json={"message": "Entreprise introuvable"})


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def transport(backend) -> httpx.MockTransport:
    return httpx.MockTransport(backend.handler)


@pytest.fixture
def api(transport) -> ApiClient:
    client = ApiClient(BASE_URL, transport=transport)
    yield client
    client.close()


@pytest.fixture
def ctx(tmp_path, transport) -> AppContext:
    """Contexte complet, utilisateur CURRENT_USER déjà connecté."""
    context = AppContext(Settings(api_url=BASE_URL, data_dir=tmp_path), transport=transport)
    user = AuthUser.model_validate(CURRENT_USER)
    context.session.save(user.model_copy(update={"token": generate_token(user)}))
    yield context
    context.close()


@pytest.fixture
def products(backend):
    """Deux produits (stock 10 et 4) et un soin."""
    a = backend.seed("bien", Nom="Sérum vitamine C", bien_type="PRODUIT", Type="", prix=100.0, stock=10, Cree_par="AB12345")
    b = backend.seed("bien", Nom="Complément magnésium", bien_type="PRODUIT", Type="", prix=50.0, stock=4, Cree_par="AB12345")
    s = backend.seed("bien", Nom="Thérapie IV", bien_type="SERVICE", Type="Thérapeutique", prix=400.0, stock=1,
                     cabinet="Biohacking", Cree_par="AB12345")
    return a, b, s


@pytest.fixture
def patient(backend):
    return backend.seed("client", CIN="BK123456", nom="Bennani", prenom="Youssef", date_naissance="1990-05-12",
                        adresse="Casablanca", numero_telephone="0661234567", email="y.bennani@mail.ma",
                        groupe_sanguin="A+", Cree_par="AB12345")


@pytest.fixture(autouse=True)
def _reset_currency_symbol():
    # AppContext branche le symbole des préférences sur le module currency
    yield
    currency.use_symbol_provider(None)


@pytest.fixture
def current_user_row():
    return dict(CURRENT_USER)
