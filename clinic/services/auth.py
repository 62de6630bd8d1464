from __future__ import annotations

import base64
import binascii
import json
import logging
import time
from typing import Any, Dict, List, Optional

import jwt
from pydantic import ValidationError

from clinic.api.client import ApiClient
from clinic.errors import ApiError, ValidationFailed
from clinic.models.user import AuthUser, RegisterData, User
from clinic.storage.json_store import JsonStore

from .validation import PHONE_FORMAT_MSG, age_in_years, blank, check_identity, is_valid_email, is_valid_phone

logger = logging.getLogger(__name__)

TOKEN_KEY = "biohacking-clinic-token"
USER_KEY = "biohacking-clinic-user"
TOKEN_TTL_MS = 24 * 60 * 60 * 1000
LOGIN_FAILED = "Email ou mot de passe est incorrect"


# ---------- Jeton ----------
def _b64decode(segment: str) -> bytes:
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


def _decode_jwt(token: str) -> Optional[Dict[str, Any]]:
    # signature non vérifiée
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError as e:
        logger.debug("JWT illisible: %s", e)
        return None
    if isinstance(payload.get("exp"), (int, float)):
        payload["exp"] = payload["exp"] * 1000
    return payload


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Lit la charge utile d'un jeton :
    - JWT (header.payload.signature), exp en secondes
    - JSON encodé en base64 (jeton régénéré localement), exp en millisecondes
    """
    if not token:
        return None
    if token.count(".") == 2:
        return _decode_jwt(token)
    try:
        payload = json.loads(_b64decode(token).decode("utf-8"))
    except (binascii.Error, ValueError, UnicodeDecodeError):
        return None
    return payload if isinstance(payload, dict) else None


def generate_token(user: User, now_ms: Optional[int] = None) -> str:
    now_ms = int(time.time() * 1000) if now_ms is None else now_ms
    payload = {"userId": user.id, "email": user.email, "role": user.role, "exp": now_ms + TOKEN_TTL_MS}
    return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


def is_token_valid(token: Optional[str], now_ms: Optional[int] = None) -> bool:
    payload = decode_token(token or "")
    if not payload or not payload.get("exp"):
        return False
    now_ms = int(time.time() * 1000) if now_ms is None else now_ms
    return now_ms < float(payload["exp"])


# ---------- Session ----------
class Session:
    """Jeton + profil de l'utilisateur connecté, persistés dans session.json."""

    def __init__(self, store: JsonStore):
        self.store = store

    def token(self) -> Optional[str]:
        return self.store.get(TOKEN_KEY)

    def user(self) -> Optional[AuthUser]:
        raw = self.store.get(USER_KEY)
        if not raw or not self.token():
            return None
        try:
            return AuthUser.model_validate(raw)
        except ValidationError:
            logger.warning("Session illisible, déconnexion")
            self.clear()
            return None

    def current_cin(self) -> str:
        u = self.user()
        return u.cin if u else ""

    def save(self, user: AuthUser) -> None:
        self.store.set(TOKEN_KEY, user.token)
        self.store.set(USER_KEY, user.model_dump(by_alias=True))

    def clear(self) -> None:
        self.store.remove(TOKEN_KEY)
        self.store.remove(USER_KEY)


def validate_registration_data(data: RegisterData) -> List[str]:
    errors: List[str] = []
    check_identity(data.cin, data.nom, data.prenom, errors)

    if not data.date_naissance:
        errors.append("La date de naissance est obligatoire")
    else:
        age = age_in_years(data.date_naissance)
        if age is None or age < 0 or age > 120:
            errors.append("La date de naissance n'est pas valide")

    if blank(data.adresse):
        errors.append("L'adresse est obligatoire")

    if blank(data.numero_telephone):
        errors.append("Le numéro de téléphone est obligatoire")
    elif not is_valid_phone(data.numero_telephone):
        errors.append(PHONE_FORMAT_MSG)

    if blank(data.email):
        errors.append("L'email est obligatoire")
    elif not is_valid_email(data.email):
        errors.append("L'email n'est pas valide")

    if not data.password:
        errors.append("Le mot de passe est obligatoire")
    elif len(data.password) < 6:
        errors.append("Le mot de passe doit contenir au moins 6 caractères")

    if data.password != data.confirm_password:
        errors.append("Les mots de passe ne correspondent pas")
    return errors


class AuthService:
    def __init__(self, api: ApiClient, session: Session):
        self.api = api
        self.session = session

    def _auth_user(self, data: Any) -> AuthUser:
        if not isinstance(data, dict) or not isinstance(data.get("user"), dict):
            raise ApiError("Réponse d'authentification inattendue")
        return AuthUser.model_validate({**data["user"], "token": data.get("token") or ""})

    def login(self, email: str, password: str) -> AuthUser:
        try:
            user = self._auth_user(self.api.post("auth/login", {"email": email, "password": password}))
        except (ApiError, ValidationError) as e:
            logger.info("Connexion refusée pour %s (%s)", email, e)
            raise ApiError(LOGIN_FAILED, status_code=getattr(e, "status_code", None)) from e
        self.session.save(user)
        logger.info("Connecté: %s", user.email)
        return user

    def register(self, data: RegisterData) -> AuthUser:
        errors = validate_registration_data(data)
        if errors:
            raise ValidationFailed(errors)
        payload = data.model_dump(by_alias=True)
        user = self._auth_user(self.api.post("auth/register", payload))
        self.session.save(user)
        return user

    def logout(self) -> None:
        self.session.clear()

    def current_user(self) -> Optional[AuthUser]:
        return self.session.user()

    def is_authenticated(self) -> bool:
        return is_token_valid(self.session.token())

    def refresh_token(self) -> Optional[AuthUser]:
        """Réémet localement un jeton valable 24 h pour l'utilisateur courant."""
        user = self.session.user()
        if user is None:
            return None
        refreshed = user.model_copy(update={"token": generate_token(user)})
        self.session.save(refreshed)
        return refreshed
