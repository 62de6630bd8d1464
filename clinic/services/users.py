from __future__ import annotations

import logging
from typing import Dict, List, Optional

from clinic.errors import ApiError, ValidationFailed
from clinic.models.user import ROLE_LABELS, AuthUser, PasswordChange, User, UserForm

from .validation import blank, is_valid_email

logger = logging.getLogger(__name__)

MIN_PASSWORD = 8


def validate_user_data(data: UserForm) -> List[str]:
    errors: List[str] = []
    if blank(data.cin):
        errors.append("Le CIN est obligatoire")
    if blank(data.nom):
        errors.append("Le nom est obligatoire")
    if blank(data.prenom):
        errors.append("Le prénom est obligatoire")
    if not data.date_naissance:
        errors.append("La date de naissance est obligatoire")
    if blank(data.adresse):
        errors.append("L'adresse est obligatoire")
    if blank(data.numero_telephone):
        errors.append("Le numéro de téléphone est obligatoire")
    if blank(data.email):
        errors.append("L'email est obligatoire")
    elif not is_valid_email(data.email):
        errors.append("L'email n'est pas valide")
    return errors


def validate_password_change(data: PasswordChange) -> List[str]:
    if data.new_password != data.confirm_password:
        return ["Les mots de passe ne correspondent pas"]
    if len(data.new_password) < MIN_PASSWORD:
        return [f"Le mot de passe doit contenir au moins {MIN_PASSWORD} caractères"]
    return []


def get_available_roles() -> List[Dict[str, str]]:
    return [{"value": k, "label": v} for k, v in ROLE_LABELS.items()]


def get_display_name(user: User) -> str:
    return f"{user.prenom} {user.nom}"


def get_role_display_name(role: str) -> str:
    return ROLE_LABELS.get(role, role)


class UserService:
    """Profil de l'utilisateur connecté."""

    def __init__(self, api, session):
        self.api = api
        self.session = session

    def get_current_all_users(self) -> List[Dict[str, object]]:
        """Liste courte (id, "nom prenom", CIN) pour les sélecteurs."""
        rows = self.api.get("utilisateur") or []
        return [
            {"id": u.get("id"), "nom": f"{u.get('nom', '')} {u.get('prenom', '')}", "CIN": u.get("CIN", "")}
            for u in rows if isinstance(u, dict)
        ]

    def get_current_user(self) -> Optional[AuthUser]:
        return self.session.user()

    def _require_user(self) -> AuthUser:
        user = self.session.user()
        if user is None or user.id is None:
            raise ApiError("Aucun utilisateur connecté")
        return user

    def update_profile(self, data: UserForm) -> AuthUser:
        user = self._require_user()
        errors = validate_user_data(data)
        if errors:
            raise ValidationFailed(errors)
        payload = data.model_dump(by_alias=True)
        try:
            self.api.patch(f"utilisateur/{user.id}", payload)
        except ApiError as e:
            raise ApiError("Erreur: " + e.message, e.status_code, e.path) from e
        updated = user.model_copy(update=data.model_dump())
        self.session.save(updated)
        logger.info("Profil mis à jour: %s", updated.email)
        return updated

    def change_password(self, data: PasswordChange) -> bool:
        user = self._require_user()
        errors = validate_password_change(data)
        if errors:
            raise ValidationFailed(errors)
        try:
            self.api.patch(
                f"auth/update-password/{user.id}",
                {"oldPassword": data.current_password, "newPassword": data.new_password},
            )
        except ApiError as e:
            raise ApiError("Erreur: " + e.message, e.status_code, e.path) from e
        return True
