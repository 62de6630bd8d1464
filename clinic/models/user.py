from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field

from .common import ApiModel

Role = Literal["admin", "therapeute"]

ROLE_LABELS = {"admin": "Administrateur", "therapeute": "Thérapeute"}


class UserForm(ApiModel):
    cin: str = Field("", alias="CIN")
    nom: str = ""
    prenom: str = ""
    date_naissance: str = ""
    adresse: str = ""
    numero_telephone: str = ""
    email: str = ""
    role: Role = "therapeute"


class User(UserForm):
    """Utilisateur de l'application (employé de la clinique)."""

    id: Optional[int] = None
    created_at: Optional[str] = None

    @property
    def display_name(self) -> str:
        return f"{self.prenom} {self.nom}".strip()


class AuthUser(User):
    token: str = ""


class RegisterData(UserForm):
    password: str = ""
    confirm_password: str = Field("", alias="confirmPassword")


class PasswordChange(ApiModel):
    current_password: str = Field("", alias="currentPassword")
    new_password: str = Field("", alias="newPassword")
    confirm_password: str = Field("", alias="confirmPassword")
