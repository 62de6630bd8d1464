from __future__ import annotations

from typing import List, Optional

from clinic.errors import ValidationFailed
from clinic.models.common import sort_newest_first
from clinic.models.user import RegisterData, User, UserForm
from clinic.storage.cache import EntityCache

from .base import ApiService, parse_rows
from .validation import blank, is_valid_email


def _identity_errors(data: UserForm) -> List[str]:
    errors: List[str] = []
    if blank(data.cin):
        errors.append("Le CIN est obligatoire")
    if blank(data.nom):
        errors.append("Le nom est obligatoire")
    if blank(data.prenom):
        errors.append("Le prénom est obligatoire")
    if not data.date_naissance:
        errors.append("La date de naissance est obligatoire")
    if blank(data.email):
        errors.append("L'email est obligatoire")
    elif not is_valid_email(data.email):
        errors.append("L'email n'est pas valide")
    return errors


def validate_employee_create(data: RegisterData) -> List[str]:
    errors = _identity_errors(data)
    if not data.password:
        errors.append("Le mot de passe est obligatoire")
    elif len(data.password) < 6:
        errors.append("Le mot de passe doit contenir au moins 6 caractères")
    if data.password != data.confirm_password:
        errors.append("Les mots de passe ne correspondent pas")
    return errors


def validate_employee_update(data: UserForm) -> List[str]:
    return _identity_errors(data)


class EmployeesService(ApiService):
    def __init__(self, api, session=None, activities=None):
        super().__init__(api, session, activities)
        self.cache: EntityCache[User] = EntityCache("employé")

    def get_all(self) -> List[User]:
        users = sort_newest_first(parse_rows(User, self.api.get("utilisateur"), "utilisateur"))
        self.cache.replace_all(users)
        return users

    def get_by_id(self, user_id: int) -> Optional[User]:
        if self.cache.is_empty():
            self.get_all()
        return self.cache.get(user_id)

    def create(self, data: RegisterData) -> User:
        errors = validate_employee_create(data)
        if errors:
            raise ValidationFailed(errors)
        payload = data.model_dump(by_alias=True, exclude={"confirm_password"})
        res = self.api.post("utilisateur", payload)
        row = res if isinstance(res, dict) else {}
        employee = User.model_validate({**payload, **row})
        self.cache.add(employee)
        return employee

    def update(self, user_id: int, data: UserForm) -> Optional[User]:
        current = self.cache.get(user_id)
        if current is None:
            return None
        errors = validate_employee_update(data)
        if errors:
            raise ValidationFailed(errors)
        self.api.patch(f"utilisateur/{user_id}", data.model_dump(by_alias=True))
        return self.cache.update(current.model_copy(update=data.model_dump()))

    def delete(self, user_id: int) -> bool:
        self.api.delete(f"utilisateur/{user_id}")
        return self.cache.delete(user_id)
