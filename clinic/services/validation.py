from __future__ import annotations

import re
from datetime import date, datetime
from typing import List, Optional

from email_validator import EmailNotValidError, validate_email

CIN_RE = re.compile(r"^[A-Z]{1,2}\d{5,}$")
PHONE_RE = re.compile(r"^(\+212|0|\+33)[1-9]\d{7,8}$")

CIN_FORMAT_MSG = "Le CIN doit suivre le format B1234567 ou BR54657"
PHONE_FORMAT_MSG = "Le numéro de téléphone n'est pas au format belge valide"


def blank(value: Optional[str]) -> bool:
    return not (value or "").strip()


def is_valid_cin(cin: str) -> bool:
    return bool(CIN_RE.match(cin or ""))


def is_valid_phone(phone: str) -> bool:
    return bool(PHONE_RE.match(re.sub(r"\s", "", phone or "")))


def is_valid_email(email: str) -> bool:
    """Syntaxe seulement, pas de résolution DNS."""
    try:
        validate_email((email or "").strip(), check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def parse_day(value: Optional[str]) -> Optional[date]:
    """'YYYY-MM-DD' ou ISO complet -> date (None si illisible)."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")[:19]).date()
    except ValueError:
        try:
            return date.fromisoformat(str(value)[:10])
        except ValueError:
            return None


def age_in_years(birth: Optional[str], today: Optional[date] = None) -> Optional[int]:
    """Différence d'années civiles, comme l'affichage de la fiche patient."""
    born = parse_day(birth)
    if born is None:
        return None
    today = today or date.today()
    return today.year - born.year


def exact_age(birth: Optional[str], today: Optional[date] = None) -> Optional[int]:
    born = parse_day(birth)
    if born is None:
        return None
    today = today or date.today()
    age = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        age -= 1
    return age


def check_identity(cin: str, nom: str, prenom: str, errors: List[str]) -> None:
    if blank(cin):
        errors.append("Le CIN est obligatoire")
    elif not is_valid_cin(cin):
        errors.append(CIN_FORMAT_MSG)
    if blank(nom):
        errors.append("Le nom est obligatoire")
    if blank(prenom):
        errors.append("Le prénom est obligatoire")
